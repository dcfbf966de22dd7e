"""Problem tree helpers, the TaskStore and its JSON state file."""
