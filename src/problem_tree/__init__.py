"""
problem-tree: nested problem lists with derived views and a focus timer.

Packages:
- core: data model, JSON codec, ports
- store: tree helpers, TaskStore, JSON state file
- views: date helpers and view derivation (Today, This Week, ...)
- focus: focus session timer and its background ticker
- cli / connectors: console entrypoint and slash commands
"""
