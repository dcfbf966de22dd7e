"""Data model, JSON codec and ports."""
