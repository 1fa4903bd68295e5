"""Data files shared across layers (vocabulary dictionaries)."""
