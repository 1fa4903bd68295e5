"""
Application layer for the activity converter.

This package contains:
- ports/: Abstract interfaces the use cases depend on
- use_cases/: The conversion workflow
"""
