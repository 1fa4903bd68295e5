"""
Activity format converter.

- core/: units, vocabulary and segmentation shared by every format
- adapters/: one decoder or encoder per format
- settings.py: environment-driven configuration
- cli.py: the ``python -m converter`` command
"""
