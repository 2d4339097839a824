"""
Core infrastructure for ssml-studio.

    - config.py: Settings loading and validation
    - logging/: Structured logging with numeric levels
"""
