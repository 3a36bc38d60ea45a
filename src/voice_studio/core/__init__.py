"""
Core Infrastructure for voice-studio.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: Error codes and the StudioError hierarchy
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
