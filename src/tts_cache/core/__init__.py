"""
Core Infrastructure for tts-cache.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: Error codes and exception types
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
