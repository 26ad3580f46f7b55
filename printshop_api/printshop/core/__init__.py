"""
Core application utilities.

This package provides:
- Application-level settings (separate from DB settings)
- Logging configuration with request correlation
- The engine's error taxonomy
- FastAPI dependency helpers
"""
