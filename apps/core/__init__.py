"""
Core app - Shared abstractions and utilities.

This app provides cross-cutting pieces used by every other app:
- Domain error taxonomy (exceptions)
- Configurable business policies (policies)
"""
