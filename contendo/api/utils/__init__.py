"""Utility modules for API-specific functionality.

- **responses**: orjson-backed JSON response class
- **client**: Client address extraction shared by rate limiting and logging
"""
