"""Pydantic models for API responses.

- **errors**: The uniform error envelope returned for every failed request
- **system**: Health, service-info and development fallback payloads
"""
