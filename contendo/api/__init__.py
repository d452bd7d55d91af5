"""HTTP API layer with FastAPI for the Contendo platform.

Key components:
- **main**: Application factory assembling pipeline, handlers and routes
- **pipeline**: Fixed order of the middleware stages
- **middleware**: One module per pipeline stage
- **routing**: Route provider registry and mount prefixes
- **system**: ``/health`` and ``/api`` endpoints
- **fallback**: Client bundle and development catch-all routes
- **server**: Process lifecycle, signals and graceful shutdown
- **schemas**: Pydantic models for the error envelope and system endpoints
- **utils**: orjson responses and client address helpers
"""
