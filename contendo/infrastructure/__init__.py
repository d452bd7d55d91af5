"""Infrastructure layer holding shared mutable state.

- **rate_limit_store**: Fixed-window request counters keyed by client IP
- **session_store**: Server-side session records with fixed expiry

Both stores live in process memory and serialize their updates with an
``asyncio.Lock``; they are injected through the dependency container so a
shared backend can replace them without touching the middleware.
"""
