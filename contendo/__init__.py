"""Contendo - Business Management Platform API.

Contendo fronts a set of domain services (healthcare, training, arbitration,
CRM, financial, AI and dashboard) with a single HTTP process that also serves
the client application.

Architecture Overview:
- **API Layer**: FastAPI application, ordered middleware pipeline, routing
  and the process lifecycle manager
- **Core Layer**: Configuration, logging, tracing, exceptions and request context
- **Domain Layer**: Opaque route providers and the dependency container
- **Infrastructure Layer**: Shared mutable stores (rate-limit windows, sessions)

The orchestration layer is the interesting part: the order of the middleware
stages is fixed at construction time, shared counters are updated atomically,
and shutdown runs exactly once no matter how many signals or fatal errors
trigger it.
"""
