"""Domain route providers and the dependency container that wires them.

The business logic of each domain (healthcare, training, arbiter, CRM,
financial, AI, dashboard) lives behind a route provider. The pipeline only
knows that a provider builds a router and is mounted below a prefix.
"""
