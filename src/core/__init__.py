"""Core infrastructure: request context, structured logging, middleware and
the async Cassandra connection. Import from the submodules directly."""
