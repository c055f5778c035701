"""Storage adapters and integrations used by the route handlers."""
