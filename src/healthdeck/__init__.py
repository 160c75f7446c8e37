"""healthdeck: service registry admin and sequential health checks."""

__version__ = "0.1.0"
