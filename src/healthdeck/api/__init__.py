"""HTTP API for healthdeck."""
