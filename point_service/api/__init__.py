"""HTTP API for the point service."""
