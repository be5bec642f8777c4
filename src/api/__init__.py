"""HTTP API for the prospecting engine."""
