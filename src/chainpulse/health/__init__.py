"""Liveness, readiness and version endpoints."""
