"""
tests.claim_daemon.api_routers

Tests for the FastAPI routers of the claim daemon.
"""
