"""
tests.claim_daemon

Test suite for the claim_daemon package of rvc-claim.

This package contains unit tests for the components of the daemon, including
API endpoints, configuration handling, CAN bus management, frame processing
and metrics.
"""
