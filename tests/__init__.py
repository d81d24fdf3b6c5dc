"""
tests

Test suite for the rvc-claim project.

Top-level modules test the rvc_claim library (frames, stores, identity, address
selection, the claim state machine and its dispatch loop).

Subpackages:
    - claim_daemon: Tests for the FastAPI daemon, CAN manager and configuration
"""
