"""
common

This package contains shared models used across the rvc-claim project.

Modules:
    - models: Defines shared Pydantic models used by multiple components
"""

from .models import ClaimStatus

__all__ = ["ClaimStatus"]
