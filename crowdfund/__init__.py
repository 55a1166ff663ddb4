"""
Crowdfunding core: caller-aware entity wrappers behind per-entity
repository gates.
"""

from crowdfund.platform import Platform

__all__ = ["Platform"]
