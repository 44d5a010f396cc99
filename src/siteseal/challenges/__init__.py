"""ACME challenge handlers."""

from siteseal.challenges.http01 import ChallengeResolver, compute_key_authorization

__all__ = ["ChallengeResolver", "compute_key_authorization"]
