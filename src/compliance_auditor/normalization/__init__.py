"""Normalization of provider payloads into auditor resources."""

from .aws_normalizer import NOT_CONFIGURED, AwsNormalizer, policy_allows_any_principal

__all__ = ["AwsNormalizer", "NOT_CONFIGURED", "policy_allows_any_principal"]
