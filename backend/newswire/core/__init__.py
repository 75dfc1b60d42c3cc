"""
Core utilities shared across the application.
"""
from newswire.core.logging import SecretMasker, configure_logging

__all__ = ["SecretMasker", "configure_logging"]
