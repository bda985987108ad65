"""Utility functions for the stock kernel."""

from stock_kernel.utils.hashing import hash_password, verify_password
from stock_kernel.utils.idempotency import generate_idempotency_key

__all__ = [
    "hash_password",
    "verify_password",
    "generate_idempotency_key",
]
