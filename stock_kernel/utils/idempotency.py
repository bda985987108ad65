"""
Idempotency key utilities.

A client-assigned key makes a retried movement return the entries written by
the first attempt instead of moving stock twice.  Keys are namespaced by
operation so the same client key sent to two different operations does not
collide.
"""


def generate_idempotency_key(operation: str, client_key: str) -> str:
    """
    Build the stored idempotency key.

    Format: operation:client_key

    Example:
        >>> generate_idempotency_key("transfer_stock", "req-42")
        "transfer_stock:req-42"
    """
    if not client_key:
        raise ValueError("client idempotency key must be non-empty")
    return f"{operation}:{client_key}"


def parse_idempotency_key(key: str) -> tuple[str, str]:
    """
    Split a stored key into (operation, client_key).

    Raises:
        ValueError: If the key has no operation prefix.
    """
    parts = key.split(":", 1)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid idempotency key format: {key}")
    return parts[0], parts[1]
