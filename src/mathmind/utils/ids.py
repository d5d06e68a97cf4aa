"""
ID generation utilities for MathMind.
"""

import hashlib
import secrets
from uuid import uuid4


def generate_entity_id(prefix: str) -> str:
    """
    Generate a unique ID for any entity.

    Args:
        prefix: Entity type prefix (e.g., "att", "task", "cls")

    Returns:
        ID like "att-a1b2c3d4"

    Examples:
        >>> id = generate_entity_id("att")
        >>> id.startswith("att-")
        True
        >>> len(id)
        12
    """
    unique_bytes = uuid4().bytes
    hash_digest = hashlib.sha256(unique_bytes).hexdigest()[:8]
    return f"{prefix}-{hash_digest}"


def generate_invite_code(prefix: str = "CLS") -> str:
    """
    Generate a short class invite code.

    Examples:
        >>> code = generate_invite_code()
        >>> code.startswith("CLS-") and len(code) == 10
        True
    """
    return f"{prefix}-{secrets.token_hex(3).upper()}"


# Common entity prefixes
PREFIX_ATTEMPT = "att"
PREFIX_TASK = "task"
PREFIX_TOPIC = "topic"
PREFIX_STUDENT = "stu"
PREFIX_CLASS = "cls"
