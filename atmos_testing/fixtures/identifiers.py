"""Random identifiers for isolating concurrent test runs.

Resource names (subdomains, label attributes) include a short random token so
two runs against the same account and stack do not collide.

Example:
    from atmos_testing.fixtures.identifiers import generate_random_identifier

    subdomain = generate_random_identifier()
    # Returns: "a1b2c3"
"""

from __future__ import annotations

import re
import uuid

MIN_IDENTIFIER_LENGTH = 4
MAX_IDENTIFIER_LENGTH = 32
IDENTIFIER_PATTERN = re.compile(r"^[a-z0-9]+$")


def generate_random_identifier(length: int = 6) -> str:
    """Generate a unique lowercase token.

    The token is safe as a DNS label and as a Terraform label attribute:
    lowercase hex characters only.

    Args:
        length: Number of characters (4 to 32).

    Returns:
        Random lowercase token, e.g. "3f9a1c".

    Raises:
        ValueError: If length is out of range.

    Example:
        >>> a = generate_random_identifier()
        >>> b = generate_random_identifier()
        >>> a != b
        True
    """
    if not MIN_IDENTIFIER_LENGTH <= length <= MAX_IDENTIFIER_LENGTH:
        msg = (
            f"Identifier length must be between {MIN_IDENTIFIER_LENGTH} and "
            f"{MAX_IDENTIFIER_LENGTH}, got {length}"
        )
        raise ValueError(msg)
    return uuid.uuid4().hex[:length]


def is_valid_identifier(value: str) -> bool:
    """Check that a caller-supplied identifier has the generated shape."""
    return (
        MIN_IDENTIFIER_LENGTH <= len(value) <= MAX_IDENTIFIER_LENGTH
        and IDENTIFIER_PATTERN.match(value) is not None
    )


__all__ = [
    "IDENTIFIER_PATTERN",
    "MAX_IDENTIFIER_LENGTH",
    "MIN_IDENTIFIER_LENGTH",
    "generate_random_identifier",
    "is_valid_identifier",
]
