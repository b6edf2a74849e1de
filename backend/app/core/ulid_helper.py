"""ULID generation helper utilities."""

import ulid

# Crockford base32, 26 characters
ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())
