"""
Input validation helpers.
"""

import re
from typing import Any

EMAIL_REGEX = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def is_blank(value: Any) -> bool:
    """True for None, non-strings and strings that are empty after trimming."""
    return not isinstance(value, str) or not value.strip()


def is_valid_email(email: Any) -> bool:
    """Check an email address against the accepted format (trimmed)."""
    if is_blank(email):
        return False
    return EMAIL_REGEX.match(email.strip()) is not None
