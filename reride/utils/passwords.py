# reride/utils/passwords.py
"""
bcrypt helpers. Used by the backend for stored users and by the data layer
for the offline credentials map, so plain passwords never reach a cache.
"""

from typing import Optional

import bcrypt

from reride.config import settings


def hash_password(plain: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    """Returns False for a missing or malformed hash instead of raising."""
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False
