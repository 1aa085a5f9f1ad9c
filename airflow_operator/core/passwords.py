"""Random credential material for generated Secrets.

Passwords are drawn either from a caller-owned ``random.Random`` (tests pass a
seeded instance) or from a process-wide ``SystemRandom`` guarded by a lock, so
several root resources can be reconciled in parallel.
"""

import random
import threading
from typing import Optional

PASSWORD_CHARS_ALNUM = "abcdefghijklmnopqrstuvwxyz0123456789"
PASSWORD_CHARS_ALPHA = "abcdefghijklmnopqrstuvwxyz"
PASSWORD_LENGTH = 16

_shared_rng = random.SystemRandom()
_shared_rng_lock = threading.Lock()


def _draw(rng: random.Random, length: int) -> str:
    chars = [rng.choice(PASSWORD_CHARS_ALNUM) for _ in range(length)]
    chars[0] = rng.choice(PASSWORD_CHARS_ALPHA)
    return "".join(chars)


def random_alphanumeric_string(
    length: int = PASSWORD_LENGTH, rng: Optional[random.Random] = None
) -> str:
    """Generate a lowercase alphanumeric password.

    The first character is always a letter so the value satisfies password
    policies that reject a leading digit.

    Args:
        length: Number of characters (default: 16)
        rng: Generator owned by the caller. When omitted the shared
             process-wide generator is used under its lock.

    Returns:
        Password string of exactly ``length`` characters

    Raises:
        ValueError: If length is not positive
    """
    if length < 1:
        raise ValueError(f"password length must be positive, got {length}")
    if rng is not None:
        return _draw(rng, length)
    with _shared_rng_lock:
        return _draw(_shared_rng, length)
