"""Password hashing utilities.

Uses argon2id, a memory-hard hash. argon2-cffi generates a random salt
per hash from the OS CSPRNG and encodes salt and parameters into the
stored string ("$argon2id$v=19$m=...").

When the hasher's parameters are raised, older hashes still verify and
needs_upgrade() tells the login flow to re-hash them.
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from foxboard.errors import CryptError

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a password with argon2id and a fresh random salt."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash.

    A wrong password is a normal outcome and returns False. A stored hash
    that cannot be parsed is a real failure and raises CryptError.
    """
    try:
        return _hasher.verify(password_hash, password)
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError) as e:
        raise CryptError(f"Could not verify password: {e}") from e


def needs_upgrade(password_hash: str) -> bool:
    """Check if a hash was made with outdated parameters."""
    try:
        return _hasher.check_needs_rehash(password_hash)
    except (InvalidHashError, ValueError) as e:
        raise CryptError(f"Malformed password hash: {e}") from e
