from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError

passwordHasher = PasswordHasher(encoding="utf-8")


def makePassword(password: str) -> str:
    """Hash an account password with Argon2."""
    return passwordHasher.hash(password)


def checkPassword(password: str, passwordHash: str) -> bool:
    """
    Verify a plain-text password against the stored Argon2 hash of an account.

    A malformed stored hash counts as a mismatch, so a corrupt record can
    never be logged into.
    """
    try:
        return passwordHasher.verify(passwordHash, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def needsRehash(passwordHash: str) -> bool:
    """True if the hash was made with parameters older than the current hasher."""
    return passwordHasher.check_needs_rehash(passwordHash)
