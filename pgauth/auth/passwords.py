"""
Password hashing.

Argon2id via argon2-cffi. The verifier only ever compares passwords through
``verify_password``; stored digests are never compared directly.
"""

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError


# Argon2id configuration
# - time_cost: number of iterations
# - memory_cost: memory usage in KiB
# - parallelism: number of parallel threads
ARGON2_CONFIG = {
    'time_cost': 3,          # Number of iterations
    'memory_cost': 65536,    # 64 MiB memory
    'parallelism': 4,        # 4 parallel threads
    'hash_len': 32,          # 256-bit hash
    'salt_len': 16,          # 128-bit salt
    'type': Type.ID          # Argon2id (hybrid)
}


class PasswordHasher_:
    """
    Password hasher using Argon2id.

    Example:
        >>> hasher = PasswordHasher_()
        >>> digest = hasher.hash_password("correct horse")
        >>> hasher.verify_password("correct horse", digest)
        True
    """

    def __init__(self, **kwargs):
        """
        Initialize the password hasher with Argon2id.

        Args:
            **kwargs: Override default Argon2 parameters
        """
        config = ARGON2_CONFIG.copy()
        config.update(kwargs)

        self._hasher = PasswordHasher(
            time_cost=config['time_cost'],
            memory_cost=config['memory_cost'],
            parallelism=config['parallelism'],
            hash_len=config['hash_len'],
            salt_len=config['salt_len'],
            type=config['type']
        )

    def hash_password(self, password: str) -> str:
        """
        Hash a password. The result embeds the salt and parameters.

        Raises:
            ValueError: If password is empty
        """
        if not password:
            raise ValueError("Password must not be empty")
        return self._hasher.hash(password)

    def verify_password(self, password: str, hash_str: str) -> bool:
        """
        Verify a password against a stored hash.

        Malformed or foreign hashes verify as False rather than raising, so
        a corrupt record cannot be used to probe the verifier.
        """
        try:
            return self._hasher.verify(hash_str, password)
        except VerifyMismatchError:
            return False
        except (VerificationError, InvalidHashError):
            # Corrupt digest or one produced by another algorithm
            return False

    def needs_rehash(self, hash_str: str) -> bool:
        """True when the hash was made with weaker parameters than the current ones."""
        return self._hasher.check_needs_rehash(hash_str)


# Module-level hasher instance
_default_hasher = PasswordHasher_()


def hash_password(password: str) -> str:
    """Convenience function to hash a password."""
    return _default_hasher.hash_password(password)


def verify_password(password: str, hash_str: str) -> bool:
    """Convenience function to verify a password."""
    return _default_hasher.verify_password(password, hash_str)
