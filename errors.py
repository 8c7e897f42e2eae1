"""Error taxonomy for the confidential balance codec."""


class CodecError(Exception):
    pass


class InvalidSignature(CodecError):
    """Signature handed to key derivation is not 65 bytes of hex/raw data."""


class InvalidPoint(CodecError):
    """Point is off the curve or outside the prime-order subgroup."""


class DecryptionFailed(CodecError):
    """A Poseidon ciphertext could not be opened with the given key."""


class DiscreteLogNotFound(CodecError):
    """Bounded discrete-log search ended without a match.

    Either the balance exceeds the assumed bound, the point is not an
    encoding of a balance, or the search ran out of time.
    """

    def __init__(self, message: str, max_value: int = None):
        super().__init__(message)
        self.max_value = max_value


class CacheCorruption(CodecError):
    """A cached discrete log failed re-verification against its point."""
