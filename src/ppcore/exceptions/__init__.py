"""Custom exceptions for the privacy-pool wallet core."""


class PrivacyPoolError(Exception):
    """Base exception for all privacy-pool wallet errors."""
    pass


class InvalidInputError(PrivacyPoolError, ValueError):
    """Raised when an argument is malformed or outside the scalar field."""
    pass


# Index resolution
class UnresolvableIndexError(PrivacyPoolError):
    """Raised when the next withdrawal index cannot be recovered."""
    pass


class ScanCancelledError(PrivacyPoolError):
    """Raised when the caller aborts a bounded index scan."""
    pass


# Policy
class PolicyRejectedError(PrivacyPoolError):
    """Raised when a fee or recipient check fails.

    Attributes:
        reason: Machine-readable reason code (e.g. ``"exceeds-max"``)
    """

    def __init__(self, reason: str, message: str = ""):
        self.reason = reason
        super().__init__(message or reason)


# Leaf reconciliation
class ReconciliationError(PrivacyPoolError):
    """Raised when the reported leaf index does not locate the commitment.

    Attributes:
        reason: One of ``out-of-range``, ``empty-leaf``, ``commitment-mismatch``
        index: Reported tree index
    """

    def __init__(self, reason: str, index: int, message: str = ""):
        self.reason = reason
        self.index = index
        super().__init__(message or f"{reason} at leaf index {index}")


# Merkle Tree Errors
class MerkleTreeError(PrivacyPoolError):
    """Base exception for Merkle tree errors."""
    pass


class TreeHeightExceededError(MerkleTreeError):
    """Raised when the tree outgrows the circuit depth."""
    pass


class InvalidLeafIndexError(MerkleTreeError):
    """Raised when leaf index is invalid."""
    pass


# Storage Errors
class StorageError(PrivacyPoolError):
    """Base exception for storage errors."""
    pass


class SerializationError(StorageError):
    """Raised when serialization fails."""
    pass


class DeserializationError(StorageError):
    """Raised when deserialization fails."""
    pass


class NoteNotFoundError(StorageError):
    """Raised when a stored note is not found."""
    pass
