"""Commitment computation (public Merkle leaves)."""

from ppcore.exceptions import InvalidInputError
from ppcore.utils.hash import hash2, hash3


class Commitment:
    """
    Note commitment C = Hash3(value, label, precommitment).

    The label is the note chain's label: for a fresh deposit the value the
    pool assigned to it, for a change note the label of the note it was
    split from.
    """

    @staticmethod
    def compute_precommitment(nullifier: int, secret: int) -> int:
        """Precommitment = Hash2(nullifier, secret)."""
        return hash2(nullifier, secret)

    @staticmethod
    def compute_commitment(value: int, label: int, precommitment: int) -> int:
        """
        Compute note commitment.

        Args:
            value: Note value in base units (must fit the field)
            label: Note chain label
            precommitment: Hash2(nullifier, secret)

        Returns:
            int: Commitment field element

        Raises:
            InvalidInputError: If any input is outside the field
        """
        return hash3(value, label, precommitment)

    @staticmethod
    def verify_commitment(value: int, label: int, precommitment: int, expected_commitment: int) -> bool:
        """
        Verify that a commitment matches the given note data.

        Returns:
            bool: True if commitment is valid, False otherwise
        """
        try:
            computed = Commitment.compute_commitment(value, label, precommitment)
            return computed == expected_commitment
        except InvalidInputError:
            return False


compute_commitment = Commitment.compute_commitment
verify_commitment = Commitment.verify_commitment
