"""Fixed-arity field hash utilities."""

from typing import Sequence

from ppcore.crypto.poseidon import SNARK_SCALAR_FIELD, poseidon
from ppcore.exceptions import InvalidInputError
from ppcore.utils.encoding import ensure_field_element

SUPPORTED_ARITIES = (1, 2, 3)


def field_hash(inputs: Sequence[int]) -> int:
    """
    Hash 1, 2 or 3 field elements with Poseidon.

    Every input is range-checked before any work is done.

    Args:
        inputs: Field elements

    Returns:
        int: Digest in (0, SNARK_SCALAR_FIELD)

    Raises:
        InvalidInputError: On wrong arity or out-of-field input
    """
    if len(inputs) not in SUPPORTED_ARITIES:
        raise InvalidInputError(f"Hash arity must be one of {SUPPORTED_ARITIES}, got {len(inputs)}")
    for position, value in enumerate(inputs):
        ensure_field_element(value, f"input[{position}]")
    return poseidon(inputs)


def hash1(a: int) -> int:
    """Poseidon over one field element."""
    return field_hash([a])


def hash2(left: int, right: int) -> int:
    """
    Poseidon over two field elements.

    Used for precommitments and Merkle parent nodes.
    """
    return field_hash([left, right])


def hash3(a: int, b: int, c: int) -> int:
    """Poseidon over three field elements."""
    return field_hash([a, b, c])


__all__ = [
    "SNARK_SCALAR_FIELD",
    "SUPPORTED_ARITIES",
    "field_hash",
    "hash1",
    "hash2",
    "hash3",
]
