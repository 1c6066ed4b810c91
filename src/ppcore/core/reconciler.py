"""Map an externally reported leaf index onto the local leaf mirror."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from ppcore.exceptions import InvalidInputError, ReconciliationError

logger = logging.getLogger(__name__)

EMPTY_LEAF = 0


class LeafSource(str, Enum):
    """How the accepted index relates to the reported one."""

    ZERO_BASED = "0-based"
    ONE_BASED_FALLBACK = "1-based-fallback"


class LeafError(str, Enum):
    """Reconciliation failure reasons."""

    OUT_OF_RANGE = "out-of-range"
    EMPTY_LEAF = "empty-leaf"
    COMMITMENT_MISMATCH = "commitment-mismatch"


@dataclass(frozen=True)
class LeafResolution:
    """Result of leaf-index reconciliation."""

    index: int
    leaf: Optional[int]
    source: Optional[LeafSource] = None
    error: Optional[LeafError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def require(self) -> int:
        """
        Return the accepted index.

        Raises:
            ReconciliationError: With the failure reason
        """
        if self.error is not None:
            raise ReconciliationError(self.error.value, self.index)
        return self.index


def _leaf_at(leaves: Sequence[int], index: int) -> Optional[int]:
    if 0 <= index < len(leaves):
        return leaves[index]
    return None


def resolve_leaf_index(reported_index: int, leaves: Sequence[int], expected_commitment: int) -> LeafResolution:
    """
    Locate expected_commitment at or just below the reported index.

    The exact position always wins. Only when it does not hold the
    commitment, and the reported index is positive, is index - 1 tried;
    this absorbs a 1-based index from the event source. A zero commitment
    never matches.

    Args:
        reported_index: Index reported by the chain mirror
        leaves: Local leaf sequence (0-based)
        expected_commitment: Commitment recomputed from the note

    Returns:
        LeafResolution: Accepted index with source, or the failure reason

    Raises:
        InvalidInputError: If reported_index is not an int
    """
    if isinstance(reported_index, bool) or not isinstance(reported_index, int):
        raise InvalidInputError(f"Reported leaf index must be an integer, got {reported_index!r}")

    leaf = _leaf_at(leaves, reported_index)

    if expected_commitment != EMPTY_LEAF and leaf == expected_commitment:
        return LeafResolution(index=reported_index, leaf=leaf, source=LeafSource.ZERO_BASED)

    if reported_index > 0 and expected_commitment != EMPTY_LEAF:
        shifted = reported_index - 1
        if _leaf_at(leaves, shifted) == expected_commitment:
            logger.warning("Leaf index %d looks 1-based; using %d", reported_index, shifted)
            return LeafResolution(index=shifted, leaf=expected_commitment, source=LeafSource.ONE_BASED_FALLBACK)

    if leaf is None:
        return LeafResolution(index=reported_index, leaf=None, error=LeafError.OUT_OF_RANGE)
    if leaf == EMPTY_LEAF:
        return LeafResolution(index=reported_index, leaf=leaf, error=LeafError.EMPTY_LEAF)
    return LeafResolution(index=reported_index, leaf=leaf, error=LeafError.COMMITMENT_MISMATCH)
