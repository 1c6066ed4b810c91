"""Recovery of withdrawal sequencing state for change notes.

Each partial withdrawal spends a note and creates a change note whose keys
are derived from (label, withdrawal_index). Spending that change note later
needs the *next* index. The resolver recovers it through strictly ordered
tiers, first match wins:

    1. note                 explicit ``withdrawal_index`` stored on the note
    2. inferred-withdrawal  scan 0..max_scan for a withdrawal nullifier match
    3. deposit              scan 0..max_scan for a deposit nullifier match;
                            the note is an untouched deposit, next index 0
    4. unknown              nothing matched; the caller must block

The scans cost O(max_scan) hash evaluations each. The bound is the only
circuit breaker; callers may additionally pass a cancel token.
"""

import logging
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Protocol

from ppcore.core.keys import derive_nullifier
from ppcore.exceptions import InvalidInputError, ScanCancelledError, UnresolvableIndexError
from ppcore.utils.encoding import ensure_field_element

logger = logging.getLogger(__name__)

DEFAULT_MAX_SCAN = 4096

# Largest decimal exponent a double can hold
_MAX_EXPONENT = 308


class CancelToken(Protocol):
    """Anything with ``is_set()``, e.g. ``threading.Event``."""

    def is_set(self) -> bool:
        ...


class IndexSource(str, Enum):
    """Tier that produced an index resolution."""

    NOTE = "note"
    INFERRED_WITHDRAWAL = "inferred-withdrawal"
    DEPOSIT = "deposit"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class IndexResolution:
    """Outcome of next-index resolution."""

    next_index: Optional[int]
    source: IndexSource
    current_index: Optional[int] = None
    deposit_index: Optional[int] = None

    @property
    def resolved(self) -> bool:
        return self.next_index is not None

    def require_next_index(self) -> int:
        """
        Return next_index or fail closed.

        Raises:
            UnresolvableIndexError: If no tier matched
        """
        if self.next_index is None:
            raise UnresolvableIndexError(
                "Cannot determine the withdrawal index for this note; "
                "refusing to guess (restore the note's withdrawalIndex)"
            )
        return self.next_index


def parse_non_negative_int(raw: object) -> Optional[int]:
    """
    Parse a stored index value into a non-negative int.

    Accepts ints, integral finite floats and ASCII numeric strings whose
    value is a whole number ("7", "5.0", "1e3"; surrounding whitespace
    ignored). Everything else, including negatives, fractions, NaN,
    infinities, booleans and empty strings, yields None.

    Args:
        raw: Value as found in a note record

    Returns:
        Optional[int]: Parsed index, or None when absent or invalid
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, int):
        return raw if raw >= 0 else None

    if isinstance(raw, float):
        if not math.isfinite(raw) or not raw.is_integer() or raw < 0:
            return None
        return int(raw)

    if isinstance(raw, str):
        text = raw.strip()
        if not text.isascii() or "_" in text:
            return None
        if text.isdigit():
            return int(text)
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
        if not parsed.is_finite() or parsed < 0 or parsed.adjusted() > _MAX_EXPONENT:
            return None
        if parsed != parsed.to_integral_value():
            return None
        return int(parsed)

    return None


def _scan_bound(max_scan: Optional[int]) -> int:
    bound = DEFAULT_MAX_SCAN if max_scan is None else max_scan
    if isinstance(bound, bool) or not isinstance(bound, int) or bound < 0:
        raise InvalidInputError(f"max_scan must be a non-negative integer, got {bound!r}")
    return bound


def _scan(
    master_nullifier: int,
    context: int,
    note_nullifier: int,
    max_scan: Optional[int],
    cancel: Optional[CancelToken],
) -> Optional[int]:
    ensure_field_element(master_nullifier, "master_nullifier")
    ensure_field_element(context, "context")
    bound = _scan_bound(max_scan)

    for index in range(bound + 1):
        if cancel is not None and cancel.is_set():
            raise ScanCancelledError(f"Index scan cancelled at {index}")
        if derive_nullifier(master_nullifier, context, index) == note_nullifier:
            return index
    return None


def infer_withdrawal_index(
    master_nullifier: int,
    label: int,
    note_nullifier: int,
    max_scan: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
) -> Optional[int]:
    """
    Find i in [0, max_scan] with Hash3(master_nullifier, label, i) == note_nullifier.

    Raises:
        ScanCancelledError: If cancel is set during the scan
    """
    return _scan(master_nullifier, label, note_nullifier, max_scan, cancel)


def infer_deposit_index(
    master_nullifier: int,
    scope: int,
    note_nullifier: int,
    max_scan: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
) -> Optional[int]:
    """
    Find i in [0, max_scan] with Hash3(master_nullifier, scope, i) == note_nullifier.

    Raises:
        ScanCancelledError: If cancel is set during the scan
    """
    return _scan(master_nullifier, scope, note_nullifier, max_scan, cancel)


def resolve_next_withdrawal_index(
    master_nullifier: int,
    scope: int,
    label: int,
    note_nullifier: int,
    note_withdrawal_index: object = None,
    max_scan: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
) -> IndexResolution:
    """
    Resolve the index for the next change note derived from label.

    Args:
        master_nullifier: Account master nullifier
        scope: Pool scope (deposit keyspace)
        label: Note chain label (withdrawal keyspace)
        note_nullifier: Nullifier of the note being spent
        note_withdrawal_index: Raw ``withdrawalIndex`` from the note, if any
        max_scan: Inclusive scan bound (defaults to DEFAULT_MAX_SCAN)
        cancel: Optional token aborting the scans

    Returns:
        IndexResolution: Unknown resolutions carry next_index None
    """
    explicit = parse_non_negative_int(note_withdrawal_index)
    if explicit is not None:
        return IndexResolution(
            next_index=explicit + 1,
            source=IndexSource.NOTE,
            current_index=explicit,
        )
    if note_withdrawal_index is not None:
        logger.warning("Ignoring invalid withdrawal index on note: %r", note_withdrawal_index)

    current = infer_withdrawal_index(master_nullifier, label, note_nullifier, max_scan, cancel)
    if current is not None:
        logger.info("Inferred withdrawal index %d from note nullifier", current)
        return IndexResolution(
            next_index=current + 1,
            source=IndexSource.INFERRED_WITHDRAWAL,
            current_index=current,
        )

    deposit_index = infer_deposit_index(master_nullifier, scope, note_nullifier, max_scan, cancel)
    if deposit_index is not None:
        logger.info("Note is original deposit %d; first withdrawal index is 0", deposit_index)
        return IndexResolution(
            next_index=0,
            source=IndexSource.DEPOSIT,
            deposit_index=deposit_index,
        )

    logger.warning("Could not resolve withdrawal index within scan bound")
    return IndexResolution(next_index=None, source=IndexSource.UNKNOWN)
