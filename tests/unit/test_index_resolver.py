"""Tests for withdrawal index recovery."""

import threading

import pytest

from ppcore.config import reset_settings
from ppcore.core.index_resolver import (
    DEFAULT_MAX_SCAN,
    IndexSource,
    infer_deposit_index,
    infer_withdrawal_index,
    parse_non_negative_int,
    resolve_next_withdrawal_index,
)
from ppcore.core.keys import derive_deposit_keys, derive_withdrawal_keys
from ppcore.exceptions import InvalidInputError, ScanCancelledError, UnresolvableIndexError
from ppcore.utils.hash import hash1, hash2

SCAN = 16


@pytest.fixture
def deposit(master_keys, scope):
    return derive_deposit_keys(master_keys.master_nullifier, master_keys.master_secret, scope, 0)


@pytest.fixture
def label(deposit):
    return deposit.precommitment


def _withdrawal(master_keys, label, index):
    return derive_withdrawal_keys(master_keys.master_nullifier, master_keys.master_secret, label, index)


class TestParseNonNegativeInt:
    """Explicit index parsing."""

    @pytest.mark.parametrize("raw,expected", [
        (0, 0),
        (5, 5),
        ("7", 7),
        (" 12 ", 12),
        (3.0, 3),
        (2**70, 2**70),
        ("5.0", 5),
        ("1e3", 1000),
        (" 2.50e1 ", 25),
        ("+4", 4),
    ])
    def test_accepted(self, raw, expected):
        assert parse_non_negative_int(raw) == expected

    @pytest.mark.parametrize("raw", [
        None, "", "   ", -1, "-1", 1.5, "1.5", "abc", float("nan"), float("inf"), -0.5, True, False, [1], "٣",
        "1e-3", "-2.0", "NaN", "Infinity", "1e400", "1_000",
    ])
    def test_rejected(self, raw):
        assert parse_non_negative_int(raw) is None


class TestScans:
    """Bounded brute-force scans."""

    def test_infer_withdrawal(self, master_keys, label):
        note = _withdrawal(master_keys, label, 3)
        assert infer_withdrawal_index(master_keys.master_nullifier, label, note.nullifier, max_scan=SCAN) == 3

    def test_infer_deposit(self, master_keys, scope):
        note = derive_deposit_keys(master_keys.master_nullifier, master_keys.master_secret, scope, 7)
        assert infer_deposit_index(master_keys.master_nullifier, scope, note.nullifier, max_scan=SCAN) == 7

    def test_bound_is_inclusive(self, master_keys, label):
        note = _withdrawal(master_keys, label, 4)
        assert infer_withdrawal_index(master_keys.master_nullifier, label, note.nullifier, max_scan=4) == 4
        assert infer_withdrawal_index(master_keys.master_nullifier, label, note.nullifier, max_scan=3) is None

    def test_zero_bound_checks_index_zero(self, master_keys, label):
        note = _withdrawal(master_keys, label, 0)
        assert infer_withdrawal_index(master_keys.master_nullifier, label, note.nullifier, max_scan=0) == 0

    def test_negative_bound_rejected(self, master_keys, label):
        with pytest.raises(InvalidInputError):
            infer_withdrawal_index(master_keys.master_nullifier, label, 1, max_scan=-1)

    def test_default_bound_ignores_process_settings(self, master_keys, label, monkeypatch):
        monkeypatch.setenv("PPCORE_MAX_INDEX_SCAN", "2")
        reset_settings()
        note = _withdrawal(master_keys, label, 3)
        assert DEFAULT_MAX_SCAN == 4096
        assert infer_withdrawal_index(master_keys.master_nullifier, label, note.nullifier) == 3

    def test_cancel_token(self, master_keys, label):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ScanCancelledError):
            infer_withdrawal_index(master_keys.master_nullifier, label, 1, max_scan=SCAN, cancel=cancel)

    def test_unset_cancel_token_runs(self, master_keys, label):
        note = _withdrawal(master_keys, label, 2)
        cancel = threading.Event()
        assert infer_withdrawal_index(
            master_keys.master_nullifier, label, note.nullifier, max_scan=SCAN, cancel=cancel
        ) == 2


class TestResolveNextWithdrawalIndex:
    """Tiered resolution."""

    def _resolve(self, master_keys, scope, label, nullifier, explicit=None):
        return resolve_next_withdrawal_index(
            master_keys.master_nullifier, scope, label, nullifier, explicit, max_scan=SCAN
        )

    def test_tier_note(self, master_keys, scope, label, deposit):
        result = self._resolve(master_keys, scope, label, deposit.nullifier, 5)
        assert result.source == IndexSource.NOTE
        assert result.current_index == 5
        assert result.next_index == 6

    def test_tier_note_zero(self, master_keys, scope, label, deposit):
        result = self._resolve(master_keys, scope, label, deposit.nullifier, 0)
        assert result.source == IndexSource.NOTE
        assert result.next_index == 1

    def test_tier_note_string(self, master_keys, scope, label, deposit):
        assert self._resolve(master_keys, scope, label, deposit.nullifier, "4").next_index == 5

    @pytest.mark.parametrize("bad", [-1, "abc", 1.5, ""])
    def test_invalid_explicit_falls_through(self, master_keys, scope, label, deposit, bad):
        result = self._resolve(master_keys, scope, label, deposit.nullifier, bad)
        assert result.source == IndexSource.DEPOSIT
        assert result.next_index == 0

    def test_tier_inferred_withdrawal(self, master_keys, scope, label):
        note = _withdrawal(master_keys, label, 3)
        result = self._resolve(master_keys, scope, label, note.nullifier)
        assert result.source == IndexSource.INFERRED_WITHDRAWAL
        assert result.current_index == 3
        assert result.next_index == 4

    def test_tier_inferred_withdrawal_zero(self, master_keys, scope, label):
        note = _withdrawal(master_keys, label, 0)
        result = self._resolve(master_keys, scope, label, note.nullifier)
        assert result.source == IndexSource.INFERRED_WITHDRAWAL
        assert result.next_index == 1

    def test_tier_deposit(self, master_keys, scope):
        note = derive_deposit_keys(master_keys.master_nullifier, master_keys.master_secret, scope, 7)
        result = self._resolve(master_keys, scope, note.precommitment, note.nullifier)
        assert result.source == IndexSource.DEPOSIT
        assert result.deposit_index == 7
        assert result.next_index == 0
        assert result.current_index is None

    def test_unknown(self, master_keys, scope):
        result = self._resolve(master_keys, scope, hash2(1, 2), hash1(999999))
        assert result.source == IndexSource.UNKNOWN
        assert result.next_index is None
        assert not result.resolved
        with pytest.raises(UnresolvableIndexError):
            result.require_next_index()

    def test_explicit_wins_over_inferable(self, master_keys, scope, label):
        note = _withdrawal(master_keys, label, 3)
        result = self._resolve(master_keys, scope, label, note.nullifier, 10)
        assert result.source == IndexSource.NOTE
        assert result.next_index == 11

    def test_explicit_skips_scans(self, master_keys, scope, label):
        cancel = threading.Event()
        cancel.set()
        result = resolve_next_withdrawal_index(
            master_keys.master_nullifier, scope, label, 1, 2, max_scan=SCAN, cancel=cancel
        )
        assert result.require_next_index() == 3

    def test_source_values(self):
        assert IndexSource.INFERRED_WITHDRAWAL.value == "inferred-withdrawal"
        assert IndexSource.UNKNOWN == "unknown"

    def test_chain_with_explicit_indices(self, master_keys, scope, label, deposit):
        indices = []
        nullifier, explicit = deposit.nullifier, None
        for _ in range(3):
            next_index = self._resolve(master_keys, scope, label, nullifier, explicit).require_next_index()
            indices.append(next_index)
            nullifier, explicit = _withdrawal(master_keys, label, next_index).nullifier, next_index
        assert indices == [0, 1, 2]

    def test_chain_with_inference_only(self, master_keys, scope, label, deposit):
        indices = []
        nullifier = deposit.nullifier
        for _ in range(3):
            next_index = self._resolve(master_keys, scope, label, nullifier).require_next_index()
            indices.append(next_index)
            nullifier = _withdrawal(master_keys, label, next_index).nullifier
        assert indices == [0, 1, 2]
