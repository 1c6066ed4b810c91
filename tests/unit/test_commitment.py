"""Tests for commitment computation."""

import pytest

from ppcore.core.commitment import Commitment, compute_commitment, verify_commitment
from ppcore.core.keys import derive_deposit_keys, derive_withdrawal_keys
from ppcore.crypto.poseidon import SNARK_SCALAR_FIELD
from ppcore.exceptions import InvalidInputError
from ppcore.utils.hash import hash2, hash3


@pytest.fixture
def deposit_keys(master_keys, scope):
    return derive_deposit_keys(master_keys.master_nullifier, master_keys.master_secret, scope, 0)


class TestCommitmentFormula:
    """C = Hash3(value, label, precommitment)."""

    def test_formula(self):
        assert compute_commitment(1000, 7, 9) == hash3(1000, 7, 9)

    def test_precommitment(self):
        assert Commitment.compute_precommitment(3, 4) == hash2(3, 4)

    def test_realistic_deposit_to_withdrawal(self, master_keys, deposit_keys):
        label = deposit_keys.precommitment
        change = derive_withdrawal_keys(master_keys.master_nullifier, master_keys.master_secret, label, 0)
        commitment = compute_commitment(600, label, change.precommitment)
        assert commitment == hash3(600, label, change.precommitment)
        assert commitment != compute_commitment(600, label, deposit_keys.precommitment)

    def test_value_changes_commitment(self, deposit_keys):
        assert compute_commitment(1, 5, deposit_keys.precommitment) != compute_commitment(2, 5, deposit_keys.precommitment)

    def test_label_changes_commitment(self, deposit_keys):
        assert compute_commitment(1, 5, deposit_keys.precommitment) != compute_commitment(1, 6, deposit_keys.precommitment)

    def test_precommitment_changes_commitment(self):
        assert compute_commitment(1, 5, 10) != compute_commitment(1, 5, 11)

    def test_zero_value_allowed(self):
        assert 0 < compute_commitment(0, 5, 10) < SNARK_SCALAR_FIELD

    def test_rejects_out_of_field_value(self):
        with pytest.raises(InvalidInputError):
            compute_commitment(SNARK_SCALAR_FIELD, 5, 10)


class TestCommitmentVerification:
    """verify_commitment never raises."""

    def test_valid(self):
        assert verify_commitment(10, 20, 30, hash3(10, 20, 30))

    def test_wrong_expected(self):
        assert not verify_commitment(10, 20, 30, hash3(10, 20, 31))

    def test_malformed_input_is_false(self):
        assert not verify_commitment(-1, 20, 30, 0)
