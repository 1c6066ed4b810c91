"""Property-based tests using Hypothesis for wallet invariants."""

from hypothesis import HealthCheck, given, settings, strategies as st

from ppcore.core.index_resolver import parse_non_negative_int
from ppcore.core.keys import derive_deposit_keys, derive_withdrawal_keys, truncate_hd_key
from ppcore.core.merkle_tree import CIRCUIT_DEPTH, MerkleTree
from ppcore.core.policy import validate_relay_fee
from ppcore.core.reconciler import LeafSource, resolve_leaf_index
from ppcore.crypto.poseidon import SNARK_SCALAR_FIELD
from ppcore.utils.hash import hash1, hash2

field_elements = st.integers(min_value=0, max_value=SNARK_SCALAR_FIELD - 1)
leaf_values = st.integers(min_value=1, max_value=SNARK_SCALAR_FIELD - 1)

# conftest applies a function-scoped autouse fixture
SUPPRESSED = [HealthCheck.too_slow, HealthCheck.function_scoped_fixture]

MASTER_NULLIFIER = hash1(42)
MASTER_SECRET = hash1(43)


class TestMerkleProperties:
    """Accumulator invariants."""

    @given(st.data())
    @settings(max_examples=25, deadline=None, suppress_health_check=SUPPRESSED)
    def test_every_proof_recomputes_root(self, data):
        leaves = data.draw(st.lists(leaf_values, min_size=1, max_size=40))
        index = data.draw(st.integers(min_value=0, max_value=len(leaves) - 1))
        tree = MerkleTree(leaves)
        proof = tree.prove(index)
        assert len(proof.siblings) == CIRCUIT_DEPTH
        assert proof.compute_root() == tree.root

    @given(st.lists(leaf_values, min_size=1, max_size=30))
    @settings(max_examples=20, deadline=None, suppress_health_check=SUPPRESSED)
    def test_incremental_equals_batch(self, leaves):
        tree = MerkleTree()
        tree.insert_many(leaves)
        assert tree.root == MerkleTree(leaves).root


class TestDerivationProperties:
    """Note key invariants."""

    @given(field_elements, st.integers(min_value=0, max_value=10**6))
    @settings(max_examples=20, deadline=None, suppress_health_check=SUPPRESSED)
    def test_precommitment_binds_pair(self, context, index):
        keys = derive_deposit_keys(MASTER_NULLIFIER, MASTER_SECRET, context, index)
        assert keys.precommitment == hash2(keys.nullifier, keys.secret)
        assert 0 < keys.nullifier < SNARK_SCALAR_FIELD

    @given(field_elements, field_elements)
    @settings(max_examples=20, deadline=None, suppress_health_check=SUPPRESSED)
    def test_distinct_contexts_distinct_keys(self, scope, label):
        deposit = derive_deposit_keys(MASTER_NULLIFIER, MASTER_SECRET, scope, 0)
        withdrawal = derive_withdrawal_keys(MASTER_NULLIFIER, MASTER_SECRET, label, 0)
        assert (deposit == withdrawal) == (scope == label)

    @given(st.integers(min_value=0, max_value=2**256 - 1))
    @settings(suppress_health_check=SUPPRESSED)
    def test_truncation_matches_double(self, raw):
        truncated = truncate_hd_key(raw)
        assert truncated == int(float(raw))
        assert float(truncated) == float(raw)


class TestParsingAndPolicyProperties:
    """Index parsing and fee cap."""

    @given(st.integers(min_value=0))
    @settings(suppress_health_check=SUPPRESSED)
    def test_decimal_strings_parse(self, value):
        assert parse_non_negative_int(str(value)) == value
        assert parse_non_negative_int(value) == value

    @given(st.integers(max_value=-1))
    @settings(suppress_health_check=SUPPRESSED)
    def test_negatives_rejected(self, value):
        assert parse_non_negative_int(value) is None
        assert parse_non_negative_int(str(value)) is None

    @given(st.integers(min_value=0, max_value=10_000), st.integers(min_value=0, max_value=10_000))
    @settings(suppress_health_check=SUPPRESSED)
    def test_fee_valid_iff_within_cap(self, fee, cap):
        assert validate_relay_fee(fee, cap).valid is (fee <= cap)

    @given(st.lists(leaf_values, min_size=1, max_size=20), st.data())
    @settings(suppress_health_check=SUPPRESSED)
    def test_exact_match_always_wins(self, leaves, data):
        index = data.draw(st.integers(min_value=0, max_value=len(leaves) - 1))
        result = resolve_leaf_index(index, leaves, leaves[index])
        assert result.index == index
        assert result.source == LeafSource.ZERO_BASED
