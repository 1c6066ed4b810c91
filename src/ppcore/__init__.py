"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "Privacy Pool Wallet Team"
__description__ = "Privacy-pool wallet core: note keys, commitments and withdrawal safety checks"

from .core.keys import MasterKeyPair, NoteKeys, derive_master_keys, derive_deposit_keys, derive_withdrawal_keys
from .core.commitment import Commitment
from .core.merkle_tree import MerkleTree, MerkleProof
from .core.index_resolver import IndexResolution, IndexSource, resolve_next_withdrawal_index
from .core.reconciler import LeafResolution, resolve_leaf_index
from .core.policy import FeeCheck, RecipientResolution, validate_relay_fee, resolve_recipient
from .core.wallet import PrivacyPoolWallet, WithdrawalPlan

__all__ = [
    "MasterKeyPair",
    "NoteKeys",
    "derive_master_keys",
    "derive_deposit_keys",
    "derive_withdrawal_keys",
    "Commitment",
    "MerkleTree",
    "MerkleProof",
    "IndexResolution",
    "IndexSource",
    "resolve_next_withdrawal_index",
    "LeafResolution",
    "resolve_leaf_index",
    "FeeCheck",
    "RecipientResolution",
    "validate_relay_fee",
    "resolve_recipient",
    "PrivacyPoolWallet",
    "WithdrawalPlan",
]
