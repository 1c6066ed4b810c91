"""Wallet orchestration: deposits, leaf sync and partial withdrawals.

``PrivacyPoolWallet`` is the explicit context object for one account in one
pool. It owns the master keys and the pool scope and threads them through
every derivation; there is no module-level wallet state.

Withdrawal Flow:
    1. Recompute the note commitment from its fields
    2. Reconcile the reported leaf index with the local leaf mirror
    3. Build the padded inclusion proof
    4. Resolve the next withdrawal index for the note's label (fail-closed)
    5. Derive change keys and the change commitment
    6. Resolve the recipient; in relay mode check the fee cap
    7. Compute the circuit context

Any step that cannot establish its result raises; nothing proceeds on a
guess. The returned plan carries the change note, which must be persisted
before the withdrawal is submitted.

Caches:
    Derived note keys are cached per instance and dropped when
    ``master_keys`` is reassigned.
    The tree is rebuilt whenever ``sync_leaves`` sees a different leaf set.
    Instances are not thread-safe; serialise resolution for the same note.
"""

import logging
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union

from ppcore.config import Settings, get_settings
from ppcore.core.commitment import Commitment
from ppcore.core.index_resolver import CancelToken, IndexResolution, resolve_next_withdrawal_index
from ppcore.core.keys import KeyMaterial, MasterKeyPair, NoteKeys, derive_deposit_keys, derive_master_keys, derive_withdrawal_keys
from ppcore.core.merkle_tree import MerkleProof, MerkleTree
from ppcore.core.policy import FeeCheck, compute_withdrawal_context, resolve_recipient, validate_relay_fee
from ppcore.core.reconciler import LeafSource, resolve_leaf_index
from ppcore.exceptions import InvalidInputError
from ppcore.models.notes import DEFAULT_ASSET, ChangeNote, NoteRecord
from ppcore.utils.encoding import ensure_field_element, field_to_hex

logger = logging.getLogger(__name__)


class WithdrawalPlan:
    """Everything the transaction builder and prover need for one withdrawal."""

    def __init__(
        self,
        commitment: int,
        leaf_index: int,
        leaf_source: LeafSource,
        proof: MerkleProof,
        index_resolution: IndexResolution,
        change_note: ChangeNote,
        recipient: str,
        context: int,
        withdrawn_value: int,
        relay_mode: bool,
        fee_check: Optional[FeeCheck] = None,
    ):
        self.commitment = commitment
        self.leaf_index = leaf_index
        self.leaf_source = leaf_source
        self.proof = proof
        self.index_resolution = index_resolution
        self.change_note = change_note
        self.recipient = recipient
        self.context = context
        self.withdrawn_value = withdrawn_value
        self.relay_mode = relay_mode
        self.fee_check = fee_check

    def to_dict(self) -> dict:
        """Convert to dictionary (secrets excluded; see ``change_note``)."""
        return {
            "commitment": field_to_hex(self.commitment),
            "leaf_index": self.leaf_index,
            "leaf_source": self.leaf_source.value,
            "proof": self.proof.to_dict(),
            "index_source": self.index_resolution.source.value,
            "change_withdrawal_index": self.change_note.withdrawal_index,
            "change_commitment": field_to_hex(self.change_note.commitment),
            "change_value": str(self.change_note.value),
            "withdrawn_value": str(self.withdrawn_value),
            "recipient": self.recipient,
            "context": str(self.context),
            "relay_mode": self.relay_mode,
        }


class PrivacyPoolWallet:
    """
    Account context for one privacy pool.

    Example:
        >>> wallet = PrivacyPoolWallet.from_key_material(key0, key1, scope)
        >>> note = wallet.deposit_note(value=10**18, label=label, index=0, leaf_index=0)
        >>> plan = wallet.prepare_withdrawal(note, 4 * 10**17, leaves, connected_address=addr)
        >>> plan.change_note.withdrawal_index
        0
    """

    def __init__(self, master_keys: MasterKeyPair, scope: int, settings: Optional[Settings] = None):
        """
        Initialize wallet context.

        Args:
            master_keys: Account master key pair
            scope: Pool scope (field element)
            settings: Optional settings; defaults to process settings

        Raises:
            InvalidInputError: If scope is not a field element
        """
        self.scope = ensure_field_element(scope, "scope")
        self.settings = settings or get_settings()

        self._deposit_keys: Dict[int, NoteKeys] = {}
        self._withdrawal_keys: Dict[Tuple[int, int], NoteKeys] = {}
        self.master_keys = master_keys
        self._leaves: Tuple[int, ...] = ()
        self._tree = MerkleTree(max_depth=self.settings.tree_depth)

    @classmethod
    def from_key_material(
        cls,
        nullifier_key_material: KeyMaterial,
        secret_key_material: KeyMaterial,
        scope: int,
        settings: Optional[Settings] = None,
    ) -> "PrivacyPoolWallet":
        """Build a wallet from the two raw HD account keys."""
        return cls(derive_master_keys(nullifier_key_material, secret_key_material), scope, settings)

    # Key derivation

    @property
    def master_keys(self) -> MasterKeyPair:
        return self._master_keys

    @master_keys.setter
    def master_keys(self, master_keys: MasterKeyPair) -> None:
        """Switch accounts; every cached note key belongs to the old pair."""
        self._master_keys = master_keys
        self._deposit_keys.clear()
        self._withdrawal_keys.clear()

    def deposit_keys(self, index: int) -> NoteKeys:
        """Keys for the index-th deposit of this account into the pool."""
        keys = self._deposit_keys.get(index)
        if keys is None:
            keys = derive_deposit_keys(
                self.master_keys.master_nullifier, self.master_keys.master_secret, self.scope, index
            )
            self._deposit_keys[index] = keys
        return keys

    def withdrawal_keys(self, label: int, index: int) -> NoteKeys:
        """Keys for the index-th change note of the chain bound to label."""
        cache_key = (label, index)
        keys = self._withdrawal_keys.get(cache_key)
        if keys is None:
            keys = derive_withdrawal_keys(
                self.master_keys.master_nullifier, self.master_keys.master_secret, label, index
            )
            self._withdrawal_keys[cache_key] = keys
        return keys

    def deposit_commitment(self, value: int, label: int, index: int) -> Tuple[NoteKeys, int]:
        """Deposit keys and the commitment the pool will insert for them."""
        keys = self.deposit_keys(index)
        return keys, Commitment.compute_commitment(value, label, keys.precommitment)

    def deposit_note(
        self,
        value: int,
        label: int,
        index: int,
        leaf_index: Optional[int] = None,
        asset: str = DEFAULT_ASSET,
    ) -> NoteRecord:
        """
        Note record for a deposit once the pool has assigned its label.

        Deposit notes carry no withdrawal index; resolution identifies them
        by their nullifier.
        """
        keys, commitment = self.deposit_commitment(value, label, index)
        return NoteRecord(
            nullifier=keys.nullifier,
            secret=keys.secret,
            value=value,
            label=label,
            leaf_index=leaf_index,
            commitment=commitment,
            asset=asset,
        )

    # Tree mirror

    @property
    def tree(self) -> MerkleTree:
        return self._tree

    def sync_leaves(self, leaves: Iterable[int]) -> MerkleTree:
        """
        Mirror the pool's leaf sequence.

        The tree is rebuilt only when the sequence differs from the last sync.
        """
        snapshot = tuple(leaves)
        if snapshot != self._leaves:
            self._tree = MerkleTree(snapshot, max_depth=self.settings.tree_depth)
            self._leaves = snapshot
            logger.info("Synced %d leaves, root %s", len(snapshot), field_to_hex(self._tree.root))
        return self._tree

    # Withdrawal

    def resolve_next_index(self, note: NoteRecord, cancel: Optional[CancelToken] = None) -> IndexResolution:
        """Next withdrawal index for a change note split from note."""
        return resolve_next_withdrawal_index(
            master_nullifier=self.master_keys.master_nullifier,
            scope=self.scope,
            label=note.label,
            note_nullifier=note.nullifier,
            note_withdrawal_index=note.withdrawal_index,
            max_scan=self.settings.max_index_scan,
            cancel=cancel,
        )

    def prepare_withdrawal(
        self,
        note: NoteRecord,
        amount: int,
        leaves: Optional[Sequence[int]] = None,
        reported_leaf_index: Optional[int] = None,
        relay_mode: bool = False,
        custom_recipient: Optional[str] = None,
        connected_address: Optional[str] = None,
        entrypoint: Optional[str] = None,
        relay_data: Union[bytes, str] = b"",
        quoted_fee_bps: Optional[Union[int, float]] = None,
        max_relay_fee_bps: object = None,
        cancel: Optional[CancelToken] = None,
    ) -> WithdrawalPlan:
        """
        Plan a (partial) withdrawal from note.

        Args:
            note: Note being spent
            amount: Value to withdraw; the rest becomes the change note
            leaves: Current pool leaves (defaults to the last synced set)
            reported_leaf_index: Index from the event source (defaults to
                the note's own leaf index)
            relay_mode: Submit through a relayer
            custom_recipient: Recipient typed by the user
            connected_address: Connected wallet address
            entrypoint: Pool entrypoint address (relay mode)
            relay_data: Encoded relay payload (relay mode)
            quoted_fee_bps: Relayer's quoted fee (relay mode)
            max_relay_fee_bps: Pool's maximum relay fee (relay mode)
            cancel: Optional token aborting index recovery scans

        Returns:
            WithdrawalPlan: Proof inputs and the change note to persist

        Raises:
            InvalidInputError: Bad amount, inconsistent note or missing
                leaf index or entrypoint
            ReconciliationError: Leaf index does not locate the commitment
            UnresolvableIndexError: Withdrawal index cannot be recovered
            ScanCancelledError: Index recovery was cancelled
            PolicyRejectedError: Recipient or relay fee rejected
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidInputError(f"Withdrawal amount must be a positive integer, got {amount!r}")
        if amount > note.value:
            raise InvalidInputError("Withdrawal amount exceeds note value")

        commitment = note.compute_commitment()
        if note.commitment is not None and note.commitment != commitment:
            raise InvalidInputError("Stored commitment does not match the note's fields")

        snapshot = tuple(leaves) if leaves is not None else self._leaves
        reported = reported_leaf_index if reported_leaf_index is not None else note.leaf_index
        if reported is None:
            raise InvalidInputError("Leaf index of the note is unknown")

        # Raw mirror first; the tree rejects zero placeholders
        leaf = resolve_leaf_index(reported, snapshot, commitment)
        leaf_index = leaf.require()
        proof = self.sync_leaves(snapshot).prove(leaf_index)

        resolution = self.resolve_next_index(note, cancel=cancel)
        change_index = resolution.require_next_index()
        logger.info("Change note index %d (source: %s)", change_index, resolution.source.value)

        change_keys = self.withdrawal_keys(note.label, change_index)
        change_value = note.value - amount
        change_commitment = Commitment.compute_commitment(change_value, note.label, change_keys.precommitment)

        recipient = resolve_recipient(relay_mode, custom_recipient, connected_address).raise_for_rejection()

        fee_check = None
        if relay_mode:
            fee_check = validate_relay_fee(quoted_fee_bps, max_relay_fee_bps)
            fee_check.raise_for_rejection()
            if not entrypoint:
                raise InvalidInputError("Relay withdrawals need the pool entrypoint address")
            context = compute_withdrawal_context(entrypoint, relay_data, self.scope)
        else:
            context = compute_withdrawal_context(recipient, b"", self.scope)

        change_note = ChangeNote(
            nullifier=change_keys.nullifier,
            secret=change_keys.secret,
            value=change_value,
            label=note.label,
            withdrawal_index=change_index,
            commitment=change_commitment,
            asset=note.asset,
        )

        return WithdrawalPlan(
            commitment=commitment,
            leaf_index=leaf_index,
            leaf_source=leaf.source,
            proof=proof,
            index_resolution=resolution,
            change_note=change_note,
            recipient=recipient,
            context=context,
            withdrawn_value=amount,
            relay_mode=relay_mode,
            fee_check=fee_check,
        )
