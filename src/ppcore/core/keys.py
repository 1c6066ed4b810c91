"""Master and per-note key derivation.

A wallet holds one master key pair per account. Every note is derived from
it deterministically, so a lost note can always be re-derived from the
master keys plus its context (scope or label) and index:

    nullifier     = Hash3(master_nullifier, context, index)
    secret        = Hash3(master_secret,    context, index)
    precommitment = Hash2(nullifier, secret)

Deposit notes use the pool scope as context; withdrawal (change) notes use
the note chain's label. The two keyspaces are separated only by those values
never colliding; the derivation adds no domain tag of its own.
"""

import logging
from dataclasses import dataclass
from typing import Union

from ppcore.crypto.poseidon import SNARK_SCALAR_FIELD
from ppcore.exceptions import InvalidInputError
from ppcore.utils.encoding import ensure_field_element, parse_big_int
from ppcore.utils.hash import hash1, hash2, hash3

logger = logging.getLogger(__name__)

KeyMaterial = Union[int, str, bytes]


@dataclass(frozen=True)
class MasterKeyPair:
    """Account-level master keys. Never persisted outside wallet storage."""

    master_nullifier: int
    master_secret: int

    def __repr__(self) -> str:
        return "MasterKeyPair(<redacted>)"


@dataclass(frozen=True)
class NoteKeys:
    """Per-note key triple."""

    nullifier: int
    secret: int
    precommitment: int

    def __repr__(self) -> str:
        return f"NoteKeys(precommitment={self.precommitment})"


def truncate_hd_key(key_material: KeyMaterial) -> int:
    """
    Reduce raw HD key material to the precision of an IEEE-754 double.

    The wallet SDK this derivation stays compatible with converts the
    256-bit private key to a JavaScript ``Number`` before hashing, keeping
    only 53 significant bits (round half to even). ``float()`` performs the
    identical rounding, so the result matches bit for bit.

    Args:
        key_material: Private key as int, 0x-hex string or big-endian bytes

    Returns:
        int: Truncated key (may exceed the field; reduce before hashing)

    Raises:
        InvalidInputError: If the material is missing, empty or malformed,
            or too large to be represented as a double
    """
    if key_material is None:
        raise InvalidInputError("HD key material is missing")

    raw = parse_big_int(key_material)
    try:
        return int(float(raw))
    except OverflowError:
        raise InvalidInputError("HD key material exceeds double range") from None


def derive_master_keys(
    nullifier_key_material: KeyMaterial,
    secret_key_material: KeyMaterial,
) -> MasterKeyPair:
    """
    Derive the account master key pair.

    The two inputs are the private keys of two HD accounts (account 0 feeds
    the master nullifier, account 1 the master secret). Each is truncated
    independently, reduced into the field and hashed with Hash1.

    Args:
        nullifier_key_material: Raw key for the master nullifier
        secret_key_material: Raw key for the master secret

    Returns:
        MasterKeyPair: Deterministic for fixed inputs

    Raises:
        InvalidInputError: If either key material is missing or malformed
    """
    master_nullifier = hash1(truncate_hd_key(nullifier_key_material) % SNARK_SCALAR_FIELD)
    master_secret = hash1(truncate_hd_key(secret_key_material) % SNARK_SCALAR_FIELD)
    return MasterKeyPair(master_nullifier=master_nullifier, master_secret=master_secret)


def _derive_note_keys(master_nullifier: int, master_secret: int, context: int, index: int) -> NoteKeys:
    ensure_field_element(master_nullifier, "master_nullifier")
    ensure_field_element(master_secret, "master_secret")
    ensure_field_element(context, "context")
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise InvalidInputError(f"index must be a non-negative integer, got {index!r}")
    ensure_field_element(index, "index")

    nullifier = hash3(master_nullifier, context, index)
    secret = hash3(master_secret, context, index)
    return NoteKeys(nullifier=nullifier, secret=secret, precommitment=hash2(nullifier, secret))


def derive_deposit_keys(master_nullifier: int, master_secret: int, scope: int, index: int) -> NoteKeys:
    """
    Derive keys for the index-th deposit into the pool identified by scope.

    Args:
        master_nullifier: Account master nullifier
        master_secret: Account master secret
        scope: Pool identifier (field element)
        index: Deposit counter, starting at 0

    Returns:
        NoteKeys: (nullifier, secret, precommitment)
    """
    return _derive_note_keys(master_nullifier, master_secret, scope, index)


def derive_withdrawal_keys(master_nullifier: int, master_secret: int, label: int, index: int) -> NoteKeys:
    """
    Derive keys for the index-th change note of the chain bound to label.

    Args:
        master_nullifier: Account master nullifier
        master_secret: Account master secret
        label: Note chain label (field element)
        index: Withdrawal counter within the chain, starting at 0

    Returns:
        NoteKeys: (nullifier, secret, precommitment)
    """
    return _derive_note_keys(master_nullifier, master_secret, label, index)


def derive_nullifier(master_nullifier: int, context: int, index: int) -> int:
    """Nullifier half of the derivation; used by index recovery scans."""
    return hash3(master_nullifier, context, index)
