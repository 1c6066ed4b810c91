"""Withdrawal policy checks: relay fee cap, recipient choice, circuit context.

Every check returns a result object carrying a machine-readable reason so the
caller can decide what to show; ``raise_for_rejection()`` turns a rejection
into ``PolicyRejectedError``. Nothing here falls back to a default when data
is missing.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from eth_abi import encode
from eth_utils import is_hex_address, keccak, to_checksum_address

from ppcore.crypto.poseidon import SNARK_SCALAR_FIELD
from ppcore.exceptions import InvalidInputError, PolicyRejectedError
from ppcore.utils.encoding import ensure_field_element, is_finite_number

logger = logging.getLogger(__name__)

Number = Union[int, float]

# Fee reasons
INVALID_FEE = "invalid-fee"
NO_ONCHAIN_MAX = "no-onchain-max"
INVALID_ONCHAIN_MAX = "invalid-onchain-max"
EXCEEDS_MAX = "exceeds-max"

# Recipient reasons
DIRECT_MODE_RECIPIENT_MISMATCH = "direct-mode-recipient-mismatch"
NO_WALLET = "no-wallet"
INVALID_ADDRESS = "invalid-address"
NO_RECIPIENT_OR_WALLET = "no-recipient-or-wallet"

_FEE_MESSAGES = {
    INVALID_FEE: "Relayer quoted an invalid fee",
    NO_ONCHAIN_MAX: "Pool maximum relay fee is unavailable",
    INVALID_ONCHAIN_MAX: "Pool maximum relay fee is invalid",
    EXCEEDS_MAX: "Relayer fee exceeds the pool maximum",
}

_RECIPIENT_MESSAGES = {
    DIRECT_MODE_RECIPIENT_MISMATCH: "Direct withdrawals must go to the connected wallet",
    NO_WALLET: "No wallet connected",
    INVALID_ADDRESS: "Recipient is not a valid address",
    NO_RECIPIENT_OR_WALLET: "No recipient given and no wallet connected",
}


@dataclass(frozen=True)
class FeeCheck:
    """Outcome of the relay fee check."""

    valid: bool
    reason: Optional[str] = None
    quoted_fee_bps: Optional[Number] = None
    max_relay_fee_bps: Optional[Number] = None

    def raise_for_rejection(self) -> None:
        if not self.valid:
            raise PolicyRejectedError(self.reason, _FEE_MESSAGES.get(self.reason, ""))


@dataclass(frozen=True)
class RecipientResolution:
    """Outcome of recipient resolution."""

    recipient: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_rejection(self) -> str:
        """Return the recipient or raise PolicyRejectedError."""
        if self.error is not None:
            raise PolicyRejectedError(self.error, _RECIPIENT_MESSAGES.get(self.error, ""))
        return self.recipient


def _parse_onchain_max(raw: object) -> Optional[Number]:
    """Numeric value of the on-chain cap, or None when it is not a finite number."""
    if isinstance(raw, str):
        try:
            parsed = Decimal(raw.strip())
        except InvalidOperation:
            return None
        if not parsed.is_finite():
            return None
        return int(parsed) if parsed == parsed.to_integral_value() else float(parsed)
    if is_finite_number(raw):
        return raw
    return None


def validate_relay_fee(quoted_fee_bps: object, max_relay_fee_bps: object) -> FeeCheck:
    """
    Check a relayer's quoted fee against the pool's configured maximum.

    Args:
        quoted_fee_bps: Fee quoted by the relayer, in basis points
        max_relay_fee_bps: Pool maximum as read on chain (int, float or
            numeric string); None when it could not be read

    Returns:
        FeeCheck: valid when 0 <= quoted <= max; a fee equal to the cap passes
    """
    if not is_finite_number(quoted_fee_bps) or quoted_fee_bps < 0:
        return FeeCheck(valid=False, reason=INVALID_FEE)

    if max_relay_fee_bps is None:
        return FeeCheck(valid=False, reason=NO_ONCHAIN_MAX)

    max_fee = _parse_onchain_max(max_relay_fee_bps)
    if max_fee is None or max_fee < 0:
        return FeeCheck(valid=False, reason=INVALID_ONCHAIN_MAX)

    if quoted_fee_bps > max_fee:
        logger.warning("Relay fee %s bps exceeds pool maximum %s bps", quoted_fee_bps, max_fee)
        return FeeCheck(
            valid=False,
            reason=EXCEEDS_MAX,
            quoted_fee_bps=quoted_fee_bps,
            max_relay_fee_bps=max_fee,
        )

    return FeeCheck(valid=True, quoted_fee_bps=quoted_fee_bps, max_relay_fee_bps=max_fee)


def is_valid_address(address: object) -> bool:
    """0x-prefixed, 40 hex digits; any letter case."""
    return isinstance(address, str) and address.startswith("0x") and is_hex_address(address)


def resolve_recipient(
    relay_mode: bool,
    custom_recipient: Optional[str],
    connected_address: Optional[str],
) -> RecipientResolution:
    """
    Decide where withdrawn funds go.

    Direct mode always pays the connected account; a custom recipient is only
    tolerated when it is that same account (case-insensitive). Relay mode
    prefers a valid custom recipient and falls back to the connected account.

    Args:
        relay_mode: True when a relayer submits the withdrawal
        custom_recipient: Address typed by the user, may be empty
        connected_address: Address of the connected wallet, if any

    Returns:
        RecipientResolution: Checksummed recipient or an error reason
    """
    if relay_mode:
        if custom_recipient and not is_valid_address(custom_recipient):
            return RecipientResolution(error=INVALID_ADDRESS)
        recipient = custom_recipient or connected_address
        if not recipient:
            return RecipientResolution(error=NO_RECIPIENT_OR_WALLET)
    else:
        if custom_recipient and custom_recipient.lower() != (connected_address or "").lower():
            return RecipientResolution(error=DIRECT_MODE_RECIPIENT_MISMATCH)
        recipient = connected_address
        if not recipient:
            return RecipientResolution(error=NO_WALLET)

    if is_valid_address(recipient):
        recipient = to_checksum_address(recipient)
    return RecipientResolution(recipient=recipient)


def compute_withdrawal_context(processooor: str, data: Union[bytes, str], scope: int) -> int:
    """
    Circuit context for a withdrawal.

    context = keccak256(abi.encode((processooor, data), scope)) mod FIELD.
    Relay withdrawals use the entrypoint as processooor and the relay payload
    as data; direct withdrawals use the recipient and empty data.

    Raises:
        InvalidInputError: If the address, data or scope is malformed
    """
    if not is_valid_address(processooor):
        raise InvalidInputError(f"Invalid processooor address: {processooor!r}")
    ensure_field_element(scope, "scope")

    if isinstance(data, str):
        text = data[2:] if data.startswith(("0x", "0X")) else data
        try:
            data = bytes.fromhex(text)
        except ValueError:
            raise InvalidInputError("Withdrawal data is not valid hex") from None
    elif not isinstance(data, (bytes, bytearray)):
        raise InvalidInputError(f"Withdrawal data must be bytes or hex, got {type(data).__name__}")

    encoded = encode(["(address,bytes)", "uint256"], [(to_checksum_address(processooor), bytes(data)), scope])
    return int.from_bytes(keccak(encoded), "big") % SNARK_SCALAR_FIELD
