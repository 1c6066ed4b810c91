"""Pydantic models for stored and exported notes.

A note is everything needed to spend a pool deposit or change output later.
Losing ``nullifier`` or ``secret`` makes the funds unspendable, so both are
kept at full field width and exported as 32-byte hex. ``value`` is kept as
an arbitrary-precision integer and exported as a decimal string.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ppcore.core.commitment import Commitment
from ppcore.core.index_resolver import parse_non_negative_int
from ppcore.exceptions import InvalidInputError
from ppcore.utils.encoding import field_to_hex, parse_field_element

logger = logging.getLogger(__name__)

DEFAULT_ASSET = "ETH"

# Upper-cased spelling -> canonical symbol
KNOWN_ASSETS = {
    "ETH": "ETH",
    "BOLD": "BOLD",
    "WSTETH": "wstETH",
}


class AssetInfo(BaseModel):
    """Result of asset normalisation."""
    asset: str
    recognized: bool
    raw: str


def normalize_asset(raw: Optional[str]) -> AssetInfo:
    """
    Normalise an asset symbol from a note.

    Matching is case-insensitive after trimming. Missing or empty values mean
    ETH. Unknown symbols, whitespace-only input included, also map to ETH but
    are flagged as unrecognised so the caller can warn before spending.

    Args:
        raw: Asset field as found in the note

    Returns:
        AssetInfo: Canonical symbol, recognition flag and trimmed input
    """
    text = (raw or DEFAULT_ASSET).strip()
    canonical = KNOWN_ASSETS.get(text.upper())
    if canonical is None:
        return AssetInfo(asset=DEFAULT_ASSET, recognized=False, raw=text)
    return AssetInfo(asset=canonical, recognized=True, raw=text)


def _parse_field(value: Any, name: str) -> int:
    try:
        return parse_field_element(value, name)
    except InvalidInputError as exc:
        raise ValueError(str(exc)) from None


class NoteRecord(BaseModel):
    """A spendable note as held by the wallet."""
    nullifier: int = Field(..., description="Note nullifier (field element)")
    secret: int = Field(..., description="Note secret (field element)")
    value: int = Field(..., ge=0, description="Value in base units")
    label: int = Field(..., description="Note chain label (field element)")
    withdrawal_index: Optional[int] = Field(None, alias="withdrawalIndex")
    leaf_index: Optional[int] = Field(None, alias="leafIndex")
    commitment: Optional[int] = None
    asset: str = DEFAULT_ASSET
    spent: bool = False

    class Config:
        from_attributes = True
        populate_by_name = True

    @field_validator("nullifier", "secret", "label", "commitment", mode="before")
    @classmethod
    def parse_field_elements(cls, value, info):
        if value is None and info.field_name == "commitment":
            return None
        return _parse_field(value, info.field_name)

    @field_validator("value", mode="before")
    @classmethod
    def parse_value(cls, value):
        # value enters the commitment hash, so it must fit the field too
        return _parse_field(value, "value")

    @field_validator("withdrawal_index", mode="before")
    @classmethod
    def parse_withdrawal_index(cls, value):
        parsed = parse_non_negative_int(value)
        if parsed is None and value is not None:
            # Resolution falls through to nullifier inference
            logger.warning("Dropping invalid withdrawalIndex %r from note", value)
        return parsed

    @field_validator("leaf_index", mode="before")
    @classmethod
    def parse_leaf_index(cls, value):
        if value is None:
            return None
        parsed = parse_non_negative_int(value)
        if parsed is None:
            raise ValueError(f"leafIndex must be a non-negative integer, got {value!r}")
        return parsed

    @field_validator("asset", mode="before")
    @classmethod
    def normalize_asset_symbol(cls, value):
        info = normalize_asset(value)
        if not info.recognized:
            logger.warning("Unrecognized note asset %r, treating as %s", info.raw, info.asset)
        return info.asset

    @property
    def precommitment(self) -> int:
        return Commitment.compute_precommitment(self.nullifier, self.secret)

    def compute_commitment(self) -> int:
        """Commitment recomputed from the note's own fields."""
        return Commitment.compute_commitment(self.value, self.label, self.precommitment)

    def to_json_dict(self) -> Dict[str, Any]:
        """
        Export in the wallet's note file format.

        Returns:
            dict: JSON-ready mapping; ``asset`` is omitted for ETH notes and
            ``withdrawalIndex`` when it is unknown
        """
        data: Dict[str, Any] = {
            "nullifier": field_to_hex(self.nullifier),
            "secret": field_to_hex(self.secret),
            "value": str(self.value),
            "label": field_to_hex(self.label),
        }
        if self.withdrawal_index is not None:
            data["withdrawalIndex"] = self.withdrawal_index
        data["leafIndex"] = self.leaf_index
        data["commitment"] = field_to_hex(self.commitment) if self.commitment is not None else None
        if self.asset != DEFAULT_ASSET:
            data["asset"] = self.asset
        return data

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "NoteRecord":
        """Parse a note exported by ``to_json_dict`` or by another wallet."""
        return cls.model_validate(data)


class ChangeNote(NoteRecord):
    """Change output of a partial withdrawal; its index is always known."""
    withdrawal_index: int = Field(..., ge=0, alias="withdrawalIndex")

    @field_validator("withdrawal_index", mode="before")
    @classmethod
    def parse_withdrawal_index(cls, value):
        parsed = parse_non_negative_int(value)
        if parsed is None:
            raise ValueError(f"withdrawalIndex must be a non-negative integer, got {value!r}")
        return parsed
