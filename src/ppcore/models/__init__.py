"""Note data models."""

from ppcore.models.notes import AssetInfo, ChangeNote, NoteRecord, normalize_asset

__all__ = [
    "AssetInfo",
    "ChangeNote",
    "NoteRecord",
    "normalize_asset",
]
