"""Feature flag lookups."""
from __future__ import annotations

from dataclasses import fields
from typing import Dict

from .config import FeatureFlags

# Flag keys as the browser bundle names them.
_CAMEL_CASE_ALIASES: Dict[str, str] = {
    "messageReadReceipts": "message_read_receipts",
    "messageThreading": "message_threading",
    "batchReadMarking": "batch_read_marking",
    "readReceiptsInGroupsOnly": "read_receipts_in_groups_only",
}

FEATURE_NAMES = tuple(item.name for item in fields(FeatureFlags))


def use_feature(flags: FeatureFlags, name: str) -> bool:
    """Return the value of ``name``; unknown flags are simply disabled."""

    key = _CAMEL_CASE_ALIASES.get(name, name)
    if key not in FEATURE_NAMES:
        return False
    return bool(getattr(flags, key, False))


def enabled_features(flags: FeatureFlags) -> Dict[str, bool]:
    return {name: use_feature(flags, name) for name in FEATURE_NAMES}


__all__ = ["FEATURE_NAMES", "enabled_features", "use_feature"]
