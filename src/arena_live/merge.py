"""
Deep merge of partial server updates onto held state.

Duel and mission updates only carry the fields that changed. Nested dicts are
merged key by key; lists of entries that carry an identity key (``userId`` or
``id``) are merged entry by entry so that an update for one participant does
not drop the others. Any other value in the patch replaces the held one.
"""

from typing import Any, Dict, List, Optional, Sequence

IDENTITY_KEYS = ("userId", "id")


def _identity_key(base: List[Any], patch: List[Any], keys: Sequence[str]) -> Optional[str]:
    """Return the first key that every dict entry of both lists carries."""
    entries = base + patch
    if not entries or not all(isinstance(entry, dict) for entry in entries):
        return None
    for key in keys:
        if all(key in entry for entry in entries):
            return key
    return None


def merge_entries(base: List[Any], patch: List[Any], keys: Sequence[str] = IDENTITY_KEYS) -> List[Any]:
    """Merge two lists of entries by identity key, keeping base order and appending new entries."""
    key = _identity_key(base, patch, keys)
    if key is None:
        return list(patch)

    merged = [dict(entry) for entry in base]
    positions = {entry[key]: index for index, entry in enumerate(merged)}
    for entry in patch:
        index = positions.get(entry[key])
        if index is None:
            positions[entry[key]] = len(merged)
            merged.append(dict(entry))
        else:
            merged[index] = deep_merge(merged[index], entry, keys)
    return merged


def deep_merge(base: Dict[str, Any], patch: Dict[str, Any], keys: Sequence[str] = IDENTITY_KEYS) -> Dict[str, Any]:
    """Return a new dict with ``patch`` merged onto ``base``. Neither input is modified."""
    result = dict(base)
    for name, value in patch.items():
        current = result.get(name)
        if isinstance(current, dict) and isinstance(value, dict):
            result[name] = deep_merge(current, value, keys)
        elif isinstance(current, list) and isinstance(value, list):
            result[name] = merge_entries(current, value, keys)
        else:
            result[name] = value
    return result
