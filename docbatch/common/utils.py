"""
Small helpers shared by the repository modules.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Union


def is_empty(value: Any) -> bool:
    """True for None or a blank string. Zero, empty lists and dicts are values."""
    if isinstance(value, str):
        return value.strip() == ""
    return value is None


def omit(document: Mapping[str, Any], fields: Optional[Union[str, Iterable[str]]]) -> Dict[str, Any]:
    """
    Return a shallow copy of document without the named top-level fields.

    Args:
        document: Source mapping (left untouched)
        fields: A single field name or an iterable of names; None omits nothing

    Returns:
        New dict without the omitted fields
    """
    if not fields:
        return dict(document)
    if isinstance(fields, str):
        fields = [fields]
    dropped = set(fields)
    return {key: value for key, value in document.items() if key not in dropped}
