"""JSON serialization utilities."""
import json


def json_dump(payload: object) -> str:
    """Serialize object to a compact, key-ordered JSON string.

    Key order is fixed so the same payload always serializes to the same text.
    """
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def json_load(data: str) -> object:
    """Deserialize JSON string to object."""
    return json.loads(data)


def json_load_or_none(data: str | None) -> object:
    """Deserialize a stored JSON column, returning None for empty or corrupt data."""
    if not data:
        return None
    try:
        return json_load(data)
    except (json.JSONDecodeError, TypeError):
        return None
