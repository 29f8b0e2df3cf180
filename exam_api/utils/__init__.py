"""Utility modules."""
from exam_api.utils.json_utils import json_dump, json_load, json_load_or_none
from exam_api.utils.time_utils import ensure_utc, isoformat, new_id, utc_now
from exam_api.utils.validation import validate_id

__all__ = [
    "json_dump",
    "json_load",
    "json_load_or_none",
    "ensure_utc",
    "isoformat",
    "new_id",
    "utc_now",
    "validate_id",
]
