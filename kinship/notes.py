"""Student annotation blob codec.

The blob is a JSON object owned by the storage layer. Only
``familyRelationships`` and ``guardianRelationships`` are modelled; every
other key passes through untouched.
"""
import json
import logging
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from .schemas import StudentNotes

logger = logging.getLogger(__name__)


def parse_notes(blob: Optional[str]) -> Optional[StudentNotes]:
    """Parse a stored blob. Returns None for empty, malformed or invalid input."""
    if blob is None or not blob.strip():
        return None
    try:
        return StudentNotes.model_validate(json.loads(blob))
    except json.JSONDecodeError as e:
        logger.warning("Could not decode student notes: %s", e)
        return None
    except ValidationError as e:
        logger.warning("Student notes failed validation: %d error(s)", e.error_count())
        return None


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_unset=True)
    if isinstance(value, (list, tuple)):
        return [_dump(v) for v in value]
    return value


def stringify_notes(notes: Union[StudentNotes, dict, None]) -> str:
    """Serialize notes, re-validating first. Never returns a corrupt blob: "" on failure."""
    if notes is None:
        return ""
    try:
        validated = StudentNotes.model_validate(_dump(notes))
    except ValidationError as e:
        logger.warning("Refusing to serialize invalid student notes: %d error(s)", e.error_count())
        return ""
    return json.dumps(validated.model_dump(by_alias=True, exclude_unset=True), ensure_ascii=False)


def _alias(key: str) -> str:
    if key in StudentNotes.model_fields:
        return StudentNotes.model_fields[key].alias or to_camel(key)
    return key


def update_notes(current: Optional[str], partial: dict) -> str:
    """Shallow-merge ``partial`` over the parsed ``current`` blob and re-serialize.

    Keys may be given in snake_case or camelCase. Unknown fields already in
    ``current`` survive.
    """
    notes = parse_notes(current)
    merged = _dump(notes) if notes is not None else {}
    for key, value in partial.items():
        merged[_alias(key)] = _dump(value)
    return stringify_notes(merged)
