"""Serialization boundary for JSON blobs stored in job rows.

Every blob is wrapped in a versioned envelope::

    {"v": 1, "data": {...}}

Rows that do not match the envelope or the expected shape raise
``CorruptRecordError`` rather than loading partially.
"""
import json
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

BLOB_VERSION = 1

ModelT = TypeVar("ModelT", bound=BaseModel)


class CorruptRecordError(ValueError):
    """A stored blob could not be decoded into its model."""
    pass


def dump_blob(model: Optional[BaseModel]) -> Optional[str]:
    """Serialize a model into a versioned JSON blob."""
    if model is None:
        return None
    return json.dumps({"v": BLOB_VERSION, "data": model.model_dump(mode="json")})


def load_blob(raw: Optional[str], model_cls: Type[ModelT], field: str = "blob") -> Optional[ModelT]:
    """
    Deserialize a versioned JSON blob.

    Args:
        raw: Stored text (None for empty columns)
        model_cls: Pydantic model to validate the payload against
        field: Column name, used in error messages

    Returns:
        Model instance, or None when raw is None

    Raises:
        CorruptRecordError: If the blob is malformed or of an unknown version
    """
    if raw is None:
        return None

    try:
        envelope = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptRecordError(f"{field}: invalid JSON ({e})")

    if not isinstance(envelope, dict) or "v" not in envelope or "data" not in envelope:
        raise CorruptRecordError(f"{field}: missing version envelope")

    if envelope["v"] != BLOB_VERSION:
        raise CorruptRecordError(f"{field}: unsupported version {envelope['v']!r}")

    try:
        return model_cls.model_validate(envelope["data"])
    except ValidationError as e:
        raise CorruptRecordError(f"{field}: {e}")
