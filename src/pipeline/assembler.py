"""Result assembler: raw entry records → response entries.

Joins category name/slug from the already-built ``CategoryIndex`` and
decodes the embedded JSON columns. A malformed column degrades to its
empty default for that entry only; the rest of the page is unaffected.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from src.core.categories import CategoryIndex
from src.core.schemas import EntryRecord, EntryView, ProsCons

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DecodeStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class DecodedField(Generic[T]):
    """Outcome of decoding one embedded JSON column."""

    status: DecodeStatus
    value: T


_FEATURES = TypeAdapter(list[Any])
_STRINGS = TypeAdapter(list[str])
_PROS_CONS = TypeAdapter(ProsCons)


def decode_json_field(raw: str | None, adapter: TypeAdapter[T], default: T) -> DecodedField[T]:
    """Decode and schema-validate a JSON column.

    ``None``/blank → MISSING with the default; bad JSON or a value that
    does not fit the schema → UNPARSEABLE with the default.
    """
    if raw is None or not raw.strip():
        return DecodedField(DecodeStatus.MISSING, default)
    try:
        value = adapter.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError):
        return DecodedField(DecodeStatus.UNPARSEABLE, default)
    return DecodedField(DecodeStatus.OK, value)


def assemble_entry(record: EntryRecord, categories: CategoryIndex) -> EntryView:
    tags = decode_json_field(record.tags, _STRINGS, [])
    features = decode_json_field(record.features, _FEATURES, [])
    screenshots = decode_json_field(record.screenshots, _STRINGS, [])
    pros_cons = decode_json_field(record.pros_cons, _PROS_CONS, ProsCons())

    issues = [
        name
        for name, decoded in (
            ("tags", tags),
            ("features", features),
            ("screenshots", screenshots),
            ("pros_cons", pros_cons),
        )
        if decoded.status is DecodeStatus.UNPARSEABLE
    ]
    if issues:
        logger.warning("Entry %d has unparseable fields: %s", record.id, ", ".join(issues))

    category = categories.by_id(record.category_id)
    return EntryView(
        id=record.id,
        title=record.title,
        slug=record.slug,
        url=record.url,
        description=record.description,
        tagline=record.tagline,
        thumbnail=record.thumbnail,
        logo_url=record.logo_url,
        category_id=record.category_id,
        category_name=category.name if category else None,
        category_slug=category.slug if category else None,
        tags=tags.value,
        pricing_model=record.pricing_model,
        has_free_version=record.has_free_version,
        quality_score=record.quality_score,
        visits=record.visits,
        likes=record.likes,
        is_featured=record.is_featured,
        is_trusted=record.is_trusted,
        ssl_enabled=record.ssl_enabled,
        status=record.status,
        created_at=record.created_at,
        features=features.value,
        screenshots=screenshots.value,
        pros_cons=pros_cons.value,
        decode_issues=issues,
    )


def assemble_entries(records: list[EntryRecord], categories: CategoryIndex) -> list[EntryView]:
    """Decorate a page of records, preserving order."""
    return [assemble_entry(r, categories) for r in records]
