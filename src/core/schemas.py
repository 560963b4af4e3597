"""Core data models for the catalog search engine."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class PricingModel(str, Enum):
    FREE = "free"
    FREEMIUM = "freemium"
    PAID = "paid"
    SUBSCRIPTION = "subscription"
    ONE_TIME = "one_time"
    CUSTOM = "custom"


class EntryStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class _ApiModel(BaseModel):
    """Base for models serialized to the HTTP contract (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_int(value: Any, default: int | None = None) -> int | None:
    """Lenient int parsing for query-string values; garbage yields ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class EntryRecord(BaseModel):
    """A catalog entry as read from the store.

    Frozen; embedded JSON columns are kept as raw text and decoded by the
    assembler.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    slug: str
    url: str
    description: str = ""
    tagline: str | None = None
    thumbnail: str | None = None
    logo_url: str | None = None
    category_id: int
    tags: str | None = "[]"
    pricing_model: str = PricingModel.FREE.value
    has_free_version: bool = False
    quality_score: int = 50
    visits: int = 0
    likes: int = 0
    is_featured: bool = False
    is_trusted: bool = False
    ssl_enabled: bool = True
    status: EntryStatus = EntryStatus.PENDING
    created_at: datetime
    features: str | None = None
    screenshots: str | None = None
    pros_cons: str | None = None


class NewEntry(BaseModel):
    """An entry to be written to the store (seed files, submissions)."""

    title: str
    slug: str
    url: str
    description: str = ""
    tagline: str | None = None
    thumbnail: str | None = None
    logo_url: str | None = None
    category: str = Field(validation_alias=AliasChoices("category", "category_slug"))
    tags: list[str] = Field(default_factory=list)
    pricing_model: PricingModel = PricingModel.FREE
    has_free_version: bool = False
    quality_score: int = Field(default=50, ge=0, le=100)
    visits: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    is_featured: bool = False
    is_trusted: bool = False
    ssl_enabled: bool = True
    status: EntryStatus = EntryStatus.PENDING
    created_at: datetime = Field(default_factory=utc_now)
    # Raw JSON text or structured values; stored verbatim when a string.
    features: Any = None
    screenshots: Any = None
    pros_cons: Any = None


class CategoryRecord(BaseModel):
    """A category row."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    slug: str
    parent_id: int | None = None
    sort_order: int = 0


class NewCategory(BaseModel):
    name: str
    slug: str
    parent: str | None = None
    sort_order: int = 0


# ---------------------------------------------------------------------------
# Query-time value objects
# ---------------------------------------------------------------------------


class SearchFilters(_ApiModel):
    """Ad hoc search request.

    Never rejects input: unparseable numbers become ``None`` and the
    compiler normalizes everything else.
    """

    query: str = Field(default="", validation_alias=AliasChoices("query", "q"))
    category: str | None = None
    pricing_model: list[str] = Field(default_factory=list)
    min_quality_score: int | None = None
    is_trusted: bool | None = None
    is_featured: bool | None = None
    has_free_plan: bool | None = None
    ssl_enabled: bool | None = None
    tags: list[str] = Field(default_factory=list)
    sort_by: str = "relevance"
    sort_order: str = "desc"
    page: int | None = None
    limit: int | None = None

    @field_validator("min_quality_score", "page", "limit", mode="before")
    @classmethod
    def lenient_int(cls, v: Any) -> int | None:
        return parse_int(v)


class RankingFilters(_ApiModel):
    """Request for a named ranking view."""

    type: str = "popular"
    category: str | None = None
    price_filter: str = "all"
    time_range: str = "all"
    search_query: str = ""
    page: int | None = None
    limit: int | None = None

    @field_validator("page", "limit", mode="before")
    @classmethod
    def lenient_int(cls, v: Any) -> int | None:
        return parse_int(v)


# ---------------------------------------------------------------------------
# Output contract
# ---------------------------------------------------------------------------


class ProsCons(_ApiModel):
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)


class EntryView(_ApiModel):
    """An entry decorated for the response contract."""

    id: int
    title: str
    slug: str
    url: str
    description: str = ""
    tagline: str | None = None
    thumbnail: str | None = None
    logo_url: str | None = None
    category_id: int
    category_name: str | None = None
    category_slug: str | None = None
    tags: list[str] = Field(default_factory=list)
    pricing_model: str
    has_free_version: bool
    quality_score: int
    visits: int
    likes: int
    is_featured: bool
    is_trusted: bool
    ssl_enabled: bool
    status: EntryStatus
    created_at: datetime
    features: list[Any] = Field(default_factory=list)
    screenshots: list[str] = Field(default_factory=list)
    pros_cons: ProsCons = Field(default_factory=ProsCons)
    decode_issues: list[str] = Field(default_factory=list)


class Pagination(_ApiModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @computed_field(alias="hasMore")  # type: ignore[prop-decorator]
    @property
    def has_more(self) -> bool:
        return self.has_next_page


class ResultPage(_ApiModel):
    websites: list[EntryView] = Field(default_factory=list)
    pagination: Pagination


class CategoryNode(_ApiModel):
    """A category with its approved-entry aggregate over the whole subtree."""

    id: int
    name: str
    slug: str
    parent_id: int | None = None
    sort_order: int = 0
    tool_count: int = 0
    direct_count: int = 0
    children: list["CategoryNode"] = Field(default_factory=list)


class CategoryLeaders(_ApiModel):
    """Top entries of one root category."""

    category_id: int
    category_name: str
    category_slug: str
    websites: list[EntryView] = Field(default_factory=list)
