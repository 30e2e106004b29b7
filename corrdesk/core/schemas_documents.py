"""Pydantic schemas for correspondence documents and search requests.

Rows arrive from the store with loose shapes: NULL text columns, dates in
several formats, embeddings serialized as pgvector text. ``Document`` absorbs
that at the boundary so the rest of the engine sees clean values.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal, Optional

from dateutil import parser as dateutil_parser
from pydantic import BaseModel, ConfigDict, Field, field_validator

TEXT_FIELDS = (
    "letter_no",
    "internal_no",
    "type_of_corr",
    "short_desc",
    "content",
    "keywords",
    "ref_letters",
    "reply_letter",
    "severity_rate",
    "inc_out",
    "sp_id",
    "weburl",
)


def parse_letter_date(value: Any) -> Optional[date]:
    """Parse a letter date leniently. Returns None when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    # ISO dates first; dayfirst would swap month and day in "2024-03-01"
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return dateutil_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError, TypeError):
        return None


def parse_embedding(value: Any) -> Optional[list[float]]:
    """Parse a stored embedding (list or pgvector/JSON text). None when unusable."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    if not isinstance(value, (list, tuple)) or not value:
        return None
    try:
        return [float(v) for v in value]
    except (TypeError, ValueError):
        return None


class Direction(str, Enum):
    """Normalized letter direction."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"
    UNKNOWN = "unknown"


class Document(BaseModel):
    """A correspondence letter as read from the documents table."""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: Optional[int | str] = None
    letter_no: str = ""
    internal_no: str = ""
    letter_date: Optional[date] = None
    type_of_corr: str = ""
    short_desc: str = ""
    content: str = ""
    keywords: str = ""
    ref_letters: str = ""
    reply_letter: str = ""
    severity_rate: str = ""
    inc_out: str = ""
    sp_id: str = ""
    weburl: str = ""
    embedding: Optional[list[float]] = Field(default=None, exclude=True)

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        """NULL columns become empty strings; lists are joined."""
        if v is None:
            return ""
        if isinstance(v, (list, tuple)):
            return ", ".join(str(item) for item in v if item is not None)
        return str(v)

    @field_validator("letter_date", mode="before")
    @classmethod
    def lenient_date(cls, v: Any) -> Optional[date]:
        return parse_letter_date(v)

    @field_validator("embedding", mode="before")
    @classmethod
    def lenient_embedding(cls, v: Any) -> Optional[list[float]]:
        return parse_embedding(v)


# =============================================================================
# Search request / response
# =============================================================================


class SearchMode(str, Enum):
    """Which retrieval strategies a caller wants."""

    AUTO = "auto"          # full fallback chain
    HYBRID = "hybrid"      # vector + lexical only
    VECTOR = "vector"      # cosine similarity only
    TEXT = "text"          # semantic keyword text search only
    PLAIN = "plain"        # plain substring search only


class Provenance(str, Enum):
    """Which signal produced a result's score."""

    VECTOR = "vector"
    HYBRID = "hybrid"
    TEXT = "text"


class SearchFilters(BaseModel):
    """Structured filters applied alongside the text query."""

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    type_of_corr: Optional[str] = None
    severity_rate: Optional[str] = None
    inc_out: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)
    letter_no: Optional[str] = None
    internal_no: Optional[str] = None
    short_desc: Optional[str] = None
    sp_id: Optional[str] = None

    @field_validator("keywords", mode="before")
    @classmethod
    def split_keywords(cls, v: Any) -> list[str]:
        """Accept a comma/semicolon separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            v = v.replace(";", ",").split(",")
        return [str(k).strip() for k in v if str(k).strip()]

    @field_validator(
        "type_of_corr", "severity_rate", "inc_out", "letter_no", "internal_no",
        "short_desc", "sp_id",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        """Empty strings and the UI's "all" sentinel disable a filter."""
        if v is None:
            return None
        v = str(v).strip()
        if not v or v.lower() == "all":
            return None
        return v

    def is_empty(self) -> bool:
        """True when no filter is set."""
        return not any(
            value for value in self.model_dump().values()
        )


class SearchRequest(BaseModel):
    """A ranked search over the correspondence corpus."""

    query: str = ""
    filters: SearchFilters = Field(default_factory=SearchFilters)
    mode: SearchMode = SearchMode.AUTO
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)
    vector_weight: Optional[float] = Field(default=None, ge=0.0)
    text_weight: Optional[float] = Field(default=None, ge=0.0)
    vector_threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    empty_query: Literal["filters_only", "none"] = "filters_only"
    request_id: Optional[str] = None
    session_id: Optional[str] = None


class ScoredResult(BaseModel):
    """A document with its ranking score. Never persisted."""

    document: Document
    score: float
    provenance: Provenance
    similarity: Optional[float] = None
    lexical_score: Optional[float] = None


class SearchResponse(BaseModel):
    """Ranked results plus a record of which stage answered."""

    results: list[ScoredResult] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
    stage: str = "none"
    attempted: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    request_id: Optional[str] = None
    superseded: bool = False
