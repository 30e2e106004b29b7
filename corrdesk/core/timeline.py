"""Timeline assembly for an island of related letters.

Letters are ordered by date, tagged inbound/outbound, and each consecutive
pair separated by more than the gap threshold is flagged so the UI can show
stalled correspondence.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from corrdesk.core.direction import classify_direction
from corrdesk.core.errors import StoreUnavailable
from corrdesk.core.logging import get_logger
from corrdesk.core.reference_graph import normalize_identifier
from corrdesk.core.schemas_documents import Direction, Document
from corrdesk.core.vocabulary import Vocabulary, get_vocabulary

logger = get_logger(__name__)


@dataclass
class TimelineEntry:
    document: Document
    direction: Direction
    gap_before_days: int | None = None

    @property
    def letter_date(self) -> date:
        # Entries only exist for dated documents
        return self.document.letter_date  # type: ignore[return-value]

    def to_dict(self) -> dict:
        return {
            "document": self.document.model_dump(mode="json"),
            "direction": self.direction.value,
            "gap_before_days": self.gap_before_days,
        }


@dataclass
class DurationGap:
    """Two consecutive letters separated by more than the threshold."""

    from_letter: str
    to_letter: str
    days: int

    def to_dict(self) -> dict:
        return {"from_letter": self.from_letter, "to_letter": self.to_letter, "days": self.days}


@dataclass
class Timeline:
    entries: list[TimelineEntry] = field(default_factory=list)
    gaps: list[DurationGap] = field(default_factory=list)
    undated: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    gap_threshold_days: int = 10
    seed: str | None = None

    @property
    def inbound(self) -> list[TimelineEntry]:
        return [e for e in self.entries if e.direction is Direction.INBOUND]

    @property
    def outbound(self) -> list[TimelineEntry]:
        return [e for e in self.entries if e.direction is Direction.OUTBOUND]

    def to_dict(self) -> dict:
        return {
            "seed": self.seed,
            "gap_threshold_days": self.gap_threshold_days,
            "entries": [e.to_dict() for e in self.entries],
            "inbound": [e.document.letter_no for e in self.inbound],
            "outbound": [e.document.letter_no for e in self.outbound],
            "gaps": [g.to_dict() for g in self.gaps],
            "undated": self.undated,
            "missing": self.missing,
        }


def assemble_timeline(
    documents: Iterable[Document],
    gap_threshold_days: int = 10,
    vocabulary: Vocabulary | None = None,
) -> Timeline:
    """
    Order documents by date and annotate direction and gaps.

    Args:
        documents: Documents of one island
        gap_threshold_days: Gaps strictly greater than this are flagged
        vocabulary: Direction token tables

    Returns:
        Timeline; documents without a letter_date are listed in `undated`
    """
    if gap_threshold_days < 0:
        raise ValueError("gap_threshold_days must be non-negative")

    vocab = vocabulary or get_vocabulary()
    timeline = Timeline(gap_threshold_days=gap_threshold_days)

    dated: list[Document] = []
    for document in documents:
        if document.letter_date is None:
            timeline.undated.append(document.letter_no)
        else:
            dated.append(document)

    dated.sort(key=lambda d: (d.letter_date, normalize_identifier(d.letter_no)))

    previous: Document | None = None
    for document in dated:
        entry = TimelineEntry(document=document, direction=classify_direction(document, vocab))
        if previous is not None:
            days = (document.letter_date - previous.letter_date).days
            entry.gap_before_days = days
            if days > gap_threshold_days:
                timeline.gaps.append(DurationGap(previous.letter_no, document.letter_no, days))
        timeline.entries.append(entry)
        previous = document

    return timeline


def dedupe_by_letter_no(rows: Iterable[dict]) -> list[Document]:
    """Parse rows into Documents, keeping the first row per normalized letter_no."""
    seen: set[str] = set()
    documents = []
    for row in rows:
        document = Document.model_validate(row)
        key = normalize_identifier(document.letter_no)
        if not key or key in seen:
            continue
        seen.add(key)
        documents.append(document)
    return documents


async def build_island_timeline(seed: str, gap_threshold_days: int | None = None) -> Timeline:
    """
    Timeline of the island containing a seed letter.

    Raises:
        DocumentNotFound: If the seed is not in the reference graph
        StoreUnavailable: If the store cannot be queried
    """
    from corrdesk.core.config import get_settings
    from corrdesk.core.reference_graph import extract_island, load_reference_graph
    from corrdesk.db.documents import get_documents_by_letter_nos

    if gap_threshold_days is None:
        gap_threshold_days = get_settings().TIMELINE_GAP_DAYS

    graph = await load_reference_graph()
    island = extract_island(graph, seed)

    try:
        rows = await asyncio.to_thread(get_documents_by_letter_nos, island.letter_nos)
    except Exception as e:
        logger.error(f"Failed to fetch island documents: {e}")
        raise StoreUnavailable(f"Failed to fetch island documents: {e}") from e

    documents = dedupe_by_letter_no(rows)
    timeline = assemble_timeline(documents, gap_threshold_days)
    timeline.seed = island.seed

    found = {normalize_identifier(d.letter_no) for d in documents}
    timeline.missing = [n for n in island.node_ids if normalize_identifier(n) not in found]

    logger.info(
        f"Assembled timeline for {island.seed}: {len(timeline.entries)} entries, "
        f"{len(timeline.gaps)} gaps"
    )
    return timeline
