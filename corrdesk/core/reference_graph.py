"""Reference graph over correspondence letters.

Every letter cites others through its `ref_letters` field. The graph keys
nodes by letter number, treats each citation as one undirected edge, and
keeps cited-but-unknown letters as nodes so traversal never hits a missing
key. Identifier matching is case- and whitespace-insensitive; a node's id is
the spelling first seen for its normalized form, and every other spelling is
kept on the node as an alias.

Operations:
- build_reference_graph: records → ReferenceGraph
- extract_island: connected component around a seed (undirected BFS)
- reference_chain: directed closure of what a letter cites (backward) or
  of what cites it (forward)
"""

from __future__ import annotations

import asyncio
import re
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from corrdesk.core.errors import DocumentNotFound, StoreUnavailable
from corrdesk.core.logging import get_logger

logger = get_logger(__name__)

ChainDirection = Literal["backward", "forward"]

_REF_SPLIT_RE = re.compile(r"[,;]+")


def normalize_identifier(value: Any) -> str:
    """Canonical comparison key: trimmed, inner whitespace collapsed, casefolded."""
    if value is None:
        return ""
    return " ".join(str(value).split()).casefold()


def split_references(value: Any) -> list[str]:
    """Split a ref_letters value (delimited string or list) into trimmed tokens."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        parts = [str(v) for v in value if v is not None]
    else:
        parts = _REF_SPLIT_RE.split(str(value))
    return [p.strip() for p in parts if p and p.strip()]


@dataclass
class GraphNode:
    """A letter in the graph, with display metadata when the letter is known."""

    id: str
    known: bool = False
    letter_date: str | None = None
    short_desc: str | None = None
    content: str | None = None
    ref_letters: str | None = None
    # every raw spelling seen for this letter, as stored or as cited
    aliases: set[str] = field(default_factory=set)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "known": self.known,
            "letter_date": self.letter_date,
            "short_desc": self.short_desc,
            "content": self.content,
            "ref_letters": self.ref_letters,
        }


@dataclass(frozen=True)
class GraphEdge:
    """Undirected citation edge; `source` is the citing letter."""

    source: str
    target: str

    @property
    def key(self) -> frozenset[str]:
        return frozenset((self.source, self.target))

    def to_dict(self) -> dict:
        return {"source": self.source, "target": self.target}


@dataclass
class ReferenceGraph:
    """Nodes keyed by canonical id, deduplicated undirected edges, directed citations."""

    nodes: dict[str, GraphNode] = field(default_factory=dict)
    edges: list[GraphEdge] = field(default_factory=list)
    citations: list[tuple[str, str]] = field(default_factory=list)
    _canonical: dict[str, str] = field(default_factory=dict, repr=False)
    _edge_keys: set[frozenset[str]] = field(default_factory=set, repr=False)
    _citation_keys: set[tuple[str, str]] = field(default_factory=set, repr=False)

    def resolve(self, identifier: Any) -> str | None:
        """Canonical node id for an identifier, or None if absent."""
        return self._canonical.get(normalize_identifier(identifier))

    def register(self, identifier: str) -> str:
        """Add a node if new and record the spelling; return its canonical id."""
        key = normalize_identifier(identifier)
        canonical = self._canonical.get(key)
        if canonical is None:
            canonical = identifier.strip()
            self._canonical[key] = canonical
            self.nodes[canonical] = GraphNode(id=canonical)
        self.nodes[canonical].aliases.add(identifier.strip())
        return canonical

    def add_edge(self, source: str, target: str) -> bool:
        """Add an undirected edge between canonical ids. False if it already exists."""
        edge = GraphEdge(source, target)
        if edge.key in self._edge_keys:
            return False
        self._edge_keys.add(edge.key)
        self.edges.append(edge)
        return True

    def adjacency(self) -> dict[str, set[str]]:
        """Undirected adjacency over all nodes."""
        adj: dict[str, set[str]] = {node_id: set() for node_id in self.nodes}
        for edge in self.edges:
            adj[edge.source].add(edge.target)
            adj[edge.target].add(edge.source)
        return adj

    def to_dict(self) -> dict:
        return {
            "nodes": [node.to_dict() for node in self.nodes.values()],
            "edges": [edge.to_dict() for edge in self.edges],
        }


@dataclass
class Island:
    """Subgraph reachable from a seed, with the induced edges."""

    seed: str
    nodes: list[GraphNode]
    edges: list[GraphEdge]
    depth: dict[str, int] = field(default_factory=dict)
    direction: str = "undirected"

    @property
    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    @property
    def letter_nos(self) -> list[str]:
        """Every spelling of every island letter, for exact-match store lookups."""
        return sorted({alias for node in self.nodes for alias in node.aliases})

    def to_dict(self) -> dict:
        return {
            "seed": self.seed,
            "direction": self.direction,
            "nodes": [{**node.to_dict(), "depth": self.depth.get(node.id)} for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _as_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def build_reference_graph(
    records: Iterable[Any],
    keep_self_loops: bool = False,
) -> ReferenceGraph:
    """
    Build the reference graph from documents or relation rows.

    Args:
        records: Dicts or Document models with at least letter_no and ref_letters
        keep_self_loops: Keep an edge when a letter cites itself

    Returns:
        ReferenceGraph. Records without a letter_no are skipped; metadata of a
        duplicated letter_no comes from the first record.
    """
    graph = ReferenceGraph()

    for record in records:
        letter_no = _field(record, "letter_no")
        if letter_no is None or not str(letter_no).strip():
            continue

        source = graph.register(str(letter_no))
        node = graph.nodes[source]
        if not node.known:
            node.known = True
            node.letter_date = _as_text(_field(record, "letter_date"))
            node.short_desc = _as_text(_field(record, "short_desc"))
            node.content = _as_text(_field(record, "content"))
            node.ref_letters = _as_text(_field(record, "ref_letters"))

        for reference in split_references(_field(record, "ref_letters")):
            target = graph.register(reference)
            if (source, target) not in graph._citation_keys:
                graph._citation_keys.add((source, target))
                graph.citations.append((source, target))
            if target == source and not keep_self_loops:
                continue
            graph.add_edge(source, target)

    logger.debug(
        f"Built reference graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges"
    )
    return graph


def _resolve_seed(graph: ReferenceGraph, seed: str) -> str:
    start = graph.resolve(seed)
    if start is None:
        logger.info(f"Seed letter not in graph: {seed!r}")
        raise DocumentNotFound(seed)
    return start


def _bfs(start: str, neighbors: dict[str, set[str]]) -> dict[str, int]:
    """Breadth-first search; returns visited ids (in visit order) with their depth."""
    depth = {start: 0}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for neighbor in sorted(neighbors.get(current, ())):
            if neighbor not in depth:
                depth[neighbor] = depth[current] + 1
                queue.append(neighbor)
    return depth


def extract_island(graph: ReferenceGraph, seed: str) -> Island:
    """
    Connected component containing the seed letter.

    Args:
        graph: Full reference graph
        seed: Letter number (case/whitespace-insensitive)

    Returns:
        Island with nodes in BFS order and every edge between visited nodes

    Raises:
        DocumentNotFound: If the seed does not resolve to a node
    """
    start = _resolve_seed(graph, seed)
    depth = _bfs(start, graph.adjacency())

    return Island(
        seed=start,
        nodes=[graph.nodes[node_id] for node_id in depth],
        edges=[e for e in graph.edges if e.source in depth and e.target in depth],
        depth=depth,
    )


def reference_chain(
    graph: ReferenceGraph,
    seed: str,
    direction: ChainDirection = "backward",
) -> Island:
    """
    Directed citation closure from a seed letter.

    backward: the letters the seed cites, and what those cite, transitively.
    forward: the letters citing the seed, and what cites those, transitively.

    Raises:
        DocumentNotFound: If the seed does not resolve to a node
        ValueError: If direction is not "backward" or "forward"
    """
    if direction not in ("backward", "forward"):
        raise ValueError(f"Unknown chain direction: {direction!r}")

    start = _resolve_seed(graph, seed)
    neighbors: dict[str, set[str]] = {}
    for citing, cited in graph.citations:
        if citing == cited:
            continue
        if direction == "backward":
            neighbors.setdefault(citing, set()).add(cited)
        else:
            neighbors.setdefault(cited, set()).add(citing)

    depth = _bfs(start, neighbors)
    edges = [
        GraphEdge(citing, cited)
        for citing, cited in graph.citations
        if citing != cited and citing in depth and cited in depth
    ]

    return Island(
        seed=start,
        nodes=[graph.nodes[node_id] for node_id in depth],
        edges=edges,
        depth=depth,
        direction=direction,
    )


async def load_reference_graph(keep_self_loops: bool | None = None) -> ReferenceGraph:
    """
    Fetch the relation projection and build a fresh graph.

    Raises:
        StoreUnavailable: If the store query fails
    """
    from corrdesk.core.config import get_settings
    from corrdesk.db.documents import list_document_relations

    if keep_self_loops is None:
        keep_self_loops = get_settings().GRAPH_KEEP_SELF_LOOPS

    try:
        records = await asyncio.to_thread(list_document_relations)
    except Exception as e:
        logger.error(f"Failed to fetch document relations: {e}")
        raise StoreUnavailable(f"Failed to fetch document relations: {e}") from e

    return build_reference_graph(records, keep_self_loops=keep_self_loops)
