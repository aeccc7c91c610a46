"""
Encompassing Graph.

A directed, weighted "contains / depends-on" relation between knowledge
items (words, grammar points, lessons). Practicing an item implicitly
exercises everything it encompasses, scaled by edge weight.

Construction rules (from the content manifest's lesson list):
- Lesson -> its own vocabulary and grammar items at 1.0
- Lesson -> each earlier lesson of the same book at adjacent_weight / distance
- Lesson -> every lesson of every earlier book at cross_book_weight
- Items of the same lesson -> each other (both directions) at same_lesson_item_weight
- Colliding computed edges keep the higher weight
- Manual overrides are applied last and replace the computed weight
- Edges below min_weight are pruned, then encompassed_by is rebuilt as the
  exact transpose of encompasses
"""

from __future__ import annotations

import json
from collections import Counter, defaultdict, deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from src.core.exceptions import GraphFormatError, InvalidEdgeError

GRAPH_FORMAT_VERSION = 1

DEFAULT_REACH_THRESHOLD = 0.5
CO_OCCURRENCE_SEPARATOR = "::"


@dataclass(frozen=True)
class WeightedTarget:
    target: str
    weight: float

    def to_dict(self) -> dict[str, Any]:
        return {"target": self.target, "weight": self.weight}


@dataclass(frozen=True)
class EncompassingEdge:
    """``source`` encompasses ``target`` with a weight in (0, 1]."""

    source: str
    target: str
    weight: float

    def __post_init__(self):
        if self.source == self.target:
            raise InvalidEdgeError(f"Self-loop on {self.source!r} is not allowed")
        if not 0 < self.weight <= 1:
            raise InvalidEdgeError(
                f"Edge {self.source!r} -> {self.target!r} has weight {self.weight}, expected (0, 1]"
            )

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.source, "to": self.target, "weight": self.weight}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EncompassingEdge:
        return cls(source=data["from"], target=data["to"], weight=float(data["weight"]))


@dataclass
class EncompassingGraph:
    """Adjacency lists in both directions."""

    encompasses: dict[str, list[WeightedTarget]] = field(default_factory=dict)
    encompassed_by: dict[str, list[WeightedTarget]] = field(default_factory=dict)

    @classmethod
    def from_edges(cls, edges: dict[tuple[str, str], float]) -> EncompassingGraph:
        """Build both indexes from a (source, target) -> weight map."""
        encompasses: dict[str, list[WeightedTarget]] = defaultdict(list)
        encompassed_by: dict[str, list[WeightedTarget]] = defaultdict(list)
        for (source, target), weight in edges.items():
            encompasses[source].append(WeightedTarget(target, weight))
            encompassed_by[target].append(WeightedTarget(source, weight))
        return cls(encompasses=dict(encompasses), encompassed_by=dict(encompassed_by))

    def edges(self) -> list[EncompassingEdge]:
        return [
            EncompassingEdge(source, edge.target, edge.weight)
            for source, targets in self.encompasses.items()
            for edge in targets
        ]

    def edge_map(self) -> dict[tuple[str, str], float]:
        return {
            (source, edge.target): edge.weight
            for source, targets in self.encompasses.items()
            for edge in targets
        }

    @property
    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.encompasses.values())

    def get_weight(self, source: str, target: str) -> float | None:
        for edge in self.encompasses.get(source, []):
            if edge.target == target:
                return edge.weight
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": GRAPH_FORMAT_VERSION,
            "encompasses": {k: [e.to_dict() for e in v] for k, v in self.encompasses.items()},
            "encompassedBy": {k: [e.to_dict() for e in v] for k, v in self.encompassed_by.items()},
        }


@dataclass
class GraphBuildOptions:
    include_lesson_encompassing: bool = True
    adjacent_lesson_weight: float = 0.5
    cross_book_weight: float = 0.2
    same_lesson_item_weight: float = 0.3
    min_weight: float = 0.05
    manual_overrides: list[EncompassingEdge] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings, manual_overrides: list[EncompassingEdge] | None = None) -> GraphBuildOptions:
        return cls(**settings.get_graph_build_options(), manual_overrides=list(manual_overrides or []))


@dataclass(frozen=True)
class ExerciseRef:
    id: str
    item_ids: tuple[str, ...] = ()


@dataclass
class LessonForGraph:
    """Structural lesson data the builder consumes."""

    id: str
    book: int
    lesson: int
    vocabulary: list[str] = field(default_factory=list)
    grammar_points: list[str] = field(default_factory=list)
    exercises: list[ExerciseRef] = field(default_factory=list)

    @property
    def item_ids(self) -> list[str]:
        return [*self.vocabulary, *self.grammar_points]


# ============================================================================
# Construction
# ============================================================================


def _offer(edges: dict[tuple[str, str], float], source: str, target: str, weight: float) -> None:
    """Record a computed edge, keeping the higher weight on collision."""
    if source == target:
        return
    key = (source, target)
    if weight > edges.get(key, 0.0):
        edges[key] = weight


def build_encompassing_graph(
    lessons: Sequence[LessonForGraph],
    options: GraphBuildOptions | None = None,
) -> EncompassingGraph:
    """
    Build the encompassing graph for a curriculum.

    Args:
        lessons: Lessons across all books, in any order
        options: Build weights and overrides (defaults when omitted)

    Returns:
        EncompassingGraph with no edge below options.min_weight
    """
    opts = options or GraphBuildOptions()
    edges: dict[tuple[str, str], float] = {}

    lessons_by_book: dict[int, list[LessonForGraph]] = defaultdict(list)
    for lesson in lessons:
        lessons_by_book[lesson.book].append(lesson)
    for book_lessons in lessons_by_book.values():
        book_lessons.sort(key=lambda lesson: lesson.lesson)

    if opts.include_lesson_encompassing:
        for book, book_lessons in lessons_by_book.items():
            for i, current in enumerate(book_lessons):
                for j in range(i):
                    distance = i - j
                    _offer(edges, current.id, book_lessons[j].id, opts.adjacent_lesson_weight / distance)

            earlier_lessons = [
                earlier
                for earlier_book, earlier_book_lessons in lessons_by_book.items()
                if earlier_book < book
                for earlier in earlier_book_lessons
            ]
            for current in book_lessons:
                for earlier in earlier_lessons:
                    _offer(edges, current.id, earlier.id, opts.cross_book_weight)

    for lesson in lessons:
        items = lesson.item_ids
        for item_id in items:
            _offer(edges, lesson.id, item_id, 1.0)
        for i, first in enumerate(items):
            for second in items[i + 1 :]:
                _offer(edges, first, second, opts.same_lesson_item_weight)
                _offer(edges, second, first, opts.same_lesson_item_weight)

    for override in opts.manual_overrides:
        edges[(override.source, override.target)] = override.weight

    kept = {key: weight for key, weight in edges.items() if weight >= opts.min_weight}
    pruned = len(edges) - len(kept)

    graph = EncompassingGraph.from_edges(kept)
    logger.debug(
        f"Built encompassing graph: {len(lessons)} lessons, {graph.edge_count} edges ({pruned} pruned)"
    )
    return graph


# ============================================================================
# Exercise-Level Encompassing
# ============================================================================


def get_exercise_encompasses(exercise: ExerciseRef) -> list[WeightedTarget]:
    """An exercise fully encompasses every item it practices."""
    return [WeightedTarget(item_id, 1.0) for item_id in exercise.item_ids]


def build_exercise_encompassing(exercises: Iterable[ExerciseRef]) -> dict[str, list[WeightedTarget]]:
    return {exercise.id: get_exercise_encompasses(exercise) for exercise in exercises}


# ============================================================================
# Co-occurrence Analysis
# ============================================================================


def analyze_co_occurrence(exercises: Iterable[ExerciseRef]) -> Counter[str]:
    """
    Count how often each unordered pair of items appears in one exercise.

    Keys are the two ids sorted and joined with "::".
    """
    counts: Counter[str] = Counter()
    for exercise in exercises:
        items = exercise.item_ids
        for i, first in enumerate(items):
            for second in items[i + 1 :]:
                counts[CO_OCCURRENCE_SEPARATOR.join(sorted((first, second)))] += 1
    return counts


def co_occurrence_to_edges(
    co_occurrence: dict[str, int],
    max_count: int = 10,
    min_weight: float = 0.1,
) -> list[EncompassingEdge]:
    """Turn pair counts into bidirectional edges weighted min(1, count / max_count)."""
    edges: list[EncompassingEdge] = []
    for key, count in co_occurrence.items():
        weight = min(1.0, count / max_count)
        if weight < min_weight or weight <= 0:
            continue
        first, second = key.split(CO_OCCURRENCE_SEPARATOR, 1)
        if first == second:
            continue
        edges.append(EncompassingEdge(first, second, weight))
        edges.append(EncompassingEdge(second, first, weight))
    return edges


# ============================================================================
# Graph Analysis
# ============================================================================


def get_all_encompassed(
    item_id: str,
    graph: EncompassingGraph,
    threshold: float = DEFAULT_REACH_THRESHOLD,
) -> set[str]:
    """
    Everything transitively encompassed by an item through edges >= threshold.

    The query id itself is never part of the result, even on a cycle.
    """
    result: set[str] = set()
    visited = {item_id}
    queue = deque([item_id])

    while queue:
        current = queue.popleft()
        for edge in graph.encompasses.get(current, []):
            if edge.weight >= threshold and edge.target not in visited:
                visited.add(edge.target)
                result.add(edge.target)
                queue.append(edge.target)

    return result


def get_encompassing_items(item_id: str, graph: EncompassingGraph) -> list[WeightedTarget]:
    """Direct parents of an item."""
    return list(graph.encompassed_by.get(item_id, []))


def calculate_reach(item_id: str, graph: EncompassingGraph) -> int:
    """Number of direct outgoing edges."""
    return len(graph.encompasses.get(item_id, []))


def find_high_reach_items(
    item_ids: Sequence[str],
    graph: EncompassingGraph,
    top_n: int = 10,
) -> list[str]:
    ranked = sorted(item_ids, key=lambda item_id: calculate_reach(item_id, graph), reverse=True)
    return ranked[:top_n]


# ============================================================================
# Serialization
# ============================================================================


def create_empty_graph() -> EncompassingGraph:
    return EncompassingGraph()


def serialize_graph(graph: EncompassingGraph) -> str:
    return json.dumps(graph.to_dict(), indent=2, ensure_ascii=False)


def _parse_adjacency(raw: Any, name: str) -> dict[str, list[WeightedTarget]]:
    if not isinstance(raw, dict):
        raise GraphFormatError(f"'{name}' must be an object")
    adjacency: dict[str, list[WeightedTarget]] = {}
    for source, targets in raw.items():
        if not isinstance(targets, list):
            raise GraphFormatError(f"'{name}.{source}' must be a list")
        parsed = []
        for entry in targets:
            try:
                parsed.append(WeightedTarget(str(entry["target"]), float(entry["weight"])))
            except (KeyError, TypeError, ValueError) as e:
                raise GraphFormatError(f"Malformed edge under '{name}.{source}': {entry!r}") from e
        adjacency[source] = parsed
    return adjacency


def deserialize_graph(data: str) -> EncompassingGraph:
    """
    Parse a graph produced by serialize_graph.

    Raises:
        GraphFormatError: If the JSON is malformed or has the wrong shape
    """
    try:
        raw = json.loads(data)
    except json.JSONDecodeError as e:
        raise GraphFormatError(f"Invalid graph JSON: {e}") from e
    return graph_from_dict(raw)


def graph_from_dict(raw: Any) -> EncompassingGraph:
    """Build a graph from its decoded JSON form (see EncompassingGraph.to_dict)."""
    if not isinstance(raw, dict):
        raise GraphFormatError("Graph JSON must be an object")

    version = raw.get("version", GRAPH_FORMAT_VERSION)
    if version != GRAPH_FORMAT_VERSION:
        raise GraphFormatError(f"Unsupported graph format version: {version}")

    return EncompassingGraph(
        encompasses=_parse_adjacency(raw.get("encompasses", {}), "encompasses"),
        encompassed_by=_parse_adjacency(raw.get("encompassedBy", {}), "encompassedBy"),
    )


def merge_graphs(*graphs: EncompassingGraph) -> EncompassingGraph:
    """Union of edges; duplicate (source, target) pairs keep the higher weight."""
    edges: dict[tuple[str, str], float] = {}
    for graph in graphs:
        for key, weight in graph.edge_map().items():
            if weight > edges.get(key, 0.0):
                edges[key] = weight
    return EncompassingGraph.from_edges(edges)


def add_edges(graph: EncompassingGraph, extra: Iterable[EncompassingEdge]) -> EncompassingGraph:
    """Return a new graph with extra edges merged in (higher weight wins)."""
    edges = graph.edge_map()
    for edge in extra:
        key = (edge.source, edge.target)
        if edge.weight > edges.get(key, 0.0):
            edges[key] = edge.weight
    return EncompassingGraph.from_edges(edges)
