"""Step dependency graph over anchor names, with deterministic cycle detection."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence, Set
from heapq import heapify, heappop, heappush
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from specks.document.models import Document

# DFS colours.
_UNVISITED: Final[int] = 0
_ON_STACK: Final[int] = 1
_FINISHED: Final[int] = 2

_CYCLE_PREVIEW: Final[int] = 3


class CycleError(ValueError):
    """Raised when an ordering is requested from a graph that has cycles."""

    cycles: tuple[tuple[str, ...], ...]

    def __init__(self, cycles: Iterable[Sequence[str]]) -> None:
        self.cycles = tuple(tuple(path) for path in cycles)
        shown = "; ".join(format_cycle(path) for path in self.cycles[:_CYCLE_PREVIEW])
        if len(self.cycles) > _CYCLE_PREVIEW:
            shown += f"; and {len(self.cycles) - _CYCLE_PREVIEW} more"
        super().__init__(f"steps cannot be ordered, circular dependency: {shown or 'unknown'}")


def format_cycle(path: Sequence[str]) -> str:
    """Render a closed cycle path as ``a -> b -> a``."""
    return " -> ".join(path)


class DependencyGraph:
    """
    Directed graph from each step anchor to the anchors it depends on.

    Nodes keep insertion (document) order through a build-once name -> index
    map; every traversal is ordered by that index so results are stable.
    """

    __slots__ = ("_position", "_names", "_out", "_in")

    def __init__(
        self,
        nodes: Iterable[str] | None = None,
        edges: Iterable[tuple[str, str]] | None = None,
    ) -> None:
        self._position: dict[str, int] = {}
        self._names: list[str] = []
        self._out: list[list[int]] = []
        self._in: list[list[int]] = []

        for name in nodes or ():
            self.add_node(name)
        for name, dependency in edges or ():
            self.add_edge(name, dependency)

    @classmethod
    def from_document(cls, document: Document) -> DependencyGraph:
        """
        Build the graph for every step and substep anchor of ``document``.

        Self-dependencies and dependencies on anchors that are not steps are
        left out; the validator reports those separately.
        """
        anchored = [item for item in document.iter_steps() if item.anchor]
        graph = cls(nodes=(item.anchor for item in anchored))
        for item in anchored:
            for dependency in item.depends_on:
                if dependency != item.anchor and dependency in graph:
                    graph.add_edge(item.anchor, dependency)
        return graph

    def __contains__(self, name: object) -> bool:
        return name in self._position

    def __len__(self) -> int:
        return len(self._names)

    @property
    def nodes(self) -> tuple[str, ...]:
        """All node names in insertion order."""
        return tuple(self._names)

    @property
    def edges(self) -> tuple[tuple[str, str], ...]:
        """All edges as ``(node, dependency)`` pairs in insertion order."""
        return tuple(
            (self._names[source], self._names[target])
            for source, targets in enumerate(self._out)
            for target in targets
        )

    def add_node(self, name: str) -> None:
        """Add ``name`` unless it is already present."""
        if not name:
            raise ValueError("node name must be a non-empty anchor")
        if name in self._position:
            return
        self._position[name] = len(self._names)
        self._names.append(name)
        self._out.append([])
        self._in.append([])

    def add_edge(self, name: str, dependency: str) -> None:
        """Record that ``name`` depends on ``dependency``; repeats are ignored."""
        self.add_node(name)
        self.add_node(dependency)
        source = self._position[name]
        target = self._position[dependency]
        if target in self._out[source]:
            return
        self._out[source].append(target)
        self._in[target].append(source)

    def detect_cycles(self) -> tuple[tuple[str, ...], ...]:
        """
        Find directed cycles with an iterative three-colour depth-first search.

        Roots and children are visited in insertion order. A back edge to a
        node still on the stack yields the closed path from that node, e.g.
        ``("step-0", "step-1", "step-0")``. The search keeps going after a hit,
        and a cycle already seen under another rotation is not repeated.
        """
        colour = [_UNVISITED] * len(self._names)
        found: list[tuple[str, ...]] = []
        seen_rotations: set[tuple[int, ...]] = set()

        for root in range(len(self._names)):
            if colour[root] != _UNVISITED:
                continue

            # Each frame is (node, index of the next child to look at).
            path: list[int] = [root]
            frames: list[list[int]] = [[root, 0]]
            colour[root] = _ON_STACK

            while frames:
                frame = frames[-1]
                node, cursor = frame
                children = self._out[node]
                if cursor == len(children):
                    colour[node] = _FINISHED
                    frames.pop()
                    path.pop()
                    continue

                frame[1] = cursor + 1
                child = children[cursor]
                if colour[child] == _UNVISITED:
                    colour[child] = _ON_STACK
                    path.append(child)
                    frames.append([child, 0])
                elif colour[child] == _ON_STACK:
                    loop = path[path.index(child) :]
                    rotation = _smallest_rotation(loop)
                    if rotation not in seen_rotations:
                        seen_rotations.add(rotation)
                        found.append(tuple(self._names[i] for i in [*loop, child]))

        return tuple(found)

    def topological_order(self) -> tuple[str, ...]:
        """Return nodes with every dependency before its dependents, or raise ``CycleError``."""
        pending = [len(targets) for targets in self._out]
        ready = [index for index, count in enumerate(pending) if count == 0]
        heapify(ready)

        ordered: list[int] = []
        while ready:
            index = heappop(ready)
            ordered.append(index)
            for dependent in self._in[index]:
                pending[dependent] -= 1
                if pending[dependent] == 0:
                    heappush(ready, dependent)

        if len(ordered) < len(self._names):
            raise CycleError(self.detect_cycles())
        return tuple(self._names[index] for index in ordered)

    def dependencies_of(self, name: str, *, transitive: bool = False) -> tuple[str, ...]:
        """Return direct or transitive dependencies of ``name`` in insertion order."""
        return self._neighbours(name, self._out, transitive=transitive)

    def dependents_of(self, name: str, *, transitive: bool = False) -> tuple[str, ...]:
        """Return direct or transitive dependents of ``name`` in insertion order."""
        return self._neighbours(name, self._in, transitive=transitive)

    def ready_steps(self, completed: Set[str]) -> tuple[str, ...]:
        """
        Return nodes that can start now.

        A node is ready when it is not completed and all of its dependencies are.
        """
        return tuple(
            name
            for index, name in enumerate(self._names)
            if name not in completed
            and all(self._names[target] in completed for target in self._out[index])
        )

    def _neighbours(
        self, name: str, adjacency: list[list[int]], *, transitive: bool
    ) -> tuple[str, ...]:
        start = self._position.get(name)
        if start is None:
            raise KeyError(f"Unknown node: {name}")

        if not transitive:
            if adjacency is self._out:
                return tuple(self._names[index] for index in adjacency[start])
            return tuple(self._names[index] for index in sorted(adjacency[start]))

        reached: set[int] = set()
        queue = deque(adjacency[start])
        while queue:
            index = queue.popleft()
            if index in reached:
                continue
            reached.add(index)
            queue.extend(adjacency[index])
        reached.discard(start)
        return tuple(self._names[index] for index in sorted(reached))


def _smallest_rotation(loop: Sequence[int]) -> tuple[int, ...]:
    return min(tuple(loop[offset:]) + tuple(loop[:offset]) for offset in range(len(loop)))


__all__ = ["CycleError", "DependencyGraph", "format_cycle"]
