"""Dependency graph value type.

Nodes live in a dense list and are addressed by integer index; edges are kept
twice, as deduplicated adjacency lists for the algorithms and as a provenance
list (one ``DependencyEdge`` per originating prerequisite) for issue reporting.

Edge direction is ``dependent -> prerequisite``: an edge ``(B, A)`` means
"B depends on A", so A must run before B.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from prereq_engine.models.plan import GraphEdgeSummary, GraphNodeSummary, GraphSummary
from prereq_engine.models.suite import TestCase

WHITE, GRAY, BLACK = 0, 1, 2


@dataclass
class GraphNode:
    index: int
    test_case_id: str
    name: str = ""
    suite_id: str | None = None
    in_suite: bool = False
    phantom: bool = False  # referenced but could not be resolved
    enabled: bool = True
    test_case: Optional[TestCase] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class DependencyEdge:
    from_id: str
    to_id: str
    prerequisite_id: str

    def __post_init__(self) -> None:
        if self.from_id == self.to_id:
            raise ValueError(f"Self-dependency is not a valid edge: {self.from_id}")


class DependencyGraph:
    """Directed test-to-test dependency graph for one suite."""

    def __init__(self, suite_id: str):
        self.suite_id = suite_id
        self.nodes: list[GraphNode] = []
        self.edges: list[DependencyEdge] = []
        self._index: dict[str, int] = {}
        self._out: list[list[int]] = []  # dependent -> prerequisites
        self._in: list[list[int]] = []  # prerequisite -> dependents
        self._edge_keys: set[tuple[str, str, str]] = set()

    def __contains__(self, test_case_id: str) -> bool:
        return test_case_id in self._index

    def __len__(self) -> int:
        return len(self.nodes)

    def add_node(self, test_case_id: str, **attrs) -> GraphNode:
        """Add a node, or return the existing one for this id."""
        if test_case_id in self._index:
            return self.nodes[self._index[test_case_id]]
        node = GraphNode(index=len(self.nodes), test_case_id=test_case_id, **attrs)
        self._index[test_case_id] = node.index
        self.nodes.append(node)
        self._out.append([])
        self._in.append([])
        return node

    def add_edge(self, from_id: str, to_id: str, prerequisite_id: str) -> DependencyEdge:
        """Record that ``from_id`` depends on ``to_id`` via ``prerequisite_id``.

        Both nodes must already exist.
        """
        edge = DependencyEdge(from_id, to_id, prerequisite_id)
        src, dst = self._index[from_id], self._index[to_id]
        key = (from_id, to_id, prerequisite_id)
        if key not in self._edge_keys:
            self._edge_keys.add(key)
            self.edges.append(edge)
        if dst not in self._out[src]:
            self._out[src].append(dst)
            self._in[dst].append(src)
        return edge

    def node(self, test_case_id: str) -> GraphNode:
        return self.nodes[self._index[test_case_id]]

    def index_of(self, test_case_id: str) -> int:
        return self._index[test_case_id]

    def prerequisites_of(self, test_case_id: str) -> list[str]:
        return [self.nodes[i].test_case_id for i in self._out[self._index[test_case_id]]]

    def dependents_of(self, test_case_id: str) -> list[str]:
        return [self.nodes[i].test_case_id for i in self._in[self._index[test_case_id]]]

    def edges_between(self, from_id: str, to_id: str) -> list[DependencyEdge]:
        return [e for e in self.edges if e.from_id == from_id and e.to_id == to_id]

    def edges_into(self, to_id: str) -> list[DependencyEdge]:
        return [e for e in self.edges if e.to_id == to_id]

    @property
    def member_ids(self) -> list[str]:
        """Suite members in suite order."""
        return [n.test_case_id for n in self.nodes if n.in_suite]

    @property
    def phantom_ids(self) -> list[str]:
        return [n.test_case_id for n in self.nodes if n.phantom]

    @property
    def external_ids(self) -> list[str]:
        """Resolvable nodes pulled in from outside the suite, in discovery order."""
        return [n.test_case_id for n in self.nodes if not n.in_suite and not n.phantom]

    def find_cycles(self, within: set[str] | None = None) -> list[list[str]]:
        """Return every distinct cycle reachable by three-color DFS.

        Each cycle is a closed path ``[a, b, ..., a]`` following edge direction.
        Rotations of the same cycle are reported once. When ``within`` is
        given, nodes outside it are ignored.
        """
        allowed = None
        if within is not None:
            allowed = {self._index[i] for i in within if i in self._index}

        color = [WHITE] * len(self.nodes)
        cycles: list[list[str]] = []
        seen: set[tuple[int, ...]] = set()

        for start in range(len(self.nodes)):
            if color[start] != WHITE or (allowed is not None and start not in allowed):
                continue
            color[start] = GRAY
            path = [start]
            stack = [iter(self._out[start])]
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    color[path.pop()] = BLACK
                    stack.pop()
                    continue
                if allowed is not None and nxt not in allowed:
                    continue
                if color[nxt] == GRAY:
                    loop = path[path.index(nxt):]
                    key = _canonical(loop)
                    if key not in seen:
                        seen.add(key)
                        cycles.append([self.nodes[i].test_case_id for i in loop + [nxt]])
                elif color[nxt] == WHITE:
                    color[nxt] = GRAY
                    path.append(nxt)
                    stack.append(iter(self._out[nxt]))
        return cycles

    def has_cycles(self, within: set[str] | None = None) -> bool:
        return bool(self.find_cycles(within))

    def depths(self) -> dict[str, int]:
        """Longest prerequisite chain below each node (0 for leaves).

        Edges that close a cycle are ignored.
        """
        depth: dict[int, int] = {}
        visiting: set[int] = set()

        def visit(i: int) -> int:
            if i in depth:
                return depth[i]
            visiting.add(i)
            best = 0
            for j in self._out[i]:
                if j in visiting:
                    continue
                best = max(best, visit(j) + 1)
            visiting.discard(i)
            depth[i] = best
            return best

        for i in range(len(self.nodes)):
            visit(i)
        return {self.nodes[i].test_case_id: d for i, d in depth.items()}

    def to_summary(self) -> GraphSummary:
        """Serializable view for hosts and dependency viewers."""
        depths = self.depths()
        cycles = self.find_cycles()
        nodes = {
            n.test_case_id: GraphNodeSummary(
                test_case_id=n.test_case_id,
                name=n.name,
                in_suite=n.in_suite,
                phantom=n.phantom,
                enabled=n.enabled,
                suite_id=n.suite_id,
                prerequisites=self.prerequisites_of(n.test_case_id),
                dependents=self.dependents_of(n.test_case_id),
                depth=depths.get(n.test_case_id, 0),
            )
            for n in self.nodes
        }
        return GraphSummary(
            suite_id=self.suite_id,
            nodes=nodes,
            edges=[
                GraphEdgeSummary(from_id=e.from_id, to_id=e.to_id, prerequisite_id=e.prerequisite_id)
                for e in self.edges
            ],
            has_cycles=bool(cycles),
            cycles=cycles,
        )


def _canonical(loop: list[int]) -> tuple[int, ...]:
    pivot = loop.index(min(loop))
    return tuple(loop[pivot:] + loop[:pivot])
