"""Dependency graph between cells with cycle rejection.

Nodes are cell identifiers.  Each node may record a set of *upstream*
links (the cells its formula reads from); the graph keeps the inverse
*downstream* map in step so both directions are O(1) lookups.

Adding links that would close a cycle is rejected: the graph is restored
to exactly its previous state and :class:`CycleError` is raised with the
offending path.  Callers never observe a cyclic graph.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Iterator

from gridcalc.errors import SheetError


class CycleError(SheetError):
    """Raised when an edit would create a circular cell reference.

    Attributes:
        cycle_path: Identifiers along the cycle, starting and ending with
            the cell being edited.
    """

    def __init__(self, cycle_path: list[str]) -> None:
        self.cycle_path = cycle_path
        super().__init__(f"Circular cell reference: {' -> '.join(cycle_path)}")


class DependencyGraph:
    """Bidirectional upstream/downstream adjacency between cells.

    Invariants:

    - ``b in upstream_of(a)`` iff ``a in downstream_of(b)``.
    - No node maps to an empty set.
    - The upstream relation is acyclic.

    Usage::

        g = DependencyGraph()
        g.add("C1", {"A1", "B1"})
        g.downstream_of("A1")   # frozenset({"C1"})
        g.add("A1", {"C1"})     # raises CycleError, graph unchanged
    """

    __slots__ = ("_upstream", "_downstream")

    def __init__(self) -> None:
        # cell -> cells it reads from
        self._upstream: dict[str, frozenset[str]] = {}
        # cell -> cells that read from it
        self._downstream: dict[str, set[str]] = {}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def upstream_of(self, cell_id: str) -> frozenset[str]:
        """Cells that *cell_id* reads from (empty if none)."""
        return self._upstream.get(cell_id, frozenset())

    def downstream_of(self, cell_id: str) -> frozenset[str]:
        """Cells that read from *cell_id* (empty if none)."""
        links = self._downstream.get(cell_id)
        return frozenset(links) if links else frozenset()

    def nodes(self) -> set[str]:
        """Every identifier that appears on either side of a link."""
        return set(self._upstream) | set(self._downstream)

    def __contains__(self, cell_id: object) -> bool:
        return cell_id in self._upstream or cell_id in self._downstream

    def __len__(self) -> int:
        return len(self._upstream)

    def __iter__(self) -> Iterator[str]:
        return iter(self._upstream)

    def snapshot(self) -> tuple[dict[str, set[str]], dict[str, set[str]]]:
        """Return independent copies of the (upstream, downstream) maps."""
        return (
            {k: set(v) for k, v in self._upstream.items()},
            {k: set(v) for k, v in self._downstream.items()},
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, cell_id: str, upstream_ids: Iterable[str]) -> None:
        """Replace the upstream links of *cell_id*.

        An empty *upstream_ids* removes the node's links entirely.

        Raises:
            CycleError: The new links would close a cycle.  The graph is
                left exactly as it was before the call.
        """
        new_links = frozenset(upstream_ids)
        if not new_links:
            self.remove(cell_id)
            return

        previous = self._upstream.get(cell_id)
        self.remove(cell_id)
        self._link(cell_id, new_links)

        cycle = self.find_cycle(cell_id)
        if cycle is not None:
            self.remove(cell_id)
            if previous is not None:
                self._link(cell_id, previous)
            raise CycleError(cycle)

    def remove(self, cell_id: str) -> None:
        """Drop the upstream links of *cell_id*.

        Links from other cells *to* ``cell_id`` are kept: those cells
        still reference it.  No-op if the node has no upstream links.
        """
        links = self._upstream.pop(cell_id, None)
        if not links:
            return
        for up in links:
            dependents = self._downstream.get(up)
            if dependents is None:
                continue
            dependents.discard(cell_id)
            if not dependents:
                del self._downstream[up]

    def _link(self, cell_id: str, links: frozenset[str]) -> None:
        self._upstream[cell_id] = links
        for up in links:
            self._downstream.setdefault(up, set()).add(cell_id)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def find_cycle(self, origin: str) -> list[str] | None:
        """Search upstream from *origin* for a path leading back to it.

        Depth-first with an explicit stack.  Returns the cycle as a list
        starting and ending with *origin*, or ``None``.

        Nodes whose upstream closure has been fully explored without
        reaching *origin* are not searched again, so diamonds cost linear
        rather than exponential time.
        """
        path: list[str] = [origin]
        iters: list[Iterator[str]] = [iter(sorted(self.upstream_of(origin)))]
        exhausted: set[str] = set()

        while iters:
            nid = next(iters[-1], None)
            if nid is None:
                iters.pop()
                exhausted.add(path.pop())
                continue
            if nid == origin:
                return path + [nid]
            if nid in exhausted:
                continue
            path.append(nid)
            iters.append(iter(sorted(self.upstream_of(nid))))

        return None

    def affected_order(self, origin: str) -> list[str]:
        """Cells transitively downstream of *origin*, in evaluation order.

        Each affected cell appears exactly once and after every affected
        cell it reads from.  *origin* itself is not included.
        """
        affected: set[str] = set()
        stack: list[str] = [origin]
        while stack:
            cell = stack.pop()
            for dep in self._downstream.get(cell, ()):
                if dep not in affected:
                    affected.add(dep)
                    stack.append(dep)
        affected.discard(origin)
        if not affected:
            return []

        # Kahn's algorithm restricted to the affected subgraph.
        in_degree = {
            cell: len(self._upstream.get(cell, frozenset()) & affected)
            for cell in affected
        }
        queue: deque[str] = deque(sorted(c for c, d in in_degree.items() if d == 0))
        order: list[str] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dep in sorted(self._downstream.get(cell, ())):
                if dep in in_degree:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)
        return order

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        """Adjacency dump, keys and neighbors sorted::

            Upstream Links:
              C1 : [A1, D1]
            Downstream Links:
              A1 : [C1]
              D1 : [C1]
        """
        lines = ["Upstream Links:"]
        for key in sorted(self._upstream):
            lines.append(f"{key:>4} : [{', '.join(sorted(self._upstream[key]))}]")
        lines.append("Downstream Links:")
        for key in sorted(self._downstream):
            lines.append(f"{key:>4} : [{', '.join(sorted(self._downstream[key]))}]")
        return "\n".join(lines) + "\n"

    def __repr__(self) -> str:
        links = sum(len(v) for v in self._upstream.values())
        return f"DependencyGraph(nodes={len(self.nodes())}, links={links})"
