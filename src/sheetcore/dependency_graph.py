"""Reference graph between cells.

Edges are stored both ways: ``references`` maps a formula cell to the
cells it reads, ``dependents`` maps a referenced cell to the formula
cells that read it.  Dependents keep their insertion order so cascades
visit them in the order they were registered.

Every traversal uses an explicit stack or queue, so chain length is not
bounded by the interpreter's recursion limit.

All cells are identified by canonical A1 names.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator


class DependencyGraph:
    """Tracks which cells reference which other cells."""

    def __init__(self) -> None:
        # referenced cell -> ordered set of dependents (dict used as ordered set)
        self._dependents: dict[str, dict[str, None]] = {}
        # formula cell -> cells it references, in order of first use
        self._references: dict[str, list[str]] = {}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_dependency(self, referenced: str, dependent: str) -> None:
        """Register *dependent* as reading *referenced* (no-op if already present)."""
        self._dependents.setdefault(referenced, {})[dependent] = None
        refs = self._references.setdefault(dependent, [])
        if referenced not in refs:
            refs.append(referenced)

    def remove_cell(self, cell: str) -> None:
        """Drop every outgoing reference of *cell* (its dependents are kept).

        Called before a cell's references are re-registered, so a formula
        that stops naming a cell stops being notified by it.
        """
        for ref in self._references.pop(cell, []):
            deps = self._dependents.get(ref)
            if deps is None:
                continue
            deps.pop(cell, None)
            if not deps:
                del self._dependents[ref]

    def clear(self) -> None:
        self._dependents.clear()
        self._references.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def dependents_of(self, cell: str) -> list[str]:
        return list(self._dependents.get(cell, ()))

    def references_of(self, cell: str) -> list[str]:
        return list(self._references.get(cell, ()))

    def find_cycle(self, cell: str) -> list[str] | None:
        """Return a reference path from *cell* back to itself, or None.

        The path starts and ends with *cell*, e.g. ``["A1", "B1", "A1"]``.
        Depth-first over references with an explicit iterator stack.
        """
        path: list[str] = [cell]
        visited: set[str] = {cell}
        stack: list[Iterator[str]] = [iter(self._references.get(cell, ()))]

        while stack:
            for ref in stack[-1]:
                if ref == cell:
                    return path + [cell]
                if ref not in visited:
                    visited.add(ref)
                    path.append(ref)
                    stack.append(iter(self._references.get(ref, ())))
                    break
            else:
                stack.pop()
                path.pop()
        return None

    def affected_cells(self, origin: str) -> list[str]:
        """All cells transitively depending on *origin*, breadth-first.

        *origin* itself is excluded even when it lies on a cycle.
        """
        seen: set[str] = {origin}
        order: list[str] = []
        queue: deque[str] = deque([origin])
        while queue:
            cell = queue.popleft()
            for dep in self._dependents.get(cell, ()):
                if dep not in seen:
                    seen.add(dep)
                    order.append(dep)
                    queue.append(dep)
        return order

    def cyclic_cells(self, cells: Iterable[str]) -> set[str]:
        """The members of *cells* that lie on a reference cycle within *cells*.

        Tarjan's strongly connected components over dependent edges,
        driven by an explicit work stack.  A component counts as cyclic
        when it has more than one member or a cell that reads itself.
        """
        members = list(dict.fromkeys(cells))
        member_set = set(members)
        index: dict[str, int] = {}
        low: dict[str, int] = {}
        on_stack: set[str] = set()
        stack: list[str] = []
        cyclic: set[str] = set()

        def successors(node: str) -> Iterator[str]:
            return (d for d in self._dependents.get(node, ()) if d in member_set)

        for root in members:
            if root in index:
                continue
            index[root] = low[root] = len(index)
            stack.append(root)
            on_stack.add(root)
            work: list[tuple[str, Iterator[str]]] = [(root, successors(root))]

            while work:
                node, pending = work[-1]
                descended = False
                for nxt in pending:
                    if nxt not in index:
                        index[nxt] = low[nxt] = len(index)
                        stack.append(nxt)
                        on_stack.add(nxt)
                        work.append((nxt, successors(nxt)))
                        descended = True
                        break
                    if nxt in on_stack:
                        low[node] = min(low[node], index[nxt])
                if descended:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
                if low[node] == index[node]:
                    component: list[str] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    if len(component) > 1 or node in self._dependents.get(node, ()):
                        cyclic.update(component)

        return cyclic

    def recalculation_plan(self, origin: str) -> tuple[list[str], list[str]]:
        """Split the cells affected by *origin* into an evaluation order and a cyclic set.

        Cells that lie on a reference cycle cannot be evaluated and are
        returned separately.  The rest are ordered so every cell comes
        after the affected cells it reads (Kahn's algorithm), ties broken
        by breadth-first registration order.

        Returns:
            ``(order, cyclic)``.
        """
        affected = self.affected_cells(origin)
        # Every member of a cycle through an affected cell is itself
        # affected or is the origin.
        cyclic_set = self.cyclic_cells([origin, *affected])
        cyclic = [c for c in affected if c in cyclic_set]
        pending = [c for c in affected if c not in cyclic_set]
        members = set(pending)

        in_degree: dict[str, int] = {
            c: sum(1 for ref in self._references.get(c, ()) if ref in members)
            for c in pending
        }
        queue: deque[str] = deque(c for c in pending if in_degree[c] == 0)
        order: list[str] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dep in self._dependents.get(cell, ()):
                if dep in members:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        return order, cyclic
