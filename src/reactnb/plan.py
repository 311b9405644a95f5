from __future__ import annotations

import heapq
from typing import Dict, FrozenSet, List, Mapping, Optional

from .cellparser import parse
from .model import AssignmentStatement, ImportStatement, Notebook, ParseResult


def parse_cells(nb: Notebook) -> Dict[str, ParseResult]:
    """Parse every js cell, keyed by cell id, in file order."""
    return {c.id: parse(c.body) for c in nb.cells if c.kind == "js"}


def defined_names(result: ParseResult) -> List[str]:
    """Names a cell puts into the notebook namespace.

    `viewof x` and `mutable x` also define the plain value `x`.
    """
    if isinstance(result, AssignmentStatement):
        if result.name is None:
            return []
        if result.viewof:
            return [f"viewof {result.name}", result.name]
        if result.mutable:
            return [f"mutable {result.name}", result.name]
        return [result.name]
    if isinstance(result, ImportStatement):
        out: List[str] = []
        for n in result.names:
            out.append(n.alias)
            for qualifier in ("viewof ", "mutable "):
                if n.alias.startswith(qualifier):
                    out.append(n.alias[len(qualifier):])
        return out
    return []


def referenced_names(result: ParseResult) -> FrozenSet[str]:
    if isinstance(result, AssignmentStatement):
        return result.dependencies
    return frozenset()


def definitions(results: Mapping[str, ParseResult]) -> Dict[str, List[str]]:
    """Map each defined name to the ids of the cells defining it."""
    out: Dict[str, List[str]] = {}
    for cell_id, result in results.items():
        for name in defined_names(result):
            out.setdefault(name, []).append(cell_id)
    return out


def dependency_map(
    nb: Notebook, results: Optional[Mapping[str, ParseResult]] = None
) -> Dict[str, List[str]]:
    """For each js cell id, the ids of the cells it reads from (file order)."""
    if results is None:
        results = parse_cells(nb)
    defs = definitions(results)
    pos = {cid: i for i, cid in enumerate(results)}
    graph: Dict[str, List[str]] = {}
    for cell_id, result in results.items():
        deps = {
            d
            for name in referenced_names(result)
            for d in defs.get(name, [])
            if d != cell_id
        }
        graph[cell_id] = sorted(deps, key=pos.__getitem__)
    return graph


def find_cycle(graph: Mapping[str, List[str]]) -> Optional[List[str]]:
    """Return one dependency cycle as a closed path (a, b, a), or None."""
    state: Dict[str, int] = {}  # 1 = on stack, 2 = done
    for root in graph:
        if root in state:
            continue
        path = [root]
        iters = [iter(graph.get(root, []))]
        state[root] = 1
        while iters:
            nxt = next(iters[-1], None)
            if nxt is None:
                state[path.pop()] = 2
                iters.pop()
                continue
            if nxt not in graph:
                continue
            if state.get(nxt) == 1:
                return path[path.index(nxt):] + [nxt]
            if nxt not in state:
                state[nxt] = 1
                path.append(nxt)
                iters.append(iter(graph.get(nxt, [])))
    return None


def topo_order(nb: Notebook, results: Optional[Mapping[str, ParseResult]] = None) -> List[str]:
    """Return js cell ids so that every cell follows the cells it reads from.

    Ties are resolved by file order. If cycles exist, raises ValueError.
    """
    graph = dependency_map(nb, results)
    cycle = find_cycle(graph)
    if cycle is not None:
        raise ValueError("Cycle detected in dependencies: " + " -> ".join(cycle))

    pos = {cid: i for i, cid in enumerate(graph)}
    dependents: Dict[str, List[str]] = {cid: [] for cid in graph}
    pending = {cid: len(deps) for cid, deps in graph.items()}
    for cid, deps in graph.items():
        for d in deps:
            dependents[d].append(cid)

    ready = [(pos[cid], cid) for cid, n in pending.items() if n == 0]
    heapq.heapify(ready)
    out: List[str] = []
    while ready:
        _, cid = heapq.heappop(ready)
        out.append(cid)
        for child in dependents[cid]:
            pending[child] -= 1
            if pending[child] == 0:
                heapq.heappush(ready, (pos[child], child))
    return out
