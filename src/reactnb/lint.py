from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from .model import CELL_KINDS, ExceptionStatement, Notebook
from .parse import read_header
from .plan import definitions, dependency_map, find_cycle, parse_cells, referenced_names

# Names a notebook can read without defining them: JavaScript built-ins,
# the browser environment and the Observable standard library.
BUILTIN_GLOBALS = frozenset(
    """
    Array ArrayBuffer BigInt Boolean DataView Date Error EvalError Float32Array
    Float64Array Function Infinity Int16Array Int32Array Int8Array Intl JSON
    Map Math NaN Number Object Promise Proxy RangeError ReferenceError Reflect
    RegExp Set String Symbol SyntaxError TypeError URIError URL URLSearchParams
    Uint16Array Uint32Array Uint8Array Uint8ClampedArray WeakMap WeakSet
    AbortController Blob Event FormData Headers Image Request Response
    TextDecoder TextEncoder Worker
    alert clearInterval clearTimeout console decodeURI decodeURIComponent
    document encodeURI encodeURIComponent fetch globalThis isFinite isNaN
    localStorage navigator parseFloat parseInt requestAnimationFrame
    sessionStorage setInterval setTimeout structuredClone window
    DOM FileAttachment Files Generators Inputs Mutable Plot Promises d3 dot
    html htl invalidation md mermaid now require svg tex visibility width
    """.split()
)


@dataclass
class LintIssue:
    level: str  # "ERROR" | "WARN"
    message: str


def lint_notebook(nb: Notebook) -> Tuple[List[LintIssue], List[LintIssue]]:
    errors: List[LintIssue] = []
    warns: List[LintIssue] = []

    if not nb.magic_version.startswith("REACTNB "):
        errors.append(LintIssue("ERROR", "Invalid magic header version"))

    extra_globals: set = set()
    try:
        header = read_header(nb)
    except ValueError as e:
        errors.append(LintIssue("ERROR", str(e)))
        header = {}
    declared = header.get("globals") or []
    if isinstance(declared, list):
        extra_globals = {str(g) for g in declared}
    else:
        errors.append(LintIssue("ERROR", "Header 'globals' must be a list of names"))

    # IDs unique, kinds known
    seen = set()
    for c in nb.cells:
        if not c.id:
            errors.append(LintIssue("ERROR", "Cell missing id"))
        elif c.id in seen:
            errors.append(LintIssue("ERROR", f"Duplicate cell id: {c.id}"))
        seen.add(c.id)
        if c.kind not in CELL_KINDS:
            errors.append(LintIssue("ERROR", f"Cell {c.id} has unknown kind: {c.kind}"))

    results = parse_cells(nb)
    for cell_id, result in results.items():
        if isinstance(result, ExceptionStatement):
            errors.append(LintIssue("ERROR", f"Cell {cell_id}: {result.exception}"))

    defs = definitions(results)
    for name, cell_ids in defs.items():
        if len(cell_ids) > 1:
            errors.append(
                LintIssue("ERROR", f"{name} is defined more than once: {', '.join(cell_ids)}")
            )

    cycle = find_cycle(dependency_map(nb, results))
    if cycle is not None:
        errors.append(LintIssue("ERROR", "Cycle detected in dependencies: " + " -> ".join(cycle)))

    known = BUILTIN_GLOBALS | extra_globals
    for cell_id, result in results.items():
        for name in sorted(referenced_names(result)):
            if name not in defs and name not in known:
                warns.append(LintIssue("WARN", f"Cell {cell_id} references undefined name: {name}"))

    return errors, warns
