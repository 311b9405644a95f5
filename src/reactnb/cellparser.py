from __future__ import annotations

import logging
from typing import Optional

from .grammar import CellSyntaxError, ImportTree, parse_cell
from .model import (
    AssignmentStatement,
    CellError,
    ExceptionStatement,
    ImportName,
    ImportStatement,
    ParseResult,
    Position,
)

logger = logging.getLogger(__name__)


def position_at(source: str, offset: Optional[int]) -> Optional[Position]:
    """Turn a character offset into a (1-based line, 0-based column) position."""
    if offset is None:
        return None
    offset = max(0, min(offset, len(source)))
    line_start = source.rfind("\n", 0, offset) + 1
    return Position(line=source.count("\n", 0, offset) + 1, column=offset - line_start, offset=offset)


def parse(source: str) -> ParseResult:
    """Classify one cell's source and extract what it binds and depends on.

    Never raises: anything that is not a well-formed cell comes back as an
    ExceptionStatement carrying a CellError.
    """
    if not isinstance(source, str):
        return ExceptionStatement(
            CellError(f"Cell source must be a string, not {type(source).__name__}")
        )
    try:
        tree = parse_cell(source)
    except CellSyntaxError as e:
        logger.debug("Cell failed to parse: %s", e.message)
        return ExceptionStatement(CellError(e.message, position_at(source, e.offset)))
    except ValueError as e:
        # e.g. lone surrogates that cannot be encoded for the grammar engine
        logger.debug("Cell source rejected: %s", e)
        return ExceptionStatement(CellError(str(e)))

    if isinstance(tree, ImportTree):
        return ImportStatement(
            names=tuple(ImportName(name=n, alias=a) for n, a in tree.specifiers),
            urn=tree.source,
        )
    return AssignmentStatement(
        name=tree.name,
        dependencies=frozenset(tree.references),
        body=source[tree.start:tree.end],
        viewof=tree.qualifier == "viewof",
        mutable=tree.qualifier == "mutable",
    )
