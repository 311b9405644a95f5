"""Reactive notebook toolkit.

The core is the cell parser: classify one cell's JavaScript source and
extract the name it binds, the names it depends on and its body text.
Around it: the .reactnb file format, a dependency planner, a linter, a CLI.
"""

__all__ = [
    "parse_cell",
    "AssignmentStatement",
    "ImportStatement",
    "ImportName",
    "ExceptionStatement",
    "CellError",
    "Position",
    "ParseResult",
    "Notebook",
    "Cell",
    "parse_text",
    "parse_file",
    "serialize",
]

__version__ = "0.1.0"

from .cellparser import parse as parse_cell  # noqa: E402
from .model import (  # noqa: E402
    AssignmentStatement,
    Cell,
    CellError,
    ExceptionStatement,
    ImportName,
    ImportStatement,
    Notebook,
    ParseResult,
    Position,
)
from .parse import parse_text, parse_file  # noqa: E402
from .serialize import serialize  # noqa: E402
