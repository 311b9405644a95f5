from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    List,
    Optional,
    OrderedDict as TOrderedDict,
    Tuple,
    Union,
)

CELL_KINDS = ("js", "md", "html")


@dataclass
class Cell:
    """A single cell block in a reactive notebook file.

    header_tokens: all key=value tokens from the cell fence line.
    Required: id. kind defaults to "js".
    Body: raw text between opening and closing fences (no trailing fence).
    """

    id: str
    kind: str
    body: str
    header_tokens: TOrderedDict[str, str] = field(default_factory=dict)


@dataclass
class Notebook:
    """A parsed reactive notebook.

    header_text: verbatim YAML header text starting with the %REACTNB line.
    cells: ordered list of Cell in file order.
    magic_version: parsed from the magic line (e.g., "REACTNB 1.0").
    path: optional file path origin.
    """

    header_text: str
    cells: List[Cell]
    magic_version: str = "REACTNB 1.0"
    path: Optional[str] = None

    def cell_by_id(self) -> Dict[str, Cell]:
        return {c.id: c for c in self.cells}


# ---------- Cell parse results ----------


@dataclass(frozen=True)
class Position:
    line: int  # 1-based
    column: int  # 0-based, in characters
    offset: int  # 0-based, in characters

    def to_dict(self) -> Dict[str, int]:
        return {"line": self.line, "column": self.column, "offset": self.offset}


@dataclass(frozen=True)
class CellError:
    """Serializable description of why a cell could not be parsed."""

    message: str
    position: Optional[Position] = None

    def __bool__(self) -> bool:
        return True

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} ({self.position.line}:{self.position.column})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "position": self.position.to_dict() if self.position else None,
        }


@dataclass(frozen=True)
class AssignmentStatement:
    """A definition (`x = ...`, `viewof x = ...`) or an anonymous expression.

    body is an exact slice of the cell source and is what gets evaluated.
    """

    type: ClassVar[str] = "assignment"

    name: Optional[str]
    dependencies: FrozenSet[str]
    body: str
    viewof: bool = False
    mutable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "dependencies": sorted(self.dependencies),
            "body": self.body,
            "viewof": self.viewof,
            "mutable": self.mutable,
        }


@dataclass(frozen=True)
class ImportName:
    name: str
    alias: str


@dataclass(frozen=True)
class ImportStatement:
    type: ClassVar[str] = "import"

    names: Tuple[ImportName, ...]
    urn: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "names": [{"name": n.name, "alias": n.alias} for n in self.names],
            "urn": self.urn,
        }


@dataclass(frozen=True)
class ExceptionStatement:
    type: ClassVar[str] = "exception"

    exception: CellError

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "exception": self.exception.to_dict()}


ParseResult = Union[AssignmentStatement, ImportStatement, ExceptionStatement]
