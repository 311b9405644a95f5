"""Notebook cell grammar on top of tree-sitter-javascript.

A cell is one of:

    [viewof|mutable] name = expression
    [viewof|mutable] name = { block }
    expression | { block }
    function name(...) { ... } | class Name { ... }
    import { a as b, c } from "urn"

tree-sitter parses plain JavaScript, so the cell head (`viewof name =`) is
scanned here and blanked out before the rest is handed to tree-sitter, and
`viewof x` / `mutable x` references are rewritten to same-length identifiers
(`viewof$x`). Every character keeps its offset, so positions reported by the
tree map straight back onto the original source.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import tree_sitter_javascript
from tree_sitter import Language, Node, Parser

from .scope import analyze

JS_LANGUAGE = Language(tree_sitter_javascript.language())

RESERVED_WORDS = frozenset(
    """
    await break case catch class const continue debugger default delete do
    else enum export extends false finally for function if implements import
    in instanceof interface let new null package private protected public
    return static super switch this throw true try typeof var void while with
    yield
    """.split()
)

_EXTRAS = frozenset({"comment", "html_comment"})

_DECLARATIONS = frozenset(
    {"function_declaration", "generator_function_declaration", "class_declaration"}
)

_TRIVIA = re.compile(r"(?:[\s\ufeff]+|//[^\n]*|/\*.*?\*/)*", re.S)
_HEAD = re.compile(r"(?:(viewof|mutable)\s+)?((?:[^\W\d]|\$)[\w$]*)\s*=(?![=>])")
_QUALIFIED_REFERENCE = re.compile(
    r"(?<![\w$.])(viewof|mutable)([ \t]+)(?!(?:in|instanceof|of)(?![\w$]))(?=[^\W\d]|\$)"
)


class CellSyntaxError(ValueError):
    """The cell source does not match the cell grammar.

    offset is a character offset into the cell source.
    """

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.offset = offset


@dataclass(frozen=True)
class ImportTree:
    specifiers: Tuple[Tuple[str, str], ...]  # (imported, local)
    source: str  # module literal without its quotes


@dataclass(frozen=True)
class DefinitionTree:
    name: Optional[str]
    qualifier: Optional[str]  # "viewof" | "mutable" | None
    references: Tuple[str, ...]  # document order, may repeat
    start: int  # body span, character offsets
    end: int


CellTree = Union[ImportTree, DefinitionTree]


class _Text:
    """A masked copy of the source plus the offset bookkeeping for it."""

    def __init__(self, source: str, masked: str, qualified: Dict[int, Tuple[str, int]]):
        self.source = source
        self.masked = masked
        self.data = masked.encode("utf-8")
        self.qualified = qualified
        self._ascii = len(self.data) == len(masked)

    def char(self, byte_offset: int) -> int:
        if self._ascii:
            return byte_offset
        return len(self.data[:byte_offset].decode("utf-8", errors="ignore"))

    def span(self, node: Node) -> Tuple[int, int]:
        return self.char(node.start_byte), self.char(node.end_byte)

    def slice(self, node: Node) -> str:
        start, end = self.span(node)
        return self.source[start:end]

    def name_of(self, node: Node) -> str:
        start, end = self.span(node)
        if start in self.qualified:
            qualifier, gap = self.qualified[start]
            return f"{qualifier} {self.source[start + len(qualifier) + gap:end]}"
        return self.source[start:end]


def _mask(source: str) -> Tuple[str, Dict[int, Tuple[str, int]]]:
    qualified: Dict[int, Tuple[str, int]] = {}

    def repl(m: re.Match) -> str:
        qualified[m.start()] = (m.group(1), len(m.group(2)))
        return m.group(1) + "$" * len(m.group(2))

    # a byte order mark is whitespace to a cell but not to tree-sitter
    return _QUALIFIED_REFERENCE.sub(repl, source).replace("\ufeff", " "), qualified


def _first_leaf(node: Node) -> Node:
    while node.children:
        node = node.children[0]
    return node


def _syntax_error(root: Node, text: _Text) -> CellSyntaxError:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_missing:
            return CellSyntaxError(f"Expected {node.type}", text.char(node.start_byte))
        if node.type == "ERROR":
            offset = text.char(node.start_byte)
            if not text.source[offset:].strip():
                return CellSyntaxError("Unexpected end of input", offset)
            return _unexpected(_first_leaf(node), text)
        if node.has_error:
            stack.extend(reversed(node.children))
    return CellSyntaxError("Invalid syntax", 0)


def _unexpected(node: Node, text: _Text) -> CellSyntaxError:
    offset = text.char(node.start_byte)
    token = text.slice(node).split("\n", 1)[0][:20] or text.source[offset:offset + 1]
    if not token.strip():
        return CellSyntaxError("Unexpected end of input", offset)
    return CellSyntaxError(f"Unexpected token '{token}'", offset)


def _statements(root: Node) -> List[Node]:
    return [
        child
        for child in root.named_children
        if child.type not in _EXTRAS and child.type != "empty_statement"
    ]


def _reject_jsx(root: Node, text: _Text) -> None:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type.startswith("jsx_"):
            raise _unexpected(_first_leaf(node), text)
        stack.extend(node.children)


def _import(stmt: Node, text: _Text) -> ImportTree:
    clauses = [c for c in stmt.named_children if c.type not in _EXTRAS and c.type != "string"]
    clause = clauses[0] if len(clauses) == 1 and clauses[0].type == "import_clause" else None
    if clause is None or [c.type for c in clause.named_children] != ["named_imports"]:
        raise CellSyntaxError("Only named imports are supported", text.char(stmt.start_byte))

    specifiers: List[Tuple[str, str]] = []
    seen = set()
    for spec in clause.named_children[0].named_children:
        if spec.type != "import_specifier":
            continue
        imported = spec.child_by_field_name("name")
        local = spec.child_by_field_name("alias") or imported
        for ident in (imported, local):
            if ident.type != "identifier":
                raise _unexpected(ident, text)
        alias = text.name_of(local)
        if alias in seen:
            raise CellSyntaxError(
                f"Identifier '{alias}' has already been declared", text.char(local.start_byte)
            )
        seen.add(alias)
        specifiers.append((text.name_of(imported), alias))

    literal = stmt.child_by_field_name("source")
    start, end = text.span(literal)
    return ImportTree(specifiers=tuple(specifiers), source=text.source[start + 1:end - 1])


def _body_node(stmt: Node, text: _Text) -> Node:
    if stmt.type == "expression_statement":
        return next(c for c in stmt.named_children if c.type not in _EXTRAS)
    if stmt.type == "statement_block" or stmt.type in _DECLARATIONS:
        return stmt
    raise _unexpected(_first_leaf(stmt), text)


def parse_cell(source: str) -> CellTree:
    """Parse one cell's source; raise CellSyntaxError when it is not a cell."""
    start = _TRIVIA.match(source).end()
    if start == len(source):
        raise CellSyntaxError("Empty cell", 0)

    name: Optional[str] = None
    qualifier: Optional[str] = None
    head = _HEAD.match(source, start)
    if head is not None:
        qualifier, name = head.group(1), head.group(2)
        if name in RESERVED_WORDS:
            raise CellSyntaxError(f"Unexpected keyword '{name}'", head.start(2))
        body_start = _TRIVIA.match(source, head.end()).end()
        if body_start == len(source):
            raise CellSyntaxError("Unexpected end of input", body_start)

    masked, qualified = _mask(source)
    if head is not None:
        masked = masked[:start] + " " * (body_start - start) + masked[body_start:]
        qualified = {k: v for k, v in qualified.items() if k >= body_start}
    text = _Text(source, masked, qualified)

    tree = Parser(JS_LANGUAGE).parse(text.data)
    root = tree.root_node
    if root.has_error:
        raise _syntax_error(root, text)
    _reject_jsx(root, text)

    statements = _statements(root)
    if not statements:
        raise CellSyntaxError("Empty cell", 0)
    if len(statements) > 1:
        raise _unexpected(_first_leaf(statements[1]), text)
    stmt = statements[0]

    if stmt.type == "import_statement" and head is None:
        return _import(stmt, text)

    body = _body_node(stmt, text)
    if head is None and body.type in _DECLARATIONS:
        name = text.name_of(body.child_by_field_name("name"))

    info = analyze(root, text.name_of, assignable=lambda n: n.startswith("mutable "))
    if info.external_assignments:
        assigned, node = info.external_assignments[0]
        raise CellSyntaxError(
            f"Assignment to external variable '{assigned}'", text.char(node.start_byte)
        )

    body_start, body_end = text.span(body)
    return DefinitionTree(
        name=name,
        qualifier=qualifier,
        references=tuple(ref for ref, _ in info.references),
        start=body_start,
        end=body_end,
    )
