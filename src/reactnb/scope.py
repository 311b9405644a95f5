"""Free-variable analysis over a tree-sitter JavaScript syntax tree.

Two passes: the first records every binding (parameters, var/let/const,
function and class names, catch parameters, destructuring targets) on the
node that scopes it; the second walks identifier references and resolves
each one against the scopes enclosing it.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from tree_sitter import Node

FUNCTION_SCOPES = frozenset(
    {
        "program",
        "function_declaration",
        "generator_function_declaration",
        "function_expression",
        "function",
        "generator_function",
        "arrow_function",
        "method_definition",
    }
)

BLOCK_SCOPES = FUNCTION_SCOPES | {
    "statement_block",
    "class_static_block",
    "for_statement",
    "for_in_statement",
    "switch_body",
    "catch_clause",
    "class",
}

# Functions that get an implicit `arguments` binding.
_ARGUMENTS_SCOPES = FUNCTION_SCOPES - {"program", "arrow_function"}

_REFERENCE_TYPES = frozenset({"identifier", "shorthand_property_identifier"})

NameOf = Callable[[Node], str]


@dataclass
class ScopeInfo:
    # (name, node) in document order; a name may repeat
    references: List[Tuple[str, Node]] = field(default_factory=list)
    # writes to names the tree does not bind itself
    external_assignments: List[Tuple[str, Node]] = field(default_factory=list)


def _iter_nodes(root: Node) -> Iterator[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _nearest(node: Optional[Node], kinds: frozenset) -> Optional[Node]:
    while node is not None and node.type not in kinds:
        node = node.parent
    return node


def pattern_identifiers(node: Optional[Node]) -> Iterator[Node]:
    """Yield the identifier nodes bound by a binding or assignment pattern."""
    if node is None:
        return
    kind = node.type
    if kind in ("identifier", "shorthand_property_identifier_pattern"):
        yield node
    elif kind in ("object_pattern", "array_pattern", "formal_parameters", "rest_pattern"):
        for child in node.named_children:
            yield from pattern_identifiers(child)
    elif kind == "pair_pattern":
        yield from pattern_identifiers(node.child_by_field_name("value"))
    elif kind in ("assignment_pattern", "object_assignment_pattern"):
        yield from pattern_identifiers(node.child_by_field_name("left"))


class _Bindings:
    def __init__(self, name_of: NameOf):
        self.name_of = name_of
        self.declared: Dict[int, Set[str]] = defaultdict(set)
        self.binding_ids: Set[int] = set()

    def bind(self, scope: Optional[Node], pattern: Optional[Node]) -> None:
        if scope is None:
            return
        for ident in pattern_identifiers(pattern):
            self.binding_ids.add(ident.id)
            self.declared[scope.id].add(self.name_of(ident))

    def collect(self, node: Node) -> None:
        kind = node.type
        if kind == "variable_declaration":
            scope = _nearest(node.parent, FUNCTION_SCOPES)
            for decl in node.named_children:
                if decl.type == "variable_declarator":
                    self.bind(scope, decl.child_by_field_name("name"))
        elif kind == "lexical_declaration":
            scope = _nearest(node.parent, BLOCK_SCOPES)
            for decl in node.named_children:
                if decl.type == "variable_declarator":
                    self.bind(scope, decl.child_by_field_name("name"))
        elif kind in ("function_declaration", "generator_function_declaration", "class_declaration"):
            self.bind(_nearest(node.parent, BLOCK_SCOPES), node.child_by_field_name("name"))
        elif kind in ("function_expression", "function", "generator_function", "class"):
            self.bind(node, node.child_by_field_name("name"))
        elif kind == "catch_clause":
            self.bind(node, node.child_by_field_name("parameter"))
        elif kind == "for_in_statement":
            declarator = node.child_by_field_name("kind")
            if declarator is not None:
                if declarator.type == "var":
                    scope = _nearest(node.parent, FUNCTION_SCOPES)
                else:
                    scope = node
                self.bind(scope, node.child_by_field_name("left"))

        if kind in FUNCTION_SCOPES and kind != "program":
            self.bind(node, node.child_by_field_name("parameters"))
            self.bind(node, node.child_by_field_name("parameter"))
        if kind in _ARGUMENTS_SCOPES:
            self.declared[node.id].add("arguments")

    def resolves(self, node: Node, name: str) -> bool:
        scope = node.parent
        while scope is not None:
            if name in self.declared.get(scope.id, ()):
                return True
            scope = scope.parent
        return False


def _assignment_targets(node: Node) -> Iterator[Node]:
    kind = node.type
    if kind in ("assignment_expression", "augmented_assignment_expression"):
        left = node.child_by_field_name("left")
        if left is not None and left.type == "parenthesized_expression":
            left = left.named_children[0] if left.named_children else None
        yield from pattern_identifiers(left)
    elif kind == "update_expression":
        argument = node.child_by_field_name("argument")
        if argument is not None and argument.type == "identifier":
            yield argument
    elif kind == "for_in_statement" and node.child_by_field_name("kind") is None:
        yield from pattern_identifiers(node.child_by_field_name("left"))


def analyze(root: Node, name_of: NameOf, assignable: Callable[[str], bool] = lambda name: False) -> ScopeInfo:
    """Find the free references of the tree rooted at root.

    name_of maps an identifier node to the notebook name it spells.
    assignable names may be written to even though they are not bound locally.
    """
    bindings = _Bindings(name_of)
    for node in _iter_nodes(root):
        bindings.collect(node)

    info = ScopeInfo()
    for node in _iter_nodes(root):
        if node.type in _REFERENCE_TYPES and node.id not in bindings.binding_ids:
            name = name_of(node)
            if not bindings.resolves(node, name):
                info.references.append((name, node))
            continue
        for target in _assignment_targets(node):
            name = name_of(target)
            if not bindings.resolves(target, name) and not assignable(name):
                info.external_assignments.append((name, target))
    return info
