"""
Structural Tree Module

Shallow concrete tree produced by the structural parser. Nodes keep the
token index range they cover, so rules can go back to the exact tokens
(including whitespace) behind any declaration or statement.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from .lexer import Token


class NodeKind(Enum):
    """Node variants of the structural tree."""
    COMPILATION_UNIT = "compilation_unit"
    CLASS_DECL = "class_decl"
    INTERFACE_DECL = "interface_decl"
    METHOD_DECL = "method_decl"
    FIELD_DECL = "field_decl"
    VARIABLE_DECL = "variable_decl"
    BLOCK = "block"
    STATEMENT = "statement"
    EXPRESSION = "expression"
    QUERY_LITERAL = "query_literal"


TYPE_DECL_KINDS = frozenset({NodeKind.CLASS_DECL, NodeKind.INTERFACE_DECL})
VISIBILITY_ORDER = ('global', 'public', 'protected', 'private')


@dataclass(frozen=True, order=True)
class Span:
    """Source range. Columns are 1-based with an exclusive end column."""
    start_offset: int
    end_offset: int
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    @classmethod
    def of_tokens(cls, first: Token, last: Token) -> 'Span':
        return cls(first.offset, last.end_offset, first.start_line, first.start_col,
                   last.end_line, last.end_col)

    @classmethod
    def of_token(cls, token: Token) -> 'Span':
        return cls.of_tokens(token, token)

    @classmethod
    def point(cls, offset: int, line: int, column: int) -> 'Span':
        return cls(offset, offset, line, column, line, column)

    def contains(self, other: 'Span') -> bool:
        return self.start_offset <= other.start_offset and other.end_offset <= self.end_offset

    def overlaps(self, other: 'Span') -> bool:
        return self.start_offset < other.end_offset and other.start_offset < self.end_offset


@dataclass
class Parameter:
    """A declared method parameter."""
    type_ref: str
    name: str
    name_token: Token


@dataclass
class Node:
    """
    A node of the structural tree.

    ``first_token`` and ``last_token`` are inclusive indices into the full
    token list of the file; ``span`` covers exactly those tokens.
    """
    kind: NodeKind
    name: Optional[str] = None
    modifiers: Tuple[str, ...] = ()
    annotations: Tuple[str, ...] = ()
    type_ref: Optional[str] = None
    children: List['Node'] = field(default_factory=list)
    doc_comment: Optional[Token] = None
    span: Optional[Span] = None
    first_token: int = 0
    last_token: int = 0
    parameters: List[Parameter] = field(default_factory=list)
    declarators: List[Token] = field(default_factory=list)
    keyword: Optional[str] = None
    extends: Optional[str] = None
    implements: Tuple[str, ...] = ()
    parent: Optional['Node'] = field(default=None, repr=False, compare=False)

    def add(self, child: 'Node') -> 'Node':
        child.parent = self
        self.children.append(child)
        return child

    @property
    def visibility(self) -> str:
        for level in VISIBILITY_ORDER:
            if level in self.modifiers:
                return level
        if self.parent is not None and self.parent.kind == NodeKind.INTERFACE_DECL:
            return self.parent.visibility
        return 'private'

    @property
    def is_constant(self) -> bool:
        return self.kind == NodeKind.FIELD_DECL and 'static' in self.modifiers and 'final' in self.modifiers

    @property
    def is_constructor(self) -> bool:
        return self.kind == NodeKind.METHOD_DECL and self.type_ref is None

    @property
    def is_test(self) -> bool:
        return 'istest' in self.annotations or 'testmethod' in self.modifiers

    def enclosing(self, *kinds: NodeKind) -> Optional['Node']:
        """Closest ancestor of one of the given kinds."""
        node = self.parent
        while node is not None:
            if node.kind in kinds:
                return node
            node = node.parent
        return None

    def walk(self) -> Iterator['Node']:
        """Pre-order traversal without recursion."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def __repr__(self):
        where = f"{self.span.start_line}:{self.span.start_col}" if self.span else "?"
        return f"Node({self.kind.name}, name={self.name!r}, at={where}, children={len(self.children)})"
