"""
Structural Parser Module

This module builds a shallow concrete tree of declarations, blocks,
statements and query literals from the token stream. It does not resolve
types or bind identifiers; it only recovers enough structure for style
rules (declaration shapes, blank-line context, statement extents).

Parsing is driven by an explicit frame stack instead of recursive descent,
so deeply nested input cannot exhaust the Python stack, and every step ticks
the file's work budget. Unexpected tokens produce ParseError records and the
parser resumes at the next statement terminator or block boundary.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging

from .budget import WorkBudget
from .errors import ParseError
from .lexer import Token, TokenKind, COMMENT_KINDS
from .tree import Node, NodeKind, Parameter, Span

logger = logging.getLogger(__name__)

MODIFIER_WORDS = frozenset({
    'public', 'private', 'protected', 'global', 'static', 'final', 'abstract',
    'virtual', 'override', 'transient', 'testmethod', 'webservice',
})
SHARING_PREFIXES = frozenset({'with', 'without', 'inherited'})
TYPE_DECL_KEYWORDS = frozenset({'class', 'interface', 'enum'})

_UNLIMITED = 10 ** 12


@dataclass
class _Frame:
    """One level of the parser's work stack."""
    kind: str
    node: Node
    also_close: List[Node] = field(default_factory=list)
    after: Optional[str] = None
    done: bool = False


class StructuralParser:
    """
    Iterative parser producing a CompilationUnit tree.

    Frame kinds:
    - unit: top-level type declarations
    - class: members of a class or interface body
    - block: statements of a braced block
    - switch: ``when`` clauses of a ``switch on`` body
    - body: the single statement owned by if/else/while/for/do/try/catch
    """

    def __init__(self, tokens: Sequence[Token], budget: Optional[WorkBudget] = None):
        """
        Initialize the parser.

        Args:
            tokens: Full lossless token list of one file
            budget: Work budget shared with the rule engine for this file
        """
        self.tokens = tokens
        self.budget = budget or WorkBudget(_UNLIMITED)
        self.errors: List[ParseError] = []
        self._significant = [i for i, token in enumerate(tokens) if not token.is_trivia]
        self._pos = 0
        self._last = 0
        self._stack: List[_Frame] = []
        self._eof_reported = False
        self._steps: Dict[str, Callable[[_Frame], None]] = {
            'unit': self._step_unit,
            'class': self._step_class_body,
            'block': self._step_block,
            'switch': self._step_switch,
            'body': self._step_body,
        }

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def parse(self) -> Node:
        """
        Parse the token list.

        Returns:
            The CompilationUnit root. Recovered errors are left in ``errors``.

        Raises:
            BudgetExceeded: When the work budget runs out
        """
        self.budget.phase = 'parse'
        unit = Node(NodeKind.COMPILATION_UNIT)
        self._stack = [_Frame('unit', unit)]

        while self._stack:
            frame = self._stack[-1]
            self.budget.tick()
            start_pos = self._pos
            try:
                self._steps[frame.kind](frame)
            except ParseError as error:
                self._recover(error, start_pos)
                if frame.kind == 'body' and self._stack and self._stack[-1] is frame:
                    self._close_frame()

        logger.debug(f"Parsed {len(self.tokens)} tokens with {len(self.errors)} parse errors")
        return unit

    def _recover(self, error: ParseError, start_pos: int):
        """Skip to the next statement terminator or block boundary at this depth."""
        self.errors.append(error)
        logger.debug(f"Recovering from parse error at line {error.line}: {error.message}")
        depth = 0
        while not self._at_end():
            token = self._peek()
            if token.is_punct('{'):
                depth += 1
            elif token.is_punct('}'):
                if depth == 0:
                    break
                depth -= 1
                self._advance()
                if depth == 0:
                    break
                continue
            elif token.is_punct(';') and depth == 0:
                self._advance()
                break
            self._advance()
        if self._pos == start_pos and not self._at_end():
            self._advance()

    def _close_frame(self):
        frame = self._stack.pop()
        for node in [frame.node] + frame.also_close:
            self._finish(node)

    def _finish(self, node: Node, last: Optional[int] = None):
        """Fix the node's last token and compute its span."""
        if node.kind == NodeKind.COMPILATION_UNIT:
            node.first_token = 0
            node.last_token = max(0, len(self.tokens) - 1)
            if self.tokens:
                node.span = Span.of_tokens(self.tokens[0], self.tokens[-1])
            else:
                node.span = Span.point(0, 1, 1)
            return
        node.last_token = max(self._last if last is None else last, node.first_token)
        node.span = Span.of_tokens(self.tokens[node.first_token], self.tokens[node.last_token])

    # ------------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------------

    def _at_end(self) -> bool:
        return self._pos >= len(self._significant)

    def _peek(self, ahead: int = 0) -> Optional[Token]:
        index = self._pos + ahead
        if index < len(self._significant):
            return self.tokens[self._significant[index]]
        return None

    def _index(self, ahead: int = 0) -> int:
        index = self._pos + ahead
        if index < len(self._significant):
            return self._significant[index]
        return len(self.tokens) - 1

    def _advance(self) -> int:
        index = self._significant[self._pos]
        self._pos += 1
        self._last = index
        self.budget.tick()
        return index

    def _error(self, message: str) -> ParseError:
        token = self._peek()
        if token is None:
            last = self.tokens[-1] if self.tokens else None
            line, column = (last.end_line, last.end_col) if last else (1, 1)
            return ParseError(f"{message}, found end of file", len(self.tokens), line, column)
        return ParseError(f"{message}, found '{token.lexeme[:20]}'", self._index(), token.start_line, token.start_col)

    def _expect_punct(self, char: str) -> int:
        token = self._peek()
        if token is None or not token.is_punct(char):
            raise self._error(f"expected '{char}'")
        return self._advance()

    def _expect_identifier(self) -> Token:
        token = self._peek()
        if token is None or token.kind != TokenKind.IDENTIFIER:
            raise self._error("expected identifier")
        self._advance()
        return token

    def _report_eof(self, what: str):
        if not self._eof_reported:
            self._eof_reported = True
            self.errors.append(self._error(f"expected '}}' to close {what}"))

    def leading_doc_comment(self, index: int) -> Optional[Token]:
        """Doc comment separated from the token at index only by whitespace."""
        i = index - 1
        while i >= 0 and self.tokens[i].kind in (TokenKind.WHITESPACE, TokenKind.NEWLINE):
            i -= 1
        if i >= 0 and self.tokens[i].kind == TokenKind.DOC_COMMENT:
            return self.tokens[i]
        return None

    # ------------------------------------------------------------------
    # Frame steps
    # ------------------------------------------------------------------

    def _step_unit(self, frame: _Frame):
        token = self._peek()
        if token is None:
            self._close_frame()
            return
        if token.is_punct(';'):
            self._advance()
            return
        if token.is_punct('}'):
            raise self._error("unexpected closing brace")

        first = self._index()
        annotations, modifiers = self._parse_modifiers()
        token = self._peek()
        if token is not None and token.is_keyword(*TYPE_DECL_KEYWORDS):
            self._parse_type_decl(frame.node, first, annotations, modifiers)
        elif token is not None and token.is_keyword('trigger'):
            self._parse_trigger(frame.node, first, annotations, modifiers)
        else:
            raise self._error("expected class, interface, enum or trigger declaration")

    def _step_class_body(self, frame: _Frame):
        token = self._peek()
        if token is None:
            self._report_eof(f"class {frame.node.name}")
            self._close_frame()
            return
        if token.is_punct('}'):
            self._advance()
            self._close_frame()
            return
        if token.is_punct(';'):
            self._advance()
            return

        first = self._index()
        annotations, modifiers = self._parse_modifiers()
        token = self._peek()
        if token is None:
            raise self._error("expected member declaration")

        if token.is_keyword(*TYPE_DECL_KEYWORDS):
            self._parse_type_decl(frame.node, first, annotations, modifiers)
            return

        if token.is_punct('{'):
            block = Node(NodeKind.BLOCK, modifiers=tuple(modifiers), first_token=first)
            self._advance()
            frame.node.add(block)
            self._stack.append(_Frame('block', block))
            return

        self._parse_member(frame.node, first, annotations, modifiers)

    def _step_block(self, frame: _Frame):
        token = self._peek()
        if token is None:
            self._report_eof("block")
            self._close_frame()
            return
        if token.is_punct('}'):
            self._advance()
            self._close_frame()
            return
        self._parse_statement(frame.node)

    def _step_switch(self, frame: _Frame):
        token = self._peek()
        if token is None:
            self._report_eof("switch")
            self._close_frame()
            return
        if token.is_punct('}'):
            self._advance()
            self._close_frame()
            return
        if not token.is_keyword('when'):
            raise self._error("expected 'when'")

        first = self._advance()
        clause = Node(NodeKind.STATEMENT, keyword='when', first_token=first)
        values = Node(NodeKind.EXPRESSION, first_token=self._index())
        value_start = self._pos
        self._scan_until(('{',), values)
        if self._pos > value_start:
            self._finish(values)
            clause.add(values)
        block = Node(NodeKind.BLOCK, first_token=self._expect_punct('{'))
        clause.add(block)
        frame.node.add(clause)
        self._stack.append(_Frame('block', block, also_close=[clause]))

    def _step_body(self, frame: _Frame):
        if not frame.done:
            frame.done = True
            if self._at_end():
                self.errors.append(self._error(f"expected statement after '{frame.node.keyword}'"))
                self._close_frame()
                return
            self._parse_statement(frame.node)
            return

        token = self._peek()
        if frame.after == 'else' and token is not None and token.is_keyword('else'):
            self._advance()
            frame.after = None
            frame.done = False
            return

        if frame.after == 'while':
            if token is None or not token.is_keyword('while'):
                raise self._error("expected 'while' after do body")
            self._advance()
            frame.node.add(self._parse_condition())
            self._expect_punct(';')
            self._close_frame()
            return

        if frame.after == 'catch' and token is not None:
            if token.is_keyword('catch'):
                self._advance()
                frame.node.add(self._parse_condition())
                self._require_block()
                frame.done = False
                return
            if token.is_keyword('finally'):
                self._advance()
                self._require_block()
                frame.after = None
                frame.done = False
                return

        self._close_frame()

    def _require_block(self):
        token = self._peek()
        if token is None or not token.is_punct('{'):
            raise self._error("expected '{'")

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _parse_modifiers(self) -> Tuple[List[str], List[str]]:
        annotations: List[str] = []
        modifiers: List[str] = []
        while True:
            token = self._peek()
            if token is None:
                break
            if token.kind == TokenKind.ANNOTATION:
                self._advance()
                annotations.append(token.lexeme[1:].lower())
                following = self._peek()
                if following is not None and following.is_punct('('):
                    self._skip_balanced('(', ')')
            elif token.kind == TokenKind.KEYWORD and token.lower in MODIFIER_WORDS:
                self._advance()
                modifiers.append(token.lower)
            elif token.kind == TokenKind.KEYWORD and token.lower in SHARING_PREFIXES:
                following = self._peek(1)
                if following is None or not following.is_keyword('sharing'):
                    break
                self._advance()
                self._advance()
                modifiers.append(f"{token.lower} sharing")
            else:
                break
        return annotations, modifiers

    def _parse_type_decl(self, parent: Node, first: int, annotations: List[str], modifiers: List[str]):
        keyword = self.tokens[self._advance()].lower
        name = self._expect_identifier()
        kind = NodeKind.INTERFACE_DECL if keyword == 'interface' else NodeKind.CLASS_DECL
        node = Node(kind, name=name.lexeme, modifiers=tuple(modifiers), annotations=tuple(annotations),
                    keyword=keyword, first_token=first,
                    doc_comment=self.leading_doc_comment(first))
        node.declarators.append(name)

        implements: List[str] = []
        while True:
            token = self._peek()
            if token is not None and token.is_keyword('extends'):
                self._advance()
                node.extends = self._parse_type()
                while self._peek() is not None and self._peek().is_punct(','):
                    self._advance()
                    implements.append(self._parse_type())
            elif token is not None and token.is_keyword('implements'):
                self._advance()
                implements.append(self._parse_type())
                while self._peek() is not None and self._peek().is_punct(','):
                    self._advance()
                    implements.append(self._parse_type())
            else:
                break
        node.implements = tuple(implements)

        self._expect_punct('{')
        if keyword == 'enum':
            self._skip_to_close()
            parent.add(node)
            self._finish(node)
            return
        parent.add(node)
        self._stack.append(_Frame('class', node))

    def _parse_trigger(self, parent: Node, first: int, annotations: List[str], modifiers: List[str]):
        self._advance()
        name = self._expect_identifier()
        node = Node(NodeKind.CLASS_DECL, name=name.lexeme, modifiers=tuple(modifiers),
                    annotations=tuple(annotations), keyword='trigger', first_token=first,
                    doc_comment=self.leading_doc_comment(first))
        node.declarators.append(name)
        token = self._peek()
        if token is None or not token.is_keyword('on'):
            raise self._error("expected 'on' in trigger declaration")
        self._advance()
        node.extends = self._parse_type()
        node.add(self._parse_condition())
        block = Node(NodeKind.BLOCK, first_token=self._expect_punct('{'))
        node.add(block)
        parent.add(node)
        self._stack.append(_Frame('block', block, also_close=[node]))

    def _parse_member(self, parent: Node, first: int, annotations: List[str], modifiers: List[str]):
        token = self._peek()
        following = self._peek(1)
        doc = self.leading_doc_comment(first)

        if token.kind == TokenKind.IDENTIFIER and following is not None and following.is_punct('('):
            type_ref = None
        else:
            type_ref = self._parse_type()
        name = self._expect_identifier()
        token = self._peek()

        if token is not None and token.is_punct('('):
            method = Node(NodeKind.METHOD_DECL, name=name.lexeme, modifiers=tuple(modifiers),
                          annotations=tuple(annotations), type_ref=type_ref, first_token=first,
                          doc_comment=doc)
            method.declarators.append(name)
            method.parameters = self._parse_parameters()
            token = self._peek()
            if token is not None and token.is_punct(';'):
                self._advance()
                parent.add(method)
                self._finish(method)
                return
            if token is None or not token.is_punct('{'):
                raise self._error("expected '{' or ';' after method signature")
            body = Node(NodeKind.BLOCK, first_token=self._advance())
            method.add(body)
            parent.add(method)
            self._stack.append(_Frame('block', body, also_close=[method]))
            return

        if type_ref is None:
            raise self._error("expected member declaration")

        declaration = Node(NodeKind.FIELD_DECL, name=name.lexeme, modifiers=tuple(modifiers),
                           annotations=tuple(annotations), type_ref=type_ref, first_token=first,
                           doc_comment=doc)
        declaration.declarators.append(name)
        if token is not None and token.is_punct('{'):
            # property accessors
            self._advance()
            self._skip_to_close()
        else:
            self._parse_declarators(declaration)
        parent.add(declaration)
        self._finish(declaration)

    def _parse_declarators(self, declaration: Node):
        """Parse ``[= init] (, name [= init])* ;`` after the first name."""
        while True:
            token = self._peek()
            if token is not None and token.kind == TokenKind.OPERATOR and token.lexeme == '=':
                self._advance()
                self._scan_until((',', ';'), declaration)
                token = self._peek()
            if token is not None and token.is_punct(','):
                self._advance()
                declaration.declarators.append(self._expect_identifier())
                continue
            self._expect_punct(';')
            return

    def _parse_parameters(self) -> List[Parameter]:
        self._expect_punct('(')
        parameters: List[Parameter] = []
        token = self._peek()
        if token is not None and token.is_punct(')'):
            self._advance()
            return parameters
        while True:
            self._parse_modifiers()
            type_ref = self._parse_type()
            name = self._expect_identifier()
            parameters.append(Parameter(type_ref, name.lexeme, name))
            token = self._peek()
            if token is not None and token.is_punct(','):
                self._advance()
                continue
            self._expect_punct(')')
            return parameters

    def _parse_type(self) -> str:
        """Consume a type reference and return its normalized text."""
        token = self._peek()
        if token is None or not (token.kind == TokenKind.IDENTIFIER or token.is_keyword('void')):
            raise self._error("expected type")
        self._advance()
        text = [token.lexeme]

        while True:
            token, following = self._peek(), self._peek(1)
            if token is not None and token.is_punct('.') and following is not None \
                    and following.kind == TokenKind.IDENTIFIER:
                self._advance()
                self._advance()
                text.append('.' + following.lexeme)
            else:
                break

        token = self._peek()
        if token is not None and token.kind == TokenKind.OPERATOR and token.lexeme == '<':
            depth = 0
            while True:
                token = self._peek()
                if token is None:
                    raise self._error("unterminated type arguments")
                if token.kind == TokenKind.OPERATOR and token.lexeme == '<':
                    depth += 1
                    text.append('<')
                elif token.kind == TokenKind.OPERATOR and token.lexeme == '>':
                    depth -= 1
                    text.append('>')
                elif token.is_punct(','):
                    text.append(', ')
                elif token.kind == TokenKind.IDENTIFIER or token.is_punct('.', '[', ']'):
                    text.append(token.lexeme)
                else:
                    raise self._error("unexpected token in type arguments")
                self._advance()
                if depth == 0:
                    break

        while True:
            token, following = self._peek(), self._peek(1)
            if token is not None and token.is_punct('[') and following is not None and following.is_punct(']'):
                self._advance()
                self._advance()
                text.append('[]')
            else:
                break
        return ''.join(text)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _parse_statement(self, parent: Node):
        token = self._peek()
        first = self._index()

        if token.is_punct('{'):
            block = Node(NodeKind.BLOCK, first_token=self._advance())
            parent.add(block)
            self._stack.append(_Frame('block', block))
            return

        if token.is_punct(';'):
            self._advance()
            statement = parent.add(Node(NodeKind.STATEMENT, first_token=first))
            self._finish(statement)
            return

        keyword = token.lower if token.kind == TokenKind.KEYWORD else None

        if keyword in ('if', 'while', 'for'):
            self._advance()
            statement = Node(NodeKind.STATEMENT, keyword=keyword, first_token=first)
            statement.add(self._parse_condition())
            parent.add(statement)
            self._stack.append(_Frame('body', statement, after='else' if keyword == 'if' else None))
            return

        if keyword in ('do', 'try'):
            self._advance()
            if keyword == 'try':
                self._require_block()
            statement = parent.add(Node(NodeKind.STATEMENT, keyword=keyword, first_token=first))
            self._stack.append(_Frame('body', statement, after='while' if keyword == 'do' else 'catch'))
            return

        if keyword == 'switch':
            self._parse_switch(parent, first)
            return

        if self._looks_like_declaration():
            self._parse_local_declaration(parent, first)
            return

        statement = Node(NodeKind.STATEMENT, keyword=keyword, first_token=first)
        self._scan_until((';',), statement)
        self._expect_punct(';')
        parent.add(statement)
        self._finish(statement)

    def _parse_switch(self, parent: Node, first: int):
        self._advance()
        token = self._peek()
        if token is None or not token.is_keyword('on'):
            raise self._error("expected 'on' after 'switch'")
        self._advance()
        statement = Node(NodeKind.STATEMENT, keyword='switch', first_token=first)
        subject = Node(NodeKind.EXPRESSION, first_token=self._index())
        subject_start = self._pos
        self._scan_until(('{',), subject)
        if self._pos == subject_start:
            raise self._error("expected switch subject")
        self._finish(subject)
        statement.add(subject)
        block = Node(NodeKind.BLOCK, first_token=self._expect_punct('{'))
        statement.add(block)
        parent.add(statement)
        self._stack.append(_Frame('switch', block, also_close=[statement]))

    def _looks_like_declaration(self) -> bool:
        """Speculatively check for ``[final] Type name (=|;|,)``."""
        saved_pos, saved_last = self._pos, self._last
        try:
            token = self._peek()
            if token is not None and token.is_keyword('final'):
                self._advance()
            self._parse_type()
            name, following = self._peek(), self._peek(1)
            return (name is not None and name.kind == TokenKind.IDENTIFIER and following is not None
                    and (following.is_punct(';', ',') or
                         (following.kind == TokenKind.OPERATOR and following.lexeme == '=')))
        except ParseError:
            return False
        finally:
            self._pos, self._last = saved_pos, saved_last

    def _parse_local_declaration(self, parent: Node, first: int):
        modifiers = []
        token = self._peek()
        if token.is_keyword('final'):
            self._advance()
            modifiers.append('final')
        type_ref = self._parse_type()
        name = self._expect_identifier()
        declaration = Node(NodeKind.VARIABLE_DECL, name=name.lexeme, modifiers=tuple(modifiers),
                           type_ref=type_ref, first_token=first)
        declaration.declarators.append(name)
        self._parse_declarators(declaration)
        parent.add(declaration)
        self._finish(declaration)

    def _parse_condition(self) -> Node:
        """Parse a parenthesised header into an EXPRESSION node."""
        open_index = self._expect_punct('(')
        expression = Node(NodeKind.EXPRESSION, first_token=open_index)
        depth = 1
        while depth:
            token = self._peek()
            if token is None:
                raise self._error("expected ')'")
            if token.is_punct('(', '[', '{'):
                depth += 1
            elif token.is_punct(')', ']', '}'):
                depth -= 1
            elif token.kind == TokenKind.QUERY:
                self._add_query(expression)
            self._advance()
        self._finish(expression)
        return expression

    def _scan_until(self, stops: Tuple[str, ...], owner: Node):
        """Consume an expression up to a stop punctuation at depth zero."""
        depth = 0
        while True:
            token = self._peek()
            if token is None:
                raise self._error(f"expected '{stops[-1]}'")
            if depth == 0 and token.kind == TokenKind.PUNCTUATION and token.lexeme in stops:
                return
            if token.is_punct('(', '[', '{'):
                depth += 1
            elif token.is_punct(')', ']', '}'):
                if depth == 0:
                    raise self._error(f"expected '{stops[-1]}'")
                depth -= 1
            elif token.kind == TokenKind.QUERY:
                self._add_query(owner)
            elif token.is_keyword('new'):
                self._advance()
                following = self._peek()
                if following is not None and following.kind == TokenKind.IDENTIFIER:
                    self._parse_type()
                continue
            self._advance()

    def _add_query(self, owner: Node):
        index = self._index()
        query = Node(NodeKind.QUERY_LITERAL, first_token=index, last_token=index,
                     span=Span.of_token(self.tokens[index]))
        owner.add(query)

    def _skip_balanced(self, open_char: str, close_char: str):
        depth = 0
        while True:
            token = self._peek()
            if token is None:
                raise self._error(f"expected '{close_char}'")
            self._advance()
            if token.is_punct(open_char):
                depth += 1
            elif token.is_punct(close_char):
                depth -= 1
                if depth == 0:
                    return

    def _skip_to_close(self):
        """Skip past the '}' matching an already consumed '{'."""
        depth = 1
        while depth:
            token = self._peek()
            if token is None:
                raise self._error("expected '}'")
            if token.is_punct('{'):
                depth += 1
            elif token.is_punct('}'):
                depth -= 1
            self._advance()


def parse(tokens: Sequence[Token], budget: Optional[WorkBudget] = None) -> Tuple[Node, List[ParseError]]:
    """
    Parse tokens into a tree.

    Returns:
        Tuple of (CompilationUnit root, recovered parse errors)
    """
    parser = StructuralParser(tokens, budget)
    root = parser.parse()
    return root, parser.errors


def comment_tokens_between(tokens: Sequence[Token], start: int, end: int) -> List[Token]:
    """Comment tokens strictly between two token indices."""
    return [token for token in tokens[start + 1:end] if token.kind in COMMENT_KINDS]
