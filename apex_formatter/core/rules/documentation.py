"""
Documentation Rules

Doc-comment presence and completeness for declarations whose visibility
requires documentation.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List

from ..diagnostics import Diagnostic, Severity
from ..tree import Node, NodeKind, Span
from .base import Rule, RuleCategory, RuleContext

_TAG_RE = re.compile(r'(?:^|(?<=/\*\*))[ \t*]*@([A-Za-z]+)[ \t]*([^\s*]*)', re.MULTILINE)


@dataclass
class DocTag:
    """A ``@name argument`` tag with its offset inside the comment text."""
    name: str
    argument: str
    offset: int
    length: int


@dataclass
class DocComment:
    description: str
    tags: List[DocTag] = field(default_factory=list)

    def tags_named(self, *names: str) -> List[DocTag]:
        return [tag for tag in self.tags if tag.name in names]


def _clean(segment: str) -> str:
    """Drop comment delimiters and leading asterisks, collapse to one line."""
    segment = segment.replace('/**', '').replace('*/', '')
    lines = [line.strip().lstrip('*').strip() for line in segment.splitlines()]
    return ' '.join(line for line in lines if line)


def parse_doc_comment(text: str) -> DocComment:
    """
    Split a doc comment into its free-text description and its tags.

    An ``@description`` tag counts as the description when the comment has
    no leading free text.

    Args:
        text: Raw doc comment including ``/**`` and ``*/``

    Returns:
        DocComment with tag offsets relative to the start of text
    """
    matches = list(_TAG_RE.finditer(text))
    tags = []
    for match in matches:
        start = match.start(1) - 1
        tags.append(DocTag(match.group(1).lower(), match.group(2), start, match.end(1) - start))

    description = _clean(text[:tags[0].offset] if tags else text)
    if not description:
        for i, match in enumerate(matches):
            if tags[i].name == 'description':
                end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
                description = _clean(text[match.end(1):end])
                break
    return DocComment(description, tags)


class DocCommentRule(Rule):
    """
    Visible declarations carry a doc comment with a description, one
    ``@param`` per parameter and ``@return`` only for non-void methods.
    """
    id = 'doc-comment'
    description = 'Visible declarations have a doc comment with description, @param tags and a valid @return'
    category = RuleCategory.DOCUMENTATION
    applies_to = frozenset({NodeKind.CLASS_DECL, NodeKind.INTERFACE_DECL, NodeKind.METHOD_DECL,
                            NodeKind.FIELD_DECL})
    default_severity = Severity.ERROR

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        if node.keyword == 'trigger' or not node.declarators:
            return
        if node.visibility not in context.config.doc_required_for:
            return

        what = self._describe(node)
        doc = node.doc_comment
        name_span = Span.of_token(node.declarators[0])

        if doc is None:
            yield self.report(context, name_span, f"{what} has no doc comment description")
            for parameter in node.parameters:
                yield self.report(context, Span.of_token(parameter.name_token),
                                  f"{what} has no @param tag for '{parameter.name}'")
            return

        parsed = parse_doc_comment(doc.lexeme)
        if not parsed.description:
            yield self.report(context, Span.of_token(doc), f"doc comment of {what} has no description")

        if node.kind != NodeKind.METHOD_DECL:
            return

        documented = {}
        for tag in parsed.tags_named('param'):
            documented.setdefault(tag.argument.lower(), tag)
        declared = {parameter.name.lower() for parameter in node.parameters}

        for parameter in node.parameters:
            if parameter.name.lower() not in documented:
                yield self.report(context, Span.of_token(parameter.name_token),
                                  f"doc comment of {what} has no @param tag for '{parameter.name}'")
        for name, tag in documented.items():
            if name not in declared:
                label = tag.argument or '(unnamed)'
                yield self.report(context, self._tag_span(context, doc.offset, tag),
                                  f"doc comment of {what} documents unknown parameter '{label}'")

        returns_value = node.type_ref is not None and node.type_ref.lower() != 'void'
        if not returns_value:
            for tag in parsed.tags_named('return', 'returns'):
                yield self.report(context, self._tag_span(context, doc.offset, tag),
                                  f"doc comment of {what} has a @{tag.name} tag but it returns nothing")

    @staticmethod
    def _describe(node: Node) -> str:
        if node.kind == NodeKind.METHOD_DECL:
            return f"constructor '{node.name}'" if node.is_constructor else f"method '{node.name}'"
        if node.kind == NodeKind.FIELD_DECL:
            return f"field '{node.name}'"
        return f"{node.keyword or 'class'} '{node.name}'"

    @staticmethod
    def _tag_span(context: RuleContext, doc_offset: int, tag: DocTag) -> Span:
        start = doc_offset + tag.offset
        return context.span_at(start, start + tag.length)