"""
Rule Engine Module

This module runs the active RuleSet over one file's tree and token stream.
Every node is visited once in document order, then every token, and each is
handed to the rules subscribed to its kind through the RuleSet dispatch
table.

A rule that raises is isolated: its failure becomes an internal-error
diagnostic and the remaining rules and targets are still evaluated.
"""

from typing import List, Optional, Sequence, Union
import logging

from .budget import WorkBudget
from .config import LintConfig
from .diagnostics import INTERNAL_ERROR, Diagnostic, Severity
from .errors import BudgetExceeded, RuleCheckError
from .lexer import Token
from .rules.base import Rule, RuleContext, RuleSet
from .tree import Node, Span

logger = logging.getLogger(__name__)


class RuleEngine:
    """
    Dispatches nodes and tokens of a file to the subscribed rules.

    The engine holds no per-file state; one instance may check many files,
    including from several threads at once.
    """

    def __init__(self, rule_set: RuleSet, config: Optional[LintConfig] = None):
        """
        Initialize the engine.

        Args:
            rule_set: Active rules, built with RuleSet.from_config
            config: Lint configuration handed to every rule context
        """
        self.rule_set = rule_set
        self.config = config or LintConfig()

    def check(self, path: str, source: str, tokens: Sequence[Token], root: Node,
              budget: Optional[WorkBudget] = None,
              sink: Optional[List[Diagnostic]] = None) -> List[Diagnostic]:
        """
        Run every active rule over one parsed file.

        Args:
            path: File path recorded on diagnostics
            source: Source text the tokens were produced from
            tokens: Lossless token list
            root: CompilationUnit from the structural parser
            budget: Work budget for this file, shared with the parser
            sink: Optional list receiving diagnostics as they are produced, so
                a caller keeps partial results when the budget runs out

        Returns:
            Diagnostics in production order (not yet deduplicated or sorted)

        Raises:
            BudgetExceeded: When the work budget runs out
        """
        diagnostics = sink if sink is not None else []
        context = RuleContext(path, source, tokens, root, self.config)
        if budget is not None:
            budget.phase = 'rules'

        for node in root.walk():
            if budget is not None:
                budget.tick()
            for rule in self.rule_set.rules_for(node.kind):
                diagnostics.extend(self._run_rule(rule, node, context, node.span))

        for token in tokens:
            rules = self.rule_set.rules_for(token.kind)
            if not rules:
                continue
            if budget is not None:
                budget.tick()
            for rule in rules:
                diagnostics.extend(self._run_rule(rule, token, context, Span.of_token(token)))

        logger.debug(f"{path}: {len(diagnostics)} diagnostics from {len(self.rule_set)} rules")
        return diagnostics

    def _run_rule(self, rule: Rule, target: Union[Node, Token], context: RuleContext,
                  span: Optional[Span]) -> List[Diagnostic]:
        try:
            return list(rule.check(target, context))
        except BudgetExceeded:
            raise
        except Exception as e:
            span = span or Span.point(0, 1, 1)
            error = RuleCheckError(rule.id, e, span.start_line, span.start_col)
            logger.error(f"{context.path}:{span.start_line}:{span.start_col}: {error}")
            return [internal_error(context.path, error, span)]


def internal_error(path: str, error: RuleCheckError, span: Span) -> Diagnostic:
    """Diagnostic recording a rule failure, tagged with the failing rule id."""
    return Diagnostic(
        rule_id=INTERNAL_ERROR,
        severity=Severity.ERROR,
        span=span,
        message=str(error),
        path=path,
        source_rule=error.rule_id,
    )
