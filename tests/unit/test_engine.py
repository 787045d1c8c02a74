"""
Unit tests for the rule engine and rule set.

These tests cover:
- Rule selection and dispatch
- Isolation of crashing rules
- Severity overrides
- Work budget handling with partial results
"""

import pytest

from apex_formatter.core.budget import WorkBudget
from apex_formatter.core.config import LintConfig
from apex_formatter.core.diagnostics import INTERNAL_ERROR, Diagnostic, Severity, TextEdit
from apex_formatter.core.engine import RuleEngine
from apex_formatter.core.errors import BudgetExceeded, ConfigError
from apex_formatter.core.lexer import TokenKind, tokenize
from apex_formatter.core.parser import parse
from apex_formatter.core.rules import BUILTIN_RULES, BUILTIN_RULE_IDS, create_rule_set
from apex_formatter.core.rules.base import Rule, RuleCategory, RuleSet
from apex_formatter.core.rules.naming import ClassNameRule, MethodNameRule
from apex_formatter.core.tree import NodeKind, Span

SOURCE = (
    "public class HomePageCtrl {\n"
    "    public void run() {\n"
    "    }\n"
    "\n"
    "    public void stop() {\n"
    "    }\n"
    "}\n"
)


class CrashingRule(Rule):
    id = 'crashing-rule'
    category = RuleCategory.NAMING
    applies_to = frozenset({NodeKind.METHOD_DECL})

    def check(self, node, context):
        raise ValueError("boom")


class TokenCounterRule(Rule):
    id = 'token-counter'
    applies_to = frozenset({TokenKind.IDENTIFIER})

    def check(self, token, context):
        if token.lexeme == 'HomePageCtrl':
            yield self.report(context, Span.of_token(token), "seen")


def run_engine(rules, source=SOURCE, config=None, budget=None, sink=None):
    tokens = tokenize(source)
    root, _ = parse(tokens)
    engine = RuleEngine(RuleSet(rules), config or LintConfig())
    return engine.check('Sample.cls', source, tokens, root, budget, sink)


class TestRuleSet:
    """Test rule selection and dispatch."""

    def test_catalogue_ids_are_unique(self):
        """Every built-in rule has its own id."""
        assert len(set(BUILTIN_RULE_IDS)) == len(BUILTIN_RULES) == 21

    def test_all_rules_active_by_default(self):
        """Without activeRules every rule runs, in catalogue order."""
        assert create_rule_set().ids == BUILTIN_RULE_IDS

    def test_active_rules_selection(self):
        """activeRules restricts the rule set."""
        rule_set = create_rule_set(LintConfig(active_rules=frozenset({'method-name', 'class-name'})))
        assert rule_set.ids == ('class-name', 'method-name')

    def test_severity_off_disables_rule(self):
        """A rule turned off is not instantiated."""
        rule_set = create_rule_set(LintConfig(severity={'line-length': 'off'}))
        assert 'line-length' not in rule_set
        assert len(rule_set) == 20

    def test_unknown_rule_rejected(self):
        """Unknown ids are a configuration error."""
        with pytest.raises(ConfigError):
            create_rule_set(LintConfig(active_rules=frozenset({'no-such-rule'})))

    def test_dispatch_table(self):
        """Rules are found by the kinds they subscribe to."""
        rule_set = RuleSet([ClassNameRule(), MethodNameRule(), TokenCounterRule()])
        assert [r.id for r in rule_set.rules_for(NodeKind.CLASS_DECL)] == ['class-name']
        assert [r.id for r in rule_set.rules_for(TokenKind.IDENTIFIER)] == ['token-counter']
        assert rule_set.rules_for(NodeKind.BLOCK) == ()

    def test_duplicates_collapse(self):
        """A rule id appears once."""
        assert len(RuleSet([ClassNameRule(), ClassNameRule()])) == 1

    def test_rule_without_id(self):
        """Rules must declare an id."""
        with pytest.raises(TypeError):
            RuleSet([Rule()])

    def test_only_safe_categories_fix(self):
        """Rules outside whitespace and blank lines never return edits."""
        rule = ClassNameRule()
        rule.fixable = True
        edit = TextEdit(0, 1, ' ', 'class-name')
        diagnostic = Diagnostic('class-name', Severity.WARNING, Span.point(0, 1, 1), 'x', edits=(edit,))
        assert rule.fix(diagnostic) == []


class TestRuleEngine:
    """Test RuleEngine.check."""

    def test_nodes_and_tokens_dispatched(self):
        """Node rules and token rules both run."""
        diagnostics = run_engine([ClassNameRule(), TokenCounterRule()])
        assert sorted(d.rule_id for d in diagnostics) == ['class-name', 'token-counter']

    def test_crashing_rule_is_isolated(self):
        """A crash becomes an internal error and other rules keep running."""
        diagnostics = run_engine([CrashingRule(), ClassNameRule()])
        internal = [d for d in diagnostics if d.rule_id == INTERNAL_ERROR]
        assert len(internal) == 2
        assert all(d.source_rule == 'crashing-rule' for d in internal)
        assert all(d.severity == Severity.ERROR for d in internal)
        assert 'ValueError: boom' in internal[0].message
        assert internal[0].line == 2
        assert [d.rule_id for d in diagnostics if d.rule_id == 'class-name'] == ['class-name']

    def test_severity_override(self):
        """Configured severities replace rule defaults."""
        config = LintConfig(severity={'class-name': 'error'})
        diagnostics = run_engine([ClassNameRule()], config=config)
        assert diagnostics[0].severity == Severity.ERROR

    def test_default_severity(self):
        """Without an override the rule default applies."""
        diagnostics = run_engine([ClassNameRule()])
        assert diagnostics[0].severity == Severity.WARNING

    def test_diagnostics_carry_path(self):
        """Every diagnostic records the file path."""
        assert all(d.path == 'Sample.cls' for d in run_engine([ClassNameRule(), TokenCounterRule()]))

    def test_budget_exhaustion_keeps_partial_results(self):
        """The sink holds what was found before the budget ran out."""
        sink = []
        budget = WorkBudget(2)
        with pytest.raises(BudgetExceeded) as info:
            run_engine([ClassNameRule()], budget=budget, sink=sink)
        assert info.value.phase == 'rules'
        assert [d.rule_id for d in sink] == ['class-name']

    def test_engine_is_reusable(self):
        """One engine checks several files independently."""
        tokens = tokenize(SOURCE)
        root, _ = parse(tokens)
        engine = RuleEngine(RuleSet([ClassNameRule()]))
        first = engine.check('A.cls', SOURCE, tokens, root)
        second = engine.check('B.cls', SOURCE, tokens, root)
        assert len(first) == len(second) == 1
        assert first[0].path == 'A.cls'
        assert second[0].path == 'B.cls'


if __name__ == '__main__':
    pytest.main([__file__])
