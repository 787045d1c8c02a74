"""
Unit tests for the query rules and the line-length rule's query hint.
"""

import pytest

from apex_formatter.core.config import LintConfig
from apex_formatter.core.lexer import tokenize
from apex_formatter.core.rules.query import QueryFormatRule
from apex_formatter.core.scanner import StyleScanner


def lint(body, rules, **options):
    source = "public class AccountSelector {\n    public void run() {\n" + body + "    }\n}\n"
    scanner = StyleScanner(LintConfig(active_rules=frozenset(rules), **options))
    return scanner.lint_source(source, 'AccountSelector.cls').diagnostics


LONG_QUERY = "[SELECT Id, Name, Phone, Type, Industry, Rating, Site, Fax FROM Account]"


class TestQueryKeywordCase:
    """Test query-keyword-case."""

    def test_lower_case_keywords(self):
        """Each lower-case keyword is reported with its upper-case form."""
        diagnostics = lint("        rows = [select Id from Account where Name='x'];\n", {'query-keyword-case'})
        assert [d.fix_suggestion for d in diagnostics] == ['SELECT', 'FROM', 'WHERE']

    def test_upper_case_keywords_clean(self):
        """Upper-case keywords are accepted."""
        assert lint("        rows = [SELECT Id FROM Account WHERE Name = 'x'];\n", {'query-keyword-case'}) == []

    def test_column_points_at_keyword(self):
        """The span covers only the keyword."""
        diagnostics = lint("        rows = [SELECT Id from Account];\n", {'query-keyword-case'})
        assert len(diagnostics) == 1
        assert (diagnostics[0].line, diagnostics[0].column) == (3, 27)
        assert diagnostics[0].span.end_col == 31


class TestQueryFormat:
    """Test query-format."""

    def test_long_single_line_query(self):
        """A query running past the limit asks for one field per line."""
        diagnostics = lint("        items = " + LONG_QUERY + ";\n", {'query-format'})
        assert len(diagnostics) == 1
        assert '8 selected field(s)' in diagnostics[0].message

    def test_short_query_clean(self):
        """A short single-line query is fine."""
        assert lint("        List<Account> items = [SELECT Id, Name FROM Account];\n", {'query-format'}) == []

    def test_wrapped_query_needs_one_item_per_line(self):
        """Once wrapped, fields and conditions each need their own line."""
        body = (
            "        List<Account> rows = [SELECT Id, Name\n"
            "            FROM Account\n"
            "            WHERE Name = 'x' AND Type = 'y'];\n"
        )
        diagnostics = lint(body, {'query-format'})
        assert len(diagnostics) == 2
        assert 'one field per line' in diagnostics[0].message
        assert "break before 'AND'" in diagnostics[1].message

    def test_properly_wrapped_query(self):
        """One field and one condition per line is accepted."""
        body = (
            "        List<Account> rows = [\n"
            "            SELECT Id,\n"
            "                Name\n"
            "            FROM Account\n"
            "            WHERE Name = 'x'\n"
            "                AND Type = 'y'\n"
            "        ];\n"
        )
        assert lint(body, {'query-format'}) == []

    def test_subquery_fields_not_counted(self):
        """Fields inside a subquery do not count toward the outer SELECT."""
        token = tokenize("[SELECT Id, (SELECT Id, Name FROM Contacts) FROM Account]")[0]
        assert QueryFormatRule.count_fields(token) == 1


class TestLineLengthHint:
    """Test the line-length rule on query lines."""

    def test_long_query_line(self):
        """A long line holding a single-line query carries the query hint."""
        line = "        items = " + LONG_QUERY + ";"
        assert len(line) == 89
        diagnostics = lint(line + "\n", {'line-length'})
        assert len(diagnostics) == 1
        diagnostic = diagnostics[0]
        assert diagnostic.message.endswith("; format the query with one field per line")
        assert diagnostic.fix_suggestion == "one field per line"
        assert (diagnostic.line, diagnostic.column) == (3, 81)
        assert diagnostic.is_error

    def test_long_plain_line(self):
        """Other long lines carry no suggestion."""
        line = "        String text = '" + "x" * 80 + "';"
        diagnostics = lint(line + "\n", {'line-length'})
        assert len(diagnostics) == 1
        assert diagnostics[0].fix_suggestion is None

    def test_configured_limit(self):
        """The limit comes from the configuration."""
        line = "        items = " + LONG_QUERY + ";"
        assert lint(line + "\n", {'line-length'}, line_length=120) == []


if __name__ == '__main__':
    pytest.main([__file__])
