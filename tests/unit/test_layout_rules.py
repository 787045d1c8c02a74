"""
Unit tests for the layout rules: line length, wrap alignment and method signature wrapping.
"""

import pytest

from apex_formatter.core.config import LintConfig
from apex_formatter.core.rules.layout import overflow_column
from apex_formatter.core.scanner import StyleScanner


def lint(source, rule_id, **options):
    scanner = StyleScanner(LintConfig(active_rules=frozenset({rule_id}), **options))
    return scanner.lint_source(source, 'Layout.cls').diagnostics


def in_method(body):
    return "public class Greeter {\n    public void run(String name) {\n" + body + "    }\n}\n"


class TestWrapAlignment:
    """Test wrap-alignment."""

    def test_fixed_indent_continuation(self):
        """One indent width past the statement is accepted."""
        source = in_method("        String label = 'Hello, '\n            + name;\n")
        assert lint(source, 'wrap-alignment') == []

    def test_double_indent_continuation(self):
        """Two indent widths past the statement are accepted."""
        source = in_method("        String label = 'Hello, '\n                + name;\n")
        assert lint(source, 'wrap-alignment') == []

    def test_misaligned_continuation(self):
        """A continuation left of the statement is reported."""
        source = in_method("        String label = 'Hello, '\n      + name;\n")
        diagnostics = lint(source, 'wrap-alignment')
        assert len(diagnostics) == 1
        assert (diagnostics[0].line, diagnostics[0].column) == (4, 7)

    def test_aligned_with_open_parenthesis(self):
        """Arguments may align with the first argument after the parenthesis."""
        source = in_method("        doSomething(firstArgument,\n                    secondArgument);\n")
        assert lint(source, 'wrap-alignment') == []

    def test_arguments_misaligned(self):
        """Arguments at neither the delimiter nor a fixed indent are reported."""
        source = in_method("        doSomething(firstArgument,\n              secondArgument);\n")
        diagnostics = lint(source, 'wrap-alignment')
        assert len(diagnostics) == 1
        assert diagnostics[0].column == 15
        assert 'align it with the open delimiter' in diagnostics[0].message

    def test_indent_width_from_config(self):
        """The fixed indent follows indentWidth."""
        source = in_method("        String label = 'Hello, '\n          + name;\n")
        assert len(lint(source, 'wrap-alignment')) == 1
        assert lint(source, 'wrap-alignment', indent_width=2) == []

    def test_block_bodies_are_not_continuations(self):
        """Lines inside a body block are not continuation lines."""
        source = in_method("        if (name != null) {\n            run(name);\n        }\n")
        assert lint(source, 'wrap-alignment') == []


class TestMethodSignatureWrap:
    """Test method-signature-wrap."""

    def test_two_parameters_on_a_wrapped_line(self):
        """A wrapped signature may not share lines between parameters."""
        source = ("public class Greeter {\n"
                  "    public void run(String first, String second,\n"
                  "            String third) {\n"
                  "    }\n"
                  "}\n")
        diagnostics = lint(source, 'method-signature-wrap')
        assert len(diagnostics) == 1
        assert "'second'" in diagnostics[0].message
        assert diagnostics[0].line == 2

    def test_one_parameter_per_line(self):
        """One parameter per line is accepted."""
        source = ("public class Greeter {\n"
                  "    public void run(String first,\n"
                  "            String second,\n"
                  "            String third) {\n"
                  "    }\n"
                  "}\n")
        assert lint(source, 'method-signature-wrap') == []

    def test_single_line_signature(self):
        """Unwrapped signatures are fine."""
        source = "public class Greeter {\n    public void run(String first, String second) {\n    }\n}\n"
        assert lint(source, 'method-signature-wrap') == []


class TestLineLength:
    """Test line-length on tab-indented lines."""

    def setup_method(self):
        """Set up test fixtures."""
        self.prefix = "\t\tString text = '"

    def test_tabs_count_as_indent_width(self):
        """Each tab advances to the next multiple of the indent width."""
        line = self.prefix + "x" * 56 + "';"
        assert len(line) == 75
        diagnostics = lint(in_method(line + "\n"), 'line-length')
        assert len(diagnostics) == 1
        assert (diagnostics[0].line, diagnostics[0].column) == (3, 75)
        assert "81 columns" in diagnostics[0].message

    def test_tab_indented_line_at_limit(self):
        """A line exactly at the limit once tabs are expanded is clean."""
        line = self.prefix + "x" * 55 + "';"
        assert lint(in_method(line + "\n"), 'line-length') == []

    def test_tab_width_follows_indent_width(self):
        """A narrower indent width makes tabs narrower."""
        line = self.prefix + "x" * 56 + "';"
        assert lint(in_method(line + "\n"), 'line-length', indent_width=2) == []

    def test_overflow_column(self):
        """The reported column is the first character past the limit."""
        assert overflow_column("ab\tc", 4, 4) == 4
        assert overflow_column("x" * 10, 8, 4) == 9


if __name__ == '__main__':
    pytest.main([__file__])
