"""
Unit tests for the blank-line rules and their fixes.
"""

import pytest

from apex_formatter.core.config import LintConfig
from apex_formatter.core.scanner import StyleScanner


def lint(source, rule_id, autofix=False):
    scanner = StyleScanner(LintConfig(active_rules=frozenset({rule_id}), autofix=autofix))
    return scanner.lint_source(source, 'Jobs.cls')


def two_methods(separator):
    return ("public class Jobs {\n"
            "    public void first() {\n"
            "    }\n" + separator +
            "    public void second() {\n"
            "    }\n"
            "}\n")


class TestBlankLineBetweenMethods:
    """Test blank-line-between-methods."""

    def test_one_blank_line(self):
        """Exactly one blank line is accepted."""
        assert lint(two_methods("\n"), 'blank-line-between-methods').diagnostics == []

    def test_no_blank_line(self):
        """Adjacent methods are reported and separated by the fix."""
        result = lint(two_methods(""), 'blank-line-between-methods', autofix=True)
        assert len(result.diagnostics) == 1
        assert 'found 0' in result.diagnostics[0].message
        assert result.diagnostics[0].line == 4
        assert result.fixed_text == two_methods("\n")

    def test_two_blank_lines(self):
        """Extra blank lines are collapsed."""
        result = lint(two_methods("\n\n"), 'blank-line-between-methods', autofix=True)
        assert len(result.diagnostics) == 1
        assert result.fixed_text == two_methods("\n")

    def test_crlf_preserved(self):
        """The fix reuses the file's line ending."""
        source = two_methods("").replace("\n", "\r\n")
        result = lint(source, 'blank-line-between-methods', autofix=True)
        assert result.fixed_text == two_methods("\n").replace("\n", "\r\n")

    def test_comment_between_methods(self):
        """A comment in the gap is never moved."""
        source = two_methods("    // second method\n")
        result = lint(source, 'blank-line-between-methods', autofix=True)
        assert "    // second method\n" in result.fixed_text

    def test_interface_signatures_may_be_grouped(self):
        """Bodiless signatures need no separation."""
        source = "public interface Runner {\n    void start();\n    void stop();\n}\n"
        assert lint(source, 'blank-line-between-methods').diagnostics == []


class TestBlankLineAfterDeclarations:
    """Test blank-line-after-declarations."""

    def method(self, body):
        return "public class Jobs {\n    public void run() {\n" + body + "    }\n}\n"

    def test_missing_blank_line(self):
        """Declarations followed directly by a statement are reported."""
        result = lint(self.method("        Integer a = 1;\n        doWork(a);\n"),
                      'blank-line-after-declarations', autofix=True)
        assert len(result.diagnostics) == 1
        assert result.fixed_text == self.method("        Integer a = 1;\n\n        doWork(a);\n")

    def test_blank_line_present(self):
        """One blank line after the declarations is accepted."""
        source = self.method("        Integer a = 1;\n        Integer b = 2;\n\n        doWork(a, b);\n")
        assert lint(source, 'blank-line-after-declarations').diagnostics == []

    def test_block_without_leading_declarations(self):
        """Blocks starting with a statement are not checked."""
        source = self.method("        doWork(1);\n        Integer a = 1;\n        doWork(a);\n")
        assert lint(source, 'blank-line-after-declarations').diagnostics == []

    def test_only_declarations(self):
        """A block holding only declarations is fine."""
        source = self.method("        Integer a = 1;\n        Integer b = 2;\n")
        assert lint(source, 'blank-line-after-declarations').diagnostics == []


class TestNoBlankLineAfterBrace:
    """Test no-blank-line-after-brace."""

    def method(self, body):
        return "public class Jobs {\n    public void run(Boolean ready) {\n" + body + "    }\n}\n"

    def test_blank_line_after_if_brace(self):
        """The blank line is reported and removed."""
        source = self.method("        if (ready) {\n\n            doWork();\n        }\n")
        result = lint(source, 'no-blank-line-after-brace', autofix=True)
        assert len(result.diagnostics) == 1
        assert "'if'" in result.diagnostics[0].message
        assert result.fixed_text == self.method("        if (ready) {\n            doWork();\n        }\n")

    def test_no_blank_line(self):
        """A body starting right after the brace is clean."""
        source = self.method("        while (ready) {\n            doWork();\n        }\n")
        assert lint(source, 'no-blank-line-after-brace').diagnostics == []

    def test_method_bodies_not_checked(self):
        """Method bodies are not conditional or loop bodies."""
        source = self.method("\n        doWork();\n")
        assert lint(source, 'no-blank-line-after-brace').diagnostics == []

    def test_comment_trailing_brace(self):
        """A comment on the brace line does not hide the blank line below it."""
        source = self.method("        if (ready) { // note\n\n            doWork();\n        }\n")
        result = lint(source, 'no-blank-line-after-brace', autofix=True)
        assert len(result.diagnostics) == 1
        assert result.diagnostics[0].line == 5
        assert result.fixed_text == self.method("        if (ready) { // note\n            doWork();\n        }\n")

    def test_comment_line_ends_gap(self):
        """Only the lines before the first comment below the brace count."""
        clean = self.method("        if (ready) {\n            // note\n\n            doWork();\n        }\n")
        assert lint(clean, 'no-blank-line-after-brace').diagnostics == []

        source = self.method("        if (ready) {\n\n            // note\n            doWork();\n        }\n")
        result = lint(source, 'no-blank-line-after-brace', autofix=True)
        assert len(result.diagnostics) == 1
        assert result.fixed_text == self.method("        if (ready) {\n            // note\n            doWork();\n        }\n")


if __name__ == '__main__':
    pytest.main([__file__])
