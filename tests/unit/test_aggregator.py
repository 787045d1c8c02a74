"""
Unit tests for the diagnostic aggregator.

These tests cover:
- Deduplication and canonical ordering
- File status and summaries
- Thread-safe collection and filtering
- Report export
"""

import json
import threading

import pytest

from apex_formatter.core.aggregator import (
    DiagnosticAggregator,
    FileStatus,
    build_file_result,
    file_status,
    process_diagnostics,
    summarize,
    summarize_run,
)
from apex_formatter.core.diagnostics import BUDGET_EXCEEDED, LEX_ERROR, Diagnostic, Severity
from apex_formatter.core.tree import Span


def diag(rule_id, line, column, path='A.cls', severity=Severity.WARNING, message='problem'):
    offset = (line - 1) * 100 + column - 1
    span = Span(offset, offset + 1, line, column, line, column + 1)
    return Diagnostic(rule_id, severity, span, message, path=path)


class TestProcessing:
    """Test deduplication and ordering."""

    def test_sorted_by_position_then_rule(self):
        """Diagnostics sort by line, column and rule id."""
        diagnostics = [
            diag('method-name', 3, 5),
            diag('class-name', 1, 14),
            diag('variable-name', 3, 5),
            diag('line-length', 2, 81),
            diag('constant-name', 3, 1),
        ]
        ordered = process_diagnostics(diagnostics)
        assert [(d.line, d.column, d.rule_id) for d in ordered] == [
            (1, 14, 'class-name'),
            (2, 81, 'line-length'),
            (3, 1, 'constant-name'),
            (3, 5, 'method-name'),
            (3, 5, 'variable-name'),
        ]

    def test_duplicates_removed(self):
        """Same rule and span is reported once, keeping the first message."""
        first = diag('class-name', 1, 14, message='first')
        second = diag('class-name', 1, 14, message='second')
        ordered = process_diagnostics([first, second])
        assert len(ordered) == 1
        assert ordered[0].message == 'first'

    def test_same_span_different_rules_kept(self):
        """Different rules at one position are all kept."""
        assert len(process_diagnostics([diag('a-rule', 1, 1), diag('b-rule', 1, 1)])) == 2

    def test_processing_is_idempotent(self):
        """Processing an ordered list changes nothing."""
        ordered = process_diagnostics([diag('x', 2, 1), diag('y', 1, 1), diag('x', 2, 1)])
        assert process_diagnostics(ordered) == ordered


class TestSummaries:
    """Test summaries and statuses."""

    def test_summarize(self):
        """Counts split by severity and rule."""
        summary = summarize([
            diag('line-length', 1, 81, severity=Severity.ERROR),
            diag('line-length', 2, 81, severity=Severity.ERROR),
            diag('method-name', 3, 5),
        ], 'A.cls')
        assert summary.error_count == 2
        assert summary.warning_count == 1
        assert summary.rule_counts == {'line-length': 2, 'method-name': 1}

    def test_file_status(self):
        """Status follows the worst diagnostic."""
        assert file_status([]) == FileStatus.OK
        assert file_status([diag('x', 1, 1)]) == FileStatus.WARNING
        assert file_status([diag('x', 1, 1), diag('y', 1, 1, severity=Severity.ERROR)]) == FileStatus.ERROR
        assert file_status([diag(LEX_ERROR, 1, 1, severity=Severity.ERROR)]) == FileStatus.FAILED
        assert file_status([diag(BUDGET_EXCEEDED, 1, 1, severity=Severity.ERROR)]) == FileStatus.FAILED

    def test_build_file_result(self):
        """File results hold processed diagnostics and their summary."""
        result = build_file_result('A.cls', [diag('x', 2, 1), diag('y', 1, 1), diag('x', 2, 1)])
        assert [d.rule_id for d in result.diagnostics] == ['y', 'x']
        assert result.warning_count == 2
        assert result.status == FileStatus.WARNING
        assert not result.changed

    def test_changed_requires_fixed_text(self):
        """A result changed only when the fixed text differs."""
        assert build_file_result('A.cls', [], original_text='a', fixed_text='b').changed
        assert not build_file_result('A.cls', [], original_text='a', fixed_text='a').changed

    def test_summarize_run(self):
        """Run summaries add up file results."""
        results = [
            build_file_result('A.cls', [diag('x', 1, 1, severity=Severity.ERROR)]),
            build_file_result('B.cls', [diag('x', 1, 1, path='B.cls'), diag('y', 2, 1, path='B.cls')]),
            build_file_result('C.cls', []),
            build_file_result('D.cls', [diag(LEX_ERROR, 1, 1, path='D.cls', severity=Severity.ERROR)]),
        ]
        summary = summarize_run(results)
        assert summary.files_checked == 4
        assert summary.error_count == 2
        assert summary.warning_count == 2
        assert summary.ok_files == 1
        assert summary.failed_files == 1
        assert summary.files_with_errors == 2
        assert summary.most_common_rules[0] == ('x', 2)
        assert not summary.cancelled


class TestDiagnosticAggregator:
    """Test the concurrent aggregator."""

    def setup_method(self):
        """Set up test fixtures."""
        self.aggregator = DiagnosticAggregator()

    def test_results_ordered_by_path(self):
        """Results come back ordered by path, regardless of arrival order."""
        for path in ('c.cls', 'a.cls', 'b.cls'):
            self.aggregator.add_file_result(build_file_result(path, []))
        assert [r.path for r in self.aggregator.results] == ['a.cls', 'b.cls', 'c.cls']

    def test_replacing_result(self):
        """A second result for a path replaces the first."""
        self.aggregator.add_file_result(build_file_result('a.cls', [diag('x', 1, 1, path='a.cls')]))
        self.aggregator.add_file_result(build_file_result('a.cls', []))
        assert len(self.aggregator.results) == 1
        assert self.aggregator.diagnostics() == []

    def test_concurrent_adds(self):
        """Results from many threads are all kept."""
        def worker(start):
            for i in range(start, start + 50):
                path = f"File{i:03d}.cls"
                self.aggregator.add_file_result(build_file_result(path, [diag('x', 1, 1, path=path)]))

        threads = [threading.Thread(target=worker, args=(n * 50,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(self.aggregator.results) == 200
        assert self.aggregator.generate_run_summary().warning_count == 200

    def test_filter_diagnostics(self):
        """Filtering by severity, rule and path pattern."""
        self.aggregator.add_file_result(build_file_result('src/A.cls', [
            diag('line-length', 1, 81, path='src/A.cls', severity=Severity.ERROR),
            diag('method-name', 2, 5, path='src/A.cls'),
        ]))
        self.aggregator.add_file_result(build_file_result('test/B.cls', [
            diag('method-name', 2, 5, path='test/B.cls'),
        ]))
        assert len(self.aggregator.filter_diagnostics(severity=Severity.ERROR)) == 1
        assert len(self.aggregator.filter_diagnostics(rule_id='method-name')) == 2
        assert len(self.aggregator.filter_diagnostics(path_pattern='test/*')) == 1
        assert self.aggregator.filter_diagnostics(rule_id='method-name', path_pattern='src/*')[0].path == 'src/A.cls'

    def test_report_lines(self):
        """Lines follow path:line:col: [severity] ruleId: message."""
        self.aggregator.add_file_result(build_file_result('A.cls', [
            diag('line-length', 2, 81, severity=Severity.ERROR, message='line is too long'),
        ]))
        assert self.aggregator.format_report_lines() == [
            'A.cls:2:81: [error] line-length: line is too long']

    def test_export_report_is_json_serializable(self):
        """The exported report round-trips through JSON."""
        self.aggregator.add_file_result(build_file_result('A.cls', [diag('x', 1, 1)]))
        self.aggregator.cancelled = True
        report = json.loads(json.dumps(self.aggregator.export_report()))
        assert report['summary']['files_checked'] == 1
        assert report['summary']['cancelled'] is True
        assert report['files'][0]['diagnostics'][0]['rule_id'] == 'x'


if __name__ == '__main__':
    pytest.main([__file__])
