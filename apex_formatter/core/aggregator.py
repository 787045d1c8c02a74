"""
Diagnostic Aggregator Module

This module deduplicates and orders the diagnostics of each file, computes
per-file and run-level summaries, and renders reports. It also acts as the
concurrency-safe sink the scanner's workers deliver their results to.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum
import fnmatch
import logging
import threading

from .diagnostics import BUDGET_EXCEEDED, LEX_ERROR, Diagnostic, Severity, TextEdit

logger = logging.getLogger(__name__)


class FileStatus(Enum):
    """Outcome of checking one file."""
    OK = "OK"
    WARNING = "Warning"
    ERROR = "Error"
    FAILED = "Failed"


@dataclass
class FileSummary:
    """Diagnostic counts for one file."""
    path: str
    error_count: int
    warning_count: int
    rule_counts: Dict[str, int] = field(default_factory=dict)


@dataclass
class FileResult:
    """
    Everything the pipeline produced for one file.

    ``original_text``, ``fixed_text`` and ``edits`` are filled when autofix
    is enabled; writing the fixed text back is left to the caller.
    """
    path: str
    diagnostics: List[Diagnostic]
    status: FileStatus
    summary: FileSummary
    original_text: Optional[str] = None
    fixed_text: Optional[str] = None
    edits: List[TextEdit] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return self.summary.error_count

    @property
    def warning_count(self) -> int:
        return self.summary.warning_count

    @property
    def changed(self) -> bool:
        return self.fixed_text is not None and self.fixed_text != self.original_text

    def to_dict(self, include_text: bool = False) -> Dict[str, Any]:
        data = {
            'path': self.path,
            'status': self.status.value,
            'error_count': self.error_count,
            'warning_count': self.warning_count,
            'diagnostics': [d.to_dict() for d in self.diagnostics],
            'edits': [
                {'start': e.start, 'end': e.end, 'replacement': e.replacement, 'rule_id': e.rule_id}
                for e in self.edits
            ],
        }
        if include_text:
            data['original_text'] = self.original_text
            data['fixed_text'] = self.fixed_text
        return data

    def __repr__(self):
        return (f"FileResult(path='{self.path}', status='{self.status.value}', "
                f"errors={self.error_count}, warnings={self.warning_count})")


@dataclass
class RunSummary:
    """Summary statistics for a whole run."""
    files_checked: int
    error_count: int
    warning_count: int
    ok_files: int
    failed_files: int
    files_with_errors: int
    most_common_rules: List[Tuple[str, int]]
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'files_checked': self.files_checked,
            'error_count': self.error_count,
            'warning_count': self.warning_count,
            'ok_files': self.ok_files,
            'failed_files': self.failed_files,
            'files_with_errors': self.files_with_errors,
            'most_common_rules': [list(item) for item in self.most_common_rules],
            'cancelled': self.cancelled,
        }


def sort_key(diagnostic: Diagnostic):
    return (diagnostic.path, diagnostic.span.start_line, diagnostic.span.start_col, diagnostic.rule_id)


def deduplicate(diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
    """Keep the first diagnostic for each (rule id, span) pair."""
    seen = set()
    unique = []
    for diagnostic in diagnostics:
        key = (diagnostic.path, diagnostic.rule_id, diagnostic.span)
        if key in seen:
            continue
        seen.add(key)
        unique.append(diagnostic)
    return unique


def process_diagnostics(diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
    """Deduplicate and sort by (path, line, column, rule id)."""
    return sorted(deduplicate(diagnostics), key=sort_key)


def summarize(diagnostics: Iterable[Diagnostic], path: str = "") -> FileSummary:
    """
    Pure summary of a diagnostic list.

    Args:
        diagnostics: Diagnostics of one file
        path: Path recorded on the summary

    Returns:
        FileSummary with error/warning counts and per-rule counts
    """
    errors = warnings = 0
    rule_counts: Dict[str, int] = {}
    for diagnostic in diagnostics:
        if diagnostic.severity == Severity.ERROR:
            errors += 1
        else:
            warnings += 1
        rule_counts[diagnostic.rule_id] = rule_counts.get(diagnostic.rule_id, 0) + 1
    return FileSummary(path, errors, warnings, rule_counts)


def file_status(diagnostics: Iterable[Diagnostic]) -> FileStatus:
    status = FileStatus.OK
    for diagnostic in diagnostics:
        if diagnostic.rule_id in (LEX_ERROR, BUDGET_EXCEEDED):
            return FileStatus.FAILED
        if diagnostic.severity == Severity.ERROR:
            status = FileStatus.ERROR
        elif status == FileStatus.OK:
            status = FileStatus.WARNING
    return status


def build_file_result(path: str, diagnostics: Iterable[Diagnostic], **fix_data) -> FileResult:
    """Deduplicate, sort and summarize the diagnostics of one file."""
    ordered = process_diagnostics(diagnostics)
    return FileResult(path, ordered, file_status(ordered), summarize(ordered, path), **fix_data)


def summarize_run(results: Iterable[FileResult], cancelled: bool = False) -> RunSummary:
    """Pure run-level summary over file results."""
    results = list(results)
    rule_counts: Dict[str, int] = {}
    for result in results:
        for rule_id, count in result.summary.rule_counts.items():
            rule_counts[rule_id] = rule_counts.get(rule_id, 0) + count
    most_common = sorted(rule_counts.items(), key=lambda x: (-x[1], x[0]))[:10]

    return RunSummary(
        files_checked=len(results),
        error_count=sum(r.error_count for r in results),
        warning_count=sum(r.warning_count for r in results),
        ok_files=sum(1 for r in results if r.status == FileStatus.OK),
        failed_files=sum(1 for r in results if r.status == FileStatus.FAILED),
        files_with_errors=sum(1 for r in results if r.error_count > 0),
        most_common_rules=most_common,
        cancelled=cancelled,
    )


class DiagnosticAggregator:
    """
    Collects file results from concurrent workers.

    This class provides:
    - A lock-guarded sink for per-file results
    - Canonically ordered access to results and diagnostics
    - Filtering by severity, rule and path pattern
    - Run summaries and report export
    """

    def __init__(self):
        """Initialize the aggregator."""
        self._results: Dict[str, FileResult] = {}
        self._lock = threading.Lock()
        self.cancelled = False

    def add_file_result(self, result: FileResult):
        """
        Add one file's result. A second result for the same path replaces
        the first.

        Args:
            result: FileResult from the scanner pipeline
        """
        with self._lock:
            if result.path in self._results:
                logger.debug(f"Replacing earlier result for {result.path}")
            self._results[result.path] = result

    @property
    def results(self) -> List[FileResult]:
        with self._lock:
            return [self._results[path] for path in sorted(self._results)]

    def diagnostics(self) -> List[Diagnostic]:
        """All diagnostics of the run in canonical order."""
        merged = [d for result in self.results for d in result.diagnostics]
        return sorted(merged, key=sort_key)

    def filter_diagnostics(self,
                           severity: Optional[Severity] = None,
                           rule_id: Optional[str] = None,
                           path_pattern: Optional[str] = None) -> List[Diagnostic]:
        """
        Filter the run's diagnostics.

        Args:
            severity: Keep only this severity
            rule_id: Keep only this rule id
            path_pattern: fnmatch pattern the path must match

        Returns:
            Filtered diagnostics in canonical order
        """
        filtered = self.diagnostics()
        if severity:
            filtered = [d for d in filtered if d.severity == severity]
        if rule_id:
            filtered = [d for d in filtered if d.rule_id == rule_id]
        if path_pattern:
            filtered = [d for d in filtered if fnmatch.fnmatch(d.path, path_pattern)]
        return filtered

    def generate_run_summary(self) -> RunSummary:
        return summarize_run(self.results, self.cancelled)

    def format_report_lines(self) -> List[str]:
        """Line-oriented report, one ``path:line:col: [severity] ruleId: message`` per diagnostic."""
        return [d.format() for d in self.diagnostics()]

    def export_report(self) -> Dict[str, Any]:
        """
        Export the run as a JSON-serializable dictionary.

        Returns:
            Report with summary and per-file results
        """
        return {
            'summary': self.generate_run_summary().to_dict(),
            'files': [result.to_dict() for result in self.results],
        }
