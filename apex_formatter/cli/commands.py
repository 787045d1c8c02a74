"""
Command-line interface for the Apex-Formatter.

This module provides CLI commands for checking Apex sources against the
style guide, fixing whitespace and blank-line issues, and managing backups.
"""

import sys
import json
import click
import logging
from pathlib import Path
from typing import Optional, Tuple
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.panel import Panel
from rich.markup import escape

from .. import __version__
from ..core.config import LintConfig
from ..core.errors import ConfigError
from ..core.scanner import StyleScanner, discover_files
from ..core.formatter import AutoFixer
from ..core.aggregator import DiagnosticAggregator, FileStatus
from ..core.rules import BUILTIN_RULES

# Initialize Rich console for beautiful output
console = Console()

# Configure logging
logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

EXIT_FINDINGS = 1
EXIT_CONFIG_ERROR = 2

STATUS_STYLES = {
    FileStatus.OK: "green",
    FileStatus.WARNING: "yellow",
    FileStatus.ERROR: "red",
    FileStatus.FAILED: "bold red",
}


def config_options(command):
    """Options shared by every command that runs the checker."""
    command = click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False),
                           help='JSON configuration file')(command)
    command = click.option('--rule', 'rules', multiple=True,
                           help='Only run this rule (repeatable)')(command)
    command = click.option('--line-length', type=int, help='Maximum line length')(command)
    command = click.option('--indent-width', type=int, help='Indentation width')(command)
    return command


def load_config(config_path: Optional[str], rules: Tuple[str, ...], line_length: Optional[int],
                indent_width: Optional[int], autofix: bool = False) -> LintConfig:
    """
    Build a LintConfig from an optional JSON file and command-line overrides.

    Raises:
        ConfigError: When the file or the overrides are invalid
    """
    data = {}
    if config_path:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot load configuration file {config_path}: {e}")
    config = LintConfig.from_dict(data)
    if rules:
        config.active_rules = frozenset(rules)
    if line_length is not None:
        config.line_length = line_length
    if indent_width is not None:
        config.indent_width = indent_width
    config.autofix = autofix or config.autofix
    return config


def build_scanner(config: LintConfig) -> StyleScanner:
    """Create a scanner, turning configuration errors into exit status 2."""
    try:
        return StyleScanner(config)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)


def run_scan(scanner: StyleScanner, paths: Tuple[str, ...]) -> DiagnosticAggregator:
    """Discover files under the given paths and check them in parallel."""
    files = discover_files(paths)
    if not files:
        console.print("[yellow]No .cls or .trigger files found[/yellow]")
        return DiagnosticAggregator()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True
    ) as progress:
        progress.add_task(f"Checking {len(files)} files...", total=None)
        try:
            return scanner.scan_paths(files)
        except KeyboardInterrupt:
            console.print("[yellow]Interrupted[/yellow]")
            sys.exit(130)


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
def main(verbose):
    """Apex-Formatter - style checks and safe autofixes for Apex sources."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        console.print("[dim]Verbose mode enabled[/dim]")


@main.command()
@click.argument('paths', nargs=-1, required=True, type=click.Path(exists=True))
@config_options
@click.option('--format', 'output_format', type=click.Choice(['table', 'text', 'json']),
              default='table', help='Output format')
@click.option('--output', '-o', type=click.Path(), help='Write the JSON report to this file')
def check(paths, config_path, rules, line_length, indent_width, output_format, output):
    """Check files or directories against the Apex style guide."""
    try:
        config = load_config(config_path, rules, line_length, indent_width)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)

    scanner = build_scanner(config)
    aggregator = run_scan(scanner, paths)
    summary = aggregator.generate_run_summary()

    if output_format == 'json':
        click.echo(json.dumps(aggregator.export_report(), indent=2))
    elif output_format == 'text':
        for line in aggregator.format_report_lines():
            click.echo(line)
        click.echo(f"{summary.files_checked} files checked: "
                   f"{summary.error_count} errors, {summary.warning_count} warnings")
    else:
        display_check_results(aggregator)

    if output:
        save_report_to_file(aggregator, output)
        console.print(f"[green]Report saved to {output}[/green]")

    if summary.error_count > 0:
        sys.exit(EXIT_FINDINGS)


@main.command()
@click.argument('paths', nargs=-1, required=True, type=click.Path(exists=True))
@config_options
@click.option('--backup/--no-backup', default=True, help='Create backups before writing')
@click.option('--dry-run', is_flag=True, help='Show what would be fixed without making changes')
def fix(paths, config_path, rules, line_length, indent_width, backup, dry_run):
    """Fix whitespace and blank-line issues in place."""
    if dry_run:
        console.print("[dim]Running in dry-run mode - no changes will be made[/dim]")

    try:
        config = load_config(config_path, rules, line_length, indent_width, autofix=True)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)

    scanner = build_scanner(config)
    fixer = AutoFixer(scanner.rule_set, backup_enabled=backup)
    aggregator = run_scan(scanner, paths)

    changed = [result for result in aggregator.results if result.changed]
    if not changed:
        console.print("[green]Nothing to fix[/green]")
        return

    table = Table(title="Dry run - files to fix" if dry_run else "Fixed files")
    table.add_column("File", style="cyan")
    table.add_column("Edits", justify="center")
    table.add_column("Remaining", justify="center")

    written = 0
    for result in changed:
        if dry_run or fixer.write_file(result.path, result.fixed_text):
            written += 1
            remaining = sum(1 for d in result.diagnostics if not d.edits)
            table.add_row(result.path, str(len(result.edits)), str(remaining))
        else:
            console.print(f"[red]✗[/red] {result.path}: failed to write fixed text")

    console.print(table)
    verb = "Would fix" if dry_run else "Fixed"
    console.print(f"\n[bold]{verb} {written}/{len(changed)} files[/bold]")


@main.command()
@click.argument('filepath', type=click.Path(exists=True, dir_okay=False))
@config_options
def preview(filepath, config_path, rules, line_length, indent_width):
    """Preview the fixed text of a file without writing it."""
    console.print(f"[bold magenta]Preview fixes for:[/bold magenta] {filepath}")

    try:
        config = load_config(config_path, rules, line_length, indent_width, autofix=True)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)

    result = build_scanner(config).scan_file(filepath)
    if not result.changed:
        console.print("[green]No automatic fixes apply to this file[/green]")
        return

    console.print(Panel(result.fixed_text, title="Fixed Code", border_style="green"))
    console.print(f"\n[green]Would apply {len(result.edits)} edits[/green]")


@main.command()
@click.argument('filepath', type=click.Path(exists=True, dir_okay=False))
def restore(filepath):
    """Restore a file from its most recent backup."""
    console.print(f"[bold orange1]Restoring:[/bold orange1] {filepath}")

    fixer = AutoFixer(StyleScanner().rule_set)
    if fixer.restore_from_backup(filepath):
        console.print(f"[green]Successfully restored {filepath} from backup[/green]")
    else:
        console.print(f"[red]Failed to restore {filepath} - no backup found or restore failed[/red]")
        sys.exit(EXIT_FINDINGS)


@main.command(name='rules')
def list_rules():
    """List the built-in rule catalogue."""
    table = Table(title="Rules")
    table.add_column("Id", style="cyan")
    table.add_column("Category")
    table.add_column("Default", justify="center")
    table.add_column("Fixable", justify="center")
    table.add_column("Description", style="dim")

    for rule in BUILTIN_RULES:
        table.add_row(
            rule.id,
            rule.category.value,
            rule.default_severity.value,
            "yes" if rule.fixable else "",
            rule.description,
        )
    console.print(table)


@main.command()
@click.option('--host', default='127.0.0.1', help='Host to bind to')
@click.option('--port', default=8080, help='Port to bind to')
@click.option('--debug', is_flag=True, help='Enable debug mode')
def dashboard(host, port, debug):
    """Launch the JSON API dashboard."""
    from ..dashboard.app import create_app

    console.print(f"[bold green]Starting dashboard at http://{host}:{port}[/bold green]")
    console.print("[dim]Press Ctrl+C to stop[/dim]")

    try:
        app = create_app()
        app.run(host=host, port=port, debug=debug)
    except KeyboardInterrupt:
        console.print("\n[yellow]Dashboard stopped[/yellow]")


def display_check_results(aggregator: DiagnosticAggregator):
    """Display check results as a summary panel and a diagnostics table."""
    summary = aggregator.generate_run_summary()
    summary_text = f"""
Files Checked: {summary.files_checked}
OK Files: {summary.ok_files}
Files with Errors: {summary.files_with_errors}
Failed Files: {summary.failed_files}
Errors: {summary.error_count}
Warnings: {summary.warning_count}
    """.strip()

    console.print(Panel(summary_text, title="Check Summary", border_style="blue"))

    for result in aggregator.results:
        if not result.diagnostics:
            continue
        style = STATUS_STYLES.get(result.status, "white")
        table = Table(title=f"{Path(result.path).name} [{style}]{result.status.value}[/{style}]")
        table.add_column("Line", justify="right")
        table.add_column("Col", justify="right")
        table.add_column("Severity", justify="center")
        table.add_column("Rule", style="cyan")
        table.add_column("Message")

        for diagnostic in result.diagnostics:
            severity_style = "red" if diagnostic.is_error else "yellow"
            message = escape(diagnostic.message)
            if diagnostic.fix_suggestion:
                message += f" [dim](suggest: {escape(diagnostic.fix_suggestion)})[/dim]"
            table.add_row(
                str(diagnostic.line),
                str(diagnostic.column),
                f"[{severity_style}]{diagnostic.severity.value}[/{severity_style}]",
                diagnostic.rule_id,
                message,
            )
        console.print(table)

    if summary.most_common_rules:
        console.print("\n[bold]Most Common Rules:[/bold]")
        for rule_id, count in summary.most_common_rules[:5]:
            console.print(f"  • {rule_id}: {count} occurrences")


def save_report_to_file(aggregator: DiagnosticAggregator, output_path: str):
    """Save the JSON report to a file."""
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(aggregator.export_report(), f, indent=2)


if __name__ == '__main__':
    main()
