#!/usr/bin/env python3
"""
FeedPress - Feed Entry Content Pipeline
=======================================

Command-line entry point for checking configuration and running parsed feed
entries through the content pipeline.

Usage:
    python main.py --help                              # Show all commands
    python main.py check-config                        # Validate configuration
    python main.py process items.json                  # Summarize processed entries
    python main.py process items.json --json           # Print camelCase JSON results
    python main.py process items.json --keep-embeds --allow-iframe-host www.youtube.com
"""

import sys
import json
from pathlib import Path

import click
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedpress.config.settings import AssemblySettings, get_settings
from feedpress.monitoring.ingestion_diagnostics import IngestionDiagnostics
from feedpress.processing.pipeline import ContentPipeline
from feedpress.utils.logging import configure_application_logging
from feedpress.utils.exceptions import (
    ConfigurationError,
    ErrorCode,
    FeedPressError,
    get_user_friendly_message,
)

console = Console()


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """FeedPress - turn feed entries into clean article HTML."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        # Show help if no subcommand provided
        click.echo(ctx.get_help())


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate environment configuration."""
    console.print("[bold blue]🔧 Checking FeedPress Configuration[/bold blue]")

    try:
        settings = get_settings(reload=True)

        table = Table(title="Configuration Status")
        table.add_column("Component", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Details")

        checks = [
            ("Logging", _check_logging_config),
            ("Selection", _check_selection_config),
            ("Assembly", _check_assembly_config),
            ("Diagnostics", _check_diagnostics_config),
        ]

        all_passed = True
        for name, check_func in checks:
            status, details = check_func(settings)
            table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
            if not status:
                all_passed = False

        console.print(table)

        if all_passed:
            console.print("[bold green]✅ All configuration checks passed![/bold green]")
            sys.exit(0)
        else:
            console.print("[bold red]❌ Configuration validation failed[/bold red]")
            sys.exit(1)

    except FeedPressError as e:
        console.print(f"[bold red]❌ Configuration error: {escape(str(e))}[/bold red]")
        sys.exit(1)


@cli.command()
@click.argument('items_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--feed-url', help='URL of the feed the entries came from')
@click.option('--feed-id', help='Identifier recorded in ingestion diagnostics')
@click.option('--keep-embeds/--drop-embeds', default=None, help='Keep iframes from allowed hosts')
@click.option('--allow-iframe-host', 'iframe_hosts', multiple=True, help='Allowed iframe host (repeatable)')
@click.option('--max-html-kb', type=float, help='Article HTML budget in KiB')
@click.option('--excerpt-max-chars', type=int, help='Maximum excerpt length')
@click.option('--json', 'as_json', is_flag=True, help='Print results as JSON')
@click.pass_context
def process(ctx, items_file, feed_url, feed_id, keep_embeds, iframe_hosts, max_html_kb,
            excerpt_max_chars, as_json):
    """Process parsed feed entries from ITEMS_FILE (one object or a list)."""
    try:
        settings = get_settings()
        _configure_logging(settings, ctx.obj.get('debug'))

        overrides = {
            'keep_embeds': keep_embeds,
            'allowed_iframe_hosts': list(iframe_hosts) or None,
            'max_html_kb': max_html_kb,
            'excerpt_max_chars': excerpt_max_chars,
        }
        settings = _apply_assembly_overrides(settings, overrides)

        raw_items = _load_items(items_file)
        diagnostics = IngestionDiagnostics(settings.diagnostics.max_entries)
        pipeline = ContentPipeline(settings=settings, diagnostics=diagnostics)
        result = pipeline.process_batch(raw_items, feed_url=feed_url, feed_id=feed_id)

    except FeedPressError as e:
        console.print(f"[bold red]❌ {escape(get_user_friendly_message(e))}[/bold red]")
        sys.exit(1)

    if as_json:
        payload = [
            {
                'normalized': entry.normalized.model_dump(mode='json', by_alias=True),
                'selection': entry.selection.model_dump(mode='json', by_alias=True),
                'assembly': entry.assembly.model_dump(mode='json', by_alias=True),
            }
            for entry in result.entries
        ]
        click.echo(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        _print_summary(result, diagnostics)

    sys.exit(0 if result.failed == 0 else 2)


def _configure_logging(settings, debug: bool) -> None:
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path or None,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )


def _apply_assembly_overrides(settings, overrides: dict):
    """Return a settings copy with CLI options applied to the assembly section."""
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return settings

    try:
        assembly = AssemblySettings.model_validate({**settings.assembly.model_dump(), **updates})
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid assembly option: {e}",
            config_key="assembly",
            error_code=ErrorCode.CONFIG_INVALID,
        ) from e

    return settings.model_copy(update={'assembly': assembly})


def _load_items(items_file: Path) -> list:
    try:
        with open(items_file, encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"{items_file} is not valid JSON: {e}",
            error_code=ErrorCode.CONFIG_PARSE_ERROR,
            user_message=f"Could not parse {items_file.name}: {e.msg} (line {e.lineno})",
        ) from e

    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return data
    raise ConfigurationError(
        f"{items_file} must contain an object or a list",
        error_code=ErrorCode.CONFIG_PARSE_ERROR,
        user_message=f"{items_file.name} must contain an entry object or a list of entries",
    )


def _print_summary(result, diagnostics: IngestionDiagnostics) -> None:
    table = Table(title=f"Processed Entries ({result.processed} ok, {result.failed} skipped)")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Body", style="green")
    table.add_column("Lead")
    table.add_column("Image")
    table.add_column("HTML bytes", justify="right")
    table.add_column("Flags")

    for entry in result.entries:
        selection = entry.selection.diagnostics
        assembly = entry.assembly.diagnostics
        flags = []
        if assembly.truncated:
            flags.append("truncated")
        if assembly.removed_embeds:
            flags.append(f"-{assembly.removed_embeds} embeds")
        if assembly.tracker_params_removed:
            flags.append(f"-{assembly.tracker_params_removed} trackers")

        table.add_row(
            escape(entry.normalized.title) or "(untitled)",
            str(getattr(selection.chosen_source, 'value', selection.chosen_source)),
            "yes" if selection.lead_used else "no",
            assembly.image_source.value,
            str(len(entry.assembly.article_html.encode('utf-8'))),
            ", ".join(flags),
        )

    console.print(table)

    weak = [entry for entry in diagnostics.get_recent(limit=diagnostics.max_entries) if entry.weak_content]
    if weak:
        console.print(f"[yellow]⚠️ {len(weak)} entries look weak (short or without block markup)[/yellow]")


def _check_logging_config(settings) -> tuple[bool, str]:
    """Check logging configuration."""
    try:
        if settings.logging.file_path:
            log_path = Path(settings.logging.file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"
    except OSError as e:
        return False, str(e)


def _check_selection_config(settings) -> tuple[bool, str]:
    """Check body/lead selection thresholds."""
    selection = settings.selection
    return True, (
        f"Dedupe: {selection.dedupe_threshold}, Body limit: {selection.body_limit_kb}KB, "
        f"Lead: {selection.lead_text_limit} chars"
    )


def _check_assembly_config(settings) -> tuple[bool, str]:
    """Check article assembly options."""
    assembly = settings.assembly
    if assembly.keep_embeds and not assembly.allowed_iframe_hosts:
        return False, "keep_embeds is enabled but no iframe hosts are allowed"
    embeds = ", ".join(assembly.allowed_iframe_hosts) if assembly.keep_embeds else "dropped"
    return True, f"Max HTML: {assembly.max_html_kb}KB, Excerpt: {assembly.excerpt_max_chars}, Embeds: {embeds}"


def _check_diagnostics_config(settings) -> tuple[bool, str]:
    """Check ingestion diagnostics configuration."""
    diagnostics = settings.diagnostics
    if not diagnostics.enabled:
        return True, "Disabled"
    return True, f"Max entries: {diagnostics.max_entries}, Preview: {diagnostics.preview_length} chars"


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FeedPress interrupted by user[/yellow]")
        sys.exit(130)
