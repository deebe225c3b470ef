"""Command line interface for tagmap."""

from __future__ import annotations

import difflib
import logging
from pathlib import Path
from typing import Any, Callable, NoReturn, Optional

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.syntax import Syntax

from tagmap.config import (
    ConfigError,
    ConfigManager,
    TagMapConfig,
    flatten_for_env,
    merge_defaults,
)
from tagmap.runner import RunCoordinator, RunReport
from tagmap.vault import Vault, VaultError
from tagmap.watch import TagMapService

console = Console()
_log_console = Console(stderr=True)

_VAULT_ARGUMENT = click.argument(
    "path", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
_SET_OPTION = click.option(
    "--set",
    "overrides",
    multiple=True,
    metavar="KEY=VALUE",
    help="Override a setting for this run only (repeatable), e.g. --set sort_by=modified.",
)


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> NoReturn:
    """Emit a standardized error and terminate the command.

    Raises:
        SystemExit: When emitting JSON output.
        click.ClickException: For non-JSON flows.
    """
    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)

    raise click.ClickException(message) from original


def _configure_logging(config: TagMapConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level, logging.WARNING)
    root = logging.getLogger()
    root.setLevel(level)
    if not any(isinstance(handler, RichHandler) for handler in root.handlers):
        root.addHandler(RichHandler(console=_log_console, show_path=False))


def _parse_overrides(pairs: tuple[str, ...]) -> dict[str, Any]:
    """Parse repeated ``KEY=VALUE`` options into a dotted-key mapping.

    Raises:
        ConfigError: If an entry lacks ``=`` or its value is not valid YAML.
    """
    overrides: dict[str, Any] = {}
    for pair in pairs:
        key, separator, raw_value = pair.partition("=")
        key = key.strip()
        if not separator or not key:
            raise ConfigError(f"Override '{pair}' must look like KEY=VALUE.")
        try:
            overrides[key] = yaml.safe_load(raw_value)
        except (yaml.YAMLError, ValueError) as exc:
            raise ConfigError(f"Unable to parse value for {key}: {exc}") from exc
    return overrides


def _load_config(
    path: Path,
    *,
    overrides: tuple[str, ...] = (),
    json_output: bool = False,
) -> tuple[ConfigManager, TagMapConfig]:
    manager = ConfigManager.for_vault(path)
    try:
        config = manager.load(cli_overrides=_parse_overrides(overrides) or None)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    return manager, config


def _emit_report(report: Optional[RunReport], root: Path, *, json_output: bool, quiet: bool) -> None:
    if json_output:
        payload: dict[str, Any] = {"skipped": report is None}
        if report is not None:
            payload["report"] = report.to_dict()
        console.print_json(data=payload)
        return
    if quiet:
        return
    if report is None:
        console.print("[yellow]An index run is already in progress; nothing to do.[/yellow]")
        return
    console.print(
        f"[green]Index summary for {root}: notes={report.document_count}, "
        f"tags={report.tag_count}, untagged={report.untagged_count}.[/green]",
        soft_wrap=True,
    )


def _run(
    path: Path,
    operation: Callable[[RunCoordinator], Optional[RunReport]],
    *,
    overrides: tuple[str, ...],
    json_output: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    _, config = _load_config(path, overrides=overrides, json_output=json_output)
    _configure_logging(config, verbose)

    def _notify(message: str) -> None:
        if not json_output and not quiet:
            console.print(f"[cyan]{escape(message)}[/cyan]")

    coordinator = RunCoordinator(Vault(path), config, notifier=_notify)
    try:
        report = operation(coordinator)
    except VaultError as exc:
        _handle_cli_error(str(exc), code="storage_error", json_output=json_output, original=exc)
    _emit_report(report, path, json_output=json_output, quiet=quiet)


def _settings_lines(lines: list[str]) -> list[str]:
    """Drop the generated comment header so diffs only show settings."""
    return [line for line in lines if not line.startswith("#")]


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign ``value`` at a dotted location inside ``target``.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """
    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(f"Cannot assign into '{segment}' because it is not a mapping.")
        node = existing
    node[path[-1]] = value


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="tagmap")
def cli() -> None:
    """tagmap builds a map-of-content note that groups your notes by tag."""


@cli.command()
@_VAULT_ARGUMENT
@_SET_OPTION
@click.option("--json", "json_output", is_flag=True, help="Emit the run report as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def generate(
    path: Path, overrides: tuple[str, ...], json_output: bool, quiet: bool, verbose: bool
) -> None:
    """Create or recreate the index note for the vault at PATH."""
    _run(
        path,
        RunCoordinator.create_or_update,
        overrides=overrides,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
    )


@cli.command()
@_VAULT_ARGUMENT
@_SET_OPTION
@click.option("--json", "json_output", is_flag=True, help="Emit the run report as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def update(
    path: Path, overrides: tuple[str, ...], json_output: bool, quiet: bool, verbose: bool
) -> None:
    """Regenerate the index note for the vault at PATH now."""
    _run(
        path,
        RunCoordinator.update,
        overrides=overrides,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
    )


@cli.command()
@_VAULT_ARGUMENT
@_SET_OPTION
@click.option("--debounce", type=float, help="Override the quiet period in seconds.")
@click.option("--once", is_flag=True, help="Regenerate once and exit.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def watch(
    path: Path, overrides: tuple[str, ...], debounce: float | None, once: bool, verbose: bool
) -> None:
    """Keep the index note at PATH current as notes change."""
    if debounce is not None and debounce <= 0:
        raise click.ClickException("--debounce must be greater than zero.")

    manager, config = _load_config(path, overrides=overrides)
    _configure_logging(config, verbose)

    service = TagMapService(
        path,
        config_manager=manager,
        config=config,
        notifier=lambda message: console.print(f"[cyan]{escape(message)}[/cyan]"),
        debounce_override=debounce,
    )

    try:
        report = service.update()
    except VaultError as exc:
        raise click.ClickException(str(exc)) from exc
    _emit_report(report, service.vault.root, json_output=False, quiet=False)
    if once:
        return

    if not config.auto_update:
        console.print(
            "[yellow]auto_update is disabled; only settings changes will be picked up.[/yellow]"
        )
    console.print(
        f"[cyan]Watching {service.vault.root}. Press Ctrl+C to stop.[/cyan]", soft_wrap=True
    )
    try:
        service.watch()
    except KeyboardInterrupt:
        service.stop()
        console.print("[yellow]Watch stopped by user request.[/yellow]")


@cli.group()
def config() -> None:
    """Manage per-vault tagmap settings."""


@config.command("view")
@_VAULT_ARGUMENT
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
@click.option(
    "--env",
    "as_env",
    is_flag=True,
    help="Print the settings as TAGMAP__ environment variable assignments.",
)
def config_view(path: Path, no_env: bool, as_env: bool) -> None:
    """Display the effective settings for the vault at PATH."""
    manager = ConfigManager.for_vault(path)
    try:
        effective = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_env:
        for key, value in flatten_for_env(effective).items():
            click.echo(f"{key}={value}")
        return

    yaml_text = yaml.safe_dump(
        effective.model_dump(mode="python"), sort_keys=False, allow_unicode=True
    )
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@_VAULT_ARGUMENT
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(path: Path, key: str, value: str) -> None:
    """Persist a setting expressed as a dotted KEY."""
    manager = ConfigManager.for_vault(path)
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must name a setting such as 'sort_by' or 'logging.level'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        _assign_nested(file_data, segments, parsed_value)
        validated = merge_defaults(file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(validated)
    after = manager.read_text().splitlines()

    diff = list(
        difflib.unified_diff(
            _settings_lines(before),
            _settings_lines(after),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
@_VAULT_ARGUMENT
def config_edit(path: Path) -> None:
    """Open the settings file of the vault at PATH in an editor."""
    manager = ConfigManager.for_vault(path)
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        validated = merge_defaults(parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(validated)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
