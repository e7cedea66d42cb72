from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError

from . import __version__
from .analysis.protection import ProtectionClassifier
from .config import AppConfig, load_config
from .report.jsonout import render_json
from .report.text import render_changes, render_kill_result, render_port_table, render_scan, render_verdict
from .scanner import PortScanner, PortSession
from .system.platforms import detect_platform
from .system.runner import SubprocessRunner
from .termination import OverrideAnswer, Prompt, TerminationCoordinator


app = typer.Typer(help="Portwarden: list listening ports and safely stop the processes behind them.")


@dataclass
class CliState:
    config: AppConfig
    verbose: bool = False


class TyperConfirmer:
    """Answers termination gates interactively on the terminal."""

    def __init__(self, assume_yes: bool = False):
        self.assume_yes = assume_yes

    @staticmethod
    def _show(prompt: Prompt) -> None:
        typer.echo(f"\n{prompt.title}\n{prompt.message}\n")
        if prompt.detail:
            typer.echo(f"{prompt.detail}\n")

    def override(self, prompt: Prompt) -> OverrideAnswer:
        self._show(prompt)
        if not typer.confirm(f"{prompt.accept_label}?", default=False):
            return OverrideAnswer()
        acknowledged = typer.confirm(prompt.checkbox_label or "Proceed?", default=False)
        return OverrideAnswer(force=True, acknowledged=acknowledged)

    def final_warning(self, prompt: Prompt) -> bool:
        if self.assume_yes:
            return True
        self._show(prompt)
        return typer.confirm(f"{prompt.accept_label}?", default=False)

    def confirm(self, prompt: Prompt) -> bool:
        if self.assume_yes:
            return True
        self._show(prompt)
        return typer.confirm(f"{prompt.accept_label}?", default=False)


def _version_callback(value: bool):
    if value:
        typer.echo(__version__)
        raise typer.Exit(0)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", callback=_version_callback, is_eager=True
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML configuration file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        cfg = load_config(config)
    except (ValidationError, yaml.YAMLError) as e:
        typer.echo(f"Invalid configuration in {config}: {e}", err=True)
        raise typer.Exit(2)
    ctx.obj = CliState(config=cfg, verbose=verbose)


def build_scanner(cfg: AppConfig) -> PortScanner:
    return PortScanner(
        platform=detect_platform(),
        runner=SubprocessRunner(timeout=cfg.scan.command_timeout),
        classifier=ProtectionClassifier(cfg.protection),
        settings=cfg.scan,
    )


def build_coordinator(cfg: AppConfig, confirmer) -> TerminationCoordinator:
    return TerminationCoordinator(
        classifier=ProtectionClassifier(cfg.protection),
        platform=detect_platform(),
        runner=SubprocessRunner(timeout=cfg.scan.command_timeout),
        confirmer=confirmer,
    )


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj if isinstance(ctx.obj, CliState) else CliState(config=AppConfig())


@app.command()
def scan(
    ctx: typer.Context,
    json_out: bool = typer.Option(False, "--json", help="Print the scan result as JSON."),
    retry: Optional[int] = typer.Option(None, "--retry", min=1, help="Maximum discovery attempts."),
    fallback: Optional[bool] = typer.Option(None, "--fallback/--no-fallback", help="Use netstat when the primary command fails."),
):
    """List listening ports with their owning processes and protection level."""
    state = _state(ctx)
    response = build_scanner(state.config).scan_ports(max_attempts=retry, use_fallback=fallback)
    if json_out:
        typer.echo(render_json(response))
    elif response.success:
        typer.echo(render_scan(response), nl=False)
    if not response.success:
        typer.echo(response.user_message or response.error or "Scan failed", err=True)
        raise typer.Exit(1)


@app.command()
def info(
    ctx: typer.Context,
    port: int = typer.Argument(..., help="Port number to look up."),
    json_out: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """Show the process listening on PORT."""
    state = _state(ctx)
    response = build_scanner(state.config).get_port_info(port)
    if json_out:
        typer.echo(render_json(response))
    if not response.success:
        typer.echo(response.error or "Port lookup failed", err=True)
        raise typer.Exit(1)
    if json_out:
        return
    if response.data is None:
        typer.echo(f"Nothing is listening on port {port}.")
        return
    typer.echo(render_port_table([response.data]), nl=False)
    typer.echo(render_verdict(response.data.protection), nl=False)


def _finish_kill(result, json_out: bool, verbose: bool) -> None:
    if json_out:
        typer.echo(render_json(result, exclude_none=True))
    else:
        typer.echo(render_kill_result(result, show_details=verbose), nl=False, err=not result.success)
    if not result.success:
        raise typer.Exit(1)


@app.command()
def kill(
    ctx: typer.Context,
    pid: str = typer.Argument(..., help="PID of the process to stop."),
    name: Optional[str] = typer.Option(None, "--name", help="Process name (looked up when omitted)."),
    port: Optional[int] = typer.Option(None, "--port", help="Port the process listens on."),
    force: bool = typer.Option(False, "--force", help="Request a force stop of a protected process."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer the confirmation prompts with yes."),
    json_out: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """Stop process PID after protection checks and confirmation."""
    state = _state(ctx)
    coordinator = build_coordinator(state.config, TyperConfirmer(assume_yes=yes))
    result = coordinator.kill_process(pid, process_name=name, port=port, force_stop=force)
    _finish_kill(result, json_out, state.verbose)


@app.command("kill-port")
def kill_port(
    ctx: typer.Context,
    port: int = typer.Argument(..., help="Port whose owning process should be stopped."),
    force: bool = typer.Option(False, "--force", help="Request a force stop of a protected process."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer the confirmation prompts with yes."),
    json_out: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """Stop the process listening on PORT."""
    state = _state(ctx)
    lookup = build_scanner(state.config).get_port_info(port)
    if not lookup.success:
        typer.echo(lookup.error or "Port lookup failed", err=True)
        raise typer.Exit(1)
    if lookup.data is None:
        typer.echo(f"Nothing is listening on port {port}.", err=True)
        raise typer.Exit(1)
    record = lookup.data
    coordinator = build_coordinator(state.config, TyperConfirmer(assume_yes=yes))
    result = coordinator.kill_process(record.pid, process_name=record.process_name, port=port, force_stop=force)
    _finish_kill(result, json_out, state.verbose)


@app.command()
def classify(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Process name to classify."),
    port: Optional[int] = typer.Option(None, "--port", help="Port the process listens on."),
):
    """Show the protection verdict for a process name and optional port."""
    state = _state(ctx)
    verdict = ProtectionClassifier(state.config.protection).classify(name, port)
    typer.echo(render_verdict(verdict), nl=False)


@app.command()
def watch(
    ctx: typer.Context,
    interval: float = typer.Option(5.0, "--interval", min=0.1, help="Seconds between scans."),
    count: int = typer.Option(0, "--count", min=0, help="Number of scans (0 = until interrupted)."),
):
    """Rescan periodically in the foreground and print what changed."""
    state = _state(ctx)
    session = PortSession(build_scanner(state.config))
    done = 0
    try:
        while count == 0 or done < count:
            first = session.previous is None
            response, changes = session.refresh()
            if not response.success:
                typer.echo(response.user_message or response.error or "Scan failed", err=True)
            elif first:
                typer.echo(render_scan(response), nl=False)
            elif not changes.is_empty:
                typer.echo(render_changes(changes), nl=False)
            done += 1
            if count == 0 or done < count:
                time.sleep(interval)
    except KeyboardInterrupt:
        typer.echo("")


@app.command()
def check(ctx: typer.Context):
    """Check that the port-listing commands are available."""
    state = _state(ctx)
    result = build_scanner(state.config).check_system()
    typer.echo(f"Platform: {result.platform}")
    typer.echo(f"Required commands: {'ok' if result.has_commands else 'missing ' + ', '.join(result.missing_commands)}")
    typer.echo(f"Elevated privileges: {'yes' if result.is_elevated else 'no (some processes may be hidden)'}")
    if not result.has_commands:
        raise typer.Exit(1)


def main():
    app()


if __name__ == "__main__":
    main()
