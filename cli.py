"""
cli.py - Operator CLI

Headless front end for the kernel.

Commands:
    run              Drive a session for N ticks and print the final snapshot
    scenarios        List scenario presets
    classify         Evaluate the governance classifier once
    validate-config  Check a KernelConfig file

Usage:
    sophia-kernel run --ticks 120 --scenario "Inner Storm" --seed 7
    sophia-kernel classify --health 0.3 --lesions 2 --decoherence 0.5 -o json
"""

import json
import logging
import sys
import warnings
from contextlib import ExitStack
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

import kernel_config
from event_log import LogType, to_records
from kernel.classifier import classify_governance_axiom
from kernel.constants import ControlMode, GovernanceAxiom
from kernel.session import Session
from kernel.types_config import SCENARIOS, get_scenario

console = Console()

_LOG_STYLES = {
    LogType.INFO: "cyan",
    LogType.SYSTEM: "magenta",
    LogType.WARNING: "yellow",
    LogType.CRITICAL: "bold red",
}


# =============================================================================
# Output helpers
# =============================================================================

def print_error(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")


def _make_health_bar(value: float, width: int = 20) -> str:
    filled = int(round(max(0.0, min(1.0, value)) * width))
    color = "green" if value > 0.7 else "yellow" if value > 0.4 else "red"
    return f"[{color}]{'█' * filled}{'░' * (width - filled)}[/{color}]"


def _snapshot_summary(session: Session) -> dict:
    s = session.state
    return {
        "tick": s.tick_count,
        "clock": s.clock,
        "mode": session.mode.value,
        "governance_axiom": s.governance_axiom.value,
        "health": s.health.health,
        "lesions": s.health.lesions,
        "decoherence": s.health.decoherence,
        "shield": s.health.stabilization_shield,
        "resonance_factor": s.resonance_factor,
        "temporal_drift": s.temporal_drift,
        "coherence_score": s.coherence.score,
        "coherence_status": s.coherence.status.value,
        "breath_phase": s.breath_phase.value,
        "tier": s.resources.tier.value,
        "tokens": s.resources.tokens,
    }


# =============================================================================
# CLI
# =============================================================================

@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Mirror kernel events to stderr")
def cli(verbose: bool) -> None:
    """Continuous system-state simulation kernel."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# --- run ---

@cli.command("run")
@click.option("--ticks", "-n", default=60, show_default=True, type=click.IntRange(min=0))
@click.option("--mode", "-m", type=click.Choice([m.value for m in ControlMode], case_sensitive=False))
@click.option("--scenario", "-s", help="Scenario preset name")
@click.option("--seed", type=int, help="RNG seed (overrides config)")
@click.option("--optimize", is_flag=True, help="Hold the optimization boost on")
@click.option("--grounded", is_flag=True, help="Run grounded")
@click.option("--diagnostic", is_flag=True, help="Enable diagnostic jitter")
@click.option("--config", "config_path", type=click.Path(exists=True), help="KernelConfig JSON/YAML")
@click.option("--receipts", "receipts_path", type=click.Path(), help="Append receipts as JSONL")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich")
def run_cmd(ticks: int, mode: Optional[str], scenario: Optional[str], seed: Optional[int],
            optimize: bool, grounded: bool, diagnostic: bool, config_path: Optional[str],
            receipts_path: Optional[str], output: str) -> None:
    """Drive a session for N ticks on the virtual clock."""
    try:
        config = kernel_config.load(config_path) if config_path else kernel_config.default()
        params = get_scenario(scenario).params if scenario else None
    except KeyError as e:
        print_error(str(e.args[0]))
        sys.exit(2)
    except (ValueError, OSError, yaml.YAMLError) as e:
        print_error(f"Config load failed: {e}")
        sys.exit(2)

    store = None
    if config.store_path:
        from persistence import StateStore
        store = StateStore(config.store_path)
    fetcher = None
    if config.profile_url:
        from profile_sync import fetch_profile
        fetcher = lambda: fetch_profile(config.profile_url, config.profile_token, config.profile_timeout)

    with ExitStack() as stack:
        receipts_out = stack.enter_context(open(receipts_path, "a")) if receipts_path else None
        session = stack.enter_context(Session(config, store=store, profile_fetcher=fetcher,
                                              receipts_out=receipts_out, seed=seed))
        if params is not None:
            session.set_params(params)
        if mode:
            session.set_mode(mode.upper())
        session.set_optimization(optimize)
        session.set_grounded(grounded)
        session.set_diagnostic(diagnostic)
        session.advance(ticks * config.tick_period)
        summary = _snapshot_summary(session)
        log = to_records(session.state.log)

    if output == "json":
        click.echo(json.dumps({"summary": summary, "log": log}, indent=2))
        return

    table = Table(title=f"Kernel after {summary['tick']} ticks")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("")
    table.add_row("Health", f"{summary['health']:.3f}", _make_health_bar(summary["health"]))
    table.add_row("Decoherence", f"{summary['decoherence']:.3f}", _make_health_bar(1 - summary["decoherence"]))
    table.add_row("Shield", f"{summary['shield']:.3f}", _make_health_bar(summary["shield"]))
    table.add_row("Resonance", f"{summary['resonance_factor']:.3f}", _make_health_bar(summary["resonance_factor"]))
    table.add_row("Lesions", str(summary["lesions"]), "")
    table.add_row("Temporal drift", f"{summary['temporal_drift']:.4f}", "")
    table.add_row("Coherence", f"{summary['coherence_score']:.3f}", summary["coherence_status"])
    table.add_row("Breath", summary["breath_phase"], "")
    console.print(table)

    failed = summary["governance_axiom"] == GovernanceAxiom.FAILURE.value
    style = "red" if failed else "green"
    console.print(Panel(summary["governance_axiom"], title="Governance Axiom", border_style=style))

    for entry in log[:10]:
        style = _LOG_STYLES[LogType(entry["type"])]
        console.print(f"[{style}]{entry['type']:<8}[/{style}] {entry['message']}")


# --- scenarios ---

@cli.command("scenarios")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich")
def scenarios_cmd(output: str) -> None:
    """List scenario presets."""
    if output == "json":
        click.echo(json.dumps({
            name: {
                "description": s.description,
                "decoherence_chance": s.params.decoherence_chance,
                "lesion_chance": s.params.lesion_chance,
            } for name, s in SCENARIOS.items()
        }, indent=2))
        return
    table = Table(title="Scenario Presets")
    table.add_column("Name", style="cyan")
    table.add_column("Decoherence", justify="right")
    table.add_column("Lesion", justify="right")
    table.add_column("Description")
    for name, s in SCENARIOS.items():
        table.add_row(name, f"{s.params.decoherence_chance:.3f}",
                      f"{s.params.lesion_chance:.3f}", s.description)
    console.print(table)


# --- classify ---

@cli.command("classify")
@click.option("--health", type=click.FloatRange(0.0, 1.0), required=True)
@click.option("--lesions", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--decoherence", type=click.FloatRange(0.0, 1.0), default=0.0, show_default=True)
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich")
def classify_cmd(health: float, lesions: int, decoherence: float, output: str) -> None:
    """Evaluate the governance classifier once."""
    axiom = classify_governance_axiom(health, lesions, decoherence)
    if output == "json":
        click.echo(json.dumps({
            "health": health, "lesions": lesions, "decoherence": decoherence,
            "axiom": axiom.name, "label": axiom.value,
        }))
    else:
        console.print(f"[bold]{axiom.value}[/bold] [dim]({axiom.name})[/dim]")


# --- validate-config ---

@cli.command("validate-config")
@click.argument("config_path", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich")
def validate_config_cmd(config_path: str, output: str) -> None:
    """Validate a KernelConfig file (strict)."""
    try:
        config = kernel_config.load(config_path, strict=True)
        errors = []
    except kernel_config.ConfigError as e:
        config = None
        errors = [str(e)]

    healed = None
    if config is None:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            healed = kernel_config.load(config_path, strict=False)
        errors.extend(str(w.message) for w in caught)

    if output == "json":
        click.echo(json.dumps({
            "path": config_path,
            "valid": config is not None,
            "errors": errors,
            "config": (config or healed).to_dict(),
        }, indent=2, default=str))
    else:
        status, style = ("PASSED", "green") if config is not None else ("FAILED", "red")
        lines = [f"File: {config_path}"] + [f"[red]✗[/red] {e}" for e in errors]
        console.print(Panel("\n".join(lines),
                            title=f"[bold {style}]Config Validation: {status}[/bold {style}]",
                            border_style=style))
    if config is None:
        sys.exit(1)


def main() -> int:
    """Entry point."""
    try:
        cli(standalone_mode=False)
        return 0
    except click.ClickException as e:
        e.show()
        return 2
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 0


if __name__ == "__main__":
    sys.exit(main())
