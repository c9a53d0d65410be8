# ──────────────────────────────────────────────────────────────────────
# CoreOps — Command-Line Interface
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
from __future__ import annotations

import logging
import math
import sys
from typing import Optional

import click

from coreops.core.config_schema import load_config
from coreops.core.errors import CoreOpsError
from coreops.io.logging_config import setup_coreops_logging
from coreops.operations.base import OperationKind

LOGGER = logging.getLogger("coreops.cli")

_TABLE_COLUMNS = ("time_s", "error", "power_fraction", "eigenvalue", "ppm", "asi", "fq")


def _configure_logging(level: str, json_output: bool) -> None:
    setup_coreops_logging(getattr(logging, level.upper(), logging.INFO), json_output=json_output)


def _format_value(value) -> str:
    if isinstance(value, float):
        return "nan" if math.isnan(value) else f"{value:.5g}"
    return str(value)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for coreops.* loggers.",
)
@click.option("--json-log", is_flag=True, help="Emit log records as JSON lines.")
@click.pass_context
def cli(ctx: click.Context, log_level: str, json_log: bool) -> None:
    """Reactor-operation scenarios on the reference point-model solver."""
    ctx.ensure_object(dict)
    _configure_logging(log_level, json_log)


@cli.command("run")
@click.argument("config", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "output", type=click.Path(dir_okay=False), default=None, help="Write the step history to CSV.")
@click.option("--plot", "plot", type=click.Path(dir_okay=False), default=None, help="Save a history plot (PNG).")
def run_command(config: str, output: Optional[str], plot: Optional[str]) -> None:
    """Run the operation configured in CONFIG."""
    from coreops.io.history import history_frame, plot_history, write_history_csv
    from coreops.runner import run_operation

    try:
        cfg = load_config(config)
        results = run_operation(cfg)
    except CoreOpsError as exc:
        raise click.ClickException(str(exc)) from exc

    frame = history_frame(results)
    if frame.empty:
        click.echo("no steps were run")
        return
    columns = [c for c in _TABLE_COLUMNS if c in frame.columns]
    click.echo(" | ".join(columns))
    for _, row in frame[columns].iterrows():
        click.echo(" | ".join(_format_value(row[c]) for c in columns))

    failed = int((frame["error"] != 0).sum())
    if failed:
        LOGGER.warning("%d of %d step(s) returned a solver error", failed, len(frame))

    if output:
        write_history_csv(results, output)
        click.echo(f"history written to {output}")
    if plot:
        saved, error = plot_history(results, plot, title=cfg.name)
        if not saved:
            raise click.ClickException(f"plot not saved: {error}")
        click.echo(f"plot written to {plot}")


@cli.command("margin")
@click.argument("config", type=click.Path(exists=True, dir_okay=False))
@click.option("--dt", type=float, default=None, help="Poison advance before the evaluation (s).")
def margin_command(config: str, dt: Optional[float]) -> None:
    """Shutdown margin for the state and stuck-rod scenario in CONFIG."""
    from coreops.runner import run_margin

    if dt is not None and (not math.isfinite(dt) or dt < 0.0):
        raise click.ClickException("--dt must be finite and >= 0.")
    try:
        result = run_margin(load_config(config), dt=dt)
    except CoreOpsError as exc:
        raise click.ClickException(str(exc)) from exc
    for key, value in result.to_dict().items():
        click.echo(f"{key}: {_format_value(value)}")
    click.echo(f"adequate: {'yes' if result.adequate else 'no'}")


@cli.command("kinds")
def kinds_command() -> None:
    """List the operation kinds a config may select."""
    for kind in OperationKind:
        click.echo(kind.value)


def main() -> int:
    try:
        cli.main(standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.exceptions.Abort:
        return 1
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 1
        return code
    return 0


if __name__ == "__main__":
    sys.exit(main())
