"""Typer CLI entrypoint and command definitions for focusledger."""

import datetime as dt
import json
import logging
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer()

_DATA_DIR_HELP = "Data directory (defaults to the per-user data directory)"


def _data_dir(data_dir: Optional[str]) -> Path:
    if data_dir:
        path = Path(data_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path
    from focusledger.storage.paths import get_data_dir

    return get_data_dir()


def _settings(root: Path):
    from focusledger.core.config import UserConfig

    return UserConfig(root).settings


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        typer.echo(f"Invalid date: {value!r} (expected YYYY-MM-DD)", err=True)
        raise typer.Exit(code=1)


def _load_repository(root: Path):
    from focusledger.monitor.app import open_repository

    repo = open_repository(root, settings=_settings(root), autosave=False)
    for future in repo.load():
        result = future.result()
        if result.error is not None:
            typer.echo(f"Warning: {result.error.kind}: {result.error.message}", err=True)
    return repo


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Track foreground-application focus and context switches."""
    from focusledger.core.logging import configure_logging

    configure_logging(logging.DEBUG if verbose else logging.WARNING)


# -- ingest -------------------------------------------------------------------


@app.command("ingest")
def ingest_cmd(
    file: str = typer.Option(..., "--file", help="Signals file (.csv or .jsonl) with app_id, app_name, timestamp"),
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Replay recorded focus signals through the pipeline and persist the result."""
    from focusledger.monitor.app import build_monitor

    path = Path(file)
    if not path.exists():
        typer.echo(f"File not found: {path}", err=True)
        raise typer.Exit(code=1)

    try:
        signals = _read_signals(path)
    except (ValueError, KeyError) as exc:
        typer.echo(f"Invalid signals file: {exc}", err=True)
        raise typer.Exit(code=1)

    root = _data_dir(data_dir)
    monitor = build_monitor(root, settings=_settings(root), timer_factory=None, autosave=False)
    monitor.start(background_cleanup=False)
    before = len(monitor.repository.events())
    for app_id, app_name, ts in signals:
        monitor.on_focus_signal(app_id, app_name, ts)
    monitor.shutdown()

    added = len(monitor.repository.events()) - before
    typer.echo(
        f"Ingested {len(signals)} signals -> {added} activations, "
        f"{len(monitor.repository.switches())} context switches"
    )


def _read_signals(path: Path) -> list[tuple[str, str, dt.datetime]]:
    """Read ``(app_id, app_name, timestamp)`` rows sorted by timestamp."""
    import pandas as pd

    if path.suffix == ".csv":
        df = pd.read_csv(path, dtype={"app_id": str, "app_name": str})
    else:
        with open(path, encoding="utf-8") as f:
            rows = [json.loads(line) for line in f if line.strip()]
        df = pd.DataFrame(rows)
    missing = {"app_id", "timestamp"} - set(df.columns)
    if missing:
        raise KeyError(f"missing column(s): {sorted(missing)}")
    if "app_name" not in df.columns:
        df["app_name"] = None
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df = df.sort_values("timestamp", kind="stable")
    return [
        (
            str(row.app_id),
            row.app_name if isinstance(row.app_name, str) and row.app_name else None,
            row.timestamp.to_pydatetime(),
        )
        for row in df.itertuples(index=False)
    ]


# -- events -------------------------------------------------------------------
events_app = typer.Typer()
app.add_typer(events_app, name="events")


@events_app.command("list")
def events_list_cmd(
    limit: int = typer.Option(20, help="Show at most this many of the latest events"),
    date: Optional[str] = typer.Option(None, help="Only events on this date (YYYY-MM-DD, UTC)"),
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """List stored activation events, newest last."""
    from focusledger.core.time import day_bounds

    repo = _load_repository(_data_dir(data_dir))
    events = list(repo.events())
    repo.close()
    if date is not None:
        start, end = day_bounds(_parse_date(date))
        events = [e for e in events if start <= e.timestamp < end]

    if not events:
        typer.echo("No events.")
        return
    for e in events[-limit:]:
        marker = "*" if e.is_session_start else " "
        typer.echo(f"{e.timestamp.isoformat()} {marker} {e.app_name:<24} {e.category:<20} #{e.session_switch_count}")


# -- switches -----------------------------------------------------------------
switches_app = typer.Typer()
app.add_typer(switches_app, name="switches")


@switches_app.command("rebuild")
def switches_rebuild_cmd(
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Re-synthesize context switches from the stored events."""
    from focusledger.monitor.app import ActivityMonitor

    root = _data_dir(data_dir)
    repo = _load_repository(root)
    monitor = ActivityMonitor(repo, settings=_settings(root), timer_factory=None)
    switches = monitor.rebuild_context_switches()
    for future in repo.flush():
        result = future.result()
        if not result.ok:
            typer.echo(f"Save failed: {result.error.message}", err=True)
            raise typer.Exit(code=1)
    repo.close()
    typer.echo(f"Rebuilt {len(switches)} context switches")


# -- metrics ------------------------------------------------------------------


@app.command("metrics")
def metrics_cmd(
    date: Optional[str] = typer.Option(None, help="Restrict to this date (YYYY-MM-DD, UTC)"),
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Print the productivity score and interaction counts."""
    from focusledger.core.time import day_bounds
    from focusledger.monitor.app import ActivityMonitor

    root = _data_dir(data_dir)
    repo = _load_repository(root)
    monitor = ActivityMonitor(repo, settings=_settings(root), timer_factory=None)
    start = end = None
    if date is not None:
        start, end = day_bounds(_parse_date(date))
    metrics = monitor.productivity_metrics(start, end)
    repo.close()
    typer.echo(json.dumps(metrics.summary(), indent=2))


# -- report -------------------------------------------------------------------
report_app = typer.Typer()
app.add_typer(report_app, name="report")


@report_app.command("daily")
def report_daily_cmd(
    date: str = typer.Option(..., help="Date in YYYY-MM-DD format (UTC)"),
    out: Optional[str] = typer.Option(None, help="Write the report as JSON to this path"),
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Build a daily activity report."""
    from focusledger.report.daily import build_daily_report
    from focusledger.report.export import export_report_json

    root = _data_dir(data_dir)
    repo = _load_repository(root)
    events, switches = repo.events(), repo.switches()
    repo.close()

    try:
        report = build_daily_report(events, switches, _parse_date(date), settings=_settings(root))
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    if out:
        path = export_report_json(report, Path(out))
        typer.echo(f"Wrote report to {path}")
    else:
        typer.echo(json.dumps(report.model_dump(mode="json"), indent=2))


# -- export -------------------------------------------------------------------
export_app = typer.Typer()
app.add_typer(export_app, name="export")


@export_app.command("switches")
def export_switches_cmd(
    out: str = typer.Option(..., help="Destination CSV path"),
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Export context switches as CSV."""
    from focusledger.report.export import export_switches_csv

    repo = _load_repository(_data_dir(data_dir))
    switches = repo.switches()
    repo.close()
    path = export_switches_csv(switches, Path(out))
    typer.echo(f"Wrote {len(switches)} switches to {path}")


@export_app.command("events")
def export_events_cmd(
    out: str = typer.Option(..., help="Destination Parquet path"),
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Export activation events as Parquet (enrichment fields omitted)."""
    from focusledger.report.export import export_events_parquet

    repo = _load_repository(_data_dir(data_dir))
    events = repo.events()
    repo.close()
    path = export_events_parquet(events, Path(out))
    typer.echo(f"Wrote {len(events)} events to {path}")


# -- store --------------------------------------------------------------------
store_app = typer.Typer()
app.add_typer(store_app, name="store")


def _entry_store(root: Path):
    from focusledger.core.types import AnalysisEntry
    from focusledger.storage.entries import EntryStore
    from focusledger.storage.paths import DataLayout

    settings = _settings(root)
    layout = DataLayout(root)
    return EntryStore(
        layout.analyses,
        AnalysisEntry,
        backup_directory=layout.analyses_backup,
        max_backups=settings.max_backups_per_entry,
        retention_days=settings.backup_retention_days,
        min_free_bytes=settings.min_free_bytes,
    )


@store_app.command("check")
def store_check_cmd(
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Check that the stored collections and their backups can be read."""
    from focusledger.core.types import ActivationEvent, ContextSwitch
    from focusledger.storage.collection import CollectionStore
    from focusledger.storage.paths import DataLayout

    root = _data_dir(data_dir)
    layout = DataLayout(root)
    report: dict[str, object] = {"data_dir": str(root)}
    healthy = True
    for name, path, backup, model in (
        ("events", layout.events, layout.events_backup, ActivationEvent),
        ("switches", layout.switches, layout.switches_backup, ContextSwitch),
    ):
        with CollectionStore(path, model, name=name, backup_path=backup) as store:
            info = store.check().result()
        report[name] = info
        primary = info["primary"]
        if primary["exists"] and not primary.get("ok", False):
            healthy = False

    with _entry_store(root) as entries:
        result = entries.load_all().result()
        report["analyses"] = {
            "entries": len(result.value),
            "error": result.error.message if result.error else None,
            **entries.backup_info().result(),
        }
        healthy = healthy and result.ok

    typer.echo(json.dumps(report, indent=2))
    if not healthy:
        raise typer.Exit(code=1)


# -- backups ------------------------------------------------------------------
backups_app = typer.Typer()
app.add_typer(backups_app, name="backups")


@backups_app.command("sweep")
def backups_sweep_cmd(
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Delete analysis backups older than the retention window."""
    with _entry_store(_data_dir(data_dir)) as entries:
        result = entries.sweep_backups().result()
    if not result.ok:
        typer.echo(f"Sweep failed: {result.error.message}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Removed {result.value} expired backups")


# -- migrate ------------------------------------------------------------------


@app.command("migrate")
def migrate_cmd(
    legacy_dir: Optional[list[str]] = typer.Option(None, "--legacy-dir", help="Legacy data directory (repeatable)"),
    force: bool = typer.Option(False, "--force", help="Run even if the migration already ran"),
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Copy data files from legacy storage locations without overwriting."""
    from focusledger.core.config import UserConfig
    from focusledger.storage.migration import run_legacy_migration

    root = _data_dir(data_dir)
    roots = [Path(p) for p in legacy_dir] if legacy_dir else None
    report = run_legacy_migration(UserConfig(root), root, roots, force=force)
    if not report.ran:
        typer.echo("Legacy migration already completed (use --force to rerun).")
        return
    typer.echo(
        f"Copied {len(report.copied)}, skipped {len(report.skipped)}, failed {len(report.failed)}"
    )
    if report.failed:
        raise typer.Exit(code=1)


# -- config -------------------------------------------------------------------
config_app = typer.Typer()
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show_cmd(
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Print the effective configuration."""
    from focusledger.core.config import UserConfig

    typer.echo(json.dumps(UserConfig(_data_dir(data_dir)).as_dict(), indent=2))


@config_app.command("set")
def config_set_cmd(
    assignments: list[str] = typer.Argument(..., help="One or more key=value settings"),
    data_dir: Optional[str] = typer.Option(None, help=_DATA_DIR_HELP),
) -> None:
    """Override pipeline settings, e.g. ``session_threshold_seconds=600``."""
    from pydantic import ValidationError

    from focusledger.core.config import UserConfig

    patch: dict[str, str] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key:
            typer.echo(f"Expected key=value, got {item!r}", err=True)
            raise typer.Exit(code=1)
        patch[key.strip()] = value.strip()

    cfg = UserConfig(_data_dir(data_dir))
    try:
        settings = cfg.update(patch)
    except KeyError as exc:
        typer.echo(str(exc.args[0]), err=True)
        raise typer.Exit(code=1)
    except ValidationError as exc:
        typer.echo(f"Invalid value: {exc.errors()[0]['msg']}", err=True)
        raise typer.Exit(code=1)
    for key in patch:
        typer.echo(f"{key} = {getattr(settings, key)}")


if __name__ == "__main__":
    app()
