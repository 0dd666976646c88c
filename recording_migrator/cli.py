import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import click
from tqdm import tqdm

from .config import ConfigManager, ConfigurationError, config_to_dict
from .migration.results import DownloadResult, ProcessResult, UploadResult
from .pipeline import Pipeline, build_pipeline
from .registry.models import video_to_dict
from .utils.exceptions import MigratorError
from .utils.logger import default_log_file, setup_logging

logger = logging.getLogger(__name__)


@click.group()
@click.version_option()
def main() -> None:
    pass


@main.command()
def config() -> None:
    mgr = ConfigManager()

    if mgr.exists():
        click.echo(f"Configuration file found: {mgr.config_path}")
        if not click.confirm("Overwrite existing configuration?", default=False):
            click.echo("Aborted.")
            return
        mgr.load()
    else:
        click.echo("No configuration file found. Creating a new one.")

    click.echo("\n--- Recordings source ---")
    mgr.get_or_prompt("source.api_base_url", "Recordings API base URL")
    mgr.get_or_prompt("source.api_key", "Recordings API key", is_secret=True)

    click.echo("\n--- Stream destination ---")
    mgr.get_or_prompt("destination.api_base_url", "Stream API base URL")
    mgr.get_or_prompt("destination.library_id", "Stream library ID")
    mgr.get_or_prompt("destination.api_key", "Stream API key", is_secret=True)
    mgr.get_or_prompt("destination.tus_endpoint", "Resumable upload endpoint")

    click.echo("\n--- Storage ---")
    mgr.get_or_prompt("registry.path", "Path to the activity registry JSON")
    mgr.get_or_prompt("migration.staging_dir", "Staging directory for downloads")

    try:
        mgr.config.validate()
    except ConfigurationError as e:
        click.echo(f"\nValidation error: {e}", err=True)
        raise SystemExit(1)

    mgr.save()
    click.echo(f"\nConfiguration saved to {mgr.config_path}")


@main.command()
def show() -> None:
    mgr = ConfigManager()

    if not mgr.exists():
        click.echo(f"No configuration file found at {mgr.config_path}")
        click.echo("Run 'recording-migrator config' to create one.")
        raise SystemExit(1)

    try:
        cfg = mgr.load()
    except ConfigurationError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        raise SystemExit(1)

    data = config_to_dict(cfg)
    for section, key in (
        ("source", "api_key"),
        ("destination", "api_key"),
        ("server", "api_key"),
    ):
        if data[section][key]:
            data[section][key] = "********"

    click.echo(f"Configuration file: {mgr.config_path}\n")
    click.echo(json.dumps(data, indent=2))


def _load_config() -> ConfigManager:
    mgr = ConfigManager()
    if not mgr.exists():
        click.echo("No configuration found. Run 'recording-migrator config' first.")
        raise SystemExit(1)
    try:
        mgr.load()
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        raise SystemExit(1)
    return mgr


def _build(verbose: bool) -> Pipeline:
    if verbose:
        setup_logging(level="DEBUG")
    mgr = _load_config()
    return build_pipeline(mgr.config)


def _run(coro_fn: Callable[[], Awaitable[Any]]) -> Any:
    try:
        return asyncio.run(coro_fn())
    except MigratorError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


def _run_with_progress(
    coro_fn: Callable[[], Awaitable[Any]],
    pipeline: Pipeline,
    desc: str = "Transferring",
) -> Any:
    bars: Dict[str, tqdm] = {}

    def on_progress(filename: str, done: int, total: Optional[int]) -> None:
        bar = bars.get(filename)
        if bar is None:
            bar = tqdm(
                desc=f"{desc} {filename}",
                total=total,
                unit="B",
                unit_scale=True,
                leave=False,
            )
            bars[filename] = bar
        bar.update(done - bar.n)

    pipeline.downloader.set_progress_callback(on_progress)
    pipeline.uploader.set_progress_callback(on_progress)

    try:
        return _run(coro_fn)
    finally:
        for bar in bars.values():
            bar.close()


def _print_download(result: DownloadResult) -> None:
    click.echo("\n--- Download Summary ---")
    click.echo(f"  Activity:       {result.activity_id} ({result.activity_title})")
    click.echo(f"  Videos:         {result.video_count}")
    click.echo(f"  Total size:     {result.total_size_mb:.2f} MB")
    if result.already_downloaded:
        click.echo("  Already downloaded, nothing fetched")
    else:
        click.echo(f"  Duration:       {result.duration_seconds:.2f}s")


def _print_upload(result: UploadResult) -> None:
    click.echo("\n--- Upload Summary ---")
    click.echo(f"  Activity:       {result.activity_id} ({result.activity_title})")
    click.echo(f"  Status:         {result.status.value}")
    click.echo(f"  Uploaded:       {len(result.uploaded)}")
    click.echo(f"  Failed:         {len(result.failed)}")
    for outcome in result.failed:
        click.echo(f"    Video {outcome.index}: {outcome.error}")
    if result.already_uploaded:
        click.echo("  Already uploaded, nothing sent")
    else:
        click.echo(f"  Duration:       {result.duration_seconds:.2f}s")


def _print_process(result: ProcessResult) -> None:
    if result.download is not None:
        _print_download(result.download)
    if result.upload is not None:
        _print_upload(result.upload)
    click.echo(f"\n  Remaining:      {result.remaining}")


@main.command()
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def pending(verbose: bool) -> None:
    """List activities waiting to be migrated, oldest first."""
    pipeline = _build(verbose)
    try:
        activities = pipeline.discovery.list_eligible()
    except MigratorError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if not activities:
        click.echo("No pending uploads.")
        return

    click.echo(f"Pending activities: {len(activities)}\n")
    for activity in activities:
        created = activity.created_at.isoformat() if activity.created_at else "-"
        click.echo(
            f"  {activity.id}  {created}  "
            f"[{activity.migration.upload_status.value}]  {activity.title}"
        )


@main.command()
@click.argument("activity_id")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def download(activity_id: str, verbose: bool) -> None:
    """Download every recording of one activity into the staging directory."""
    pipeline = _build(verbose)
    result = _run_with_progress(
        lambda: pipeline.downloader.download(activity_id), pipeline, "Downloading"
    )
    _print_download(result)


@main.command()
@click.argument("activity_id")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def upload(activity_id: str, verbose: bool) -> None:
    """Upload the downloaded recordings of one activity."""
    pipeline = _build(verbose)
    result = _run_with_progress(
        lambda: pipeline.uploader.upload(activity_id), pipeline, "Uploading"
    )
    _print_upload(result)
    if result.is_partial:
        raise SystemExit(2)


@main.command(name="process-next")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def process_next(verbose: bool) -> None:
    """Migrate the oldest eligible activity, if any."""
    pipeline = _build(verbose)
    result = _run_with_progress(pipeline.scheduler.process_next, pipeline)
    if not result.processed:
        click.echo("No pending uploads.")
        return
    _print_process(result)


@main.command()
@click.option(
    "--interval",
    type=int,
    default=None,
    help="Seconds between runs (defaults to migration.process_interval_seconds)",
)
@click.option("--max-runs", type=int, default=None, help="Stop after N runs")
@click.option("--log-file", type=click.Path(path_type=Path), default=None)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def watch(
    interval: Optional[int],
    max_runs: Optional[int],
    log_file: Optional[Path],
    verbose: bool,
) -> None:
    """Run process-next on a fixed interval, starting immediately."""
    setup_logging(
        level="DEBUG" if verbose else None,
        log_file=log_file or default_log_file("watch"),
    )
    mgr = _load_config()
    pipeline = build_pipeline(mgr.config)
    seconds = interval or mgr.config.migration.process_interval_seconds

    click.echo(f"Processing one activity every {seconds}s. Press Ctrl+C to stop.")
    try:
        runs = asyncio.run(
            pipeline.scheduler.run_periodically(seconds, max_runs=max_runs)
        )
    except KeyboardInterrupt:
        click.echo("\nStopped.")
        return
    click.echo(f"Finished after {runs} run(s).")


@main.command()
@click.argument("activity_id")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def notify(activity_id: str, verbose: bool) -> None:
    """Handle a recording-ready notification for one activity."""
    setup_logging(level="DEBUG" if verbose else None)
    pipeline = build_pipeline(_load_config().config)
    result = asyncio.run(pipeline.scheduler.handle_notification(activity_id))
    if result is None:
        click.echo(f"Processing failed for {activity_id}, see log for details.")
        raise SystemExit(1)
    _print_process(result)


@main.command()
@click.argument("activity_id")
def status(activity_id: str) -> None:
    """Show the migration record of one activity."""
    pipeline = _build(False)
    try:
        activity = pipeline.store.get_activity(activity_id)
    except MigratorError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    record = activity.migration
    click.echo(f"Migration status for {activity.id} ({activity.title})\n")
    click.echo(f"  Recording available: {record.recording_available}")
    click.echo(f"  Status:              {record.upload_status.value}")
    click.echo(f"  Uploaded:            {record.uploaded}")
    click.echo(f"  Attempts:            {record.attempt_count}")
    if record.last_attempt_at:
        click.echo(f"  Last attempt:        {record.last_attempt_at.isoformat()}")
    if record.last_error:
        click.echo(f"  Last error:          {record.last_error}")

    if record.videos:
        click.echo("\nVideos:")
        click.echo(json.dumps([video_to_dict(v) for v in record.videos], indent=2))


@main.command()
@click.option("--host", default=None, help="Bind address (defaults to server.host)")
@click.option("--port", type=int, default=None, help="Port (defaults to server.port)")
@click.option("--log-file", type=click.Path(path_type=Path), default=None)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def serve(
    host: Optional[str],
    port: Optional[int],
    log_file: Optional[Path],
    verbose: bool,
) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from .server import create_app

    setup_logging(
        level="DEBUG" if verbose else None,
        log_file=log_file or default_log_file("serve"),
    )
    mgr = _load_config()
    server_cfg = mgr.config.server
    if not server_cfg.api_key:
        click.echo(
            "server.api_key is not set (config or SERVER_API_KEY).", err=True
        )
        raise SystemExit(1)

    app = create_app(build_pipeline(mgr.config), server_cfg.api_key)
    uvicorn.run(app, host=host or server_cfg.host, port=port or server_cfg.port)


if __name__ == "__main__":
    main()
