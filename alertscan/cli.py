import logging
import sys
from typing import Optional

import typer


USAGE = "Usage: alertscan [--monitor] <log_file_or_directory>"

app = typer.Typer(help="Scan log files for ERROR/WARN/CRITICAL lines, once or continuously", add_completion=False)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(message)s",
    )


@app.command()
def scan(
    path: Optional[str] = typer.Argument(None, help="Log file or directory to analyze", metavar="PATH"),
    monitor: bool = typer.Option(False, "--monitor", help="Watch the directory and re-scan files when they change"),
    incremental: Optional[bool] = typer.Option(None, "--incremental/--full-rescan", help="In monitor mode, match only appended content"),
    sink: Optional[str] = typer.Option(None, "--sink", help="File receiving matched lines (default error_log.txt)", metavar="FILE"),
    poll: Optional[float] = typer.Option(None, "--poll", help="Change polling interval in seconds"),
    pause: Optional[float] = typer.Option(None, "--pause", help="Pause after each batch of change events, in seconds"),
    config: Optional[str] = typer.Option(None, "--config", help="YAML settings file (or $ALERTSCAN_CONFIG)", metavar="FILE"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug diagnostics on stderr"),
):
    """Scan PATH once, or with --monitor keep watching it until interrupted.

    Matched lines are echoed and appended to the sink file; statistics are
    printed at the end, including after Ctrl-C.
    """
    if not path:
        typer.echo(USAGE)
        raise typer.Exit(code=1)
    _setup_logging(verbose)

    from .config import load_settings
    from .errors import AlertScanError
    from .runtime import run_analysis
    from .stats import StopFlag

    try:
        settings = load_settings(config).merged(
            sink=sink, poll_interval=poll, pause=pause, incremental=incremental,
        )
    except AlertScanError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)

    stop = StopFlag().install()
    try:
        code = run_analysis(path, settings, monitor=monitor, stop=stop)
    except AlertScanError as e:
        typer.echo(str(e), err=True)
        code = 1
    finally:
        stop.restore()
    raise typer.Exit(code=code)


def main():
    """Entry point for console_scripts."""
    app()


if __name__ == "__main__":
    main()
