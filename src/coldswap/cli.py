"""coldswap launcher entry point."""

import logging
import threading

import click
from rich.console import Console
from rich.logging import RichHandler

from coldswap.config import LauncherConfig, parse_launcher_args
from coldswap.errors import ArgumentError
from coldswap.lifecycle import LifecycleManager
from coldswap.runtime import describe_live_redefinition
from coldswap.watcher import ChangeWatcher

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler on stderr."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=err_console)],
    )


def print_banner(config: LauncherConfig, manager: LifecycleManager) -> None:
    """Print watched directories, live redefinition check and filters."""
    console.print(f"[bold green]coldswap available on:[/bold green] {[str(p) for p in manager.roots]}")
    console.print(f"  unlimited runtime class redefinition: {describe_live_redefinition()}")
    console.print(f"  includes: {manager.includes}", markup=False)
    console.print(f"  excludes: {manager.excludes}", markup=False)


def run(config: LauncherConfig, stop: threading.Event | None = None) -> None:
    """Watch the roots and keep the entry point running until ``stop`` is set or Ctrl+C."""
    stop = stop or threading.Event()
    manager = LifecycleManager(
        config.entry_point,
        config.roots,
        includes=config.include_filter(),
        excludes=config.exclude_filter(),
        load_path=config.load_path,
    )
    watcher = ChangeWatcher(manager.roots, manager.on_change, poll=config.poll)

    print_banner(config, manager)
    watcher.start()
    manager.start()

    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        console.print("\n[yellow]coldswap stopped[/yellow]")
    finally:
        watcher.stop()
        manager.shutdown()


@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("entry_point")
@click.argument("tokens", nargs=-1, type=click.UNPROCESSED)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.option("--poll", is_flag=True, help="Poll for changes instead of native file events")
def launcher(entry_point: str, tokens: tuple[str, ...], verbose: bool, poll: bool) -> None:
    """Run ENTRY_POINT and reload it whenever watched files change.

    TOKENS are directories (load path and watch roots) or includes=/excludes=
    glob lists. Without directories, public, config and target/classes are
    used when they exist.
    """
    setup_logging(verbose)
    try:
        config = parse_launcher_args(entry_point, tokens, poll=poll)
    except ArgumentError as e:
        raise click.UsageError(str(e)) from e

    run(config)


def main() -> None:
    """Console script entry point."""
    launcher()


if __name__ == "__main__":
    main()
