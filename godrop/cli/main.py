# godrop/cli/main.py

import logging
import signal
from dataclasses import asdict, fields
from pathlib import Path

import click
from PySide6.QtCore import QCoreApplication, QEventLoop, QTimer
from rich.console import Console
from rich.table import Table

from godrop.core.backend import LocalBackend
from godrop.core.clipboard_history import ClipboardHistoryStore
from godrop.core.config_manager import SETTINGS_FILE_PATH, load_settings, save_settings
from godrop.core.errors import IoError, TransportOffline
from godrop.core.events import EventBridge
from godrop.core.models import DirectoryEntry, SessionMode, SessionState, format_size
from godrop.core.path_navigator import PathNavigator
from godrop.core.viewer_client import ViewerClient
from godrop.gui.security_gate import SecurityGate, ViewerSession
from godrop.gui.session_controller import SessionController

console = Console()
logger = logging.getLogger(__name__)

PREVIEW_ROWS = 200
SIGNAL_WAKE_MS = 200


@click.group(context_settings=dict(help_option_names=['-h', '--help']))
@click.version_option(version="1.0", prog_name="Godrop")
def godrop():
    """
    Godrop - share files, a dropzone or your clipboard over the local network.

    Use `[COMMAND] --help` for more information on a specific command.
    """
    pass


@godrop.command()
@click.argument('path', required=False)
@click.option('--all', 'show_all', is_flag=True, help=f"Show every entry instead of the first {PREVIEW_ROWS}.")
def browse(path: str, show_all: bool):
    """Lists a directory the way the send view shows it: folders first."""
    backend = LocalBackend()
    navigator = PathNavigator(backend)
    target = path if path else backend.get_home_directory()
    try:
        entries = navigator.list_directory(target)
    except IoError as e:
        console.print(f"[bold red]Cannot list directory: {e}[/bold red]")
        raise SystemExit(1)

    table = Table(title=f"{target}", style="cyan", title_style="bold magenta")
    table.add_column("Name", style="green", no_wrap=True)
    table.add_column("Kind", style="blue")
    table.add_column("Size", style="yellow", justify="right")
    shown = entries if show_all else entries[:PREVIEW_ROWS]
    for entry in shown:
        name = f"[bold]{entry.name}/[/bold]" if entry.is_directory else entry.name
        table.add_row(name, entry.kind, entry.size)
    console.print(table)
    if len(entries) > len(shown):
        console.print(f"...and {len(entries) - len(shown)} more entries.")


@godrop.command()
@click.option('--set', 'new_text', default=None, help="Write this text to the system clipboard.")
def clipboard(new_text: str):
    """Shows the system clipboard, or replaces it with --set."""
    backend = LocalBackend()
    store = ClipboardHistoryStore(backend.set_system_clipboard_text)
    if new_text is not None:
        store.copy_to_system(new_text)
        console.print("[bold green]Clipboard updated.[/bold green]")
        return
    text = backend.get_system_clipboard_text()
    if not text:
        console.print("[yellow]The clipboard is empty.[/yellow]")
        return
    console.print(ClipboardHistoryStore.preview(text))


@godrop.command()
@click.argument('files', nargs=-1, required=True,
                type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--port', default=None, help="Port to serve on. Defaults to the saved setting.")
@click.option('--password', default=None, help="Code peers must enter before downloading.")
@click.option('--download-limit', type=int, default=None, help="Downloads allowed (0 = unlimited).")
@click.option('--timeout', 'timeout_minutes', type=int, default=None, help="Minutes until the link expires (0 = none).")
def send(files, port: str, password: str, download_limit: int, timeout_minutes: int):
    """Broadcasts FILES until the session ends. Ctrl-C stops it."""
    app = QCoreApplication.instance() or QCoreApplication([])
    controller = _build_controller()
    for path in files:
        if str(path) in controller.selection:
            continue
        controller.toggle_selection(DirectoryEntry(name=path.name, full_path=str(path), is_directory=False,
                                                   size=format_size(path.stat().st_size)))

    config = controller.settings.session_config()
    overrides = {"port": port, "password": password, "download_limit": download_limit,
                 "timeout_minutes": timeout_minutes}
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    _run_session(controller, SessionMode.SEND, config)


@godrop.command()
@click.argument('save_location', type=click.Path(file_okay=False, path_type=Path))
@click.option('--port', default=None, help="Port to listen on. Defaults to the saved setting.")
def receive(save_location: Path, port: str):
    """Opens a dropzone in SAVE_LOCATION until the session ends. Ctrl-C stops it."""
    app = QCoreApplication.instance() or QCoreApplication([])
    controller = _build_controller()
    config = controller.settings.session_config(str(save_location))
    if port:
        config.port = port
    _run_session(controller, SessionMode.RECEIVE, config)


def _build_controller() -> SessionController:
    bridge = EventBridge()
    backend = LocalBackend()
    backend.bind_events(bridge)
    return SessionController(backend, bridge, load_settings())


def _run_session(controller: SessionController, mode: SessionMode, config) -> None:
    """Starts the session, echoes its log and blocks until it is back to IDLE."""
    log = controller.log_model

    def echo_all():
        for line in log.lines():
            console.print(line, markup=False, soft_wrap=True)

    def echo_rows(parent, first, last):
        for line in log.lines()[first:last + 1]:
            console.print(line, markup=False, soft_wrap=True)

    log.modelReset.connect(echo_all)
    log.rowsInserted.connect(echo_rows)

    if not controller.start(mode, config):
        raise SystemExit(1)
    console.print(f"Live at [bright_magenta]{controller.session_info.full_url}[/bright_magenta]. "
                  "Press Ctrl-C to stop.")

    loop = QEventLoop()

    def on_state(state: str, _mode: str):
        if state == SessionState.IDLE.name:
            loop.quit()

    controller.state_changed.connect(on_state)

    # Python signal handlers only run when Qt hands control back to the interpreter.
    wake = QTimer()
    wake.timeout.connect(lambda: None)
    wake.start(SIGNAL_WAKE_MS)
    previous = {sig: signal.signal(sig, lambda *_: controller.stop()) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        if not controller.is_idle():
            loop.exec()
    finally:
        wake.stop()
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    logger.info(f"{mode.label} session finished.")


@godrop.command()
@click.argument('url')
@click.option('--code', default=None, help="One-time code, when the session is protected.")
@click.option('--download', 'download_dir', type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
              default=None, help="Download the shared file into this directory.")
def viewer(url: str, code: str, download_dir: Path):
    """Inspects a running send session at URL and optionally downloads its file."""
    # The gate is a QObject with timers; it needs an application object even when headless.
    app = QCoreApplication.instance() or QCoreApplication([])
    client = ViewerClient(url)
    gate = SecurityGate(client, ViewerSession())
    gate.refresh_status()
    display = gate.display

    if display.offline:
        console.print(f"[bold red]{display.status}[/bold red]: {url} is not reachable.")
        raise SystemExit(1)

    stats = gate.stats
    table = Table(title="Session", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="bold magenta")
    table.add_row("File", stats.file_name)
    table.add_row("Size", stats.file_size_mb)
    table.add_row("Downloads left", f"{stats.downloads_remaining} / {stats.download_limit}")
    table.add_row("Time left", display.countdown)
    table.add_row("Status", display.status)
    console.print(table)

    while gate.display.prompt_visible:
        entered = code if code is not None else click.prompt(gate.display.prompt_placeholder, hide_input=True)
        if gate.verify(entered):
            console.print("[bold green]Unlocked.[/bold green]")
            break
        if gate.display.offline:
            console.print("[bold red]Lost contact with the session.[/bold red]")
            raise SystemExit(1)
        console.print("[red]Invalid code.[/red]")
        if code is not None:
            raise SystemExit(1)

    download_url = gate.request_download()
    if not download_url:
        console.print(f"[yellow]Download unavailable: {gate.display.action_label}[/yellow]")
        return
    if download_dir is None:
        console.print(f"Download link: [bright_magenta]{download_url}[/bright_magenta]")
        return
    try:
        target = client.download(download_dir)
    except TransportOffline as e:
        console.print(f"[bold red]{e}[/bold red]")
        logger.error("CLI viewer download failed.", exc_info=True)
        raise SystemExit(1)
    console.print(f"[bold green]Saved to {target}[/bold green]")


@godrop.command()
@click.option('--config', 'config_path', type=click.Path(dir_okay=False, path_type=Path),
              default=SETTINGS_FILE_PATH, show_default=True, help="Settings file to read and update.")
@click.option('--port', default=None, help="Preferred port for new sessions.")
@click.option('--download-limit', type=int, default=None, help="Downloads allowed per send session (0 = unlimited).")
@click.option('--timeout', 'timeout_minutes', type=int, default=None, help="Session timeout in minutes (0 = none).")
def settings(config_path: Path, port: str, download_limit: int, timeout_minutes: int):
    """Shows the persisted session defaults, updating any that are given."""
    current = load_settings(config_path)
    updates = {"port": port, "download_limit": download_limit, "timeout_minutes": timeout_minutes}
    changed = False
    for key, value in updates.items():
        if value is not None:
            setattr(current, key, value)
            changed = True
    if changed and not save_settings(current, config_path):
        console.print("[bold red]Could not save settings. See godrop.log for details.[/bold red]")
        raise SystemExit(1)

    table = Table(title="Settings", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="bold magenta")
    values = asdict(current)
    for field in fields(current):
        table.add_row(field.name, str(values[field.name]))
    console.print(table)
