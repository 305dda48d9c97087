#!/usr/bin/env python3
"""
Debian Server Setup Utility (Unattended)
----------------------------------------

Provisions a fresh Debian server for development and database work with zero
user interaction. Every phase checks the current state of the host first, so
running the utility again on a configured server changes nothing.

Features:
  • System update and baseline build/network tooling
  • en_US.UTF-8 locale and UTC timezone
  • zsh with oh-my-zsh for the invoking (non-root) user
  • Rust toolchain via rustup, with rustfmt, clippy, rust-src and rust-analyzer
  • PostgreSQL, ClickHouse (signed APT repository) and SQLite
  • Nord-themed Rich interface with Pyfiglet banners and per-phase spinners

Security notes:
  • Installer scripts are downloaded over HTTPS; the rustup and oh-my-zsh
    downloads refuse anything older than TLS 1.2.
  • Downloaded installers get a content sanity check (required marker
    strings) before they run. This is a heuristic, not a signature check.
  • ClickHouse packages come from an APT source pinned to its own keyring.

Requires root privileges. Run with: sudo ./debian_server_setup.py
Version: 1.0.0
"""

import argparse
import datetime
import gzip
import hashlib
import logging
import os
import platform
import pwd
import shlex
import shutil
import signal
import socket
import ssl
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pyfiglet
import requests
from requests.adapters import HTTPAdapter
from rich.align import Align
from rich.box import ROUNDED
from rich.console import Console, Group
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.style import Style
from rich.table import Table
from rich.text import Text
from rich.theme import Theme
from rich.traceback import install as install_rich_traceback

DEFAULT_COMMAND_TIMEOUT = 1800  # apt-get upgrade on a fresh host is slow


# ----------------------------------------------------------------
# Configuration & Constants
# ----------------------------------------------------------------
@dataclass
class AppConfig:
    """Application configuration. CLI flags override the defaults."""

    # Application info
    VERSION: str = "1.0.0"
    APP_NAME: str = "Debian Server Setup"
    APP_SUBTITLE: str = "Unattended Provisioning Utility"
    HOSTNAME: str = field(default_factory=socket.gethostname)

    # Logging
    LOG_FILE: str = "/var/log/debian_server_setup.log"
    MAX_LOG_SIZE: int = 10 * 1024 * 1024  # 10MB

    # Target user; None means $SUDO_USER, then $USER
    USERNAME: Optional[str] = None

    # Locale and timezone
    LOCALE: str = "en_US.UTF-8"
    TIMEZONE: str = "UTC"
    LOCALE_GEN: str = "/etc/locale.gen"

    # Baseline packages installed by the system update phase
    BASE_PACKAGES: List[str] = field(
        default_factory=lambda: [
            "curl",
            "wget",
            "git",
            "build-essential",
            "apt-transport-https",
            "ca-certificates",
            "gnupg",
            "lsb-release",
            "locales",
            "tzdata",
        ]
    )

    # Shell environment
    OH_MY_ZSH_URL: str = (
        "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
    )
    OH_MY_ZSH_MARKERS: Tuple[str, ...] = ("oh-my-zsh", "github")

    # Rust toolchain
    RUSTUP_URL: str = "https://sh.rustup.rs"
    RUSTUP_CHECKSUM_URL: str = (
        "https://static.rust-lang.org/rustup/rustup-init.sh.sha256"
    )
    RUSTUP_MARKERS: Tuple[str, ...] = ("rustup", "rust-lang")
    RUST_COMPONENTS: List[str] = field(
        default_factory=lambda: ["rustfmt", "clippy", "rust-src", "rust-analyzer"]
    )
    CARGO_ENV_MARKER: str = "cargo/env"
    CARGO_ENV_BLOCK: str = '\n# Rust cargo environment\nsource "$HOME/.cargo/env"\n'

    # Databases
    POSTGRES_SERVICE: str = "postgresql"
    CLICKHOUSE_SERVICE: str = "clickhouse-server"
    CLICKHOUSE_KEY_URL: str = (
        "https://packages.clickhouse.com/rpm/lts/repodata/repomd.xml.key"
    )
    CLICKHOUSE_REPO_URL: str = "https://packages.clickhouse.com/deb"
    KEYRING_DIR: str = "/etc/apt/keyrings"
    CLICKHOUSE_KEYRING: str = "/etc/apt/keyrings/clickhouse-keyring.gpg"
    CLICKHOUSE_SOURCE_LIST: str = "/etc/apt/sources.list.d/clickhouse.list"

    # Operation settings
    TEMP_DIR: str = field(default_factory=tempfile.gettempdir)
    COMMAND_TIMEOUT: int = DEFAULT_COMMAND_TIMEOUT
    DOWNLOAD_TIMEOUT: int = 60

    @property
    def clickhouse_source_line(self) -> str:
        return (
            f"deb [signed-by={self.CLICKHOUSE_KEYRING}] "
            f"{self.CLICKHOUSE_REPO_URL} stable main"
        )

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "AppConfig":
        """Build a configuration from parsed command line arguments."""
        config = cls()
        if args.user:
            config.USERNAME = args.user
        if args.locale:
            config.LOCALE = args.locale
        if args.timezone:
            config.TIMEZONE = args.timezone
        if args.log_file:
            config.LOG_FILE = args.log_file
        return config


# Phase keys in execution order, used for the status report
STAGE_KEYS: List[str] = [
    "preflight",
    "system_update",
    "locale_timezone",
    "shell_env",
    "rust_toolchain",
    "postgresql",
    "clickhouse",
    "sqlite",
    "cleanup",
]


# ----------------------------------------------------------------
# Nord-Themed Colors and Rich Console
# ----------------------------------------------------------------
class NordColors:
    """Nord color palette for consistent theming throughout the application."""

    # Polar Night (dark background)
    POLAR_NIGHT_1: str = "#2E3440"
    POLAR_NIGHT_4: str = "#4C566A"

    # Snow Storm (light text)
    SNOW_STORM_1: str = "#D8DEE9"
    SNOW_STORM_2: str = "#E5E9F0"

    # Frost (blue accents)
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"

    # Aurora (other accents)
    RED: str = "#BF616A"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"
    PURPLE: str = "#B48EAD"


console = Console(
    theme=Theme(
        {
            "info": f"bold {NordColors.FROST_2}",
            "warning": f"bold {NordColors.YELLOW}",
            "error": f"bold {NordColors.RED}",
            "success": f"bold {NordColors.GREEN}",
            "section": f"{NordColors.FROST_3} bold",
            "step": f"{NordColors.FROST_2}",
            "path": f"italic {NordColors.FROST_1}",
        }
    )
)

logger = logging.getLogger("debian_server_setup")


# ----------------------------------------------------------------
# Custom Exceptions
# ----------------------------------------------------------------
class SetupError(Exception):
    """Base exception for setup errors."""

    pass


class ConfigurationError(SetupError):
    """Raised when the run cannot be configured (e.g. unknown target user)."""

    pass


class ExecutionError(SetupError):
    """Raised when command execution fails."""

    def __init__(self, message: str, returncode: int = 1) -> None:
        super().__init__(message)
        self.returncode = returncode


class NetworkError(SetupError):
    """Raised when a download fails."""

    pass


class ValidationError(SetupError):
    """Raised when a downloaded installer fails its integrity checks."""

    pass


class PermissionError(SetupError):
    """Raised when insufficient permissions are detected."""

    pass


# ----------------------------------------------------------------
# Progress Manager
# ----------------------------------------------------------------
class ProgressManager:
    """
    Singleton manager for progress displays.
    Ensures only one progress display is active at a time, and gives the
    signal handler a way to close it before exiting.
    """

    _instance = None
    _active_progress = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ProgressManager, cls).__new__(cls)
            cls._instance._active_progress = None
        return cls._instance

    def start_progress(self, progress: Progress) -> Progress:
        self.stop_progress()
        progress.start()
        self._active_progress = progress
        return progress

    def stop_progress(self) -> None:
        if self._active_progress is not None:
            self._active_progress.stop()
            self._active_progress = None


progress_manager = ProgressManager()


# ----------------------------------------------------------------
# Logging and Banner Helpers
# ----------------------------------------------------------------
class _ConsoleEchoFilter(logging.Filter):
    """Drop records that the print_* helpers already wrote to the console."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not getattr(record, "echoed", False)


def setup_logging(config: AppConfig, log_to_file: bool = True) -> logging.Logger:
    """Configure logging with a Rich console handler and file output."""
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        rich_tracebacks=True, markup=False, console=console, show_path=False
    )
    console_handler.setLevel(logging.INFO)
    console_handler.addFilter(_ConsoleEchoFilter())
    logger.addHandler(console_handler)

    if not log_to_file:
        return logger

    log_file = Path(config.LOG_FILE)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if log_file.exists() and log_file.stat().st_size > config.MAX_LOG_SIZE:
            ts = datetime.datetime.now().strftime("%Y%m%d%H%M%S")
            rotated = f"{log_file}.{ts}.gz"
            with log_file.open("rb") as fin, gzip.open(rotated, "wb") as fout:
                shutil.copyfileobj(fin, fout)
            log_file.write_text("")
            console.print(f"Rotated log file to [path]{rotated}[/path]")

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)s | %(message)s", "%Y-%m-%d %H:%M:%S"
            )
        )
        logger.addHandler(file_handler)
        logger.info("Logging initialized: %s", log_file)
    except OSError as e:
        logger.warning("File logging disabled, cannot open %s: %s", log_file, e)
    return logger


def create_header(config: AppConfig) -> Panel:
    """
    Create an ASCII art header using Pyfiglet with a Nord-themed gradient.

    Returns:
        Panel: A Rich Panel containing the styled header.
    """
    width = min(shutil.get_terminal_size().columns - 10, 80)
    ascii_art = ""
    for font in ("slant", "small", "standard"):
        try:
            ascii_art = pyfiglet.Figlet(font=font, width=width).renderText(
                config.APP_NAME
            )
        except pyfiglet.FontNotFound:
            logger.debug("Font %s not available", font)
            continue
        if ascii_art.strip():
            break

    if not ascii_art.strip():
        ascii_art = f"=== {config.APP_NAME} ===\n"

    colors = [
        NordColors.FROST_1,
        NordColors.FROST_2,
        NordColors.FROST_3,
        NordColors.FROST_4,
    ]
    lines = [line for line in ascii_art.splitlines() if line.strip()]
    styled_text = ""
    for i, line in enumerate(lines):
        escaped_line = line.replace("[", "\\[").replace("]", "\\]")
        styled_text += f"[bold {colors[i % len(colors)]}]{escaped_line}[/]\n"

    border = f"[{NordColors.FROST_3}]{'━' * max(10, min(60, width - 5))}[/]"
    return Panel(
        Text.from_markup(f"{border}\n{styled_text}{border}"),
        border_style=Style(color=NordColors.FROST_1),
        padding=(1, 2),
        box=ROUNDED,
        title=f"[bold {NordColors.SNOW_STORM_2}]v{config.VERSION}[/]",
        title_align="right",
        subtitle=f"[bold {NordColors.SNOW_STORM_1}]{config.APP_SUBTITLE}[/]",
        subtitle_align="center",
    )


def print_message(
    text: str,
    style: str = NordColors.FROST_2,
    prefix: str = "•",
    level: int = logging.INFO,
) -> None:
    """Print a styled message to the console and record it in the log."""
    console.print(f"[{style}]{prefix} {escape(text)}[/{style}]", highlight=False)
    logger.log(level, text, extra={"echoed": True})


def print_step(text: str) -> None:
    print_message(text, NordColors.FROST_3, "➜")


def print_success(text: str) -> None:
    print_message(text, NordColors.GREEN, "✓")


def print_warning(text: str) -> None:
    print_message(text, NordColors.YELLOW, "⚠", logging.WARNING)


def print_error(text: str) -> None:
    print_message(text, NordColors.RED, "✗", logging.ERROR)


def print_section(title: str) -> None:
    """
    Print a section header using Pyfiglet small font with a separator.

    Args:
        title: The section title to display
    """
    console.print()
    try:
        section_art = pyfiglet.figlet_format(title, font="small")
        console.print(Text(section_art, style=f"bold {NordColors.FROST_2}"))
    except pyfiglet.FontNotFound:
        console.print(f"[bold {NordColors.FROST_1}]== {title.upper()} ==[/]")
    console.print(f"[{NordColors.FROST_3}]{'─' * 60}[/]")
    logger.info(f"--- {title} ---", extra={"echoed": True})


def status_report(status: Dict[str, Dict[str, str]]) -> None:
    """Display a table reporting the status of every setup phase."""
    icons = {
        "success": "✓",
        "skipped": "↷",
        "failed": "✗",
        "pending": "?",
        "in_progress": "⋯",
    }
    styles = {
        "success": "success",
        "skipped": "info",
        "failed": "error",
        "in_progress": "warning",
    }

    table = Table(
        show_header=True,
        header_style=f"bold {NordColors.FROST_1}",
        border_style=NordColors.FROST_3,
        box=ROUNDED,
        title=f"[bold {NordColors.FROST_2}]Debian Server Setup Status[/]",
        title_justify="center",
        expand=True,
    )
    table.add_column("Task", style=f"bold {NordColors.FROST_2}")
    table.add_column("Status", style=f"bold {NordColors.FROST_3}", justify="center")
    table.add_column("Message", style=f"{NordColors.SNOW_STORM_1}", ratio=3)

    counts: Dict[str, int] = {}
    for task, data in status.items():
        st = data["status"]
        counts[st] = counts.get(st, 0) + 1
        table.add_row(
            task.replace("_", " ").title(),
            f"[{styles.get(st, 'step')}]{icons.get(st, '?')} {st.upper()}[/]",
            escape(data["message"]),
        )

    summary = Text()
    summary.append("Status Summary: ", style=f"bold {NordColors.FROST_3}")
    summary.append(
        f"{counts.get('success', 0)} Succeeded", style=f"bold {NordColors.GREEN}"
    )
    summary.append(" | ")
    summary.append(f"{counts.get('failed', 0)} Failed", style=f"bold {NordColors.RED}")
    summary.append(" | ")
    summary.append(
        f"{counts.get('pending', 0)} Pending",
        style=f"bold {NordColors.POLAR_NIGHT_4}",
    )

    console.print(
        Panel(
            Group(table, Align.center(summary)),
            border_style=Style(color=NordColors.FROST_4),
            padding=(0, 1),
            box=ROUNDED,
        )
    )


# ----------------------------------------------------------------
# Command Execution Helpers
# ----------------------------------------------------------------
def run_command(
    cmd: Sequence[str],
    env: Optional[Dict[str, str]] = None,
    check: bool = True,
    capture_output: bool = True,
    timeout: Optional[int] = None,
    input: Optional[Any] = None,
    text: bool = True,
) -> subprocess.CompletedProcess:
    """
    Execute a system command. Nothing is retried: the first failure of a
    checked command raises and aborts the current phase.

    Args:
        cmd: Command to execute as an argument list
        env: Environment variables (defaults to a copy of os.environ)
        check: Whether to raise on a non-zero exit status
        capture_output: Whether to capture stdout/stderr
        timeout: Command timeout in seconds
        input: Data passed to the command's stdin
        text: Whether stdin/stdout are text (False for binary input)

    Returns:
        subprocess.CompletedProcess object

    Raises:
        ExecutionError: If the command fails, times out or cannot be started.
            ``returncode`` carries the command's exit status.
    """
    cmd = list(cmd)
    cmd_str = " ".join(cmd)
    timeout = timeout or DEFAULT_COMMAND_TIMEOUT
    logger.debug(f"Executing: {cmd_str}")

    try:
        result = subprocess.run(
            cmd,
            env=env or os.environ.copy(),
            check=check,
            text=text,
            capture_output=capture_output,
            timeout=timeout,
            input=input,
        )
    except subprocess.CalledProcessError as e:
        error_msg = f"Command failed (code {e.returncode}): {cmd_str}"
        stderr = _as_text(e.stderr).strip()
        if stderr:
            error_msg += f"\nError: {stderr}"
        logger.debug(f"Output: {_as_text(e.stdout).strip()}")
        raise ExecutionError(error_msg, returncode=e.returncode) from e
    except subprocess.TimeoutExpired as e:
        raise ExecutionError(
            f"Command timed out after {timeout} seconds: {cmd_str}", returncode=124
        ) from e
    except FileNotFoundError as e:
        raise ExecutionError(f"Command not found: {cmd[0]}", returncode=127) from e

    if capture_output and result.stdout:
        logger.debug(f"Output: {_as_text(result.stdout).strip()}")
    return result


def _as_text(data: Any) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


def apt_get(args: Sequence[str], config: AppConfig) -> subprocess.CompletedProcess:
    """Run apt-get non-interactively."""
    env = os.environ.copy()
    env["DEBIAN_FRONTEND"] = "noninteractive"
    return run_command(["apt-get", *args], env=env, timeout=config.COMMAND_TIMEOUT)


def run_with_progress(
    desc: str,
    func: Callable,
    *args,
    task_name: Optional[str] = None,
    status: Optional[Dict[str, Dict[str, str]]] = None,
    **kwargs,
) -> Any:
    """
    Run a function under a Rich spinner and record the outcome in the
    status table.

    A string returned by the function becomes the status message. A
    function returning ``None`` is recorded as skipped (nothing to do).

    Args:
        desc: Description of the task
        func: Function to run
        *args: Arguments to pass to the function
        task_name: Key in the status table to update
        status: Status table owned by the caller
        **kwargs: Keyword arguments to pass to the function

    Returns:
        The return value of the function
    """
    track = task_name is not None and status is not None
    if track:
        status[task_name] = {"status": "in_progress", "message": f"{desc}..."}

    progress = Progress(
        SpinnerColumn(spinner_name="dots", style=f"bold {NordColors.FROST_1}"),
        TextColumn(f"[bold {NordColors.FROST_2}]{{task.description}}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    progress_manager.start_progress(progress)
    progress.add_task(desc, total=None)
    start = time.time()

    try:
        result = func(*args, **kwargs)
    except Exception as e:
        elapsed = time.time() - start
        progress_manager.stop_progress()
        print_error(f"{desc} failed in {elapsed:.2f}s: {e}")
        if track:
            status[task_name] = {"status": "failed", "message": str(e)}
        raise

    elapsed = time.time() - start
    progress_manager.stop_progress()
    print_success(f"{desc} completed in {elapsed:.2f}s")
    if track:
        if result is None:
            status[task_name] = {
                "status": "skipped",
                "message": "Already configured, nothing to do.",
            }
        else:
            message = result if isinstance(result, str) else f"{desc} succeeded."
            status[task_name] = {
                "status": "success",
                "message": f"{message} ({elapsed:.2f}s)",
            }
    return result


# ----------------------------------------------------------------
# Signal Handling
# ----------------------------------------------------------------
def signal_handler(signum: int, frame: Optional[Any]) -> None:
    """
    Abort the run on a termination signal. The phase in progress is left
    as-is; nothing is rolled back.
    """
    sig_name = f"signal {signum}"
    try:
        sig_name = signal.Signals(signum).name
    except ValueError:
        pass

    progress_manager.stop_progress()
    console.print()
    print_warning(f"Process interrupted by {sig_name}. Exiting.")
    sys.exit(128 + signum)


def register_signal_handlers() -> None:
    for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
        try:
            signal.signal(sig, signal_handler)
        except (AttributeError, ValueError):
            pass


# ----------------------------------------------------------------
# Utility Functions
# ----------------------------------------------------------------
class Utils:
    """Utility methods for common host queries."""

    @staticmethod
    def command_path(cmd: str) -> Optional[str]:
        """Return the absolute path of a command on the PATH, or None."""
        return shutil.which(cmd)

    @staticmethod
    def command_exists(cmd: str) -> bool:
        return Utils.command_path(cmd) is not None

    @staticmethod
    def ensure_directory(path: Path, mode: int = 0o755) -> None:
        path.mkdir(mode=mode, parents=True, exist_ok=True)
        logger.debug(f"Ensured directory: {path}")

    @staticmethod
    def service_active(service: str, timeout: Optional[int] = None) -> bool:
        result = run_command(
            ["systemctl", "is-active", "--quiet", service],
            check=False,
            timeout=timeout,
        )
        return result.returncode == 0

    @staticmethod
    def service_enabled(service: str, timeout: Optional[int] = None) -> bool:
        result = run_command(
            ["systemctl", "is-enabled", "--quiet", service],
            check=False,
            timeout=timeout,
        )
        return result.returncode == 0


def lookup_account(name: str) -> pwd.struct_passwd:
    """Look a user up in the system account database."""
    return pwd.getpwnam(name)


def enable_locale_line(path: Path, locale: str) -> bool:
    """
    Make sure exactly one active entry for ``locale`` exists in a
    locale.gen style file.

    An existing active entry leaves the file untouched. Otherwise the first
    commented entry (``# en_US.UTF-8 UTF-8``) is uncommented, or a new entry
    is appended when the file has none.

    Returns:
        True if the file was modified.
    """
    lines = path.read_text().splitlines(keepends=True) if path.exists() else []

    def entry_name(line: str) -> str:
        parts = line.split()
        return parts[0] if parts else ""

    for line in lines:
        stripped = line.lstrip()
        if not stripped.startswith("#") and entry_name(stripped) == locale:
            return False

    for i, line in enumerate(lines):
        stripped = line.lstrip()
        if stripped.startswith("#"):
            uncommented = stripped.lstrip("#").lstrip()
            if entry_name(uncommented) == locale:
                lines[i] = uncommented
                break
    else:
        charset = locale.split(".", 1)[1] if "." in locale else "UTF-8"
        if lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
        lines.append(f"{locale} {charset}\n")

    path.write_text("".join(lines))
    return True


def append_block_once(path: Path, marker: str, block: str) -> bool:
    """
    Append ``block`` to ``path`` unless the file already contains ``marker``.
    The file is created when missing.

    Returns:
        True if the block was appended.
    """
    content = path.read_text() if path.exists() else ""
    if marker in content:
        return False
    with path.open("a") as f:
        f.write(block)
    return True


def ensure_source_line(path: Path, repo_url: str, line: str) -> bool:
    """
    Make ``line`` the only active APT source entry for ``repo_url`` in
    ``path``. Other active entries for the same URL are dropped; comments
    and entries for other repositories are kept.

    Returns:
        True if the file was modified.
    """
    lines = path.read_text().splitlines(keepends=True) if path.exists() else []

    def is_repo_entry(entry: str) -> bool:
        stripped = entry.strip()
        return not stripped.startswith("#") and repo_url in stripped.split()

    entries = [entry.strip() for entry in lines if is_repo_entry(entry)]
    if entries == [line]:
        return False

    kept = [entry for entry in lines if not is_repo_entry(entry)]
    if kept and not kept[-1].endswith("\n"):
        kept[-1] += "\n"
    path.write_text("".join(kept) + line + "\n")
    return True


# ----------------------------------------------------------------
# Downloads & Installer Verification
# ----------------------------------------------------------------
class TLSAdapter(HTTPAdapter):
    """HTTPS transport adapter that refuses protocol versions below a floor."""

    def __init__(
        self, minimum_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1_2, **kwargs
    ) -> None:
        self.minimum_version = minimum_version
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        context = ssl.create_default_context()
        context.minimum_version = self.minimum_version
        kwargs["ssl_context"] = context
        return super().init_poolmanager(*args, **kwargs)


def create_https_session() -> requests.Session:
    """Session for installer downloads: HTTPS only, TLS 1.2 or newer."""
    session = requests.Session()
    session.mount("https://", TLSAdapter())
    return session


def _require_https(response: requests.Response) -> None:
    for hop in [*response.history, response]:
        if not hop.url.startswith("https://"):
            raise NetworkError(f"Refusing non-HTTPS URL: {hop.url}")


def fetch_bytes(
    url: str, config: AppConfig, session: Optional[requests.Session] = None
) -> bytes:
    """
    Fetch a small resource into memory.

    Raises:
        NetworkError: On any transport or HTTP error.
    """
    getter = session.get if session is not None else requests.get
    try:
        response = getter(url, timeout=config.DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise NetworkError(f"Failed to fetch {url}: {e}") from e
    if session is not None:
        _require_https(response)
    return response.content


def download_file(
    url: str,
    destination: Path,
    config: AppConfig,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Stream a download to ``destination`` over the hardened HTTPS session.

    Raises:
        NetworkError: On any transport or HTTP error, or a non-HTTPS URL.
    """
    if not url.startswith("https://"):
        raise NetworkError(f"Refusing non-HTTPS URL: {url}")
    session = session or create_https_session()
    logger.debug(f"Downloading {url} -> {destination}")
    try:
        with session.get(url, stream=True, timeout=config.DOWNLOAD_TIMEOUT) as response:
            response.raise_for_status()
            _require_https(response)
            with destination.open("wb") as f:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        f.write(chunk)
    except requests.RequestException as e:
        raise NetworkError(f"Download of {url} failed: {e}") from e
    destination.chmod(0o644)
    return destination


def make_download_dir(config: AppConfig, name: str) -> Path:
    """
    Create a scratch directory for an installer. It is world-readable so the
    target user can run the script inside it after the privilege drop.
    """
    workdir = Path(
        tempfile.mkdtemp(prefix=f"debian_server_setup_{name}_", dir=config.TEMP_DIR)
    )
    workdir.chmod(0o755)
    return workdir


def verify_installer(path: Path, markers: Sequence[str], name: str) -> None:
    """
    Content sanity check for a downloaded installer script: every marker
    string must occur in the file. This is a heuristic guard against an
    error page or truncated download, not a cryptographic signature check.

    Raises:
        ValidationError: If any marker is missing.
    """
    content = path.read_text(errors="replace")
    missing = [marker for marker in markers if marker not in content]
    if missing:
        raise ValidationError(
            f"{name} installer verification failed: missing {', '.join(missing)}"
        )
    logger.info(f"{name} installer passed content check")


def parse_checksum(checksum_text: str) -> Optional[str]:
    """Return the hex digest of a ``sha256sum`` style line, or None."""
    parts = checksum_text.split()
    digest = parts[0].lower() if parts else ""
    if len(digest) != 64 or any(c not in "0123456789abcdef" for c in digest):
        return None
    return digest


def verify_checksum(path: Path, expected: str, name: str) -> None:
    """
    Compare a file's SHA-256 digest against an expected hex digest.

    Raises:
        ValidationError: On a digest mismatch.
    """
    actual = hashlib.sha256(path.read_bytes()).hexdigest()
    if actual != expected:
        raise ValidationError(
            f"{name} checksum mismatch: expected {expected}, got {actual}"
        )
    logger.info(f"{name} installer matches published SHA-256")


# ----------------------------------------------------------------
# Preflight Checks
# ----------------------------------------------------------------
@dataclass
class TargetUser:
    """The non-root account the per-user installs are scoped to."""

    name: str
    uid: int
    gid: int
    home: Path
    shell: str

    @property
    def rc_file(self) -> Path:
        return self.home / ".zshrc"

    @property
    def oh_my_zsh_dir(self) -> Path:
        return self.home / ".oh-my-zsh"


def run_as_user(
    user: TargetUser, script: str, config: AppConfig, check: bool = True
) -> subprocess.CompletedProcess:
    """Run a shell snippet as ``user`` through a login shell (never as root)."""
    return run_command(
        ["su", "-", user.name, "-c", script],
        check=check,
        timeout=config.COMMAND_TIMEOUT,
    )


class PreflightChecker:
    """Checks that must pass before anything on the host is touched."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def check_root(self) -> None:
        """
        Ensure the script runs as root.

        Raises:
            PermissionError: If not running as root
        """
        if os.geteuid() != 0:
            raise PermissionError("This script must be run as root (use sudo)")
        logger.info("Root privileges confirmed.")

    def resolve_user(self) -> TargetUser:
        """
        Resolve the account to provision: --user, then $SUDO_USER, then $USER.

        Raises:
            ConfigurationError: If no name is available or the account is
                unknown to the system account database.
        """
        name = (
            self.config.USERNAME
            or os.environ.get("SUDO_USER")
            or os.environ.get("USER")
            or ""
        )
        if not name:
            raise ConfigurationError(
                "Cannot determine the target user; set SUDO_USER or pass --user"
            )
        try:
            entry = lookup_account(name)
        except KeyError:
            raise ConfigurationError(f"User '{name}' does not exist") from None

        user = TargetUser(
            name=entry.pw_name,
            uid=entry.pw_uid,
            gid=entry.pw_gid,
            home=Path(entry.pw_dir),
            shell=entry.pw_shell,
        )
        if user.uid == 0:
            print_warning("Target user is root; per-user tools will be installed for root")
        return user

    def run(self) -> TargetUser:
        self.check_root()
        user = self.resolve_user()
        print_step(f"Provisioning for user {user.name} (home {user.home}, shell {user.shell})")
        return user


# ----------------------------------------------------------------
# System Update, Locale & Timezone
# ----------------------------------------------------------------
class SystemUpdater:
    """Package index refresh, upgrades, baseline packages, locale and timezone."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def update_system(self) -> str:
        print_step("Refreshing package index...")
        apt_get(["update"], self.config)
        print_step("Upgrading installed packages...")
        apt_get(["upgrade", "-y"], self.config)
        print_step("Installing baseline utilities...")
        apt_get(["install", "-y", *self.config.BASE_PACKAGES], self.config)
        return f"Upgraded; {len(self.config.BASE_PACKAGES)} baseline packages ensured."

    def configure_locale(self) -> None:
        locale = self.config.LOCALE
        print_step(f"Configuring locale {locale}...")
        if enable_locale_line(Path(self.config.LOCALE_GEN), locale):
            logger.info(f"Enabled {locale} in {self.config.LOCALE_GEN}")
        else:
            logger.info(f"{locale} already enabled in {self.config.LOCALE_GEN}")

        run_command(["locale-gen", locale], timeout=self.config.COMMAND_TIMEOUT)
        run_command(
            ["update-locale", f"LANG={locale}", f"LC_ALL={locale}"],
            timeout=self.config.COMMAND_TIMEOUT,
        )

        # Later child processes of this run inherit the new locale
        os.environ["LANG"] = locale
        os.environ["LC_ALL"] = locale

    def configure_timezone(self) -> None:
        print_step(f"Setting timezone to {self.config.TIMEZONE}...")
        run_command(
            ["timedatectl", "set-timezone", self.config.TIMEZONE],
            timeout=self.config.COMMAND_TIMEOUT,
        )

    def _log_probe(self, cmd: List[str]) -> None:
        try:
            result = run_command(cmd, check=False, timeout=self.config.COMMAND_TIMEOUT)
        except ExecutionError as e:
            logger.warning(f"Could not read {cmd[0]} output: {e}")
            return
        for line in (result.stdout or "").splitlines():
            logger.debug(f"{cmd[0]}: {line}")

    def configure_locale_and_timezone(self) -> str:
        self.configure_locale()
        self.configure_timezone()
        self._log_probe(["locale"])
        self._log_probe(["timedatectl"])
        return f"Locale {self.config.LOCALE}, timezone {self.config.TIMEZONE}."


# ----------------------------------------------------------------
# User Environment Setup
# ----------------------------------------------------------------
class UserEnvironment:
    """zsh, oh-my-zsh and the login shell of the target user."""

    def __init__(self, config: AppConfig, user: TargetUser) -> None:
        self.config = config
        self.user = user

    def install_zsh(self) -> bool:
        if Utils.command_exists("zsh"):
            logger.info("zsh already installed, skipping")
            return False
        print_step("Installing zsh...")
        apt_get(["install", "-y", "zsh"], self.config)
        return True

    def install_oh_my_zsh(self) -> bool:
        """
        Install oh-my-zsh into the user's home unless it is already there.

        Raises:
            ValidationError: If the installer fails the content check. The
                downloaded file is left in place for inspection.
        """
        if self.user.oh_my_zsh_dir.is_dir():
            logger.info(f"oh-my-zsh already present in {self.user.oh_my_zsh_dir}")
            return False

        print_step(f"Installing oh-my-zsh for user {self.user.name}...")
        workdir = make_download_dir(self.config, "oh_my_zsh")
        installer = workdir / "install.sh"
        download_file(self.config.OH_MY_ZSH_URL, installer, self.config)
        verify_installer(installer, self.config.OH_MY_ZSH_MARKERS, "oh-my-zsh")

        run_as_user(
            self.user,
            f"sh {shlex.quote(str(installer))} --unattended",
            self.config,
        )
        shutil.rmtree(workdir, ignore_errors=True)
        return True

    def set_default_shell(self) -> bool:
        zsh_path = Utils.command_path("zsh")
        if zsh_path is None:
            raise ConfigurationError("zsh is not on the PATH after installation")

        current_shell = lookup_account(self.user.name).pw_shell
        if current_shell == zsh_path:
            logger.info(f"Default shell already {zsh_path} for {self.user.name}")
            return False

        run_command(
            ["chsh", "-s", zsh_path, self.user.name],
            timeout=self.config.COMMAND_TIMEOUT,
        )
        print_step(f"Changed default shell to {zsh_path} for {self.user.name}")
        return True

    def setup(self) -> Optional[str]:
        changes = [
            label
            for label, changed in (
                ("zsh installed", self.install_zsh()),
                ("oh-my-zsh installed", self.install_oh_my_zsh()),
                ("default shell changed", self.set_default_shell()),
            )
            if changed
        ]
        return "; ".join(changes).capitalize() + "." if changes else None


# ----------------------------------------------------------------
# Rust Toolchain
# ----------------------------------------------------------------
CARGO_ENV_PREFIX = '[ -f "$HOME/.cargo/env" ] && . "$HOME/.cargo/env"; '


class ToolchainInstaller:
    """Rust via rustup, installed and updated as the target user."""

    def __init__(self, config: AppConfig, user: TargetUser) -> None:
        self.config = config
        self.user = user

    def _as_user(self, script: str, check: bool = True) -> subprocess.CompletedProcess:
        return run_as_user(self.user, CARGO_ENV_PREFIX + script, self.config, check=check)

    def rust_installed(self) -> bool:
        # a distro rustc package without rustup does not count
        return self._as_user("command -v rustup", check=False).returncode == 0

    def _fetch_checksum(self, session: requests.Session) -> Optional[str]:
        try:
            data = fetch_bytes(self.config.RUSTUP_CHECKSUM_URL, self.config, session)
        except NetworkError as e:
            print_warning(f"SHA256 checksum not available from standard location: {e}")
            return None
        digest = parse_checksum(data.decode(errors="replace"))
        if digest is None:
            print_warning("SHA256 checksum file is not in sha256sum format, skipping")
        return digest

    def bootstrap(self) -> None:
        """
        Download rustup-init, check it and run it non-interactively.

        Raises:
            ValidationError: On a failed content check or checksum mismatch.
        """
        print_step("Downloading Rust installer...")
        workdir = make_download_dir(self.config, "rustup")
        installer = workdir / "rustup-init.sh"
        session = create_https_session()
        download_file(self.config.RUSTUP_URL, installer, self.config, session=session)

        checksum = self._fetch_checksum(session)
        if checksum is not None:
            verify_checksum(installer, checksum, "rustup")
        verify_installer(installer, self.config.RUSTUP_MARKERS, "rustup")

        print_step(f"Running rustup-init for user {self.user.name}...")
        run_as_user(self.user, f"sh {shlex.quote(str(installer))} -y", self.config)
        shutil.rmtree(workdir, ignore_errors=True)

    def add_components(self) -> None:
        # rustup treats already-installed components as a no-op
        components = " ".join(self.config.RUST_COMPONENTS)
        print_step(f"Adding Rust components: {components}")
        self._as_user(f"rustup component add {components}")

    def ensure_cargo_env(self) -> bool:
        rc_file = self.user.rc_file
        if not rc_file.is_file():
            logger.info(f"{rc_file} not found, not adding cargo environment")
            return False
        if append_block_once(rc_file, self.config.CARGO_ENV_MARKER, self.config.CARGO_ENV_BLOCK):
            print_step(f"Added cargo environment to {rc_file}")
            return True
        logger.info(f"Cargo environment already sourced in {rc_file}")
        return False

    def install(self) -> str:
        if self.rust_installed():
            print_step("Rust already installed, updating toolchain...")
            self._as_user("rustup update")
            action = "Rust toolchain updated"
        else:
            self.bootstrap()
            action = "Rust toolchain installed"
        self.add_components()
        self.ensure_cargo_env()
        return f"{action} with {', '.join(self.config.RUST_COMPONENTS)}."


# ----------------------------------------------------------------
# Databases
# ----------------------------------------------------------------
class DatabaseInstaller:
    """PostgreSQL, ClickHouse and SQLite from signed APT repositories."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def ensure_service(self, service: str) -> None:
        """Start and enable a systemd unit, touching only what is off."""
        if Utils.service_active(service, self.config.COMMAND_TIMEOUT):
            logger.info(f"{service} is already running")
        else:
            run_command(
                ["systemctl", "start", service], timeout=self.config.COMMAND_TIMEOUT
            )
            print_step(f"Started {service}")

        if Utils.service_enabled(service, self.config.COMMAND_TIMEOUT):
            logger.info(f"{service} is already enabled")
        else:
            run_command(
                ["systemctl", "enable", service], timeout=self.config.COMMAND_TIMEOUT
            )
            print_step(f"Enabled {service} at boot")

    def _log_version(self, cmd: List[str], label: str) -> None:
        try:
            result = run_command(cmd, check=False, timeout=self.config.COMMAND_TIMEOUT)
        except ExecutionError as e:
            logger.warning(f"Could not determine {label} version: {e}")
            return
        version = (result.stdout or "").strip()
        if result.returncode == 0 and version:
            print_step(f"{label} version: {version}")
        else:
            logger.warning(f"Could not determine {label} version")

    def install_postgresql(self) -> str:
        if Utils.command_exists("psql"):
            logger.info("PostgreSQL already installed, skipping package install")
            action = "PostgreSQL already installed"
        else:
            print_step("Installing PostgreSQL...")
            apt_get(["install", "-y", "postgresql", "postgresql-contrib"], self.config)
            action = "PostgreSQL installed"
        self.ensure_service(self.config.POSTGRES_SERVICE)
        self._log_version(["su", "-", "postgres", "-c", "psql --version"], "PostgreSQL")
        return f"{action}; service running and enabled."

    def add_clickhouse_repository(self) -> None:
        keyring = Path(self.config.CLICKHOUSE_KEYRING)
        Utils.ensure_directory(Path(self.config.KEYRING_DIR))

        if keyring.exists():
            logger.info(f"ClickHouse keyring already present at {keyring}")
        else:
            print_step("Adding ClickHouse signing key...")
            key = fetch_bytes(self.config.CLICKHOUSE_KEY_URL, self.config)
            run_command(
                ["gpg", "--batch", "--dearmor", "-o", str(keyring)],
                input=key,
                text=False,
                timeout=self.config.COMMAND_TIMEOUT,
            )
            keyring.chmod(0o644)

        source_list = Path(self.config.CLICKHOUSE_SOURCE_LIST)
        line = self.config.clickhouse_source_line
        if ensure_source_line(source_list, self.config.CLICKHOUSE_REPO_URL, line):
            print_step(f"Added ClickHouse repository to {source_list}")
        else:
            logger.info(f"ClickHouse repository already listed in {source_list}")

    def install_clickhouse(self) -> str:
        if Utils.command_exists("clickhouse-client"):
            logger.info("ClickHouse already installed, skipping package install")
            action = "ClickHouse already installed"
        else:
            print_step("Installing ClickHouse...")
            apt_get(
                ["install", "-y", "apt-transport-https", "ca-certificates", "dirmngr"],
                self.config,
            )
            self.add_clickhouse_repository()
            apt_get(["update"], self.config)
            apt_get(
                ["install", "-y", "clickhouse-server", "clickhouse-client"],
                self.config,
            )
            action = "ClickHouse installed"
        self.ensure_service(self.config.CLICKHOUSE_SERVICE)
        self._log_version(["clickhouse-client", "--version"], "ClickHouse")
        return f"{action}; service running and enabled."

    def install_sqlite(self) -> Optional[str]:
        if Utils.command_exists("sqlite3"):
            logger.info("SQLite already installed, skipping")
            return None
        print_step("Installing SQLite...")
        apt_get(["install", "-y", "sqlite3", "libsqlite3-dev"], self.config)
        self._log_version(["sqlite3", "--version"], "SQLite")
        return "SQLite CLI and development headers installed."


# ----------------------------------------------------------------
# Cleanup & Summary
# ----------------------------------------------------------------
class FinalChecker:
    """Best-effort cleanup and the closing report."""

    def __init__(self, config: AppConfig, user: TargetUser) -> None:
        self.config = config
        self.user = user

    def cleanup_system(self) -> str:
        """Remove unused packages and clear the cache. Never fails the run."""
        problems = 0
        for args in (["autoremove", "-y"], ["clean"]):
            try:
                apt_get(args, self.config)
            except ExecutionError as e:
                problems += 1
                print_warning(f"apt-get {args[0]} failed: {e}")
        if problems:
            return f"Cleanup finished with {problems} warning(s)."
        return "Unused packages removed, package cache cleared."

    def service_states(self) -> Dict[str, Tuple[bool, bool]]:
        return {
            service: (
                Utils.service_active(service, self.config.COMMAND_TIMEOUT),
                Utils.service_enabled(service, self.config.COMMAND_TIMEOUT),
            )
            for service in (self.config.POSTGRES_SERVICE, self.config.CLICKHOUSE_SERVICE)
        }

    def summary(self, status: Dict[str, Dict[str, str]], duration: float) -> None:
        """Print the closing report. Reads host state, changes nothing."""
        status_report(status)
        minutes, seconds = divmod(int(duration), 60)
        user = self.user.name

        configured = "\n".join(
            f"[bold {NordColors.GREEN}]✓[/] {item}"
            for item in (
                "System updated",
                f"Locale: {self.config.LOCALE}",
                f"Timezone: {self.config.TIMEZONE}",
                "zsh and oh-my-zsh installed",
                "Rust toolchain installed",
                "PostgreSQL installed",
                "ClickHouse installed",
                "SQLite installed",
            )
        )
        notes = (
            f"[bold {NordColors.FROST_3}]Shell:[/] default shell is zsh for {user}; "
            "log out and back in for it to take effect\n"
            f"[bold {NordColors.FROST_3}]PostgreSQL:[/] systemctl status postgresql | "
            "sudo -u postgres psql | sudo -u postgres createuser --interactive\n"
            f"[bold {NordColors.FROST_3}]ClickHouse:[/] systemctl status clickhouse-server | "
            "clickhouse-client | /etc/clickhouse-server/config.xml\n"
            f"[bold {NordColors.FROST_3}]Rust:[/] installed for {user}; "
            "rustc, cargo, rustfmt, clippy, rust-analyzer; update with rustup update"
        )

        services = []
        for service, (active, enabled) in self.service_states().items():
            state = (
                f"[bold {NordColors.GREEN}]✓ Running[/]"
                if active
                else f"[bold {NordColors.RED}]✗ Not running[/]"
            )
            boot = "enabled" if enabled else "disabled"
            services.append(f"{service}: {state} ({boot} at boot)")

        console.print(
            Panel(
                Text.from_markup(
                    f"[bold {NordColors.FROST_2}]Server setup completed successfully![/]\n\n"
                    f"{configured}\n\n"
                    f"{notes}\n\n"
                    f"[bold {NordColors.FROST_3}]Services:[/]\n" + "\n".join(services) + "\n\n"
                    f"[bold {NordColors.FROST_3}]Total Duration:[/] {minutes}m {seconds}s\n"
                    f"[bold {NordColors.FROST_3}]Log File:[/] {self.config.LOG_FILE}"
                ),
                border_style=Style(color=NordColors.FROST_1),
                box=ROUNDED,
                padding=(1, 2),
                title=f"[bold {NordColors.SNOW_STORM_2}]Summary[/]",
                title_align="center",
            )
        )
        print_message(
            "You may need to reboot for all changes to take effect", NordColors.YELLOW
        )


# ----------------------------------------------------------------
# Main Orchestration Class
# ----------------------------------------------------------------
class DebianServerSetup:
    """Runs the provisioning phases in order, stopping at the first failure."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.start_time = time.time()
        self.status: Dict[str, Dict[str, str]] = {
            key: {"status": "pending", "message": ""} for key in STAGE_KEYS
        }
        self.preflight = PreflightChecker(config)
        self.updater = SystemUpdater(config)
        self.databases = DatabaseInstaller(config)
        self.user: Optional[TargetUser] = None
        self.final_checker: Optional[FinalChecker] = None

    def phases(self) -> List[Tuple[str, str, str, Callable[[], Any]]]:
        """(status key, section title, description, callable) per phase."""
        user_env = UserEnvironment(self.config, self.user)
        toolchain = ToolchainInstaller(self.config, self.user)
        self.final_checker = FinalChecker(self.config, self.user)
        return [
            ("system_update", "System Update", "Updating system packages",
             self.updater.update_system),
            ("locale_timezone", "Locale & Timezone", "Configuring locale and timezone",
             self.updater.configure_locale_and_timezone),
            ("shell_env", "Shell Environment", "Setting up zsh and oh-my-zsh",
             user_env.setup),
            ("rust_toolchain", "Rust Toolchain", "Installing Rust toolchain",
             toolchain.install),
            ("postgresql", "PostgreSQL", "Installing PostgreSQL",
             self.databases.install_postgresql),
            ("clickhouse", "ClickHouse", "Installing ClickHouse",
             self.databases.install_clickhouse),
            ("sqlite", "SQLite", "Installing SQLite",
             self.databases.install_sqlite),
            ("cleanup", "Cleanup & Summary", "Cleaning up packages",
             self.final_checker.cleanup_system),
        ]

    def run(self) -> int:
        """
        Run every phase in order.

        Returns:
            int: 0 on success; the failing command's exit status when an
            external command failed; 1 for any other setup error.
        """
        now = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        print_step(f"Starting {self.config.APP_NAME} at {now}")

        try:
            print_section("Pre-flight Checks")
            self.user = run_with_progress(
                "Running pre-flight checks",
                self.preflight.run,
                task_name="preflight",
                status=self.status,
            )
            for number, (key, title, desc, func) in enumerate(self.phases(), 1):
                print_section(f"Phase {number}: {title}")
                run_with_progress(desc, func, task_name=key, status=self.status)
        except ExecutionError as e:
            return self._abort(e, e.returncode if e.returncode > 0 else 1)
        except SetupError as e:
            return self._abort(e, 1)

        self.final_checker.summary(self.status, time.time() - self.start_time)
        return 0

    def _abort(self, error: SetupError, exit_code: int) -> int:
        if self.user is not None:
            status_report(self.status)
        print_error(f"Setup aborted ({type(error).__name__}): {error}")
        print_message(f"Log file: {self.config.LOG_FILE}", NordColors.FROST_2)
        return exit_code


# ----------------------------------------------------------------
# Main Entry Point
# ----------------------------------------------------------------
def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="debian-server-setup",
        description="Provision a fresh Debian server: locale, zsh, Rust, "
        "PostgreSQL, ClickHouse and SQLite.",
    )
    parser.add_argument(
        "--user", help="account to provision (default: $SUDO_USER, then $USER)"
    )
    parser.add_argument("--locale", help="system locale (default: en_US.UTF-8)")
    parser.add_argument("--timezone", help="system timezone (default: UTC)")
    parser.add_argument("--log-file", help="log file path")
    parser.add_argument(
        "--no-banner", action="store_true", help="skip the ASCII art banner"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {AppConfig.VERSION}"
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the Debian Server Setup Utility.

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    args = parse_args(argv)
    config = AppConfig.from_args(args)
    install_rich_traceback(show_locals=False)
    setup_logging(config, log_to_file=os.geteuid() == 0)
    register_signal_handlers()

    try:
        if not args.no_banner:
            console.print(create_header(config))
        print_step(f"System: {platform.system()} {platform.release()}")
        print_step(f"Hostname: {config.HOSTNAME}")
        return DebianServerSetup(config).run()

    except KeyboardInterrupt:
        progress_manager.stop_progress()
        print_warning("Process interrupted by user")
        return 130

    except Exception as e:
        progress_manager.stop_progress()
        print_error(f"Unexpected error: {e}")
        console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
