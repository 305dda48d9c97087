"""
Shared test fixtures: a fake Debian host that answers the child processes,
account lookups and downloads the setup utility performs.
"""

import pwd
import subprocess
from pathlib import Path

import pytest

import debian_server_setup as dss

LOCALE_GEN_SAMPLE = """\
# This file lists locales that you wish to have built. You can find a list
# of valid supported locales at /usr/share/i18n/SUPPORTED, and you can add
# user defined locales to /usr/local/share/i18n/SUPPORTED.
#
# de_DE.UTF-8 UTF-8
# en_GB.UTF-8 UTF-8
# en_US ISO-8859-1
# en_US.UTF-8 UTF-8
# fr_FR.UTF-8 UTF-8
"""

OH_MY_ZSH_INSTALLER = (
    b"#!/bin/sh\n"
    b"# This script should be run via curl:\n"
    b"#   sh -c \"$(curl -fsSL https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh)\"\n"
    b"REPO=${REPO:-ohmyzsh/ohmyzsh}\n"
    b"REMOTE=${REMOTE:-https://github.com/${REPO}.git}\n"
    b"ZSH=\"${ZSH:-$HOME/.oh-my-zsh}\"\n"
)

RUSTUP_INSTALLER = (
    b"#!/bin/sh\n"
    b"# This is just a little script that can be downloaded from the internet to\n"
    b"# install rustup. It just does platform detection, downloads the installer\n"
    b"# and runs it.\n"
    b"RUSTUP_UPDATE_ROOT=\"${RUSTUP_UPDATE_ROOT:-https://static.rust-lang.org/rustup}\"\n"
)

CLICKHOUSE_KEY = b"-----BEGIN PGP PUBLIC KEY BLOCK-----\nmQINBGA\n-----END PGP PUBLIC KEY BLOCK-----\n"

PACKAGE_BINARIES = {
    "zsh": "zsh",
    "postgresql": "psql",
    "clickhouse-client": "clickhouse-client",
    "sqlite3": "sqlite3",
}

PACKAGE_SERVICES = {
    "postgresql": "postgresql",
    "clickhouse-server": "clickhouse-server",
}


class FakeHost:
    """Records every command and keeps just enough state to answer them."""

    def __init__(self, home: Path, username: str = "alice") -> None:
        self.home = home
        self.commands = []
        self.binaries = set()
        self.services = {}
        self.rust_installed = False
        self.distro_rustc = False
        self.shells = {username: "/bin/bash"}
        self.failures = {}
        self.installer_runs = []
        self.downloads = {}
        self.timeouts = []

    # -- system queries -------------------------------------------------
    def which(self, cmd):
        return f"/usr/bin/{cmd}" if cmd in self.binaries else None

    def account(self, name):
        if name not in self.shells:
            raise KeyError(name)
        return pwd.struct_passwd(
            (name, "x", 1000, 1000, name, str(self.home), self.shells[name])
        )

    # -- child processes ------------------------------------------------
    def run(
        self,
        cmd,
        env=None,
        check=True,
        capture_output=True,
        timeout=None,
        input=None,
        text=True,
    ):
        cmd = list(cmd)
        self.commands.append(cmd)
        self.timeouts.append(timeout)

        for prefix, code in self.failures.items():
            if cmd[: len(prefix)] == list(prefix):
                returncode, stdout = code, ""
                break
        else:
            returncode, stdout = self._dispatch(cmd, input)

        if returncode and check:
            raise dss.ExecutionError(
                f"Command failed (code {returncode}): {' '.join(cmd)}",
                returncode=returncode,
            )
        return subprocess.CompletedProcess(cmd, returncode, stdout, "")

    def _dispatch(self, cmd, input):
        program = cmd[0]
        if program == "apt-get" and cmd[1] == "install":
            for package in cmd[2:]:
                if package in PACKAGE_BINARIES:
                    self.binaries.add(PACKAGE_BINARIES[package])
                if package in PACKAGE_SERVICES:
                    self.services.setdefault(
                        PACKAGE_SERVICES[package], {"active": False, "enabled": False}
                    )
            return 0, ""

        if program == "systemctl":
            action, name = cmd[1], cmd[-1]
            state = self.services.get(name)
            if action == "is-active":
                return (0 if state and state["active"] else 3), ""
            if action == "is-enabled":
                return (0 if state and state["enabled"] else 1), ""
            if state is None:
                return 5, ""
            if action == "start":
                state["active"] = True
            elif action == "enable":
                state["enabled"] = True
            return 0, ""

        if program == "su":
            script = cmd[4]
            if "command -v rustup" in script:
                return (0 if self.rust_installed else 1), ""
            if "command -v rustc" in script:
                return (0 if self.rust_installed or self.distro_rustc else 1), ""
            if "rustup-init.sh" in script:
                self.rust_installed = True
                self.installer_runs.append("rustup")
                return 0, ""
            if "install.sh" in script:
                (self.home / ".oh-my-zsh").mkdir()
                rc_file = self.home / ".zshrc"
                if not rc_file.exists():
                    rc_file.write_text('export ZSH="$HOME/.oh-my-zsh"\nsource $ZSH/oh-my-zsh.sh\n')
                self.installer_runs.append("oh-my-zsh")
                return 0, ""
            if "rustup" in script:
                return (0 if self.rust_installed else 127), ""
            if "psql --version" in script:
                return 0, "psql (PostgreSQL) 17.2 (Debian 17.2-1)\n"
            return 0, ""

        if program == "chsh":
            self.shells[cmd[-1]] = cmd[2]
            return 0, ""

        if program == "gpg":
            Path(cmd[cmd.index("-o") + 1]).write_bytes(b"dearmored:" + input)
            return 0, ""

        if cmd[-1] == "--version":
            return 0, f"{program} 1.0.0\n"
        return 0, ""

    # -- network --------------------------------------------------------
    def download(self, url, destination, config, session=None):
        if url not in self.downloads:
            raise dss.NetworkError(f"Download of {url} failed: 404")
        destination.write_bytes(self.downloads[url])
        return destination

    def fetch(self, url, config, session=None):
        if url not in self.downloads:
            raise dss.NetworkError(f"Failed to fetch {url}: 404")
        return self.downloads[url]

    # -- assertions helpers ---------------------------------------------
    def ran(self, *prefix):
        return [cmd for cmd in self.commands if cmd[: len(prefix)] == list(prefix)]

    def installs(self):
        return [cmd[3:] for cmd in self.ran("apt-get", "install", "-y")]


@pytest.fixture
def config(tmp_path: Path) -> dss.AppConfig:
    """Configuration whose file paths all live under tmp_path."""
    etc = tmp_path / "etc"
    (etc / "apt" / "sources.list.d").mkdir(parents=True)
    (etc / "locale.gen").write_text(LOCALE_GEN_SAMPLE)
    temp_dir = tmp_path / "tmp"
    temp_dir.mkdir()
    return dss.AppConfig(
        HOSTNAME="testhost",
        LOG_FILE=str(tmp_path / "log" / "setup.log"),
        USERNAME="alice",
        LOCALE_GEN=str(etc / "locale.gen"),
        KEYRING_DIR=str(etc / "apt" / "keyrings"),
        CLICKHOUSE_KEYRING=str(etc / "apt" / "keyrings" / "clickhouse-keyring.gpg"),
        CLICKHOUSE_SOURCE_LIST=str(etc / "apt" / "sources.list.d" / "clickhouse.list"),
        TEMP_DIR=str(temp_dir),
    )


@pytest.fixture
def host(tmp_path: Path, config: dss.AppConfig, monkeypatch) -> FakeHost:
    """Route every host interaction of the utility through a FakeHost."""
    home = tmp_path / "home" / "alice"
    home.mkdir(parents=True)
    fake = FakeHost(home)
    fake.downloads = {
        config.OH_MY_ZSH_URL: OH_MY_ZSH_INSTALLER,
        config.RUSTUP_URL: RUSTUP_INSTALLER,
        config.CLICKHOUSE_KEY_URL: CLICKHOUSE_KEY,
    }

    monkeypatch.setattr(dss, "run_command", fake.run)
    monkeypatch.setattr(dss.Utils, "command_path", staticmethod(fake.which))
    monkeypatch.setattr(dss, "lookup_account", fake.account)
    monkeypatch.setattr(dss, "download_file", fake.download)
    monkeypatch.setattr(dss, "fetch_bytes", fake.fetch)
    monkeypatch.setattr(dss, "create_https_session", lambda: None)
    monkeypatch.setattr(dss.os, "geteuid", lambda: 0)
    monkeypatch.setenv("LANG", "C.UTF-8")
    monkeypatch.setenv("LC_ALL", "C.UTF-8")
    monkeypatch.delenv("SUDO_USER", raising=False)
    return fake


@pytest.fixture
def user(host: FakeHost) -> dss.TargetUser:
    return dss.TargetUser(
        name="alice", uid=1000, gid=1000, home=host.home, shell="/bin/bash"
    )
