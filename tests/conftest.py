"""
Shared fixtures for the Nextcloud updater tests.

FakeRunner stands in for CommandRunner: it records every command, simulates
the occ CLI (including the maintenance flag) and can hand selected programs
to the real CommandRunner.run() for tests that need real cp/rsync/unzip.
"""

import io
import shutil
import zipfile
from pathlib import Path

import pytest

from ncupdater.config import load_config
from ncupdater.prompts import Prompter
from ncupdater.utils.commands import CommandResult, CommandRunner, format_command
from ncupdater.utils.index import log_message, setup_update_logging

RELEASE_FILES = {
    "nextcloud/index.php": "<?php // 32.0.4\n",
    "nextcloud/occ": "#!/usr/bin/env php\n",
    "nextcloud/version.php": "<?php $OC_Version = [32,0,4,1];\n",
    "nextcloud/lib/base.php": "<?php // new base\n",
    "nextcloud/apps/files/appinfo/info.xml": "<info>new</info>\n",
    "nextcloud/config/config.sample.php": "<?php // sample from release\n",
    "nextcloud/.htaccess": "# release htaccess\n",
    "nextcloud/.user.ini": "upload_max_filesize=511M\n",
}


class ScriptedInput:
    """input() replacement answering prompts in order; "" once the script runs out."""

    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.prompts = []

    def __call__(self, prompt=""):
        self.prompts.append(prompt)
        answer = self.answers.pop(0) if self.answers else ""
        if isinstance(answer, type) and issubclass(answer, BaseException):
            raise answer()
        if isinstance(answer, BaseException):
            raise answer
        return answer


class FakeRunner(CommandRunner):
    """Records commands and simulates occ; optionally runs selected programs for real."""

    def __init__(self, fail=None, execute_real=(), installed_version="31.0.9",
                 status_error=None):
        super().__init__(log_file="/var/log/nextcloud-update-test.log")
        self.calls = []
        self.fail = dict(fail or {})
        self.execute_real = set(execute_real)
        self.installed_version = installed_version
        self.status_error = status_error
        self.maintenance = False

    @staticmethod
    def key(command):
        if command[0] == "sudo":
            # sudo -u <user> php <occ> <args...>
            return " ".join(command[5:])
        return command[0]

    @property
    def keys(self):
        return [self.key(c) for c in self.calls]

    @property
    def occ_calls(self):
        return [self.key(c) for c in self.calls if c[0] == "sudo"]

    def run(self, command, cwd=None, env=None, quiet=False):
        command = [str(part) for part in command]
        self.calls.append(command)
        key = self.key(command)
        if command[0] in self.execute_real and key not in self.fail:
            return super().run(command, cwd=cwd, env=env, quiet=quiet)
        log_message(f"+ {format_command(command)}")

        if key == "status" and self.status_error is not None:
            raise self.status_error
        if key in self.fail:
            return CommandResult(command, self.fail[key], f"{key} failed")

        if command[0] == "sudo":
            return self._occ(command, key)
        return CommandResult(command, 0, "")

    def _occ(self, command, key):
        if key == "maintenance:mode --on":
            self.maintenance = True
        elif key == "maintenance:mode --off":
            self.maintenance = False
        elif key == "status":
            lines = ["  - installed: true"]
            if self.installed_version:
                lines.append(f"  - version: {self.installed_version}.1")
                lines.append(f"  - versionstring: {self.installed_version}")
            lines.append(f"  - maintenance: {'true' if self.maintenance else 'false'}")
            return CommandResult(command, 0, "\n".join(lines))
        return CommandResult(command, 0, "")


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        import requests
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]


def build_release_zip(files=None) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in (files or RELEASE_FILES).items():
            zf.writestr(name, content)
    return buffer.getvalue()


def write_config_file(tmp_path: Path, **overrides) -> Path:
    import json
    directories = {
        "install_dir": str(tmp_path / "www" / "nextcloud"),
        "data_dir": str(tmp_path / "userdata" / "nextcloud_data"),
        "tmp_dir": str(tmp_path / "tmp"),
        "backup_root": str(tmp_path / "backups"),
        "log_dir": str(tmp_path / "log"),
    }
    directories.update(overrides.pop("directories", {}))
    config = {
        "default_version": "32.0.4",
        "download_url_template": "https://download.example.test/nextcloud-{version}.zip",
        "service_user": "www-data",
        "php_binary": "php",
        "directories": directories,
        "sync_excludes": ["config", "data", ".user.ini", ".htaccess"],
        "download": {"timeout_seconds": 5, "allow_stale_archive": True},
    }
    config.update(overrides)
    path = tmp_path / "index.json"
    path.write_text(json.dumps({"metadata": {"schema_version": "1.0.0"}, "config": config}))
    return path


@pytest.fixture
def install_tree(tmp_path):
    """A fake live install: code, config/, data/ and the sensitive dotfiles."""
    install = tmp_path / "www" / "nextcloud"
    (install / "config").mkdir(parents=True)
    (install / "config" / "config.php").write_text("<?php $CONFIG = ['instanceid' => 'abc'];\n")
    (install / "data").mkdir()
    (install / "data" / "admin.txt").write_text("user file\n")
    (install / "lib").mkdir()
    (install / "lib" / "base.php").write_text("<?php // old base\n")
    (install / "lib" / "removed_in_new_release.php").write_text("<?php // stale\n")
    (install / "index.php").write_text("<?php // 31.0.9\n")
    (install / "occ").write_text("#!/usr/bin/env php\n")
    (install / ".htaccess").write_text("# local htaccess tweaks\n")
    (install / ".user.ini").write_text("memory_limit=1G\n")
    (tmp_path / "userdata" / "nextcloud_data").mkdir(parents=True)
    (tmp_path / "tmp").mkdir()
    return install


@pytest.fixture
def config(tmp_path, install_tree):
    return load_config(write_config_file(tmp_path), run_timestamp="20260101_120000")


@pytest.fixture
def release_zip():
    return build_release_zip()


@pytest.fixture
def fake_download(monkeypatch, release_zip):
    """Serve the release ZIP for any requests.get() call; records requested URLs."""
    requested = []

    def fake_get(url, stream=False, timeout=None):
        requested.append(url)
        return FakeResponse(release_zip)

    monkeypatch.setattr("ncupdater.download.requests.get", fake_get)
    return requested


@pytest.fixture(autouse=True)
def console_logging():
    setup_update_logging()
    yield


def make_prompter(answers=None):
    scripted = ScriptedInput(answers)
    return Prompter(input_func=scripted, output=lambda *a, **k: None), scripted


def fake_unzip(runner):
    """Make FakeRunner extract the archive with zipfile instead of unzip."""
    original = runner.run

    def run(command, cwd=None, env=None, quiet=False):
        command = [str(part) for part in command]
        if command[0] == "unzip" and "unzip" not in runner.fail:
            runner.calls.append(command)
            log_message(f"+ {format_command(command)}")
            archive, dest = command[2], command[command.index("-d") + 1]
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(dest)
            return CommandResult(command, 0, "")
        if command[0] == "rm" and "rm" not in runner.fail:
            runner.calls.append(command)
            log_message(f"+ {format_command(command)}")
            shutil.rmtree(command[-1], ignore_errors=True)
            return CommandResult(command, 0, "")
        return original(command, cwd=cwd, env=env, quiet=quiet)

    runner.run = run
    return runner
