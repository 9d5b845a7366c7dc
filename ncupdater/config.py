"""
Nextcloud Manual Update Utility
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Run configuration.

Defaults come from the bundled index.json (metadata + config blocks). The
values are frozen into an UpdateConfig once at startup; the interactive
version answer produces a new instance through with_version().
"""

import json
import os
from dataclasses import dataclass, field, replace, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigError
from .utils.index import log_message, make_run_timestamp

CONFIG_PATH = Path(__file__).parent / "index.json"

# Never synchronized over; operator config can add entries but not remove these
PROTECTED_SYNC_EXCLUDES = ("config", "data", ".user.ini", ".htaccess")

DEFAULT_CONFIG = {
    "metadata": {
        "schema_version": "1.0.0",
        "module_name": "nextcloud"
    },
    "config": {
        "default_version": "32.0.4",
        "download_url_template": "https://download.nextcloud.com/server/releases/nextcloud-{version}.zip",
        "service_user": "www-data",
        "php_binary": "php",
        "directories": {
            "install_dir": "/var/www/nextcloud",
            "data_dir": "/mnt/dietpi_userdata/nextcloud_data",
            "tmp_dir": "/tmp",
            "backup_root": "/var/backups/nextcloud",
            "log_dir": "/var/log"
        },
        "sync_excludes": list(PROTECTED_SYNC_EXCLUDES),
        "download": {
            "timeout_seconds": 60,
            "allow_stale_archive": True
        }
    }
}


@dataclass(frozen=True)
class UpdateConfig:
    """Immutable values shared by every phase of one run."""
    default_version: str
    download_url_template: str
    install_dir: Path
    data_dir: Path
    tmp_dir: Path
    backup_root: Path
    log_dir: Path
    service_user: str = "www-data"
    php_binary: str = "php"
    sync_excludes: Tuple[str, ...] = PROTECTED_SYNC_EXCLUDES
    download_timeout: int = 60
    allow_stale_archive: bool = True
    run_timestamp: str = field(default_factory=make_run_timestamp)
    version: Optional[str] = None

    @property
    def target_version(self) -> str:
        return self.version or self.default_version

    @property
    def download_url(self) -> str:
        return self.download_url_template.format(version=self.target_version)

    @property
    def archive_path(self) -> Path:
        return self.tmp_dir / f"nextcloud-{self.target_version}.zip"

    @property
    def extract_dir(self) -> Path:
        return self.tmp_dir / "nextcloud"

    @property
    def occ_path(self) -> Path:
        return self.install_dir / "occ"

    @property
    def config_dir(self) -> Path:
        return self.install_dir / "config"

    @property
    def log_file(self) -> Path:
        return self.log_dir / f"nextcloud-update-{self.run_timestamp}.log"

    @property
    def backup_dir(self) -> Path:
        return self.backup_root / f"nextcloud_backup_{self.run_timestamp}"

    def with_version(self, version: str) -> "UpdateConfig":
        return replace(self, version=version)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Path):
                data[key] = str(value)
        data["sync_excludes"] = list(self.sync_excludes)
        data["download_url"] = self.download_url
        data["log_file"] = str(self.log_file)
        data["backup_dir"] = str(self.backup_dir)
        return data


def load_module_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from an index.json file.

    The bundled file falls back to built-in defaults when unreadable; a file
    named by the operator must exist and parse.

    Returns:
        dict: Configuration data with metadata and config blocks
    """
    if config_path is None:
        try:
            with open(CONFIG_PATH, 'r') as f:
                return json.load(f)
        except Exception as e:
            log_message(f"Failed to load module config: {e}", "WARNING")
            return DEFAULT_CONFIG

    try:
        with open(config_path, 'r') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to load configuration from {config_path}: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("config"), dict):
        raise ConfigError(f"Configuration file {config_path} has no 'config' block")
    return data


def merge_sync_excludes(configured) -> Tuple[str, ...]:
    """Protected entries first, then any extra configured names, without duplicates."""
    merged = list(PROTECTED_SYNC_EXCLUDES)
    for name in configured or []:
        name = str(name).strip().strip("/")
        if name and name not in merged:
            merged.append(name)
    return tuple(merged)


def build_config(module_config: Dict[str, Any], run_timestamp: Optional[str] = None) -> UpdateConfig:
    """Turn a loaded index.json structure into an UpdateConfig."""
    defaults = DEFAULT_CONFIG["config"]
    config = module_config.get("config", {})
    directories = dict(defaults["directories"])
    directories.update(config.get("directories", {}))
    download = dict(defaults["download"])
    download.update(config.get("download", {}))

    template = config.get("download_url_template", defaults["download_url_template"])
    if "{version}" not in template:
        raise ConfigError(f"download_url_template must contain '{{version}}': {template}")

    try:
        timeout = int(download["timeout_seconds"])
    except (TypeError, ValueError):
        raise ConfigError(f"download.timeout_seconds must be an integer: {download['timeout_seconds']!r}")

    kwargs = dict(
        default_version=str(config.get("default_version", defaults["default_version"])),
        download_url_template=template,
        install_dir=Path(directories["install_dir"]),
        data_dir=Path(directories["data_dir"]),
        tmp_dir=Path(directories["tmp_dir"]),
        backup_root=Path(directories["backup_root"]),
        log_dir=Path(directories["log_dir"]),
        service_user=config.get("service_user", defaults["service_user"]),
        php_binary=config.get("php_binary", defaults["php_binary"]),
        sync_excludes=merge_sync_excludes(config.get("sync_excludes", [])),
        download_timeout=timeout,
        allow_stale_archive=bool(download["allow_stale_archive"]),
    )
    if run_timestamp:
        kwargs["run_timestamp"] = run_timestamp
    return UpdateConfig(**kwargs)


def load_config(config_path: Optional[os.PathLike] = None,
                run_timestamp: Optional[str] = None) -> UpdateConfig:
    """Load index.json (bundled or given) and freeze it into an UpdateConfig."""
    path = Path(config_path) if config_path is not None else None
    return build_config(load_module_config(path), run_timestamp)
