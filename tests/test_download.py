"""Archive download tests; requests.get is replaced by a fake response."""

import pytest
import requests

from ncupdater.download import ArchiveDownloader
from ncupdater.errors import DownloadError

from conftest import FakeResponse, make_prompter


def test_download_writes_archive(config, fake_download, release_zip):
    prompter, scripted = make_prompter()
    archive = ArchiveDownloader(prompter).fetch(config)

    assert archive == config.archive_path
    assert archive.read_bytes() == release_zip
    assert fake_download == ["https://download.example.test/nextcloud-32.0.4.zip"]
    assert scripted.prompts == []


def test_existing_archive_removed_on_default_answer(config, fake_download, release_zip):
    config.archive_path.write_bytes(b"stale")
    prompter, scripted = make_prompter([""])

    ArchiveDownloader(prompter).fetch(config)

    assert config.archive_path.read_bytes() == release_zip
    assert len(fake_download) == 1
    assert "Remove existing" in scripted.prompts[0]


def test_declining_removal_keeps_existing_archive(config, fake_download):
    """No re-download; the stale file is used as is."""
    config.archive_path.write_bytes(b"stale archive bytes")
    prompter, _ = make_prompter(["n"])

    archive = ArchiveDownloader(prompter).fetch(config)

    assert archive.read_bytes() == b"stale archive bytes"
    assert fake_download == []


def test_stale_archive_always_replaced_when_reuse_disabled(config, fake_download, release_zip):
    import dataclasses
    config = dataclasses.replace(config, allow_stale_archive=False)
    config.archive_path.write_bytes(b"stale")
    prompter, scripted = make_prompter(["n"])

    ArchiveDownloader(prompter).fetch(config)

    assert config.archive_path.read_bytes() == release_zip
    assert scripted.prompts == []


def test_http_error_raises_download_error(config, monkeypatch):
    monkeypatch.setattr(
        "ncupdater.download.requests.get",
        lambda url, stream=False, timeout=None: FakeResponse(b"", status_code=404),
    )
    prompter, _ = make_prompter()

    with pytest.raises(DownloadError) as exc_info:
        ArchiveDownloader(prompter).fetch(config.with_version("99.bogus"))
    assert exc_info.value.exit_code == 6


def test_network_error_raises_download_error(config, monkeypatch):
    def refuse(url, stream=False, timeout=None):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr("ncupdater.download.requests.get", refuse)
    prompter, _ = make_prompter()

    with pytest.raises(DownloadError):
        ArchiveDownloader(prompter).fetch(config)


class BrokenStream(FakeResponse):
    """Yields one chunk, then fails the way a dropped connection or Ctrl+C would."""

    def __init__(self, error):
        super().__init__(b"PK\x03\x04partial")
        self.error = error

    def iter_content(self, chunk_size=1):
        yield self.content
        raise self.error


def test_dropped_connection_leaves_no_archive(config, monkeypatch):
    monkeypatch.setattr(
        "ncupdater.download.requests.get",
        lambda url, stream=False, timeout=None: BrokenStream(requests.ConnectionError("reset")),
    )
    prompter, _ = make_prompter()

    with pytest.raises(DownloadError):
        ArchiveDownloader(prompter).fetch(config)

    assert not config.archive_path.exists()
    assert list(config.tmp_dir.glob("*.part")) == []


def test_interrupted_download_leaves_no_archive(config, monkeypatch):
    monkeypatch.setattr(
        "ncupdater.download.requests.get",
        lambda url, stream=False, timeout=None: BrokenStream(KeyboardInterrupt()),
    )
    prompter, _ = make_prompter()

    with pytest.raises(KeyboardInterrupt):
        ArchiveDownloader(prompter).fetch(config)

    assert not config.archive_path.exists()
    assert list(config.tmp_dir.glob("*.part")) == []
