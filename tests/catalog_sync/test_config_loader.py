from pathlib import Path

import pytest

from templatelab.catalog_sync import config_loader
from templatelab.catalog_sync.config import SyncConfig
from templatelab.catalog_sync.errors import StartupError


def _write_config(monkeypatch, tmp_path, text):
    path = tmp_path / "catalog_sync.toml"
    path.write_text(text)
    monkeypatch.setenv(config_loader.CONFIG_FILE_ENV, str(path))
    return path


def test_defaults_when_no_file_and_no_env():
    cfg = config_loader.load_sync_config()

    assert cfg.registry_base_url == "https://huggingface.co"
    assert cfg.page_size == 250
    assert cfg.check_concurrency == 16
    assert cfg.interval_min == 15.0
    assert cfg.port == 3100
    assert cfg.token is None
    assert cfg.reset_on_start is False
    assert cfg.catalog_path == Path("public") / "models.json"
    assert cfg.state_path == Path("out") / "sync_state.json"


def test_file_values_are_read_by_section(monkeypatch, tmp_path):
    path = _write_config(
        monkeypatch,
        tmp_path,
        """
[registry]
registry_base_url = "https://mirror.example"
page_size = 50

[storage]
public_dir = "/srv/public"

[sync]
check_concurrency = 8
prune_unverified = true

[server]
port = 4000
unknown_key = "ignored"
""",
    )

    cfg = SyncConfig.load()

    assert cfg.registry_base_url == "https://mirror.example"
    assert cfg.page_size == 50
    assert cfg.public_dir == Path("/srv/public")
    assert cfg.tokenizer_dir == Path("/srv/public/hf")
    assert cfg.check_concurrency == 8
    assert cfg.prune_unverified is True
    assert cfg.port == 4000
    assert cfg.config_file_path == str(path)


def test_prefixed_env_overrides_file(monkeypatch, tmp_path):
    _write_config(monkeypatch, tmp_path, "[sync]\ncheck_concurrency = 8\n")
    monkeypatch.setenv("TEMPLATELAB_SYNC_CHECK_CONCURRENCY", "2")
    monkeypatch.setenv("TEMPLATELAB_SYNC_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("TEMPLATELAB_SYNC_PRUNE_UNVERIFIED", "yes")

    cfg = config_loader.load_sync_config()

    assert cfg.check_concurrency == 2
    assert cfg.state_dir == tmp_path / "state"
    assert cfg.prune_unverified is True


def test_deployment_aliases(monkeypatch):
    monkeypatch.setenv("HF_API_KEY", "secondary")
    monkeypatch.setenv("HF_TOKEN", "primary")
    monkeypatch.setenv("SYNC_INTERVAL_MIN", "2.5")
    monkeypatch.setenv("SYNC_RESET_ON_START", "true")
    monkeypatch.setenv("FETCHER_PORT", "8080")

    cfg = config_loader.load_sync_config()

    assert cfg.token == "primary"
    assert cfg.interval_min == 2.5
    assert cfg.reset_on_start is True
    assert cfg.port == 8080


def test_prefixed_env_wins_over_alias(monkeypatch):
    monkeypatch.setenv("FETCHER_PORT", "8080")
    monkeypatch.setenv("TEMPLATELAB_SYNC_PORT", "9090")

    assert config_loader.load_sync_config().port == 9090


def test_unparsable_env_value_keeps_previous(monkeypatch, tmp_path):
    _write_config(monkeypatch, tmp_path, "[server]\nport = 4000\n")
    monkeypatch.setenv("FETCHER_PORT", "not-a-port")
    monkeypatch.setenv("TEMPLATELAB_SYNC_INTERVAL_MIN", "soon")

    cfg = config_loader.load_sync_config()

    assert cfg.port == 4000
    assert cfg.interval_min == 15.0


def test_list_env_overrides_masks_tokens(monkeypatch):
    monkeypatch.setenv("HF_TOKEN", "hf_secret")
    monkeypatch.setenv("TEMPLATELAB_SYNC_TOKEN", "other_secret")
    monkeypatch.setenv("SYNC_INTERVAL_MIN", "5")

    overrides = config_loader.list_env_overrides()

    assert overrides["HF_TOKEN"] == "***"
    assert overrides["TEMPLATELAB_SYNC_TOKEN"] == "***"
    assert overrides["SYNC_INTERVAL_MIN"] == "5"
    assert config_loader.CONFIG_FILE_ENV not in overrides


def test_ensure_directories_seeds_empty_catalog(tmp_path):
    cfg = SyncConfig(public_dir=tmp_path / "public", state_dir=tmp_path / "out")
    cfg.ensure_directories()

    assert cfg.catalog_path.read_text() == "[]\n"
    assert cfg.tokenizer_dir.is_dir()
    assert cfg.metadata_dir.is_dir()
    assert cfg.state_path.parent.is_dir()

    cfg.catalog_path.write_text('["org/a"]')
    cfg.ensure_directories()
    assert cfg.catalog_path.read_text() == '["org/a"]'


def test_ensure_directories_reports_startup_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory")
    cfg = SyncConfig(public_dir=blocker / "public", state_dir=tmp_path / "out")

    with pytest.raises(StartupError):
        cfg.ensure_directories()


def test_bad_file_values_fall_back_to_defaults(monkeypatch, tmp_path):
    _write_config(
        monkeypatch,
        tmp_path,
        '[sync]\ncheck_concurrency = "lots"\n\n[server]\nport = 4100\n',
    )

    cfg = config_loader.load_sync_config()

    assert cfg.check_concurrency == 16
    assert cfg.port == 4100
    assert not hasattr(config_loader, "load_file_config")
