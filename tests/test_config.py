import pytest

from vfxscan.config import Config, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("VFXSCAN_DB", raising=False)
    monkeypatch.delenv("VFXSCAN_LOG_LEVEL", raising=False)


def test_defaults_without_file():
    assert load_config() == Config()


def test_values_from_toml(tmp_path):
    (tmp_path / "vfxscan.toml").write_text(
        'database_path = "/studio/db/vfx_launcher.db"\n'
        "debounce_seconds = 3\n"
        'log_file = "logs/vfxscan.log"\n'
    )

    config = load_config()

    assert config.database_path == "/studio/db/vfx_launcher.db"
    assert config.debounce_seconds == 3.0
    assert config.log_file == "logs/vfxscan.log"
    assert config.log_level == "INFO"


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "custom.toml"
    path.write_text('database_path = "from_file.db"\n')
    monkeypatch.setenv("VFXSCAN_DB", "from_env.db")
    monkeypatch.setenv("VFXSCAN_LOG_LEVEL", "DEBUG")

    config = load_config(path)

    assert config.database_path == "from_env.db"
    assert config.log_level == "DEBUG"


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.toml")
