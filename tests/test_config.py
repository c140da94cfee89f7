import os

import pytest
from pydantic import ValidationError

from tgscript.tgscript_config import InterpreterConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("TGSCRIPT_"):
            monkeypatch.delenv(key)


def test_defaults():
    cfg = InterpreterConfig()
    assert cfg.text_errors is True
    assert cfg.max_depth == 100
    assert cfg.disabled_functions == ()
    assert cfg.debug is False
    assert cfg.log_json is False


def test_settings_are_frozen():
    cfg = InterpreterConfig()
    with pytest.raises(ValidationError):
        cfg.max_depth = 3


def test_unknown_keys_are_rejected():
    with pytest.raises(ValidationError, match="colour"):
        InterpreterConfig(colour="blue")


def test_max_depth_must_be_positive():
    with pytest.raises(ValidationError):
        InterpreterConfig(max_depth=0)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("TGSCRIPT_TEXT_ERRORS", "off")
    monkeypatch.setenv("TGSCRIPT_MAX_DEPTH", "12")
    monkeypatch.setenv("TGSCRIPT_DEBUG", "yes")
    monkeypatch.setenv("TGSCRIPT_DISABLED_FUNCTIONS", "fetch, random,,")
    cfg = InterpreterConfig()
    assert cfg.text_errors is False
    assert cfg.max_depth == 12
    assert cfg.debug is True
    assert cfg.disabled_functions == ("fetch", "random")


def test_init_kwargs_beat_env(monkeypatch):
    monkeypatch.setenv("TGSCRIPT_MAX_DEPTH", "12")
    assert InterpreterConfig(max_depth=3).max_depth == 3


def test_load_config_from_yaml_section(tmp_path, monkeypatch):
    monkeypatch.setenv("TGSCRIPT_DEBUG", "1")
    path = tmp_path / "bot.yaml"
    path.write_text("tgscript:\n  text-errors: false\n  max-depth: 20\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.text_errors is False
    assert cfg.max_depth == 20
    assert cfg.debug is True


def test_env_beats_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv("TGSCRIPT_MAX_DEPTH", "7")
    path = tmp_path / "bot.yaml"
    path.write_text("max_depth: 20\ndisabled_functions: [fetch]\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.max_depth == 7
    assert cfg.disabled_functions == ("fetch",)


def test_yaml_is_only_read_by_load_config(tmp_path):
    path = tmp_path / "bot.yaml"
    path.write_text("max_depth: 20\n", encoding="utf-8")
    load_config(path)
    assert InterpreterConfig().max_depth == 100


def test_load_config_rejects_unknown_yaml_keys(tmp_path):
    path = tmp_path / "bot.yaml"
    path.write_text("colour: blue\n", encoding="utf-8")
    with pytest.raises(ValidationError, match="colour"):
        load_config(path)


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
