"""Interpreter settings: constructor arguments, env vars and a YAML file in one object.

Priority chain (highest to lowest):
  1. Init kwargs  - passed by the host
  2. Env vars     - ``TGSCRIPT_*`` prefix
  3. YAML file    - given to :func:`load_config`
  4. Code defaults
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, PydanticBaseSettingsSource


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a YAML file, optionally under a ``tgscript:`` section."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if yaml_path is None:
            return
        try:
            data = yaml.safe_load(yaml_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {yaml_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"{yaml_path}: expected a mapping at the top level")
        section = data.get("tgscript", data)
        # Accept kebab-case keys as written in YAML files
        self._data = {str(k).replace("-", "_"): v for k, v in (section or {}).items()}

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# YAML path for the settings object under construction.
_tls = threading.local()


class InterpreterConfig(BaseSettings):
    """Host-level switches for the interpreter.

    Attributes:
        text_errors: put diagnostics into the dispatch output. When False they
            are logged and routed to the function-error side channel instead.
        max_depth: maximum nesting of calls within one dispatch.
        disabled_functions: built-ins left out of the registry. From the
            environment this is a comma-separated list.
        debug: verbose logging.
        log_json: JSON log lines instead of console output.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "TGSCRIPT_",
        "extra": "forbid",
    }

    text_errors: bool = True
    max_depth: int = Field(default=100, ge=1)
    disabled_functions: Annotated[tuple[str, ...], NoDecode] = ()
    debug: bool = False
    log_json: bool = False

    @field_validator("disabled_functions", mode="before")
    @classmethod
    def _split_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(n.strip() for n in value.split(",") if n.strip())
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert the YAML source between env vars and defaults."""
        return (
            init_settings,
            env_settings,
            YamlSettingsSource(settings_cls, getattr(_tls, "yaml_path", None)),
        )


def load_config(path: str | Path, **overrides: Any) -> InterpreterConfig:
    """Builds settings from a YAML file; env vars and `overrides` take precedence."""
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"config file not found: {p}")
    _tls.yaml_path = p
    try:
        return InterpreterConfig(**overrides)
    finally:
        _tls.yaml_path = None
