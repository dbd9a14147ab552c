"""Settings loading with deterministic precedence.

The cascade is always:
1) CLI params
2) Environment variables (``TUTOR_`` prefix, ``__`` for nesting, for example
   ``TUTOR_RECOVERY__RETRY__MAX_RETRIES=5``)
3) YAML file, ``~/.config/tutor/tutor.yaml`` unless overridden
4) Model defaults
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Mapping

from pydantic_settings import SettingsConfigDict

from .models import TutorSettings


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
) -> TutorSettings:
    """Resolve ``TutorSettings`` from every configured source."""
    settings_cls = TutorSettings
    if config_path is not None:
        settings_cls = _settings_for_path(Path(config_path))
    return settings_cls(**_as_plain_dict(cli_params or {}))


def _settings_for_path(path: Path) -> type[TutorSettings]:
    """Return a settings class reading YAML from ``path``."""

    class _FileScopedSettings(TutorSettings):
        model_config = SettingsConfigDict(yaml_file=path)

    return _FileScopedSettings


def _as_plain_dict(value: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-copy a mapping into plain ``dict`` values recursively."""
    output: dict[str, Any] = {}
    for key, subvalue in value.items():
        if isinstance(subvalue, Mapping):
            output[str(key)] = _as_plain_dict(subvalue)
        else:
            output[str(key)] = copy.deepcopy(subvalue)
    return output
