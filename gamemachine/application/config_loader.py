"""gamemachine/application/config_loader.py

Loader for the host configuration file ``airsoft/asm-config.cfg``.

The file holds plain ``key=value`` lines. Only ``address_high`` and
``address_low`` are recognised today; unknown keys are ignored so newer
files keep loading on older units.
"""

from __future__ import annotations

import os
from typing import Iterable, Mapping

from pydantic import ValidationError

from ..domain import AsmConfig
from ..logging_utils import logprintf

CONFIG_DIRNAME = "airsoft"
CONFIG_FILENAME = "asm-config.cfg"

_FIELDS = ("address_high", "address_low")
_ENV_OVERRIDES = {
    "ASM_ADDRESS_HIGH": "address_high",
    "ASM_ADDRESS_LOW": "address_low",
}


class ConfigError(ValueError):
    """Raised when the configuration cannot produce a valid :class:`AsmConfig`."""


def default_config_path(base_dir: str | None = None) -> str:
    return os.path.join(base_dir or os.getcwd(), CONFIG_DIRNAME, CONFIG_FILENAME)


def _strip_inline_comment(value: str) -> str:
    for sep in ("//", "#"):
        if sep in value:
            value = value.split(sep, 1)[0]
    return value.strip()


def _parse_byte(key: str, text: str) -> int | None:
    try:
        return int(text, 0)
    except ValueError:
        logprintf(1, "Ignoring %s=%r: not a number", key, text)
        return None


def parse_config_lines(lines: Iterable[str]) -> dict[str, int]:
    """Collect recognised ``key=value`` pairs; later lines win."""

    values: dict[str, int] = {}
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or line.startswith("//"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip().lower()
        if key not in _FIELDS:
            continue
        number = _parse_byte(key, _strip_inline_comment(value))
        if number is not None:
            values[key] = number
    return values


def load_config(
    path: str | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> AsmConfig:
    """Load :class:`AsmConfig` from ``path`` (default ``<cwd>/airsoft/asm-config.cfg``).

    A missing file yields the defaults plus environment overrides. Values
    outside 0..255 raise :class:`ConfigError`.
    """

    env = dict(os.environ if env is None else env)
    path = path or default_config_path()

    values: dict[str, int] = {}
    if os.path.isfile(path):
        with open(path, "r", encoding="utf-8") as f:
            values = parse_config_lines(f)
        logprintf(2, "Configuration loaded from %s", path)
    else:
        logprintf(1, "Configuration file %s not found, using defaults", path)

    for var, field in _ENV_OVERRIDES.items():
        if var in env:
            number = _parse_byte(var, env[var].strip())
            if number is not None:
                values[field] = number

    try:
        return AsmConfig(**values)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration in {path}: {exc}") from exc


__all__ = ["ConfigError", "default_config_path", "load_config", "parse_config_lines"]
