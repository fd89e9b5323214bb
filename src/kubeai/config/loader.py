"""Configuration loading for kubeai.

Sources, lowest priority first:
    1. Model defaults
    2. ``$XDG_CONFIG_HOME/kubeai/config.toml`` (``~/.config`` when unset)
    3. ``./kubeai.toml``
    4. The file named by ``$KUBEAI_CONFIG``
    5. An explicit ``path`` (the CLI's ``--config``)
    6. ``overrides`` (the CLI's ``--provider`` / ``--model``)

Tables merge key by key. ``[[mcp.servers]]`` entries merge by ``name``, so
a project file can disable or re-point a server declared in the user file
without repeating the others.

Once validated, the selected backend is checked for the settings it cannot
run without, and its API key is read from the environment when the files
do not carry one.
"""

from __future__ import annotations

import logging
import os
import re
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from kubeai.core.errors import ConfigError

from .schema import KubeAIConfig

if TYPE_CHECKING:
    from .schema import LLMConfig

logger = logging.getLogger(__name__)

ENV_CONFIG = "KUBEAI_CONFIG"
PROJECT_FILE = "kubeai.toml"

# Default variable holding each backend's key, used when api_key_env is unset.
API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "azopenai": "AZURE_OPENAI_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "ollama": "OLLAMA_API_KEY",
}

_AZURE = frozenset({"azopenai", "azure"})
_AWS_REGION = re.compile(r"^[a-z]{2}(-gov|-iso[a-z]?)?-[a-z]+-\d+$")


# ── Discovery ─────────────────────────────────────────────────


def user_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "kubeai" / "config.toml"


def config_files(path: str | Path | None = None) -> list[Path]:
    """Config files to merge, lowest priority first.

    Implicit locations are skipped when absent; a file named explicitly
    by ``$KUBEAI_CONFIG`` or ``path`` must exist.
    """
    files = [p for p in (user_config_path(), Path.cwd() / PROJECT_FILE) if p.is_file()]
    for origin, named in ((f"${ENV_CONFIG}", os.environ.get(ENV_CONFIG)), ("--config", path)):
        if not named:
            continue
        p = Path(named)
        if not p.is_file():
            msg = f"{origin} names a missing config file: {named}"
            raise ConfigError(msg)
        files.append(p)
    return files


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e

    mcp = data.get("mcp")
    servers = mcp.get("servers") if isinstance(mcp, dict) else None
    if not isinstance(servers, list):
        return data
    names = [s.get("name") for s in servers if isinstance(s, dict)]
    duplicates = sorted({n for n in names if n is not None and names.count(n) > 1})
    if duplicates:
        msg = f"{path}: tool server declared more than once: {', '.join(duplicates)}"
        raise ConfigError(msg)
    return data


# ── Merge ─────────────────────────────────────────────────────


def merge_layers(base: dict[str, Any], layer: dict[str, Any]) -> dict[str, Any]:
    """Merge ``layer`` over a copy of ``base``."""
    merged = dict(base)
    for key, value in layer.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_layers(current, value)
        elif key == "servers" and isinstance(current, list) and isinstance(value, list):
            merged[key] = _merge_servers(current, value)
        else:
            merged[key] = value
    return merged


def _merge_servers(base: list[Any], layer: list[Any]) -> list[Any]:
    servers = list(base)
    position = {s["name"]: i for i, s in enumerate(servers) if isinstance(s, dict) and "name" in s}
    for entry in layer:
        name = entry.get("name") if isinstance(entry, dict) else None
        if name in position:
            servers[position[name]] = merge_layers(servers[position[name]], entry)
            continue
        if name is not None:
            position[name] = len(servers)
        servers.append(entry)
    return servers


# ── Backend checks ────────────────────────────────────────────


def _check_backend(llm: LLMConfig) -> None:
    """Fill environment-derived settings and reject unusable ones (in-place)."""
    provider = llm.provider.lower()

    if llm.endpoint and not llm.endpoint.startswith(("http://", "https://")):
        msg = f"llm.endpoint must be an http(s) URL, got {llm.endpoint!r}"
        raise ConfigError(msg)

    if provider in _AZURE and not llm.endpoint:
        msg = "Azure OpenAI needs llm.endpoint (https://<resource>.openai.azure.com)"
        raise ConfigError(msg)

    if provider == "bedrock":
        llm.region = llm.region or os.environ.get("AWS_REGION") or None
        if llm.region and not _AWS_REGION.match(llm.region):
            msg = f"llm.region is not an AWS region: {llm.region!r}"
            raise ConfigError(msg)

    if llm.api_key is None:
        env = llm.api_key_env or API_KEY_ENV.get(provider)
        if env:
            llm.api_key = os.environ.get(env) or None


# ── Entry point ───────────────────────────────────────────────


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> KubeAIConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config file path (highest file priority).
        overrides: Dict of overrides merged last (highest overall priority).

    Raises:
        ConfigError: On unreadable or invalid files, validation failure,
            or a backend missing a setting it requires.
    """
    merged: dict[str, Any] = {}
    for config_file in config_files(path):
        logger.debug("Reading config %s", config_file)
        merged = merge_layers(merged, _read_toml(config_file))
    if overrides:
        merged = merge_layers(merged, overrides)

    try:
        config = KubeAIConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e

    _check_backend(config.llm)
    return config
