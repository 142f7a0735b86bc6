"""Configuration loader compatible with the Solana CLI ``config.yml``."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ArboristError


class ConfigurationError(ArboristError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".config" / "solana" / "cli" / "config.yml"
DEFAULT_KEYPAIR_PATH = str(Path.home() / ".config" / "solana" / "id.json")
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_COMMITMENT = "confirmed"

ENV_RPC_URL = "ARBORIST_RPC_URL"
ENV_KEYPAIR = "ARBORIST_KEYPAIR"
ENV_COMMITMENT = "ARBORIST_COMMITMENT"

RPC_URL_MONIKERS = {
    "m": "https://api.mainnet-beta.solana.com",
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "t": "https://api.testnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "d": "https://api.devnet.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "l": "http://localhost:8899",
    "localhost": "http://localhost:8899",
}

COMMITMENT_ALIASES = {
    "processed": "processed",
    "confirmed": "confirmed",
    "finalized": "finalized",
    "recent": "processed",
    "single": "confirmed",
    "singlegossip": "confirmed",
    "root": "finalized",
    "max": "finalized",
}


@dataclass
class CLIConfig:
    """Resolved connection and signer settings."""

    json_rpc_url: str = DEFAULT_RPC_URL
    keypair_path: str = DEFAULT_KEYPAIR_PATH
    commitment: str = DEFAULT_COMMITMENT
    websocket_url: str = ""


def normalize_to_url_if_moniker(url_or_moniker: str) -> str:
    return RPC_URL_MONIKERS.get(url_or_moniker, url_or_moniker)


def parse_commitment(raw: str) -> str:
    """Map a commitment string (including legacy aliases) to its canonical level."""

    normalized = COMMITMENT_ALIASES.get(str(raw).strip().lower())
    if normalized is None:
        raise ConfigurationError(
            f"Invalid commitment level {raw!r}; expected processed, confirmed, or finalized"
        )
    return normalized


def _load_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Could not read config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value:
            return value
    return default


def load_cli_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> CLIConfig:
    """Resolve settings from overrides, the environment, then the YAML file.

    A missing config file is not an error: the Solana CLI defaults apply.
    """

    env_map = os.environ if env is None else env
    path = Path(config_path).expanduser() if config_path is not None else DEFAULT_CONFIG_PATH
    file_config = _load_config_file(path)
    override_map = dict(overrides or {})

    rpc_url = _first_value(
        override_map.get("json_rpc_url"),
        env_map.get(ENV_RPC_URL),
        file_config.get("json_rpc_url"),
        default=DEFAULT_RPC_URL,
    )
    keypair_path = _first_value(
        override_map.get("keypair_path"),
        env_map.get(ENV_KEYPAIR),
        file_config.get("keypair_path"),
        default=DEFAULT_KEYPAIR_PATH,
    )
    commitment = _first_value(
        override_map.get("commitment"),
        env_map.get(ENV_COMMITMENT),
        file_config.get("commitment"),
        default=DEFAULT_COMMITMENT,
    )

    return CLIConfig(
        json_rpc_url=normalize_to_url_if_moniker(str(rpc_url)),
        keypair_path=str(keypair_path),
        commitment=parse_commitment(commitment),
        websocket_url=str(file_config.get("websocket_url") or ""),
    )
