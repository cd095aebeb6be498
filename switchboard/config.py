"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < profile < env vars < CLI flags
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

PROVIDER_TYPES = ("grok", "openai", "ollama")


@dataclass
class ProviderConfig:
    type: str = "grok"
    api_base: str = ""
    api_key_env: str = ""
    models: list[str] = field(default_factory=list)
    default_model: str = ""
    timeout_seconds: float = 120.0
    max_retries: int = 2
    discover_models: bool = False

    def api_key(self) -> str:
        return os.environ.get(self.api_key_env, "") if self.api_key_env else ""


def _default_providers() -> dict[str, ProviderConfig]:
    return {
        "grok": ProviderConfig(
            type="grok",
            api_base="https://api.x.ai/v1",
            api_key_env="GROK_API_KEY",
            default_model="grok-3-latest",
            timeout_seconds=360.0,
        ),
        "openai": ProviderConfig(
            type="openai",
            api_base="https://api.openai.com/v1",
            api_key_env="OPENAI_API_KEY",
            default_model="gpt-4o",
            timeout_seconds=60.0,
            discover_models=True,
        ),
    }


@dataclass
class OrchestratorConfig:
    max_rounds: int = 30
    temperature: float | None = None
    max_tokens: int | None = None

    def request_options(self) -> dict[str, Any]:
        return {
            k: v
            for k, v in {"temperature": self.temperature, "max_tokens": self.max_tokens}.items()
            if v is not None
        }


@dataclass
class ToolsConfig:
    disabled: list[str] = field(default_factory=list)
    bash_timeout_seconds: float = 30.0
    working_dir: str = ""
    confirm: bool = True


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class SwitchboardConfig:
    providers: dict[str, ProviderConfig] = field(default_factory=_default_providers)
    default_provider: str = "grok"
    default_model: str = ""
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    custom_instructions_path: str = ""
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    def validate(self) -> list[str]:
        """Return a list of problems; empty means valid."""
        problems: list[str] = []
        if not self.providers:
            problems.append("No providers configured")
        if self.default_provider not in self.providers:
            problems.append(f"Invalid default provider: {self.default_provider!r}")
        for name, p in self.providers.items():
            if p.type not in PROVIDER_TYPES:
                problems.append(f"Provider {name!r}: unknown type {p.type!r}")
        if self.orchestrator.max_rounds < 1:
            problems.append("orchestrator.max_rounds must be >= 1")
        return problems


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """Walk obj via dotpath and set the final attribute."""
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base, returning a new dict."""
    merged = dict(base)
    for k, v in overlay.items():
        if k in merged and isinstance(merged[k], dict) and isinstance(v, dict):
            merged[k] = _deep_merge(merged[k], v)
        else:
            merged[k] = v
    return merged


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    if target_type is list:
        return [s.strip() for s in value.split(",") if s.strip()]
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


def _build_providers(raw: dict) -> dict[str, ProviderConfig]:
    providers = _default_providers()
    for name, section in raw.items():
        base = asdict(providers[name]) if name in providers else {}
        providers[name] = _build_section(ProviderConfig, _deep_merge(base, section or {}))
    return providers


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "SWITCHBOARD_DEFAULT_PROVIDER":   ("default_provider", str),
    "SWITCHBOARD_MODEL":              ("default_model", str),
    "SWITCHBOARD_MAX_ROUNDS":         ("orchestrator.max_rounds", int),
    "SWITCHBOARD_TEMPERATURE":        ("orchestrator.temperature", float),
    "SWITCHBOARD_MAX_TOKENS":         ("orchestrator.max_tokens", int),
    "SWITCHBOARD_TOOLS_DISABLED":     ("tools.disabled", list),
    "SWITCHBOARD_BASH_TIMEOUT":       ("tools.bash_timeout_seconds", float),
    "SWITCHBOARD_WORKING_DIR":        ("tools.working_dir", str),
    "SWITCHBOARD_TOOLS_CONFIRM":      ("tools.confirm", bool),
    "SWITCHBOARD_INSTRUCTIONS":       ("custom_instructions_path", str),
}

# Base-URL overrides keyed by provider name, using the variables the
# vendor CLIs already read. A differently named entry of the same type
# keeps its own api_base.
_BASE_URL_ENV: dict[str, str] = {
    "grok": "GROK_BASE_URL",
    "openai": "OPENAI_BASE_URL",
    "ollama": "OLLAMA_HOST",
}


def config_search_path() -> list[Path]:
    return [
        Path.cwd() / "switchboard.yaml",
        Path.cwd() / ".switchboard" / "config.yaml",
        Path.home() / ".config" / "switchboard" / "config.yaml",
    ]


def find_config_file() -> Path | None:
    for p in config_search_path():
        if p.is_file():
            return p
    return None


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> SwitchboardConfig:
    """
    Build a SwitchboardConfig by layering sources in precedence order:

        defaults  <  config file  <  profile  <  env vars  <  CLI flags

    Parameters
    ----------
    config_path : path to YAML config file (optional)
    profile : name of a profile to apply from the config file
    cli_overrides : dict of dotpath -> value CLI flag overrides
    """
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.is_file():
            with p.open("r", encoding="utf-8") as f:
                file_data = yaml.safe_load(f) or {}
            if not isinstance(file_data, dict):
                raise ValueError(f"{p}: top level must be a mapping")
            raw = _deep_merge(raw, file_data)

    # --- 2. Profile overlay ---
    if profile:
        profile_data = raw.get("profiles", {}).get(profile)
        if profile_data is None:
            raise KeyError(f"Unknown profile: {profile!r}")
        raw = _deep_merge(raw, profile_data)

    # --- Build sections from raw ---
    cfg = SwitchboardConfig(
        providers=_build_providers(raw.get("providers", {})),
        default_provider=raw.get("default_provider", "grok"),
        default_model=raw.get("default_model", ""),
        orchestrator=_build_section(OrchestratorConfig, raw.get("orchestrator", {})),
        tools=_build_section(ToolsConfig, raw.get("tools", {})),
        custom_instructions_path=raw.get("custom_instructions_path", ""),
        profiles=raw.get("profiles", {}),
    )

    # --- 3. Env var overrides ---
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val is not None:
            _apply_dotpath(cfg, dotpath, _coerce(val, target_type))

    for name, provider in cfg.providers.items():
        env_name = _BASE_URL_ENV.get(name)
        if env_name and os.environ.get(env_name):
            provider.api_base = os.environ[env_name]

    # --- 4. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            _apply_dotpath(cfg, dotpath, value)

    return cfg
