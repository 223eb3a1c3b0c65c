from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import load_dotenv
from jsonschema.exceptions import ValidationError

from ..document.formatting import DEFAULT_FORMATTING, FormattingRule, FormattingTable
from ..services.binding import DEFAULT_BINDING_RULES, BindingRule

"""Config loader.

Responsibilities:
- Load YAML config (default: config/tessera.yml, optional)
- Validate against the packaged JSON schema (config_schema.json)
- Apply defaults for every missing key
- Apply environment overrides (.env is read with python-dotenv first)

優先順位: CLI フラグ > 環境変数 (.env 含む) > YAML > 既定値
CLI フラグの適用は cli 側で `dataclasses.replace` により行う。
"""

__all__ = [
    "ConfigError",
    "GenerationConfig",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "load_env_file",
    "apply_env_overrides",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/tessera.yml")

ENV_OUTPUT_SUBDIR = "TESSERA_OUTPUT_SUBDIR"
ENV_WORKERS = "TESSERA_WORKERS"
ENV_ERROR_LOG_DIR = "TESSERA_ERROR_LOG_DIR"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class GenerationConfig:
    """Root configuration of a generation run."""
    output_subdir: str = "generated"  # outputRoot/<output_subdir>/<template>/<sheet>/
    naming_columns: tuple[str, ...] = ("fullName", "FULL NAME")  # 出力ファイル名に使う列 (先勝ち)
    single_placeholder_per_paragraph: bool = False
    workers: int = 1
    error_log_dir: str = "logs"
    fixed_values: dict[str, str] = field(default_factory=dict)  # 変数名 → 固定値 (レコード値より優先)
    formatting: FormattingTable = DEFAULT_FORMATTING
    binding_rules: tuple[BindingRule, ...] = DEFAULT_BINDING_RULES


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the packaged JSON schema.

    Raises:
        ConfigError: schema file missing/invalid, or data fails validation
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _from_mapping(data: Mapping[str, Any]) -> GenerationConfig:
    defaults = GenerationConfig()
    try:
        formatting = (
            FormattingTable.of(FormattingRule.from_dict(r) for r in data["formatting_rules"])
            if "formatting_rules" in data
            else defaults.formatting
        )
    except ValueError as e:
        raise ConfigError(f"config validation failed: {e}") from e
    bindings = (
        tuple(BindingRule.from_dict(b) for b in data["template_bindings"])
        if "template_bindings" in data
        else defaults.binding_rules
    )
    return GenerationConfig(
        output_subdir=data.get("output_subdir", defaults.output_subdir),
        naming_columns=tuple(data.get("naming_columns", defaults.naming_columns)),
        single_placeholder_per_paragraph=data.get(
            "single_placeholder_per_paragraph", defaults.single_placeholder_per_paragraph
        ),
        workers=data.get("workers", defaults.workers),
        error_log_dir=data.get("error_log_dir", defaults.error_log_dir),
        fixed_values={str(k): str(v) for k, v in (data.get("fixed_values") or {}).items()},
        formatting=formatting,
        binding_rules=bindings,
    )


def load_config(path: Path | None = None, *, required: bool = False) -> GenerationConfig:
    """Load and validate a YAML config file.

    Args:
        path: config file; None means DEFAULT_CONFIG_PATH
        required: when False a missing file yields the defaults

    Raises:
        ConfigError: missing (when required), invalid YAML or schema violation
    """
    cfg_path = path if path is not None else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        if required:
            raise ConfigError(f"config file not found: {cfg_path}")
        return apply_env_overrides(GenerationConfig())
    try:
        data = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    except OSError as e:
        raise ConfigError(f"cannot read config file {cfg_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {cfg_path}")

    _validate_config_schema(data)
    return apply_env_overrides(_from_mapping(data))


def load_env_file(path: Path = Path(".env"), override: bool = True) -> bool:
    """Load a .env file with python-dotenv. Returns True when variables were set."""
    if not path.exists():
        return False
    return bool(load_dotenv(dotenv_path=path, override=override))


def apply_env_overrides(cfg: GenerationConfig) -> GenerationConfig:
    changes: dict[str, Any] = {}
    if subdir := os.getenv(ENV_OUTPUT_SUBDIR):
        changes["output_subdir"] = subdir
    if log_dir := os.getenv(ENV_ERROR_LOG_DIR):
        changes["error_log_dir"] = log_dir
    if workers := os.getenv(ENV_WORKERS):
        try:
            n = int(workers)
        except ValueError as e:
            raise ConfigError(f"{ENV_WORKERS} must be an integer: {workers!r}") from e
        if n < 1:
            raise ConfigError(f"{ENV_WORKERS} must be >= 1: {n}")
        changes["workers"] = n
    return replace(cfg, **changes) if changes else cfg
