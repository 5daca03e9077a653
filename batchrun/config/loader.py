import json
import tomllib
from pathlib import Path
from typing import Any, Mapping

import yaml

from .types import (
    BatchConfig,
    ConfigError,
    UnsupportedConfigFormatError,
    check_label,
    check_template,
)


def load_config(path: str | Path) -> BatchConfig:
    pure_path = Path(path).expanduser().resolve()

    if not pure_path.exists():
        raise ConfigError(f"Config file not found: {pure_path}")

    if not pure_path.is_file():
        raise ConfigError(f"Config path is not a file: {pure_path}")

    fmt = _detect_format(pure_path)
    raw_file = _parse_file(pure_path, fmt)
    return _build_batch_config(raw_file)


def _detect_format(path: Path) -> str:
    match path.suffix.lower():
        case ".yaml" | ".yml":
            return "yaml"
        case ".toml":
            return "toml"
        case ".json":
            return "json"
        case other:
            raise UnsupportedConfigFormatError(
                f"Unsupported config extension: {other or '(none)'}\n"
                " Expected format: .yml/.yaml, .toml, .json"
            )


def _parse_file(path: Path, fmt: str) -> Mapping[str, Any]:
    text = path.read_text(encoding="utf-8")
    match fmt:
        case "yaml":
            try:
                raw_file = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                raise ConfigError(f"{path}: invalid YAML") from exc
        case "toml":
            try:
                raw_file = tomllib.loads(text)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"{path}: invalid TOML") from exc
        case "json":
            try:
                raw_file = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"{path}: invalid JSON") from exc
        case _:
            raise AssertionError("Unreachable")

    if not isinstance(raw_file, Mapping):
        raise ConfigError(
            f"{path}: {fmt.upper()} parsed but the top-level value is not a mapping: {type(raw_file)}"
        )

    return raw_file


def _build_batch_config(raw: Mapping[str, Any]) -> BatchConfig:
    if not "batch" in raw:
        raise ConfigError(f"Missing 'batch' field")

    fields = raw["batch"]

    if not isinstance(fields, Mapping):
        raise ConfigError(f"'batch' must be a mapping, got {type(fields)}")

    keys = {
        "total",
        "concurrency",
        "command",
        "label",
        "env",
        "working_dir",
        "require_env",
        "progress_interval",
    }

    for key in fields.keys():
        if key not in keys:
            raise ConfigError(f"batch: Can't process: {key}")

    if not "total" in fields:
        raise ConfigError(f"batch: missing 'total'")

    total = _int_field(fields, "total", minimum=0)

    concurrency = None
    if "concurrency" in fields:
        concurrency = _int_field(fields, "concurrency", minimum=1)

    if not "command" in fields:
        raise ConfigError(f"batch: missing 'command'")

    if not isinstance(fields["command"], str):
        raise ConfigError(f"batch: The command should be a string")

    if len(fields["command"].strip()) < 1:
        raise ConfigError(f"batch: Command missing")

    command = fields["command"].strip()
    check_template("command", command, total)

    label = "task #{number}"
    if "label" in fields:
        if not isinstance(fields["label"], str) or len(fields["label"].strip()) < 1:
            raise ConfigError(f"batch: The label should be a non-empty string")

        label = fields["label"].strip()
        check_template("label", label, total)
        check_label(label, total)

    env = {}
    if "env" in fields:
        if not isinstance(fields["env"], Mapping):
            raise ConfigError(f"batch: Env should be a mapping")

        for key, item in fields["env"].items():
            if not isinstance(key, str):
                raise ConfigError(f"batch: {key} should be a string")

            if len(key.strip()) < 1:
                raise ConfigError(f"batch: A key can't be empty")

            if not isinstance(item, str):
                raise ConfigError(f"batch: {item} should be a string")

            env[key.strip()] = item

    working_dir = None
    if "working_dir" in fields:
        if not isinstance(fields["working_dir"], str):
            raise ConfigError(f"batch: The working_dir should be a string")

        if len(fields["working_dir"].strip()) < 1:
            raise ConfigError(f"batch: Please provide a string or remove this field")

        working_dir = fields["working_dir"].strip()

    require_env = []
    seen = set()
    if "require_env" in fields:
        if not isinstance(fields["require_env"], list):
            raise ConfigError(f"batch: require_env should be a list.")

        for item in fields["require_env"]:
            if not isinstance(item, str):
                raise ConfigError(f"batch: {item} should be a string in require_env")

            name = item.strip()

            if len(name) < 1:
                raise ConfigError(f"batch: A required variable name is empty")

            if name in seen:
                continue

            require_env.append(name)
            seen.add(name)

    progress_interval = 0.1
    if "progress_interval" in fields:
        value = fields["progress_interval"]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"batch: progress_interval should be a number")

        if value < 0:
            raise ConfigError(f"batch: progress_interval can't be negative")

        progress_interval = float(value)

    return BatchConfig(
        total=total,
        concurrency=concurrency,
        command=command,
        label=label,
        env=env,
        working_dir=working_dir,
        require_env=require_env,
        progress_interval=progress_interval,
    )


def _int_field(fields: Mapping[str, Any], key: str, *, minimum: int) -> int:
    value = fields[key]

    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"batch: {key} should be an integer, got {type(value)}")

    if value < minimum:
        raise ConfigError(f"batch: {key} must be at least {minimum}, got {value}")

    return value
