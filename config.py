# config.py
import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, List, Optional, Tuple

CONFIG_FILENAME = ".flowgraph.json"

DEFAULT_EXCLUDE_DIRS = (".git", ".venv", "venv", "__pycache__", "node_modules", "build", "dist")


@dataclass(frozen=True)
class AnalyzerConfig:
    max_files: int = 200
    extensions: Tuple[str, ...] = (".py", ".json")
    exclude_dirs: Tuple[str, ...] = DEFAULT_EXCLUDE_DIRS
    log_level: str = "WARNING"
    output_format: str = "json"
    extra: dict = field(default_factory=dict, compare=False)


def _as_str_tuple(value: Any) -> Optional[Tuple[str, ...]]:
    if isinstance(value, str) and value.strip():
        return (value.strip(),)
    if isinstance(value, list):
        return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())
    return None


def load_config(path: Optional[Path], warnings: List[str]) -> AnalyzerConfig:
    """Read a JSON config file; bad entries are reported in ``warnings`` and ignored."""
    config = AnalyzerConfig()
    if path is None:
        return config
    if not path.exists():
        # discovered configs always exist, so a missing path was given explicitly
        warnings.append(f"Config file not found: {path}, using defaults")
        return config
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        warnings.append(f"Failed to parse {path}: {exc}")
        return config
    if not isinstance(payload, dict):
        warnings.append(f"Invalid {path}: expected a JSON object")
        return config

    updates = {}
    max_files = payload.get("max_files")
    if max_files is not None:
        if isinstance(max_files, int) and not isinstance(max_files, bool) and max_files > 0:
            updates["max_files"] = max_files
        else:
            warnings.append(f"{path}: max_files must be a positive integer")
    for key in ("extensions", "exclude_dirs"):
        if key in payload:
            value = _as_str_tuple(payload[key])
            if value is None:
                warnings.append(f"{path}: {key} must be a string or a list of strings")
            else:
                updates[key] = value
    level = payload.get("log_level")
    if level is not None:
        if isinstance(level, str) and isinstance(logging.getLevelName(level.upper()), int):
            updates["log_level"] = level.upper()
        else:
            warnings.append(f"{path}: unknown log_level {level!r}")
    fmt = payload.get("output_format")
    if fmt is not None:
        if fmt in ("json", "dot"):
            updates["output_format"] = fmt
        else:
            warnings.append(f"{path}: output_format must be 'json' or 'dot'")

    known = {"max_files", "extensions", "exclude_dirs", "log_level", "output_format"}
    updates["extra"] = {k: v for k, v in payload.items() if k not in known}
    return replace(config, **updates)


def find_config(start: Path) -> Optional[Path]:
    """``.flowgraph.json`` in ``start`` (or its directory when ``start`` is a file)."""
    base = start if start.is_dir() else start.parent
    candidate = base / CONFIG_FILENAME
    return candidate if candidate.exists() else None
