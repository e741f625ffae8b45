from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from teal_dash.core.exceptions import ConfigError, DefinitionError, ValidationError, ValidationIssue
from teal_dash.core.filter_slices import FilterSlices, as_filter_slices
from teal_dash.core.reactive import MISSING

from .model import AppSettings

logger = logging.getLogger(__name__)

GLOBAL_FILE = "global.json"
FILTER_OPTIONS = (
    "module_specific",
    "mapping",
    "allow_add",
    "count_type",
    "include_varnames",
    "exclude_varnames",
)


def _read_json(path: Path) -> Any:
    try:
        with path.open() as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path.name} is not valid JSON: {e}") from e


def load_app_settings(root: Union[Path, str]) -> AppSettings:
    """
    Load global.json from the config directory `root`.

    A missing file or missing keys fall back to defaults.

    Raises:
        ConfigError: if the file is not a JSON object
        ValidationError: listing every invalid setting
    """
    root = Path(root)
    logger.info("Loading app settings", extra={"config_root": str(root)})

    global_path = root / GLOBAL_FILE
    if not global_path.is_file():
        logger.info("No global.json found, using defaults", extra={"config_root": str(root)})
        return AppSettings()

    raw = _read_json(global_path)
    if not isinstance(raw, dict):
        raise ConfigError(f"{GLOBAL_FILE} must contain a JSON object, got {type(raw).__name__}")

    issues: List[ValidationIssue] = []
    defaults = AppSettings()

    ui_title = raw.get("ui_title", defaults.ui_title)
    if not isinstance(ui_title, str) or not ui_title.strip():
        issues.append(ValidationIssue("ui_title", "must be a non-empty string"))

    subtitle = raw.get("subtitle")
    if subtitle is not None and not isinstance(subtitle, str):
        issues.append(ValidationIssue("subtitle", "must be a string"))

    max_sessions = raw.get("max_sessions", defaults.max_sessions)
    if isinstance(max_sessions, bool) or not isinstance(max_sessions, int) or max_sessions < 1:
        issues.append(ValidationIssue("max_sessions", f"must be a positive integer, got {max_sessions!r}"))

    filters_file: Optional[Path] = None
    filters_raw = raw.get("filters_file")
    if filters_raw is not None:
        if not isinstance(filters_raw, str):
            issues.append(ValidationIssue("filters_file", "must be a path string"))
        else:
            filters_file = Path(filters_raw)
            if not filters_file.is_absolute():
                filters_file = (root / filters_file).resolve()

    unknown = sorted(set(raw) - {"ui_title", "subtitle", "max_sessions", "filters_file"})
    if unknown:
        logger.warning("Ignoring unknown keys in global.json", extra={"keys": unknown})

    if issues:
        raise ValidationError(issues)

    return AppSettings(
        ui_title=ui_title,
        subtitle=subtitle,
        max_sessions=max_sessions,
        filters_file=filters_file,
    )


def load_filter_config(path: Union[Path, str]) -> FilterSlices:
    """
    Build FilterSlices from a filters.json file:

        {
          "slices": [{"dataname": "iris", "varname": "Species", "selected": ["setosa"]}],
          "module_specific": false,
          "mapping": {"global_filters": ["iris Species"]},
          "allow_add": true,
          "count_type": "all"
        }

    A missing "mapping" activates every slice globally.

    Raises:
        ConfigError: if the file is missing, malformed, or describes
            invalid filters
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Filter config not found: {path}")

    raw = _read_json(path)
    if not isinstance(raw, dict):
        raise ConfigError(f"{path.name} must contain a JSON object, got {type(raw).__name__}")

    slices = raw.get("slices", [])
    if not isinstance(slices, list):
        raise ConfigError(f"{path.name}: 'slices' must be a list")

    unknown = sorted(set(raw) - {"slices", *FILTER_OPTIONS})
    if unknown:
        raise ConfigError(f"{path.name}: unknown keys {unknown}")

    options: Dict[str, Any] = {k: raw[k] for k in FILTER_OPTIONS if k in raw}
    options.setdefault("mapping", MISSING)

    try:
        spec = as_filter_slices(slices, **options)
    except (DefinitionError, TypeError) as e:
        raise ConfigError(f"{path.name}: {e}") from e

    logger.info(
        "Loaded filter config",
        extra={"path": str(path), "n_filters": len(spec), "module_specific": spec.module_specific},
    )
    return spec
