"""Runtime settings for the extraction service and scan orchestration.

Settings come from an optional TOML file and the environment, environment
winning. Example ``receiptsplit.toml``::

    [extraction]
    gemini_model = "gemini-2.0-flash"
    vision_timeout = 35.0
    max_attempts = 2
    base_delay = 0.8
    image_dir = "receipts"
    currency = "AUD"
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from receiptsplit.runtime.logging import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = "RECEIPTSPLIT_CONFIG"


@dataclass(frozen=True)
class Settings:
    """Extraction service credentials and tunables."""

    gemini_api_key: str = ""
    vision_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    vision_base_url: str = "https://vision.googleapis.com/v1"
    vision_timeout: float = 35.0
    text_timeout: float = 25.0
    download_timeout: float = 15.0
    max_attempts: int = 2
    base_delay: float = 0.8
    image_dir: Path | None = None
    currency: str = "USD"

    @property
    def is_configured(self) -> bool:
        return bool(self.gemini_api_key or self.vision_api_key)


def _load_toml(path: Path) -> dict[str, Any]:
    """Load TOML file and return parsed dict; missing files map to empty dict."""
    if not path.exists():
        logger.debug("Config file not found: %s", path)
        return {}

    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def _coerce_field(name: str, value: Any) -> Any:
    if name == "image_dir":
        return Path(value).expanduser() if value else None
    if name in ("vision_timeout", "text_timeout", "download_timeout", "base_delay"):
        return float(value)
    if name == "max_attempts":
        return max(1, int(value))
    return str(value)


def load_settings(config_path: Path | str | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the TOML ``[extraction]`` table and environment variables."""
    env = os.environ if environ is None else environ

    if config_path is None and env.get(CONFIG_ENV_VAR):
        config_path = env[CONFIG_ENV_VAR]

    values: dict[str, Any] = {}
    if config_path is not None:
        section = _load_toml(Path(config_path)).get("extraction", {})
        known = {f.name for f in fields(Settings)}
        for key, value in section.items():
            if key not in known:
                logger.warning("Ignoring unknown extraction setting: %s", key)
                continue
            values[key] = _coerce_field(key, value)

    vision_key = env.get("VISION_API_KEY", "")
    if vision_key:
        values["vision_api_key"] = vision_key
    # Gemini accepts the Vision key when no dedicated key is set.
    gemini_key = env.get("GEMINI_API_KEY", "") or values.get("gemini_api_key", "") or values.get("vision_api_key", "")
    if gemini_key:
        values["gemini_api_key"] = gemini_key
    if env.get("RECEIPTSPLIT_GEMINI_MODEL"):
        values["gemini_model"] = env["RECEIPTSPLIT_GEMINI_MODEL"]
    if env.get("RECEIPTSPLIT_IMAGE_DIR"):
        values["image_dir"] = _coerce_field("image_dir", env["RECEIPTSPLIT_IMAGE_DIR"])
    if env.get("RECEIPTSPLIT_CURRENCY"):
        values["currency"] = env["RECEIPTSPLIT_CURRENCY"]

    return replace(Settings(), **values)
