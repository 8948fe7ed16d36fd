from __future__ import annotations
from typing import Optional
from dataclasses import dataclass
import os
import logging
from dotenv import load_dotenv

from states.optimizationSettings import OptimizationSettings

logger = logging.getLogger("CPO.Config")


# --------------------------------------------------------------------------------------
# Config
# --------------------------------------------------------------------------------------
@dataclass
class EngineConfig:
    max_utilization: float = 100.0
    allow_unit_splitting: bool = True
    date_grouping_days: Optional[int] = None
    low_util_threshold: float = 85.0     # containers below this (%) count as low utilization
    log_level: str = "INFO"

    def default_settings(self) -> OptimizationSettings:
        return OptimizationSettings(
            max_utilization=self.max_utilization,
            allow_unit_splitting=self.allow_unit_splitting,
            shipping_date_grouping_range_days=self.date_grouping_days,
        )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[Config] {name}={raw!r} is not a number, using {default}")
        return default


def _env_int_optional(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(float(raw))
    except ValueError:
        logger.warning(f"[Config] {name}={raw!r} is not a number, ignoring")
        return None


def load_engine_config(dotenv_path: Optional[str] = None) -> EngineConfig:
    """Read CPO_* settings from the environment (and a .env file if present)."""
    load_dotenv(dotenv_path)
    return EngineConfig(
        max_utilization=_env_float("CPO_MAX_UTILIZATION", 100.0),
        allow_unit_splitting=_env_bool("CPO_ALLOW_UNIT_SPLITTING", True),
        date_grouping_days=_env_int_optional("CPO_DATE_GROUPING_DAYS"),
        low_util_threshold=_env_float("CPO_LOW_UTIL_THRESHOLD", 85.0),
        log_level=(os.getenv("CPO_LOG_LEVEL") or "INFO").upper(),
    )
