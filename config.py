"""
Configuration for the shift conflict detection and balancing engine.

Every threshold the engine uses lives here with its default value.
Selected values can be overridden through SHIFT_ENGINE_* environment
variables; malformed values are logged and ignored.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

T = TypeVar("T")


# =============================================================================
# ENVIRONMENT HELPERS
# =============================================================================

def _env_value(name: str, parse: Callable[[str], T], default: T) -> T:
    """
    Read and parse an environment variable.

    Args:
        name: Variable name
        parse: Converter applied to the raw string
        default: Value used when the variable is unset or malformed

    Returns:
        Parsed value or the default
    """
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse(raw.strip())
    except ValueError:
        logging.warning(
            f"⚠️  Ignoring malformed {name}={raw!r}, using default {default!r}"
        )
        return default


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(raw)


def _parse_positive_int(raw: str) -> int:
    value = int(raw)
    if value <= 0:
        raise ValueError(raw)
    return value


def _parse_positive_float(raw: str) -> float:
    value = float(raw)
    if value <= 0:
        raise ValueError(raw)
    return value


# =============================================================================
# CONFLICT DETECTION
# =============================================================================

@dataclass
class DetectionConfig:
    """Thresholds for the conflict detector."""

    # Rest between shifts (hours)
    min_rest_hours: float = 12.0
    critical_rest_hours: float = 8.0

    # Overtime as a ratio of contract hours
    overtime_ratio: float = 1.25
    critical_overtime_ratio: float = 1.5
    default_contract_hours: float = 40.0

    # Staffing
    min_staff_per_day: int = 2
    understaffing_horizon_days: int = 7
    add_staff_cost: float = 100.0


# =============================================================================
# WORKLOAD BALANCING
# =============================================================================

@dataclass
class BalancingConfig:
    """Thresholds for workload metrics and suggestion generation."""

    target_hours_per_week: float = 32.0
    potential_equity_uplift: float = 15.0

    # Redistribution
    redistribute_threshold_percent: float = 20.0
    redistribute_high_priority_percent: float = 50.0
    max_redistribute_hours: float = 8.0
    min_redistribute_hours: float = 1.0
    auto_apply_window: tuple = (4.0, 10.0)

    # Swaps
    swap_threshold_percent: float = 15.0
    swap_high_priority_percent: float = 30.0
    swap_max_hour_difference: float = 2.0

    # Intra-store variance
    intra_store_variance: float = 15.0
    intra_store_high_variance: float = 25.0

    # Adjust hours window (exclusive) and auto threshold
    adjust_window: tuple = (2.0, 6.0)
    adjust_auto_below: float = 4.0

    # Store level
    store_deviation_ratio: float = 0.25
    store_shift_deviation_hours: float = 8.0


# =============================================================================
# PRE-APPLY VALIDATION
# =============================================================================

@dataclass
class ValidationConfig:
    """Thresholds for the pre-apply validator."""

    min_rest_hours: float = 12.0
    max_consecutive_days: int = 6
    contract_error_ratio: float = 1.25
    contract_warning_ratio: float = 1.10
    floor_warning_ratio: float = 0.5
    default_contract_hours: float = 32.0
    junior_max_shift_hours: float = 6.0
    evening_start_hour: int = 18
    long_shift_hours: float = 10.0
    cache_size: int = 50


# =============================================================================
# EXECUTION AND SNAPSHOTS
# =============================================================================

@dataclass
class ExecutionConfig:
    """Defaults for shifts created or resized by the executor."""

    redistribute_tolerance_hours: float = 1.0
    default_shift_start: str = "09:00"
    default_shift_end: str = "17:00"
    default_break_minutes: int = 60
    min_shift_hours: float = 4.0
    max_shift_hours: float = 12.0
    min_adjustment_hours: float = 0.5


@dataclass
class SnapshotConfig:
    max_snapshots: int = 10


# =============================================================================
# MAIN APPLICATION CONFIGURATION
# =============================================================================

@dataclass
class AppConfig:
    """Main application configuration."""

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    balancing: BalancingConfig = field(default_factory=BalancingConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    snapshots: SnapshotConfig = field(default_factory=SnapshotConfig)

    # Output settings
    verbose: bool = False
    log_dir: Optional[str] = None

    @classmethod
    def load(cls) -> "AppConfig":
        """Load configuration from environment and defaults."""
        cfg = cls()
        cfg.verbose = _env_value("SHIFT_ENGINE_VERBOSE", _parse_bool, cfg.verbose)
        cfg.log_dir = os.environ.get("SHIFT_ENGINE_LOG_DIR") or cfg.log_dir

        min_rest = _env_value(
            "SHIFT_ENGINE_MIN_REST_HOURS", _parse_positive_float,
            cfg.detection.min_rest_hours,
        )
        cfg.detection.min_rest_hours = min_rest
        cfg.validation.min_rest_hours = min_rest

        cfg.snapshots.max_snapshots = _env_value(
            "SHIFT_ENGINE_MAX_SNAPSHOTS", _parse_positive_int,
            cfg.snapshots.max_snapshots,
        )
        cfg.validation.cache_size = _env_value(
            "SHIFT_ENGINE_CACHE_SIZE", _parse_positive_int,
            cfg.validation.cache_size,
        )
        target = _env_value(
            "SHIFT_ENGINE_TARGET_HOURS", _parse_positive_float,
            cfg.balancing.target_hours_per_week,
        )
        cfg.balancing.target_hours_per_week = target
        cfg.validation.default_contract_hours = target
        return cfg


# Global configuration instance
config = AppConfig.load()


# =============================================================================
# USAGE
# =============================================================================
#
#    export SHIFT_ENGINE_VERBOSE=1            # colour console output
#    export SHIFT_ENGINE_LOG_DIR=output       # timestamped log file
#    export SHIFT_ENGINE_MIN_REST_HOURS=11
#    export SHIFT_ENGINE_MAX_SNAPSHOTS=20
#    export SHIFT_ENGINE_CACHE_SIZE=100
#    export SHIFT_ENGINE_TARGET_HOURS=35
#
# =============================================================================
