"""配置器策略参数 - Configurator policy constants and environment overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ROOT = Path(__file__).resolve().parents[2]


class ConfiguratorPolicy(BaseModel):
    """
    策略常量 - Policy constants

    所有阈值都是可调的策略，而不是推导出的不变量。
    Every threshold here is tunable policy, not a derived invariant.
    """

    # 预算 Budget
    min_budget: float = 1000
    unlimited_budget: float = 999_999
    unlimited_threshold: Optional[float] = None
    budget_build_threshold: float = 1500

    # 搜索缓冲 Search buffers
    standard_buffer: float = 1.3
    wide_buffer: float = 1.5
    storage_pool_buffer: float = 2.0
    storage_drive_buffer: float = 1.5
    storage_headroom_fraction: float = 0.5
    combo_pool_limit: int = 40

    # 内存 RAM
    ram_target_gb_multi: int = 32
    ram_target_gb_gaming: int = 16

    # 电源 PSU sizing
    psu_headroom: float = 1.25
    psu_rounding_w: int = 50
    psu_window_low: float = 0.9
    psu_window_high: float = 1.5
    base_system_w: int = 100
    ram_w: int = 10
    storage_drive_w: int = 5
    cooler_w: int = 20
    default_gpu_tdp: int = 250

    # 散热器 Cooler gate
    cooler_utilization_gate: float = 0.85
    cooler_min_remaining: float = 20

    # 降级 Downgrade loop
    max_downgrade_iterations: int = 20
    strict_downgrade_iterations: int = 5
    downgrade_savings_fraction: float = 0.5
    downgrade_min_savings: float = 5

    # 填充 Filler
    utilization_target: float = 0.90
    filler_min_ssd_price: float = 50
    filler_max_units: int = 5

    # 附加 Extras
    gpu_quantity_unlimited: int = 2
    premium_monitor_count: int = 3
    premium_monitor_patterns: List[str] = Field(
        default_factory=lambda: [r"MSI.*QD-OLED.*32", r"4K.*240"]
    )
    os_license_min_remaining: float = 100
    os_license_pattern: str = r"Windows 11"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_policy(env_file: Path | None = None) -> ConfiguratorPolicy:
    """读取 .env 与 RIGWIZARD_* 环境变量覆盖默认策略。"""
    load_dotenv(env_file or ROOT / ".env")
    defaults = ConfiguratorPolicy()
    return defaults.model_copy(
        update={
            "min_budget": _env_float("RIGWIZARD_MIN_BUDGET", defaults.min_budget),
            "unlimited_threshold": _env_float(
                "RIGWIZARD_UNLIMITED_THRESHOLD", defaults.unlimited_threshold
            ),
            "budget_build_threshold": _env_float(
                "RIGWIZARD_BUDGET_BUILD_THRESHOLD", defaults.budget_build_threshold
            ),
            "max_downgrade_iterations": _env_int(
                "RIGWIZARD_MAX_DOWNGRADE_ITERATIONS", defaults.max_downgrade_iterations
            ),
            "utilization_target": _env_float(
                "RIGWIZARD_UTILIZATION_TARGET", defaults.utilization_target
            ),
            "filler_max_units": _env_int("RIGWIZARD_FILLER_MAX_UNITS", defaults.filler_max_units),
        }
    )


def reference_data_path() -> Optional[Path]:
    raw = os.getenv("RIGWIZARD_REFERENCE_DATA", "").strip()
    return Path(raw) if raw else None
