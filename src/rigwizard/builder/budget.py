"""
预算分配模块 - Budget Allocation Module

校验总预算并按工作负载画像把它拆分为各类配件的子预算。
Validate the total budget and split it into per-category sub-budgets according
to the workload profile.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Tuple, Union

from ..config import ConfiguratorPolicy
from ..errors import InputValidationError
from ..schemas import UNLIMITED, WorkloadProfile

ALLOCATED_CATEGORIES = ("cpu", "gpu", "motherboard", "ram", "storage", "psu", "cooler", "case")

# 多线程负载 - Multi-threaded workloads
MULTI_THREADED_WEIGHTS: Dict[str, float] = {
    "cpu": 0.25,
    "gpu": 0.20,
    "motherboard": 0.12,
    "ram": 0.15,
    "storage": 0.10,
    "psu": 0.08,
    "cooler": 0.05,
    "case": 0.05,
}

# 单线程 / 游戏负载 - Single-threaded gaming workloads
GAMING_WEIGHTS: Dict[str, float] = {
    "cpu": 0.18,
    "gpu": 0.38,
    "motherboard": 0.12,
    "ram": 0.10,
    "storage": 0.10,
    "psu": 0.06,
    "cooler": 0.03,
    "case": 0.03,
}

PROFILE_WEIGHTS: Dict[str, Dict[str, float]] = {
    "multiThreaded": MULTI_THREADED_WEIGHTS,
    "singleThreadedGaming": GAMING_WEIGHTS,
}


@dataclass
class BudgetAllocation:
    """
    预算分配结果 - Budget Allocation Result

    字段说明 Field Descriptions:
    - total: 总预算（无限预算时为哨兵值）
    - unlimited: 是否为无限预算
    - profile: 工作负载画像
    - weights: 类别 -> 占比
    - amounts: 类别 -> 子预算金额
    """

    total: float
    unlimited: bool
    profile: WorkloadProfile
    weights: Dict[str, float] = field(default_factory=dict)
    amounts: Dict[str, float] = field(default_factory=dict)

    def for_category(self, category: str) -> float:
        """
        子预算 - Sub-budget for a category

        未分配的类别（显示器、软件）返回 0。
        Categories without an allocation (monitor, software) return 0.
        """
        return self.amounts.get(category, 0.0)

    def to_dict(self) -> Dict[str, float]:
        return dict(self.amounts)


def resolve_budget(
    budget: Union[float, str],
    policy: ConfiguratorPolicy,
) -> Tuple[float, bool]:
    """
    解析预算 - Resolve Budget

    参数 Parameters:
        budget: 数值或 "Unlimited"
                Numeric amount or "Unlimited"
        policy: 策略常量
                Policy constants

    返回 Returns:
        (实际金额, 是否无限)
        (effective amount, unlimited flag)
    """
    if isinstance(budget, str):
        if budget != UNLIMITED:
            raise InputValidationError(
                "Budget must be a number or 'Unlimited'", {"budget": budget}
            )
        return policy.unlimited_budget, True

    amount = float(budget)
    if not math.isfinite(amount):
        raise InputValidationError("Budget must be a finite number", {"budget": str(budget)})
    if policy.unlimited_threshold is not None and amount > policy.unlimited_threshold:
        return policy.unlimited_budget, True
    if amount < policy.min_budget:
        raise InputValidationError(
            f"Budget must be at least ${policy.min_budget:g}",
            {"budget": amount, "minimumBudget": policy.min_budget},
        )
    return amount, False


def allocate_budget(
    budget: Union[float, str],
    profile: WorkloadProfile,
    policy: ConfiguratorPolicy | None = None,
    custom_weights: Dict[str, float] | None = None,
) -> BudgetAllocation:
    """
    分配预算 - Allocate Budget

    分配策略 Allocation Strategy:
    1. 校验预算（低于下限直接拒绝，在任何选择之前）
    2. 按画像选择占比表
    3. 应用自定义权重（如果提供），合计仍须为 1.0
    4. 子预算 = 总预算 × 占比

    参数 Parameters:
        budget: 总预算或 "Unlimited"
                Total budget or "Unlimited"
        profile: 工作负载画像
                 Workload profile
        policy: 策略常量，默认使用内置值
                Policy constants, built-in defaults when omitted
        custom_weights: 自定义权重，覆盖表中条目
                        Custom weights overriding table entries

    返回 Returns:
        预算分配结果对象
        Budget allocation result object
    """
    policy = policy or ConfiguratorPolicy()
    if profile not in PROFILE_WEIGHTS:
        raise InputValidationError(
            f"Unknown workload profile: {profile}",
            {"workloadProfile": profile, "allowed": sorted(PROFILE_WEIGHTS)},
        )
    total, unlimited = resolve_budget(budget, policy)

    weights = dict(PROFILE_WEIGHTS[profile])
    if custom_weights:
        for key, value in custom_weights.items():
            if key not in weights:
                raise InputValidationError(
                    f"Unknown budget category: {key}", {"category": key}
                )
            weights[key] = value
        if not math.isclose(sum(weights.values()), 1.0, abs_tol=1e-6):
            raise InputValidationError(
                "Budget weights must sum to 1.0",
                {"sum": round(sum(weights.values()), 6)},
            )

    return BudgetAllocation(
        total=total,
        unlimited=unlimited,
        profile=profile,
        weights=weights,
        amounts={key: total * weights[key] for key in ALLOCATED_CATEGORIES},
    )
