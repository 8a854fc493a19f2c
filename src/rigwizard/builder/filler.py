"""预算利用填充与附加项"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..events import emit
from ..schemas import Build, Component, StorageKind
from .compatibility import psu_fits_system, recommended_wattage
from .context import SelectionContext
from .search import SearchStep, run_step
from .storage import INTERNAL_DRIVE_EXCLUDES

logger = logging.getLogger(__name__)


def _psu_allows_another_drive(ctx: SelectionContext, build: Build, drive: Component) -> bool:
    if build.psu is None:
        return True
    trial = build.model_copy(update={"storage": [*build.storage, drive]})
    needed = recommended_wattage(trial, ctx.reference, ctx.policy)
    return psu_fits_system(build.psu, needed, build.psu_relaxed, ctx.policy)


def fill_budget(ctx: SelectionContext, build: Build) -> List[Component]:
    """
    预算利用填充 - Budget utilization filler

    花费低于预算 90% 时，最多追加 5 块价格 ≥ $50 的最大容量内置 SSD。
    While spend is below 90% of budget, add up to five of the largest internal
    SSDs priced at least $50 that still fit the remaining budget.
    """
    policy = ctx.policy
    budget = ctx.budget
    target = budget * policy.utilization_target
    added: List[Component] = []

    for _ in range(policy.filler_max_units):
        spent = build.total_price()
        if spent >= target:
            break
        remaining = budget - spent
        if remaining < policy.filler_min_ssd_price:
            break
        candidates = run_step(
            ctx.catalog,
            SearchStep(
                "largest SSD within remaining budget",
                ctx.query(
                    "storage",
                    min_price=policy.filler_min_ssd_price,
                    max_price=remaining,
                    storage_kind=StorageKind.SSD,
                    exclude_keywords=INTERNAL_DRIVE_EXCLUDES,
                ),
                accept=lambda d: d.capacity_gb > 0,
                rank=lambda d: (-d.capacity_gb, d.price),
            ),
            ctx.events,
        )
        if not candidates:
            break
        drive = candidates[0]
        if not _psu_allows_another_drive(ctx, build, drive):
            emit(ctx.events, "filler", "stopped: PSU has no headroom for another drive", "storage")
            break
        build.storage = [*build.storage, drive]
        added.append(drive)
        spent = build.total_price()
        emit(ctx.events, "filler", f"added {drive.name}", "storage", sku=drive.sku, price=drive.price, spent=spent)
        if spent >= target or spent + policy.filler_min_ssd_price > budget:
            break

    if added:
        logger.debug("filler added %d SSDs", len(added))
    return added


def add_os_license(ctx: SelectionContext, build: Build) -> Optional[Component]:
    """剩余预算 ≥ $100 时加入最便宜的 Windows 11 授权。"""
    remaining = ctx.budget - build.total_price()
    if remaining < ctx.policy.os_license_min_remaining:
        return None
    candidates = run_step(
        ctx.catalog,
        SearchStep(
            "cheapest OS license within remaining budget",
            ctx.query(
                "software",
                max_price=remaining,
                name_patterns=[ctx.policy.os_license_pattern],
            ),
            rank=lambda s: (s.price,),
        ),
        ctx.events,
    )
    if not candidates:
        emit(ctx.events, "extras", "no OS license within remaining budget", "software")
        return None
    build.software = candidates[0]
    emit(ctx.events, "extras", f"added {build.software.name}", "software", sku=build.software.sku)
    return build.software
