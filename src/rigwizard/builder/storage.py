"""
存储选择模块 - Storage Selection Module

三种方案独立评估后比较：单块 SSD、SSD 启动盘 + HDD、2~3 块 SSD 组合。
Three strategies are evaluated independently and compared: a single SSD, an
SSD boot drive plus an HDD, and a combination of two or three SSDs.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional, Sequence

from ..events import emit
from ..schemas import Build, Component, StorageKind
from .context import SelectionContext
from .search import SearchStep, by_price_asc, run_step, search_with_ladder

INTERNAL_DRIVE_EXCLUDES = ["external", "portable", "usb", "backup drive", "desktop drive"]

BOOT_SSD_MIN_GB = 250
BOOT_SSD_MAX_GB = 1000
BOOT_SSD_TARGET_GB = 500


@dataclass
class StorageOption:
    label: str
    drives: List[Component]

    @property
    def total_cost(self) -> float:
        return sum(d.price for d in self.drives)

    @property
    def total_capacity(self) -> float:
        return sum(d.capacity_gb for d in self.drives)

    @property
    def all_ssd(self) -> bool:
        return all(d.storage_kind == StorageKind.SSD for d in self.drives)


def _single_ssd(ssds: Sequence[Component], floor: float) -> Optional[StorageOption]:
    fits = [s for s in ssds if s.capacity_gb >= floor]
    if not fits:
        return None
    best = min(fits, key=lambda s: (s.price, s.sku))
    return StorageOption("single SSD", [best])


def _boot_ssd_plus_hdd(
    ssds: Sequence[Component],
    hdds: Sequence[Component],
    floor: float,
    sub_budget: float,
    ctx: SelectionContext,
) -> Optional[StorageOption]:
    boots = [
        s
        for s in ssds
        if BOOT_SSD_MIN_GB <= s.capacity_gb <= BOOT_SSD_MAX_GB
        and s.price <= sub_budget * ctx.policy.storage_drive_buffer
    ]
    if not boots:
        return None
    boot = min(boots, key=lambda s: (abs(s.capacity_gb - BOOT_SSD_TARGET_GB), s.price, s.sku))
    missing = max(0.0, floor - boot.capacity_gb)
    if missing <= 0:
        return StorageOption("boot SSD", [boot])
    money_left = sub_budget * ctx.policy.storage_pool_buffer - boot.price
    fits = [h for h in hdds if h.capacity_gb >= missing and h.price <= money_left]
    if not fits:
        return None
    hdd = min(fits, key=lambda h: (h.price, h.sku))
    return StorageOption("boot SSD + HDD", [boot, hdd])


def _ssd_combination(
    ssds: Sequence[Component],
    floor: float,
    sub_budget: float,
    ctx: SelectionContext,
) -> Optional[StorageOption]:
    """最便宜的两块组合，没有时再找最便宜的三块组合。"""
    affordable = sorted(
        (s for s in ssds if s.price <= sub_budget * ctx.policy.storage_drive_buffer),
        key=lambda s: (s.price, s.sku),
    )[: ctx.policy.combo_pool_limit]
    ceiling = sub_budget * ctx.policy.storage_pool_buffer
    for size in (2, 3):
        valid = [
            combo
            for combo in combinations(affordable, size)
            if sum(d.capacity_gb for d in combo) >= floor and sum(d.price for d in combo) <= ceiling
        ]
        if valid:
            best = min(valid, key=lambda combo: (sum(d.price for d in combo), [d.sku for d in combo]))
            return StorageOption(f"{size} SSDs", list(best))
    return None


def storage_options(ctx: SelectionContext, pool: Sequence[Component]) -> List[StorageOption]:
    floor = float(ctx.request.min_storage_gb)
    sub_budget = ctx.allocation.for_category("storage")
    ssds = [d for d in pool if d.storage_kind == StorageKind.SSD]
    hdds = [d for d in pool if d.storage_kind == StorageKind.HDD]
    candidates = [
        _single_ssd(ssds, floor),
        _boot_ssd_plus_hdd(ssds, hdds, floor, sub_budget, ctx),
        _ssd_combination(ssds, floor, sub_budget, ctx),
    ]
    return [o for o in candidates if o is not None and o.total_capacity >= floor]


def choose_storage_option(
    options: Sequence[StorageOption],
    headroom: float,
    sub_budget: float,
    headroom_fraction: float,
) -> Optional[StorageOption]:
    """
    方案比较 - Compare options

    剩余预算 > 子预算 × 50% 时全 SSD 方案优先，否则全局最便宜的方案胜出。
    """
    if not options:
        return None
    pool = list(options)
    if headroom > sub_budget * headroom_fraction:
        ssd_only = [o for o in pool if o.all_ssd]
        if ssd_only:
            pool = ssd_only
    return min(pool, key=lambda o: o.total_cost)


def select_storage(ctx: SelectionContext, build: Build) -> List[Component]:
    floor = float(ctx.request.min_storage_gb)
    sub_budget = ctx.allocation.for_category("storage")
    pool = [
        d
        for d in run_step(
            ctx.catalog,
            SearchStep(
                "internal drives within 2x budget",
                ctx.query(
                    "storage",
                    max_price=sub_budget * ctx.policy.storage_pool_buffer,
                    exclude_keywords=INTERNAL_DRIVE_EXCLUDES,
                ),
                rank=by_price_asc,
            ),
            ctx.events,
        )
        if d.capacity_gb > 0
    ]

    headroom = ctx.budget - build.total_price()
    option = choose_storage_option(
        storage_options(ctx, pool), headroom, sub_budget, ctx.policy.storage_headroom_fraction
    )
    if option is None:
        ssds = [d for d in pool if d.storage_kind == StorageKind.SSD]
        if ssds:
            largest = min(ssds, key=lambda s: (-s.capacity_gb, s.price, s.sku))
            option = StorageOption("largest affordable SSD", [largest])

    if option is None:
        outcome = search_with_ladder(
            ctx.catalog,
            [
                SearchStep(
                    f"cheapest drive >= {floor:g}GB at any price",
                    ctx.query("storage", min_capacity_gb=floor, exclude_keywords=INTERNAL_DRIVE_EXCLUDES),
                    accept=lambda d: d.capacity_gb > 0,
                    rank=by_price_asc,
                )
            ],
            ctx.events,
        )
        if outcome.component is not None:
            option = StorageOption(outcome.step or "any price", [outcome.component])

    if option is None:
        emit(ctx.events, "select", "no candidate on any step", "storage", mandatory=True)
        return []

    build.storage = list(option.drives)
    emit(
        ctx.events,
        "select",
        f"selected {option.label}",
        "storage",
        skus=[d.sku for d in option.drives],
        total_cost=round(option.total_cost, 2),
        total_capacity=option.total_capacity,
    )
    return build.storage
