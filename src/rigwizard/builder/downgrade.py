"""
降级循环 - Downgrade Loop

总价超出预算时，按画像的优先级依次把配件换成更便宜的兼容型号。
When the total exceeds the budget, swap components for cheaper compatible
alternatives following the profile's priority order.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..events import emit
from ..schemas import Build, BudgetExceededWarning, Component, DowngradeAttempt
from .compatibility import (
    case_fits_board,
    cooler_fits_cpu,
    cpu_fits_board,
    psu_fits_system,
    ram_fits_board,
    recommended_wattage,
)
from .context import SelectionContext
from .search import RankKey, SearchStep, by_price_desc, run_step, scored_first
from .selectors import cpu_allowed, is_desktop_ram, looks_like_psu
from .storage import INTERNAL_DRIVE_EXCLUDES

logger = logging.getLogger(__name__)

DOWNGRADE_PRIORITY: Dict[str, List[str]] = {
    "multiThreaded": ["cooler", "storage", "ram", "gpu", "psu", "case", "cpu"],
    "singleThreadedGaming": ["cooler", "storage", "ram", "cpu", "psu", "case", "gpu"],
}


def savings_threshold(iteration: int, overage: float, ctx: SelectionContext) -> float:
    """前 5 轮要求节省 max(超支 × 50%, $5)，之后任何正节省都接受（返回 0）。"""
    policy = ctx.policy
    if iteration <= policy.strict_downgrade_iterations:
        return max(overage * policy.downgrade_savings_fraction, policy.downgrade_min_savings)
    return 0.0


def _cheaper(
    ctx: SelectionContext,
    current: Component,
    threshold: float,
    accept: Callable[[Component], bool],
    rank: RankKey = by_price_desc,
    quantity: int = 1,
    exclude_keywords: Optional[List[str]] = None,
) -> Optional[Component]:
    def ok(c: Component) -> bool:
        if c.sku == current.sku or c.price >= current.price:
            return False
        if (current.price - c.price) * quantity < threshold:
            return False
        return accept(c)

    step = SearchStep(
        f"cheaper than {current.sku}",
        ctx.query(
            current.category,
            max_price=current.price,
            exclude_keywords=exclude_keywords or [],
        ),
        accept=ok,
        rank=rank,
    )
    candidates = run_step(ctx.catalog, step, ctx.events)
    return candidates[0] if candidates else None


def _swap_attempt(
    iteration: int,
    overage: float,
    category: str,
    old: Component,
    new: Component,
    quantity: int = 1,
) -> DowngradeAttempt:
    return DowngradeAttempt(
        iteration=iteration,
        overage=round(overage, 2),
        action="downgrade",
        category=category,
        old_sku=old.sku,
        new_sku=new.sku,
        old_price=old.price,
        new_price=new.price,
        saved=round((old.price - new.price) * quantity, 2),
    )


def _wattage_ok(ctx: SelectionContext, build: Build, **changes) -> bool:
    if build.psu is None:
        return True
    trial = build.model_copy(update=changes)
    needed = recommended_wattage(trial, ctx.reference, ctx.policy)
    return psu_fits_system(build.psu, needed, build.psu_relaxed, ctx.policy)


def _downgrade_cooler(ctx, build, threshold, iteration, overage) -> Optional[DowngradeAttempt]:
    cooler, cpu = build.cooler, build.cpu
    if cooler is None or cpu is None:
        return None
    new = _cheaper(ctx, cooler, threshold, lambda c: cooler_fits_cpu(c, cpu))
    if new is not None:
        build.cooler = new
        return _swap_attempt(iteration, overage, "cooler", cooler, new)
    if cpu.bundled_cooler:
        build.cooler = None
        return DowngradeAttempt(
            iteration=iteration,
            overage=round(overage, 2),
            action="remove",
            category="cooler",
            old_sku=cooler.sku,
            old_price=cooler.price,
            saved=cooler.price,
        )
    return None


def _downgrade_storage(ctx, build, threshold, iteration, overage) -> Optional[DowngradeAttempt]:
    floor = float(ctx.request.min_storage_gb)
    capacity = sum(d.capacity_gb for d in build.storage)
    order = sorted(range(len(build.storage)), key=lambda i: (-build.storage[i].price, build.storage[i].sku))
    for index in order:
        drive = build.storage[index]
        others = capacity - drive.capacity_gb

        def keeps_floor(c: Component, others: float = others) -> bool:
            return c.capacity_gb > 0 and others + c.capacity_gb >= floor

        new = _cheaper(ctx, drive, threshold, keeps_floor, exclude_keywords=INTERNAL_DRIVE_EXCLUDES)
        if new is not None:
            drives = list(build.storage)
            drives[index] = new
            build.storage = drives
            return _swap_attempt(iteration, overage, "storage", drive, new)
    return None


def _downgrade_ram(ctx, build, threshold, iteration, overage) -> Optional[DowngradeAttempt]:
    ram, board = build.ram, build.motherboard
    if ram is None or board is None:
        return None
    new = _cheaper(ctx, ram, threshold, lambda r: is_desktop_ram(r) and ram_fits_board(r, board))
    if new is None:
        return None
    build.ram = new
    return _swap_attempt(iteration, overage, "ram", ram, new)


def _downgrade_gpu(ctx, build, threshold, iteration, overage) -> Optional[DowngradeAttempt]:
    gpu = build.gpu
    if gpu is None:
        return None
    quantity = build.gpu_quantity
    new = _cheaper(
        ctx, gpu, threshold, lambda g: _wattage_ok(ctx, build, gpu=g), quantity=quantity
    )
    if new is None:
        return None
    build.gpu = new
    return _swap_attempt(iteration, overage, "gpu", gpu, new, quantity)


def _downgrade_psu(ctx, build, threshold, iteration, overage) -> Optional[DowngradeAttempt]:
    psu = build.psu
    if psu is None:
        return None
    needed = recommended_wattage(build, ctx.reference, ctx.policy)
    new = _cheaper(
        ctx, psu, threshold, lambda p: psu_fits_system(p, needed, build.psu_relaxed, ctx.policy)
    )
    if new is None:
        return None
    build.psu = new
    return _swap_attempt(iteration, overage, "psu", psu, new)


def _downgrade_case(ctx, build, threshold, iteration, overage) -> Optional[DowngradeAttempt]:
    case, board = build.case, build.motherboard
    if case is None or board is None:
        return None
    new = _cheaper(ctx, case, threshold, lambda c: not looks_like_psu(c) and case_fits_board(c, board))
    if new is None:
        return None
    build.case = new
    return _swap_attempt(iteration, overage, "case", case, new)


def _downgrade_cpu(ctx, build, threshold, iteration, overage) -> Optional[DowngradeAttempt]:
    cpu, board = build.cpu, build.motherboard
    if cpu is None or board is None:
        return None
    allowed = cpu_allowed(ctx)
    cooler = build.cooler

    def accept(c: Component) -> bool:
        if not allowed(c) or not cpu_fits_board(c, board):
            return False
        if cooler is not None and not cooler_fits_cpu(cooler, c):
            return False
        if cooler is None and not c.bundled_cooler:
            return False
        return _wattage_ok(ctx, build, cpu=c)

    new = _cheaper(ctx, cpu, threshold, accept, rank=scored_first(ctx.cpu_metric))
    if new is None:
        return None
    build.cpu = new
    return _swap_attempt(iteration, overage, "cpu", cpu, new)


_DOWNGRADERS = {
    "cooler": _downgrade_cooler,
    "storage": _downgrade_storage,
    "ram": _downgrade_ram,
    "gpu": _downgrade_gpu,
    "psu": _downgrade_psu,
    "case": _downgrade_case,
    "cpu": _downgrade_cpu,
}


def run_downgrades(
    ctx: SelectionContext,
    build: Build,
) -> Tuple[List[DowngradeAttempt], Optional[BudgetExceededWarning]]:
    """
    执行降级循环 - Run the downgrade loop

    参数 Parameters:
        ctx: 选择上下文
             Selection context
        build: 待降级的配置（原地修改）
               Build to downgrade, mutated in place

    返回 Returns:
        (降级记录列表, 仍超支时的预算警告)
        (downgrade attempts, budget warning when still over budget)
    """
    attempts: List[DowngradeAttempt] = []
    budget = ctx.budget
    order = DOWNGRADE_PRIORITY[ctx.request.workload_profile]
    iteration = 0
    reason = ""

    while build.total_price() > budget:
        if iteration >= ctx.policy.max_downgrade_iterations:
            reason = f"iteration limit of {ctx.policy.max_downgrade_iterations} reached"
            break
        iteration += 1
        overage = build.total_price() - budget
        threshold = savings_threshold(iteration, overage, ctx)

        attempt: Optional[DowngradeAttempt] = None
        for category in order:
            attempt = _DOWNGRADERS[category](ctx, build, threshold, iteration, overage)
            if attempt is not None:
                break

        if attempt is None:
            attempts.append(
                DowngradeAttempt(iteration=iteration, overage=round(overage, 2), action="failed")
            )
            reason = "no acceptable downgrade in any category"
            emit(ctx.events, "downgrade", reason, overage=round(overage, 2), iteration=iteration)
            break

        attempts.append(attempt)
        emit(
            ctx.events,
            "downgrade",
            f"{attempt.action} {attempt.category}",
            attempt.category,
            **attempt.model_dump(exclude={"category"}),
        )

    if build.total_price() <= budget:
        return attempts, None

    overage = round(build.total_price() - budget, 2)
    logger.info("build remains $%.2f over budget after %d iterations: %s", overage, iteration, reason)
    return attempts, BudgetExceededWarning(overage=overage, iterations=iteration, reason=reason)
