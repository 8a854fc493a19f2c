"""
配件选择模块 - Candidate Selection Module

按依赖顺序为每个类别选择配件，每个类别是一组放宽阶梯。
Select one component per category in dependency order; every category is a
ladder of progressively relaxed searches.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional

from ..events import emit
from ..schemas import Build, Component, MemoryType
from .compatibility import (
    case_fits_board,
    cooler_fits_cpu,
    cpu_fits_board,
    is_ddr5_capable_cpu,
    is_ddr5_only_cpu,
    ram_fits_board,
    recommended_wattage,
    relaxed_wattage_ceiling,
    relaxed_wattage_floor,
)
from .context import SelectionContext
from .search import (
    SearchOutcome,
    SearchStep,
    by_price_asc,
    by_price_desc,
    run_step,
    scored_first,
    search_with_ladder,
)

logger = logging.getLogger(__name__)

_NON_DESKTOP_RAM_RE = re.compile(
    r"laptop|notebook|so-?dimm|\bregistered\b|\brdimm\b|(?<!non-)(?<!non )\becc\b",
    re.IGNORECASE,
)
_MISFILED_PSU_RE = re.compile(r"power supply|\bpsu\b|watt\b", re.IGNORECASE)


def is_desktop_ram(ram: Component) -> bool:
    """排除笔记本 SODIMM 与服务器 ECC/RDIMM 内存。"""
    module = ram.module_type.lower().replace("-", "")
    if "sodimm" in module:
        return False
    return _NON_DESKTOP_RAM_RE.search(ram.name) is None


def looks_like_psu(case: Component) -> bool:
    return case.wattage > 0 or _MISFILED_PSU_RE.search(case.name) is not None


def _report(ctx: SelectionContext, category: str, outcome: SearchOutcome, mandatory: bool = True) -> None:
    if outcome.component is not None:
        emit(
            ctx.events,
            "select",
            f"selected {outcome.component.name}",
            category,
            sku=outcome.component.sku,
            price=outcome.component.price,
            step=outcome.step,
        )
    elif mandatory:
        logger.warning("no %s candidate found on any ladder step", category)
        emit(ctx.events, "select", "no candidate on any step", category, mandatory=True)
    else:
        emit(ctx.events, "select", "optional category skipped: no candidate", category, mandatory=False)


def cpu_allowed(ctx: SelectionContext) -> Callable[[Component], bool]:
    if ctx.ram_preselected:
        return lambda c: not is_ddr5_only_cpu(c)
    return lambda c: True


def cpu_candidates(ctx: SelectionContext, max_price: Optional[float]) -> List[Component]:
    """按画像指标排序的可用 CPU（遵守 DDR4 锁定）。"""
    step = SearchStep(
        "cpu candidates",
        ctx.query("cpu", max_price=max_price),
        accept=cpu_allowed(ctx),
        rank=scored_first(ctx.cpu_metric),
    )
    return run_step(ctx.catalog, step, ctx.events)


def preselect_ram(ctx: SelectionContext, build: Build) -> Optional[Component]:
    """
    低预算内存预选 - RAM-first preselection for budget builds

    预算低于阈值时先选 DDR4 内存并锁定内存类型，随后排除只支持 DDR5 的 CPU。
    Below the budget-build threshold, DDR4 RAM is chosen first and the memory
    type is locked; DDR5-only CPUs are then excluded.
    """
    if ctx.unlimited or ctx.budget >= ctx.policy.budget_build_threshold:
        return None
    target = ctx.ram_target_gb
    steps = [
        SearchStep(
            f"DDR4 within 1.3x budget, closest to {target}GB",
            ctx.query(
                "ram",
                max_price=ctx.cap("ram", ctx.policy.standard_buffer),
                memory_type=MemoryType.DDR4,
            ),
            accept=is_desktop_ram,
            rank=lambda r: (abs(r.capacity_gb - target), r.price),
        ),
        SearchStep(
            "DDR4 at any price",
            ctx.query("ram", memory_type=MemoryType.DDR4),
            accept=is_desktop_ram,
            rank=by_price_asc,
        ),
    ]
    outcome = search_with_ladder(ctx.catalog, steps, ctx.events)
    _report(ctx, "ram", outcome)
    if outcome.component is not None:
        build.ram = outcome.component
        ctx.ram_preselected = True
        emit(ctx.events, "select", "memory type locked to DDR4", "ram", memory_type="DDR4")
    return outcome.component


def select_gpu(ctx: SelectionContext, build: Build) -> Optional[Component]:
    steps = [
        SearchStep(
            "best benchmark within 1.3x budget",
            ctx.query("gpu", max_price=ctx.cap("gpu", ctx.policy.standard_buffer)),
            rank=scored_first(ctx.gpu_score),
        ),
        SearchStep("cheapest at any price", ctx.query("gpu"), rank=by_price_asc),
    ]
    outcome = search_with_ladder(ctx.catalog, steps, ctx.events)
    _report(ctx, "gpu", outcome)
    if outcome.component is not None:
        build.gpu = outcome.component
        build.gpu_quantity = ctx.policy.gpu_quantity_unlimited if ctx.unlimited else 1
    return outcome.component


def select_cpu(ctx: SelectionContext, build: Build) -> Optional[Component]:
    allowed = cpu_allowed(ctx)
    metric = scored_first(ctx.cpu_metric)
    if ctx.unlimited:
        steps = [
            SearchStep(
                "DDR5-capable, no price cap",
                ctx.query("cpu"),
                accept=lambda c: allowed(c) and is_ddr5_capable_cpu(c),
                rank=metric,
            ),
            SearchStep("any CPU, no price cap", ctx.query("cpu"), accept=allowed, rank=metric),
        ]
    else:
        steps = [
            SearchStep(
                "best profile metric within 1.3x budget",
                ctx.query("cpu", max_price=ctx.cap("cpu", ctx.policy.standard_buffer)),
                accept=allowed,
                rank=metric,
            ),
            SearchStep("cheapest at any price", ctx.query("cpu"), accept=allowed, rank=by_price_asc),
        ]
    outcome = search_with_ladder(ctx.catalog, steps, ctx.events)
    _report(ctx, "cpu", outcome)
    if outcome.component is not None:
        build.cpu = outcome.component
    return outcome.component


def _ram_steps(
    ctx: SelectionContext,
    accept: Callable[[Component], bool],
) -> List[SearchStep]:
    target = ctx.ram_target_gb
    cap = ctx.cap("ram", ctx.policy.standard_buffer)
    steps: List[SearchStep] = []
    if ctx.unlimited:
        steps += [
            SearchStep(
                f"DDR5 >= {target}GB",
                ctx.query("ram", memory_type=MemoryType.DDR5, min_capacity_gb=target),
                accept=accept,
                rank=by_price_desc,
            ),
            SearchStep(
                "DDR5 any capacity",
                ctx.query("ram", memory_type=MemoryType.DDR5),
                accept=accept,
                rank=by_price_desc,
            ),
        ]
    steps += [
        SearchStep(
            f">= {target}GB within 1.3x budget",
            ctx.query("ram", max_price=cap, min_capacity_gb=target),
            accept=accept,
            rank=by_price_desc,
        ),
        SearchStep(
            "any capacity within 1.3x budget",
            ctx.query("ram", max_price=cap),
            accept=accept,
            rank=by_price_desc,
        ),
        SearchStep("cheapest at any price", ctx.query("ram"), accept=accept, rank=by_price_asc),
    ]
    return steps


def select_ram(ctx: SelectionContext, build: Build) -> Optional[Component]:
    if build.ram is not None:
        return build.ram
    outcome = search_with_ladder(ctx.catalog, _ram_steps(ctx, is_desktop_ram), ctx.events)
    _report(ctx, "ram", outcome)
    if outcome.component is not None:
        build.ram = outcome.component
    return outcome.component


def _repair_cpu(
    ctx: SelectionContext,
    build: Build,
    board_cap: Optional[float],
    cpu_cap: Optional[float],
    label: str,
) -> Optional[Component]:
    """
    CPU 重新配对 - Re-pair the CPU with a board

    按价格从低到高遍历与内存兼容的主板，为每块主板找排名最高的兼容 CPU，找到即替换 CPU。
    Walk RAM-compatible boards cheapest first and take the best-ranked CPU
    compatible with the board, swapping the CPU.
    """
    ram = build.ram
    boards = run_step(
        ctx.catalog,
        SearchStep(
            label,
            ctx.query("motherboard", max_price=board_cap),
            accept=lambda b: ram_fits_board(ram, b),
            rank=by_price_asc,
        ),
        ctx.events,
    )
    if not boards:
        return None
    cpus = cpu_candidates(ctx, cpu_cap)
    for board in boards:
        for cpu in cpus:
            if cpu_fits_board(cpu, board):
                old = build.cpu
                build.cpu = cpu
                build.motherboard = board
                emit(
                    ctx.events,
                    "repair",
                    f"CPU re-paired with {board.name}",
                    "motherboard",
                    step=label,
                    old_cpu=old.sku if old else None,
                    new_cpu=cpu.sku,
                    board=board.sku,
                )
                return board
    return None


def select_motherboard(ctx: SelectionContext, build: Build) -> Optional[Component]:
    """
    主板选择 - Motherboard selection

    选择策略 Selection Strategy:
    1. 与 CPU 和内存都兼容、价格 ≤ 1.5 × 子预算的最便宜主板（无限预算优先 DDR5 多 PCIe ×16）
    2. 在预算内重新配对 CPU
    3. 与当前 CPU 兼容的任意价格主板
    4. 任意价格重新配对 CPU
    5. 与当前 CPU 兼容的主板并重新选择匹配的内存（内存未锁定时）
    不兼容的主板永远不会被选中。
    """
    cpu, ram = build.cpu, build.ram
    if cpu is None or ram is None:
        emit(ctx.events, "select", "skipped: CPU or RAM missing", "motherboard")
        return None

    def pair_ok(board: Component) -> bool:
        return cpu_fits_board(cpu, board) and ram_fits_board(ram, board)

    cap = ctx.cap("motherboard", ctx.policy.wide_buffer)
    steps: List[SearchStep] = []
    if ctx.unlimited:
        steps.append(
            SearchStep(
                "DDR5 board with multiple PCIe x16 slots",
                ctx.query("motherboard", memory_type=MemoryType.DDR5),
                accept=lambda b: pair_ok(b) and b.pcie_x16_slots >= 2,
                rank=lambda b: (-b.pcie_x16_slots, -b.price),
            )
        )
    steps.append(
        SearchStep(
            "compatible with CPU and RAM within 1.5x budget",
            ctx.query("motherboard", max_price=cap),
            accept=pair_ok,
            rank=by_price_asc,
        )
    )
    outcome = search_with_ladder(ctx.catalog, steps, ctx.events)
    if outcome.component is not None:
        build.motherboard = outcome.component
        _report(ctx, "motherboard", outcome)
        return outcome.component

    board = _repair_cpu(
        ctx, build, cap, ctx.cap("cpu", ctx.policy.standard_buffer), "re-pair CPU within budget"
    )
    if board is not None:
        return board

    outcome = search_with_ladder(
        ctx.catalog,
        [
            SearchStep(
                "compatible with current CPU at any price",
                ctx.query("motherboard"),
                accept=pair_ok,
                rank=by_price_asc,
            )
        ],
        ctx.events,
    )
    if outcome.component is not None:
        build.motherboard = outcome.component
        _report(ctx, "motherboard", outcome)
        return outcome.component

    board = _repair_cpu(ctx, build, None, None, "re-pair CPU at any price")
    if board is not None:
        return board

    if not ctx.ram_preselected:
        return _repair_ram(ctx, build)

    _report(ctx, "motherboard", SearchOutcome())
    return None


def _repair_ram(ctx: SelectionContext, build: Build) -> Optional[Component]:
    cpu = build.cpu
    boards = run_step(
        ctx.catalog,
        SearchStep(
            "compatible with current CPU, any memory type",
            ctx.query("motherboard"),
            accept=lambda b: cpu_fits_board(cpu, b),
            rank=by_price_asc,
        ),
        ctx.events,
    )
    for board in boards:
        ram = search_with_ladder(
            ctx.catalog,
            _ram_steps(ctx, lambda r, b=board: is_desktop_ram(r) and ram_fits_board(r, b)),
            ctx.events,
        ).component
        if ram is not None:
            emit(
                ctx.events,
                "repair",
                f"RAM re-paired with {board.name}",
                "motherboard",
                old_ram=build.ram.sku if build.ram else None,
                new_ram=ram.sku,
                board=board.sku,
            )
            build.ram = ram
            build.motherboard = board
            return board
    _report(ctx, "motherboard", SearchOutcome())
    return None


def select_psu(ctx: SelectionContext, build: Build) -> Optional[Component]:
    """
    电源选择 - PSU selection

    下限为推荐功率；都找不到时放宽到 [0.9×, 1.5×] 窗口，按功率接近程度再按价格，并标记 psu_relaxed。
    """
    needed = recommended_wattage(build, ctx.reference, ctx.policy)
    steps = [
        SearchStep(
            f">= {needed}W within 1.5x budget",
            ctx.query("psu", max_price=ctx.cap("psu", ctx.policy.wide_buffer), min_wattage=needed),
            rank=by_price_asc,
        ),
        SearchStep(f">= {needed}W at any price", ctx.query("psu", min_wattage=needed), rank=by_price_asc),
    ]
    outcome = search_with_ladder(ctx.catalog, steps, ctx.events)
    build.psu_relaxed = False
    if outcome.component is None:
        low = relaxed_wattage_floor(needed, ctx.policy)
        high = relaxed_wattage_ceiling(needed, ctx.policy)
        outcome = search_with_ladder(
            ctx.catalog,
            [
                SearchStep(
                    f"relaxed window {low}W-{high}W",
                    ctx.query("psu", min_wattage=low, max_wattage=high),
                    rank=lambda p: (abs(p.wattage - needed), p.price),
                )
            ],
            ctx.events,
        )
        if outcome.component is not None:
            build.psu_relaxed = True
            emit(ctx.events, "select", "PSU wattage relaxed", "psu", recommended=needed, low=low, high=high)
    _report(ctx, "psu", outcome)
    if outcome.component is not None:
        build.psu = outcome.component
    return outcome.component


def select_case(ctx: SelectionContext, build: Build) -> Optional[Component]:
    board = build.motherboard

    def accept(case: Component) -> bool:
        if looks_like_psu(case):
            return False
        return board is None or case_fits_board(case, board)

    steps = [
        SearchStep(
            "best fitting case within 1.5x budget",
            ctx.query("case", max_price=ctx.cap("case", ctx.policy.wide_buffer)),
            accept=accept,
            rank=by_price_desc,
        ),
        SearchStep("cheapest fitting case at any price", ctx.query("case"), accept=accept, rank=by_price_asc),
    ]
    outcome = search_with_ladder(ctx.catalog, steps, ctx.events)
    _report(ctx, "case", outcome)
    if outcome.component is not None:
        build.case = outcome.component
    return outcome.component


def select_cooler(ctx: SelectionContext, build: Build) -> Optional[Component]:
    """
    散热器选择 - Cooler selection

    CPU 无原装散热器时必选（任意价格最便宜的兼容型号）；否则仅在预算使用率 < 85% 且剩余 > $20 时可选。
    """
    cpu = build.cpu
    if cpu is None:
        return None

    def fits(cooler: Component) -> bool:
        return cooler_fits_cpu(cooler, cpu)

    if build.cooler_required():
        steps = [
            SearchStep("cheapest compatible cooler (mandatory)", ctx.query("cooler"), accept=fits, rank=by_price_asc)
        ]
        mandatory = True
    else:
        spent = build.total_price()
        remaining = ctx.budget - spent
        if spent / ctx.budget >= ctx.policy.cooler_utilization_gate or remaining <= ctx.policy.cooler_min_remaining:
            emit(ctx.events, "select", "optional cooler skipped: budget gate", "cooler", spent=spent, remaining=remaining)
            return None
        steps = [
            SearchStep(
                "best compatible cooler within 1.5x budget",
                ctx.query("cooler", max_price=ctx.cap("cooler", ctx.policy.wide_buffer)),
                accept=fits,
                rank=by_price_desc,
            )
        ]
        mandatory = False
    outcome = search_with_ladder(ctx.catalog, steps, ctx.events)
    _report(ctx, "cooler", outcome, mandatory=mandatory)
    if outcome.component is not None:
        build.cooler = outcome.component
    return outcome.component


def select_monitor(ctx: SelectionContext, build: Build) -> List[Component]:
    """
    显示器（可选）- Monitor (optional)

    无限预算：指定高端型号 × 3，找不到时退回剩余预算内最便宜的一台；有限预算：剩余预算内最便宜的一台。
    """
    if not ctx.request.include_monitor:
        return []
    if ctx.unlimited:
        premium = search_with_ladder(
            ctx.catalog,
            [
                SearchStep(
                    "premium model",
                    ctx.query("monitor", name_patterns=ctx.policy.premium_monitor_patterns),
                    rank=by_price_desc,
                )
            ],
            ctx.events,
        )
        if premium.component is not None:
            build.monitors = [premium.component] * ctx.policy.premium_monitor_count
            _report(ctx, "monitor", premium, mandatory=False)
            return build.monitors
    remaining = max(0.0, ctx.budget - build.total_price())
    outcome = search_with_ladder(
        ctx.catalog,
        [
            SearchStep(
                "cheapest within remaining budget",
                ctx.query("monitor", max_price=remaining),
                rank=by_price_asc,
            )
        ],
        ctx.events,
    )
    _report(ctx, "monitor", outcome, mandatory=False)
    if outcome.component is not None:
        build.monitors = [outcome.component]
    return build.monitors
