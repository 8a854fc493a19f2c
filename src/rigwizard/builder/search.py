"""
约束搜索与放宽阶梯 - Constrained Search with Relaxation Ladder

所有类别共用的一条搜索流程：依次尝试每一级查询，过滤硬性约束，排序后取第一个。
One search routine shared by every category: try each rung's query in order,
filter by hard constraints, rank, and take the first candidate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ..data.repository import Catalog, CatalogQuery
from ..errors import CatalogError
from ..events import EventSink, NullEventSink, emit
from ..schemas import Component

logger = logging.getLogger(__name__)

RankKey = Callable[[Component], Tuple[Any, ...]]


def by_price_asc(c: Component) -> Tuple[float]:
    return (c.price,)


def by_price_desc(c: Component) -> Tuple[float]:
    return (-c.price,)


def scored_first(score: Callable[[Component], Optional[float]]) -> RankKey:
    """有分数的按分数降序、价格降序；无分数的排在后面按价格降序。"""

    def key(c: Component) -> Tuple[int, float, float]:
        value = score(c)
        if value is None:
            return (1, 0.0, -c.price)
        return (0, -value, -c.price)

    return key


@dataclass
class SearchStep:
    """
    阶梯中的一级 - One rung of a relaxation ladder

    字段说明 Field Descriptions:
    - label: 事件与调试中使用的名称
    - query: 目录查询（价格上限、可用性等）
    - accept: 查询之后再应用的硬性约束
    - rank: 排序键，最后总会追加 sku 以保证全序
    """

    label: str
    query: CatalogQuery
    accept: Optional[Callable[[Component], bool]] = None
    rank: Optional[RankKey] = None


@dataclass
class SearchOutcome:
    component: Optional[Component] = None
    step: Optional[str] = None
    step_index: int = -1
    candidates: Optional[List[Component]] = None


def run_step(
    catalog: Catalog,
    step: SearchStep,
    events: EventSink | None = None,
) -> List[Component]:
    """执行一级查询；目录异常视为零候选。"""
    events = events or NullEventSink()
    try:
        results = catalog.query(step.query)
    except CatalogError as exc:
        logger.warning("catalog query failed for %s (%s): %s", step.query.category, step.label, exc)
        emit(events, "search", "catalog query failed", step.query.category, step=step.label, error=str(exc))
        return []
    except Exception as exc:
        # backend failures other than CatalogError count as an empty rung too
        logger.exception("catalog backend error for %s (%s)", step.query.category, step.label)
        emit(events, "search", "catalog query failed", step.query.category, step=step.label, error=repr(exc))
        return []
    if step.accept is not None:
        results = [c for c in results if step.accept(c)]
    if step.rank is not None:
        rank = step.rank
        results = sorted(results, key=lambda c: (*rank(c), c.sku))
    return results


def search_with_ladder(
    catalog: Catalog,
    steps: Sequence[SearchStep],
    events: EventSink | None = None,
) -> SearchOutcome:
    """
    按阶梯搜索 - Search with Ladder

    参数 Parameters:
        catalog: 目录
                 Catalog to query
        steps: 从严格到宽松排列的各级查询
               Rungs ordered from strictest to most relaxed
        events: 事件接收器
                Event sink

    返回 Returns:
        第一个产生候选的阶梯级的结果，全部为空时 component 为 None
        Outcome of the first rung with candidates; component is None when all are empty
    """
    events = events or NullEventSink()
    for index, step in enumerate(steps):
        candidates = run_step(catalog, step, events)
        emit(
            events,
            "search",
            step.label,
            step.query.category,
            step=index + 1,
            candidates=len(candidates),
        )
        if candidates:
            return SearchOutcome(
                component=candidates[0],
                step=step.label,
                step_index=index,
                candidates=candidates,
            )
    return SearchOutcome(candidates=[])
