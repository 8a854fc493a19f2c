from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import ConfiguratorPolicy
from ..data.reference import ReferenceData
from ..data.repository import Catalog, CatalogQuery
from ..events import EventSink, NullEventSink
from ..schemas import BuildRequest, Component
from .budget import BudgetAllocation


@dataclass
class SelectionContext:
    """
    一次配置调用的只读上下文 - Read-only context for one configurator call

    Build 本身不放在这里：它是每个阶段显式传入并修改的累加器。
    The Build is not held here; stages receive and mutate it explicitly.
    """

    catalog: Catalog
    allocation: BudgetAllocation
    request: BuildRequest
    policy: ConfiguratorPolicy
    reference: ReferenceData
    events: EventSink = field(default_factory=NullEventSink)
    ram_preselected: bool = False

    @property
    def unlimited(self) -> bool:
        return self.allocation.unlimited

    @property
    def budget(self) -> float:
        return self.allocation.total

    @property
    def ram_target_gb(self) -> int:
        if self.request.workload_profile == "multiThreaded":
            return self.policy.ram_target_gb_multi
        return self.policy.ram_target_gb_gaming

    def cap(self, category: str, buffer: float) -> Optional[float]:
        """子预算 × 缓冲系数；无限预算不设上限。"""
        if self.unlimited:
            return None
        return self.allocation.for_category(category) * buffer

    def query(self, category: str, **criteria: Any) -> CatalogQuery:
        return CatalogQuery(category=category, **criteria)

    def cpu_metric(self, cpu: Component) -> Optional[float]:
        if self.request.workload_profile == "multiThreaded":
            return cpu.multi_thread_score
        return cpu.single_core_score

    def gpu_score(self, gpu: Component) -> Optional[float]:
        score = self.reference.gpu_score(gpu.name)
        if score is None and gpu.performance_score is not None:
            # catalog performanceScore is on a 0-100 scale
            score = min(gpu.performance_score / 100, 1.0)
        return score
