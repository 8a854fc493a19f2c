from __future__ import annotations

import logging
import time
from typing import List, Literal, Optional, TypedDict

from langgraph.graph import END, StateGraph

from .builder.budget import BudgetAllocation, allocate_budget
from .builder.compatibility import recommended_wattage
from .builder.context import SelectionContext
from .builder.downgrade import run_downgrades
from .builder.filler import add_os_license, fill_budget
from .builder.selectors import (
    preselect_ram,
    select_case,
    select_cooler,
    select_cpu,
    select_gpu,
    select_monitor,
    select_motherboard,
    select_psu,
    select_ram,
)
from .builder.storage import select_storage
from .builder.validator import ensure_mandatory, validate_build
from .config import ConfiguratorPolicy, load_policy, reference_data_path
from .data.reference import ReferenceData, load_reference_data
from .data.repository import Catalog
from .events import EventSink, NullEventSink, emit
from .schemas import Build, BuildRequest, BuildResult, BudgetExceededWarning, DowngradeAttempt

logger = logging.getLogger(__name__)


class ConfiguratorState(TypedDict, total=False):
    request: BuildRequest
    allocation: BudgetAllocation
    context: SelectionContext
    build: Build
    downgrades: List[DowngradeAttempt]
    budget_warning: Optional[BudgetExceededWarning]
    route: Literal["downgrade", "fill"]


# 选择阶段的节点顺序即依赖顺序
SELECTION_STAGES = [
    ("preselect_ram", preselect_ram),
    ("select_gpu", select_gpu),
    ("select_cpu", select_cpu),
    ("select_ram", select_ram),
    ("select_motherboard", select_motherboard),
    ("select_storage", select_storage),
    ("select_psu", select_psu),
    ("select_case", select_case),
    ("select_cooler", select_cooler),
    ("select_monitor", select_monitor),
]


class ConfiguratorGraph:
    """
    配置器流水线 - Configurator pipeline

    allocate → 各类别选择 → 必选检查 →（超支时）降级 → 填充 → 附加项 → 验证
    """

    def __init__(
        self,
        catalog: Catalog,
        policy: ConfiguratorPolicy | None = None,
        reference: ReferenceData | None = None,
        events: EventSink | None = None,
    ):
        self.catalog = catalog
        self.policy = policy or load_policy()
        self.reference = reference or load_reference_data(reference_data_path())
        self.events = events or NullEventSink()
        self.graph = self._build_graph()

    def _build_graph(self):
        builder = StateGraph(ConfiguratorState)
        builder.add_node("allocate", self.allocate)
        for name, selector in SELECTION_STAGES:
            builder.add_node(name, self._selection_node(name, selector))
        builder.add_node("check_mandatory", self.check_mandatory)
        builder.add_node("downgrade", self.downgrade)
        builder.add_node("fill", self.fill)
        builder.add_node("extras", self.extras)
        builder.add_node("validate", self.validate)

        builder.set_entry_point("allocate")
        previous = "allocate"
        for name, _ in SELECTION_STAGES:
            builder.add_edge(previous, name)
            previous = name
        builder.add_edge(previous, "check_mandatory")
        builder.add_conditional_edges(
            "check_mandatory",
            self.route_after_selection,
            {"downgrade": "downgrade", "fill": "fill"},
        )
        builder.add_edge("downgrade", "fill")
        builder.add_edge("fill", "extras")
        builder.add_edge("extras", "validate")
        builder.add_edge("validate", END)

        return builder.compile()

    def allocate(self, state: ConfiguratorState):
        request = state["request"]
        allocation = allocate_budget(request.budget, request.workload_profile, self.policy)
        context = SelectionContext(
            catalog=self.catalog,
            allocation=allocation,
            request=request,
            policy=self.policy,
            reference=self.reference,
            events=self.events,
        )
        emit(
            self.events,
            "allocate",
            "budget allocated",
            total=allocation.total,
            unlimited=allocation.unlimited,
            amounts=allocation.to_dict(),
        )
        return {"allocation": allocation, "context": context, "build": Build(), "downgrades": []}

    def _selection_node(self, name, selector):
        def node(state: ConfiguratorState):
            start = time.time()
            build = state["build"]
            selector(state["context"], build)
            logger.debug("%s took %.3fs", name, time.time() - start)
            return {"build": build}

        return node

    def check_mandatory(self, state: ConfiguratorState):
        build = state["build"]
        ensure_mandatory(build)
        over = build.total_price() > state["allocation"].total
        return {"route": "downgrade" if over else "fill"}

    def route_after_selection(self, state: ConfiguratorState):
        return state.get("route", "fill")

    def downgrade(self, state: ConfiguratorState):
        build = state["build"]
        attempts, warning = run_downgrades(state["context"], build)
        return {"build": build, "downgrades": attempts, "budget_warning": warning}

    def fill(self, state: ConfiguratorState):
        build = state["build"]
        fill_budget(state["context"], build)
        return {"build": build}

    def extras(self, state: ConfiguratorState):
        build = state["build"]
        add_os_license(state["context"], build)
        return {"build": build}

    def validate(self, state: ConfiguratorState):
        build = state["build"]
        validate_build(build, self.reference, self.policy)
        emit(self.events, "validate", "build passed validation", total=build.total_price())
        return {"build": build}

    def run(self, request: BuildRequest) -> BuildResult:
        start = time.time()
        out = self.graph.invoke({"request": request})
        build: Build = out["build"]
        allocation: BudgetAllocation = out["allocation"]
        total = build.total_price()
        result = BuildResult(
            build=build,
            total_cost=total,
            budget=allocation.total,
            unlimited=allocation.unlimited,
            under_budget=total <= allocation.total,
            recommended_wattage=recommended_wattage(build, self.reference, self.policy),
            downgrades=out.get("downgrades", []),
            budget_warning=out.get("budget_warning"),
        )
        logger.info(
            "configured %s build: total=%.2f budget=%.2f in %.3fs",
            request.workload_profile,
            total,
            allocation.total,
            time.time() - start,
        )
        return result

