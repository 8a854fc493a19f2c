from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


Category = Literal[
    "cpu",
    "motherboard",
    "ram",
    "gpu",
    "storage",
    "psu",
    "case",
    "cooler",
    "monitor",
    "software",
]

WorkloadProfile = Literal["multiThreaded", "singleThreadedGaming"]

UNLIMITED = "Unlimited"


class MemoryType(str, Enum):
    DDR3 = "DDR3"
    DDR4 = "DDR4"
    DDR5 = "DDR5"


class FormFactor(str, Enum):
    ITX = "ITX"
    MATX = "mATX"
    ATX = "ATX"
    EATX = "E-ATX"

    @property
    def rank(self) -> int:
        return _FORM_FACTOR_ORDER.index(self)


_FORM_FACTOR_ORDER = [FormFactor.ITX, FormFactor.MATX, FormFactor.ATX, FormFactor.EATX]


class StorageKind(str, Enum):
    SSD = "SSD"
    HDD = "HDD"


class Component(BaseModel):
    """配件实体 - catalog component, immutable once read."""

    model_config = ConfigDict(frozen=True)

    # 标识
    sku: str
    name: str
    category: Category
    manufacturer: str = ""
    price: float = Field(ge=0)
    available: bool = True

    # 兼容性参数
    socket: str = ""
    chipset: str = ""
    memory_types: List[MemoryType] = Field(default_factory=list)
    form_factor: Optional[FormFactor] = None
    module_type: str = ""
    cooler_sockets: List[str] = Field(default_factory=list)
    pcie_x16_slots: int = Field(default=0, ge=0)

    # 功耗与性能
    wattage: int = Field(default=0, ge=0)
    tdp: int = Field(default=0, ge=0)
    cores: int = Field(default=0, ge=0)
    single_core_score: Optional[float] = None
    multi_thread_score: Optional[float] = None
    performance_score: Optional[float] = None
    bundled_cooler: bool = False

    # 存储
    capacity_gb: float = Field(default=0, ge=0)
    storage_kind: Optional[StorageKind] = None

    # 附加品
    kind: str = ""


class BuildRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    budget: Union[float, Literal["Unlimited"]]
    workload_profile: WorkloadProfile = Field(alias="workloadProfile")
    min_storage_gb: int = Field(default=0, ge=0, alias="minStorageGB")
    include_monitor: bool = Field(default=False, alias="includeMonitor")


class Build(BaseModel):
    """装机配置累加器 - one per configurator call."""

    cpu: Optional[Component] = None
    motherboard: Optional[Component] = None
    ram: Optional[Component] = None
    gpu: Optional[Component] = None
    gpu_quantity: int = 1
    storage: List[Component] = Field(default_factory=list)
    psu: Optional[Component] = None
    case: Optional[Component] = None
    cooler: Optional[Component] = None
    monitors: List[Component] = Field(default_factory=list)
    software: Optional[Component] = None
    psu_relaxed: bool = False

    def cost_of(self, category: str) -> float:
        if category == "gpu":
            return self.gpu.price * self.gpu_quantity if self.gpu else 0.0
        if category == "storage":
            return sum(d.price for d in self.storage)
        if category == "monitor":
            return sum(m.price for m in self.monitors)
        part = getattr(self, category, None)
        return part.price if part else 0.0

    def total_price(self) -> float:
        total = 0.0
        for key in [
            "cpu",
            "motherboard",
            "ram",
            "gpu",
            "storage",
            "psu",
            "case",
            "cooler",
            "monitor",
            "software",
        ]:
            total += self.cost_of(key)
        return round(total, 2)

    def cooler_required(self) -> bool:
        return self.cpu is not None and not self.cpu.bundled_cooler

    def as_dict(self) -> Dict[str, Union[dict, List[dict], None]]:
        def dump(part: Optional[Component]) -> Optional[dict]:
            return part.model_dump(mode="json") if part else None

        out: Dict[str, Union[dict, List[dict], None]] = {
            "cpu": dump(self.cpu),
            "motherboard": dump(self.motherboard),
            "ram": dump(self.ram),
            "gpu": None,
            "storage": [d.model_dump(mode="json") for d in self.storage],
            "psu": dump(self.psu),
            "case": dump(self.case),
            "cooler": dump(self.cooler),
        }
        if self.gpu:
            out["gpu"] = {**self.gpu.model_dump(mode="json"), "quantity": self.gpu_quantity}
        if self.monitors:
            out["monitor"] = [m.model_dump(mode="json") for m in self.monitors]
        if self.software:
            out["software"] = dump(self.software)
        return out


class DowngradeAttempt(BaseModel):
    iteration: int
    overage: float
    action: Literal["downgrade", "remove", "failed"]
    category: Optional[str] = None
    old_sku: Optional[str] = None
    new_sku: Optional[str] = None
    old_price: float = 0.0
    new_price: float = 0.0
    saved: float = 0.0


class BudgetExceededWarning(BaseModel):
    overage: float
    iterations: int
    reason: str


class BuildResult(BaseModel):
    build: Build
    total_cost: float
    budget: float
    unlimited: bool = False
    under_budget: bool
    recommended_wattage: int = 0
    downgrades: List[DowngradeAttempt] = Field(default_factory=list)
    budget_warning: Optional[BudgetExceededWarning] = None

    def to_response(self) -> dict:
        return {
            "build": self.build.as_dict(),
            "totalCost": self.total_cost,
            "budget": self.budget,
            "underBudget": self.under_budget,
            "psuRelaxed": self.build.psu_relaxed,
            "recommendedWattage": self.recommended_wattage,
            "downgrades": [d.model_dump() for d in self.downgrades],
            "budgetWarning": self.budget_warning.model_dump() if self.budget_warning else None,
        }
