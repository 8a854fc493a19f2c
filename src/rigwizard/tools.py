from __future__ import annotations

from typing import List, Literal, Optional, Protocol, Union

from langchain_core.tools import tool
from pydantic import BaseModel, Field

from .builder.compatibility import check_compatibility as check_build
from .builder.compatibility import recommended_wattage as build_wattage
from .config import ConfiguratorPolicy, load_policy, reference_data_path
from .data.reference import ReferenceData, load_reference_data
from .data.repository import CatalogQuery
from .schemas import Build, Category, Component, WorkloadProfile
from .service import run_configurator


class ComponentCatalog(Protocol):
    def query(self, query: CatalogQuery) -> List[Component]: ...
    def find_by_sku(self, sku: str) -> Component | None: ...


class SearchComponentsInput(BaseModel):
    category: Category = Field(description="Component category such as cpu, gpu, motherboard")
    max_price: Optional[float] = Field(default=None, description="Max acceptable unit price")
    min_price: float = Field(default=0, ge=0)
    name_pattern: Optional[str] = Field(default=None, description="Case-insensitive regex on the name")
    limit: int = Field(default=5, ge=1, le=50)


class ConfigureBuildInput(BaseModel):
    budget: Union[float, Literal["Unlimited"]] = Field(description="Total budget in USD or 'Unlimited'")
    workload_profile: WorkloadProfile
    min_storage_gb: int = Field(default=0, ge=0)
    include_monitor: bool = False


class CompatibilityInput(BaseModel):
    cpu_sku: str
    motherboard_sku: str
    ram_sku: str
    gpu_sku: str
    psu_sku: str
    case_sku: str
    cooler_sku: Optional[str] = None
    storage_skus: List[str] = Field(default_factory=list)
    gpu_quantity: int = Field(default=1, ge=1)


class WattageInput(BaseModel):
    cpu_sku: str
    gpu_sku: str
    gpu_quantity: int = Field(default=1, ge=1)
    storage_count: int = Field(default=1, ge=0)


class Toolset:
    def __init__(
        self,
        catalog: ComponentCatalog,
        *,
        policy: ConfiguratorPolicy | None = None,
        reference: ReferenceData | None = None,
    ):
        self.catalog = catalog
        self.policy = policy or load_policy()
        self.reference = reference or load_reference_data(reference_data_path())

    def register(self):
        catalog = self.catalog
        policy = self.policy
        reference = self.reference

        @tool("search_components", args_schema=SearchComponentsInput)
        def search_components(
            category: str,
            max_price: Optional[float] = None,
            min_price: float = 0,
            name_pattern: Optional[str] = None,
            limit: int = 5,
        ) -> List[dict]:
            """Search available components in one category, cheapest first."""
            query = CatalogQuery(
                category=category,
                min_price=min_price,
                max_price=max_price,
                name_patterns=[name_pattern] if name_pattern else [],
                sort_by="price",
                limit=limit,
            )
            return [c.model_dump(mode="json") for c in catalog.query(query)]

        @tool("configure_build", args_schema=ConfigureBuildInput)
        def configure_build(
            budget: Union[float, str],
            workload_profile: str,
            min_storage_gb: int = 0,
            include_monitor: bool = False,
        ) -> dict:
            """Configure a complete compatible PC build for a budget and workload profile."""
            return run_configurator(
                {
                    "budget": budget,
                    "workloadProfile": workload_profile,
                    "minStorageGB": min_storage_gb,
                    "includeMonitor": include_monitor,
                },
                catalog,
                policy=policy,
                reference=reference,
            )

        def _assemble(
            cpu_sku: str,
            gpu_sku: str,
            gpu_quantity: int,
            **others: Union[str, List[str], None],
        ) -> tuple[Build, List[str]]:
            missing: List[str] = []

            def lookup(sku: Optional[str]) -> Optional[Component]:
                if not sku:
                    return None
                part = catalog.find_by_sku(sku)
                if part is None:
                    missing.append(sku)
                return part

            build = Build(cpu=lookup(cpu_sku), gpu=lookup(gpu_sku), gpu_quantity=gpu_quantity)
            for key, value in others.items():
                if key == "storage_skus":
                    build.storage = [p for p in (lookup(s) for s in value or []) if p]
                else:
                    setattr(build, key.removesuffix("_sku"), lookup(value))
            return build, missing

        @tool("check_compatibility", args_schema=CompatibilityInput)
        def check_compatibility(
            cpu_sku: str,
            motherboard_sku: str,
            ram_sku: str,
            gpu_sku: str,
            psu_sku: str,
            case_sku: str,
            cooler_sku: Optional[str] = None,
            storage_skus: Optional[List[str]] = None,
            gpu_quantity: int = 1,
        ) -> List[str]:
            """Validate CPU, motherboard, RAM, case, cooler and PSU compatibility for a set of SKUs."""
            build, missing = _assemble(
                cpu_sku,
                gpu_sku,
                gpu_quantity,
                motherboard_sku=motherboard_sku,
                ram_sku=ram_sku,
                psu_sku=psu_sku,
                case_sku=case_sku,
                cooler_sku=cooler_sku,
                storage_skus=storage_skus or [],
            )
            if missing:
                return [f"unknown sku: {sku}" for sku in missing]
            return check_build(build, reference, policy)

        @tool("recommended_wattage", args_schema=WattageInput)
        def recommended_wattage(
            cpu_sku: str,
            gpu_sku: str,
            gpu_quantity: int = 1,
            storage_count: int = 1,
        ) -> int:
            """Estimate the recommended PSU wattage for a CPU and GPU pairing."""
            build, missing = _assemble(cpu_sku, gpu_sku, gpu_quantity)
            if missing:
                raise ValueError(f"unknown sku: {', '.join(missing)}")
            return build_wattage(build, reference, policy, drive_count=storage_count)

        return {
            "search_components": search_components,
            "configure_build": configure_build,
            "check_compatibility": check_compatibility,
            "recommended_wattage": recommended_wattage,
        }
