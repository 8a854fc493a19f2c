"""目录查询接口与内存实现"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Optional, Protocol

from pydantic import BaseModel, Field

from ..errors import CatalogError
from ..schemas import Category, Component, FormFactor, MemoryType, StorageKind
from .normalize import canonical_socket, component_from_record

SortKey = Literal[
    "price",
    "capacity_gb",
    "wattage",
    "single_core_score",
    "multi_thread_score",
    "pcie_x16_slots",
]


class CatalogQuery(BaseModel):
    """单类别查询 - one filtered, sorted, limited query against a category."""

    category: Category
    min_price: float = Field(default=0, ge=0)
    max_price: Optional[float] = None
    available_only: bool = True
    socket_match: List[str] = Field(default_factory=list)
    memory_type: Optional[MemoryType] = None
    form_factors: Optional[List[FormFactor]] = None
    min_wattage: Optional[int] = None
    max_wattage: Optional[int] = None
    min_capacity_gb: Optional[float] = None
    storage_kind: Optional[StorageKind] = None
    kind: Optional[str] = None
    name_patterns: List[str] = Field(default_factory=list)
    exclude_keywords: List[str] = Field(default_factory=list)
    sort_by: Optional[SortKey] = None
    descending: bool = False
    limit: Optional[int] = Field(default=None, ge=1)


class Catalog(Protocol):
    def query(self, query: CatalogQuery) -> List[Component]: ...


def socket_tokens_overlap(token: str, component: Component) -> bool:
    token = canonical_socket(token)
    if not token:
        return False
    for field in (component.socket, component.chipset):
        if field and (token in field or field in token):
            return True
    return False


class InMemoryCatalog:
    """
    内存目录 - In-memory Catalog

    在加载时完成规范化的只读配件集合，按 CatalogQuery 过滤与排序。
    Read-only component collection, canonicalized at load time, answering
    CatalogQuery filters and sorts.
    """

    def __init__(self, components: Iterable[Component] = ()):
        self._components: List[Component] = list(components)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "InMemoryCatalog":
        return cls(component_from_record(r) for r in records)

    def all_components(self) -> List[Component]:
        return list(self._components)

    def by_category(self, category: str) -> List[Component]:
        return [c for c in self._components if c.category == category]

    def find_by_sku(self, sku: str) -> Component | None:
        for component in self._components:
            if component.sku == sku:
                return component
        return None

    def query(self, query: CatalogQuery) -> List[Component]:
        try:
            patterns = [re.compile(p, re.IGNORECASE) for p in query.name_patterns]
        except re.error as exc:
            raise CatalogError(f"invalid name pattern: {exc}") from exc
        excluded = [k.lower() for k in query.exclude_keywords]

        def matches(c: Component) -> bool:
            if c.category != query.category or c.price <= 0:
                return False
            if c.price < query.min_price:
                return False
            if query.max_price is not None and c.price > query.max_price:
                return False
            if query.available_only and not c.available:
                return False
            if query.socket_match and not any(socket_tokens_overlap(t, c) for t in query.socket_match):
                return False
            if query.memory_type is not None and query.memory_type not in c.memory_types:
                return False
            if query.form_factors is not None and c.form_factor not in query.form_factors:
                return False
            if query.min_wattage is not None and c.wattage < query.min_wattage:
                return False
            if query.max_wattage is not None and c.wattage > query.max_wattage:
                return False
            if query.min_capacity_gb is not None and c.capacity_gb < query.min_capacity_gb:
                return False
            if query.storage_kind is not None and c.storage_kind != query.storage_kind:
                return False
            if query.kind is not None and c.kind.lower() != query.kind.lower():
                return False
            name = c.name.lower()
            if any(k in name for k in excluded):
                return False
            return all(p.search(c.name) for p in patterns)

        results = [c for c in self._components if matches(c)]
        if query.sort_by:
            key = query.sort_by
            present = [c for c in results if getattr(c, key) is not None]
            missing = [c for c in results if getattr(c, key) is None]
            present.sort(key=lambda c: c.sku)
            present.sort(key=lambda c: getattr(c, key), reverse=query.descending)
            missing.sort(key=lambda c: c.sku)
            results = present + missing
        else:
            results.sort(key=lambda c: c.sku)
        if query.limit is not None:
            results = results[: query.limit]
        return results


class JsonCatalog(InMemoryCatalog):
    """JSON 文件目录：列表记录，或 类别 -> 记录列表 的映射。"""

    def __init__(self, data_path: Path):
        self.data_path = data_path
        super().__init__()
        self.reload()

    def reload(self) -> None:
        with self.data_path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        if isinstance(raw, dict):
            records = [
                {**item, "category": category}
                for category, items in raw.items()
                for item in items
            ]
        else:
            records = raw
        self._components = [component_from_record(r) for r in records]
