"""
目录边界规范化 - Catalog Boundary Canonicalization

把原始目录记录转换成不可变的 Component：插槽/芯片组统一大小写和空白，
内存类型与板型映射到封闭枚举，容量解析为 GB。
Converts raw catalog records into immutable Components: sockets and chipsets
are case/whitespace normalized, memory types and form factors are mapped to
closed enumerations, capacities are parsed into GB.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional

from ..schemas import Component, FormFactor, MemoryType, StorageKind

_WS_RE = re.compile(r"\s+")
_DDR_RE = re.compile(r"DDR\s*([345])", re.IGNORECASE)
_TB_RE = re.compile(r"(\d+\.?\d*)\s*TB", re.IGNORECASE)
_GB_RE = re.compile(r"(\d+\.?\d*)\s*GB", re.IGNORECASE)


def normalize_text(value: Any) -> str:
    if value is None:
        return ""
    return _WS_RE.sub(" ", str(value)).strip().lower()


def canonical_socket(value: Any) -> str:
    """'Socket LGA 1700' -> 'LGA1700'"""
    if value is None:
        return ""
    text = _WS_RE.sub("", str(value)).upper()
    if text.startswith("SOCKET"):
        text = text[len("SOCKET"):]
    return text


def canonical_chipset(value: Any) -> str:
    if value is None:
        return ""
    return _WS_RE.sub("", str(value)).upper()


def _as_list(value: Any) -> List[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def parse_memory_types(value: Any) -> List[MemoryType]:
    found: List[MemoryType] = []
    for item in _as_list(value):
        if isinstance(item, MemoryType):
            candidates = [item]
        else:
            candidates = [MemoryType(f"DDR{gen}") for gen in _DDR_RE.findall(str(item))]
        for mt in candidates:
            if mt not in found:
                found.append(mt)
    return found


def _classify_one(value: Any) -> Optional[FormFactor]:
    if isinstance(value, FormFactor):
        return value
    text = str(value).upper().replace("-", "")
    text = _WS_RE.sub("", text)
    if not text:
        return None
    # 顺序很重要：先判断更具体的类型
    if "ITX" in text and "ATX" not in text:
        return FormFactor.ITX
    if "MATX" in text or "MICROATX" in text:
        return FormFactor.MATX
    if "EATX" in text or "EXTENDEDATX" in text:
        return FormFactor.EATX
    if "ATX" in text:
        return FormFactor.ATX
    return None


def classify_form_factor(value: Any, largest: bool = False) -> Optional[FormFactor]:
    """
    板型分类 - Classify form factor

    机箱可能列出多个板型，取最大的一个；主板取第一个可识别的。
    Cases may list several form factors and take the largest; boards take the
    first recognizable one.
    """
    classes = [ff for ff in (_classify_one(v) for v in _as_list(value)) if ff is not None]
    if not classes:
        return None
    if largest:
        return max(classes, key=lambda ff: ff.rank)
    return classes[0]


def parse_capacity_gb(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    tb = _TB_RE.search(text)
    if tb:
        return float(tb.group(1)) * 1000
    gb = _GB_RE.search(text)
    if gb:
        return float(gb.group(1))
    try:
        return float(text)
    except ValueError:
        return 0.0


def classify_storage_kind(type_value: Any, name: str = "") -> Optional[StorageKind]:
    text = normalize_text(type_value)
    if any(token in text for token in ("ssd", "m.2", "nvme")):
        return StorageKind.SSD
    if "hdd" in text or "hard drive" in text:
        return StorageKind.HDD
    lowered = normalize_text(name)
    if "ssd" in lowered or "nvme" in lowered:
        return StorageKind.SSD
    if "hdd" in lowered or "hard drive" in lowered:
        return StorageKind.HDD
    return None


def _pick(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    specs = raw.get("specs")
    if not isinstance(specs, dict):
        return default
    for key in keys:
        value = specs.get(key)
        if value is not None and value != "":
            return value
    return default


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(str(value).rstrip("Ww ").strip())
    except ValueError:
        return None
    return number if number > 0 else None


def _to_int(value: Any) -> int:
    number = _to_float(value)
    return int(number) if number is not None else 0


def _to_flag(value: Any) -> bool:
    # only an explicit yes counts
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return False


def component_from_record(raw: Dict[str, Any], category: Optional[str] = None) -> Component:
    """
    从原始记录构建 Component - Build a Component from a raw record

    同时接受原始目录字段名（currentPrice、memoryType、formFactor 等）和
    Component 自身的字段名。
    Accepts both raw catalog field names (currentPrice, memoryType,
    formFactor, ...) and Component's own field names.
    """
    cat = category or raw.get("category")
    if not cat:
        raise ValueError("component record has no category")
    name = str(_pick(raw, "name", "title", default=""))
    price = _to_float(_pick(raw, "currentPrice", "price", default=0)) or 0.0

    socket_raw = _pick(raw, "socket")
    cooler_sockets_raw = _pick(
        raw, "cooler_sockets", "socketCompatibility", "compatibleSockets", default=[]
    )
    if cat == "cooler":
        if not cooler_sockets_raw and socket_raw is not None:
            cooler_sockets_raw = socket_raw
        socket_raw = ""

    type_raw = _pick(raw, "type")
    memory_raw = _pick(raw, "memory_types", "memoryType", "memory_type")
    if memory_raw is None and cat == "ram":
        memory_raw = type_raw

    fields: Dict[str, Any] = {
        "sku": str(_pick(raw, "sku", "_id", "id", default=name)),
        "name": name,
        "category": cat,
        "manufacturer": str(_pick(raw, "manufacturer", "brand", default="")),
        "price": price,
        "available": raw.get("isAvailable", raw.get("available", True)) is not False,
        "socket": canonical_socket(socket_raw),
        "chipset": canonical_chipset(_pick(raw, "chipset")),
        "memory_types": parse_memory_types(memory_raw),
        "form_factor": classify_form_factor(
            _pick(raw, "form_factor", "formFactor"), largest=(cat == "case")
        ) if cat in ("motherboard", "case") else None,
        "module_type": str(_pick(raw, "module_type", "formFactor", default="")) if cat == "ram" else "",
        "cooler_sockets": [canonical_socket(s) for s in _as_list(cooler_sockets_raw)],
        "pcie_x16_slots": _to_int(_pick(raw, "pcie_x16_slots", "pcieSlotCount")),
        "wattage": _to_int(_pick(raw, "wattage", "watts", "Wattage")),
        "tdp": _to_int(_pick(raw, "tdp", "TDP")),
        "cores": _to_int(_pick(raw, "cores")),
        "single_core_score": _to_float(_pick(raw, "single_core_score", "singleCorePerformance")),
        "multi_thread_score": _to_float(_pick(raw, "multi_thread_score", "multiThreadPerformance")),
        "performance_score": _to_float(_pick(raw, "performance_score", "performanceScore")),
        "bundled_cooler": _to_flag(_pick(raw, "bundled_cooler", "coolerIncluded")),
        "capacity_gb": parse_capacity_gb(_pick(raw, "capacity_gb", "totalCapacity", "capacity")),
        "storage_kind": classify_storage_kind(
            _pick(raw, "storage_kind", "type"), name
        ) if cat == "storage" else None,
        "kind": str(_pick(raw, "kind", default="")),
    }
    return Component.model_validate(fields)


def components_from_records(
    records: Iterable[Dict[str, Any]], category: Optional[str] = None
) -> List[Component]:
    return [component_from_record(r, category) for r in records]
