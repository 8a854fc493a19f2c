"""Data 模块：目录边界、参考数据与查询接口"""

from .normalize import component_from_record, components_from_records
from .reference import ReferenceData, extract_gpu_model, load_reference_data
from .repository import Catalog, CatalogQuery, InMemoryCatalog, JsonCatalog

__all__ = [
    "component_from_record",
    "components_from_records",
    "ReferenceData",
    "extract_gpu_model",
    "load_reference_data",
    "Catalog",
    "CatalogQuery",
    "InMemoryCatalog",
    "JsonCatalog",
]
