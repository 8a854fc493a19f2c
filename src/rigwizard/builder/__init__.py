"""Builder 模块：预算分配、配件选择、降级与验证"""

from .budget import BudgetAllocation, allocate_budget, resolve_budget
from .compatibility import check_compatibility, recommended_wattage
from .context import SelectionContext
from .downgrade import run_downgrades
from .filler import add_os_license, fill_budget
from .search import SearchStep, search_with_ladder
from .storage import select_storage
from .validator import ensure_mandatory, validate_build

__all__ = [
    "BudgetAllocation",
    "allocate_budget",
    "resolve_budget",
    "check_compatibility",
    "recommended_wattage",
    "SelectionContext",
    "run_downgrades",
    "add_os_license",
    "fill_budget",
    "SearchStep",
    "search_with_ladder",
    "select_storage",
    "ensure_mandatory",
    "validate_build",
]
