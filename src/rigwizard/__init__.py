"""RigWizard：预算约束下的装机配置器"""

from .errors import (
    CatalogError,
    CompatibilityViolationError,
    ConfiguratorError,
    HardNoCandidateError,
    InputValidationError,
)
from .graph import ConfiguratorGraph
from .schemas import Build, BuildRequest, BuildResult, Component
from .service import configure_build, run_configurator

__all__ = [
    "CatalogError",
    "CompatibilityViolationError",
    "ConfiguratorError",
    "HardNoCandidateError",
    "InputValidationError",
    "ConfiguratorGraph",
    "Build",
    "BuildRequest",
    "BuildResult",
    "Component",
    "configure_build",
    "run_configurator",
]
