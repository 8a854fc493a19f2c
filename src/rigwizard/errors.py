"""配置器异常 - Configurator error taxonomy."""

from __future__ import annotations

from typing import Any, Dict, Optional


class ConfiguratorError(Exception):
    """Fatal configurator failure carrying structured details."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def to_response(self) -> dict:
        return {"error": self.message, "details": dict(self.details)}


class InputValidationError(ConfiguratorError):
    """Request rejected before any selection begins."""


class HardNoCandidateError(ConfiguratorError):
    def __init__(self, category: str, message: Optional[str] = None):
        super().__init__(
            message or f"Build generation failed: no {category} could be selected",
            {"missingCategory": category},
        )
        self.category = category


class CompatibilityViolationError(ConfiguratorError):
    """Raised only by the final validator when an upstream swap broke an invariant."""


class CatalogError(Exception):
    """Raised by Catalog implementations when a query cannot be answered."""
