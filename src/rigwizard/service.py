from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from pydantic import ValidationError

from .config import ConfiguratorPolicy
from .data.reference import ReferenceData
from .data.repository import Catalog
from .errors import ConfiguratorError, InputValidationError
from .events import EventSink
from .graph import ConfiguratorGraph
from .schemas import BuildRequest, BuildResult

logger = logging.getLogger(__name__)


def configure_build(
    request: BuildRequest,
    catalog: Catalog,
    policy: ConfiguratorPolicy | None = None,
    reference: ReferenceData | None = None,
    events: EventSink | None = None,
) -> BuildResult:
    """Run the configurator once; raises ConfiguratorError subclasses on fatal failure."""
    graph = ConfiguratorGraph(catalog, policy=policy, reference=reference, events=events)
    return graph.run(request)


def parse_request(payload: Mapping[str, Any]) -> BuildRequest:
    try:
        return BuildRequest.model_validate(dict(payload))
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise InputValidationError("Invalid build request", {"errors": errors}) from exc


def run_configurator(
    payload: Mapping[str, Any],
    catalog: Catalog,
    policy: ConfiguratorPolicy | None = None,
    reference: ReferenceData | None = None,
    events: EventSink | None = None,
) -> Dict[str, Any]:
    """
    入口：接受原始请求字典，成功返回响应字典，失败返回 {error, details}。
    Entry point taking the raw request mapping; returns the response mapping
    on success or {error, details} on failure.
    """
    try:
        request = parse_request(payload)
        result = configure_build(request, catalog, policy=policy, reference=reference, events=events)
    except ConfiguratorError as exc:
        logger.warning("configurator failed: %s %s", exc.message, exc.details)
        return exc.to_response()
    return result.to_response()
