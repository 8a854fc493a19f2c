"""
构建事件 - Build Events

配置流程各阶段向事件接收器追加结构化事件，选择逻辑本身不依赖任何输出通道。
Pipeline stages append structured events to a sink; selection logic never
formats side-channel strings itself.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class BuildEvent(BaseModel):
    stage: str
    message: str
    category: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class EventSink(Protocol):
    def emit(self, event: BuildEvent) -> None: ...


class NullEventSink:
    def emit(self, event: BuildEvent) -> None:
        return None


class RecordingEventSink:
    """Keeps every event in memory, in emission order."""

    def __init__(self) -> None:
        self.events: List[BuildEvent] = []

    def emit(self, event: BuildEvent) -> None:
        self.events.append(event)

    def by_stage(self, stage: str) -> List[BuildEvent]:
        return [e for e in self.events if e.stage == stage]

    def by_category(self, category: str) -> List[BuildEvent]:
        return [e for e in self.events if e.category == category]


class LoggingEventSink:
    def __init__(self, level: int = logging.INFO, target: logging.Logger | None = None):
        self.level = level
        self.target = target or logger

    def emit(self, event: BuildEvent) -> None:
        prefix = f"[{event.stage}]"
        if event.category:
            prefix += f"[{event.category}]"
        self.target.log(self.level, "%s %s %s", prefix, event.message, event.data or "")


class MultiEventSink:
    def __init__(self, sinks: Iterable[EventSink]):
        self.sinks = list(sinks)

    def emit(self, event: BuildEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)


def emit(
    sink: EventSink,
    stage: str,
    message: str,
    category: Optional[str] = None,
    **data: Any,
) -> None:
    sink.emit(BuildEvent(stage=stage, message=message, category=category, data=data))
