"""
Plugin contract: context passed in, result passed back.

A plugin declares a name, a cheap applicability predicate (can_handle) and an
async execute. health_check is optional; plugins without one count as healthy.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from orchestrator.core.session_store import utc_now

ErrorCode = Literal["NOT_FOUND", "TIMED_OUT", "EXECUTION_ERROR", "PLUGIN_FAILED"]


@dataclass(frozen=True)
class PluginContext:
    query: str
    session_id: str = ""
    user_message: str = ""
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class PluginResult:
    """What a plugin returns from execute()."""

    success: bool
    data: Any = None
    formatted_response: str = ""
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PluginInvocationResult:
    """Outcome of one dispatched invocation. Failures are values, never exceptions."""

    plugin_name: str
    success: bool
    data: Any = None
    formatted_response: str = ""
    message: str = ""
    error: str | None = None
    error_code: ErrorCode | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    elapsed: float = 0.0


@dataclass(frozen=True)
class PluginSummary:
    name: str
    description: str
    version: str


class Plugin(ABC):
    name: str = ""
    description: str = ""
    version: str = "1.0.0"

    @abstractmethod
    def can_handle(self, context: PluginContext) -> bool:
        ...

    @abstractmethod
    async def execute(self, context: PluginContext) -> PluginResult:
        ...

    def summary(self) -> PluginSummary:
        return PluginSummary(name=self.name, description=self.description, version=self.version)
