"""
Plugin dispatcher: run plugins concurrently, each under its own timeout.

Every invocation produces a PluginInvocationResult. Unknown names, timeouts,
raised exceptions and plugin-reported failures are all returned as values so
a single bad plugin never fails the request.
"""

import asyncio
import logging
import time
from dataclasses import dataclass

from orchestrator.core.config import PLUGIN_TIMEOUT_SECONDS
from orchestrator.plugins.base import Plugin, PluginContext, PluginInvocationResult
from orchestrator.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginHealthReport:
    plugins: dict[str, bool]
    healthy: bool


class PluginDispatcher:
    def __init__(self, registry: PluginRegistry, timeout: float = PLUGIN_TIMEOUT_SECONDS) -> None:
        self.registry = registry
        self.timeout = timeout

    async def execute_one(
        self,
        name: str,
        context: PluginContext,
        timeout: float | None = None,
    ) -> PluginInvocationResult:
        plugin = self.registry.find(name)
        if plugin is None:
            logger.info("[dispatcher:execute_one] plugin=%s not found", name)
            return PluginInvocationResult(
                plugin_name=name,
                success=False,
                message=f"Plugin '{name}' not found",
                error=f"Plugin '{name}' not found",
                error_code="NOT_FOUND",
            )
        return await self._invoke(plugin, context, self.timeout if timeout is None else timeout)

    async def execute_applicable(self, context: PluginContext) -> list[PluginInvocationResult]:
        """Run every applicable plugin concurrently; one result per plugin, in registration order."""
        plugins = self.registry.find_applicable(context)
        if not plugins:
            return []
        outcomes = await asyncio.gather(
            *(self._invoke(p, context, self.timeout) for p in plugins),
            return_exceptions=True,
        )
        results: list[PluginInvocationResult] = []
        for plugin, outcome in zip(plugins, outcomes):
            if isinstance(outcome, PluginInvocationResult):
                results.append(outcome)
                continue
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            # _invoke already converts plugin errors; this only guards against bugs in it.
            logger.error("[dispatcher:execute_applicable] plugin=%s unexpected: %r", plugin.name, outcome)
            results.append(PluginInvocationResult(
                plugin_name=plugin.name,
                success=False,
                message=str(outcome),
                error=str(outcome),
                error_code="EXECUTION_ERROR",
            ))
        logger.info(
            "[dispatcher:execute_applicable] OUT %s",
            [(r.plugin_name, r.success, r.error_code) for r in results],
        )
        return results

    async def _invoke(
        self,
        plugin: Plugin,
        context: PluginContext,
        timeout: float,
    ) -> PluginInvocationResult:
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(plugin.execute(context), timeout=timeout)
        except asyncio.TimeoutError:
            elapsed = time.monotonic() - started
            message = f"Plugin '{plugin.name}' timed out after {timeout:g}s"
            logger.warning("[dispatcher] plugin=%s timed out elapsed=%.3fs", plugin.name, elapsed)
            return PluginInvocationResult(
                plugin_name=plugin.name,
                success=False,
                message=message,
                error=message,
                error_code="TIMED_OUT",
                elapsed=elapsed,
            )
        except Exception as e:
            elapsed = time.monotonic() - started
            logger.warning("[dispatcher] plugin=%s raised: %s", plugin.name, e)
            return PluginInvocationResult(
                plugin_name=plugin.name,
                success=False,
                message=str(e),
                error=str(e),
                error_code="EXECUTION_ERROR",
                elapsed=elapsed,
            )
        elapsed = time.monotonic() - started
        logger.info(
            "[dispatcher] plugin=%s success=%s elapsed=%.3fs",
            plugin.name, result.success, elapsed,
        )
        return PluginInvocationResult(
            plugin_name=plugin.name,
            success=result.success,
            data=result.data,
            formatted_response=result.formatted_response,
            message=result.formatted_response or (result.error or ""),
            error=result.error,
            error_code=None if result.success else "PLUGIN_FAILED",
            metadata=dict(result.metadata),
            elapsed=elapsed,
        )

    async def health_check(self) -> PluginHealthReport:
        """Probe every plugin concurrently. No probe means healthy; a raising probe means unhealthy."""
        plugins = self.registry.all()

        async def probe(plugin: Plugin) -> bool:
            check = getattr(plugin, "health_check", None)
            if check is None:
                return True
            try:
                return bool(await asyncio.wait_for(check(), timeout=self.timeout))
            except Exception as e:
                logger.warning("[dispatcher:health_check] plugin=%s failed: %s", plugin.name, e)
                return False

        statuses = await asyncio.gather(*(probe(p) for p in plugins))
        report = {p.name: ok for p, ok in zip(plugins, statuses)}
        healthy = all(report.values())
        logger.info("[dispatcher:health_check] OUT healthy=%s plugins=%s", healthy, report)
        return PluginHealthReport(plugins=report, healthy=healthy)
