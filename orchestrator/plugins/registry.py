"""Plugin registry: name -> plugin, in registration order."""

import logging

from orchestrator.plugins.base import Plugin, PluginContext

logger = logging.getLogger(__name__)


class PluginRegistry:
    def __init__(self, plugins: list[Plugin] | None = None) -> None:
        self._plugins: dict[str, Plugin] = {}
        for plugin in plugins or []:
            self.register(plugin)

    def register(self, plugin: Plugin) -> None:
        """Add a plugin. Re-registering a name replaces the previous plugin in place."""
        if not plugin.name:
            raise ValueError("Plugin must have a non-empty name")
        replaced = plugin.name in self._plugins
        self._plugins[plugin.name] = plugin
        logger.info(
            "[registry:register] name=%s version=%s replaced=%s",
            plugin.name, plugin.version, replaced,
        )

    def unregister(self, name: str) -> bool:
        removed = self._plugins.pop(name, None) is not None
        logger.info("[registry:unregister] name=%s removed=%s", name, removed)
        return removed

    def find(self, name: str) -> Plugin | None:
        return self._plugins.get(name)

    def find_applicable(self, context: PluginContext) -> list[Plugin]:
        """Plugins whose can_handle is true for the context. A raising predicate counts as false."""
        applicable = []
        for plugin in self._plugins.values():
            try:
                if plugin.can_handle(context):
                    applicable.append(plugin)
            except Exception as e:
                logger.warning("[registry:find_applicable] %s.can_handle raised: %s", plugin.name, e)
        logger.info(
            "[registry:find_applicable] query_len=%d OUT %s",
            len(context.query), [p.name for p in applicable],
        )
        return applicable

    def all(self) -> list[Plugin]:
        return list(self._plugins.values())

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, name: object) -> bool:
        return name in self._plugins
