"""Dispatcher with plugin pipeline.

``Dispatcher`` extends ``BaseDispatcher`` with a global plugin registry,
per-dispatcher plugin instances, middleware wrapping, and plugin state stored on
the dispatcher instance.

Internal state
--------------
- ``_plugins``: instantiated plugins in the order they were plugged.
- ``_plugins_by_name``: name → plugin instance.
- ``_plugin_info``: per-plugin store, ``{"--base--": {...}, <entry>: {...}}``
  where each bucket holds ``config`` and ``locals``.

Global registry
---------------
``Dispatcher.register_plugin(plugin_class, name=None)`` requires a
``BasePlugin`` subclass with ``plugin_code``. Registering a different class
under an existing code raises ``ValueError`` unless ``name`` is passed
explicitly. ``available_plugins`` returns a copy of the registry.

Wrapping
--------
Layers are built from ``_plugins`` in reverse order, so the first plugin
plugged is the outermost. Each layer is guarded by ``is_plugin_enabled`` for
the entry, read at call time.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Type

from utrouter.core.base_dispatcher import BaseDispatcher
from utrouter.plugins._base_plugin import BasePlugin, EntryPoint

__all__ = ["Dispatcher"]

_PLUGIN_REGISTRY: Dict[str, Type[BasePlugin]] = {}


class Dispatcher(BaseDispatcher):
    """Dispatcher with plugin registry/pipeline support."""

    __slots__ = BaseDispatcher.__slots__ + (
        "_plugins",
        "_plugins_by_name",
        "_plugin_info",
    )

    def __init__(self, *args, **kwargs):
        self._plugins: List[BasePlugin] = []
        self._plugins_by_name: Dict[str, BasePlugin] = {}
        self._plugin_info: Dict[str, Dict[str, Any]] = {}
        super().__init__(*args, **kwargs)

    # ------------------------------------------------------------------
    # Plugin registration
    # ------------------------------------------------------------------
    @classmethod
    def register_plugin(cls, plugin_class: Type[BasePlugin], name: Optional[str] = None) -> None:
        """Register a plugin class globally.

        An explicit ``name`` overwrites any existing registration; otherwise
        ``plugin_code`` is used and a clash with another class is an error.
        """
        if not isinstance(plugin_class, type) or not issubclass(plugin_class, BasePlugin):
            raise TypeError("plugin_class must be a BasePlugin subclass")
        if not getattr(plugin_class, "plugin_code", None):
            raise ValueError(f"Plugin {plugin_class.__name__} is missing plugin_code")
        code = name or plugin_class.plugin_code
        if name is None:
            existing = _PLUGIN_REGISTRY.get(code)
            if existing is not None and existing is not plugin_class:
                raise ValueError(f"Plugin '{code}' already registered")
        _PLUGIN_REGISTRY[code] = plugin_class

    @classmethod
    def available_plugins(cls) -> Dict[str, Type[BasePlugin]]:
        return dict(_PLUGIN_REGISTRY)

    def plug(self, plugin: str, **config: Any) -> "Dispatcher":
        """Attach a plugin by its registered name."""
        if not isinstance(plugin, str):
            raise TypeError(
                f"Plugin must be referenced by name string, got {type(plugin).__name__}"
            )
        plugin_class = _PLUGIN_REGISTRY.get(plugin)
        if plugin_class is None:
            available = ", ".join(sorted(_PLUGIN_REGISTRY)) or "none"
            raise ValueError(f"Unknown plugin '{plugin}'. Available plugins: {available}")
        if plugin in self._plugins_by_name:
            raise ValueError(f"Plugin '{plugin}' already plugged on '{self.name}'")
        instance = plugin_class(dispatcher=self, **config)
        self._plugins.append(instance)
        self._plugins_by_name[instance.name] = instance
        for entry in self._entries.values():
            self._apply_plugin(instance, entry)
        self._rebuild_handlers()
        return self

    def iter_plugins(self) -> List[BasePlugin]:  # type: ignore[override]
        """Return plugged instances in application order."""
        return list(self._plugins)

    def __getattr__(self, name: str) -> Any:
        plugin = self._plugins_by_name.get(name)
        if plugin is None:
            raise AttributeError(f"No plugin named '{name}' on dispatcher '{self.name}'")
        return plugin

    def _get_plugin_bucket(self, plugin_name: str) -> Dict[str, Any]:
        bucket = self._plugin_info.get(plugin_name)
        if bucket is None:
            raise AttributeError(f"No plugin named '{plugin_name}' on dispatcher '{self.name}'")
        bucket.setdefault("--base--", {"config": {}, "locals": {}})
        return bucket

    # ------------------------------------------------------------------
    # Runtime flags (stored on plugin_info)
    # ------------------------------------------------------------------
    def set_plugin_enabled(self, entry_name: str, plugin_name: str, enabled: bool = True) -> None:
        bucket = self._get_plugin_bucket(plugin_name)
        entry = bucket.setdefault(entry_name, {"config": {}, "locals": {}})
        entry.setdefault("locals", {})["enabled"] = bool(enabled)

    def is_plugin_enabled(self, entry_name: str, plugin_name: str) -> bool:
        bucket = self._get_plugin_bucket(plugin_name)
        entry_locals = bucket.get(entry_name, {}).get("locals", {})
        if "enabled" in entry_locals:
            return bool(entry_locals["enabled"])
        return bool(bucket["--base--"].get("locals", {}).get("enabled", True))

    # ------------------------------------------------------------------
    # Overrides/hooks
    # ------------------------------------------------------------------
    def _wrap_handler(self, entry: EntryPoint, call_next: Callable) -> Callable:  # type: ignore[override]
        wrapped = call_next
        for plugin in reversed(self._plugins):
            plugin_call = plugin.wrap_handler(self, entry, wrapped)
            wrapped = self._create_wrapper(plugin, entry, plugin_call, wrapped)
        return wrapped

    def _create_wrapper(
        self,
        plugin: BasePlugin,
        entry: EntryPoint,
        plugin_call: Callable,
        next_handler: Callable,
    ) -> Callable:
        @wraps(next_handler)
        def wrapper(*args, **kwargs):
            if not self.is_plugin_enabled(entry.name, plugin.name):
                return next_handler(*args, **kwargs)
            return plugin_call(*args, **kwargs)

        return wrapper

    def _apply_plugin(self, plugin: BasePlugin, entry: EntryPoint) -> None:
        if plugin.name not in entry.plugins:
            entry.plugins.append(plugin.name)
        plugin.on_decore(self, entry.func, entry)

    def _after_entry_registered(self, entry: EntryPoint) -> None:  # type: ignore[override]
        for pname, cfg in entry.metadata.get("plugin_config", {}).items():
            bucket = self._plugin_info.setdefault(
                pname, {"--base--": {"config": {}, "locals": {}}}
            )
            bucket.setdefault(entry.name, {"config": {}, "locals": {}})["config"].update(cfg)
        for plugin in self._plugins:
            self._apply_plugin(plugin, entry)
