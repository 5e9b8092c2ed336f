"""Plugin contract used by the entry-point dispatcher.

Objects
~~~~~~~
``EntryPoint``
    Dataclass capturing entry-point metadata at registration time. Fields:

    - ``name`` – selector under which the entry point is reachable
    - ``func`` – bound callable invoked by the dispatcher
    - ``dispatcher`` – Dispatcher instance that owns the entry point
    - ``plugins`` – plugin names applied to the entry point (order matters)
    - ``metadata`` – mutable dict (``payable`` lives here, plugins annotate it)

``BasePlugin``
    Base class every plugin subclasses. Required class attributes:

    - ``plugin_code`` – identifier used for registration (e.g. ``"logging"``)
    - ``plugin_description`` – human-readable description

    Constructor: ``BasePlugin(dispatcher, **config)``; ``config`` goes through
    ``configure()``.

    ``configure(**config)``
        Declares accepted options through its signature. ``__init_subclass__``
        wraps it so that:
        - ``flags`` (``"enabled,before:off"``) is parsed into booleans
        - ``_target`` selects where config is written: ``"--base--"``
          (dispatcher-wide, default), an entry name, or ``"a,b"`` for several
        - the remaining kwargs are checked with pydantic ``validate_call``
        - validated values are written to the dispatcher's plugin store

    ``configuration(entry_name=None)``
        Merged view: dispatcher-wide config overlaid with the entry override.

    ``on_decore(dispatcher, func, entry)``
        Called once per registered entry point.

    ``wrap_handler(dispatcher, entry, call_next)``
        Returns the middleware layer for an entry point; identity by default.

Configuration lives on the dispatcher (``_plugin_info``) so every plugin reads
and writes it the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import validate_call

__all__ = ["BasePlugin", "EntryPoint"]


@dataclass
class EntryPoint:
    """Metadata for a registered entry point."""

    name: str
    func: Callable
    dispatcher: Any
    plugins: List[str]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def payable(self) -> bool:
        return bool(self.metadata.get("payable", False))


def _wrap_configure(original_configure: Callable) -> Callable:
    """Wrap a plugin's configure() to handle flags, _target, validation and storage."""
    validated = validate_call(original_configure)

    def wrapper(
        self: "BasePlugin", *, _target: str = "--base--", flags: Optional[str] = None, **kwargs: Any
    ) -> None:
        if flags:
            kwargs.update(self._parse_flags(flags))

        if "," in _target:
            for target in [t.strip() for t in _target.split(",") if t.strip()]:
                wrapper(self, _target=target, **kwargs)
            return

        validated(self, **kwargs)
        self._write_config(_target, kwargs)

    return wrapper


class BasePlugin:
    """Hook interface + configuration helpers for dispatcher plugins."""

    __slots__ = ("name", "_dispatcher")

    plugin_code: str = ""
    plugin_description: str = ""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "configure" in cls.__dict__:
            cls.configure = _wrap_configure(cls.__dict__["configure"])

    def __init__(self, dispatcher: Any, **config: Any):
        self.name = self.plugin_code
        self._dispatcher = dispatcher
        self._init_store()
        self.configure(**config)

    def _init_store(self) -> None:
        store = self._get_store()
        store.setdefault(self.name, {}).setdefault(
            "--base--", {"config": {"enabled": True}, "locals": {}}
        )

    def configure(self, *, _target: str = "--base--", flags: Optional[str] = None) -> None:
        """Accept only ``flags``; subclasses declare their own options."""
        if flags:
            self._write_config(_target, self._parse_flags(flags))

    def _write_config(self, target: str, config: Dict[str, Any]) -> None:
        if not config:
            return
        plugin_bucket = self._get_store().setdefault(self.name, {})
        bucket = plugin_bucket.setdefault(target, {"config": {}, "locals": {}})
        bucket["config"].update(config)

    def configuration(self, entry_name: Optional[str] = None) -> Dict[str, Any]:
        """Read merged configuration (base + optional per-entry override)."""
        plugin_bucket = self._get_store().get(self.name)
        if not plugin_bucket:
            return {}
        merged = dict(plugin_bucket.get("--base--", {}).get("config", {}))
        if entry_name:
            merged.update(plugin_bucket.get(entry_name, {}).get("config", {}))
        return merged

    def _parse_flags(self, flags: str) -> Dict[str, bool]:
        mapping: Dict[str, bool] = {}
        for chunk in flags.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            if ":" in chunk:
                name, value = chunk.split(":", 1)
                mapping[name.strip()] = value.strip().lower() != "off"
            else:
                mapping[chunk] = True
        return mapping

    def on_decore(
        self, dispatcher: Any, func: Callable, entry: EntryPoint
    ) -> None:  # pragma: no cover - default no-op
        """Hook run when the entry point is registered."""

    def wrap_handler(
        self,
        dispatcher: Any,
        entry: EntryPoint,
        call_next: Callable,
    ) -> Callable:
        """Wrap entry-point invocation; default passthrough."""
        return call_next

    def _get_store(self) -> Dict[str, Any]:
        return getattr(self._dispatcher, "_plugin_info")
