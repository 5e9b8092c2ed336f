"""Plugin-free entry-point dispatcher.

:class:`BaseDispatcher` is the callable surface of one contract: it maps
selectors to bound methods and resolves incoming calls. Middleware comes from
subclasses through ``_wrap_handler`` and ``_after_entry_registered``.

Construction
------------
``BaseDispatcher(owner, name=None, *, auto_discover=True)``

- ``owner`` is the contract instance; ``None`` raises ``ValueError``.
- The dispatcher announces itself to the owner through its optional
  ``_register_dispatcher`` hook.
- With ``auto_discover`` every method marked ``@entrypoint(<name>)`` on the
  owner's class hierarchy is registered (reversed MRO, first definition wins).

Marker options named ``<plugin>_<key>`` for a registered plugin end up under
``metadata["plugin_config"]``; anything else (``payable=True``) is plain entry
metadata.

Selectors are positional-only in ``get`` and ``call`` so that entry points may
take an argument called ``selector`` themselves.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from utrouter.plugins._base_plugin import EntryPoint

__all__ = ["BaseDispatcher", "TARGET_ATTR_NAME", "DISPATCHER_REGISTRY_ATTR_NAME"]

TARGET_ATTR_NAME = "__utrouter_entrypoints__"
DISPATCHER_REGISTRY_ATTR_NAME = "__utrouter_dispatcher_registry__"


class BaseDispatcher:
    """Selector table bound to a contract instance."""

    __slots__ = ("instance", "name", "_entries", "_handlers")

    def __init__(self, owner: Any, name: Optional[str] = None, *, auto_discover: bool = True) -> None:
        if owner is None:
            raise ValueError("Dispatcher requires an owner instance")
        self.instance = owner
        self.name = name
        self._entries: Dict[str, EntryPoint] = {}
        self._handlers: Dict[str, Callable] = {}
        hook = getattr(owner, "_register_dispatcher", None)
        if callable(hook):
            hook(self)
        if auto_discover:
            self._register_marked()

    def _is_known_plugin(self, prefix: str) -> bool:
        from utrouter.core.dispatcher import Dispatcher

        return prefix in Dispatcher.available_plugins()

    def _split_options(
        self, options: Dict[str, Any]
    ) -> Tuple[Dict[str, Any], Dict[str, Dict[str, Any]]]:
        metadata: Dict[str, Any] = {}
        plugin_options: Dict[str, Dict[str, Any]] = {}
        for key, value in options.items():
            prefix, _, option = key.partition("_")
            if option and self._is_known_plugin(prefix):
                plugin_options.setdefault(prefix, {})[option] = value
            else:
                metadata[key] = value
        return metadata, plugin_options

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def add_entry(
        self,
        target: Any,
        *,
        name: Optional[str] = None,
        replace: bool = False,
        **options: Any,
    ) -> "BaseDispatcher":
        """Expose ``target`` (a callable or an owner attribute name) as an entry point.

        Raises:
            ValueError: on selector collision when replace is False.
            AttributeError: when the owner has no such attribute.
            TypeError: when ``target`` is neither a string nor a callable.
        """
        if isinstance(target, str):
            bound = getattr(self.instance, target)
        elif callable(target):
            bound = target if inspect.ismethod(target) else target.__get__(self.instance, type(self.instance))
        else:
            raise TypeError(f"Unsupported entry point target: {target!r}")
        metadata, plugin_options = self._split_options(options)
        self._register_callable(bound, name=name, metadata=metadata, replace=replace, plugin_options=plugin_options)
        return self

    def _register_callable(
        self,
        bound: Callable,
        *,
        name: Optional[str],
        metadata: Dict[str, Any],
        replace: bool,
        plugin_options: Dict[str, Dict[str, Any]],
    ) -> None:
        selector = name or bound.__name__
        if selector in self._entries and not replace:
            raise ValueError(f"Entry point collision: {selector}")
        entry = EntryPoint(name=selector, func=bound, dispatcher=self, plugins=[], metadata=metadata)
        if plugin_options:
            entry.metadata["plugin_config"] = plugin_options
        self._entries[selector] = entry
        self._after_entry_registered(entry)
        self._rebuild_handlers()

    def _register_marked(self) -> None:
        for func, marker in self._iter_marked_methods():
            selector = marker.pop("entry_name", None)
            metadata, plugin_options = self._split_options(marker)
            self._register_callable(
                func.__get__(self.instance, type(self.instance)),
                name=selector,
                metadata=metadata,
                replace=False,
                plugin_options=plugin_options,
            )

    def _iter_marked_methods(self) -> Iterator[Tuple[Callable, Dict[str, Any]]]:
        seen: set[int] = set()
        for base in reversed(type(self.instance).__mro__):
            for value in vars(base).values():
                if not inspect.isfunction(value) or id(value) in seen:
                    continue
                seen.add(id(value))
                for marker in getattr(value, TARGET_ATTR_NAME, None) or ():
                    if marker.get("name") == self.name:
                        payload = dict(marker)
                        del payload["name"]
                        yield value, payload

    def _wrap_handler(self, entry: EntryPoint, call_next: Callable) -> Callable:
        return call_next

    def _rebuild_handlers(self) -> None:
        self._handlers = {
            selector: self._wrap_handler(entry, entry.func) for selector, entry in self._entries.items()
        }

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def get(self, selector: str, /) -> Callable:
        """Return the wrapped handler for ``selector``."""
        try:
            return self._handlers[selector]
        except KeyError:
            raise NotImplementedError(f"Entry point '{selector}' not found on '{self.name}'") from None

    def call(self, selector: str, /, *args: Any, **kwargs: Any) -> Any:
        return self.get(selector)(*args, **kwargs)

    def entry(self, selector: str) -> EntryPoint:
        try:
            return self._entries[selector]
        except KeyError:
            raise KeyError(f"Entry point '{selector}' not registered on '{self.name}'") from None

    def entries(self) -> Tuple[str, ...]:
        return tuple(self._handlers)

    def iter_plugins(self) -> list:
        return []

    def _after_entry_registered(self, entry: EntryPoint) -> None:
        return None
