"""Logging plugin.

Responsibilities
----------------
- Wrap each entry-point call and emit:
  * ``before`` (default True): ``"{entry.name} start"``
  * ``after`` (default True): ``"{entry.name} end (<ms> ms)"`` with
    ``{elapsed:.2f}`` formatting, or ``"{entry.name} failed (<ms> ms): <exc>"``
    when the entry point raises (the exception still propagates).
- Sinks:
  * ``print`` true → ``print(message)``;
  * else ``log`` true → ``logger.info(message)`` when the logger reports
    handlers, otherwise ``print(message)`` so nothing is dropped;
  * else → no output.
- ``enabled`` gates the plugin entirely (default True).
- Logger defaults to ``logging.getLogger("utrouter")``.

Configuration
-------------
Keys ``enabled``, ``before``, ``after``, ``log``, ``print`` at plug time, per
entry from the decorator (``logging_before=False``, ``logging_flags="after:off"``)
or at runtime through ``dispatcher.logging.configure(...)``.

Registered globally as ``"logging"`` on import.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from utrouter.core.dispatcher import Dispatcher
from utrouter.plugins._base_plugin import BasePlugin, EntryPoint


class LoggingPlugin(BasePlugin):
    """Logs entry-point calls with timing."""

    plugin_code = "logging"
    plugin_description = "Logs entry-point calls with timing"

    __slots__ = ("_logger",)

    def __init__(self, dispatcher, *, logger: Optional[logging.Logger] = None, **cfg):
        self._logger = logger or logging.getLogger("utrouter")
        super().__init__(dispatcher, **cfg)

    def configure(
        self,
        enabled: bool = True,
        before: bool = True,
        after: bool = True,
        log: bool = True,
        print: bool = False,  # noqa: A002 - shadowing builtin intentionally
    ):
        """Storage is handled by the wrapper added in ``__init_subclass__``."""
        pass

    def _emit(self, message: str, *, cfg: Optional[dict] = None):
        if cfg is None:
            return
        if cfg.get("print"):
            print(message)
            return
        if cfg.get("log"):
            logger = self._logger
            has_handlers = getattr(logger, "hasHandlers", None) or getattr(
                logger, "has_handlers", None
            )
            if callable(has_handlers) and has_handlers():
                logger.info(message)
            else:
                print(message)

    def wrap_handler(self, dispatcher, entry: EntryPoint, call_next: Callable):
        def logged(*args, **kwargs):
            cfg = self._effective_config(entry.name)
            if not cfg["enabled"]:
                return call_next(*args, **kwargs)
            if cfg["before"]:
                self._emit(f"{entry.name} start", cfg=cfg)
            t0 = time.perf_counter()
            try:
                result = call_next(*args, **kwargs)
            except Exception as exc:
                if cfg["after"]:
                    elapsed = (time.perf_counter() - t0) * 1000
                    self._emit(f"{entry.name} failed ({elapsed:.2f} ms): {exc!r}", cfg=cfg)
                raise
            elapsed = (time.perf_counter() - t0) * 1000
            if cfg["after"]:
                self._emit(f"{entry.name} end ({elapsed:.2f} ms)", cfg=cfg)
            return result

        return logged

    def _effective_config(self, entry_name: str) -> dict:
        defaults = {"enabled": True, "before": True, "after": True, "log": True, "print": False}
        cfg = defaults | self.configuration(entry_name)
        flags = cfg.pop("flags", None)
        if isinstance(flags, str):
            cfg.update(self._parse_flags(flags))
        return {key: defaults[key] if cfg.get(key) is None else bool(cfg[key]) for key in defaults}


Dispatcher.register_plugin(LoggingPlugin)
