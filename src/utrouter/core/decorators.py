"""Decorator helpers for marking contract entry points.

``entrypoint(dispatcher, *, name=None, **kwargs)`` stores a marker on the
function under ``TARGET_ATTR_NAME``; no dispatcher is touched at decoration
time. The marker payload starts with ``{"name": dispatcher}``; ``name`` becomes
``entry_name`` (the selector) and ``**kwargs`` are copied verbatim
(``payable=True``, ``logging_before=False``, ...). Existing markers are kept so
one function can be exposed by several dispatchers.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from .base_dispatcher import TARGET_ATTR_NAME

__all__ = ["entrypoint"]


def entrypoint(dispatcher: str, *, name: Optional[str] = None, **kwargs: Any) -> Callable:
    """Mark a method for inclusion in the given dispatcher.

    Args:
        dispatcher: Dispatcher identifier (e.g. ``"entrypoints"``).
        name: Optional explicit selector (defaults to the function name).
    """

    def decorator(func: Callable) -> Callable:
        markers = list(getattr(func, TARGET_ATTR_NAME, []))
        payload = {"name": dispatcher}
        if name is not None:
            payload["entry_name"] = name
        payload.update(kwargs)
        markers.append(payload)
        setattr(func, TARGET_ATTR_NAME, markers)
        return func

    return decorator
