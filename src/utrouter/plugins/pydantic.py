"""Pydantic validation plugin.

Entry points receive their arguments from ledger calls as plain data (lists of
dicts for outputs and actions, ints for tags). This plugin builds a Pydantic
model from each entry point's type hints at registration and, at call time,
validates and coerces the annotated arguments before the entry point runs.

- ``on_decore``: resolve hints with ``get_type_hints`` (failure → no model),
  drop ``return``, build ``<func>_Model`` with ``create_model`` and store
  ``{"model", "hints", "signature"}`` in ``entry.metadata["pydantic"]``.
- ``wrap_handler``: bind args to the signature, validate the annotated ones,
  pass the rest through unchanged. Failures raise ``ValidationError`` titled
  ``"Validation error in <entry>"``.
- ``configure(disabled=False)`` turns validation off dispatcher-wide or per
  entry, read at call time.

Registered globally as ``"pydantic"`` on import.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, get_type_hints

from pydantic import ConfigDict, ValidationError, create_model

from utrouter.core.dispatcher import Dispatcher
from utrouter.plugins._base_plugin import BasePlugin, EntryPoint


class PydanticPlugin(BasePlugin):
    """Validate entry-point inputs with Pydantic using type hints."""

    plugin_code = "pydantic"
    plugin_description = "Validates entry-point inputs using Pydantic type hints"

    def configure(self, disabled: bool = False):
        """Storage is handled by the wrapper added in ``__init_subclass__``."""
        pass

    def on_decore(self, dispatcher: Any, func: Callable, entry: EntryPoint) -> None:
        try:
            hints = get_type_hints(func)
        except Exception:
            return

        hints.pop("return", None)
        if not hints:
            return

        sig = inspect.signature(func)
        fields = {}
        for param_name, hint in hints.items():
            param = sig.parameters.get(param_name)
            if param is None:
                raise ValueError(
                    f"Entry point '{func.__name__}' has type hint for '{param_name}' "
                    f"which is not in the function signature"
                )
            if param.default is inspect.Parameter.empty:
                fields[param_name] = (hint, ...)
            else:
                fields[param_name] = (hint, param.default)

        validation_model = create_model(  # type: ignore[call-overload]
            f"{func.__name__}_Model",
            __config__=ConfigDict(arbitrary_types_allowed=True),
            **fields,
        )
        entry.metadata["pydantic"] = {
            "model": validation_model,
            "hints": hints,
            "signature": sig,
        }

    def wrap_handler(self, dispatcher: Any, entry: EntryPoint, call_next: Callable):
        meta = entry.metadata.get("pydantic", {})
        model = meta.get("model")
        if not model:
            return call_next

        sig = meta["signature"]
        hints = meta["hints"]

        def wrapper(*args, **kwargs):
            if self.configuration(entry.name).get("disabled"):
                return call_next(*args, **kwargs)

            bound = sig.bind(*args, **kwargs)
            bound.apply_defaults()
            args_to_validate = {k: v for k, v in bound.arguments.items() if k in hints}
            other_args = {k: v for k, v in bound.arguments.items() if k not in hints}
            try:
                validated = model(**args_to_validate)
            except ValidationError as exc:
                raise ValidationError.from_exception_data(
                    title=f"Validation error in {entry.name}",
                    line_errors=exc.errors(),
                ) from exc

            final_args = dict(other_args)
            for key, value in validated:
                final_args[key] = value
            return call_next(**final_args)

        return wrapper


Dispatcher.register_plugin(PydanticPlugin)
