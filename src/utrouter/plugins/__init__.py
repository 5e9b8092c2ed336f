"""Dispatcher plugins.

Kept free of side effects: the concrete plugins (``logging``, ``pydantic``)
register themselves when imported, which ``utrouter.__init__`` does eagerly.
"""

__all__: list[str] = []
