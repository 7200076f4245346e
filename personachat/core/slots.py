"""
Process slots - process-wide state that survives module reloads.

The event bus, the broadcast hub and the application runtime hold live
callback registrations. If the module that created them is re-executed
(``importlib.reload``, a dev server re-importing application code), a plain
module global is reset to a fresh, empty instance while the listeners
registered on the old instance stay attached. Everything that owns such
registrations is therefore stored here instead.

Reuse rule:
    The slot table is attached to the ``sys`` module, which is never
    reloaded. ``get_or_create`` returns the existing object for a name if
    one is present and only calls the factory otherwise. A reloaded module
    thus picks up the instance (and registry) created before the reload.

Usage:
    >>> from personachat.core import slots
    >>> bus = slots.get_or_create("event_bus", MessageEventBus)
"""

from collections.abc import Callable
import logging
import sys
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SLOT_ATTR = "_personachat_process_slots"


def _table() -> dict[str, Any]:
    table = getattr(sys, _SLOT_ATTR, None)
    if table is None:
        table = {}
        setattr(sys, _SLOT_ATTR, table)
    return table


def get_or_create(name: str, factory: Callable[[], T]) -> T:
    """
    Return the object stored under ``name``, creating it on first use.

    Args:
        name: Slot name
        factory: Zero-argument callable building the object

    Returns:
        The process-wide instance for this slot
    """
    table = _table()
    if name not in table:
        table[name] = factory()
        logger.debug("Created process slot '%s'", name)
    return table[name]


def get(name: str) -> Any | None:
    """Return the object in a slot, or None if the slot is empty."""
    return _table().get(name)


def put(name: str, value: Any) -> None:
    """Replace the object in a slot (tests, custom wiring)."""
    _table()[name] = value


def clear(name: str) -> Any | None:
    """Empty a slot and return what it held."""
    return _table().pop(name, None)


def clear_all() -> None:
    """Empty every slot."""
    _table().clear()


def names() -> list[str]:
    """Names of occupied slots."""
    return sorted(_table())


__all__ = [
    "clear",
    "clear_all",
    "get",
    "get_or_create",
    "names",
    "put",
]
