"""
Navigator Capability
====================
The engine holds an optional, non-owning handle to the camera/navigator of
the host application. It is read only for bookkeeping (viewport size).
"""
from __future__ import annotations

import logging
import weakref
from typing import Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Navigator(Protocol):
    """The narrow surface the engine is allowed to see."""

    def width(self) -> int: ...

    def height(self) -> int: ...

    def mode(self) -> int: ...


class NavigatorHandle:
    """
    Weak reference to a :class:`Navigator`.

    The host owns the navigator; once it is collected the handle simply
    resolves to ``None``.
    """

    def __init__(self, navigator: Optional[Navigator] = None) -> None:
        self._ref: Optional[weakref.ReferenceType[Navigator]] = None
        self.attach(navigator)

    def attach(self, navigator: Optional[Navigator]) -> None:
        if navigator is None:
            self._ref = None
            return
        if not isinstance(navigator, Navigator):
            raise TypeError(f"{type(navigator).__name__} does not implement width/height/mode.")
        self._ref = weakref.ref(navigator)
        logger.debug(f"Navigator attached: {type(navigator).__name__}")

    def get(self) -> Optional[Navigator]:
        return self._ref() if self._ref is not None else None

    def viewport(self) -> Optional[tuple[int, int]]:
        """(width, height) of the live navigator, or None."""
        nav = self.get()
        if nav is None:
            return None
        return int(nav.width()), int(nav.height())
