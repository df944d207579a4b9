# tracker/modules.py
"""
Named extensions attached to tracking sessions.

A module is a factory called with the session; whatever it returns is
stored in ``session.modules[name]``. Modules registered while sessions are
alive are attached to them immediately, later sessions pick them up when
they are created.
"""

from __future__ import annotations
from typing import Any, Callable, Dict
import logging
import weakref

logger = logging.getLogger(__name__)


class ModuleRegistry:
    def __init__(self):
        self._factories: Dict[str, Callable[[Any], Any]] = {}
        self._sessions: "weakref.WeakSet" = weakref.WeakSet()
        # id(source) -> session, at most one session per audio source
        self._by_source: Dict[int, Any] = {}

    # -------------------------
    # Modules
    # -------------------------
    def register(self, name: str, factory: Callable[[Any], Any]) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError("module name must be a non-empty string")
        if name in self._factories:
            raise ValueError(f"a module named {name!r} is already registered")
        if not callable(factory):
            raise TypeError("module factory must be callable")

        self._factories[name] = factory
        for session in list(self._sessions):
            self._attach(name, session)
        logger.info("Registered module %r", name)

    def remove(self, name: str) -> None:
        if self._factories.pop(name, None) is None:
            return
        for session in list(self._sessions):
            session.modules.pop(name, None)
        logger.info("Removed module %r", name)

    def names(self):
        return sorted(self._factories)

    def _attach(self, name, session):
        session.modules[name] = self._factories[name](session)

    # -------------------------
    # Sessions
    # -------------------------
    def track(self, session) -> None:
        self._sessions.add(session)
        for name in self._factories:
            self._attach(name, session)

    def untrack(self, session) -> None:
        self._sessions.discard(session)
        for key, owner in list(self._by_source.items()):
            if owner is session:
                del self._by_source[key]
        session.modules.clear()

    def sessions(self):
        return list(self._sessions)

    def claim_source(self, source, session) -> None:
        owner = self._by_source.get(id(source))
        if owner is not None and owner is not session:
            raise ValueError("this audio source already has a tracking session")
        self._by_source[id(source)] = session

    def release_source(self, source, session) -> None:
        if self._by_source.get(id(source)) is session:
            del self._by_source[id(source)]

    def session_for(self, source):
        return self._by_source.get(id(source))


default_registry = ModuleRegistry()
