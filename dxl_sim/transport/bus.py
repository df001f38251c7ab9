from __future__ import annotations

import threading
from typing import Any, Callable


class BusError(RuntimeError):
    pass


class MessageBus:
    """
    In-process pub/sub + request/response bus.

    - topics: subscribe/publish, callbacks run synchronously in the publisher's thread
    - services: one handler per name, call() returns the handler's response
    Callbacks may come from any thread; the bus only guards its own tables.
    """

    def __init__(self, *, initialized: bool = True):
        self._lock = threading.Lock()
        self._initialized = bool(initialized)
        self._subscribers: dict[str, list[Callable[[Any], None]]] = {}
        self._advertised: set[str] = set()
        self._services: dict[str, Callable[[Any], Any]] = {}

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def init(self):
        self._initialized = True

    def shutdown(self):
        with self._lock:
            self._initialized = False
            self._subscribers.clear()
            self._advertised.clear()
            self._services.clear()

    def _require_initialized(self):
        if not self._initialized:
            raise BusError("Message bus is not initialized. Call init() first.")

    def subscribe(self, topic: str, callback: Callable[[Any], None]):
        self._require_initialized()
        with self._lock:
            self._subscribers.setdefault(str(topic), []).append(callback)

    def unsubscribe(self, topic: str, callback: Callable[[Any], None]):
        with self._lock:
            cbs = self._subscribers.get(str(topic), [])
            if callback in cbs:
                cbs.remove(callback)
            if not cbs:
                self._subscribers.pop(str(topic), None)

    def advertise(self, topic: str):
        self._require_initialized()
        with self._lock:
            self._advertised.add(str(topic))

    def unadvertise(self, topic: str):
        with self._lock:
            self._advertised.discard(str(topic))

    def is_advertised(self, topic: str) -> bool:
        with self._lock:
            return str(topic) in self._advertised

    def publish(self, topic: str, msg: Any) -> int:
        """
        Deliver msg to every subscriber of topic. Returns the number of callbacks run.
        """
        self._require_initialized()
        with self._lock:
            cbs = list(self._subscribers.get(str(topic), []))
        for cb in cbs:
            cb(msg)
        return len(cbs)

    def advertise_service(self, name: str, handler: Callable[[Any], Any]):
        self._require_initialized()
        with self._lock:
            if str(name) in self._services:
                raise BusError(f"Service {name!r} is already advertised.")
            self._services[str(name)] = handler

    def unadvertise_service(self, name: str):
        with self._lock:
            self._services.pop(str(name), None)

    def has_service(self, name: str) -> bool:
        with self._lock:
            return str(name) in self._services

    def call(self, name: str, request: Any) -> Any:
        self._require_initialized()
        with self._lock:
            handler = self._services.get(str(name))
        if handler is None:
            raise BusError(f"No service advertised as {name!r}.")
        return handler(request)
