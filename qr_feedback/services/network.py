"""Online/offline presence signal."""

import logging
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[bool]]
Listener = Callable[[], Awaitable[None]]


class NetworkMonitor:
    """Tracks whether the remote store is reachable.

    ``probe`` is usually the remote adapter's ``ping``. Listeners registered
    with ``on_online`` run on every offline -> online transition.
    """

    def __init__(self, probe: Optional[Probe] = None, online: bool = True):
        self._probe = probe
        self._online = online
        self._listeners: List[Listener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def on_online(self, listener: Listener) -> None:
        self._listeners.append(listener)

    async def set_online(self, online: bool) -> None:
        was_online = self._online
        self._online = online

        if online and not was_online:
            logger.info("Network back online")
            for listener in list(self._listeners):
                await listener()
        elif was_online and not online:
            logger.warning("Network offline")

    async def refresh(self) -> bool:
        if self._probe is None:
            return self._online
        try:
            online = await self._probe()
        except Exception as e:
            logger.warning(f"Network probe failed: {e}")
            online = False
        await self.set_online(online)
        return online
