"""
Synchronization of locally pending QR code writes to the remote store
"""
import asyncio
import logging
import weakref
from enum import Enum
from typing import Optional

from qr_feedback.domain.exceptions import QRFeedbackError
from qr_feedback.domain.models import QRCodeRecord
from qr_feedback.infrastructure.persistence import PendingIdStore, PersistenceAdapter

from .cache import QRCodeCache
from .network import NetworkMonitor

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    SYNCING = "syncing"


class SyncManager:
    """Pushes pending local writes to the remote adapter.

    A pending id leaves the set only after the remote copy has been read
    back. Nothing here raises to callers; failures are logged and the id
    stays pending for the next pass.
    """

    def __init__(
        self,
        remote: PersistenceAdapter[QRCodeRecord],
        local: PersistenceAdapter[QRCodeRecord],
        pending: PendingIdStore,
        network: NetworkMonitor,
        cache: QRCodeCache,
        interval_seconds: float = 30.0,
    ):
        self.remote = remote
        self.local = local
        self.pending = pending
        self.network = network
        self.cache = cache
        self.interval_seconds = interval_seconds

        self._lock = asyncio.Lock()
        # Per-id write locks shared with QRCodeManager; an entry lives while someone holds or awaits it
        self._id_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._in_flight = 0
        self._task: Optional[asyncio.Task] = None

        network.on_online(self._on_online)

    def lock_for(self, id: str) -> asyncio.Lock:
        """The lock serializing every write to one QR code id."""
        lock = self._id_locks.get(id)
        if lock is None:
            lock = asyncio.Lock()
            self._id_locks[id] = lock
        return lock

    def record_pending_write(self, id: str) -> None:
        self.pending.add(id)

    async def _sync_one(self, id: str) -> bool:
        async with self.lock_for(id):
            # A write that reached the remote meanwhile already settled this id
            if id not in self.pending:
                return False

            local = await self.local.get(id)
            if local is None:
                logger.info(f"Pending QR code {id} has no local copy, dropping it")
                self.pending.discard(id)
                return False

            await self.remote.put(local)
            if await self.remote.get(id) is None:
                logger.warning(f"QR code {id} not visible remotely after sync, keeping it pending")
                return False

            self.pending.discard(id)
            self.cache.invalidate(id)
            return True

    async def sync_pending_records(self) -> int:
        """One pass over the pending set; returns how many ids were confirmed."""
        if not self.network.is_online:
            logger.info("Offline, skipping pending QR code sync")
            return 0

        synced = 0
        for id in self.pending.ids():
            try:
                if await self._sync_one(id):
                    synced += 1
            except (QRFeedbackError, ValueError) as e:
                logger.warning(f"Failed to sync QR code {id}: {e}")

        if synced:
            logger.info(f"Synced {synced} pending QR code(s)")
        return synced

    async def _run_pass(self) -> int:
        self._in_flight += 1
        try:
            async with self._lock:
                return await self.sync_pending_records()
        except QRFeedbackError as e:
            logger.error(f"Sync pass failed: {e}")
            return 0
        finally:
            self._in_flight -= 1

    async def _on_online(self) -> None:
        await self._run_pass()

    def get_synchronization_status(self) -> SyncStatus:
        if not self.network.is_online:
            return SyncStatus.OFFLINE
        if self._in_flight > 0 or len(self.pending) > 0:
            return SyncStatus.SYNCING
        return SyncStatus.ONLINE

    async def force_synchronization(self) -> bool:
        """Drop caches, re-probe the network and run a sync pass.

        Returns False when the remote store is unreachable.
        """
        self._in_flight += 1
        try:
            self.cache.clear()
            # refresh() runs the online listener itself on an offline -> online flip
            was_online = self.network.is_online
            online = await self.network.refresh()
            if not online:
                return False
            if was_online:
                await self._run_pass()
            return True
        finally:
            self._in_flight -= 1

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            was_online = self.network.is_online
            online = await self.network.refresh()
            # an offline -> online flip already ran a pass via the listener
            if online and was_online and len(self.pending):
                await self._run_pass()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())
            logger.info(f"Background sync every {self.interval_seconds}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
