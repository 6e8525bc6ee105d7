"""
QRCodeManager: generation, dual-path writes, fallbacks, scans, edits and deletes
"""
import asyncio
from datetime import timedelta

import pytest

from qr_feedback.domain.exceptions import TransientIOError, ValidationViolation
from qr_feedback.domain.models import FeedbackRecord, QRCodeUpdate, Sentiment
from qr_feedback.domain.validation import ScanStatus, is_valid

from tests.conftest import make_record


def make_feedback(id, qr_code_id, clock):
    return FeedbackRecord(
        id=id,
        qr_code_id=qr_code_id,
        name="Luis",
        phone_number="555-0101",
        rating=4,
        context="Table 5",
        sentiment=Sentiment.POSITIVE,
        created_at=clock(),
    )


class TestGenerate:
    """generate()"""

    def test_defaults(self, manager, clock):
        record = manager.generate("Table 5")

        assert record.context == "Table 5"
        assert record.created_at == clock()
        assert record.expires_at == clock() + timedelta(hours=24)
        assert record.max_scans == 100
        assert record.current_scans == 0
        assert record.is_active is True
        assert is_valid(record, clock())

    def test_unique_ids(self, manager):
        ids = {manager.generate("Bar").id for _ in range(50)}
        assert len(ids) == 50

    async def test_does_not_persist(self, manager, remote):
        record = manager.generate("Bar")
        assert await manager.get(record.id) is None
        assert remote.calls.count("put") == 0

    @pytest.mark.parametrize("context,hours,scans", [
        ("", 24, 100),
        ("   ", 24, 100),
        ("Bar", 0, 100),
        ("Bar", -1, 100),
        ("Bar", 24, 0),
        ("Bar", 24, -5),
    ])
    def test_rejects_bad_input(self, manager, context, hours, scans):
        with pytest.raises(ValidationViolation):
            manager.generate(context, hours, scans)


class TestScenarios:
    """End-to-end lifecycle scenarios"""

    async def test_scan_limit_reached_after_second_scan(self, manager, clock):
        record = manager.generate("Table 5", 1, 2)
        await manager.store(record)

        once = await manager.increment_scan(record.id)
        assert once.current_scans == 1
        assert is_valid(once, clock())

        twice = await manager.increment_scan(record.id)
        assert twice.current_scans == 2
        assert not is_valid(twice, clock())

    async def test_moving_expiry_into_the_past_invalidates(self, manager, clock):
        record = manager.generate("Room A", 24, 100)
        await manager.store(record)

        updated = await manager.update(record.id, {"expires_at": clock() - timedelta(hours=1)})

        assert not is_valid(updated, clock())
        assert updated.current_scans == 0
        assert not is_valid(await manager.get(record.id), clock())

    async def test_delete_cascades_to_feedback(self, manager, feedback_adapter, clock):
        record = manager.generate("Patio")
        await manager.store(record)
        for i in range(3):
            await feedback_adapter.put(make_feedback(f"f{i}", record.id, clock))
        await feedback_adapter.put(make_feedback("other", "another-qr", clock))

        assert await manager.delete(record.id) is True
        assert await feedback_adapter.get_all({"qr_code_id": record.id}) == []
        assert [f.id for f in await feedback_adapter.get_all()] == ["other"]

    async def test_remote_failure_then_repair(self, manager, remote, services, clock):
        remote.failing = True
        record = manager.generate("Terrace")
        await manager.store(record)

        assert await manager.get(record.id) == record
        assert record.id in services.sync.pending

        remote.failing = False
        assert await services.sync.sync_pending_records() == 1
        assert record.id not in services.sync.pending
        assert record.id in [r.id for r in await remote.get_all()]


class TestProperties:
    """Round-trip, idempotence, cache correctness"""

    async def test_store_get_round_trip(self, manager):
        record = manager.generate("Bar", 5, 10)
        await manager.store(record)
        assert await manager.get(record.id) == record
        assert await manager.get(record.id, refresh=True) == record

    async def test_delete_twice(self, manager):
        record = manager.generate("Bar")
        await manager.store(record)
        assert await manager.delete(record.id) is True
        assert await manager.delete(record.id) is False

    async def test_update_is_visible_immediately(self, manager):
        record = manager.generate("Bar")
        await manager.store(record)
        await manager.get(record.id)  # warm the cache

        await manager.update(record.id, {"context": "Bar (upstairs)"})
        assert (await manager.get(record.id)).context == "Bar (upstairs)"

    async def test_increment_is_visible_immediately(self, manager):
        record = manager.generate("Bar")
        await manager.store(record)
        await manager.get_all()

        await manager.increment_scan(record.id)
        assert (await manager.get(record.id)).current_scans == 1
        assert (await manager.get_all())[0].current_scans == 1

    async def test_concurrent_increments_are_not_lost(self, manager):
        record = manager.generate("Bar", 24, 1000)
        await manager.store(record)

        await asyncio.gather(*(manager.increment_scan(record.id) for _ in range(25)))
        assert (await manager.get(record.id, refresh=True)).current_scans == 25

    async def test_locks_are_shared_and_released(self, manager, services):
        record = manager.generate("Bar")
        await manager.store(record)

        lock = manager._lock_for(record.id)
        shared = services.sync.lock_for(record.id)
        assert shared is lock
        del lock, shared

        await asyncio.gather(*(manager.increment_scan(record.id) for _ in range(5)))
        await manager.update(record.id, {"context": "Bar (upstairs)"})
        assert record.id not in services.sync._id_locks


class TestReads:
    """get/get_all fallbacks"""

    async def test_missing_returns_none(self, manager):
        assert await manager.get("nope") is None
        assert await manager.increment_scan("nope") is None

    async def test_remote_error_falls_back_to_local(self, manager, remote):
        record = manager.generate("Bar")
        await manager.store(record)
        manager.clear_cache()

        remote.failing = True
        assert await manager.get(record.id) == record

    async def test_remote_error_surfaces_when_local_is_empty(self, manager, remote):
        remote.failing = True
        with pytest.raises(TransientIOError):
            await manager.get("unknown")

    async def test_offline_reads_local_only(self, manager, remote, services):
        record = manager.generate("Bar")
        await manager.store(record)
        manager.clear_cache()
        await services.network.set_online(False)

        assert await manager.get(record.id) == record
        assert "get" not in remote.calls

    async def test_local_only_record_is_queued(self, manager, services, clock):
        stray = make_record(clock, "stray")
        await services.qr_codes.local.put(stray)

        assert await manager.get("stray") == stray
        assert "stray" in services.sync.pending

    async def test_pending_local_copy_wins_over_remote(self, manager, remote, clock):
        record = manager.generate("Bar")
        await manager.store(record)

        remote.failing = True
        await manager.update(record.id, {"context": "Newer"})
        remote.failing = False

        assert (await manager.get(record.id, refresh=True)).context == "Newer"

    async def test_get_all_merges_local_only_records(self, manager, remote, services, clock):
        synced = manager.generate("Synced")
        await manager.store(synced)
        clock.advance(minutes=1)

        remote.failing = True
        unsynced = manager.generate("Unsynced")
        await manager.store(unsynced)
        remote.failing = False

        listed = await manager.get_all()
        assert [r.id for r in listed] == [unsynced.id, synced.id]
        assert unsynced.id in services.sync.pending

    async def test_get_all_falls_back_to_local(self, manager, remote):
        record = manager.generate("Bar")
        await manager.store(record)
        manager.clear_cache()

        remote.failing = True
        assert [r.id for r in await manager.get_all()] == [record.id]


class TestUpdateAndDelete:
    """update() and delete() edge cases"""

    @pytest.mark.parametrize("fields", [
        {"id": "other"},
        {"created_at": "2020-01-01T00:00:00Z"},
        {"colour": "red"},
    ])
    async def test_rejected_fields(self, manager, fields):
        record = manager.generate("Bar")
        await manager.store(record)
        with pytest.raises(ValidationViolation):
            await manager.update(record.id, fields)

    async def test_invalid_value_is_not_persisted(self, manager):
        record = manager.generate("Bar")
        await manager.store(record)
        with pytest.raises(ValidationViolation):
            await manager.update(record.id, {"max_scans": 0})
        assert (await manager.get(record.id, refresh=True)).max_scans == 100

    async def test_update_missing(self, manager):
        assert await manager.update("ghost", {"context": "x"}) is None

    async def test_update_accepts_partial_model(self, manager):
        record = manager.generate("Bar")
        await manager.store(record)
        updated = await manager.update(record.id, QRCodeUpdate(is_active=False))
        assert updated.is_active is False
        assert updated.context == "Bar"

    async def test_reactivation(self, manager, clock):
        record = manager.generate("Bar", 1, 1)
        await manager.store(record)
        await manager.increment_scan(record.id)
        clock.advance(hours=2)
        await manager.update(record.id, {"is_active": False})

        revived = await manager.update(record.id, {
            "is_active": True,
            "max_scans": 10,
            "expires_at": clock() + timedelta(hours=1),
        })
        assert is_valid(revived, clock())

    async def test_delete_fails_when_remote_fails(self, manager, remote):
        record = manager.generate("Bar")
        await manager.store(record)

        remote.failing = True
        assert await manager.delete(record.id) is False

    async def test_delete_offline_is_not_attempted(self, manager, remote, services):
        record = manager.generate("Bar")
        await manager.store(record)
        await services.network.set_online(False)

        assert await manager.delete(record.id) is False
        assert "delete" not in remote.calls

    async def test_delete_skips_cascade_when_remote_fails(self, manager, remote, feedback_adapter, clock):
        record = manager.generate("Bar")
        await manager.store(record)
        await feedback_adapter.put(make_feedback("f1", record.id, clock))

        remote.failing = True
        assert await manager.delete(record.id) is False
        assert await feedback_adapter.get("f1") is not None

    async def test_delete_local_only_record(self, manager, remote, services):
        remote.failing = True
        record = manager.generate("Bar")
        await manager.store(record)
        remote.failing = False

        assert await manager.delete(record.id) is True
        assert record.id not in services.sync.pending
        assert await manager.get(record.id) is None


class TestAcceptScan:
    """accept_scan() only counts scans on valid codes"""

    async def test_counts_valid_scan(self, manager):
        record = manager.generate("Bar", 24, 1)
        await manager.store(record)

        check = await manager.accept_scan(record.id)
        assert check.status == ScanStatus.ACTIVE
        assert check.record.current_scans == 1

        again = await manager.accept_scan(record.id)
        assert again.status == ScanStatus.EXHAUSTED
        assert (await manager.get(record.id)).current_scans == 1

    async def test_expired_scan_is_not_counted(self, manager, clock):
        record = manager.generate("Bar", 1, 5)
        await manager.store(record)
        clock.advance(hours=1, seconds=1)

        check = await manager.accept_scan(record.id)
        assert check.status == ScanStatus.EXPIRED
        assert check.record.current_scans == 0

    async def test_missing(self, manager):
        assert (await manager.accept_scan("nope")).status == ScanStatus.NOT_FOUND

    async def test_concurrent_scans_respect_limit(self, manager):
        record = manager.generate("Bar", 24, 3)
        await manager.store(record)

        checks = await asyncio.gather(*(manager.accept_scan(record.id) for _ in range(10)))
        assert sum(c.accepted for c in checks) == 3
        assert (await manager.get(record.id, refresh=True)).current_scans == 3
