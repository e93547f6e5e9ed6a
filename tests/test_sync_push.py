# -*- coding: utf-8 -*-
"""Push işleyicisi doğrulamaları."""

from __future__ import annotations

import threading
import unittest

from _support import (
    OTHER_USER_ID, USER_ID, FakeClock, add_block, add_device, add_note, add_task,
    make_session_factory
)

from notesync.errors import DeviceNotFoundError, SyncCancelledError, SyncRequestValidationError
from notesync.models import Block, Note, OutboxMessage, TaskItem
from notesync.schemas import SyncPushRequest
from notesync.sync.models import PushItemStatus, SyncConflictType, SyncEntityType, SyncLimits
from notesync.sync.pull import get_changes
from notesync.sync.push import push_changes


class PushTestCase(unittest.TestCase):
    """``push_changes`` davranışları."""

    def setUp(self) -> None:
        self.clock = FakeClock()
        self.engine, self.session_factory = make_session_factory()
        self.db = self.session_factory()
        self.device_id = add_device(self.db)

    def tearDown(self) -> None:  # pragma: no cover - test cleanup
        self.db.close()
        self.engine.dispose()

    def _push(self, limits=None, cancel_event=None, **changes):
        payload = {"deviceId": self.device_id, **changes}
        request = SyncPushRequest.model_validate(payload)
        return push_changes(self.db, USER_ID, request, limits=limits, clock=self.clock,
                            cancel_event=cancel_event)

    def _outbox_count(self) -> int:
        return self.db.query(OutboxMessage).count()

    # --- create -------------------------------------------------------------

    def test_create_persists_task_and_outbox(self) -> None:
        self.clock.advance(minutes=1)
        response = self._push(tasks={"created": [
            {"clientId": "c-1", "date": "2025-01-10", "title": "Süt al"},
        ]})

        result = response.tasks.created[0]
        self.assertEqual(result.status, PushItemStatus.CREATED)
        self.assertEqual(result.version, 1)
        self.assertEqual(response.conflicts, [])

        task = self.db.query(TaskItem).filter(TaskItem.id == result.server_id).one()
        self.assertEqual(task.title, "Süt al")
        self.assertEqual(task.created_at, self.clock())

        message = self.db.query(OutboxMessage).one()
        self.assertEqual(message.message_type, "Task.Created")
        self.assertEqual(message.aggregate_id, task.id)

    def test_created_task_shows_up_in_next_pull(self) -> None:
        checkpoint = get_changes(self.db, USER_ID, clock=self.clock).server_timestamp_utc
        self.clock.advance(minutes=1)
        response = self._push(tasks={"created": [
            {"clientId": "c-1", "date": "2025-01-10", "title": "Süt al"},
        ]})

        pushed = response.tasks.created[0]
        pulled = get_changes(self.db, USER_ID, since_utc=checkpoint, clock=self.clock)
        self.assertEqual([t.id for t in pulled.tasks.created], [pushed.server_id])
        self.assertEqual(pulled.tasks.created[0].version, pushed.version)

    def test_invalid_create_fails_without_conflict(self) -> None:
        response = self._push(tasks={"created": [
            {"clientId": "bad", "date": "2025-01-10", "title": "   "},
            {"clientId": "good", "date": "2025-01-10", "title": "Geçerli"},
        ]})

        bad, good = response.tasks.created
        self.assertEqual(bad.status, PushItemStatus.FAILED)
        self.assertIsNone(bad.server_id)
        self.assertIn("Task.Title.Empty", [e.code for e in bad.errors])
        self.assertEqual(good.status, PushItemStatus.CREATED)
        self.assertEqual(response.conflicts, [])
        self.assertEqual(self.db.query(TaskItem).count(), 1)
        self.assertEqual(self._outbox_count(), 1)

    def test_replayed_create_returns_existing_entity(self) -> None:
        item = {"clientId": "c-1", "date": "2025-01-10", "title": "Süt al"}
        first = self._push(tasks={"created": [item]}).tasks.created[0]
        replay = self._push(tasks={"created": [item, item]}).tasks.created

        self.assertEqual([r.server_id for r in replay], [first.server_id, first.server_id])
        self.assertTrue(all(r.status == PushItemStatus.CREATED for r in replay))
        self.assertEqual(self.db.query(TaskItem).count(), 1)
        self.assertEqual(self._outbox_count(), 1)

    def test_same_client_id_from_two_devices_creates_two_entities(self) -> None:
        device_a = self.device_id
        device_b = add_device(self.db)

        first = self._push(tasks={"created": [
            {"clientId": "1", "date": "2025-01-10", "title": "A görevi"}]}).tasks.created[0]
        self.device_id = device_b
        second = self._push(tasks={"created": [
            {"clientId": "1", "date": "2025-01-10", "title": "B görevi"}]}).tasks.created[0]

        self.assertEqual((first.status, second.status),
                         (PushItemStatus.CREATED, PushItemStatus.CREATED))
        self.assertNotEqual(first.server_id, second.server_id)
        titles = {t.origin_device_id: t.title for t in self.db.query(TaskItem).all()}
        self.assertEqual(titles, {device_a: "A görevi", device_b: "B görevi"})
        self.assertEqual(self._outbox_count(), 2)

        # Aynı cihazdan tekrar gönderim hâlâ kopya üretmez
        replay = self._push(tasks={"created": [
            {"clientId": "1", "date": "2025-01-10", "title": "B görevi"}]}).tasks.created[0]
        self.assertEqual(replay.server_id, second.server_id)
        self.assertEqual(self.db.query(TaskItem).count(), 2)

    def test_block_can_reference_note_created_in_same_push(self) -> None:
        response = self._push(
            notes={"created": [{"clientId": "n-1", "date": "2025-01-10", "title": "Toplantı"}]},
            blocks={"created": [
                {"clientId": "b-1", "parentClientId": "n-1", "type": 0, "position": "a0",
                 "textContent": "Gündem"},
            ]},
        )

        note_id = response.notes.created[0].server_id
        block_result = response.blocks.created[0]
        self.assertEqual(block_result.status, PushItemStatus.CREATED)
        block = self.db.query(Block).filter(Block.id == block_result.server_id).one()
        self.assertEqual(block.parent_id, note_id)

    def test_block_with_missing_parent_reports_conflict(self) -> None:
        response = self._push(blocks={"created": [
            {"clientId": "b-1", "parentId": "nope", "type": 0, "position": "a0"},
        ]})

        self.assertEqual(response.blocks.created[0].status, PushItemStatus.FAILED)
        conflict = response.conflicts[0]
        self.assertEqual(conflict.entity_type, SyncEntityType.BLOCK)
        self.assertEqual(conflict.conflict_type, SyncConflictType.PARENT_NOT_FOUND)
        self.assertEqual(conflict.entity_id, "b-1")
        self.assertEqual(self.db.query(Block).count(), 0)

    # --- update -------------------------------------------------------------

    def test_matching_version_updates_once(self) -> None:
        task = add_task(self.db, self.clock)
        self.clock.advance(minutes=1)
        response = self._push(tasks={"updated": [
            {"id": task.id, "expectedVersion": 1, "date": "2025-01-11", "title": "Yeni"},
        ]})

        result = response.tasks.updated[0]
        self.assertEqual(result.status, PushItemStatus.UPDATED)
        self.assertEqual(result.new_version, 2)
        self.db.refresh(task)
        self.assertEqual(task.title, "Yeni")
        self.assertEqual(task.updated_at, self.clock())
        self.assertEqual(self._outbox_count(), 1)

    def test_stale_update_reports_version_mismatch(self) -> None:
        task = add_task(self.db, self.clock)
        task.update(date=task.date, title="Sunucuda değişti", now=self.clock.advance(minutes=1))
        self.db.commit()

        response = self._push(tasks={"updated": [
            {"id": task.id, "expectedVersion": 1, "date": "2025-01-10", "title": "İstemci"},
        ]})

        self.assertEqual(response.tasks.updated[0].status, PushItemStatus.CONFLICT)
        conflict = response.conflicts[0]
        self.assertEqual(conflict.conflict_type, SyncConflictType.VERSION_MISMATCH)
        self.assertEqual((conflict.client_version, conflict.server_version), (1, 2))
        self.assertEqual(conflict.server_entity["title"], "Sunucuda değişti")
        self.assertEqual(conflict.server_entity["version"], 2)

        self.db.refresh(task)
        self.assertEqual(task.version, 2)
        self.assertEqual(self._outbox_count(), 0)

    def test_update_of_missing_or_deleted_entity(self) -> None:
        task = add_task(self.db, self.clock)
        task.soft_delete(self.clock.advance(minutes=1))
        self.db.commit()
        foreign = add_task(self.db, self.clock, user_id=OTHER_USER_ID)

        response = self._push(tasks={"updated": [
            {"id": "missing", "expectedVersion": 1, "date": "2025-01-10", "title": "x"},
            {"id": task.id, "expectedVersion": 2, "date": "2025-01-10", "title": "x"},
            {"id": foreign.id, "expectedVersion": 1, "date": "2025-01-10", "title": "x"},
        ]})

        self.assertEqual([r.status for r in response.tasks.updated], [PushItemStatus.NOT_FOUND] * 3)
        self.assertEqual(
            [c.conflict_type for c in response.conflicts],
            [SyncConflictType.NOT_FOUND, SyncConflictType.DELETED_ON_SERVER,
             SyncConflictType.NOT_FOUND],
        )

    def test_invalid_update_leaves_entity_untouched(self) -> None:
        task = add_task(self.db, self.clock)
        response = self._push(tasks={"updated": [
            {"id": task.id, "expectedVersion": 1, "date": "2025-01-10", "title": ""},
        ]})

        result = response.tasks.updated[0]
        self.assertEqual(result.status, PushItemStatus.VALIDATION_FAILED)
        self.assertEqual(response.conflicts, [])
        self.db.refresh(task)
        self.assertEqual((task.title, task.version), ("Rapor yaz", 1))

    def test_second_update_in_batch_keeps_first(self) -> None:
        task = add_task(self.db, self.clock)
        self.clock.advance(minutes=1)
        response = self._push(tasks={"updated": [
            {"id": task.id, "expectedVersion": 1, "date": "2025-01-10", "title": "İlk"},
            {"id": task.id, "expectedVersion": 2, "date": "2025-01-10", "title": ""},
        ]})

        self.assertEqual([r.status for r in response.tasks.updated],
                         [PushItemStatus.UPDATED, PushItemStatus.VALIDATION_FAILED])
        self.db.refresh(task)
        self.assertEqual((task.title, task.version), ("İlk", 2))

    def test_unchanged_block_update_keeps_version(self) -> None:
        note = add_note(self.db, self.clock)
        block = add_block(self.db, self.clock, note, position="a0", text="Aynı")
        response = self._push(blocks={"updated": [
            {"id": block.id, "expectedVersion": 1, "position": "a0", "textContent": "Aynı"},
        ]})

        result = response.blocks.updated[0]
        self.assertEqual((result.status, result.new_version), (PushItemStatus.UPDATED, 1))
        self.assertEqual(self._outbox_count(), 0)

    # --- delete -------------------------------------------------------------

    def test_delete_is_idempotent(self) -> None:
        task = add_task(self.db, self.clock)
        first = self._push(tasks={"deleted": [{"id": task.id}]}).tasks.deleted[0]
        second = self._push(tasks={"deleted": [{"id": task.id}]}).tasks.deleted[0]
        missing = self._push(tasks={"deleted": [{"id": "missing"}]}).tasks.deleted[0]

        self.assertEqual((first.status, first.new_version), (PushItemStatus.DELETED, 2))
        self.assertEqual((second.status, second.new_version),
                         (PushItemStatus.ALREADY_DELETED, 2))
        self.assertEqual(missing.status, PushItemStatus.NOT_FOUND)
        self.assertEqual(self._outbox_count(), 1)

    def test_delete_ignores_stale_expected_version(self) -> None:
        task = add_task(self.db, self.clock)
        task.mark_completed(self.clock.advance(minutes=1))
        self.db.commit()

        result = self._push(tasks={"deleted": [{"id": task.id, "expectedVersion": 1}]})
        self.assertEqual(result.tasks.deleted[0].status, PushItemStatus.DELETED)
        self.assertEqual(result.conflicts, [])

    # --- istek seviyesi -----------------------------------------------------

    def test_foreign_device_rejects_whole_push(self) -> None:
        self.device_id = add_device(self.db, user_id=OTHER_USER_ID)
        with self.assertRaises(DeviceNotFoundError):
            self._push(tasks={"created": [
                {"clientId": "c-1", "date": "2025-01-10", "title": "Süt al"},
            ]})
        self.assertEqual(self.db.query(TaskItem).count(), 0)
        self.assertEqual(self._outbox_count(), 0)

    def test_size_limits_reject_before_processing(self) -> None:
        limits = SyncLimits(max_push_items_per_list=2, max_push_items_total=3)
        item = {"date": "2025-01-10", "title": "x"}

        with self.assertRaises(SyncRequestValidationError) as ctx:
            self._push(limits=limits, tasks={"created": [
                dict(item, clientId=f"c-{i}") for i in range(3)]})
        self.assertIn("Sync.List.TooLarge", [e.code for e in ctx.exception.errors])

        with self.assertRaises(SyncRequestValidationError) as ctx:
            self._push(limits=limits,
                       tasks={"created": [dict(item, clientId=f"t-{i}") for i in range(2)]},
                       notes={"deleted": [{"id": "a"}, {"id": "b"}]})
        self.assertEqual([e.code for e in ctx.exception.errors], ["Sync.Request.TooLarge"])
        self.assertEqual(self.db.query(TaskItem).count(), 0)

    def test_missing_device_id_is_rejected(self) -> None:
        self.device_id = " "
        with self.assertRaises(SyncRequestValidationError) as ctx:
            self._push()
        self.assertEqual([e.code for e in ctx.exception.errors], ["Sync.DeviceId.Empty"])

    def test_cancelled_push_writes_nothing(self) -> None:
        cancel_event = threading.Event()
        cancel_event.set()
        with self.assertRaises(SyncCancelledError):
            self._push(cancel_event=cancel_event, tasks={"created": [
                {"clientId": "c-1", "date": "2025-01-10", "title": "Süt al"},
            ]})
        self.assertEqual(self.db.query(TaskItem).count(), 0)
        self.assertEqual(self._outbox_count(), 0)

    def test_items_are_independent_across_types(self) -> None:
        note = add_note(self.db, self.clock)
        response = self._push(
            tasks={"created": [{"clientId": "c-1", "date": "2025-01-10", "title": ""}]},
            notes={"updated": [{"id": note.id, "expectedVersion": 1, "date": "2025-01-10",
                                "title": "Güncel not"}]},
        )

        self.assertEqual(response.tasks.created[0].status, PushItemStatus.FAILED)
        self.assertEqual(response.notes.updated[0].status, PushItemStatus.UPDATED)
        self.assertEqual(self.db.query(Note).filter(Note.id == note.id).one().version, 2)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
