# -*- coding: utf-8 -*-
"""Not silindiğinde blokların da silinmesi."""

from __future__ import annotations

import unittest
from unittest import mock

from _support import USER_ID, FakeClock, add_block, add_device, add_note, make_session_factory

from notesync.errors import DomainError, DomainResult
from notesync.models import Block, OutboxMessage
from notesync.notes import cascade_delete_note_blocks
from notesync.outbox import build_outbox_message
from notesync.schemas import SyncPushRequest
from notesync.sync.models import PushItemStatus
from notesync.sync.pull import get_changes
from notesync.sync.push import push_changes


class NoteCascadeTestCase(unittest.TestCase):
    """Not silme yayılımı."""

    def setUp(self) -> None:
        self.clock = FakeClock()
        self.engine, session_factory = make_session_factory()
        self.db = session_factory()
        self.device_id = add_device(self.db)
        self.note = add_note(self.db, self.clock)
        self.blocks = [
            add_block(self.db, self.clock, self.note, position=f"a{i}", text=f"Madde {i}")
            for i in range(3)
        ]

    def tearDown(self) -> None:  # pragma: no cover - test cleanup
        self.db.close()
        self.engine.dispose()

    def test_push_delete_cascades_to_blocks(self) -> None:
        checkpoint = get_changes(self.db, USER_ID, clock=self.clock).server_timestamp_utc
        self.clock.advance(minutes=1)

        request = SyncPushRequest.model_validate(
            {"deviceId": self.device_id, "notes": {"deleted": [{"id": self.note.id}]}})
        response = push_changes(self.db, USER_ID, request, clock=self.clock)
        self.assertEqual(response.notes.deleted[0].status, PushItemStatus.DELETED)

        blocks = self.db.query(Block).all()
        self.assertTrue(all(b.is_deleted and b.version == 2 for b in blocks))
        self.assertTrue(all(b.deleted_at == self.clock() for b in blocks))
        types = sorted(m.message_type for m in self.db.query(OutboxMessage).all())
        self.assertEqual(types, ["Block.Deleted"] * 3 + ["Note.Deleted"])

        pulled = get_changes(self.db, USER_ID, since_utc=checkpoint, clock=self.clock)
        self.assertEqual([d.id for d in pulled.notes.deleted], [self.note.id])
        self.assertEqual({d.id for d in pulled.blocks.deleted}, {b.id for b in self.blocks})
        self.assertEqual(pulled.blocks.created, [])

    def test_already_deleted_blocks_are_skipped(self) -> None:
        self.blocks[0].soft_delete(self.clock.advance(minutes=1))
        self.db.commit()

        deleted = cascade_delete_note_blocks(self.db, self.note, self.device_id,
                                             self.clock.advance(minutes=1))
        self.assertEqual(len(deleted), 2)
        self.db.refresh(self.blocks[0])
        self.assertEqual(self.blocks[0].version, 2)

    def test_outbox_failure_skips_only_that_block(self) -> None:
        failing_id = self.blocks[1].id

        def flaky_outbox(entity, event, device_id, now):
            if entity.id == failing_id:
                return DomainResult.failure(DomainError("Outbox.Payload.Empty", "boom"))
            return build_outbox_message(entity, event, device_id, now)

        now = self.clock.advance(minutes=1)
        with mock.patch("notesync.notes.build_outbox_message", side_effect=flaky_outbox):
            with self.assertLogs("notesync.notes", level="WARNING"):
                deleted = cascade_delete_note_blocks(self.db, self.note, self.device_id, now)
        self.db.commit()

        self.assertEqual(len(deleted), 2)
        skipped = self.db.query(Block).filter(Block.id == failing_id).one()
        self.assertFalse(skipped.is_deleted)
        self.assertEqual(skipped.version, 1)
        self.assertEqual(self.db.query(OutboxMessage).count(), 2)

    def test_note_without_blocks(self) -> None:
        other = add_note(self.db, self.clock, title="Boş not")
        self.assertEqual(cascade_delete_note_blocks(self.db, other, None, self.clock()), [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
