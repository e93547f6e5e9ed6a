# -*- coding: utf-8 -*-
"""Arka plan işçisi giriş noktası."""

from __future__ import annotations

import json
import signal
import threading
import unittest

from _support import USER_ID, FakeClock, add_task, make_session_factory

from notesync.models import OutboxMessage, TaskItem
from notesync.worker import install_stop_signals, main, parse_args


class WorkerTestCase(unittest.TestCase):
    """``notesync-worker`` komutu."""

    def setUp(self) -> None:
        self.clock = FakeClock()
        self.engine, self.session_factory = make_session_factory()
        db = self.session_factory()
        try:
            db.add(OutboxMessage.create(
                user_id=USER_ID, aggregate_type="Task", aggregate_id="t-0",
                message_type="Task.Created", payload=json.dumps({"i": 0}), now=self.clock(),
            ).value)
            db.commit()
            self.task_id = add_task(db, self.clock, reminder_at_utc=self.clock()).id
        finally:
            db.close()

    def tearDown(self) -> None:  # pragma: no cover - test cleanup
        self.engine.dispose()

    def test_parse_args(self) -> None:
        self.assertFalse(parse_args([]).once)
        self.assertTrue(parse_args(["--once"]).once)

    def test_once_runs_each_worker_a_single_round(self) -> None:
        result = main(["--once"], session_factory=self.session_factory)

        self.assertEqual(result["outbox"], {'processed': 1, 'failed': 0})
        self.assertEqual(result["reminders"], {'sent': 1, 'failed': 0})

        db = self.session_factory()
        try:
            task = db.query(TaskItem).filter(TaskItem.id == self.task_id).one()
            self.assertIsNotNone(task.reminder_sent_at_utc)
            pending = db.query(OutboxMessage).filter(OutboxMessage.processed_at.is_(None)).all()
            # Hatırlatıcı mesajı bir sonraki outbox turunu bekler
            self.assertEqual([m.message_type for m in pending], ["Task.ReminderSent"])
        finally:
            db.close()

    def test_preset_stop_event_returns_immediately(self) -> None:
        stop_event = threading.Event()
        stop_event.set()
        self.assertEqual(main([], session_factory=self.session_factory, stop_event=stop_event), {})

    def test_stop_signal_sets_event(self) -> None:
        stop_event = threading.Event()
        previous = install_stop_signals(stop_event)
        try:
            self.assertEqual(set(previous), {signal.SIGINT, signal.SIGTERM})
            handler = signal.getsignal(signal.SIGTERM)
            with self.assertLogs("notesync.worker", level="INFO"):
                handler(signal.SIGTERM, None)
            self.assertTrue(stop_event.is_set())
        finally:
            for signum, old_handler in previous.items():
                signal.signal(signum, old_handler)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
