# -*- coding: utf-8 -*-
"""
Hatırlatıcı İzleyici

Zamanı gelmiş görev hatırlatıcılarını bulur, bildirimi gönderir ve
görevi "gönderildi" olarak işaretler. İşaretleme ve outbox mesajı aynı
commit'te kaydedilir; bildirim gönderilemezse görev değişmez ve sonraki
turda tekrar denenir.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from . import repositories
from .config import settings
from .models import TaskItem
from .outbox import TaskEventType, build_outbox_message
from .utils import utcnow

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Varsayılan bildirim gönderici - bildirimi loglar ve başarılı sayar."""

    def __call__(self, task: TaskItem) -> bool:
        logger.info(f"Hatırlatıcı: user={task.user_id}, task={task.id}, başlık={task.title}")
        return True


class ReminderMonitor:
    """Zamanı gelen hatırlatıcıları periyodik olarak işler."""

    def __init__(self, session_factory: Callable[[], Session],
                 notifier: Optional[Callable[[TaskItem], bool]] = None,
                 max_batch_size: int = None, polling_interval_seconds: int = None,
                 clock=utcnow):
        self.session_factory = session_factory
        self.notifier = notifier or LoggingNotifier()
        self.max_batch_size = max_batch_size or settings.REMINDER_MAX_BATCH_SIZE
        self.polling_interval_seconds = (polling_interval_seconds
                                         or settings.REMINDER_POLLING_INTERVAL_SECONDS)
        self.clock = clock

    def process_due_once(self, stop_event: threading.Event = None) -> Dict[str, Any]:
        """
        Bir tur işle.

        Returns:
            {sent, failed}
        """
        result = {'sent': 0, 'failed': 0}
        now = self.clock()

        db = self.session_factory()
        try:
            due = repositories.get_due_reminders(db, now, self.max_batch_size)
            if not due:
                logger.debug("Zamanı gelen hatırlatıcı yok")
                return result

            logger.info(f"Hatırlatıcı: {len(due)} görev işlenecek")

            for task in due:
                if stop_event is not None and stop_event.is_set():
                    break
                if self._process_task(db, task, now):
                    result['sent'] += 1
                else:
                    result['failed'] += 1
        finally:
            db.close()

        return result

    def _process_task(self, db: Session, task: TaskItem, now) -> bool:
        task_id = task.id
        try:
            if not self.notifier(task):
                logger.warning(f"Hatırlatıcı bildirimi gönderilemedi: task={task_id}")
                return False

            sent = task.mark_reminder_sent(now)
            if not sent.is_success:
                logger.warning(
                    f"Hatırlatıcı gönderildi olarak işaretlenemedi: task={task_id}, "
                    f"errors={[e.code for e in sent.errors]}"
                )
                db.rollback()
                return False

            outbox_result = build_outbox_message(task, TaskEventType.REMINDER_SENT, None, now)
            if not outbox_result.is_success:
                logger.warning(
                    f"Hatırlatıcı outbox mesajı oluşturulamadı: task={task_id}, "
                    f"errors={[e.code for e in outbox_result.errors]}"
                )
                db.rollback()
                return False

            db.add(outbox_result.value)
            db.commit()
        except Exception:
            logger.exception(f"Hatırlatıcı işlenirken hata: task={task_id}")
            db.rollback()
            return False

        logger.info(f"Hatırlatıcı gönderildi: task={task_id}")
        return True

    def run(self, stop_event: threading.Event):
        """stop_event set edilene kadar periyodik olarak çalış."""
        logger.info("Hatırlatıcı izleyici başlatıldı")
        while not stop_event.is_set():
            try:
                self.process_due_once(stop_event)
            except Exception:
                logger.exception("Hatırlatıcı izleyici döngüsünde beklenmeyen hata")
            stop_event.wait(self.polling_interval_seconds)
        logger.info("Hatırlatıcı izleyici durduruldu")
