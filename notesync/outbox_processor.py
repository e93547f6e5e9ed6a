# -*- coding: utf-8 -*-
"""
Outbox Processor

outbox_messages tablosundaki işlenmemiş mesajları alıp dispatcher'a verir.
Transactional Outbox Pattern'in yayıncı tarafı.

Teslim en az bir kez garantilidir; başarısız mesaj attempt_count
artırılarak sonraki turda tekrar denenir.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from . import repositories
from .config import settings
from .models import OutboxMessage
from .utils import utcnow

logger = logging.getLogger(__name__)


class LoggingDispatcher:
    """Varsayılan dispatcher - mesajı loglar ve başarılı sayar."""

    def __call__(self, message: OutboxMessage) -> bool:
        logger.info(
            f"Outbox mesajı: {message.message_type} "
            f"{message.aggregate_type}/{message.aggregate_id}"
        )
        return True


class OutboxProcessor:
    """
    Outbox işleyici.

    Bekleyen mesajları toplu halde dispatcher'a gönderir.
    Başarısız gönderimleri retry mekanizmasıyla tekrar dener.
    """

    def __init__(self, session_factory: Callable[[], Session],
                 dispatcher: Optional[Callable[[OutboxMessage], bool]] = None,
                 max_batch_size: int = None, max_retry_attempts: int = None,
                 polling_interval_ms: int = None, clock=utcnow):
        """
        Args:
            session_factory: Her tur için yeni Session üreten callable
            dispatcher: Mesajı gönderen callable, başarıda True döner
        """
        self.session_factory = session_factory
        self.dispatcher = dispatcher or LoggingDispatcher()
        self.max_batch_size = max_batch_size or settings.OUTBOX_MAX_BATCH_SIZE
        self.max_retry_attempts = max_retry_attempts or settings.OUTBOX_MAX_RETRY_ATTEMPTS
        self.polling_interval_ms = polling_interval_ms or settings.OUTBOX_POLLING_INTERVAL_MS
        self.clock = clock

    def get_pending_count(self) -> int:
        db = self.session_factory()
        try:
            return db.query(OutboxMessage).filter(OutboxMessage.processed_at.is_(None)).count()
        finally:
            db.close()

    def process_pending_once(self, stop_event: threading.Event = None) -> Dict[str, Any]:
        """
        Bir tur işle.

        Returns:
            {processed, failed}
        """
        result = {'processed': 0, 'failed': 0}

        db = self.session_factory()
        try:
            pending = repositories.get_pending_outbox(db, self.max_batch_size)
            if not pending:
                logger.debug("Bekleyen outbox mesajı yok")
                return result

            logger.info(f"Outbox: {len(pending)} mesaj işlenecek")

            for message in pending:
                if stop_event is not None and stop_event.is_set():
                    break
                if self._process_message(db, message):
                    result['processed'] += 1
                else:
                    result['failed'] += 1
        finally:
            db.close()

        return result

    def _process_message(self, db: Session, message: OutboxMessage) -> bool:
        try:
            dispatched = bool(self.dispatcher(message))
            error = None if dispatched else "dispatcher returned failure"
        except Exception as e:
            logger.exception(f"Outbox mesajı gönderilirken hata: {message.id}")
            dispatched = False
            error = str(e)

        if dispatched:
            message.mark_processed(self.clock())
            db.commit()
            logger.info(f"Outbox mesajı işlendi: {message.id}")
            return True

        message.increment_attempt(self.clock())
        db.commit()
        logger.warning(
            f"Outbox mesajı gönderilemedi: {message.id}, "
            f"attempt_count={message.attempt_count}, hata={error}"
        )
        if message.attempt_count >= self.max_retry_attempts:
            logger.error(
                f"Outbox mesajı maksimum deneme sayısına ulaştı "
                f"({self.max_retry_attempts}): {message.id}"
            )
        return False

    def run(self, stop_event: threading.Event):
        """stop_event set edilene kadar periyodik olarak çalış."""
        logger.info("Outbox işleyici başlatıldı")
        while not stop_event.is_set():
            try:
                self.process_pending_once(stop_event)
            except Exception:
                logger.exception("Outbox işleyici döngüsünde beklenmeyen hata")
            stop_event.wait(self.polling_interval_ms / 1000.0)
        logger.info("Outbox işleyici durduruldu")
