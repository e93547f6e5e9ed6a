# -*- coding: utf-8 -*-
"""
NoteSync Arka Plan İşçisi

Outbox işleyiciyi ve hatırlatıcı izleyiciyi API sürecinden ayrı çalıştırır.

Kullanım:
    notesync-worker            # SIGINT/SIGTERM gelene kadar çalışır
    notesync-worker --once     # Her işleyiciden bir tur, sonra çıkar
"""

import argparse
import logging
import signal
import threading
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from .config import settings
from .database import SessionLocal, init_db
from .outbox_processor import OutboxProcessor
from .reminders import ReminderMonitor

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="NoteSync outbox ve hatırlatıcı işçisi",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Her işleyiciden bir tur çalıştır ve çık",
    )
    return parser.parse_args(argv)


def install_stop_signals(stop_event: threading.Event) -> Dict[int, Any]:
    """
    SIGINT ve SIGTERM geldiğinde stop_event'i set et.

    Returns:
        Önceki sinyal işleyicileri (geri yüklemek için)
    """
    def _handle(signum, frame):
        logger.info(f"Durdurma sinyali alındı: {signal.Signals(signum).name}")
        stop_event.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle)
    return previous


def run_workers(session_factory: Callable[[], Session], stop_event: threading.Event):
    """İşleyicileri ayrı thread'lerde çalıştır, stop_event gelince bekle ve dön."""
    workers = [
        OutboxProcessor(session_factory),
        ReminderMonitor(session_factory),
    ]
    threads = [
        threading.Thread(target=worker.run, args=(stop_event,),
                         name=type(worker).__name__, daemon=True)
        for worker in workers
    ]
    for thread in threads:
        thread.start()

    # Sinyaller ana thread'de işlenir
    while not stop_event.wait(1.0):
        pass
    for thread in threads:
        thread.join()


def main(argv: Optional[List[str]] = None,
         session_factory: Optional[Callable[[], Session]] = None,
         stop_event: Optional[threading.Event] = None) -> Dict[str, Any]:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if session_factory is None:
        init_db()
        session_factory = SessionLocal

    if args.once:
        return {
            'outbox': OutboxProcessor(session_factory).process_pending_once(),
            'reminders': ReminderMonitor(session_factory).process_due_once(),
        }

    if stop_event is None:
        stop_event = threading.Event()
        install_stop_signals(stop_event)

    logger.info("NoteSync işçisi başlatılıyor...")
    run_workers(session_factory, stop_event)
    logger.info("NoteSync işçisi durdu")
    return {}


if __name__ == "__main__":
    main()
