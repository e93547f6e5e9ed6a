# -*- coding: utf-8 -*-
"""
NoteSync Sunucu - FastAPI Ana Modülü

Görev, not ve blokların çevrimdışı senkronizasyonu:
- GET  /api/sync/changes            -> pull
- POST /api/sync/push               -> push
- POST /api/sync/resolve-conflicts  -> çakışma çözümü
"""

import asyncio
import logging
import threading
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import __version__
from .auth import get_current_user
from .config import settings
from .database import get_db, init_db
from .errors import DeviceNotFoundError, SyncCancelledError, SyncRequestValidationError
from .schemas import (
    HealthResponse, ResolveConflictsRequest, ResolveConflictsResponse, SyncChangesResponse,
    SyncPushRequest, SyncPushResponse, TokenData
)
from .sync.models import SyncLimits
from .sync.pull import get_changes
from .sync.push import push_changes
from .sync.resolve import resolve_conflicts
from .utils import get_clock, utcnow

# Logging ayarları
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# FastAPI uygulaması
app = FastAPI(
    title="NoteSync Sunucu",
    description="Görev ve notlar için çevrimdışı senkronizasyon sunucusu",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_sync_limits() -> SyncLimits:
    """Dependency - testlerde küçük limitlerle override edilir."""
    return SyncLimits.from_settings()


async def get_cancel_event(request: Request):
    """
    İstek başına iptal sinyali.

    İstemci bağlantıyı kapatınca set edilir; motorlar bir sonraki kontrol
    noktasında durur, hiçbir şey commit edilmez.
    """
    cancel_event = threading.Event()
    interval = settings.SYNC_DISCONNECT_POLL_INTERVAL_MS / 1000.0

    async def watch_disconnect():
        while not cancel_event.is_set():
            if await request.is_disconnected():
                logger.info(f"İstemci bağlantıyı kapattı: {request.url.path}")
                cancel_event.set()
                return
            await asyncio.sleep(interval)

    watcher = asyncio.create_task(watch_disconnect())
    try:
        yield cancel_event
    finally:
        watcher.cancel()


# =============================================================================
# STARTUP / HATA YÖNETİMİ
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Uygulama başlangıcında tabloları oluştur."""
    logger.info("NoteSync Sunucu başlatılıyor...")
    init_db()
    logger.info("Veritabanı tabloları hazır.")


@app.exception_handler(DeviceNotFoundError)
async def device_not_found_handler(request: Request, exc: DeviceNotFoundError):
    logger.warning(f"Cihaz reddedildi: {exc.device_id}")
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": exc.message, "errors": [{"code": exc.code, "message": exc.message}]},
    )


@app.exception_handler(SyncRequestValidationError)
async def sync_validation_handler(request: Request, exc: SyncRequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message, "errors": [e.to_dict() for e in exc.errors]},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"code": "Request.Invalid",
         "message": f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Geçersiz istek", "errors": errors},
    )


@app.exception_handler(SyncCancelledError)
async def sync_cancelled_handler(request: Request, exc: SyncCancelledError):
    # 499: istemci isteği kapattı
    return JSONResponse(status_code=499, content={"detail": exc.message})


# =============================================================================
# HEALTH CHECK
# =============================================================================

@app.get("/api/health", response_model=HealthResponse, tags=["Sistem"])
def health_check(db: Session = Depends(get_db)):
    """Sunucu sağlık durumunu kontrol et."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.exception("Veritabanı sağlık kontrolü başarısız")
        db_status = f"error: {str(e)}"

    return HealthResponse(
        status="ok",
        version=__version__,
        database=db_status,
        timestamp=utcnow().isoformat(),
    )


# =============================================================================
# SENKRONİZASYON
# =============================================================================

@app.get("/api/sync/changes", response_model=SyncChangesResponse, tags=["Senkronizasyon"])
def sync_changes(
    since_utc: Optional[datetime] = Query(None, alias="sinceUtc"),
    device_id: Optional[str] = Query(None, alias="deviceId"),
    max_items_per_entity: Optional[int] = Query(None, alias="maxItemsPerEntity"),
    token_data: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    limits: SyncLimits = Depends(get_sync_limits),
    cancel_event: threading.Event = Depends(get_cancel_event),
):
    """
    Checkpoint'ten bu yana sunucudaki değişiklikleri al.

    serverTimestampUtc bir sonraki pull'da sinceUtc olarak gönderilmeli.
    """
    return get_changes(
        db, token_data.user_id,
        since_utc=since_utc,
        device_id=device_id,
        max_items_per_entity=max_items_per_entity,
        limits=limits,
        clock=clock,
        cancel_event=cancel_event,
    )


@app.post("/api/sync/push", response_model=SyncPushResponse, tags=["Senkronizasyon"])
def sync_push(
    request: SyncPushRequest,
    token_data: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    limits: SyncLimits = Depends(get_sync_limits),
    cancel_event: threading.Event = Depends(get_cancel_event),
):
    """
    İstemcide biriken değişiklikleri gönder.

    Her öğe için sonuç döner; sürüm uyuşmazlıkları conflicts listesinde.
    """
    logger.info(
        f"Push isteği: device={request.device_id}, "
        f"client_ts={request.client_sync_timestamp_utc}"
    )
    return push_changes(db, token_data.user_id, request, limits=limits, clock=clock,
                        cancel_event=cancel_event)


@app.post("/api/sync/resolve-conflicts", response_model=ResolveConflictsResponse,
          tags=["Senkronizasyon"])
def sync_resolve_conflicts(
    request: ResolveConflictsRequest,
    token_data: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    limits: SyncLimits = Depends(get_sync_limits),
    cancel_event: threading.Event = Depends(get_cancel_event),
):
    """Push'ta bildirilen çakışmalar için KeepServer / KeepClient uygula."""
    return resolve_conflicts(db, token_data.user_id, request, limits=limits, clock=clock,
                             cancel_event=cancel_event)


def run():
    """Sunucuyu uvicorn ile başlat."""
    import uvicorn

    uvicorn.run(
        "notesync.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
