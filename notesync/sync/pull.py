# -*- coding: utf-8 -*-
"""
Değişiklik Akışı (Pull)

İstemciye checkpoint'ten bu yana değişen görev, not ve blokları
created / updated / deleted gruplarında döndürür. Sadece okuma yapar.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from .. import repositories
from ..errors import DomainError, SyncRequestValidationError, check_cancelled
from ..schemas import (
    BlockChanges, DeletedEntry, NoteChanges, SyncChangesResponse, TaskChanges
)
from ..utils import to_naive_utc, utcnow
from .entities import BLOCK_HANDLER, NOTE_HANDLER, TASK_HANDLER
from .models import SyncLimits

logger = logging.getLogger(__name__)


def resolve_page_size(max_items_per_entity: Optional[int], limits: SyncLimits) -> int:
    """İstenen limiti doğrula; yoksa varsayılanı kullan."""
    if max_items_per_entity is None:
        return limits.default_pull_items
    if max_items_per_entity <= 0 or max_items_per_entity > limits.max_pull_items:
        raise SyncRequestValidationError([DomainError(
            "Sync.MaxItemsPerEntity.OutOfRange",
            f"maxItemsPerEntity must be between 1 and {limits.max_pull_items}.")])
    return max_items_per_entity


def classify_changes(items: List, since: Optional[datetime]) -> Tuple[List, List, List]:
    """
    Kayıtları created / updated / deleted olarak ayır.

    İlk senkronizasyonda (since yok) her şey created'dır; silinmişler
    zaten yüklenmez. Silinme kontrolü önce yapılır, aralık içinde
    oluşturulup silinen kayıt deleted olarak gider.
    """
    created, updated, deleted = [], [], []
    for item in items:
        if since is None:
            if not item.is_deleted:
                created.append(item)
        elif item.is_deleted:
            deleted.append(item)
        elif item.created_at > since:
            created.append(item)
        else:
            updated.append(item)
    return created, updated, deleted


def _deleted_entry(item) -> DeletedEntry:
    return DeletedEntry(id=item.id, deleted_at=item.deleted_at or item.updated_at)


def _build_bucket(handler, changes_cls, items, since, page_size):
    created, updated, deleted = classify_changes(items, since)
    has_more = any(len(bucket) > page_size for bucket in (created, updated, deleted))
    snapshot = handler.snapshot_model.model_validate
    changes = changes_cls(
        created=[snapshot(i) for i in created[:page_size]],
        updated=[snapshot(i) for i in updated[:page_size]],
        deleted=[_deleted_entry(i) for i in deleted[:page_size]],
    )
    return changes, has_more


def get_changes(
    db: Session,
    user_id: str,
    since_utc: Optional[datetime] = None,
    device_id: Optional[str] = None,
    max_items_per_entity: Optional[int] = None,
    limits: Optional[SyncLimits] = None,
    clock=utcnow,
    cancel_event=None,
) -> SyncChangesResponse:
    """
    Pull işlemi.

    Raises:
        DeviceNotFoundError: device_id verildi ama kullanıcıya ait aktif cihaz değil
        SyncRequestValidationError: maxItemsPerEntity aralık dışında
    """
    limits = limits or SyncLimits.from_settings()
    page_size = resolve_page_size(max_items_per_entity, limits)
    since = to_naive_utc(since_utc)

    if device_id:
        repositories.ensure_usable_device(db, user_id, device_id)

    # Yüklemeden önce alınır. Push updated_at damgasını commit'ten önce basar;
    # damgası bu pencereden eski olup geç commit edilen değişiklik kaçabilir.
    server_timestamp = clock() - timedelta(seconds=limits.checkpoint_safety_window_seconds)

    check_cancelled(cancel_event)
    tasks = repositories.get_changed_since(db, TASK_HANDLER.model, user_id, since)
    check_cancelled(cancel_event)
    notes = repositories.get_changed_since(db, NOTE_HANDLER.model, user_id, since)
    check_cancelled(cancel_event)
    blocks = repositories.get_changed_since(db, BLOCK_HANDLER.model, user_id, since)

    task_changes, has_more_tasks = _build_bucket(TASK_HANDLER, TaskChanges, tasks, since, page_size)
    note_changes, has_more_notes = _build_bucket(NOTE_HANDLER, NoteChanges, notes, since, page_size)
    block_changes, has_more_blocks = _build_bucket(
        BLOCK_HANDLER, BlockChanges, blocks, since, page_size)

    logger.info(
        f"Pull: user={user_id}, since={since}, tasks={len(tasks)}, "
        f"notes={len(notes)}, blocks={len(blocks)}"
    )

    return SyncChangesResponse(
        server_timestamp_utc=server_timestamp,
        tasks=task_changes,
        notes=note_changes,
        blocks=block_changes,
        has_more_tasks=has_more_tasks,
        has_more_notes=has_more_notes,
        has_more_blocks=has_more_blocks,
    )
