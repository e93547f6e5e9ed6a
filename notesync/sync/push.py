# -*- coding: utf-8 -*-
"""
Push İşleyicisi

İstemcinin çevrimdışıyken biriktirdiği create/update/delete isteklerini
iyimser kilit (version) ile uygular.

Her öğe bağımsız değerlendirilir; reddedilen öğe yazma adımına hiç
ulaşmaz. Kabul edilen değişiklikler ve outbox mesajları istek sonunda
tek commit ile kaydedilir.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from .. import repositories
from ..errors import DomainError, DomainResult, SyncRequestValidationError, check_cancelled
from ..models import ASSET_BLOCK_TYPES, Block, BlockParentType, Note, TaskItem
from ..notes import cascade_delete_note_blocks
from ..outbox import build_outbox_message
from ..schemas import (
    BlockCreateItem, CreatedItemResult, DeletedItemResult, EntityPushResult, ErrorDetail,
    NoteCreateItem, SyncConflict, SyncPushRequest, SyncPushResponse, TaskCreateItem,
    UpdatedItemResult
)
from ..utils import utcnow
from .entities import BLOCK_HANDLER, NOTE_HANDLER, TASK_HANDLER, EntityHandler
from .models import PushItemStatus, SyncConflictType, SyncEntityType, SyncLimits

logger = logging.getLogger(__name__)


@dataclass
class PushContext:
    """Tek bir push isteğinin durumu."""
    db: Session
    user_id: str
    device_id: str
    now: datetime
    cancel_event: Any = None
    conflicts: List[SyncConflict] = field(default_factory=list)
    # (varlık türü, client_id) -> bu istekte oluşturulan varlık
    created: Dict[Tuple[SyncEntityType, str], Any] = field(default_factory=dict)


def to_error_details(errors: List[DomainError]) -> List[ErrorDetail]:
    return [ErrorDetail(code=e.code, message=e.message) for e in errors]


# =============================================================================
# İSTEK DOĞRULAMA
# =============================================================================

def validate_push_request(request: SyncPushRequest, limits: SyncLimits) -> None:
    """
    Boyut ve şekil kontrolü. Herhangi bir işlemden önce çalışır.

    Raises:
        SyncRequestValidationError
    """
    errors = []
    if not request.device_id or not request.device_id.strip():
        errors.append(DomainError("Sync.DeviceId.Empty", "DeviceId is required."))

    total = 0
    for entity_name, changes in (("tasks", request.tasks),
                                 ("notes", request.notes),
                                 ("blocks", request.blocks)):
        for list_name in ("created", "updated", "deleted"):
            items = getattr(changes, list_name)
            total += len(items)
            if len(items) > limits.max_push_items_per_list:
                errors.append(DomainError(
                    "Sync.List.TooLarge",
                    f"{entity_name}.{list_name} must contain at most "
                    f"{limits.max_push_items_per_list} items."))

        for index, item in enumerate(changes.created):
            if not item.client_id or not item.client_id.strip():
                errors.append(DomainError(
                    "Sync.ClientId.Empty", f"{entity_name}.created[{index}].clientId is required."))
        for index, item in enumerate(changes.updated):
            if not item.id:
                errors.append(DomainError(
                    "Sync.Id.Empty", f"{entity_name}.updated[{index}].id is required."))
            if item.expected_version < 1:
                errors.append(DomainError(
                    "Sync.ExpectedVersion.Invalid",
                    f"{entity_name}.updated[{index}].expectedVersion must be at least 1."))
        for index, item in enumerate(changes.deleted):
            if not item.id:
                errors.append(DomainError(
                    "Sync.Id.Empty", f"{entity_name}.deleted[{index}].id is required."))

    if total > limits.max_push_items_total:
        errors.append(DomainError(
            "Sync.Request.TooLarge",
            f"A push request may contain at most {limits.max_push_items_total} items."))

    if errors:
        raise SyncRequestValidationError(errors)


# =============================================================================
# ÇAKIŞMA KAYDI
# =============================================================================

def _add_conflict(ctx: PushContext, handler: EntityHandler, entity_id: str,
                  conflict_type: SyncConflictType, client_version=None, server_version=None,
                  server_entity=None, errors=None):
    ctx.conflicts.append(SyncConflict(
        entity_type=handler.entity_type,
        entity_id=entity_id,
        conflict_type=conflict_type,
        client_version=client_version,
        server_version=server_version,
        server_entity=server_entity,
        errors=to_error_details(errors or []),
    ))


# =============================================================================
# CREATE
# =============================================================================

def _create_task(ctx: PushContext, item: TaskCreateItem) -> DomainResult:
    return TaskItem.create(
        user_id=ctx.user_id,
        date=item.date,
        title=item.title,
        now=ctx.now,
        description=item.description,
        start_time=item.start_time,
        end_time=item.end_time,
        location=item.location,
        travel_time=item.travel_time,
        reminder_at_utc=item.reminder_at_utc,
        is_completed=bool(item.is_completed),
        client_id=item.client_id,
        origin_device_id=ctx.device_id,
    )


def _create_note(ctx: PushContext, item: NoteCreateItem) -> DomainResult:
    return Note.create(
        user_id=ctx.user_id,
        date=item.date,
        now=ctx.now,
        title=item.title,
        content=item.content,
        summary=item.summary,
        tags=item.tags,
        client_id=item.client_id,
        origin_device_id=ctx.device_id,
    )


def _find_created(ctx: PushContext, handler: EntityHandler, client_id: str):
    """Bu cihazın bu istekte veya önceki bir push'ta aynı client_id ile oluşturduğu kayıt."""
    entity = ctx.created.get((handler.entity_type, client_id))
    if entity is None:
        entity = repositories.find_by_client_id(ctx.db, handler.model, ctx.user_id,
                                                ctx.device_id, client_id)
    return entity


def _resolve_block_parent(ctx: PushContext, item: BlockCreateItem) -> Optional[str]:
    handler = NOTE_HANDLER if item.parent_type == BlockParentType.NOTE else TASK_HANDLER
    if item.parent_client_id:
        parent = _find_created(ctx, handler, item.parent_client_id)
    else:
        parent = repositories.get_owned(ctx.db, handler.model, ctx.user_id, item.parent_id)
    if parent is None or parent.is_deleted:
        return None
    return parent.id


def _create_block(ctx: PushContext, item: BlockCreateItem) -> DomainResult:
    parent_id = _resolve_block_parent(ctx, item)
    if parent_id is None:
        error = DomainError("Block.Parent.NotFound", "Parent note or task was not found.")
        _add_conflict(ctx, BLOCK_HANDLER, item.client_id,
                      SyncConflictType.PARENT_NOT_FOUND, errors=[error])
        return DomainResult.failure(error)

    if item.type in ASSET_BLOCK_TYPES:
        return Block.create_asset_block(
            user_id=ctx.user_id,
            parent_id=parent_id,
            parent_type=item.parent_type,
            block_type=item.type,
            position=item.position,
            asset_client_id=item.asset_client_id,
            asset_file_name=item.asset_file_name,
            asset_content_type=item.asset_content_type,
            asset_size_bytes=item.asset_size_bytes,
            now=ctx.now,
            client_id=item.client_id,
            origin_device_id=ctx.device_id,
        )
    return Block.create_text_block(
        user_id=ctx.user_id,
        parent_id=parent_id,
        parent_type=item.parent_type,
        block_type=item.type,
        position=item.position,
        text_content=item.text_content,
        now=ctx.now,
        client_id=item.client_id,
        origin_device_id=ctx.device_id,
    )


def process_create(ctx: PushContext, handler: EntityHandler, item,
                   factory: Callable[[PushContext, Any], DomainResult]) -> CreatedItemResult:
    check_cancelled(ctx.cancel_event)

    # Yanıtı kaybolan create tekrar gönderilirse kopya oluşturulmaz
    existing = _find_created(ctx, handler, item.client_id)
    if existing is not None:
        logger.info(f"Tekrarlanan create: {handler.entity_type.value} client_id={item.client_id}")
        return CreatedItemResult(client_id=item.client_id, server_id=existing.id,
                                 version=existing.version, status=PushItemStatus.CREATED)

    result = factory(ctx, item)
    if not result.is_success:
        return CreatedItemResult(client_id=item.client_id, status=PushItemStatus.FAILED,
                                 errors=to_error_details(result.errors))

    entity = result.value
    outbox_result = build_outbox_message(entity, handler.created_event, ctx.device_id, ctx.now)
    if not outbox_result.is_success:
        _add_conflict(ctx, handler, item.client_id, SyncConflictType.OUTBOX_FAILED,
                      errors=outbox_result.errors)
        return CreatedItemResult(client_id=item.client_id, status=PushItemStatus.FAILED,
                                 errors=to_error_details(outbox_result.errors))

    ctx.db.add(entity)
    ctx.db.add(outbox_result.value)
    ctx.created[(handler.entity_type, item.client_id)] = entity
    return CreatedItemResult(client_id=item.client_id, server_id=entity.id,
                             version=entity.version, status=PushItemStatus.CREATED)


# =============================================================================
# UPDATE
# =============================================================================

def process_update(ctx: PushContext, handler: EntityHandler, item) -> UpdatedItemResult:
    check_cancelled(ctx.cancel_event)
    entity = repositories.get_owned(ctx.db, handler.model, ctx.user_id, item.id)

    if entity is None:
        _add_conflict(ctx, handler, item.id, SyncConflictType.NOT_FOUND,
                      client_version=item.expected_version)
        return UpdatedItemResult(id=item.id, status=PushItemStatus.NOT_FOUND)

    if entity.is_deleted:
        _add_conflict(ctx, handler, item.id, SyncConflictType.DELETED_ON_SERVER,
                      client_version=item.expected_version, server_version=entity.version)
        return UpdatedItemResult(id=item.id, status=PushItemStatus.NOT_FOUND)

    if entity.version != item.expected_version:
        _add_conflict(ctx, handler, item.id, SyncConflictType.VERSION_MISMATCH,
                      client_version=item.expected_version, server_version=entity.version,
                      server_entity=handler.snapshot(entity))
        return UpdatedItemResult(id=item.id, status=PushItemStatus.CONFLICT)

    state = entity.capture_state()
    result = handler.apply_fields(entity, item, ctx.now)
    if not result.is_success:
        entity.restore_state(state)
        return UpdatedItemResult(id=item.id, status=PushItemStatus.VALIDATION_FAILED,
                                 new_version=entity.version,
                                 errors=to_error_details(result.errors))
    if not result.value:
        # Değişiklik yok, versiyon ve outbox yok
        return UpdatedItemResult(id=item.id, status=PushItemStatus.UPDATED,
                                 new_version=entity.version)

    outbox_result = build_outbox_message(entity, handler.updated_event, ctx.device_id, ctx.now)
    if not outbox_result.is_success:
        entity.restore_state(state)
        _add_conflict(ctx, handler, item.id, SyncConflictType.OUTBOX_FAILED,
                      client_version=item.expected_version, server_version=entity.version,
                      errors=outbox_result.errors)
        return UpdatedItemResult(id=item.id, status=PushItemStatus.FAILED,
                                 errors=to_error_details(outbox_result.errors))

    ctx.db.add(outbox_result.value)
    return UpdatedItemResult(id=item.id, status=PushItemStatus.UPDATED,
                             new_version=entity.version)


# =============================================================================
# DELETE
# =============================================================================

def process_delete(ctx: PushContext, handler: EntityHandler, item,
                   after_delete: Optional[Callable] = None) -> DeletedItemResult:
    """Silme her zaman kazanır: yok veya zaten silinmiş kayıt çakışma değildir."""
    check_cancelled(ctx.cancel_event)
    entity = repositories.get_owned(ctx.db, handler.model, ctx.user_id, item.id)

    if entity is None:
        return DeletedItemResult(id=item.id, status=PushItemStatus.NOT_FOUND)
    if entity.is_deleted:
        return DeletedItemResult(id=item.id, status=PushItemStatus.ALREADY_DELETED,
                                 new_version=entity.version)

    state = entity.capture_state()
    result = entity.soft_delete(ctx.now)
    if not result.is_success:
        entity.restore_state(state)
        return DeletedItemResult(id=item.id, status=PushItemStatus.FAILED)

    outbox_result = build_outbox_message(entity, handler.deleted_event, ctx.device_id, ctx.now)
    if not outbox_result.is_success:
        entity.restore_state(state)
        _add_conflict(ctx, handler, item.id, SyncConflictType.OUTBOX_FAILED,
                      server_version=entity.version, errors=outbox_result.errors)
        return DeletedItemResult(id=item.id, status=PushItemStatus.FAILED)

    ctx.db.add(outbox_result.value)
    if after_delete is not None:
        after_delete(ctx, entity)
    return DeletedItemResult(id=item.id, status=PushItemStatus.DELETED,
                             new_version=entity.version)


def _cascade_note(ctx: PushContext, note: Note):
    cascade_delete_note_blocks(ctx.db, note, ctx.device_id, ctx.now)


def _process_entity_changes(ctx: PushContext, handler: EntityHandler, changes, factory,
                            after_delete=None) -> EntityPushResult:
    return EntityPushResult(
        created=[process_create(ctx, handler, item, factory) for item in changes.created],
        updated=[process_update(ctx, handler, item) for item in changes.updated],
        deleted=[process_delete(ctx, handler, item, after_delete) for item in changes.deleted],
    )


# =============================================================================
# ANA PUSH
# =============================================================================

def push_changes(
    db: Session,
    user_id: str,
    request: SyncPushRequest,
    limits: Optional[SyncLimits] = None,
    clock=utcnow,
    cancel_event=None,
) -> SyncPushResponse:
    """
    Push işlemi.

    1. İstek boyutlarını doğrula
    2. Cihazı doğrula (başarısızsa hiçbir şey uygulanmaz)
    3. Görev, not ve blok değişikliklerini sırayla değerlendir
    4. Kabul edilenleri tek commit ile kaydet

    Raises:
        SyncRequestValidationError, DeviceNotFoundError, SyncCancelledError
    """
    limits = limits or SyncLimits.from_settings()
    validate_push_request(request, limits)
    repositories.ensure_usable_device(db, user_id, request.device_id)

    ctx = PushContext(db=db, user_id=user_id, device_id=request.device_id,
                      now=clock(), cancel_event=cancel_event)

    try:
        tasks = _process_entity_changes(ctx, TASK_HANDLER, request.tasks, _create_task)
        notes = _process_entity_changes(ctx, NOTE_HANDLER, request.notes, _create_note,
                                        after_delete=_cascade_note)
        blocks = _process_entity_changes(ctx, BLOCK_HANDLER, request.blocks, _create_block)

        check_cancelled(cancel_event)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Push tamamlandı: user={user_id}, device={request.device_id}, "
        f"conflicts={len(ctx.conflicts)}"
    )

    return SyncPushResponse(tasks=tasks, notes=notes, blocks=blocks, conflicts=ctx.conflicts)
