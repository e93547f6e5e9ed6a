# -*- coding: utf-8 -*-
"""
Çakışma Çözücü

Push sırasında bildirilen çakışmalar için istemcinin açık tercihini uygular:
- KeepServer: değişiklik yok, sunucu versiyonu döner
- KeepClient: versiyon tekrar kontrol edilir, eşleşirse istemci verisi
  tam güncelleme olarak uygulanır

Otomatik alan birleştirme yapılmaz.
"""

import logging
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from .. import repositories
from ..errors import DomainError, SyncRequestValidationError, check_cancelled
from ..outbox import build_outbox_message
from ..schemas import (
    ConflictResolution, ResolutionResult, ResolveConflictsRequest,
    ResolveConflictsResponse
)
from ..utils import utcnow
from .entities import HANDLERS
from .models import ResolutionChoice, ResolutionStatus, SyncLimits
from .push import to_error_details

logger = logging.getLogger(__name__)


def _result(resolution: ConflictResolution, status: ResolutionStatus,
            new_version: Optional[int] = None, errors: Optional[List[DomainError]] = None):
    return ResolutionResult(
        entity_type=resolution.entity_type,
        entity_id=resolution.entity_id,
        status=status,
        new_version=new_version,
        errors=to_error_details(errors or []),
    )


def _validation_errors(exc: ValidationError) -> List[DomainError]:
    return [
        DomainError("Sync.Resolution.DataInvalid",
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}")
        for err in exc.errors()
    ]


def resolve_one(db: Session, user_id: str, resolution: ConflictResolution, now,
                cancel_event=None) -> ResolutionResult:
    """Tek bir çözümü değerlendir. Kabul edilirse session'a eklenir, commit etmez."""
    check_cancelled(cancel_event)

    handler = HANDLERS.get(resolution.entity_type)
    if handler is None:
        return _result(resolution, ResolutionStatus.INVALID_ENTITY_TYPE, errors=[
            DomainError("Sync.EntityType.Invalid", f"Unknown entity type '{resolution.entity_type}'.")])

    entity = repositories.get_owned(db, handler.model, user_id, resolution.entity_id)
    if entity is None:
        return _result(resolution, ResolutionStatus.NOT_FOUND)
    if entity.is_deleted:
        return _result(resolution, ResolutionStatus.NOT_FOUND, new_version=entity.version, errors=[
            DomainError("Sync.DeletedOnServer", "The entity was deleted on the server.")])

    if resolution.choice == ResolutionChoice.KEEP_SERVER:
        return _result(resolution, ResolutionStatus.KEPT_SERVER, new_version=entity.version)

    # KeepClient: ikinci iyimser kilit kontrolü
    if entity.version != resolution.expected_version:
        return _result(resolution, ResolutionStatus.CONFLICT, new_version=entity.version)

    if resolution.data is None:
        return _result(resolution, ResolutionStatus.VALIDATION_FAILED, errors=[
            DomainError("Sync.Resolution.DataMissing", "KeepClient requires data.")])

    try:
        fields = handler.fields_model.model_validate(resolution.data)
    except ValidationError as exc:
        return _result(resolution, ResolutionStatus.VALIDATION_FAILED,
                       errors=_validation_errors(exc))

    state = entity.capture_state()
    result = handler.apply_fields(entity, fields, now)
    if not result.is_success:
        entity.restore_state(state)
        return _result(resolution, ResolutionStatus.VALIDATION_FAILED,
                       new_version=entity.version, errors=result.errors)
    if not result.value:
        return _result(resolution, ResolutionStatus.UPDATED, new_version=entity.version)

    outbox_result = build_outbox_message(entity, handler.updated_event, None, now)
    if not outbox_result.is_success:
        entity.restore_state(state)
        return _result(resolution, ResolutionStatus.FAILED, errors=outbox_result.errors)

    db.add(outbox_result.value)
    return _result(resolution, ResolutionStatus.UPDATED, new_version=entity.version)


def resolve_conflicts(
    db: Session,
    user_id: str,
    request: ResolveConflictsRequest,
    limits: Optional[SyncLimits] = None,
    clock=utcnow,
    cancel_event=None,
) -> ResolveConflictsResponse:
    """
    Çakışma çözümlerini uygula.

    Her çözüm bağımsızdır; biri başarısız olsa da diğerleri uygulanır.
    Kabul edilenler tek commit ile kaydedilir.
    """
    limits = limits or SyncLimits.from_settings()
    if len(request.resolutions) > limits.max_push_items_total:
        raise SyncRequestValidationError([DomainError(
            "Sync.Request.TooLarge",
            f"A resolve request may contain at most {limits.max_push_items_total} items.")])

    now = clock()
    try:
        results = [resolve_one(db, user_id, resolution, now, cancel_event)
                   for resolution in request.resolutions]
        check_cancelled(cancel_event)
        db.commit()
    except Exception:
        db.rollback()
        raise

    updated = sum(1 for r in results if r.status == ResolutionStatus.UPDATED)
    logger.info(f"Çakışma çözümü: user={user_id}, toplam={len(results)}, güncellenen={updated}")

    return ResolveConflictsResponse(results=results)
