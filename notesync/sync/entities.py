# -*- coding: utf-8 -*-
"""
Varlık türüne göre ortak işlemler.

Push ve çakışma çözümü aynı güncelleme/görüntü kurallarını kullanır.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict

from ..errors import DomainResult
from ..models import Block, Note, TaskItem
from ..outbox import BlockEventType, NoteEventType, TaskEventType
from ..schemas import (
    BlockFields, BlockSnapshot, NoteFields, NoteSnapshot, TaskFields, TaskSnapshot
)
from .models import SyncEntityType


def _apply_task_fields(task: TaskItem, fields: TaskFields, now) -> DomainResult:
    return task.update(
        date=fields.date,
        title=fields.title,
        now=now,
        description=fields.description,
        start_time=fields.start_time,
        end_time=fields.end_time,
        location=fields.location,
        travel_time=fields.travel_time,
        reminder_at_utc=fields.reminder_at_utc,
        is_completed=fields.is_completed,
    )


def _apply_note_fields(note: Note, fields: NoteFields, now) -> DomainResult:
    return note.update(
        date=fields.date,
        now=now,
        title=fields.title,
        content=fields.content,
        summary=fields.summary,
        tags=fields.tags,
    )


def _apply_block_fields(block: Block, fields: BlockFields, now) -> DomainResult:
    return block.apply_changes(now, position=fields.position, text_content=fields.text_content)


@dataclass(frozen=True)
class EntityHandler:
    """Bir varlık türünün sync davranışı."""
    entity_type: SyncEntityType
    model: type
    snapshot_model: type
    fields_model: type
    apply_fields: Callable[[Any, Any, Any], DomainResult]
    updated_event: Any
    deleted_event: Any
    created_event: Any

    def snapshot(self, entity) -> Dict[str, Any]:
        """Çakışma yanıtı için JSON uyumlu görüntü."""
        return self.snapshot_model.model_validate(entity).model_dump(by_alias=True, mode="json")


TASK_HANDLER = EntityHandler(
    entity_type=SyncEntityType.TASK,
    model=TaskItem,
    snapshot_model=TaskSnapshot,
    fields_model=TaskFields,
    apply_fields=_apply_task_fields,
    created_event=TaskEventType.CREATED,
    updated_event=TaskEventType.UPDATED,
    deleted_event=TaskEventType.DELETED,
)

NOTE_HANDLER = EntityHandler(
    entity_type=SyncEntityType.NOTE,
    model=Note,
    snapshot_model=NoteSnapshot,
    fields_model=NoteFields,
    apply_fields=_apply_note_fields,
    created_event=NoteEventType.CREATED,
    updated_event=NoteEventType.UPDATED,
    deleted_event=NoteEventType.DELETED,
)

BLOCK_HANDLER = EntityHandler(
    entity_type=SyncEntityType.BLOCK,
    model=Block,
    snapshot_model=BlockSnapshot,
    fields_model=BlockFields,
    apply_fields=_apply_block_fields,
    created_event=BlockEventType.CREATED,
    updated_event=BlockEventType.UPDATED,
    deleted_event=BlockEventType.DELETED,
)

HANDLERS = {
    SyncEntityType.TASK: TASK_HANDLER,
    SyncEntityType.NOTE: NOTE_HANDLER,
    SyncEntityType.BLOCK: BLOCK_HANDLER,
}
