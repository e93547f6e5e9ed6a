# -*- coding: utf-8 -*-
"""
Outbox Mesaj Üretimi

Her kabul edilen değişiklik için tek bir OutboxMessage oluşturur.
Mesaj, varlık yazımıyla aynı session'a eklenir ve birlikte commit edilir.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional

from .errors import DomainError, DomainResult
from .models import Block, Note, OutboxMessage, TaskItem


class TaskEventType(str, Enum):
    CREATED = "Created"
    UPDATED = "Updated"
    DELETED = "Deleted"
    REMINDER_SENT = "ReminderSent"


class NoteEventType(str, Enum):
    CREATED = "Created"
    UPDATED = "Updated"
    DELETED = "Deleted"


class BlockEventType(str, Enum):
    CREATED = "Created"
    UPDATED = "Updated"
    DELETED = "Deleted"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def build_task_payload(task: TaskItem, device_id: Optional[str]) -> Dict[str, Any]:
    return {
        'taskId': task.id,
        'userId': task.user_id,
        'date': _iso(task.date),
        'title': task.title,
        'isCompleted': bool(task.is_completed),
        'reminderAtUtc': _iso(task.reminder_at_utc),
        'version': task.version,
        'originDeviceId': device_id,
    }


def build_note_payload(note: Note, device_id: Optional[str]) -> Dict[str, Any]:
    return {
        'noteId': note.id,
        'userId': note.user_id,
        'date': _iso(note.date),
        'title': note.title,
        'version': note.version,
        'originDeviceId': device_id,
    }


def build_block_payload(block: Block, device_id: Optional[str]) -> Dict[str, Any]:
    return {
        'blockId': block.id,
        'userId': block.user_id,
        'parentId': block.parent_id,
        'parentType': block.parent_type,
        'type': block.type,
        'position': block.position,
        'version': block.version,
        'originDeviceId': device_id,
    }


# Varlık sınıfı -> (aggregate adı, payload üretici)
AGGREGATES = {
    TaskItem: ("Task", build_task_payload),
    Note: ("Note", build_note_payload),
    Block: ("Block", build_block_payload),
}


def build_outbox_message(entity, event, device_id: Optional[str], now) -> DomainResult:
    """
    Varlık için outbox mesajı oluştur.

    message_type: "{AggregateType}.{EventName}" (ör: "Note.Deleted")
    """
    aggregate = AGGREGATES.get(type(entity))
    if aggregate is None:
        return DomainResult.failure(DomainError(
            "Outbox.AggregateType.Unknown",
            f"No outbox mapping for {type(entity).__name__}."))

    aggregate_type, payload_builder = aggregate
    event_name = event.value if isinstance(event, Enum) else str(event)
    payload = json.dumps(payload_builder(entity, device_id), ensure_ascii=False)

    return OutboxMessage.create(
        user_id=entity.user_id,
        aggregate_type=aggregate_type,
        aggregate_id=entity.id,
        message_type=f"{aggregate_type}.{event_name}",
        payload=payload,
        now=now,
    )
