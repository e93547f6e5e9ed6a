# -*- coding: utf-8 -*-
"""
Sync Veri Modelleri

Senkronizasyon işlemlerinde kullanılan enum'lar ve limitler.
"""

from dataclasses import dataclass
from enum import Enum

from ..config import Settings, settings as default_settings


class SyncEntityType(str, Enum):
    """Senkronize edilen varlık türleri"""
    TASK = "task"
    NOTE = "note"
    BLOCK = "block"


class SyncConflictType(str, Enum):
    """Çakışma türleri"""
    VERSION_MISMATCH = "version_mismatch"
    NOT_FOUND = "not_found"
    DELETED_ON_SERVER = "deleted_on_server"
    VALIDATION_FAILED = "validation_failed"
    OUTBOX_FAILED = "outbox_failed"
    PARENT_NOT_FOUND = "parent_not_found"


class PushItemStatus(str, Enum):
    """Push sonucunda her öğenin durumu"""
    CREATED = "created"
    FAILED = "failed"
    UPDATED = "updated"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"
    DELETED = "deleted"
    ALREADY_DELETED = "already_deleted"


class ResolutionChoice(str, Enum):
    """İstemcinin çakışma çözüm tercihi"""
    KEEP_SERVER = "KeepServer"
    KEEP_CLIENT = "KeepClient"


class ResolutionStatus(str, Enum):
    """Çözüm sonucu"""
    KEPT_SERVER = "kept_server"
    UPDATED = "updated"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"
    FAILED = "failed"
    INVALID_ENTITY_TYPE = "invalid_entity_type"


@dataclass(frozen=True)
class SyncLimits:
    """Pull/push boyut limitleri"""
    default_pull_items: int = 500
    max_pull_items: int = 1000
    max_push_items_per_list: int = 500
    max_push_items_total: int = 2000
    checkpoint_safety_window_seconds: int = 0

    @classmethod
    def from_settings(cls, s: Settings = None) -> 'SyncLimits':
        s = s or default_settings
        return cls(
            default_pull_items=s.SYNC_DEFAULT_PULL_ITEMS,
            max_pull_items=s.SYNC_MAX_PULL_ITEMS,
            max_push_items_per_list=s.SYNC_MAX_PUSH_ITEMS_PER_LIST,
            max_push_items_total=s.SYNC_MAX_PUSH_ITEMS_TOTAL,
            checkpoint_safety_window_seconds=s.SYNC_CHECKPOINT_SAFETY_WINDOW_SECONDS,
        )
