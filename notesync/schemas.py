# -*- coding: utf-8 -*-
"""
Pydantic şemaları - API request/response modelleri

JSON alanları camelCase (sinceUtc, expectedVersion...), Python tarafı snake_case.
"""

from datetime import date as date_type, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import BlockParentType
from .sync.models import (
    PushItemStatus, ResolutionChoice, ResolutionStatus, SyncConflictType, SyncEntityType
)


class CamelModel(BaseModel):
    """camelCase JSON, snake_case Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SnapshotModel(CamelModel):
    """ORM nesnesinden okunan anlık görüntü."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              from_attributes=True)


class ErrorDetail(CamelModel):
    code: str
    message: str


# =============================================================================
# SİSTEM
# =============================================================================

class HealthResponse(BaseModel):
    """Sağlık kontrolü yanıtı."""
    status: str
    version: str
    database: str
    timestamp: str


class TokenData(BaseModel):
    """JWT token içeriği."""
    user_id: str
    exp: Optional[datetime] = None


# =============================================================================
# VARLIK GÖRÜNTÜLERİ (pull ve çakışma yanıtları)
# =============================================================================

class TaskSnapshot(SnapshotModel):
    id: str
    date: date_type
    title: str
    description: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location: Optional[str] = None
    travel_time: Optional[timedelta] = None
    is_completed: bool
    reminder_at_utc: Optional[datetime] = None
    reminder_sent_at_utc: Optional[datetime] = None
    reminder_acknowledged_at_utc: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime


class NoteSnapshot(SnapshotModel):
    id: str
    date: date_type
    title: Optional[str] = None
    content: Optional[str] = None
    summary: Optional[str] = None
    tags: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime


class BlockSnapshot(SnapshotModel):
    id: str
    parent_id: str
    parent_type: str
    type: int
    position: str
    text_content: Optional[str] = None
    asset_id: Optional[str] = None
    asset_client_id: Optional[str] = None
    asset_file_name: Optional[str] = None
    asset_content_type: Optional[str] = None
    asset_size_bytes: Optional[int] = None
    upload_status: str
    version: int
    created_at: datetime
    updated_at: datetime


class DeletedEntry(CamelModel):
    """Silinen kayıt - sadece kimlik ve silinme zamanı."""
    id: str
    deleted_at: datetime


# =============================================================================
# PULL
# =============================================================================

class TaskChanges(CamelModel):
    created: List[TaskSnapshot] = []
    updated: List[TaskSnapshot] = []
    deleted: List[DeletedEntry] = []


class NoteChanges(CamelModel):
    created: List[NoteSnapshot] = []
    updated: List[NoteSnapshot] = []
    deleted: List[DeletedEntry] = []


class BlockChanges(CamelModel):
    created: List[BlockSnapshot] = []
    updated: List[BlockSnapshot] = []
    deleted: List[DeletedEntry] = []


class SyncChangesResponse(CamelModel):
    """Pull yanıtı. serverTimestampUtc bir sonraki checkpoint'tir."""
    server_timestamp_utc: datetime
    tasks: TaskChanges = Field(default_factory=TaskChanges)
    notes: NoteChanges = Field(default_factory=NoteChanges)
    blocks: BlockChanges = Field(default_factory=BlockChanges)
    has_more_tasks: bool = False
    has_more_notes: bool = False
    has_more_blocks: bool = False


# =============================================================================
# PUSH - İSTEK
# =============================================================================

class TaskFields(CamelModel):
    """Görev alanları (tam güncelleme)."""
    date: Optional[date_type] = None
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location: Optional[str] = None
    travel_time: Optional[timedelta] = None
    reminder_at_utc: Optional[datetime] = None
    is_completed: Optional[bool] = None


class TaskCreateItem(TaskFields):
    client_id: str = ""


class TaskUpdateItem(TaskFields):
    id: str = ""
    expected_version: int = 0


class NoteFields(CamelModel):
    date: Optional[date_type] = None
    title: Optional[str] = None
    content: Optional[str] = None
    summary: Optional[str] = None
    tags: Optional[str] = None


class NoteCreateItem(NoteFields):
    client_id: str = ""


class NoteUpdateItem(NoteFields):
    id: str = ""
    expected_version: int = 0


class BlockFields(CamelModel):
    """Blok güncellemesi - None olan alan değişmez."""
    position: Optional[str] = None
    text_content: Optional[str] = None


class BlockCreateItem(CamelModel):
    client_id: str = ""
    parent_id: Optional[str] = None
    parent_client_id: Optional[str] = None  # Aynı push'ta oluşturulan not
    parent_type: BlockParentType = BlockParentType.NOTE
    type: int
    position: str = ""
    text_content: Optional[str] = None
    asset_client_id: Optional[str] = None
    asset_file_name: Optional[str] = None
    asset_content_type: Optional[str] = None
    asset_size_bytes: Optional[int] = None


class BlockUpdateItem(BlockFields):
    id: str = ""
    expected_version: int = 0


class DeleteItem(CamelModel):
    id: str = ""
    expected_version: Optional[int] = None


class TaskPushChanges(CamelModel):
    created: List[TaskCreateItem] = []
    updated: List[TaskUpdateItem] = []
    deleted: List[DeleteItem] = []


class NotePushChanges(CamelModel):
    created: List[NoteCreateItem] = []
    updated: List[NoteUpdateItem] = []
    deleted: List[DeleteItem] = []


class BlockPushChanges(CamelModel):
    created: List[BlockCreateItem] = []
    updated: List[BlockUpdateItem] = []
    deleted: List[DeleteItem] = []


class SyncPushRequest(CamelModel):
    """Push isteği."""
    device_id: str = ""
    client_sync_timestamp_utc: Optional[datetime] = None  # Sadece bilgi amaçlı
    tasks: TaskPushChanges = Field(default_factory=TaskPushChanges)
    notes: NotePushChanges = Field(default_factory=NotePushChanges)
    blocks: BlockPushChanges = Field(default_factory=BlockPushChanges)


# =============================================================================
# PUSH - YANIT
# =============================================================================

class CreatedItemResult(CamelModel):
    client_id: str
    server_id: Optional[str] = None
    version: Optional[int] = None
    status: PushItemStatus
    errors: List[ErrorDetail] = []


class UpdatedItemResult(CamelModel):
    id: str
    status: PushItemStatus
    new_version: Optional[int] = None
    errors: List[ErrorDetail] = []


class DeletedItemResult(CamelModel):
    id: str
    status: PushItemStatus
    new_version: Optional[int] = None


class EntityPushResult(CamelModel):
    created: List[CreatedItemResult] = []
    updated: List[UpdatedItemResult] = []
    deleted: List[DeletedItemResult] = []


class SyncConflict(CamelModel):
    """Kullanıcının çözmesi gereken çakışma."""
    entity_type: SyncEntityType
    entity_id: str
    conflict_type: SyncConflictType
    client_version: Optional[int] = None
    server_version: Optional[int] = None
    server_entity: Optional[Dict[str, Any]] = None
    errors: List[ErrorDetail] = []


class SyncPushResponse(CamelModel):
    tasks: EntityPushResult = Field(default_factory=EntityPushResult)
    notes: EntityPushResult = Field(default_factory=EntityPushResult)
    blocks: EntityPushResult = Field(default_factory=EntityPushResult)
    conflicts: List[SyncConflict] = []


# =============================================================================
# ÇAKIŞMA ÇÖZÜMÜ
# =============================================================================

class ConflictResolution(CamelModel):
    entity_type: SyncEntityType
    entity_id: str
    choice: ResolutionChoice
    expected_version: int
    data: Optional[Dict[str, Any]] = None  # KeepClient için son alan değerleri

    @field_validator("entity_type", mode="before")
    @classmethod
    def _lower_entity_type(cls, value):
        return value.lower() if isinstance(value, str) else value


class ResolveConflictsRequest(CamelModel):
    resolutions: List[ConflictResolution] = []


class ResolutionResult(CamelModel):
    entity_type: SyncEntityType
    entity_id: str
    status: ResolutionStatus
    new_version: Optional[int] = None
    errors: List[ErrorDetail] = []


class ResolveConflictsResponse(CamelModel):
    results: List[ResolutionResult] = []
