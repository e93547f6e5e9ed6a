# -*- coding: utf-8 -*-
"""
NoteSync Veritabanı Modelleri

Senkronize edilen tüm tablolar:
- id: Benzersiz tanımlayıcı (PRIMARY KEY)
- user_id: Sahip kullanıcı (oluşturulduktan sonra değişmez)
- version: İyimser kilit sayacı (1'den başlar, her durum değişikliğinde +1)
- is_deleted / deleted_at: Soft delete
- created_at, updated_at: Naive UTC zaman damgaları

Doğrulama kuralları modellerin içinde, sonuçlar DomainResult olarak döner.
"""

from enum import Enum, IntEnum

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Index, Integer, Interval, String, Text, Time, inspect
)

from .database import Base
from .errors import DomainError, DomainResult
from .utils import generate_uuid, to_naive_utc, utcnow

TITLE_MAX_LENGTH = 200
POSITION_MAX_LENGTH = 100
ASSET_CLIENT_ID_MAX_LENGTH = 100
ASSET_FILE_NAME_MAX_LENGTH = 256
ASSET_CONTENT_TYPE_MAX_LENGTH = 100
DEFAULT_ASSET_CONTENT_TYPE = "application/octet-stream"


class SyncEntityMixin:
    """Senkronize edilen tablolar için ortak alanlar."""

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    client_id = Column(String(100), nullable=True)  # Push create korelasyon kimliği
    origin_device_id = Column(String(36), nullable=True)  # client_id bu cihazda üretildi
    version = Column(Integer, nullable=False, default=1)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    def _init_sync_fields(self, user_id: str, now, client_id=None, origin_device_id=None):
        self.id = generate_uuid()
        self.user_id = user_id
        self.client_id = client_id
        self.origin_device_id = origin_device_id
        self.version = 1
        self.is_deleted = False
        self.created_at = now
        self.updated_at = now

    def capture_state(self) -> dict:
        """Kolon değerlerinin kopyası - başarısız işlemde geri almak için."""
        return {attr.key: getattr(self, attr.key) for attr in inspect(self).mapper.column_attrs}

    def restore_state(self, state: dict):
        for key, value in state.items():
            setattr(self, key, value)

    def _touch(self, now):
        self.updated_at = now

    def _bump(self, now):
        """Versiyonu tam olarak 1 artır."""
        self.version += 1
        self._touch(now)

    def _soft_delete(self, now) -> DomainResult:
        # Tekrar silme no-op, versiyon değişmez
        if self.is_deleted:
            return DomainResult.success(False)
        self.is_deleted = True
        self.deleted_at = now
        self._bump(now)
        return DomainResult.success(True)


def _is_blank(value) -> bool:
    return value is None or not str(value).strip()


def _user_errors(prefix: str, user_id) -> list:
    if _is_blank(user_id):
        return [DomainError(f"{prefix}.UserId.Empty", "UserId must be a non-empty identifier.")]
    return []


# =============================================================================
# GÖREV (TASK)
# =============================================================================

def _task_field_errors(title, date, start_time, end_time) -> list:
    errors = []
    normalized = (title or "").strip()
    if not normalized:
        errors.append(DomainError("Task.Title.Empty", "Task title cannot be empty."))
    elif len(normalized) > TITLE_MAX_LENGTH:
        errors.append(DomainError(
            "Task.Title.TooLong", f"Task title must be at most {TITLE_MAX_LENGTH} characters."))
    if date is None:
        errors.append(DomainError("Task.Date.Default", "Date must be a valid calendar date."))
    if start_time is not None and end_time is not None and end_time < start_time:
        errors.append(DomainError("Task.Time.Invalid", "EndTime cannot be earlier than StartTime."))
    return errors


class TaskItem(Base, SyncEntityMixin):
    """Görevler tablosu."""

    __tablename__ = "tasks"

    date = Column(Date, nullable=False)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    description = Column(Text, nullable=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    location = Column(String(300), nullable=True)
    travel_time = Column(Interval, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    reminder_at_utc = Column(DateTime, nullable=True)
    reminder_sent_at_utc = Column(DateTime, nullable=True)
    reminder_acknowledged_at_utc = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_tasks_user_updated', 'user_id', 'updated_at'),
        Index('ix_tasks_user_client', 'user_id', 'origin_device_id', 'client_id'),
    )

    @classmethod
    def create(cls, user_id, date, title, now, description=None, start_time=None,
               end_time=None, location=None, travel_time=None, reminder_at_utc=None,
               is_completed=False, client_id=None, origin_device_id=None) -> DomainResult:
        errors = _user_errors("Task", user_id)
        errors += _task_field_errors(title, date, start_time, end_time)
        if errors:
            return DomainResult.failure(errors)

        task = cls()
        task._init_sync_fields(user_id, now, client_id, origin_device_id)
        task.date = date
        task.title = title.strip()
        task.description = description
        task.start_time = start_time
        task.end_time = end_time
        task.location = location
        task.travel_time = travel_time
        task.is_completed = bool(is_completed)
        task.reminder_at_utc = to_naive_utc(reminder_at_utc)
        return DomainResult.success(task)

    def update(self, date, title, now, description=None, start_time=None, end_time=None,
               location=None, travel_time=None, reminder_at_utc=None,
               is_completed=None) -> DomainResult:
        """Tam güncelleme - tek versiyon artışı."""
        errors = _task_field_errors(title, date, start_time, end_time)
        if self.is_deleted:
            errors.append(DomainError("Task.Deleted", "Cannot update a deleted task."))
        if errors:
            return DomainResult.failure(errors)

        self.date = date
        self.title = title.strip()
        self.description = description
        self.start_time = start_time
        self.end_time = end_time
        self.location = location
        self.travel_time = travel_time
        if is_completed is not None:
            self.is_completed = bool(is_completed)
        self._apply_reminder(to_naive_utc(reminder_at_utc))
        self._bump(now)
        return DomainResult.success(True)

    def _apply_reminder(self, reminder_at_utc):
        if reminder_at_utc != self.reminder_at_utc:
            self.reminder_at_utc = reminder_at_utc
            self.reminder_sent_at_utc = None
            self.reminder_acknowledged_at_utc = None

    def _deleted_error(self, action: str) -> DomainResult:
        return DomainResult.failure(DomainError("Task.Deleted", f"Cannot {action} a deleted task."))

    def mark_completed(self, now) -> DomainResult:
        if self.is_deleted:
            return self._deleted_error("complete")
        if self.is_completed:
            return DomainResult.success(False)
        self.is_completed = True
        self._bump(now)
        return DomainResult.success(True)

    def mark_pending(self, now) -> DomainResult:
        if self.is_deleted:
            return self._deleted_error("mark pending")
        if not self.is_completed:
            return DomainResult.success(False)
        self.is_completed = False
        self._bump(now)
        return DomainResult.success(True)

    def set_reminder(self, reminder_at_utc, now) -> DomainResult:
        if self.is_deleted:
            return self._deleted_error("set reminder on")
        self._apply_reminder(to_naive_utc(reminder_at_utc))
        self._bump(now)
        return DomainResult.success(True)

    def mark_reminder_sent(self, now) -> DomainResult:
        if self.is_deleted:
            return self._deleted_error("send reminder for")
        if self.reminder_sent_at_utc is not None:
            return DomainResult.success(False)
        self.reminder_sent_at_utc = now
        self._bump(now)
        return DomainResult.success(True)

    def acknowledge_reminder(self, now) -> DomainResult:
        """Hatırlatıcıyı onayla. Tekrar onay no-op."""
        if self.is_deleted:
            return self._deleted_error("acknowledge reminder for")
        if self.reminder_at_utc is None:
            return DomainResult.failure(
                DomainError("Task.Reminder.NotSet", "Task has no reminder to acknowledge."))
        if self.reminder_acknowledged_at_utc is not None:
            return DomainResult.success(False)
        self.reminder_acknowledged_at_utc = now
        self._bump(now)
        return DomainResult.success(True)

    def soft_delete(self, now) -> DomainResult:
        return self._soft_delete(now)


# =============================================================================
# NOT (NOTE)
# =============================================================================

def _note_field_errors(title, content, date) -> list:
    errors = []
    if _is_blank(title) and _is_blank(content):
        errors.append(DomainError("Note.Empty", "A note needs a title or content."))
    if title is not None and len(title.strip()) > TITLE_MAX_LENGTH:
        errors.append(DomainError(
            "Note.Title.TooLong", f"Note title must be at most {TITLE_MAX_LENGTH} characters."))
    if date is None:
        errors.append(DomainError("Note.Date.Default", "Date must be a valid calendar date."))
    return errors


class Note(Base, SyncEntityMixin):
    """Notlar tablosu."""

    __tablename__ = "notes"

    date = Column(Date, nullable=False)
    title = Column(String(TITLE_MAX_LENGTH), nullable=True)
    content = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    tags = Column(String(500), nullable=True)

    __table_args__ = (
        Index('ix_notes_user_updated', 'user_id', 'updated_at'),
        Index('ix_notes_user_client', 'user_id', 'origin_device_id', 'client_id'),
    )

    @classmethod
    def create(cls, user_id, date, now, title=None, content=None, summary=None,
               tags=None, client_id=None, origin_device_id=None) -> DomainResult:
        errors = _user_errors("Note", user_id)
        errors += _note_field_errors(title, content, date)
        if errors:
            return DomainResult.failure(errors)

        note = cls()
        note._init_sync_fields(user_id, now, client_id, origin_device_id)
        note._assign(date, title, content, summary, tags)
        return DomainResult.success(note)

    def _assign(self, date, title, content, summary, tags):
        self.date = date
        self.title = title.strip() if title is not None else None
        self.content = content
        self.summary = summary
        self.tags = tags

    def update(self, date, now, title=None, content=None, summary=None,
               tags=None) -> DomainResult:
        errors = _note_field_errors(title, content, date)
        if self.is_deleted:
            errors.append(DomainError("Note.Deleted", "Cannot update a deleted note."))
        if errors:
            return DomainResult.failure(errors)

        self._assign(date, title, content, summary, tags)
        self._bump(now)
        return DomainResult.success(True)

    def soft_delete(self, now) -> DomainResult:
        return self._soft_delete(now)


# =============================================================================
# BLOK (BLOCK)
# =============================================================================

class BlockType(IntEnum):
    """Blok türleri (kalıcı değerler - değiştirmeyin)"""
    PARAGRAPH = 0
    IMAGE = 1
    HEADING1 = 10
    HEADING2 = 11
    HEADING3 = 12
    BULLET_LIST = 20
    NUMBERED_LIST = 21
    QUOTE = 30
    CODE = 31
    FILE = 40
    DIVIDER = 50


TEXT_BLOCK_TYPES = frozenset({
    BlockType.PARAGRAPH, BlockType.HEADING1, BlockType.HEADING2, BlockType.HEADING3,
    BlockType.BULLET_LIST, BlockType.NUMBERED_LIST, BlockType.QUOTE, BlockType.CODE,
    BlockType.DIVIDER,
})
ASSET_BLOCK_TYPES = frozenset({BlockType.IMAGE, BlockType.FILE})


class BlockParentType(str, Enum):
    NOTE = "Note"
    TASK = "Task"


class UploadStatus(str, Enum):
    NOT_APPLICABLE = "NotApplicable"
    PENDING = "Pending"
    UPLOADING = "Uploading"
    SYNCED = "Synced"
    FAILED = "Failed"


def _position_errors(position: str) -> list:
    if not position:
        return [DomainError("Block.Position.Empty", "Position is required.")]
    if len(position) > POSITION_MAX_LENGTH:
        return [DomainError(
            "Block.Position.TooLong", f"Position must be at most {POSITION_MAX_LENGTH} characters.")]
    return []


def _base_block_errors(user_id, parent_id, position) -> list:
    errors = _user_errors("Block", user_id)
    if _is_blank(parent_id):
        errors.append(DomainError("Block.ParentId.Empty", "ParentId must be a non-empty identifier."))
    return errors + _position_errors(position)


def _max_length_error(code: str, label: str, value: str, limit: int) -> list:
    if len(value) > limit:
        return [DomainError(code, f"{label} must be at most {limit} characters.")]
    return []


class Block(Base, SyncEntityMixin):
    """Not/görev içindeki sıralı içerik blokları."""

    __tablename__ = "blocks"

    parent_id = Column(String(36), nullable=False, index=True)
    parent_type = Column(String(10), nullable=False, default=BlockParentType.NOTE.value)
    type = Column(Integer, nullable=False)
    position = Column(String(POSITION_MAX_LENGTH), nullable=False)  # Fractional index
    text_content = Column(Text, nullable=True)
    asset_id = Column(String(36), nullable=True)
    asset_client_id = Column(String(ASSET_CLIENT_ID_MAX_LENGTH), nullable=True)
    asset_file_name = Column(String(ASSET_FILE_NAME_MAX_LENGTH), nullable=True)
    asset_content_type = Column(String(ASSET_CONTENT_TYPE_MAX_LENGTH), nullable=True)
    asset_size_bytes = Column(Integer, nullable=True)
    upload_status = Column(String(20), nullable=False, default=UploadStatus.NOT_APPLICABLE.value)

    __table_args__ = (
        Index('ix_blocks_user_updated', 'user_id', 'updated_at'),
        Index('ix_blocks_user_client', 'user_id', 'origin_device_id', 'client_id'),
    )

    @property
    def is_text_block(self) -> bool:
        return self.type in TEXT_BLOCK_TYPES

    @property
    def is_asset_block(self) -> bool:
        return self.type in ASSET_BLOCK_TYPES

    @classmethod
    def _new(cls, user_id, parent_id, parent_type, block_type, position, now, client_id,
             origin_device_id):
        block = cls()
        block._init_sync_fields(user_id, now, client_id, origin_device_id)
        block.parent_id = parent_id
        block.parent_type = BlockParentType(parent_type).value
        block.type = int(block_type)
        block.position = position
        return block

    @classmethod
    def create_text_block(cls, user_id, parent_id, parent_type, block_type, position,
                          text_content, now, client_id=None,
                          origin_device_id=None) -> DomainResult:
        normalized_position = (position or "").strip()
        errors = _base_block_errors(user_id, parent_id, normalized_position)
        if block_type not in TEXT_BLOCK_TYPES:
            errors.append(DomainError(
                "Block.Type.Invalid", f"Type '{block_type}' is not a text block type."))
        if errors:
            return DomainResult.failure(errors)

        block = cls._new(user_id, parent_id, parent_type, block_type,
                         normalized_position, now, client_id, origin_device_id)
        # İçerikteki boşluklar korunur
        block.text_content = text_content
        block.upload_status = UploadStatus.NOT_APPLICABLE.value
        return DomainResult.success(block)

    @classmethod
    def create_asset_block(cls, user_id, parent_id, parent_type, block_type, position,
                           asset_client_id, asset_file_name, asset_content_type,
                           asset_size_bytes, now, client_id=None,
                           origin_device_id=None) -> DomainResult:
        normalized_position = (position or "").strip()
        client_asset = (asset_client_id or "").strip()
        file_name = (asset_file_name or "").strip()
        content_type = (asset_content_type or "").strip() or DEFAULT_ASSET_CONTENT_TYPE

        errors = _base_block_errors(user_id, parent_id, normalized_position)
        if block_type not in ASSET_BLOCK_TYPES:
            errors.append(DomainError(
                "Block.Type.Invalid", f"Type '{block_type}' is not an asset block type."))
        if not client_asset:
            errors.append(DomainError(
                "Block.AssetClientId.Empty", "AssetClientId is required for asset blocks."))
        errors += _max_length_error("Block.AssetClientId.TooLong", "AssetClientId",
                                    client_asset, ASSET_CLIENT_ID_MAX_LENGTH)
        if not file_name:
            errors.append(DomainError(
                "Block.AssetFileName.Empty", "AssetFileName is required for asset blocks."))
        errors += _max_length_error("Block.AssetFileName.TooLong", "AssetFileName",
                                    file_name, ASSET_FILE_NAME_MAX_LENGTH)
        errors += _max_length_error("Block.AssetContentType.TooLong", "AssetContentType",
                                    content_type, ASSET_CONTENT_TYPE_MAX_LENGTH)
        if asset_size_bytes is None or asset_size_bytes <= 0:
            errors.append(DomainError(
                "Block.AssetSizeBytes.Invalid", "AssetSizeBytes must be a positive number."))
        if errors:
            return DomainResult.failure(errors)

        block = cls._new(user_id, parent_id, parent_type, block_type,
                         normalized_position, now, client_id, origin_device_id)
        block.asset_client_id = client_asset
        block.asset_file_name = file_name
        block.asset_content_type = content_type
        block.asset_size_bytes = asset_size_bytes
        block.upload_status = UploadStatus.PENDING.value
        return DomainResult.success(block)

    def _deleted_error(self) -> DomainResult:
        return DomainResult.failure(DomainError("Block.Deleted", "Cannot update a deleted block."))

    def apply_changes(self, now, position=None, text_content=None) -> DomainResult:
        """
        Pozisyon ve/veya metin değişikliği.

        None olan alan değişmez. Bir şey değiştiyse versiyon bir kez artar.
        """
        if self.is_deleted:
            return self._deleted_error()

        errors = []
        normalized_position = None
        if position is not None:
            normalized_position = position.strip()
            errors += _position_errors(normalized_position)
        if text_content is not None and not self.is_text_block:
            errors.append(DomainError(
                "Block.Type.Invalid", "Cannot set text content on an asset block."))
        if errors:
            return DomainResult.failure(errors)

        changed = False
        if normalized_position is not None and normalized_position != self.position:
            self.position = normalized_position
            changed = True
        if text_content is not None and text_content != self.text_content:
            self.text_content = text_content
            changed = True
        if changed:
            self._bump(now)
        return DomainResult.success(changed)

    def update_text_content(self, text_content, now) -> DomainResult:
        return self.apply_changes(now, text_content=text_content if text_content is not None else "")

    def update_position(self, position, now) -> DomainResult:
        return self.apply_changes(now, position=position or "")

    def set_asset_uploaded(self, asset_id, now) -> DomainResult:
        if self.is_deleted:
            return self._deleted_error()
        if not self.is_asset_block:
            return DomainResult.failure(
                DomainError("Block.Type.Invalid", "Cannot set asset on a text block."))
        if _is_blank(asset_id):
            return DomainResult.failure(
                DomainError("Block.AssetId.Empty", "AssetId must be a non-empty identifier."))
        if self.asset_id:
            return DomainResult.failure(
                DomainError("Block.Asset.AlreadySet", "Block already has an asset linked."))
        self.asset_id = asset_id
        self.upload_status = UploadStatus.SYNCED.value
        self._bump(now)
        return DomainResult.success(True)

    def soft_delete(self, now) -> DomainResult:
        return self._soft_delete(now)


# =============================================================================
# CİHAZ
# =============================================================================

class UserDevice(Base):
    """Kullanıcı cihazları - sadece sahiplik/aktiflik kontrol edilir."""

    __tablename__ = "user_devices"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    device_token = Column(String(512), nullable=True)
    platform = Column(String(50), nullable=True)
    device_name = Column(String(200), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def is_usable_by(self, user_id: str) -> bool:
        return self.user_id == user_id and bool(self.is_active) and not self.is_deleted


# =============================================================================
# OUTBOX
# =============================================================================

class OutboxMessage(Base):
    """
    Transactional outbox kaydı.

    Varlık değişikliğiyle aynı commit içinde yazılır. Dış dispatcher
    işler ve processed_at'i doldurur (en az bir kez teslim).
    """

    __tablename__ = "outbox_messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    aggregate_type = Column(String(50), nullable=False)
    aggregate_id = Column(String(36), nullable=False, index=True)
    message_type = Column(String(100), nullable=False)  # "Task.Created" gibi
    payload = Column(Text, nullable=False)
    attempt_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    processed_at = Column(DateTime, nullable=True)
    last_attempt_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_outbox_pending', 'processed_at', 'created_at'),
    )

    @classmethod
    def create(cls, user_id, aggregate_type, aggregate_id, message_type, payload,
               now) -> DomainResult:
        errors = []
        if _is_blank(user_id):
            errors.append(DomainError("Outbox.UserId.Empty", "UserId must be a non-empty identifier."))
        if _is_blank(aggregate_type):
            errors.append(DomainError("Outbox.AggregateType.Empty", "AggregateType is required."))
        if _is_blank(aggregate_id):
            errors.append(DomainError("Outbox.AggregateId.Empty", "AggregateId is required."))
        if _is_blank(message_type):
            errors.append(DomainError("Outbox.MessageType.Empty", "MessageType is required."))
        if _is_blank(payload):
            errors.append(DomainError("Outbox.Payload.Empty", "Payload is required."))
        if errors:
            return DomainResult.failure(errors)

        message = cls(
            id=generate_uuid(),
            user_id=user_id,
            aggregate_type=aggregate_type.strip(),
            aggregate_id=aggregate_id,
            message_type=message_type.strip(),
            payload=payload,
            attempt_count=0,
            created_at=now,
        )
        return DomainResult.success(message)

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None

    def mark_processed(self, now):
        if self.processed_at is None:
            self.processed_at = now

    def increment_attempt(self, now):
        self.attempt_count = (self.attempt_count or 0) + 1
        self.last_attempt_at = now
