# -*- coding: utf-8 -*-
"""
Depo (repository) sorguları.

Sync motorları veritabanına sadece bu fonksiyonlar üzerinden erişir.
Tüm sorgular kullanıcıya göre filtrelenir; başka kullanıcının kaydı
"yok" olarak görünür.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from .errors import DeviceNotFoundError
from .models import Block, BlockParentType, OutboxMessage, TaskItem, UserDevice


def get_owned(db: Session, model_class, user_id: str, entity_id: str):
    """Kullanıcıya ait kaydı getir (silinmiş olsa da)."""
    if not entity_id:
        return None
    return db.query(model_class).filter(
        model_class.id == entity_id,
        model_class.user_id == user_id,
    ).first()


def find_by_client_id(db: Session, model_class, user_id: str, origin_device_id: str,
                      client_id: str):
    """
    Aynı cihazın aynı korelasyon kimliğiyle daha önce oluşturduğu kayıt.

    client_id cihazda üretilir; farklı cihazların aynı değeri kullanması
    ayrı kayıtlar demektir.
    """
    return db.query(model_class).filter(
        model_class.user_id == user_id,
        model_class.origin_device_id == origin_device_id,
        model_class.client_id == client_id,
    ).order_by(model_class.created_at.asc()).first()


def get_changed_since(db: Session, model_class, user_id: str,
                      since: Optional[datetime]) -> List:
    """
    Pull için değişen kayıtlar.

    since yoksa: silinmemiş tüm kayıtlar (ilk senkronizasyon).
    since varsa: updated_at > since olan tüm kayıtlar (silinenler dahil).
    """
    query = db.query(model_class).filter(model_class.user_id == user_id)
    if since is None:
        query = query.filter(model_class.is_deleted == False)  # noqa: E712
    else:
        query = query.filter(model_class.updated_at > since)
    return query.order_by(model_class.updated_at.asc(), model_class.id.asc()).all()


def get_live_blocks_for_parent(db: Session, user_id: str, parent_id: str,
                               parent_type: BlockParentType) -> List[Block]:
    return db.query(Block).filter(
        Block.user_id == user_id,
        Block.parent_id == parent_id,
        Block.parent_type == parent_type.value,
        Block.is_deleted == False,  # noqa: E712
    ).order_by(Block.position.asc()).all()


def get_due_reminders(db: Session, now: datetime, limit: int) -> List[TaskItem]:
    """
    Zamanı gelmiş, henüz gönderilmemiş ve onaylanmamış hatırlatıcılar.

    Silinmiş görevler hariç, en eski hatırlatıcıdan başlayarak.
    """
    return db.query(TaskItem).filter(
        TaskItem.is_deleted == False,  # noqa: E712
        TaskItem.reminder_at_utc.isnot(None),
        TaskItem.reminder_at_utc <= now,
        TaskItem.reminder_sent_at_utc.is_(None),
        TaskItem.reminder_acknowledged_at_utc.is_(None),
    ).order_by(TaskItem.reminder_at_utc.asc(), TaskItem.id.asc()).limit(limit).all()


def get_device(db: Session, device_id: str) -> Optional[UserDevice]:
    if not device_id:
        return None
    return db.query(UserDevice).filter(UserDevice.id == device_id).first()


def get_pending_outbox(db: Session, limit: int) -> List[OutboxMessage]:
    """İşlenmemiş outbox mesajları, en eskiden başlayarak."""
    return db.query(OutboxMessage).filter(
        OutboxMessage.processed_at.is_(None),
    ).order_by(OutboxMessage.created_at.asc(), OutboxMessage.id.asc()).limit(limit).all()


def ensure_usable_device(db: Session, user_id: str, device_id: str) -> UserDevice:
    """Cihaz kullanıcıya ait, aktif ve silinmemiş olmalı."""
    device = get_device(db, device_id)
    if device is None or not device.is_usable_by(user_id):
        raise DeviceNotFoundError(device_id)
    return device
