# -*- coding: utf-8 -*-
"""
Not silme - bloklara soft delete yayılımı.

Her blok bağımsız işlenir: silinemeyen veya outbox mesajı üretilemeyen
blok loglanıp atlanır, not ve diğer bloklar yine de kaydedilir.
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from . import repositories
from .models import Block, BlockParentType, Note
from .outbox import BlockEventType, build_outbox_message

logger = logging.getLogger(__name__)


def cascade_delete_note_blocks(db: Session, note: Note, device_id, now) -> List[Block]:
    """
    Notun canlı bloklarını soft delete et.

    Returns:
        Silinen bloklar (atlananlar hariç)
    """
    blocks = repositories.get_live_blocks_for_parent(
        db, note.user_id, note.id, BlockParentType.NOTE)

    deleted = []
    for block in blocks:
        state = block.capture_state()
        result = block.soft_delete(now)
        if not result.is_success:
            logger.warning(
                f"Blok silinemedi, atlanıyor: block={block.id}, note={note.id}, "
                f"errors={[e.code for e in result.errors]}"
            )
            block.restore_state(state)
            continue
        if not result.value:
            # Bu istekte zaten silinmiş
            continue

        outbox_result = build_outbox_message(block, BlockEventType.DELETED, device_id, now)
        if not outbox_result.is_success:
            logger.warning(
                f"Blok outbox mesajı oluşturulamadı, atlanıyor: block={block.id}, "
                f"errors={[e.code for e in outbox_result.errors]}"
            )
            block.restore_state(state)
            continue

        db.add(outbox_result.value)
        deleted.append(block)

    if blocks:
        logger.info(f"Not silindi: note={note.id}, bloklar={len(deleted)}/{len(blocks)}")
    return deleted
