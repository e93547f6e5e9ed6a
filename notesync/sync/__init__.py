# -*- coding: utf-8 -*-
"""
NoteSync Senkronizasyon Motorları

- pull: checkpoint'ten bu yana değişenleri hesaplar (yan etkisiz)
- push: istemci değişikliklerini iyimser kilit ile uygular
- resolve: istemcinin açık çakışma çözüm tercihini uygular

Her istek tek bir commit ile biter; varlık yazımı ve outbox mesajı
birbirinden ayrı gözlemlenemez.
"""

from .models import (
    PushItemStatus,
    ResolutionChoice,
    ResolutionStatus,
    SyncConflictType,
    SyncEntityType,
    SyncLimits,
)

__all__ = [
    'PushItemStatus',
    'ResolutionChoice',
    'ResolutionStatus',
    'SyncConflictType',
    'SyncEntityType',
    'SyncLimits',
]
