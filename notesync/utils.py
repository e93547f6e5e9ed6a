# -*- coding: utf-8 -*-
"""Zaman ve kimlik yardımcıları."""

import uuid as uuid_lib
from datetime import datetime, timezone
from typing import Optional


def generate_uuid() -> str:
    """Yeni UUID oluştur."""
    return str(uuid_lib.uuid4())


def utcnow() -> datetime:
    """Naive UTC zaman damgası (veritabanında tz bilgisi tutulmaz)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """İstemciden gelen tz'li değeri naive UTC'ye çevir."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def get_clock():
    """FastAPI dependency - testlerde override edilir."""
    return utcnow
