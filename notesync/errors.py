# -*- coding: utf-8 -*-
"""
Domain hataları ve sonuç tipleri.

Doğrulama hataları exception olarak fırlatılmaz, DomainResult ile döner.
Sadece istek seviyesindeki hatalar (cihaz, limit, iptal) exception'dır.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


@dataclass(frozen=True)
class DomainError:
    """Tek bir doğrulama hatası (ör: Task.Title.Empty)."""
    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {'code': self.code, 'message': self.message}


@dataclass
class DomainResult:
    """Domain işlem sonucu."""
    value: Any = None
    errors: List[DomainError] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return not self.errors

    @classmethod
    def success(cls, value: Any = None) -> 'DomainResult':
        return cls(value=value)

    @classmethod
    def failure(cls, errors: Union[DomainError, List[DomainError]]) -> 'DomainResult':
        if isinstance(errors, DomainError):
            errors = [errors]
        return cls(errors=list(errors))


class NoteSyncError(Exception):
    """Temel hata sınıfı."""

    code = "NoteSync.Error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class DeviceNotFoundError(NoteSyncError):
    """Cihaz yok, başka kullanıcıya ait veya pasif."""

    code = "Device.NotFound"

    def __init__(self, device_id: str):
        super().__init__(f"Device '{device_id}' was not found for the current user.")
        self.device_id = device_id


class SyncRequestValidationError(NoteSyncError):
    """İstek işlenmeden reddedildi (boyut limiti, eksik alan)."""

    code = "Sync.Request.Invalid"

    def __init__(self, errors: List[DomainError]):
        super().__init__("; ".join(e.message for e in errors))
        self.errors = errors


class SyncCancelledError(NoteSyncError):
    """İstemci isteği iptal etti, hiçbir şey yazılmadı."""

    code = "Sync.Cancelled"


def check_cancelled(cancel_event) -> None:
    """İptal sinyali geldiyse işlemi durdur."""
    if cancel_event is not None and cancel_event.is_set():
        raise SyncCancelledError("Sync request was cancelled.")
