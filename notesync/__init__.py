# -*- coding: utf-8 -*-
"""
NoteSync - Görev ve Not Senkronizasyon Sunucusu

Birden fazla cihaz arasında görev, not ve not bloklarının çevrimdışı
senkronizasyonunu sağlar.

Çakışma Tespiti: İyimser kilit (her kayıttaki version sayacı)
Çakışma Çözümü: İstemcinin açık tercihi (KeepServer / KeepClient)
Olay Kaydı: Transactional outbox (her değişiklik + mesaj tek commit)
"""

__version__ = '1.0.0'
