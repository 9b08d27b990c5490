# envwatch/models/status.py
from enum import Enum


class ReportStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    REJECTED = "Rejected"


class ReportCategory(str, Enum):
    SAMPAH = "Sampah"
    BANJIR = "Banjir"
    JALAN_RUSAK = "Jalan Rusak"
    POHON_TUMBANG = "Pohon Tumbang"
    BUTUH_VERIFIKASI = "Butuh Verifikasi"


VALID_STATUSES = [s.value for s in ReportStatus]
VALID_CATEGORIES = [c.value for c in ReportCategory]
