from .engine import ReconciliationEngine, RowResolution
from .fingerprint import FINGERPRINT_META_KEY, build_row_fingerprint

__all__ = [
    "FINGERPRINT_META_KEY",
    "ReconciliationEngine",
    "RowResolution",
    "build_row_fingerprint",
]
