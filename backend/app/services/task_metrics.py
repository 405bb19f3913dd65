from __future__ import annotations
from dataclasses import dataclass

@dataclass
class AuditRunStats:
    scanned_accounts: int = 0
    drifted_accounts: int = 0
    repaired_accounts: int = 0
    drifted_rows: int = 0
    errors: int = 0
