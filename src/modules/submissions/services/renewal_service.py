import logging
from typing import Dict, Optional

from modules.common.timeutils import Clock, utc_now
from modules.spreadsheet.services.sheet_service import SheetService, STATUS_VERIFIED

logger = logging.getLogger(__name__)


def _same_tax_code(left, right: str) -> bool:
    return str(left or "").strip().upper() == right.strip().upper()


class RenewalService:
    """Member lookups and yearly renewal checks over the membership sheets"""

    def __init__(self, sheets: SheetService, clock: Clock = utc_now):
        self.sheets = sheets
        self.clock = clock

    def find_member(self, tax_code: str) -> Optional[Dict]:
        """Latest verified membership row for the tax code, if any."""
        found = None
        for row in self.sheets.members():
            if row.get("status") == STATUS_VERIFIED and _same_tax_code(row.get("taxCode"), tax_code):
                found = row
        return found

    def has_renewed_this_year(self, tax_code: str) -> bool:
        # Check-then-act: two concurrent renewals for one member can both pass.
        year = self.clock().year
        return any(
            _same_tax_code(row.get("taxCode"), tax_code) and int(row.get("year") or 0) == year
            for row in self.sheets.renewals()
        )

    def renewal_stats(self, year: Optional[int] = None) -> Dict:
        year = year or self.clock().year
        rows = [r for r in self.sheets.renewals() if int(r.get("year") or 0) == year]
        return {
            "year": year,
            "totalRenewals": len(rows),
            "withDigitalSignature": sum(1 for r in rows if r.get("hasDigitalSignature") == "Sì"),
            "withAccount": sum(1 for r in rows if r.get("accountCreated") == "Sì"),
        }
