"""
Dashboard projections. Point-in-time reads, no consistency guarantees.
"""

from datetime import date, datetime
from typing import Optional, Dict

import access
from auth import Principal
from database import ASSETS, REQUESTS, serialize
from schemas import NON_RETURNABLE, PENDING, RETURNABLE, utcnow


def _as_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            return None
    return None


class StatsAggregator:
    def __init__(self, store, policy, low_stock_threshold: int = 10, pending_preview_limit: int = 5):
        self.store = store
        self.policy = policy
        self.low_stock_threshold = low_stock_threshold
        self.pending_preview_limit = pending_preview_limit

    def hr_stats(self, principal: Principal, hr_email: str) -> Dict:
        self.policy.require(principal, access.STATS_HR, {"hrEmail": hr_email})
        pending = self.store.find(
            REQUESTS, {"hrEmail": hr_email, "status": PENDING},
            sort=[("requestDate", -1)], limit=self.pending_preview_limit,
        )
        limited = self.store.find(ASSETS, {"hrEmail": hr_email, "productQuantity": {"$lt": self.low_stock_threshold}})
        returnable = self.store.count_documents(ASSETS, {"hrEmail": hr_email, "productType": RETURNABLE})
        non_returnable = self.store.count_documents(ASSETS, {"hrEmail": hr_email, "productType": NON_RETURNABLE})
        return {
            "pendingRequests": [serialize(r) for r in pending],
            "limitedStock": [serialize(a) for a in limited],
            "chartData": [
                {"name": RETURNABLE, "value": returnable},
                {"name": NON_RETURNABLE, "value": non_returnable},
            ],
        }

    def employee_stats(self, principal: Principal, email: str, today: Optional[date] = None) -> Dict:
        self.policy.require(principal, access.STATS_EMPLOYEE, {"owner": email})
        today = today or utcnow().date()
        requests = self.store.find(REQUESTS, {"userEmail": email})
        pending = [r for r in requests if r.get("status") == PENDING]
        monthly = 0
        for r in requests:
            requested_on = _as_date(r.get("requestDate"))
            if requested_on and (requested_on.year, requested_on.month) == (today.year, today.month):
                monthly += 1
        return {
            "pendingRequests": [serialize(r) for r in pending],
            "monthlyCount": monthly,
        }
