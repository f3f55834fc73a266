"""
Error taxonomy for the asset tracking service.

Every failure raised by the core carries a stable ``kind`` and a message.
The HTTP layer renders them as ``{"kind": ..., "message": ...}``.
"""

from typing import Optional, Dict


class ServiceError(Exception):
    kind = "ServiceError"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict:
        return {"kind": self.kind, "message": self.message}


class Unauthenticated(ServiceError):
    kind = "Unauthenticated"
    status_code = 401
    default_message = "unauthorized access"


class Forbidden(ServiceError):
    kind = "Forbidden"
    status_code = 403
    default_message = "forbidden access"


class NotFound(ServiceError):
    kind = "NotFound"
    status_code = 404
    default_message = "Not found"


class InvalidInput(ServiceError):
    kind = "InvalidInput"
    status_code = 422
    default_message = "Invalid input"


class Conflict(ServiceError):
    kind = "Conflict"
    status_code = 409
    default_message = "Conflicting update"


class InventoryExhausted(ServiceError):
    kind = "InventoryExhausted"
    status_code = 409
    default_message = "Asset is out of stock"


class StoreUnavailable(ServiceError):
    kind = "StoreUnavailable"
    status_code = 503
    default_message = "Store unavailable"


class InventoryAdjustmentPending(StoreUnavailable):
    """A request status was written but the coupled quantity change was not.

    Carries what a reconciler needs to finish the job: apply ``delta`` to
    ``asset_id`` for ``request_id``, which is now in ``status``.
    """

    def __init__(self, request_id: str, asset_id: str, delta: int, status: str):
        self.request_id = request_id
        self.asset_id = asset_id
        self.delta = delta
        self.status = status
        super().__init__(
            f"Request {request_id} is {status} but asset {asset_id} "
            f"still needs a quantity adjustment of {delta:+d}"
        )

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data["pendingAdjustment"] = {
            "requestId": self.request_id,
            "assetId": self.asset_id,
            "delta": self.delta,
            "status": self.status,
        }
        return data
