"""
Request lifecycle engine.

    Pending -> Approved -> Returned   (Returnable only)
    Pending -> Rejected
    Pending -> (deleted)              cancel by the requester

Every transition is one conditional store operation that matches on the
request id *and* its current status. The coupled inventory change is applied
only when that operation reports it actually changed a document, which is
what makes repeated approvals and returns no-ops and keeps cancel from
deleting a request that was approved a moment earlier.
"""

import logging
from typing import Optional, List, Dict

import access
from auth import Principal
from database import ASSETS, REQUESTS, object_id, serialize
from errors import InvalidInput, InventoryAdjustmentPending, InventoryExhausted, NotFound, StoreUnavailable
from inventory import name_filter
from schemas import (
    APPROVED, PENDING, REJECTED, RETURNABLE, RETURNED,
    Request, RequestCreateRequest, TransitionResult, utcnow,
)

logger = logging.getLogger(__name__)


class RequestLifecycle:
    def __init__(self, store, policy, inventory):
        self.store = store
        self.policy = policy
        self.inventory = inventory

    def create(self, principal: Principal, payload: RequestCreateRequest) -> Dict:
        account = self.policy.require(principal, access.REQUEST_CREATE)
        asset = self.store.find_one(ASSETS, {"_id": object_id(payload.asset_id, "assetId")})
        # Assets of other teams are reported like missing ones
        if asset is None or asset.get("hrEmail") != account.get("hrEmail"):
            raise NotFound("Asset not found")
        # Advisory only; the floor is enforced again when HR approves
        if asset.get("productQuantity", 0) <= 0:
            raise InventoryExhausted(f"Asset {payload.asset_id} has no units left")

        doc = Request(
            asset_id=str(asset["_id"]),
            hr_email=asset["hrEmail"],
            user_email=principal.email,
            user_name=account.get("name") or principal.email,
            product_name=asset["productName"],
            product_type=asset["productType"],
            note=payload.note,
        ).to_document()
        inserted_id = self.store.insert_one(REQUESTS, doc)
        logger.info("request %s created by %s for asset %s", inserted_id, principal.email, doc["assetId"])
        return {"insertedId": str(inserted_id)}

    def decide(self, principal: Principal, request_id: str, status: str) -> TransitionResult:
        if status == APPROVED:
            return self.approve(principal, request_id)
        if status == REJECTED:
            return self.reject(principal, request_id)
        raise InvalidInput(f"Cannot set status {status!r}")

    def approve(self, principal: Principal, request_id: str) -> TransitionResult:
        self.policy.require(principal, access.REQUEST_DECIDE)
        oid = object_id(request_id)
        request = self.store.find_one(REQUESTS, {"_id": oid, "hrEmail": principal.email})
        if request is None:
            raise NotFound("Request not found")
        if request["status"] != PENDING:
            logger.info("approve of %s ignored, already %s", request_id, request["status"])
            return TransitionResult(matched_count=0, modified_count=0, status=request["status"])

        asset_id = request["assetId"]
        try:
            self.inventory.adjust_quantity(asset_id, -1)
        except InventoryExhausted:
            # A concurrent approval of this same request may have taken the last unit
            current = self.store.find_one(REQUESTS, {"_id": oid})
            if current is not None and current["status"] != PENDING:
                logger.info("approve of %s ignored, already %s", request_id, current["status"])
                return TransitionResult(matched_count=0, modified_count=0, status=current["status"])
            raise
        try:
            result = self.store.update_one(
                REQUESTS,
                {"_id": oid, "status": PENDING},
                {"$set": {"status": APPROVED, "approvalDate": utcnow()}},
            )
        except StoreUnavailable:
            self._compensate(request_id, asset_id, PENDING)
            raise

        if result.modified_count == 0:
            # Someone else moved the request on between our read and our update
            self._compensate(request_id, asset_id, PENDING)
            current = self.store.find_one(REQUESTS, {"_id": oid})
            status = current["status"] if current else None
            logger.warning("approve of %s lost a race, request is now %s", request_id, status)
            return TransitionResult(matched_count=result.matched_count, modified_count=0, status=status)

        logger.info("request %s approved by %s", request_id, principal.email)
        return TransitionResult(matched_count=result.matched_count, modified_count=1, status=APPROVED)

    def reject(self, principal: Principal, request_id: str) -> TransitionResult:
        self.policy.require(principal, access.REQUEST_DECIDE)
        oid = object_id(request_id)
        result = self.store.update_one(
            REQUESTS,
            {"_id": oid, "hrEmail": principal.email, "status": PENDING},
            {"$set": {"status": REJECTED, "approvalDate": utcnow()}},
        )
        if result.modified_count == 0:
            current = self.store.find_one(REQUESTS, {"_id": oid, "hrEmail": principal.email})
            if current is None:
                raise NotFound("Request not found")
            logger.info("reject of %s ignored, already %s", request_id, current["status"])
            return TransitionResult(matched_count=result.matched_count, modified_count=0, status=current["status"])
        logger.info("request %s rejected by %s", request_id, principal.email)
        return TransitionResult(matched_count=result.matched_count, modified_count=1, status=REJECTED)

    def return_request(self, principal: Principal, request_id: str) -> TransitionResult:
        self.policy.require(principal, access.REQUEST_RETURN)
        oid = object_id(request_id)
        request = self.store.find_one_and_update(
            REQUESTS,
            {"_id": oid, "userEmail": principal.email, "status": APPROVED, "productType": RETURNABLE},
            {"$set": {"status": RETURNED, "returnDate": utcnow()}},
        )
        if request is None:
            current = self.store.find_one(REQUESTS, {"_id": oid, "userEmail": principal.email})
            if current is None:
                raise NotFound("Request not found")
            if current.get("productType") != RETURNABLE:
                raise InvalidInput("Non-returnable assets cannot be returned")
            logger.info("return of %s ignored, request is %s", request_id, current["status"])
            return TransitionResult(matched_count=0, modified_count=0, status=current["status"])

        asset_id = request["assetId"]
        try:
            self.inventory.adjust_quantity(asset_id, 1)
        except NotFound:
            logger.warning("asset %s of returned request %s no longer exists, nothing restocked", asset_id, request_id)
        except StoreUnavailable as e:
            logger.error("request %s is Returned but asset %s was not restocked", request_id, asset_id)
            raise InventoryAdjustmentPending(request_id, asset_id, 1, RETURNED) from e
        logger.info("request %s returned by %s", request_id, principal.email)
        return TransitionResult(matched_count=1, modified_count=1, status=RETURNED)

    def cancel(self, principal: Principal, request_id: str) -> Dict:
        self.policy.require(principal, access.REQUEST_CANCEL)
        deleted = self.store.delete_one(
            REQUESTS, {"_id": object_id(request_id), "userEmail": principal.email, "status": PENDING}
        )
        if deleted:
            logger.info("request %s cancelled by %s", request_id, principal.email)
        else:
            logger.info("cancel of %s by %s matched no pending request", request_id, principal.email)
        return {"deletedCount": deleted}

    def list_for_hr(self, principal: Principal, hr_email: str, search: Optional[str] = None,
                    status: Optional[str] = None) -> List[Dict]:
        self.policy.require(principal, access.REQUEST_LIST_ALL, {"hrEmail": hr_email})
        query: Dict = {"hrEmail": hr_email}
        if search:
            query["$or"] = [{"userEmail": name_filter(search)}, {"userName": name_filter(search)}]
        if status:
            query["status"] = status
        return [serialize(r) for r in self.store.find(REQUESTS, query, sort=[("requestDate", -1)])]

    def list_for_user(self, principal: Principal, email: str, search: Optional[str] = None,
                      status: Optional[str] = None, product_type: Optional[str] = None) -> List[Dict]:
        self.policy.require(principal, access.REQUEST_LIST_OWN, {"owner": email})
        query: Dict = {"userEmail": email}
        if search:
            query["productName"] = name_filter(search)
        if status:
            query["status"] = status
        if product_type:
            query["productType"] = product_type
        return [serialize(r) for r in self.store.find(REQUESTS, query, sort=[("requestDate", -1)])]

    def _compensate(self, request_id: str, asset_id: str, status: str) -> None:
        """Give back a unit taken for an approval that did not go through."""
        try:
            self.inventory.adjust_quantity(asset_id, 1)
        except NotFound:
            logger.warning("asset %s vanished before approval of %s could be undone", asset_id, request_id)
        except StoreUnavailable as e:
            logger.error("asset %s is short one unit for request %s (%s)", asset_id, request_id, status)
            raise InventoryAdjustmentPending(request_id, asset_id, 1, status) from e
