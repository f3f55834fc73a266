"""
Asset inventory manager.

Owns the ``assets`` collection and the ``productQuantity`` bookkeeping.
Quantity changes driven by the request lifecycle go through
``adjust_quantity``, a single guarded ``$inc`` so that concurrent approvals
can never take the stock below zero.
"""

import logging
import re
from typing import Optional, List, Dict

import access
from auth import Principal
from database import ASSETS, object_id, serialize
from errors import InvalidInput, InventoryExhausted, NotFound
from schemas import Asset, AssetCreateRequest, AssetUpdateRequest

logger = logging.getLogger(__name__)


def name_filter(search: Optional[str]) -> Optional[Dict]:
    if not search:
        return None
    return {"$regex": re.escape(search), "$options": "i"}


class InventoryManager:
    def __init__(self, store, policy):
        self.store = store
        self.policy = policy

    def create(self, principal: Principal, payload: AssetCreateRequest) -> Dict:
        self.policy.require(principal, access.ASSET_CREATE)
        asset = Asset(
            hr_email=principal.email,
            product_name=payload.product_name,
            product_type=payload.product_type,
            product_quantity=payload.product_quantity,
        ).to_document()
        asset["_id"] = self.store.insert_one(ASSETS, asset)
        logger.info("asset %s created by %s with quantity %d", asset["_id"], principal.email, asset["productQuantity"])
        return serialize(asset)

    def update(self, principal: Principal, asset_id: str, payload: AssetUpdateRequest) -> Dict:
        self.policy.require(principal, access.ASSET_UPDATE)
        changes = payload.model_dump(by_alias=True, exclude_none=True)
        if not changes:
            raise InvalidInput("Nothing to update")
        updated = self.store.find_one_and_update(
            ASSETS,
            {"_id": object_id(asset_id, "assetId"), "hrEmail": principal.email},
            {"$set": changes},
        )
        if updated is None:
            raise NotFound("Asset not found")
        logger.info("asset %s edited by %s: %s", asset_id, principal.email, sorted(changes))
        return serialize(updated)

    def delete(self, principal: Principal, asset_id: str) -> Dict:
        self.policy.require(principal, access.ASSET_DELETE)
        deleted = self.store.delete_one(ASSETS, {"_id": object_id(asset_id, "assetId"), "hrEmail": principal.email})
        if not deleted:
            raise NotFound("Asset not found")
        logger.info("asset %s deleted by %s", asset_id, principal.email)
        return {"deletedCount": deleted}

    def adjust_quantity(self, asset_id: str, delta: int) -> Dict:
        """Atomically add ``delta`` to the asset's quantity.

        A decrement only matches while enough stock remains, so the floor is
        checked by the same operation that applies the change.
        """
        oid = object_id(asset_id, "assetId")
        query: Dict = {"_id": oid}
        if delta < 0:
            query["productQuantity"] = {"$gte": -delta}
        updated = self.store.find_one_and_update(ASSETS, query, {"$inc": {"productQuantity": delta}})
        if updated is None:
            if self.store.find_one(ASSETS, {"_id": oid}) is None:
                raise NotFound("Asset not found")
            raise InventoryExhausted(f"Asset {asset_id} has no units left")
        logger.debug("asset %s quantity %+d -> %d", asset_id, delta, updated["productQuantity"])
        return serialize(updated)

    def list_for_hr(self, principal: Principal, hr_email: str, search: Optional[str] = None,
                    product_type: Optional[str] = None, sort: Optional[str] = None) -> List[Dict]:
        self.policy.require(principal, access.ASSET_LIST, {"hrEmail": hr_email})
        query: Dict = {"hrEmail": hr_email}
        if search:
            query["productName"] = name_filter(search)
        if product_type:
            query["productType"] = product_type
        order = [("productQuantity", -1)] if sort == "quantity" else None
        return [serialize(a) for a in self.store.find(ASSETS, query, sort=order)]

    def list_available(self, principal: Principal, hr_email: str, search: Optional[str] = None,
                       product_type: Optional[str] = None) -> List[Dict]:
        self.policy.require(principal, access.ASSET_LIST_AVAILABLE, {"hrEmail": hr_email})
        query: Dict = {"hrEmail": hr_email, "productQuantity": {"$gt": 0}}
        if search:
            query["productName"] = name_filter(search)
        if product_type:
            query["productType"] = product_type
        return [serialize(a) for a in self.store.find(ASSETS, query)]
