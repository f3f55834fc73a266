"""
User registration, profiles and team affiliation.
"""

import logging
from typing import Dict, List

import access
from auth import Principal
from database import USERS, object_id, serialize
from errors import Conflict, InvalidInput, NotFound
from schemas import AddToTeamRequest, ProfileUpdateRequest, User, UserCreateRequest, utcnow

logger = logging.getLogger(__name__)

AFFILIATION_FIELDS = ("hrEmail", "companyName", "companyLogo", "joinedDate")


class TeamDirectory:
    def __init__(self, store, policy):
        self.store = store
        self.policy = policy

    def register(self, payload: UserCreateRequest) -> Dict:
        if self.store.find_one(USERS, {"email": payload.email}):
            return {"message": "user exists", "insertedId": None}
        user = User(
            email=payload.email,
            name=payload.name,
            role=payload.role,
            photo=payload.photo,
            company_name=payload.company_name,
            company_logo=payload.company_logo,
        ).to_document()
        try:
            inserted_id = self.store.insert_one(USERS, user)
        except Conflict:
            # Registered concurrently under the same email
            return {"message": "user exists", "insertedId": None}
        logger.info("registered %s as %s", payload.email, payload.role)
        return {"insertedId": str(inserted_id)}

    def get_role(self, email: str) -> Dict:
        user = self.store.find_one(USERS, {"email": email})
        return {"role": user.get("role") if user else None}

    def get_profile(self, principal: Principal, email: str) -> Dict:
        account = self.policy.require(principal, access.USER_READ, {"owner": email})
        return serialize(account)

    def update_profile(self, principal: Principal, email: str, payload: ProfileUpdateRequest) -> Dict:
        self.policy.require(principal, access.USER_UPDATE, {"owner": email})
        changes = payload.model_dump(by_alias=True, exclude_none=True)
        if not changes:
            raise InvalidInput("Nothing to update")
        result = self.store.update_one(USERS, {"email": email}, {"$set": changes})
        return {"matchedCount": result.matched_count, "modifiedCount": result.modified_count}

    def list_unaffiliated(self, principal: Principal) -> List[Dict]:
        self.policy.require(principal, access.TEAM_LIST_UNAFFILIATED)
        users = self.store.find(USERS, {"role": "employee", "hrEmail": {"$exists": False}})
        return [serialize(u) for u in users]

    def team_count(self, principal: Principal, hr_email: str) -> Dict:
        self.policy.require(principal, access.TEAM_COUNT, {"hrEmail": hr_email})
        return {"count": self.store.count_documents(USERS, {"hrEmail": hr_email})}

    def add_to_team(self, principal: Principal, payload: AddToTeamRequest) -> Dict:
        account = self.policy.require(principal, access.TEAM_ADD)
        ids = [object_id(i, "employeeId") for i in payload.employee_ids]
        # Only employees nobody has claimed yet
        result = self.store.update_many(
            USERS,
            {"_id": {"$in": ids}, "role": "employee", "hrEmail": {"$exists": False}},
            {"$set": {
                "hrEmail": principal.email,
                "companyName": payload.company_name or account.get("companyName"),
                "companyLogo": payload.company_logo or account.get("companyLogo"),
                "joinedDate": utcnow(),
            }},
        )
        logger.info("%s added %d of %d employees to their team", principal.email, result.modified_count, len(ids))
        return {"matchedCount": result.matched_count, "modifiedCount": result.modified_count}

    def list_employees(self, principal: Principal, hr_email: str) -> List[Dict]:
        self.policy.require(principal, access.TEAM_LIST, {"hrEmail": hr_email})
        return [serialize(u) for u in self.store.find(USERS, {"hrEmail": hr_email})]

    def remove_from_team(self, principal: Principal, employee_id: str) -> Dict:
        self.policy.require(principal, access.TEAM_REMOVE)
        result = self.store.update_one(
            USERS,
            {"_id": object_id(employee_id, "employeeId"), "hrEmail": principal.email},
            {"$unset": {field: "" for field in AFFILIATION_FIELDS}},
        )
        if result.matched_count == 0:
            raise NotFound("Employee not found in your team")
        logger.info("%s removed employee %s from their team", principal.email, employee_id)
        return {"matchedCount": result.matched_count, "modifiedCount": result.modified_count}

    def my_team(self, principal: Principal, email: str) -> List[Dict]:
        account = self.policy.require(principal, access.TEAM_VIEW_OWN, {"owner": email})
        if not account.get("hrEmail"):
            return []
        return [serialize(u) for u in self.store.find(USERS, {"hrEmail": account["hrEmail"]})]
