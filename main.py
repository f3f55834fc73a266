import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from access import AccessPolicy
from auth import Principal, TokenVerifier
from config import Config
from database import MongoStore
from errors import ServiceError, StoreUnavailable
from inventory import InventoryManager
from lifecycle import RequestLifecycle
from schemas import (
    AddToTeamRequest, AssetCreateRequest, AssetUpdateRequest, ProductType, ProfileUpdateRequest,
    RequestCreateRequest, RequestDecisionRequest, RequestStatus, TokenRequest, UserCreateRequest,
)
from stats import StatsAggregator
from team import TeamDirectory

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


# ----------------------------
# Dependencies
# ----------------------------
def get_principal(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Principal:
    token = credentials.credentials if credentials and credentials.scheme.lower() == "bearer" else None
    return request.app.state.verifier.verify(token)


def get_inventory(request: Request) -> InventoryManager:
    return request.app.state.inventory


def get_lifecycle(request: Request) -> RequestLifecycle:
    return request.app.state.lifecycle


def get_stats(request: Request) -> StatsAggregator:
    return request.app.state.stats


def get_team(request: Request) -> TeamDirectory:
    return request.app.state.team


# ----------------------------
# FastAPI App
# ----------------------------
def create_app(config_class=Config, store: Optional[MongoStore] = None) -> FastAPI:
    configure_logging(config_class.LOG_LEVEL)
    if store is None:
        store = MongoStore.connect(config_class.DATABASE_URL, config_class.DATABASE_NAME)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            store.ensure_indexes()
        except StoreUnavailable:
            logger.warning("could not ensure indexes, store unreachable at startup")
        yield

    app = FastAPI(title="Asset Tracking API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config_class.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    policy = AccessPolicy(store)
    inventory = InventoryManager(store, policy)
    app.state.store = store
    app.state.verifier = TokenVerifier(ttl_hours=config_class.TOKEN_TTL_HOURS)
    app.state.inventory = inventory
    app.state.lifecycle = RequestLifecycle(store, policy, inventory)
    app.state.stats = StatsAggregator(
        store, policy,
        low_stock_threshold=config_class.LOW_STOCK_THRESHOLD,
        pending_preview_limit=config_class.PENDING_PREVIEW_LIMIT,
    )
    app.state.team = TeamDirectory(store, policy)

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in e.get("loc", ())) for e in exc.errors()]
        return JSONResponse(
            status_code=422,
            content={"kind": "InvalidInput", "message": f"Invalid or missing fields: {', '.join(fields)}"},
        )

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    # ----------------------------
    # Health/Test Endpoints
    # ----------------------------
    @app.get("/")
    def root():
        return {"message": "Asset Tracking Backend Running"}

    @app.get("/test")
    def test_database(request: Request):
        try:
            collections = request.app.state.store.list_collection_names()
            return {"backend": "ok", "database": "ok", "collections": collections}
        except StoreUnavailable as e:
            return {"backend": "ok", "database": f"error: {e.message}"}

    # ----------------------------
    # Auth
    # ----------------------------
    @app.post("/jwt")
    def issue_token(payload: TokenRequest, request: Request):
        return {"token": request.app.state.verifier.issue(payload.email)}

    # ----------------------------
    # Users and team
    # ----------------------------
    @app.get("/users/role/{email}")
    def user_role(email: str, team=Depends(get_team)):
        return team.get_role(email)

    @app.get("/users/{email}")
    def user_profile(email: str, principal=Depends(get_principal), team=Depends(get_team)):
        return team.get_profile(principal, email)

    @app.post("/users")
    def register_user(payload: UserCreateRequest, team=Depends(get_team)):
        return team.register(payload)

    @app.patch("/users/update/{email}")
    def update_user(email: str, payload: ProfileUpdateRequest, principal=Depends(get_principal), team=Depends(get_team)):
        return team.update_profile(principal, email, payload)

    @app.get("/unaffiliated-employees")
    def unaffiliated_employees(principal=Depends(get_principal), team=Depends(get_team)):
        return team.list_unaffiliated(principal)

    @app.get("/team-count/{email}")
    def team_count(email: str, principal=Depends(get_principal), team=Depends(get_team)):
        return team.team_count(principal, email)

    @app.patch("/add-to-team")
    def add_to_team(payload: AddToTeamRequest, principal=Depends(get_principal), team=Depends(get_team)):
        return team.add_to_team(principal, payload)

    @app.get("/my-employees/{email}")
    def my_employees(email: str, principal=Depends(get_principal), team=Depends(get_team)):
        return team.list_employees(principal, email)

    @app.patch("/employees/remove/{employee_id}")
    def remove_employee(employee_id: str, principal=Depends(get_principal), team=Depends(get_team)):
        return team.remove_from_team(principal, employee_id)

    @app.get("/my-team/{email}")
    def my_team(email: str, principal=Depends(get_principal), team=Depends(get_team)):
        return team.my_team(principal, email)

    # ----------------------------
    # Assets
    # ----------------------------
    @app.post("/assets")
    def create_asset(payload: AssetCreateRequest, principal=Depends(get_principal), inventory=Depends(get_inventory)):
        return inventory.create(principal, payload)

    @app.get("/assets/{email}")
    def list_assets(
        email: str,
        search: Optional[str] = None,
        product_type: Optional[ProductType] = Query(None, alias="filter"),
        sort: Optional[str] = None,
        principal=Depends(get_principal),
        inventory=Depends(get_inventory),
    ):
        return inventory.list_for_hr(principal, email, search=search, product_type=product_type, sort=sort)

    @app.put("/assets/{asset_id}")
    def update_asset(asset_id: str, payload: AssetUpdateRequest, principal=Depends(get_principal),
                     inventory=Depends(get_inventory)):
        return inventory.update(principal, asset_id, payload)

    @app.delete("/assets/{asset_id}")
    def delete_asset(asset_id: str, principal=Depends(get_principal), inventory=Depends(get_inventory)):
        return inventory.delete(principal, asset_id)

    @app.get("/available-assets/{hr_email}")
    def available_assets(
        hr_email: str,
        search: Optional[str] = None,
        product_type: Optional[ProductType] = Query(None, alias="type"),
        principal=Depends(get_principal),
        inventory=Depends(get_inventory),
    ):
        return inventory.list_available(principal, hr_email, search=search, product_type=product_type)

    # ----------------------------
    # Requests
    # ----------------------------
    @app.post("/requests")
    def create_request(payload: RequestCreateRequest, principal=Depends(get_principal),
                       lifecycle=Depends(get_lifecycle)):
        return lifecycle.create(principal, payload)

    @app.get("/all-requests/{email}")
    def all_requests(email: str, search: Optional[str] = None, status: Optional[RequestStatus] = None,
                     principal=Depends(get_principal), lifecycle=Depends(get_lifecycle)):
        return lifecycle.list_for_hr(principal, email, search=search, status=status)

    @app.patch("/requests/{request_id}")
    def decide_request(request_id: str, payload: RequestDecisionRequest, principal=Depends(get_principal),
                       lifecycle=Depends(get_lifecycle)):
        return lifecycle.decide(principal, request_id, payload.status).model_dump(by_alias=True)

    @app.get("/my-requests/{email}")
    def my_requests(
        email: str,
        search: Optional[str] = None,
        status: Optional[RequestStatus] = None,
        product_type: Optional[ProductType] = Query(None, alias="type"),
        principal=Depends(get_principal),
        lifecycle=Depends(get_lifecycle),
    ):
        return lifecycle.list_for_user(principal, email, search=search, status=status, product_type=product_type)

    @app.delete("/requests/cancel/{request_id}")
    def cancel_request(request_id: str, principal=Depends(get_principal), lifecycle=Depends(get_lifecycle)):
        return lifecycle.cancel(principal, request_id)

    @app.patch("/requests/return/{request_id}")
    def return_request(request_id: str, principal=Depends(get_principal), lifecycle=Depends(get_lifecycle)):
        return lifecycle.return_request(principal, request_id).model_dump(by_alias=True)

    # ----------------------------
    # Dashboard stats
    # ----------------------------
    @app.get("/hr-stats/{email}")
    def hr_stats(email: str, principal=Depends(get_principal), stats=Depends(get_stats)):
        return stats.hr_stats(principal, email)

    @app.get("/employee-stats/{email}")
    def employee_stats(email: str, principal=Depends(get_principal), stats=Depends(get_stats)):
        return stats.employee_stats(principal, email)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=Config.PORT)
