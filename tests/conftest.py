"""
Shared fixtures: an in-memory MongoDB (mongomock) behind the real store
adapter, the wired core components and an HTTP test client.
"""
import mongomock
import pytest
from fastapi.testclient import TestClient

from access import AccessPolicy
from auth import Principal
from database import MongoStore, USERS
from inventory import InventoryManager
from lifecycle import RequestLifecycle
from main import create_app
from schemas import AssetCreateRequest, RequestCreateRequest
from stats import StatsAggregator
from team import TeamDirectory

HR = Principal(email="hr@acme.com")
OTHER_HR = Principal(email="hr@globex.com")
ALICE = Principal(email="alice@acme.com")
BOB = Principal(email="bob@acme.com")
CAROL = Principal(email="carol@mail.com")

SEED_USERS = [
    {"email": "hr@acme.com", "name": "Hannah", "role": "hr", "companyName": "Acme", "companyLogo": "acme.png"},
    {"email": "hr@globex.com", "name": "Gary", "role": "hr", "companyName": "Globex"},
    {"email": "alice@acme.com", "name": "Alice", "role": "employee", "hrEmail": "hr@acme.com",
     "companyName": "Acme"},
    {"email": "bob@acme.com", "name": "Bob", "role": "employee", "hrEmail": "hr@acme.com", "companyName": "Acme"},
    {"email": "carol@mail.com", "name": "Carol", "role": "employee"},
]


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["assetverse_test"]


@pytest.fixture
def store(mongo_db):
    store = MongoStore(mongo_db)
    store.ensure_indexes()
    for user in SEED_USERS:
        store.insert_one(USERS, dict(user))
    return store


@pytest.fixture
def policy(store):
    return AccessPolicy(store)


@pytest.fixture
def inventory(store, policy):
    return InventoryManager(store, policy)


@pytest.fixture
def lifecycle(store, policy, inventory):
    return RequestLifecycle(store, policy, inventory)


@pytest.fixture
def stats(store, policy):
    return StatsAggregator(store, policy, low_stock_threshold=10, pending_preview_limit=5)


@pytest.fixture
def team(store, policy):
    return TeamDirectory(store, policy)


@pytest.fixture
def make_asset(inventory):
    def _make(quantity=1, product_type="Returnable", name="Laptop", owner=HR):
        payload = AssetCreateRequest(product_name=name, product_type=product_type, product_quantity=quantity)
        return inventory.create(owner, payload)
    return _make


@pytest.fixture
def make_request(lifecycle):
    def _make(asset, employee=ALICE):
        return lifecycle.create(employee, RequestCreateRequest(asset_id=asset["_id"]))["insertedId"]
    return _make


@pytest.fixture
def app(store):
    return create_app(store=store)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def login(client):
    def _login(principal):
        token = client.post("/jwt", json={"email": principal.email}).json()["token"]
        return {"Authorization": f"Bearer {token}"}
    return _login
