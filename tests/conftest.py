import os
import itertools
import pytest
from typing import Generator, Dict, Any, List, Optional
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

# Pas de Redis en test: le lifespan désactive le rate limiting
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from storefront.app import app as fastapi_app
from storefront.utils.security import require_user

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture
def fake_user() -> Dict[str, Any]:
    return {
        "id": "test-user",
        "email": "test@example.com",
        "metadata": {"full_name": "Test User"},
        "token": "fake-token",
    }

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app, fake_user):
    app.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

# Aucun accès réseau à Supabase
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: MagicMock())


class FakeStore:
    """
    Base + Stripe en mémoire, branchés à la place de storefront.checkout.repository,
    storefront.checkout.stripe_client et storefront.orders.repository.
    - fail: noms d’opérations à faire échouer (ex: {"insert_order_items"})
    """

    def __init__(self):
        self.products: Dict[str, dict] = {}
        self.customer_mappings: List[dict] = []
        self.orders: Dict[str, dict] = {}
        self.items: List[dict] = []
        self.stripe_customers: Dict[str, dict] = {}
        self.deleted_stripe_customers: List[str] = []
        self.sessions: Dict[str, dict] = {}
        self.event: Optional[dict] = None
        self.fail = set()
        self._seq = itertools.count(1)

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise RuntimeError(f"{name} failed")

    def add_product(self, product_id: str, price: str, name: str = "Produit", images=None) -> dict:
        product = {"id": product_id, "name": name, "price": price, "images": images or []}
        self.products[product_id] = product
        return product

    def items_for(self, order_id: str) -> List[dict]:
        return [dict(i) for i in self.items if i["order_id"] == order_id]

    # --- storefront.checkout.repository ---
    def fetch_products_by_ids(self, ids):
        self._check("fetch_products_by_ids")
        return [dict(self.products[i]) for i in ids if i in self.products]

    def get_active_customer_id(self, user_id):
        self._check("get_active_customer_id")
        for m in self.customer_mappings:
            if m["user_id"] == user_id and m.get("deleted_at") is None:
                return m["customer_id"]
        return None

    def insert_customer_mapping(self, user_id, customer_id):
        self._check("insert_customer_mapping")
        self.customer_mappings.append({"user_id": user_id, "customer_id": customer_id, "deleted_at": None})

    def find_order_by_idempotency_key(self, user_id, idempotency_key):
        for o in self.orders.values():
            if o["user_id"] == user_id and o.get("idempotency_key") == idempotency_key:
                return dict(o)
        return None

    def insert_order(self, payload):
        from storefront.checkout import repository
        self._check("insert_order")
        key = payload.get("idempotency_key")
        if key and self.find_order_by_idempotency_key(payload["user_id"], key):
            raise repository.DuplicateKeyError("duplicate key value violates unique constraint")
        order_id = f"order-{next(self._seq)}"
        order = {
            "id": order_id,
            "payment_intent_id": None,
            "idempotency_key": None,
            "created_at": f"2026-01-01T00:00:{len(self.orders):02d}Z",
            **payload,
        }
        self.orders[order_id] = order
        return dict(order)

    def delete_order(self, order_id):
        self._check("delete_order")
        self.orders.pop(order_id, None)

    def insert_order_items(self, rows):
        self._check("insert_order_items")
        created = []
        for row in rows:
            item = {"id": f"item-{next(self._seq)}", **row}
            self.items.append(item)
            created.append(dict(item))
        return created

    def delete_order_items(self, order_id):
        self._check("delete_order_items")
        self.items = [i for i in self.items if i["order_id"] != order_id]

    def update_order(self, order_id, fields):
        self._check("update_order")
        order = self.orders.get(order_id)
        if not order:
            return None
        order.update(fields)
        return dict(order)

    def get_order(self, order_id):
        order = self.orders.get(order_id)
        return dict(order) if order else None

    def find_order_by_session_id(self, session_id):
        for o in self.orders.values():
            if o.get("payment_intent_id") == session_id:
                return dict(o)
        return None

    # --- storefront.orders.repository ---
    def _with_items(self, order):
        return {**order, "order_items": self.items_for(order["id"])}

    def list_user_orders(self, user_id, limit=50):
        rows = [self._with_items(o) for o in self.orders.values() if o["user_id"] == user_id]
        rows.sort(key=lambda o: o["created_at"], reverse=True)
        return rows[:limit]

    def get_user_order(self, user_id, order_id):
        order = self.orders.get(order_id)
        if not order or order["user_id"] != user_id:
            return None
        return self._with_items(order)

    # --- storefront.checkout.stripe_client ---
    def create_customer(self, *, email, user_id):
        self._check("stripe_create_customer")
        customer_id = f"cus_{next(self._seq)}"
        self.stripe_customers[customer_id] = {"id": customer_id, "email": email, "metadata": {"userId": user_id}}
        return customer_id

    def delete_customer(self, customer_id):
        self._check("stripe_delete_customer")
        self.stripe_customers.pop(customer_id, None)
        self.deleted_stripe_customers.append(customer_id)

    def create_session(self, *, customer, line_items, success_url, cancel_url, metadata):
        self._check("stripe_create_session")
        session_id = f"cs_test_{next(self._seq)}"
        session = {
            "id": session_id,
            "url": f"https://checkout.stripe.test/{session_id}",
            "status": "open",
            "payment_status": "unpaid",
            "customer": customer,
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": dict(metadata),
            "payment_intent": f"pi_{session_id}",
        }
        self.sessions[session_id] = session
        return dict(session)

    def get_session(self, session_id):
        if session_id not in self.sessions:
            raise RuntimeError(f"No such checkout.session: {session_id}")
        return dict(self.sessions[session_id])

    def find_session_by_payment_intent(self, payment_intent_id):
        for s in self.sessions.values():
            if s.get("payment_intent") == payment_intent_id:
                return dict(s)
        return None

    async def parse_event(self, request):
        if self.event is None:
            raise ValueError("Invalid signature")
        return self.event


@pytest.fixture
def store(monkeypatch) -> FakeStore:
    fake = FakeStore()
    for name in (
        "fetch_products_by_ids",
        "get_active_customer_id",
        "insert_customer_mapping",
        "find_order_by_idempotency_key",
        "insert_order",
        "delete_order",
        "insert_order_items",
        "delete_order_items",
        "update_order",
        "get_order",
        "find_order_by_session_id",
    ):
        monkeypatch.setattr(f"storefront.checkout.repository.{name}", getattr(fake, name))
    for name in ("list_user_orders", "get_user_order"):
        monkeypatch.setattr(f"storefront.orders.repository.{name}", getattr(fake, name))
    for name in (
        "create_customer",
        "delete_customer",
        "create_session",
        "get_session",
        "find_session_by_payment_intent",
        "parse_event",
    ):
        monkeypatch.setattr(f"storefront.checkout.stripe_client.{name}", getattr(fake, name))
    return fake


def cart_line(product_id: str, price, quantity: int = 1, **extra) -> Dict[str, Any]:
    line = {"product": {"id": product_id, "name": f"Produit {product_id}", "price": str(price), "images": []}, "quantity": quantity}
    line.update(extra)
    return line


@pytest.fixture
def checkout_body():
    def _make(cart, **overrides) -> Dict[str, Any]:
        body = {
            "cart": cart,
            "shipping_address": {"line1": "1 rue de la Paix", "city": "Paris", "postal_code": "75002", "country": "FR"},
            "success_url": "https://shop.test/checkout/success",
            "cancel_url": "https://shop.test/cart",
        }
        body.update(overrides)
        return body
    return _make


@pytest.fixture
def make_line():
    return cart_line
