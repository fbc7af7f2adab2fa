import pytest

from storefront.checkout.service import run_checkout
from storefront.checkout.errors import CheckoutConflictError, CheckoutDependencyError, CheckoutValidationError

ADDRESS = {"line1": "1 rue de la Paix", "city": "Paris"}


def _run(user, cart, **kw):
    params = dict(
        user=user,
        cart=cart,
        shipping_address=ADDRESS,
        success_url="https://shop.test/ok",
        cancel_url="https://shop.test/cart",
    )
    params.update(kw)
    return run_checkout(**params)


def test_scenario_a_single_line_with_surcharge(store, fake_user, make_line):
    store.add_product("A", "120.00", name="Veste")
    result = _run(fake_user, [make_line("A", "120", 2)])

    order = store.orders[result.order_id]
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["total_amount"] == "290.00"
    assert order["payment_intent_id"] == result.session_id
    assert store.items_for(result.order_id) == [
        {"id": store.items[0]["id"], "order_id": result.order_id, "product_id": "A", "quantity": 2, "price": "120.00"},
    ]
    assert result.url == store.sessions[result.session_id]["url"]


def test_scenario_b_free_shipping_has_no_shipping_line(store, fake_user, make_line):
    store.add_product("A", "200.00")
    store.add_product("B", "200.00")
    result = _run(fake_user, [make_line("A", "200", 2), make_line("B", "200", 1)])

    assert store.orders[result.order_id]["total_amount"] == "600.00"
    names = [li["price_data"]["product_data"]["name"] for li in store.sessions[result.session_id]["line_items"]]
    assert "Shipping" not in names
    assert len(store.items_for(result.order_id)) == 2


def test_scenario_c_missing_address_writes_nothing(store, fake_user, make_line):
    store.add_product("A", "120.00")
    with pytest.raises(CheckoutValidationError):
        _run(fake_user, [make_line("A", "120", 1)], shipping_address=None)
    assert store.orders == {}
    assert store.stripe_customers == {}


def test_scenario_d_items_failure_removes_order(store, fake_user, make_line):
    store.add_product("A", "120.00")
    store.fail.add("insert_order_items")
    with pytest.raises(CheckoutDependencyError):
        _run(fake_user, [make_line("A", "120", 1)])
    assert store.orders == {}
    assert store.sessions == {}


def test_session_failure_removes_items_and_order_keeps_customer(store, fake_user, make_line):
    store.add_product("A", "120.00")
    store.fail.add("stripe_create_session")
    with pytest.raises(CheckoutDependencyError):
        _run(fake_user, [make_line("A", "120", 1)])
    assert store.orders == {}
    assert store.items == []
    # La correspondance client est réutilisable: conservée
    assert len(store.customer_mappings) == 1


def test_link_failure_still_returns_result(store, fake_user, make_line, monkeypatch):
    store.add_product("A", "120.00")

    def failing_update(order_id, fields):
        raise RuntimeError("timeout")

    monkeypatch.setattr("storefront.checkout.repository.update_order", failing_update)
    result = _run(fake_user, [make_line("A", "120", 1)])

    assert result.session_id in store.sessions
    assert store.orders[result.order_id]["payment_intent_id"] is None


def test_unknown_product_is_rejected_before_any_write(store, fake_user, make_line):
    with pytest.raises(CheckoutValidationError):
        _run(fake_user, [make_line("ghost", "1", 1)])
    assert store.orders == {}
    assert store.stripe_customers == {}


def test_idempotent_replay_returns_same_session(store, fake_user, make_line):
    store.add_product("A", "120.00")
    first = _run(fake_user, [make_line("A", "120", 1)], idempotency_key="k-1")
    second = _run(fake_user, [make_line("A", "120", 1)], idempotency_key="k-1")

    assert second == first
    assert len(store.orders) == 1
    assert len(store.sessions) == 1


def test_idempotent_replay_after_payment_is_conflict(store, fake_user, make_line):
    store.add_product("A", "120.00")
    first = _run(fake_user, [make_line("A", "120", 1)], idempotency_key="k-1")
    store.sessions[first.session_id]["status"] = "complete"

    with pytest.raises(CheckoutConflictError):
        _run(fake_user, [make_line("A", "120", 1)], idempotency_key="k-1")


def test_distinct_keys_create_distinct_orders(store, fake_user, make_line):
    store.add_product("A", "120.00")
    a = _run(fake_user, [make_line("A", "120", 1)], idempotency_key="k-1")
    b = _run(fake_user, [make_line("A", "120", 1)], idempotency_key="k-2")
    assert a.order_id != b.order_id
    assert len(store.stripe_customers) == 1


def test_items_failure_surfaces_even_if_order_deletion_fails(store, fake_user, make_line, caplog):
    store.add_product("A", "120.00")
    store.fail.update({"insert_order_items", "delete_order"})
    with pytest.raises(CheckoutDependencyError) as exc:
        _run(fake_user, [make_line("A", "120", 1)])
    assert exc.value.message == "Échec de la création des lignes de commande"
    assert "saga.checkout compensation failed step=order" in caplog.text
    # Commande provisoire orpheline, aucune session créée
    assert len(store.orders) == 1
    assert store.sessions == {}
