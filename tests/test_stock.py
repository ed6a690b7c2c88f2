from decimal import Decimal

from services.product_service.stock import available_stock, is_out_of_stock


def test_available_is_on_hand_minus_reservations():
    reservations = [("order-1", 2), ("order-2", 3)]
    assert available_stock(Decimal("10"), reservations) == Decimal("5")


def test_reservation_order_does_not_matter():
    reservations = [("a", 1), ("b", 4), ("c", 2)]
    assert available_stock(10, reservations) == available_stock(10, list(reversed(reservations)))


def test_excluding_own_order_restores_its_quantity():
    reservations = [("draft-1", 2), ("other", 3)]
    assert available_stock(10, reservations, exclude_order_id="draft-1") == Decimal("7")
    assert available_stock(10, reservations) == Decimal("5")


def test_oversell_is_not_clamped():
    available = available_stock(Decimal("1"), [("a", 3)])
    assert available == Decimal("-2")
    assert is_out_of_stock(available)


def test_zero_is_out_of_stock():
    assert is_out_of_stock(available_stock(2, [("a", 2)]))
    assert not is_out_of_stock(available_stock(3, [("a", 2)]))


def test_draft_reserves_stock_until_excluded(client, make_product):
    product = make_product(quantity="10")
    resp = client.post("/orders/drafts", json={"items": [{"productId": product["id"], "quantity": 2}]})
    assert resp.status_code == 201, resp.text
    draft = resp.json()

    seen = client.get(f"/products/{product['id']}").json()
    assert Decimal(seen["availableStock"]) == Decimal("8")
    assert Decimal(seen["quantity"]) == Decimal("10")

    own_view = client.get(f"/products/{product['id']}", params={"excludeOrderId": draft["id"]}).json()
    assert Decimal(own_view["availableStock"]) == Decimal("10")


def test_product_listing_carries_available_stock(client, make_product):
    product = make_product(name="Espresso", quantity="3")
    client.post("/orders/", json={"items": [{"productId": product["id"], "quantity": 3}]})

    listing = client.get("/products/", params={"search": "espr"}).json()
    assert [p["id"] for p in listing] == [product["id"]]
    assert Decimal(listing[0]["availableStock"]) == Decimal("0")
    assert listing[0]["outOfStock"] is True


def test_terminal_orders_release_reservation_when_cancelled(client, make_product):
    product = make_product(quantity="5")
    order = client.post("/orders/", json={"items": [{"productId": product["id"], "quantity": 4}]}).json()
    assert Decimal(client.get(f"/products/{product['id']}").json()["availableStock"]) == Decimal("1")

    client.patch(f"/orders/{order['id']}/cancel")
    assert Decimal(client.get(f"/products/{product['id']}").json()["availableStock"]) == Decimal("5")
