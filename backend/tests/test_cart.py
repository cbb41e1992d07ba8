from conftest import CUSTOMER

from services.cart import MAX_QUANTITY, aggregate_quantities, coerce_quantity


def validate(client, items):
    response = client.post("/cart/validate", json={"items": items})
    assert response.status_code == 200
    return response.json()


def test_cart_within_stock(client, make_product):
    product = make_product(price_cents=300, stock=5)

    body = validate(client, [{"id": product.id, "quantity": 3}])

    assert body["errors"] == []
    assert len(body["items"]) == 1
    line = body["items"][0]
    assert line["id"] == product.id
    assert line["quantity"] == 3
    assert line["lineTotalCents"] == 900
    assert line["priceCents"] == 300
    assert line["stock"] == 5
    assert body["subtotalCents"] == 900
    assert body["shippingCents"] == 1999
    assert body["grandTotalCents"] == 2899


def test_cart_over_stock_reports_error_and_clamps_line(client, make_product):
    product = make_product(price_cents=300, stock=2)

    body = validate(client, [{"id": product.id, "quantity": 3}])

    assert body["errors"] == [
        {
            "code": "OUT_OF_STOCK",
            "productId": product.id,
            "message": "Insufficient stock. Available: 2.",
            "available": 2,
            "requested": 3,
        }
    ]
    assert [(line["id"], line["quantity"]) for line in body["items"]] == [(product.id, 2)]
    assert body["subtotalCents"] == 600


def test_huge_quantity_is_out_of_stock_not_one(client, user_headers, make_product, stock_of):
    product = make_product(price_cents=300, stock=5)

    for quantity in (10 ** 400, 1e300, "1e400"):
        body = validate(client, [{"id": product.id, "quantity": quantity}])
        assert [e["code"] for e in body["errors"]] == ["OUT_OF_STOCK"]
        assert body["errors"][0]["requested"] > 5
        assert [(line["id"], line["quantity"]) for line in body["items"]] == [(product.id, 5)]

    response = client.post(
        "/orders",
        json={"customer": CUSTOMER, "items": [{"id": product.id, "quantity": 10 ** 400}], "paymentMethod": "cod"},
        headers=user_headers,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "OUT_OF_STOCK"
    assert stock_of(product.id) == 5


def test_sold_out_product_has_error_but_no_line(client, make_product):
    product = make_product(stock=0)

    body = validate(client, [{"id": product.id, "quantity": 1}])

    assert body["items"] == []
    assert body["errors"][0]["message"] == "Product is currently unavailable."
    assert body["errors"][0]["available"] == 0
    # Nothing purchasable: no shipping either
    assert (body["subtotalCents"], body["shippingCents"], body["grandTotalCents"]) == (0, 0, 0)


def test_missing_and_soft_deleted_products_are_not_found(client, db, make_product):
    gone = make_product(name="Banner vechi")
    gone.deleted_at = gone.created_at
    db.commit()

    body = validate(client, [{"id": "does-not-exist", "quantity": 1}, {"id": gone.id, "quantity": 2}])

    assert body["items"] == []
    assert [(e["code"], e["productId"]) for e in body["errors"]] == [
        ("NOT_FOUND", "does-not-exist"),
        ("NOT_FOUND", gone.id),
    ]
    assert "available" not in body["errors"][0]


def test_duplicate_ids_are_merged(client, make_product):
    product = make_product(price_cents=1000, stock=10)

    body = validate(client, [{"id": product.id, "quantity": 2}, {"id": product.id, "quantity": 3}])

    assert len(body["items"]) == 1
    assert body["items"][0]["quantity"] == 5
    assert body["subtotalCents"] == 5000


def test_validation_has_no_side_effects(client, make_product, stock_of):
    product = make_product(price_cents=300, stock=2)
    items = [{"id": product.id, "quantity": 3}, {"id": "missing", "quantity": 1}]

    first = validate(client, items)
    for _ in range(3):
        assert validate(client, items) == first
    assert stock_of(product.id) == 2


def test_empty_cart(client):
    body = validate(client, [])
    assert body == {"items": [], "subtotalCents": 0, "shippingCents": 0, "grandTotalCents": 0, "errors": []}


def test_malformed_quantities_are_coerced(client, make_product):
    product = make_product(price_cents=100, stock=50)

    body = validate(client, [{"id": product.id, "quantity": "abc"}, {"id": product.id, "quantity": 2.9}])

    assert body["items"][0]["quantity"] == 3


def test_coerce_quantity():
    assert coerce_quantity(4) == 4
    assert coerce_quantity("2") == 2
    assert coerce_quantity(2.7) == 2
    assert coerce_quantity(0) == 1
    assert coerce_quantity(-5) == 1
    assert coerce_quantity(None) == 1
    assert coerce_quantity("x") == 1
    assert coerce_quantity(True) == 1
    assert coerce_quantity(10 ** 400) == MAX_QUANTITY
    assert coerce_quantity(float("inf")) == MAX_QUANTITY
    assert coerce_quantity(float("nan")) == 1
    assert coerce_quantity("0.5") == 1


def test_aggregate_quantities_keeps_first_seen_order():
    items = [{"id": " b ", "quantity": 1}, {"id": "a", "quantity": 2}, {"id": "", "quantity": 9}, {"id": "b", "quantity": 4}]
    assert list(aggregate_quantities(items).items()) == [("b", 5), ("a", 2)]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}
