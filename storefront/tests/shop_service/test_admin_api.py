import asyncio
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from storefront.common import ServiceSettings, dispose_engines
from storefront.shop_service.app.main import create_app

ADMIN_TOKEN = "test-admin-token"
ADMIN_HEADERS = {"Authorization": f"Bearer {ADMIN_TOKEN}"}


def _run(coro):
    return asyncio.run(coro)


def _prepare_app(tmp_path, *, admin_token: str | None = ADMIN_TOKEN) -> FastAPI:
    db_file = tmp_path / "storefront-admin.db"
    settings = ServiceSettings(
        app_name="Storefront Admin Test",
        enable_metrics=False,
        enable_tracing=False,
        database_url=f"sqlite+aiosqlite:///{db_file}",
        admin_token=admin_token,
    )
    return create_app(settings)


async def _create_product(client: AsyncClient, **overrides: Any) -> dict[str, Any]:
    payload = {"name": "Salt Logo Tee", "slug": "salt-logo-tee", "price": "12.50", **overrides}
    response = await client.post("/admin/products", json=payload, headers=ADMIN_HEADERS)
    assert response.status_code == 201, response.text
    return response.json()


async def _place_order(
    client: AsyncClient,
    product_id: int,
    *,
    quantity: int = 3,
    city: str = "Amman",
    phone: str = "0791234567",
    name: str = "Lina Haddad",
) -> dict[str, Any]:
    line_total = str(Decimal("12.50") * quantity)
    payload = {
        "name": name,
        "phone": phone,
        "address": "Rainbow Street, building 12",
        "city": city,
        "items": [
            {
                "productId": product_id,
                "productName": "Salt Logo Tee",
                "color": "Black",
                "size": "M",
                "quantity": quantity,
                "unitPrice": "12.50",
                "subtotal": line_total,
            }
        ],
        "totalPrice": line_total,
    }
    response = await client.post("/orders", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_admin_routes_require_bearer_token(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                missing = await client.get("/admin/orders")
                assert missing.status_code == 401
                assert missing.json()["detail"] == "No admin token provided"

                wrong = await client.get("/admin/orders", headers={"Authorization": "Bearer nope"})
                assert wrong.status_code == 401
                assert wrong.json()["detail"] == "Invalid admin token"

                basic = await client.get("/admin/dashboard/stats", headers={"Authorization": "Basic abc"})
                assert basic.status_code == 401
                assert basic.json()["detail"] == "No admin token provided"

                allowed = await client.get("/admin/orders", headers=ADMIN_HEADERS)
                assert allowed.status_code == 200

                lowercase = await client.get("/admin/orders", headers={"Authorization": f"bearer {ADMIN_TOKEN}"})
                assert lowercase.status_code == 200

    _run(body())
    _run(dispose_engines())


def test_admin_routes_closed_when_no_token_configured(tmp_path) -> None:
    app = _prepare_app(tmp_path, admin_token=None)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.get("/admin/orders", headers=ADMIN_HEADERS)
                assert response.status_code == 401
                assert response.json()["detail"] == "Invalid admin token"

    _run(body())
    _run(dispose_engines())


def test_item_edits_keep_order_total_reconciled(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                product = await _create_product(client)
                order = await _place_order(client, product["id"])
                order_id = order["id"]
                item_id = order["items"][0]["id"]
                assert order["totalPrice"] == "37.50"

                with_fee = await client.put(
                    f"/admin/orders/{order_id}", json={"shippingFee": "2.00"}, headers=ADMIN_HEADERS
                )
                assert with_fee.status_code == 200, with_fee.text
                assert with_fee.json()["shippingFee"] == "2.00"
                assert with_fee.json()["totalPrice"] == "39.50"

                updated_item = await client.put(
                    f"/admin/orders/{order_id}/items/{item_id}", json={"quantity": 5}, headers=ADMIN_HEADERS
                )
                assert updated_item.status_code == 200, updated_item.text
                assert updated_item.json()["quantity"] == 5
                assert updated_item.json()["subtotal"] == "62.50"
                current = (await client.get(f"/admin/orders/{order_id}", headers=ADMIN_HEADERS)).json()
                assert current["totalPrice"] == "64.50"

                added = await client.post(
                    f"/admin/orders/{order_id}/items",
                    json={
                        "productName": "Gift wrap",
                        "color": "Red",
                        "size": "One size",
                        "quantity": 2,
                        "unitPrice": "1.25",
                    },
                    headers=ADMIN_HEADERS,
                )
                assert added.status_code == 201, added.text
                assert added.json()["subtotal"] == "2.50"
                assert added.json()["productId"] is None
                current = (await client.get(f"/admin/orders/{order_id}", headers=ADMIN_HEADERS)).json()
                assert current["totalPrice"] == "67.00"
                assert len(current["items"]) == 2

                removed = await client.delete(
                    f"/admin/orders/{order_id}/items/{added.json()['id']}", headers=ADMIN_HEADERS
                )
                assert removed.status_code == 200
                assert removed.json()["totalPrice"] == "64.50"
                assert [item["id"] for item in removed.json()["items"]] == [item_id]

                repriced = await client.put(
                    f"/admin/orders/{order_id}/items/{item_id}", json={"unitPrice": "10.00"}, headers=ADMIN_HEADERS
                )
                assert repriced.json()["subtotal"] == "50.00"
                current = (await client.get(f"/orders/{order_id}")).json()
                assert current["totalPrice"] == "52.00"

    _run(body())
    _run(dispose_engines())


def test_invalid_admin_edits_leave_order_untouched(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                product = await _create_product(client)
                order = await _place_order(client, product["id"])
                order_id = order["id"]
                item_id = order["items"][0]["id"]

                zero = await client.put(
                    f"/admin/orders/{order_id}/items/{item_id}", json={"quantity": 0}, headers=ADMIN_HEADERS
                )
                assert zero.status_code == 400
                assert zero.json()["detail"] == "Quantity must be > 0"

                negative_price = await client.post(
                    f"/admin/orders/{order_id}/items",
                    json={
                        "productName": "Discount",
                        "color": "-",
                        "size": "-",
                        "quantity": 1,
                        "unitPrice": "-1.00",
                    },
                    headers=ADMIN_HEADERS,
                )
                assert negative_price.status_code == 400
                assert negative_price.json()["detail"] == "Unit price must be >= 0"

                negative_fee = await client.put(
                    f"/admin/orders/{order_id}", json={"shippingFee": "-2.00"}, headers=ADMIN_HEADERS
                )
                assert negative_fee.status_code == 400
                assert negative_fee.json()["detail"] == "Shipping fee must be >= 0"

                unknown_item = await client.put(
                    f"/admin/orders/{order_id}/items/9999", json={"quantity": 2}, headers=ADMIN_HEADERS
                )
                assert unknown_item.status_code == 404

                unknown_order = await client.delete("/admin/orders/9999/items/1", headers=ADMIN_HEADERS)
                assert unknown_order.status_code == 404

                current = (await client.get(f"/admin/orders/{order_id}", headers=ADMIN_HEADERS)).json()
                assert current["totalPrice"] == "37.50"
                assert current["shippingFee"] == "0.00"
                assert current["items"][0]["quantity"] == 3

    _run(body())
    _run(dispose_engines())


def test_update_customer_details_and_status(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                product = await _create_product(client)
                order = await _place_order(client, product["id"])
                order_id = order["id"]

                edited = await client.put(
                    f"/admin/orders/{order_id}",
                    json={"customerName": "Lina H.", "city": "Zarqa", "notes": "Leave at the door"},
                    headers=ADMIN_HEADERS,
                )
                assert edited.status_code == 200
                assert edited.json()["customerName"] == "Lina H."
                assert edited.json()["city"] == "Zarqa"
                assert edited.json()["totalPrice"] == "37.50"

                shipped = await client.put(
                    f"/admin/orders/{order_id}/status", json={"status": "shipped"}, headers=ADMIN_HEADERS
                )
                assert shipped.status_code == 200
                assert shipped.json()["status"] == "shipped"

                unknown_status = await client.put(
                    f"/admin/orders/{order_id}/status", json={"status": "lost"}, headers=ADMIN_HEADERS
                )
                assert unknown_status.status_code == 422

                deleted = await client.delete(f"/admin/orders/{order_id}", headers=ADMIN_HEADERS)
                assert deleted.status_code == 204
                missing = await client.get(f"/admin/orders/{order_id}", headers=ADMIN_HEADERS)
                assert missing.status_code == 404

    _run(body())
    _run(dispose_engines())


def test_receipt_suggests_fee_by_city(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                product = await _create_product(client)
                amman = await _place_order(client, product["id"], city="East Amman")
                irbid = await _place_order(client, product["id"], quantity=1, city="Irbid")
                await client.put(
                    f"/admin/orders/{amman['id']}", json={"shippingFee": "2.00"}, headers=ADMIN_HEADERS
                )

                receipt = await client.get(f"/admin/orders/{amman['id']}/receipt", headers=ADMIN_HEADERS)
                assert receipt.status_code == 200
                payload = receipt.json()
                assert payload["subtotal"] == "37.50"
                assert payload["shippingFee"] == "2.00"
                assert payload["total"] == "39.50"
                assert Decimal(payload["suggestedShippingFee"]) == Decimal("2")
                assert payload["order"]["id"] == amman["id"]

                other = await client.get(f"/admin/orders/{irbid['id']}/receipt", headers=ADMIN_HEADERS)
                assert Decimal(other.json()["suggestedShippingFee"]) == Decimal("3")

                assert (await client.get("/admin/orders/9999/receipt", headers=ADMIN_HEADERS)).status_code == 404

    _run(body())
    _run(dispose_engines())


def test_order_listing_filters_and_csv_export(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                product = await _create_product(client)
                first = await _place_order(client, product["id"], city="Amman")
                await _place_order(client, product["id"], quantity=1, city="Irbid", phone="0787654321", name="Omar")
                await client.put(
                    f"/admin/orders/{first['id']}/status", json={"status": "delivered"}, headers=ADMIN_HEADERS
                )

                everything = await client.get("/admin/orders", headers=ADMIN_HEADERS)
                assert everything.json()["total"] == 2

                delivered = await client.get("/admin/orders", params={"status": "delivered"}, headers=ADMIN_HEADERS)
                assert [order["id"] for order in delivered.json()["items"]] == [first["id"]]

                by_city = await client.get("/admin/orders", params={"city": "irb"}, headers=ADMIN_HEADERS)
                assert [order["city"] for order in by_city.json()["items"]] == ["Irbid"]

                by_phone = await client.get("/admin/orders", params={"search": "0787654321"}, headers=ADMIN_HEADERS)
                assert [order["customerName"] for order in by_phone.json()["items"]] == ["Omar"]

                paged = await client.get("/admin/orders", params={"limit": 1, "page": 2}, headers=ADMIN_HEADERS)
                assert paged.json()["totalPages"] == 2
                assert len(paged.json()["items"]) == 1

                export = await client.get("/admin/export/orders.csv", headers=ADMIN_HEADERS)
                assert export.status_code == 200
                assert export.headers["content-type"].startswith("text/csv")
                assert "orders.csv" in export.headers["content-disposition"]
                lines = export.text.splitlines()
                assert lines[0] == "id,customer_name,phone,address,city,total_price,shipping_fee,status,created_at"
                assert len(lines) == 3

                delivered_csv = await client.get(
                    "/admin/export/orders.csv", params={"status": "delivered"}, headers=ADMIN_HEADERS
                )
                rows = delivered_csv.text.splitlines()[1:]
                assert len(rows) == 1
                assert rows[0].startswith(f"{first['id']},Lina Haddad,0791234567,")
                assert ",37.50,0.00,delivered," in rows[0]

    _run(body())
    _run(dispose_engines())


def test_dashboard_stats_summarise_recent_orders(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                empty = await client.get("/admin/dashboard/stats", headers=ADMIN_HEADERS)
                assert empty.status_code == 200
                assert empty.json()["ordersToday"] == 0
                assert empty.json()["recentOrders"] == []

                product = await _create_product(client)
                first = await _place_order(client, product["id"])
                await _place_order(client, product["id"], quantity=1)
                await client.put(
                    f"/admin/orders/{first['id']}/status", json={"status": "processing"}, headers=ADMIN_HEADERS
                )

                stats = (await client.get("/admin/dashboard/stats", headers=ADMIN_HEADERS)).json()
                assert stats["ordersToday"] == 2
                assert stats["orders7Days"] == 2
                assert stats["revenueToday"] == "50.00"
                assert stats["revenue7Days"] == "50.00"
                assert stats["statusCounts"] == {"pending": 1, "processing": 1}
                assert len(stats["recentOrders"]) == 2

    _run(body())
    _run(dispose_engines())


def test_admin_product_management(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                product = await _create_product(client, colors=["Black"], sizes=["M", "L"])
                assert product["category"] == "general"
                assert product["isActive"] is True

                duplicate = await client.post(
                    "/admin/products",
                    json={"name": "Copy", "slug": "SALT-LOGO-TEE", "price": "1.00"},
                    headers=ADMIN_HEADERS,
                )
                assert duplicate.status_code == 409

                other = await _create_product(client, slug="other-tee")
                clash = await client.put(
                    f"/admin/products/{other['id']}", json={"slug": "salt-logo-tee"}, headers=ADMIN_HEADERS
                )
                assert clash.status_code == 409

                updated = await client.put(
                    f"/admin/products/{product['id']}",
                    json={"price": "15.00", "isActive": False, "stock": 3},
                    headers=ADMIN_HEADERS,
                )
                assert updated.status_code == 200
                assert updated.json()["price"] == "15.00"
                assert updated.json()["isActive"] is False
                assert updated.json()["stock"] == 3

                inactive = await client.get("/admin/products", params={"isActive": "false"}, headers=ADMIN_HEADERS)
                assert [item["id"] for item in inactive.json()["items"]] == [product["id"]]
                searched = await client.get("/admin/products", params={"search": "other"}, headers=ADMIN_HEADERS)
                assert [item["id"] for item in searched.json()["items"]] == [other["id"]]

                deleted = await client.delete(f"/admin/products/{product['id']}", headers=ADMIN_HEADERS)
                assert deleted.status_code == 204
                assert (await client.get(f"/admin/products/{product['id']}", headers=ADMIN_HEADERS)).status_code == 404
                assert (await client.delete("/admin/products/9999", headers=ADMIN_HEADERS)).status_code == 404

    _run(body())
    _run(dispose_engines())


def test_deleting_product_keeps_order_history(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                product = await _create_product(client)
                order = await _place_order(client, product["id"])

                deleted = await client.delete(f"/admin/products/{product['id']}", headers=ADMIN_HEADERS)
                assert deleted.status_code == 204

                current = (await client.get(f"/admin/orders/{order['id']}", headers=ADMIN_HEADERS)).json()
                assert current["items"][0]["productId"] is None
                assert current["items"][0]["productName"] == "Salt Logo Tee"
                assert current["totalPrice"] == "37.50"

    _run(body())
    _run(dispose_engines())


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield
