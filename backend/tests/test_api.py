"""
HTTP 接口测试
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import make_product
from shopledger.main import app
from shopledger.schemas.customer import Customer
from shopledger.schemas.supplier import Supplier
from shopledger.schemas.user import User, UserRole
from shopledger.services.console import Console

ADMIN_HEADERS = {"X-User-Email": "admin@shopledger.vn"}
STAFF_HEADERS = {"X-User-Email": "staff@shopledger.vn"}


@pytest.fixture
def client(gateway):
    gateway.create_product(make_product(id="P1", code="SP-1", name="衬衫", category="服装", stock=10,
                                        import_price=Decimal("1000"), price=Decimal("5000")))
    gateway.create_product(make_product(id="P2", code="SP-2", name="运动鞋", category="鞋类", stock=3,
                                        import_price=Decimal("4000"), price=Decimal("9000")))
    gateway.create_supplier(Supplier(id="S1", name="华南服装厂"))
    gateway.create_customer(Customer(id="C1", name="张伟", phone="0901234567"))
    gateway.create_user(User(id="U1", email="admin@shopledger.vn", name="管理员", role=UserRole.ADMIN),
                        password="secret123")
    gateway.create_user(User(id="U2", email="staff@shopledger.vn", name="员工"))

    console = Console(gateway)
    console.load()
    app.state.console = console
    with TestClient(app) as test_client:
        yield test_client
    app.state.console = None


def import_stock(client, product_id="P1", quantity=10, price=3000, **extra):
    payload = {
        "type": "IMPORT",
        "items": [{"product_id": product_id, "quantity": quantity, "price": price}],
        **extra,
    }
    return client.post("/api/inventory/movements", json=payload)


def export_stock(client, product_id="P1", quantity=2, price=5000, **extra):
    payload = {
        "type": "EXPORT",
        "items": [{"product_id": product_id, "quantity": quantity, "price": price}],
        **extra,
    }
    return client.post("/api/inventory/movements", json=payload)


class TestHealth:

    def test_root_and_health(self, client):
        assert client.get("/").json()["version"]
        assert client.get("/health").json() == {"status": "ok", "store": "database"}


class TestProducts:

    def test_list_and_filters(self, client):
        assert len(client.get("/api/products").json()) == 2
        assert [p["id"] for p in client.get("/api/products", params={"search": "sp-2"}).json()] == ["P2"]
        assert [p["id"] for p in client.get("/api/products", params={"category": "服装"}).json()] == ["P1"]
        assert [p["id"] for p in client.get("/api/products", params={"low_stock": 5}).json()] == ["P2"]
        assert len(client.get("/api/products", params={"limit": 1}).json()) == 1

    def test_create_update_delete(self, client):
        resp = client.post("/api/products", json={"name": "帽子", "code": "SP-3", "price": 1200})
        assert resp.status_code == 200
        product_id = resp.json()["id"]
        assert product_id

        resp = client.put(f"/api/products/{product_id}", json={"price": 1500})
        assert Decimal(resp.json()["price"]) == Decimal("1500")
        assert resp.json()["name"] == "帽子"

        assert client.delete(f"/api/products/{product_id}").status_code == 403
        assert client.delete(f"/api/products/{product_id}", headers=STAFF_HEADERS).status_code == 403
        resp = client.delete(f"/api/products/{product_id}", headers=ADMIN_HEADERS)
        assert resp.json() == {"message": "商品已删除"}
        assert client.get(f"/api/products/{product_id}").status_code == 404

    def test_duplicate_id(self, client):
        resp = client.post("/api/products", json={"id": "P1", "name": "重复"})
        assert resp.status_code == 400

    def test_not_found(self, client):
        resp = client.get("/api/products/NOPE")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "商品不存在"

    def test_store_failure_is_reported(self, client, engine):
        with engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE products")
        resp = client.post("/api/products", json={"name": "帽子"})
        assert resp.status_code == 500
        assert "数据表尚未创建" in resp.json()["detail"]
        assert len(client.get("/api/products").json()) == 2


class TestMovements:

    def test_import(self, client):
        resp = import_stock(client, supplier="华南服装厂", reference_doc="PN-1", paid_amount=10000)
        assert resp.status_code == 200
        body = resp.json()
        assert body["products"][0]["stock"] == 20
        assert Decimal(body["products"][0]["import_price"]) == Decimal("2000")
        assert body["logs"][0]["old_stock"] == 10
        assert body["order"] is None

        supplier = client.get("/api/suppliers/S1").json()
        assert Decimal(supplier["debt"]) == Decimal("20000")
        history = client.get("/api/suppliers/S1/history").json()
        assert history["total_imports"] == 1
        assert history["total_quantity"] == 10

    def test_export_creates_order(self, client):
        body = export_stock(client, supplier="张伟").json()
        order_id = body["reference_doc"]
        assert order_id.startswith("EXP-")
        assert body["order"]["status"] == "DELIVERED"

        order = client.get(f"/api/orders/{order_id}").json()
        assert order["customer_id"] == "C1"
        assert Decimal(client.get("/api/customers/C1").json()["total_spending"]) == Decimal("10000")
        assert client.get("/api/products/P1").json()["stock"] == 8

    def test_export_shortage(self, client):
        resp = export_stock(client, product_id="P2", quantity=4)
        assert resp.status_code == 400
        assert "库存不足" in resp.json()["detail"]
        assert client.get("/api/products/P2").json()["stock"] == 3
        assert client.get("/api/inventory/logs").json() == []

    def test_unknown_product(self, client):
        resp = import_stock(client, product_id="NOPE")
        assert resp.status_code == 400
        assert "NOPE" in resp.json()["detail"]

    def test_request_validation(self, client):
        resp = client.post("/api/inventory/movements", json={"type": "IMPORT", "items": []})
        assert resp.status_code == 422
        resp = import_stock(client, quantity=0)
        assert resp.status_code == 422

    def test_log_filters(self, client):
        import_stock(client, supplier="华南服装厂", date="2024-03-01T09:00:00")
        export_stock(client, reference_doc="HD-9", date="2024-03-05T09:00:00")

        logs = client.get("/api/inventory/logs").json()
        assert [log["type"] for log in logs] == ["EXPORT", "IMPORT"]
        assert len(client.get("/api/inventory/logs", params={"type": "IMPORT"}).json()) == 1
        assert len(client.get("/api/inventory/logs", params={"search": "hd-9"}).json()) == 1
        assert len(client.get("/api/inventory/logs", params={
            "start_date": "2024-03-02", "end_date": "2024-03-31",
        }).json()) == 1


class TestOrders:

    def test_create_computes_amounts(self, client):
        client.post("/api/promotions", json={
            "id": "PR1", "code": "LESS1000", "name": "立减", "type": "DISCOUNT_AMOUNT", "value": 1000,
        })
        resp = client.post("/api/orders", json={
            "id": "O1", "customer_id": "C1", "promotion_id": "PR1",
            "items": [{"product_id": "P1", "quantity": 2, "price": 5000}],
        })
        assert resp.status_code == 200
        order = resp.json()
        assert order["customer_name"] == "张伟"
        assert order["items"][0]["product_name"] == "衬衫"
        assert Decimal(order["total_amount"]) == Decimal("10000")
        assert Decimal(order["final_amount"]) == Decimal("9000")

        assert client.post("/api/orders", json={
            "id": "O1", "items": [{"product_id": "P1", "quantity": 1, "price": 1}],
        }).status_code == 400
        assert client.post("/api/orders", json={"items": []}).status_code == 400

        orders = client.get("/api/orders", params={"customer_id": "C1"}).json()
        assert [o["id"] for o in orders] == ["O1"]

    def test_update_and_delete(self, client):
        client.post("/api/orders", json={
            "id": "O1", "customer_id": "C1", "items": [{"product_id": "P1", "quantity": 1, "price": 5000}],
        })
        resp = client.put("/api/orders/O1", json={"customer_id": "C1", "items": []})
        assert resp.status_code == 400
        assert len(client.get("/api/orders/O1").json()["items"]) == 1

        resp = client.put("/api/orders/O1", json={
            "customer_id": "C1", "status": "CANCELLED",
            "items": [{"product_id": "P1", "quantity": 1, "price": 5000}],
        })
        assert resp.json()["status"] == "CANCELLED"
        assert Decimal(client.get("/api/customers/C1").json()["total_spending"]) == Decimal("0")

        assert client.delete("/api/orders/O1").json() == {"message": "订单已删除"}
        assert client.delete("/api/orders/O1").status_code == 404
        assert client.put("/api/orders/O1", json={"items": []}).status_code == 404

    def test_delivered_edit_adjusts_stock(self, client):
        order_id = export_stock(client, quantity=2, supplier="张伟").json()["reference_doc"]
        client.put(f"/api/orders/{order_id}", json={
            "customer_id": "C1", "status": "DELIVERED",
            "items": [{"product_id": "P1", "quantity": 4, "price": 5000}],
        })
        assert client.get("/api/products/P1").json()["stock"] == 6
        logs = client.get("/api/inventory/logs", params={"search": order_id}).json()
        assert sorted(log["quantity"] for log in logs) == [2, 2]


class TestCustomersAndRanks:

    def test_ranks(self, client):
        resp = client.put("/api/customer-ranks", json=[
            {"id": "R2", "name": "金卡", "min_spending": 10000},
            {"id": "R1", "name": "普通", "min_spending": 0},
        ])
        assert resp.status_code == 200
        assert [r["id"] for r in client.get("/api/customer-ranks").json()] == ["R1", "R2"]

        export_stock(client, quantity=2, supplier="张伟")
        assert client.get("/api/customers/C1/rank").json()["id"] == "R2"

    def test_crud_and_search(self, client):
        resp = client.post("/api/customers", json={"name": "李娜", "phone": "0911111111"})
        customer_id = resp.json()["id"]
        assert [c["id"] for c in client.get("/api/customers", params={"search": "0911"}).json()] == [customer_id]

        resp = client.put(f"/api/customers/{customer_id}", json={"address": "河内"})
        assert resp.json()["address"] == "河内"
        assert client.delete(f"/api/customers/{customer_id}").status_code == 200
        assert client.get(f"/api/customers/{customer_id}").status_code == 404

    def test_recalculate_spending(self, client):
        export_stock(client, quantity=1, supplier="张伟")
        customers = client.post("/api/customers/recalculate-spending").json()
        assert Decimal(customers[0]["total_spending"]) == Decimal("5000")


class TestSuppliers:

    def test_pay_debt(self, client):
        import_stock(client, quantity=1, price=1000, supplier="华南服装厂")
        resp = client.post("/api/suppliers/S1/pay-debt", json={"amount": 2000})
        assert resp.status_code == 400
        resp = client.post("/api/suppliers/S1/pay-debt", json={"amount": 0})
        assert resp.status_code == 400
        resp = client.post("/api/suppliers/S1/pay-debt", json={"amount": 600})
        assert Decimal(resp.json()["debt"]) == Decimal("400")
        assert client.post("/api/suppliers/NOPE/pay-debt", json={"amount": 1}).status_code == 404

        assert [s["id"] for s in client.get("/api/suppliers", params={"has_debt": True}).json()] == ["S1"]

    def test_update_keeps_debt(self, client):
        import_stock(client, quantity=1, price=1000, supplier="华南服装厂")
        resp = client.put("/api/suppliers/S1", json={"phone": "0987654321"})
        assert resp.json()["phone"] == "0987654321"
        assert Decimal(resp.json()["debt"]) == Decimal("1000")


class TestUsers:

    def test_admin_only(self, client):
        payload = {"email": "new@shopledger.vn", "name": "新员工", "password": "secret123"}
        assert client.post("/api/users", json=payload).status_code == 403
        assert client.post("/api/users", json=payload, headers=STAFF_HEADERS).status_code == 403
        resp = client.post("/api/users", json=payload, headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        assert "password" not in resp.json()

        user_id = resp.json()["id"]
        resp = client.put(f"/api/users/{user_id}", json={"role": "ADMIN"}, headers=ADMIN_HEADERS)
        assert resp.json()["role"] == "ADMIN"
        assert client.delete(f"/api/users/{user_id}", headers=ADMIN_HEADERS).status_code == 200

    def test_invalid_email(self, client):
        resp = client.post("/api/users", json={"email": "not-an-email", "name": "x"}, headers=ADMIN_HEADERS)
        assert resp.status_code == 422

    def test_change_password(self, client):
        resp = client.put("/api/users/U1/password", json={"current_password": "wrong", "new_password": "another456"})
        assert resp.status_code == 400
        resp = client.put("/api/users/U1/password",
                          json={"current_password": "secret123", "new_password": "another456"})
        assert resp.json() == {"message": "密码已修改"}


class TestPromotions:

    def test_duplicate_code_and_active_filter(self, client):
        client.post("/api/promotions", json={
            "code": "SALE10", "name": "九折", "type": "DISCOUNT_PERCENT", "value": 10,
        })
        client.post("/api/promotions", json={
            "code": "OFF", "name": "停用", "type": "DISCOUNT_PERCENT", "value": 5, "is_active": False,
        })
        resp = client.post("/api/promotions", json={
            "code": "SALE10", "name": "重复", "type": "DISCOUNT_PERCENT", "value": 10,
        })
        assert resp.status_code == 400
        assert len(client.get("/api/promotions").json()) == 2
        assert [p["code"] for p in client.get("/api/promotions", params={"active_only": True}).json()] == ["SALE10"]


class TestReports:

    def test_valuation(self, client):
        report = client.get("/api/reports/valuation").json()
        assert report["total_products"] == 2
        assert Decimal(report["total_import_value"]) == Decimal("22000")
        assert client.get("/api/reports/valuation", params={"sort_key": "bad"}).status_code == 400

    def test_movement_and_sales_profit(self, client):
        import_stock(client, quantity=10, price=3000, date="2024-03-01T09:00:00")
        export_stock(client, quantity=5, price=5000, date="2024-03-10T09:00:00")

        params = {"start_date": "2024-03-01", "end_date": "2024-03-31"}
        movement = client.get("/api/reports/movement", params=params).json()
        row = next(r for r in movement["rows"] if r["id"] == "P1")
        assert (row["opening_stock"], row["import_qty"], row["export_qty"], row["closing_stock"]) == (10, 10, 5, 15)

        profit = client.get("/api/reports/sales-profit", params=params).json()
        assert profit["totals"]["qty_sold"] == 5
        assert Decimal(profit["totals"]["revenue"]) == Decimal("25000")
        assert Decimal(profit["totals"]["cogs"]) == Decimal("10000")

        assert client.get("/api/reports/movement").status_code == 422

    def test_dashboard(self, client):
        export_stock(client, quantity=1)
        report = client.get("/api/reports/dashboard").json()
        assert report["total_orders"] == 1
        assert len(report["monthly"]) == 6


class TestExport:

    def test_valuation_csv(self, client):
        resp = client.get("/api/export/valuation")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.content.startswith(b"\xef\xbb\xbf")
        lines = resp.content.decode("utf-8-sig").strip().splitlines()
        assert lines[0].startswith("商品编码,商品名称")
        assert lines[-1].startswith("合计")
        assert len(lines) == 4

    def test_movement_csv(self, client):
        resp = client.get("/api/export/movement", params={"start_date": "2024-01-01", "end_date": "2024-01-31"})
        assert resp.status_code == 200
        assert "attachment; filename=movement_" in resp.headers["content-disposition"]
