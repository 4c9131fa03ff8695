"""
API 엔드포인트 테스트
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from marketplace.api.dependencies import create_access_token
from marketplace.api.main import create_app
from marketplace.errors import StorageError
from marketplace.models.base import utc_now
from marketplace.models.product import Product
from marketplace.models.subscription import SubscriptionPlan, VendorSubscription, period_key
from marketplace.monitoring import global_metrics
from tests.fixtures.mock_storage import MockStorage

VENDOR_A = "a" * 24


def auth(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def api_storage():
    storage = MockStorage()
    storage.seed(
        "users",
        {"id": "admin-1", "role": "admin", "email": "admin@example.com"},
        {"id": "user-a", "role": "vendor", "email": "a@example.com"},
        {"id": "user-b", "role": "vendor", "email": "b@example.com"},
        {"id": "cust-1", "role": "customer", "email": "c@example.com"},
    )
    storage.seed("vendors", {"id": VENDOR_A, "storeName": "Vendor A", "user": "user-a"})
    return storage


@pytest.fixture
def client(api_storage):
    with TestClient(create_app(storage=api_storage)) as test_client:
        yield test_client


def seed_plan(storage, **overrides):
    document = SubscriptionPlan(name="Basic", upload_limit_per_month=10, **overrides).to_document()
    document.pop("id")
    return storage.seed("subscriptionPlans", document)[0]


def seed_subscription(storage, plan_id, **overrides):
    now = utc_now()
    values = {
        "vendor": VENDOR_A,
        "plan": plan_id,
        "starts_at": now - timedelta(days=1),
        "expires_at": now + timedelta(days=30),
        "max_uploads_per_month": 10,
        "monthly_upload_count": 0,
        "monthly_upload_period": period_key(now),
    }
    values.update(overrides)
    document = VendorSubscription(**values).to_document()
    document.pop("id")
    return storage.seed("vendorSubscriptions", document)[0]


class TestSystemEndpoints:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health_with_request_id(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers
        assert "shipping" in response.json()["metrics"]["business"]

    def test_error_response_counted_once(self, client):
        errors = global_metrics.get_metric("api.errors")
        before = errors.get_value()

        response = client.get("/api/v1/subscriptions/me", headers=auth("user-b"))

        assert response.status_code == 404
        assert errors.get_value() == before + 1

    def test_unhandled_error_counted_once(self, api_storage, monkeypatch):
        async def broken_find(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(api_storage, "find", broken_find)
        errors = global_metrics.get_metric("api.errors")
        before = errors.get_value()

        app = create_app(storage=api_storage)
        with TestClient(app, raise_server_exceptions=False) as raw_client:
            response = raw_client.get("/api/v1/subscriptions/plans")

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Internal Server Error"
        assert errors.get_value() == before + 1


class TestAuth:
    def test_missing_token(self, client):
        response = client.post("/api/v1/products", json={"price": 10})

        assert response.status_code in (401, 403)
        assert response.json()["success"] is False

    def test_invalid_token(self, client):
        response = client.post(
            "/api/v1/products", json={"price": 10}, headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid token"

    def test_customer_cannot_upload(self, client):
        response = client.post("/api/v1/products", json={"price": 10}, headers=auth("cust-1"))

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Vendor access required"

    def test_vendor_without_profile(self, client):
        response = client.get("/api/v1/subscriptions/me", headers=auth("user-b"))

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Vendor profile not found"


class TestProductEndpoints:
    def test_normalize_preview(self, client):
        response = client.post(
            "/api/v1/products/normalize",
            json={"marketplaceType": "grouped", "groupedProducts": []},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is False
        assert body["errors"] == [
            "At least one grouped product is required for grouped product type"
        ]
        assert body["payload"]["stock"] == 0

    def test_create_without_plans(self, client, api_storage):
        """플랜이 하나도 없으면 구독 없이 등록 허용"""
        response = client.post(
            "/api/v1/products",
            json={"title": " 새 상품 ", "price": "1200", "stock": "3"},
            headers=auth("user-a"),
        )

        assert response.status_code == 201
        product = response.json()["product"]
        assert product["vendor"] == VENDOR_A
        assert product["title"] == "새 상품"
        assert product["price"] == 1200
        assert len(api_storage.data["products"]) == 1

    def test_create_invalid_product(self, client):
        response = client.post("/api/v1/products", json={"price": 0}, headers=auth("user-a"))

        assert response.status_code == 400
        assert response.json()["message"] == "Single price requires a valid price"

    def test_create_requires_subscription_when_plans_exist(self, client, api_storage):
        seed_plan(api_storage)

        response = client.post("/api/v1/products", json={"price": 10}, headers=auth("user-a"))

        assert response.status_code == 403
        body = response.json()
        assert body["success"] is False
        assert body["message"].startswith("You need an active subscription plan")

    def test_create_increments_counter(self, client, api_storage):
        plan = seed_plan(api_storage)
        subscription = seed_subscription(api_storage, plan["id"], monthly_upload_count=4)

        response = client.post("/api/v1/products", json={"price": 10}, headers=auth("user-a"))

        assert response.status_code == 201
        stored = api_storage.data["vendorSubscriptions"][subscription["id"]]
        assert stored["monthlyUploadCount"] == 5

    def test_admin_uploads_for_vendor_without_guard(self, client, api_storage):
        """관리자 대리 등록은 구독 한도 검사를 거치지 않는다"""
        seed_plan(api_storage)

        response = client.post(
            "/api/v1/products", json={"price": 10, "vendor": VENDOR_A}, headers=auth("admin-1")
        )

        assert response.status_code == 201
        product = response.json()["product"]
        assert product["vendor"] == VENDOR_A
        assert product["approvalStatus"] == "approved"

    def test_admin_creates_platform_product(self, client):
        response = client.post("/api/v1/products", json={"price": 10}, headers=auth("admin-1"))

        assert response.status_code == 201
        product = response.json()["product"]
        assert product["vendor"] is None
        assert product["approvalStatus"] == "approved"

    def test_vendor_product_awaits_approval(self, client, api_storage):
        response = client.post("/api/v1/products", json={"price": 10}, headers=auth("user-a"))

        assert response.status_code == 201
        assert response.json()["product"]["approvalStatus"] == "pending"

        dashboard = client.get("/api/v1/reports/vendors/me", headers=auth("user-a")).json()
        assert dashboard["stats"]["pendingProducts"] == 1

    def test_rejection_message_joins_errors(self, client):
        response = client.post("/api/v1/products", json={"price": "abc"}, headers=auth("user-a"))

        assert response.status_code == 400
        assert (
            response.json()["message"]
            == "Valid price is required, Single price requires a valid price"
        )

    def test_admin_uploads_for_unknown_vendor(self, client):
        response = client.post(
            "/api/v1/products", json={"price": 10, "vendor": "f" * 24}, headers=auth("admin-1")
        )

        assert response.status_code == 404

    def test_bulk_denied_by_monthly_limit(self, client, api_storage):
        """한도 10, 사용 9: 2개 일괄 등록은 거부"""
        plan = seed_plan(api_storage)
        seed_subscription(api_storage, plan["id"], monthly_upload_count=9)

        response = client.post(
            "/api/v1/products/bulk",
            json={"products": [{"price": 10}, {"price": 20}]},
            headers=auth("user-a"),
        )

        assert response.status_code == 400
        assert (
            response.json()["message"]
            == "Monthly upload limit reached. Remaining uploads this month: 1"
        )
        assert "products" not in api_storage.data

    def test_bulk_partial_success(self, client, api_storage):
        """카운터는 실제 생성 건수만큼만 증가"""
        plan = seed_plan(api_storage)
        subscription = seed_subscription(api_storage, plan["id"])

        response = client.post(
            "/api/v1/products/bulk",
            json={"products": [{"price": 10}, {"price": "abc"}, {"price": 30}]},
            headers=auth("user-a"),
        )

        body = response.json()
        assert response.status_code == 201
        assert body["createdCount"] == 2
        assert body["failedCount"] == 1
        assert body["failed"][0]["index"] == 1
        stored = api_storage.data["vendorSubscriptions"][subscription["id"]]
        assert stored["monthlyUploadCount"] == 2

    def test_bulk_requires_list(self, client):
        response = client.post("/api/v1/products/bulk", json={"products": []}, headers=auth("user-a"))

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Products list is required"

    def test_bulk_rejects_oversized_request(self, client):
        response = client.post(
            "/api/v1/products/bulk",
            json={"products": [{"price": 10}] * 501},
            headers=auth("user-a"),
        )

        assert response.status_code == 400
        assert (
            response.json()["error"]["message"]
            == "Bulk upload limit exceeded. Max 500 products per request."
        )

    def test_bulk_without_created_products(self, client, api_storage):
        """하나도 생성되지 않으면 400, 카운터는 그대로"""
        plan = seed_plan(api_storage)
        subscription = seed_subscription(api_storage, plan["id"], monthly_upload_count=3)

        response = client.post(
            "/api/v1/products/bulk",
            json={"products": [{"price": "abc"}, {"price": 0}]},
            headers=auth("user-a"),
        )

        body = response.json()
        assert response.status_code == 400
        assert body["success"] is False
        assert body["message"] == "Bulk upload failed. No products were created."
        assert body["failedCount"] == 2
        stored = api_storage.data["vendorSubscriptions"][subscription["id"]]
        assert stored["monthlyUploadCount"] == 3


class TestProductUpdate:
    PRODUCT_ID = "c" * 24
    OTHER_ID = "d" * 24

    @pytest.fixture
    def product(self, api_storage):
        document = Product(
            id=self.PRODUCT_ID,
            vendor=VENDOR_A,
            title="기존 상품",
            price=Decimal("100"),
            stock=5,
        ).to_document()
        return api_storage.seed("products", document)[0]

    def test_grouped_product_excludes_itself(self, client, api_storage, product):
        response = client.put(
            f"/api/v1/products/{self.PRODUCT_ID}",
            json={
                "marketplaceType": "grouped",
                "groupedProducts": [self.PRODUCT_ID, self.OTHER_ID],
            },
            headers=auth("user-a"),
        )

        assert response.status_code == 200
        updated = response.json()["product"]
        assert updated["groupedProducts"] == [self.OTHER_ID]
        assert updated["stock"] == 0
        assert updated["approvalStatus"] == "pending"
        assert updated["title"] == "기존 상품"

    def test_self_only_grouping_is_rejected(self, client, product):
        response = client.put(
            f"/api/v1/products/{self.PRODUCT_ID}",
            json={"marketplaceType": "grouped", "groupedProducts": [self.PRODUCT_ID]},
            headers=auth("user-a"),
        )

        assert response.status_code == 400
        assert response.json()["message"] == (
            "At least one grouped product is required for grouped product type"
        )

    def test_existing_values_fill_missing_fields(self, client, api_storage, product):
        response = client.put(
            f"/api/v1/products/{self.PRODUCT_ID}",
            json={"stock": "8"},
            headers=auth("admin-1"),
        )

        assert response.status_code == 200
        updated = api_storage.data["products"][self.PRODUCT_ID]
        assert updated["price"] == 100
        assert updated["stock"] == 8
        assert updated["approvalStatus"] == "approved"

    def test_other_vendor_cannot_update(self, client, api_storage, product):
        api_storage.seed("vendors", {"id": "b" * 24, "storeName": "Vendor B", "user": "user-b"})

        response = client.put(
            f"/api/v1/products/{self.PRODUCT_ID}", json={"stock": 1}, headers=auth("user-b")
        )

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "You can update only your own products"

    def test_missing_product(self, client):
        response = client.put(f"/api/v1/products/{'e' * 24}", json={}, headers=auth("admin-1"))

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Product not found"


class TestShippingEndpoints:
    def test_estimate_empty_cart(self, client):
        response = client.post("/api/v1/shipping/estimate", json={"items": []})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Cart items are required for shipping estimate",
        }

    def test_estimate_with_admin_zone(self, client):
        created = client.post(
            "/api/v1/shipping/zones/admin",
            json={"name": "Nationwide", "rules": [{"label": "Standard", "shippingFee": 100}]},
            headers=auth("admin-1"),
        )
        assert created.status_code == 201

        response = client.post(
            "/api/v1/shipping/estimate",
            json={"items": [{"productId": "1" * 24, "quantity": 2, "price": 150}], "city": "Dhaka"},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["shippingFee"] == 100
        assert body["breakdown"][0]["vendorName"] == "Global"
        assert body["destination"]["country"] == "Bangladesh"

    def test_storage_failure_returns_generic_error(self, client, api_storage, monkeypatch):
        async def broken_find(*args, **kwargs):
            raise StorageError("find", "products", RuntimeError("connection lost"))

        monkeypatch.setattr(api_storage, "find", broken_find)

        response = client.post("/api/v1/shipping/estimate", json={"items": [{"productId": "1" * 24}]})

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Internal Server Error"

    def test_admin_zone_routes_require_admin(self, client):
        response = client.get("/api/v1/shipping/zones/admin", headers=auth("user-a"))

        assert response.status_code == 403

    def test_admin_zone_validation_and_not_found(self, client):
        invalid = client.post(
            "/api/v1/shipping/zones/admin", json={"name": "X", "rules": []}, headers=auth("admin-1")
        )
        missing = client.put(
            "/api/v1/shipping/zones/admin/unknown", json={"name": "Y"}, headers=auth("admin-1")
        )

        assert invalid.status_code == 400
        assert invalid.json()["error"]["message"] == "At least one active shipping rule is required"
        assert missing.status_code == 404
        assert missing.json()["error"]["message"] == "Shipping zone not found"

    def test_vendor_zone_lifecycle(self, client):
        created = client.post(
            "/api/v1/shipping/zones/me",
            json={"name": "My zone", "priority": 10, "rules": [{"city": "Dhaka", "shippingFee": 40}]},
            headers=auth("user-a"),
        )
        zone = created.json()["zone"]
        assert created.status_code == 201
        assert zone["vendor"] == VENDOR_A
        assert zone["scope"] == "vendor"

        listed = client.get("/api/v1/shipping/zones/me", headers=auth("user-a"))
        assert [z["id"] for z in listed.json()["zones"]] == [zone["id"]]

        admin_view = client.get("/api/v1/shipping/zones/admin", headers=auth("admin-1"))
        assert admin_view.json()["zones"] == []

        deleted = client.delete(f"/api/v1/shipping/zones/me/{zone['id']}", headers=auth("user-a"))
        assert deleted.status_code == 200


class TestSubscriptionEndpoints:
    def test_subscribe_flow(self, client, api_storage):
        plan = seed_plan(api_storage)

        plans = client.get("/api/v1/subscriptions/plans")
        assert [p["name"] for p in plans.json()["plans"]] == ["Basic"]

        subscribed = client.post(
            "/api/v1/subscriptions/subscribe", json={"planId": plan["id"]}, headers=auth("user-a")
        )
        assert subscribed.status_code == 201
        assert subscribed.json()["subscription"]["status"] == "active"

        mine = client.get("/api/v1/subscriptions/me", headers=auth("user-a")).json()
        assert mine["limits"]["hasActiveSubscription"] is True
        assert mine["limits"]["maxUploadsPerMonth"] == 10
        assert len(mine["history"]) == 1

    def test_subscribe_requires_plan_id(self, client):
        response = client.post("/api/v1/subscriptions/subscribe", json={}, headers=auth("user-a"))

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Plan ID is required"

    def test_admin_status_update(self, client, api_storage):
        plan = seed_plan(api_storage)
        subscription = seed_subscription(api_storage, plan["id"])
        url = f"/api/v1/subscriptions/{subscription['id']}/status"

        forbidden = client.patch(url, json={"status": "expired"}, headers=auth("user-a"))
        invalid = client.patch(url, json={"status": "paused"}, headers=auth("admin-1"))
        updated = client.patch(url, json={"status": "expired"}, headers=auth("admin-1"))

        assert forbidden.status_code == 403
        assert invalid.status_code == 400
        assert updated.status_code == 200
        assert updated.json()["subscription"]["status"] == "expired"

        listed = client.get("/api/v1/subscriptions/admin?status=expired", headers=auth("admin-1"))
        assert len(listed.json()["subscriptions"]) == 1


class TestReportEndpoints:
    @pytest.fixture
    def seeded_orders(self, api_storage):
        api_storage.seed(
            "orders",
            {
                "id": "order-1",
                "orderStatus": "delivered",
                "createdAt": "2024-05-10T10:00:00Z",
                "items": [
                    {
                        "vendor": VENDOR_A,
                        "price": 200,
                        "quantity": 1,
                        "vendorCommissionAmount": 20,
                        "vendorNetAmount": 180,
                    }
                ],
            },
        )

    def test_admin_vendor_report(self, client, seeded_orders):
        response = client.get(
            "/api/v1/reports/vendors?from=not-a-date", headers=auth("admin-1")
        )

        body = response.json()
        assert response.status_code == 200
        assert body["summary"]["totalVendors"] == 1
        assert body["summary"]["grossSales"] == 200
        assert body["vendorReports"][0]["storeName"] == "Vendor A"
        assert body["vendorReports"][0]["netEarnings"] == 180

    def test_admin_vendor_report_date_filter(self, client, seeded_orders):
        response = client.get("/api/v1/reports/vendors?from=2024-06-01", headers=auth("admin-1"))

        assert response.json()["summary"]["totalOrders"] == 0

    def test_vendor_dashboard(self, client, seeded_orders):
        response = client.get("/api/v1/reports/vendors/me", headers=auth("user-a"))

        stats = response.json()["stats"]
        assert response.status_code == 200
        assert stats["vendorId"] == VENDOR_A
        assert stats["deliveredOrders"] == 1
        assert stats["commissionTotal"] == 20

    def test_report_requires_admin(self, client):
        assert client.get("/api/v1/reports/vendors", headers=auth("user-a")).status_code == 403
