"""
Supabase 저장소 테스트 (클라이언트 Mock)
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, patch

import pytest

from marketplace.errors import StorageError
from marketplace.storage.supabase_storage import PAGE_SIZE, SupabaseStorage

CHAIN_METHODS = (
    "select",
    "eq",
    "in_",
    "gte",
    "lte",
    "order",
    "range",
    "limit",
    "insert",
    "update",
    "delete",
)


@pytest.fixture
def query():
    """체이닝 가능한 쿼리 빌더 Mock"""
    builder = MagicMock()
    for method in CHAIN_METHODS:
        getattr(builder, method).return_value = builder
    builder.execute.return_value = Mock(data=[])
    return builder


@pytest.fixture
def client(query):
    mock_client = MagicMock()
    mock_client.table.return_value = query
    return mock_client


@pytest.fixture
def supabase_storage(client):
    return SupabaseStorage(url="https://example.supabase.co", client=client)


class TestSupabaseStorage:
    def test_requires_credentials(self):
        with patch("marketplace.storage.supabase_storage.settings") as mock_settings:
            mock_settings.supabase = None
            with pytest.raises(ValueError):
                SupabaseStorage()

    def test_creates_client_from_credentials(self):
        with patch("marketplace.storage.supabase_storage.create_client") as mock_create:
            storage = SupabaseStorage(url="https://example.supabase.co", service_key="key")

        mock_create.assert_called_once()
        assert mock_create.call_args.args[:2] == ("https://example.supabase.co", "key")
        assert storage.client is mock_create.return_value

    @pytest.mark.asyncio
    async def test_get_maps_table_and_row(self, supabase_storage, client, query):
        query.execute.return_value = Mock(data=[{"id": "z1", "data": {"name": "Zone"}}])

        document = await supabase_storage.get("shippingZones", "z1")

        client.table.assert_called_with("shipping_zones")
        query.eq.assert_called_with("id", "z1")
        assert document == {"name": "Zone", "id": "z1"}

    @pytest.mark.asyncio
    async def test_get_missing(self, supabase_storage):
        assert await supabase_storage.get("products", "none") is None

    @pytest.mark.asyncio
    async def test_find_pushes_down_string_filters(self, supabase_storage, query):
        """문자열 동등 조건은 서버로, 나머지는 메모리에서 거른다"""
        query.execute.return_value = Mock(
            data=[
                {"id": "1", "data": {"scope": "global", "isActive": True, "priority": 50}},
                {"id": "2", "data": {"scope": "global", "isActive": False, "priority": 10}},
                {"id": "3", "data": {"scope": "global", "isActive": True, "priority": 5}},
            ]
        )

        documents = await supabase_storage.find(
            "shippingZones", {"scope": "global", "isActive": True}, order_by=["priority"]
        )

        query.eq.assert_any_call("data->>scope", "global")
        query.eq.assert_any_call("data->>isActive", "true")
        assert [doc["id"] for doc in documents] == ["3", "1"]

    @pytest.mark.asyncio
    async def test_find_by_id_list(self, supabase_storage, query):
        query.execute.return_value = Mock(data=[{"id": "p1", "data": {"vendor": "v1"}}])

        documents = await supabase_storage.find("products", {"id__in": ["p1", "p2"]})

        query.in_.assert_called_once_with("id", ["p1", "p2"])
        assert documents == [{"vendor": "v1", "id": "p1"}]

    @pytest.mark.asyncio
    async def test_find_reads_every_page(self, supabase_storage, query):
        """응답 상한(1000행)을 넘는 결과는 다음 페이지까지 읽는다"""
        first = [{"id": f"o{i:04d}", "data": {"status": "delivered"}} for i in range(PAGE_SIZE)]
        second = [{"id": f"p{i:04d}", "data": {"status": "delivered"}} for i in range(500)]
        query.execute.side_effect = [Mock(data=first), Mock(data=second)]

        documents = await supabase_storage.find("orders")

        assert len(documents) == 1500
        assert [c.args for c in query.range.call_args_list] == [(0, 999), (1000, 1999)]

    @pytest.mark.asyncio
    async def test_find_pushes_down_date_range(self, supabase_storage, query):
        date_from = datetime(2024, 5, 1, tzinfo=timezone.utc)
        query.execute.return_value = Mock(
            data=[
                {"id": "1", "data": {"createdAt": "2024-05-02T00:00:00+00:00"}},
                {"id": "2", "data": {"createdAt": "2024-04-30T00:00:00+00:00"}},
            ]
        )

        documents = await supabase_storage.find("orders", {"createdAt__gte": date_from})

        query.gte.assert_called_once_with("data->>createdAt", "2024-05-01T00:00:00+00:00")
        assert [doc["id"] for doc in documents] == ["1"]

    @pytest.mark.asyncio
    async def test_count_uses_exact_count(self, supabase_storage, query):
        query.execute.return_value = Mock(data=[{"id": "p1"}], count=1500)

        total = await supabase_storage.count("products", {"vendor": "v1"})

        assert total == 1500
        query.select.assert_called_once_with("id", count="exact")
        query.eq.assert_called_once_with("data->>vendor", "v1")

    @pytest.mark.asyncio
    async def test_count_falls_back_to_find(self, supabase_storage, query):
        """서버에서 처리할 수 없는 조건은 전체 조회 후 센다"""
        query.execute.return_value = Mock(
            data=[
                {"id": "1", "data": {"priority": 5}},
                {"id": "2", "data": {"priority": 50}},
            ]
        )

        assert await supabase_storage.count("shippingZones", {"priority__lt": 10}) == 1

    @pytest.mark.asyncio
    async def test_create_inserts_row(self, supabase_storage, query):
        query.execute.return_value = Mock(data=[{"id": "new", "data": {"title": "x", "id": "new"}}])

        document = await supabase_storage.create("products", {"id": "new", "title": "x"})

        inserted = query.insert.call_args.args[0]
        assert inserted["id"] == "new"
        assert inserted["data"]["title"] == "x"
        assert "createdAt" in inserted["data"]
        assert document["id"] == "new"

    @pytest.mark.asyncio
    async def test_create_without_result_raises(self, supabase_storage):
        with pytest.raises(StorageError):
            await supabase_storage.create("products", {"title": "x"})

    @pytest.mark.asyncio
    async def test_update_merges_current_document(self, supabase_storage, query):
        query.execute.side_effect = [
            Mock(data=[{"id": "s1", "data": {"status": "active", "vendor": "v1"}}]),
            Mock(data=[]),
        ]

        updated = await supabase_storage.update("vendorSubscriptions", "s1", {"status": "cancelled"})

        payload = query.update.call_args.args[0]["data"]
        assert payload["status"] == "cancelled"
        assert payload["vendor"] == "v1"
        assert updated["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_delete(self, supabase_storage, query):
        query.execute.return_value = Mock(data=[{"id": "p1"}])

        assert await supabase_storage.delete("products", "p1") is True

    @pytest.mark.asyncio
    async def test_client_errors_are_wrapped(self, supabase_storage, query):
        query.execute.side_effect = RuntimeError("connection refused")

        with pytest.raises(StorageError, match="connection refused"):
            await supabase_storage.find("orders")
