from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from support_engine.orders import PostgresOrderGateway


class DummyAcquire:
    def __init__(self, connection):
        self._connection = connection

    async def __aenter__(self):
        return self._connection

    async def __aexit__(self, exc_type, exc, tb):
        return False


class DummyPool:
    def __init__(self, connection):
        self._connection = connection

    def acquire(self):
        return DummyAcquire(self._connection)


ORDER_ROW = {
    "id": "1234",
    "status": "paid",
    "eta_text": None,
    "seller_id": "seller-1",
    "seller_name": "Flori de Mai",
    "seller_whatsapp": "0722000111",
    "buyer_id": "buyer-1",
    "buyer_phone": "0733000222",
    "buyer_whatsapp_opt_in": True,
}


@pytest.mark.asyncio
async def test_get_order_maps_row_to_view():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(return_value=ORDER_ROW)
    gateway = PostgresOrderGateway(DummyPool(connection))

    order = await gateway.get_order("1234")

    assert order.id == "1234"
    assert order.seller.name == "Flori de Mai"
    assert order.seller.whatsapp_recipient == "40722000111"
    assert order.buyer.whatsapp_opt_in is True
    assert not order.has_eta
    query, arg = connection.fetchrow.await_args.args
    assert "$1" in query
    assert arg == "1234"


@pytest.mark.asyncio
async def test_latest_order_is_scoped_by_buyer_id():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(return_value=None)
    gateway = PostgresOrderGateway(DummyPool(connection))

    assert await gateway.latest_order_for_buyer("buyer-1") is None
    query, arg = connection.fetchrow.await_args.args
    assert "WHERE b.id::text = $1" in query
    assert "ORDER BY o.created_at DESC" in query
    assert arg == "buyer-1"


@pytest.mark.asyncio
async def test_phone_lookup_sends_variants_as_array_parameter():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(return_value={"id": "buyer-1"})
    gateway = PostgresOrderGateway(DummyPool(connection))

    buyer_id = await gateway.find_buyer_id_by_phone(("40733000222", "0733000222"))

    assert buyer_id == "buyer-1"
    query, arg = connection.fetchrow.await_args.args
    assert "ANY($1::text[])" in query
    assert arg == ["40733000222", "0733000222"]


@pytest.mark.asyncio
async def test_empty_variants_skip_the_query():
    connection = AsyncMock()
    gateway = PostgresOrderGateway(DummyPool(connection))

    assert await gateway.find_seller_id_by_phone([]) is None
    connection.fetchrow.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_eta_reports_whether_a_row_changed():
    connection = AsyncMock()
    connection.execute = AsyncMock(side_effect=["UPDATE 1", "UPDATE 0"])
    gateway = PostgresOrderGateway(DummyPool(connection))

    assert await gateway.update_eta("1234", "azi până la 18:00") is True
    assert await gateway.update_eta("9999", "azi") is False
    assert connection.execute.await_args_list[0].args[1:] == ("1234", "azi până la 18:00")
