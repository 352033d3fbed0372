"""Narrow read/write access to the commerce subsystem's order tables."""

from __future__ import annotations

from typing import Any, Protocol, Sequence

import asyncpg

from .models import BuyerContact, OrderView, SellerContact


class OrderGateway(Protocol):
    async def get_order(self, order_id: str) -> OrderView | None:
        ...

    async def latest_order_for_buyer(self, buyer_id: str) -> OrderView | None:
        ...

    async def find_buyer_id_by_email(self, email: str) -> str | None:
        ...

    async def find_buyer_id_by_phone(self, phone_variants: Sequence[str]) -> str | None:
        ...

    async def find_buyer_id_by_user(self, user_id: str) -> str | None:
        ...

    async def find_seller_id_by_phone(self, phone_variants: Sequence[str]) -> str | None:
        ...

    async def update_eta(self, order_id: str, eta_text: str) -> bool:
        ...


_ORDER_VIEW_SELECT = """
SELECT
    o.id::text AS id,
    o.status,
    o.eta_text,
    s.id::text AS seller_id,
    s.brand_name AS seller_name,
    se.whatsapp_business_number AS seller_whatsapp,
    b.id::text AS buyer_id,
    b.phone AS buyer_phone,
    COALESCE(b.whatsapp_opt_in, FALSE) AS buyer_whatsapp_opt_in
FROM orders o
JOIN sellers s ON s.id = o.seller_id
JOIN buyers b ON b.id = o.buyer_id
LEFT JOIN sellers_extended se ON se.seller_id = s.id
"""


class PostgresOrderGateway:
    """:class:`OrderGateway` over the shared Postgres database."""

    _GET_ORDER_SQL = _ORDER_VIEW_SELECT + """
    WHERE o.id::text = $1
    LIMIT 1
    """

    _LATEST_ORDER_FOR_BUYER_SQL = _ORDER_VIEW_SELECT + """
    WHERE b.id::text = $1
    ORDER BY o.created_at DESC
    LIMIT 1
    """

    _BUYER_BY_EMAIL_SQL = """
    SELECT b.id::text AS id
    FROM buyers b
    JOIN users u ON u.id = b.user_id
    WHERE lower(u.email) = lower($1)
    LIMIT 1
    """

    _BUYER_BY_PHONE_SQL = """
    SELECT b.id::text AS id
    FROM buyers b
    WHERE b.phone = ANY($1::text[])
    LIMIT 1
    """

    _BUYER_BY_USER_SQL = """
    SELECT b.id::text AS id
    FROM buyers b
    WHERE b.user_id::text = $1
    LIMIT 1
    """

    _SELLER_BY_PHONE_SQL = """
    SELECT se.seller_id::text AS id
    FROM sellers_extended se
    WHERE se.whatsapp_business_number = ANY($1::text[]) OR se.phone = ANY($1::text[])
    LIMIT 1
    """

    _UPDATE_ETA_SQL = """
    UPDATE orders
    SET eta_text = $2, updated_at = NOW()
    WHERE id::text = $1
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get_order(self, order_id: str) -> OrderView | None:
        return await self._fetch_order(self._GET_ORDER_SQL, order_id)

    async def latest_order_for_buyer(self, buyer_id: str) -> OrderView | None:
        return await self._fetch_order(self._LATEST_ORDER_FOR_BUYER_SQL, buyer_id)

    async def find_buyer_id_by_email(self, email: str) -> str | None:
        return await self._fetch_id(self._BUYER_BY_EMAIL_SQL, email)

    async def find_buyer_id_by_phone(self, phone_variants: Sequence[str]) -> str | None:
        if not phone_variants:
            return None
        return await self._fetch_id(self._BUYER_BY_PHONE_SQL, list(phone_variants))

    async def find_buyer_id_by_user(self, user_id: str) -> str | None:
        return await self._fetch_id(self._BUYER_BY_USER_SQL, user_id)

    async def find_seller_id_by_phone(self, phone_variants: Sequence[str]) -> str | None:
        if not phone_variants:
            return None
        return await self._fetch_id(self._SELLER_BY_PHONE_SQL, list(phone_variants))

    async def update_eta(self, order_id: str, eta_text: str) -> bool:
        async with self._pool.acquire() as connection:
            result = await connection.execute(self._UPDATE_ETA_SQL, order_id, eta_text)
        if isinstance(result, str):
            return not result.strip().endswith(" 0")
        return bool(result)

    async def _fetch_id(self, query: str, *args: Any) -> str | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(query, *args)
        if row is None:
            return None
        return str(row["id"])

    async def _fetch_order(self, query: str, *args: Any) -> OrderView | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(query, *args)
        if row is None:
            return None
        return _row_to_order(row)


def _row_to_order(row: Any) -> OrderView:
    return OrderView(
        id=str(row["id"]),
        status=str(row["status"]),
        eta_text=row["eta_text"],
        seller=SellerContact(
            id=str(row["seller_id"]),
            name=str(row["seller_name"]),
            whatsapp_number=row["seller_whatsapp"],
        ),
        buyer=BuyerContact(
            id=str(row["buyer_id"]),
            phone=row["buyer_phone"],
            whatsapp_opt_in=bool(row["buyer_whatsapp_opt_in"]),
        ),
    )
