from __future__ import annotations

import logging
from dataclasses import dataclass

from support_engine.contacts import phone_variants

from .gateway import OrderGateway
from .models import OrderView

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OrderLocator:
    """Resolve the order a customer is asking about.

    The caller's buyer is established first: ``buyer_id`` when the web chat
    user is logged in, otherwise the buyer behind the email, then the phone.
    An explicit order id is returned only when it exists and, if a buyer was
    established, belongs to that buyer. An explicit id that is not found is
    reported as not found rather than replaced by another order. Without an
    id, the established buyer's most recent order is returned.
    """

    gateway: OrderGateway

    async def locate(
        self,
        *,
        order_id: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        buyer_id: str | None = None,
    ) -> OrderView | None:
        contact_buyer = await self._resolve_buyer(email=email, phone=phone)
        if buyer_id is not None and contact_buyer is not None and contact_buyer != buyer_id:
            logger.warning("Contact details resolve to another buyer than the caller; ignoring them")
            return None
        owner = buyer_id or contact_buyer

        if order_id:
            order = await self.gateway.get_order(order_id)
            if order is None:
                logger.debug("Order %s not found", order_id)
                return None
            if owner is not None and order.buyer.id != owner:
                logger.warning("Order %s requested by a different buyer; treating as not found", order_id)
                return None
            logger.debug("Located order %s by id", order.id)
            return order

        if owner is None:
            return None
        order = await self.gateway.latest_order_for_buyer(owner)
        if order is not None:
            logger.debug("Located latest order %s for buyer %s", order.id, owner)
        return order

    async def resolve_buyer_for_user(self, user_id: str | None) -> str | None:
        if not user_id:
            return None
        return await self.gateway.find_buyer_id_by_user(user_id)

    async def _resolve_buyer(self, *, email: str | None, phone: str | None) -> str | None:
        if email:
            buyer_id = await self.gateway.find_buyer_id_by_email(email.strip())
            if buyer_id is not None:
                return buyer_id
        if phone:
            return await self.gateway.find_buyer_id_by_phone(phone_variants(phone))
        return None
