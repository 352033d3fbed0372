from __future__ import annotations

from dataclasses import dataclass

from support_engine.contacts import format_phone_for_whatsapp, is_valid_whatsapp_number


@dataclass(slots=True, frozen=True)
class SellerContact:
    id: str
    name: str
    whatsapp_number: str | None = None

    @property
    def whatsapp_recipient(self) -> str | None:
        """Canonical WhatsApp number, or ``None`` when the seller cannot be reached there."""

        if self.whatsapp_number and is_valid_whatsapp_number(self.whatsapp_number):
            return format_phone_for_whatsapp(self.whatsapp_number)
        return None


@dataclass(slots=True, frozen=True)
class BuyerContact:
    id: str
    phone: str | None = None
    whatsapp_opt_in: bool = False

    @property
    def whatsapp_recipient(self) -> str | None:
        """Canonical number for proactive updates; requires the buyer's opt-in."""

        if self.whatsapp_opt_in and self.phone and is_valid_whatsapp_number(self.phone):
            return format_phone_for_whatsapp(self.phone)
        return None


@dataclass(slots=True, frozen=True)
class OrderView:
    """Read-only projection of a commerce order."""

    id: str
    status: str
    seller: SellerContact
    buyer: BuyerContact
    eta_text: str | None = None

    @property
    def has_eta(self) -> bool:
        return bool(self.eta_text and self.eta_text.strip())
