"""Customer, seller and support facing message copy."""

from __future__ import annotations

from dataclasses import dataclass

from support_engine.core.config import Settings

ORDER_STATUS_MESSAGES: dict[str, str] = {
    "pending": "Comanda este în procesare.",
    "paid": "Comanda a fost confirmată și este pregătită.",
    "packed": "Comanda a fost ambalată și este gata pentru livrare.",
    "shipped": "Comanda este în curs de livrare.",
    "delivered": "Comanda a fost livrată.",
    "cancelled": "Comanda a fost anulată.",
    "refunded": "Comanda a fost rambursată.",
}

UNKNOWN_STATUS_MESSAGE = "Status necunoscut."

TIMEOUT_CHECK_NOTE = "Timeout check performed"


def order_status_message(status: str, eta_text: str | None = None) -> str:
    base = ORDER_STATUS_MESSAGES.get(status.lower(), UNKNOWN_STATUS_MESSAGE)
    if eta_text:
        return f"{base} ETA: {eta_text}"
    return base


@dataclass(slots=True, frozen=True)
class MessageTemplates:
    """Romanian copy used by the engine and the queue worker."""

    brand_name: str = "FloristMarket"
    support_phone: str = "+40 XXX XXX XXX"
    return_policy_url: str = "https://floristmarket.ro/returns"

    @classmethod
    def from_settings(cls, settings: Settings) -> "MessageTemplates":
        return cls(
            brand_name=settings.brand_name,
            support_phone=settings.support_phone,
            return_policy_url=settings.return_policy_url,
        )

    def eta_request_to_seller(self, seller_name: str, order_id: str) -> str:
        return (
            f"Salut {seller_name}, clientul întreabă ETA pentru comanda #{order_id}. "
            'Te rugăm răspunde aici (ex: "azi până la 18:00" sau "mâine 14-18").'
        )

    def eta_request_to_customer(self, order_id: str) -> str:
        return (
            f"Întrebăm vânzătorul pentru ETA-ul comenzii #{order_id} "
            "și revenim imediat ce primim răspunsul."
        )

    def order_status(self, order_id: str, status: str, eta_text: str | None) -> str:
        return f"Comanda #{order_id}: {order_status_message(status, eta_text)}"

    def order_update(self, order_id: str, eta_text: str) -> str:
        return (
            f"Actualizare comandă #{order_id}: livrare estimată {eta_text}. "
            f"Mulțumim că ai ales {self.brand_name}!"
        )

    def order_not_found(self, order_id: str | None) -> str:
        if order_id:
            return (
                f"Nu găsesc comanda #{order_id}. Îmi dai, te rog, emailul "
                "sau numărul de telefon folosit la comandă?"
            )
        return "Pentru a verifica statusul comenzii, îmi dai te rog ID-ul comenzii (ex: #1234)?"

    def seller_reminder(self, order_id: str) -> str:
        return (
            f"Reminder: Clientul încă așteaptă ETA pentru comanda #{order_id}. "
            "Poți răspunde aici cu estimarea de livrare?"
        )

    def escalation(self, seller_name: str, order_id: str, hours: int) -> str:
        return (
            f"ESCALATION: Vânzătorul {seller_name} nu a răspuns la cererea de ETA "
            f"pentru comanda #{order_id} în {hours} ore."
        )

    def unknown_intent(self) -> str:
        return (
            f"Salut! Sunt botul de suport {self.brand_name}. Pentru a te ajuta, îmi dai te rog "
            "ID-ul comenzii (ex: #1234) sau întreabă despre statusul comenzii."
        )

    def cancel_request(self) -> str:
        return (
            "Pentru anularea comenzii, te rugăm să contactezi direct vânzătorul "
            f"sau suportul nostru la {self.support_phone}."
        )

    def return_policy(self) -> str:
        return (
            "Politica de retur: Ai 14 zile să returnezi produsele în condiții originale. "
            f"Pentru detalii complete, vizitează {self.return_policy_url}"
        )

    def apology(self) -> str:
        return "Ne pare rău, nu pot verifica statusul comenzii în acest moment. Te rugăm să încerci din nou."

    def invalid_eta_format(self) -> str:
        return (
            "Formatul nu este recunoscut. Te rugăm să răspunzi cu: "
            "'azi până la HH:MM' / 'mâine HH–HH' / '3–5 zile'"
        )

    def seller_confirmation(self, eta_text: str) -> str:
        return f"Mulțumesc! Am notificat clientul cu ETA-ul: {eta_text}"

    def seller_late_reply(self, order_id: str) -> str:
        return (
            f"Mulțumim! Cererea pentru comanda #{order_id} a fost preluată deja de echipa de suport, "
            "care va reveni la client."
        )

    def eta_log_entry(self, eta_text: str) -> str:
        return f"ETA actualizat: {eta_text}"
