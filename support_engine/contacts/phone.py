"""Romanian phone number normalization for WhatsApp delivery and contact lookups."""

from __future__ import annotations

import re

# +40 / 0040 / 0 followed by the 9 digit national significant number.
ROMANIAN_PHONE_PATTERN = re.compile(r"(?<![\d+])(?:\+40|0040|0)\d{9}(?!\d)")

COUNTRY_CODE = "40"

_NON_DIGITS = re.compile(r"\D")
_ALLOWED_INPUT = re.compile(r"^\+?[\d\s().-]+$")
_CANONICAL = re.compile(r"^40\d{9}$")


def format_phone_for_whatsapp(phone: str) -> str:
    """Canonicalize ``phone`` to international digits without the leading ``+``.

    ``+40712345678``, ``0040712345678`` and ``0712345678`` all become
    ``40712345678``. Numbers in any other shape are returned as bare digits.
    """

    digits = _NON_DIGITS.sub("", phone or "")
    if digits.startswith("00" + COUNTRY_CODE):
        return digits[2:]
    if digits.startswith("0"):
        return COUNTRY_CODE + digits[1:]
    return digits


def is_valid_whatsapp_number(phone: str) -> bool:
    """Return ``True`` when ``phone`` is a Romanian number WhatsApp can reach."""

    if not phone or not _ALLOWED_INPUT.match(phone.strip()):
        return False
    return bool(_CANONICAL.match(format_phone_for_whatsapp(phone)))


def phone_variants(phone: str) -> list[str]:
    """Spellings under which the commerce tables may have stored ``phone``."""

    canonical = format_phone_for_whatsapp(phone)
    if not _CANONICAL.match(canonical):
        return [canonical] if canonical else []
    national = canonical[len(COUNTRY_CODE):]
    return [canonical, f"+{canonical}", f"0{national}", f"00{canonical}"]
