"""Contact normalization helpers."""

from .phone import (
    ROMANIAN_PHONE_PATTERN,
    format_phone_for_whatsapp,
    is_valid_whatsapp_number,
    phone_variants,
)

__all__ = [
    "ROMANIAN_PHONE_PATTERN",
    "format_phone_for_whatsapp",
    "is_valid_whatsapp_number",
    "phone_variants",
]
