from __future__ import annotations

import re
from typing import Optional

_NON_DIGITS = re.compile(r"\D+")


def normalize_phone_e164(phone: Optional[str]) -> Optional[str]:
    """
    Best-effort E.164 for North American numbers.

    Values already starting with "+" are trusted. Ten digits get a +1 prefix,
    eleven digits starting with 1 get a + prefix, anything else is passed
    through unchanged.
    """
    if phone is None:
        return None
    if phone.startswith("+"):
        return phone

    digits = _NON_DIGITS.sub("", phone)
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return phone
