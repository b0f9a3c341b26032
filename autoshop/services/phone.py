import re

from autoshop.services.errors import InvalidPhoneError

_JID_SUFFIXES = ("@s.whatsapp.net", "@g.us", "@c.us")
_DEVICE_SUFFIX = re.compile(r":\d+$")
_NON_DIGITS = re.compile(r"\D")

# matches the width of the phone columns
MAX_PHONE_DIGITS = 20


def normalize_phone(raw: object) -> str:
    """Reduce a WhatsApp JID or a formatted number to digits only.

    "5511999990000@s.whatsapp.net" -> "5511999990000"
    "5511999990000:12@s.whatsapp.net" -> "5511999990000"
    "+55 (11) 99999-0000" -> "5511999990000"
    """
    if raw is None:
        raise InvalidPhoneError(raw)
    value = str(raw).strip()
    for suffix in _JID_SUFFIXES:
        if value.endswith(suffix):
            value = value[: -len(suffix)]
            break
    value = _DEVICE_SUFFIX.sub("", value)
    digits = _NON_DIGITS.sub("", value)
    if not digits or len(digits) > MAX_PHONE_DIGITS:
        raise InvalidPhoneError(raw)
    return digits
