import re
from typing import Optional

from lekha.errors import ValidationError

MOBILE_PATTERN = re.compile(r"^[0-9]{10}$")
NAME_MAX_LENGTH = 100


def clean_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Customer name cannot be empty.")
    name = name.strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Customer name must be at most {NAME_MAX_LENGTH} characters.")
    return name


def clean_mobile(mobile: str) -> str:
    if not isinstance(mobile, str):
        raise ValidationError("Please enter a valid 10-digit mobile number.")
    mobile = mobile.strip()
    if not MOBILE_PATTERN.match(mobile):
        raise ValidationError("Please enter a valid 10-digit mobile number.")
    return mobile


def clean_address(address: Optional[str]) -> Optional[str]:
    if address is None:
        return None
    address = address.strip()
    return address or None
