"""
Brazilian document/contact masks and advisory validators.

All checks are format/checksum only; the backend remains the authority.
"""

from __future__ import annotations

import logging
import re

import httpx
from pydantic import BaseModel

from .config import get_settings

logger = logging.getLogger(__name__)


_NON_DIGIT = re.compile(r"\D")
_PHONE_REGEX = re.compile(r"^\+?\d{7,15}$")
_EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_REPEATED_DIGITS = re.compile(r"^(\d)\1+$")


def unmask(value: str) -> str:
    """Strip everything but digits."""
    return _NON_DIGIT.sub("", value)


def format_cpf(value: str) -> str:
    numbers = unmask(value)
    if len(numbers) <= 3:
        return numbers
    if len(numbers) <= 6:
        return f"{numbers[:3]}.{numbers[3:]}"
    if len(numbers) <= 9:
        return f"{numbers[:3]}.{numbers[3:6]}.{numbers[6:]}"
    return f"{numbers[:3]}.{numbers[3:6]}.{numbers[6:9]}-{numbers[9:11]}"


def format_cnpj(value: str) -> str:
    numbers = unmask(value)
    if len(numbers) <= 2:
        return numbers
    if len(numbers) <= 5:
        return f"{numbers[:2]}.{numbers[2:]}"
    if len(numbers) <= 8:
        return f"{numbers[:2]}.{numbers[2:5]}.{numbers[5:]}"
    if len(numbers) <= 12:
        return f"{numbers[:2]}.{numbers[2:5]}.{numbers[5:8]}/{numbers[8:]}"
    return f"{numbers[:2]}.{numbers[2:5]}.{numbers[5:8]}/{numbers[8:12]}-{numbers[12:14]}"


def format_phone(value: str) -> str:
    """
    Mask a Brazilian phone: (00) 0000-0000 for landlines,
    (00) 00000-0000 for 11-digit mobiles.
    """

    numbers = unmask(value)
    if len(numbers) <= 2:
        return f"({numbers}" if numbers else ""
    if len(numbers) <= 6:
        return f"({numbers[:2]}) {numbers[2:]}"
    if len(numbers) <= 10:
        return f"({numbers[:2]}) {numbers[2:6]}-{numbers[6:]}"
    return f"({numbers[:2]}) {numbers[2:7]}-{numbers[7:11]}"


def format_cep(value: str) -> str:
    numbers = unmask(value)
    if len(numbers) <= 5:
        return numbers
    return f"{numbers[:5]}-{numbers[5:8]}"


def _cpf_digit(numbers: str, length: int) -> int:
    total = sum(int(numbers[i]) * (length + 1 - i) for i in range(length))
    remainder = (total * 10) % 11
    return 0 if remainder == 10 else remainder


def validate_cpf(cpf: str) -> bool:
    numbers = unmask(cpf)
    if len(numbers) != 11:
        return False
    if _REPEATED_DIGITS.match(numbers):
        return False
    if int(numbers[9]) != _cpf_digit(numbers, 9):
        return False
    return int(numbers[10]) == _cpf_digit(numbers, 10)


def _cnpj_digit(numbers: str, length: int) -> int:
    # Weights cycle 5..2 then 9..2 (first digit) or 6..2 then 9..2 (second)
    weight = length - 7
    total = 0
    for i in range(length):
        total += int(numbers[i]) * weight
        weight = 9 if weight == 2 else weight - 1
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_cnpj(cnpj: str) -> bool:
    numbers = unmask(cnpj)
    if len(numbers) != 14:
        return False
    if _REPEATED_DIGITS.match(numbers):
        return False
    if int(numbers[12]) != _cnpj_digit(numbers, 12):
        return False
    return int(numbers[13]) == _cnpj_digit(numbers, 13)


def validate_phone(phone: str) -> bool:
    return 10 <= len(unmask(phone)) <= 11


def validate_cep(cep: str) -> bool:
    return len(unmask(cep)) == 8


def validate_email(email: str) -> bool:
    return bool(_EMAIL_REGEX.match(email.strip()))


def normalize_phone(raw: str) -> str | None:
    """
    Basic phone normalization and validation.

    Accepts digits, an optional leading '+', and the usual mask characters.
    Returns normalized phone (digits with optional '+') or None if the value
    looks invalid.
    """

    value = raw.strip()
    for char in (" ", "-", "(", ")", "."):
        value = value.replace(char, "")
    if not _PHONE_REGEX.match(value):
        return None
    return value


class ViaCepAddress(BaseModel):
    cep: str
    logradouro: str = ""
    complemento: str = ""
    bairro: str = ""
    localidade: str = ""
    uf: str = ""

    def one_line(self) -> str:
        parts = [self.logradouro, self.bairro, f"{self.localidade}/{self.uf}"]
        return ", ".join(part for part in parts if part and part != "/")


async def fetch_address_by_cep(
    cep: str,
    *,
    http: httpx.AsyncClient | None = None,
) -> ViaCepAddress | None:
    """
    Look up an address on ViaCEP.

    Returns None for malformed CEPs, unknown CEPs and lookup failures.
    """

    numbers = unmask(cep)
    if len(numbers) != 8:
        return None

    base_url = get_settings().viacep_url.rstrip("/")
    owns_client = http is None
    client = http or httpx.AsyncClient(timeout=5.0)
    try:
        response = await client.get(f"{base_url}/{numbers}/json/")
        if response.status_code >= 400:
            logger.warning("ViaCEP returned %s for %s", response.status_code, numbers)
            return None
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Failed to look up CEP %s: %s", numbers, exc)
        return None
    finally:
        if owns_client:
            await client.aclose()

    if data.get("erro"):
        return None
    return ViaCepAddress.model_validate(data)
