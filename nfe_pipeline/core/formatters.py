import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from ..errors import ExtractionError

CURRENCY_SCALE = 2
WEIGHT_SCALE = 3

DISPLAY_DATE_FORMAT = "%d/%m/%Y"


def to_decimal(valor: Optional[str]) -> Decimal:
    """
    Converte texto numérico do XML (ou da exportação) em Decimal.
    Vazio vira zero. Vírgula é aceita como separador decimal quando não há ponto.

    Raises:
        InvalidOperation: texto não numérico
    """
    if valor is None:
        return Decimal("0")
    valor_limpo = str(valor).strip().replace(" ", "")
    if not valor_limpo:
        return Decimal("0")

    if "," in valor_limpo and "." not in valor_limpo:
        valor_limpo = valor_limpo.replace(",", ".")

    valor_decimal = Decimal(valor_limpo)
    if not valor_decimal.is_finite():
        raise InvalidOperation(valor)
    return valor_decimal


def fixed_decimal(valor: Optional[str], scale: int, field_name: str = "valor") -> str:
    """
    '1234.5' -> '1234.50' (scale=2). Nunca passa por float.

    Raises:
        ExtractionError: valor não numérico
    """
    quantum = Decimal(1).scaleb(-scale)
    try:
        valor_decimal = to_decimal(valor).quantize(quantum, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise ExtractionError(f"Valor numérico inválido em {field_name}: {valor!r}") from e

    return str(valor_decimal)


def money(valor: Optional[str], field_name: str = "valor") -> str:
    return fixed_decimal(valor, CURRENCY_SCALE, field_name)


def weight(valor: Optional[str], field_name: str = "peso") -> str:
    return fixed_decimal(valor, WEIGHT_SCALE, field_name)


def clean_digits(value: Optional[str]) -> str:
    if not value:
        return ""
    return re.sub(r"\D+", "", value)


def format_date(value: Optional[str]) -> str:
    """
    '2024-01-15T10:30:00-03:00' -> '15/01/2024'.
    Valores que não parecem ISO são devolvidos como vieram.
    """
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime(DISPLAY_DATE_FORMAT)


def parse_display_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, DISPLAY_DATE_FORMAT).date()
    except ValueError:
        return None
