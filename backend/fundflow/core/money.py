"""Dinheiro em unidades mínimas (1 ₸ = 100).

Saldos e valores trafegam como int; string formatada só na apresentação.
"""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from fundflow.core.settings import settings

MINOR_PER_UNIT = 100

# teto de negócio: 10 trilhões ₸, bem abaixo do BIGINT (2**63 - 1)
MAX_AMOUNT_MINOR = 10**15

_DECIMAL_COMMA = re.compile(r"-?\d+,\d{1,2}")
_THOUSANDS = re.compile(r"-?\d{1,3}(,\d{3})+(\.\d+)?")


def _check_range(minor: int, text) -> int:
    if abs(minor) > MAX_AMOUNT_MINOR:
        raise ValueError(f"valor acima do limite: {text!r}")
    return minor


def _normalize_commas(raw: str) -> str:
    """1500,50 -> 1500.50; 1,000.50 -> 1000.50; vírgula ambígua levanta ValueError."""
    if "," not in raw:
        return raw
    if _DECIMAL_COMMA.fullmatch(raw):
        return raw.replace(",", ".")
    if _THOUSANDS.fullmatch(raw):
        return raw.replace(",", "")
    raise ValueError(f"separador ambíguo: {raw!r}")


def parse_amount(text: str | int | float | Decimal) -> int:
    """Converte "1,000", "1 000.50", "1500,50", "1000 ₸" ou número em unidades mínimas.

    Vírgula seguida de 1-2 dígitos é decimal; em grupos de 3 é milhar.
    Levanta ValueError para qualquer outra coisa (mais de 2 casas, acima do teto).
    """
    if isinstance(text, bool):
        raise ValueError("valor inválido")
    if isinstance(text, int):
        return _check_range(text * MINOR_PER_UNIT, text)

    raw = str(text).strip()
    sym = settings.CURRENCY_SYMBOL
    if sym and raw.endswith(sym):
        raw = raw[: -len(sym)]
    raw = re.sub(r"\s", "", raw)
    if not raw:
        raise ValueError("valor vazio")
    raw = _normalize_commas(raw)

    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"valor inválido: {text!r}")

    if not value.is_finite():
        raise ValueError(f"valor inválido: {text!r}")

    minor = value * MINOR_PER_UNIT
    if minor != minor.to_integral_value():
        raise ValueError(f"mais de duas casas decimais: {text!r}")
    return _check_range(int(minor), text)


def plain_digits(minor: int) -> str:
    """Valor absoluto em unidades inteiras, sem separadores: 50000 -> "500", 50050 -> "500.5"."""
    whole, frac = divmod(abs(int(minor)), MINOR_PER_UNIT)
    if not frac:
        return str(whole)
    return f"{whole}.{frac:02d}".rstrip("0")


def format_amount(minor: int, symbol: str | None = None) -> str:
    sym = settings.CURRENCY_SYMBOL if symbol is None else symbol
    sign = "-" if minor < 0 else ""
    whole, frac = divmod(abs(int(minor)), MINOR_PER_UNIT)
    body = f"{whole}" if not frac else f"{whole}.{frac:02d}"
    return f"{sign}{body} {sym}".strip()
