"""
Утилиты для работы с числовыми значениями.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def _quantizer(precision: int) -> Decimal:
    return Decimal("1").scaleb(-precision)


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Приводит значение к Decimal. Пустые и нечисловые значения → None.

    Поддерживает строки с запятой в качестве разделителя («12,5»).
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, str):
        candidate = value.strip().replace(" ", "")
        if candidate == "":
            return None
        if "," in candidate and "." not in candidate:
            candidate = candidate.replace(",", ".", 1)
        value = candidate
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def round_decimal_value(value: Any, precision: int = 2) -> Decimal:
    """
    Округляет значение до указанной точности.

    Возвращает Decimal, чтобы сохранить точность для дальнейших операций.
    """

    decimal_value = value if isinstance(value, Decimal) else Decimal(str(value))
    return decimal_value.quantize(_quantizer(precision))
