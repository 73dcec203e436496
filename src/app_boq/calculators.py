"""
Калькулятор объёмов и стоимости строк BOQ.

Следует принципам:
- Чистые функции: без обращений к БД, без мутаций входных данных
- Decimal везде, где есть деньги и объёмы
- Правило «коэффициент не задан → 1» применяется ровно в одном месте:
  normalize_coefficients()

Формулы:
    объём материала = объём работы × К_расхода × К_перевода
    цена в рублях   = цена × (курс, если валюта не локальная, иначе 1)
    доставка        = 3% цены (не включена) | сумма (фикс.) | 0 (включена)
    итог материала  = (цена в рублях + доставка) × количество
    итог работы     = цена в рублях × количество
"""

from decimal import Decimal
from typing import Any, NamedTuple, Optional

from django.conf import settings

from app_boq.exceptions import (
    InvalidCoefficient,
    InvalidCurrencyRate,
    InvalidDeliveryAmount,
)
from core.utils.numbers import to_decimal as _dec

ZERO = Decimal("0")
ONE = Decimal("1")

CONSUMPTION_MIN = ONE
CONVERSION_MIN = ZERO

WORK_TYPES = ("work", "sub_work")
MATERIAL_TYPES = ("material", "sub_material")

DELIVERY_INCLUDED = "included"
DELIVERY_NOT_INCLUDED = "not_included"
DELIVERY_FIXED_AMOUNT = "fixed_amount"


def local_currency() -> str:
    return getattr(settings, "BOQ_LOCAL_CURRENCY", "RUB")


def delivery_not_included_rate() -> Decimal:
    rate = _dec(getattr(settings, "BOQ_DELIVERY_NOT_INCLUDED_RATE", None))
    return Decimal("0.03") if rate is None else rate


class Coefficients(NamedTuple):
    """Эффективные коэффициенты материала (уже с подставленными единицами)."""

    consumption: Decimal
    conversion: Decimal

    def volume(self, work_volume: Any) -> Decimal:
        return material_volume(work_volume, self.consumption, self.conversion)


class LineCost(NamedTuple):
    """Разложение стоимости строки."""

    price_in_local: Decimal
    delivery: Decimal
    quantity: Decimal
    total: Decimal


# --- КОЭФФИЦИЕНТЫ ----------------------------------------------------------------


def _first_set(*values: Any) -> Optional[Decimal]:
    for value in values:
        dec = _dec(value)
        if dec is not None:
            return dec
    return None


def normalize_coefficients(
    consumption: Any = None,
    conversion: Any = None,
    link_consumption: Any = None,
    link_conversion: Any = None,
) -> Coefficients:
    """
    Единственная точка подстановки коэффициентов по умолчанию.

    Порядок: значение строки материала → снапшот связи → 1.
    Отрицательные значения — ошибка вызывающего кода.

    Example:
        >>> normalize_coefficients(None, Decimal("1.5"))
        Coefficients(consumption=Decimal('1'), conversion=Decimal('1.5'))
    """
    c1 = _first_set(consumption, link_consumption)
    c2 = _first_set(conversion, link_conversion)
    c1 = ONE if c1 is None else c1
    c2 = ONE if c2 is None else c2

    if c1 < ZERO:
        raise InvalidCoefficient("consumption_coefficient", c1, ZERO)
    if c2 < ZERO:
        raise InvalidCoefficient("conversion_coefficient", c2, ZERO)

    return Coefficients(consumption=c1, conversion=c2)


def coefficients_for(material: Any, link: Any = None) -> Coefficients:
    """Эффективные коэффициенты материала в рамках конкретной связи."""
    return normalize_coefficients(
        getattr(material, "consumption_coefficient", None),
        getattr(material, "conversion_coefficient", None),
        getattr(link, "material_quantity_per_work", None) if link else None,
        getattr(link, "usage_coefficient", None) if link else None,
    )


def validate_coefficients(consumption: Any = None, conversion: Any = None) -> None:
    """Проверка нижних границ: расход ≥ 1, перевод ≥ 0. None пропускается."""
    c1 = _dec(consumption)
    c2 = _dec(conversion)
    if c1 is not None and c1 < CONSUMPTION_MIN:
        raise InvalidCoefficient("consumption_coefficient", c1, CONSUMPTION_MIN)
    if c2 is not None and c2 < CONVERSION_MIN:
        raise InvalidCoefficient("conversion_coefficient", c2, CONVERSION_MIN)


# --- ОБЪЁМ -------------------------------------------------------------------------


def material_volume(
    work_volume: Any,
    consumption_coefficient: Any = None,
    conversion_coefficient: Any = None,
) -> Decimal:
    """
    Объём материала, потребляемого работой.

    Example:
        >>> material_volume(Decimal("10"), Decimal("2"), Decimal("1.5"))
        Decimal('30.0')
    """
    volume = _dec(work_volume)
    volume = ZERO if volume is None else volume
    if volume < ZERO:
        raise InvalidCoefficient("work_volume", volume, ZERO)

    coeffs = normalize_coefficients(consumption_coefficient, conversion_coefficient)
    return volume * coeffs.consumption * coeffs.conversion


def reconcile_sum_coefficients(
    source_volume: Decimal,
    target_volume: Decimal,
    target_work_volume: Any,
    target_conversion: Any,
) -> Decimal:
    """
    Новый коэффициент расхода целевой связи при суммировании объёмов.

    Коэффициент перевода цели сохраняется, подбирается расход так, чтобы
    объём цели стал равен сумме объёмов обеих связей.

    Raises:
        InvalidCoefficient: объём целевой работы или её коэффициент
            перевода равен нулю — сумму нельзя выразить коэффициентом
    """
    denominator = (_dec(target_work_volume) or ZERO) * (
        ONE if _dec(target_conversion) is None else _dec(target_conversion)
    )
    if denominator <= ZERO:
        raise InvalidCoefficient("target_work_volume × conversion", denominator, ">0")

    return (_dec(source_volume) + _dec(target_volume)) / denominator


# --- ДЕНЬГИ ------------------------------------------------------------------------


def price_in_local(item: Any) -> Decimal:
    """
    Цена за единицу в локальной валюте.

    Raises:
        InvalidCurrencyRate: валюта не локальная, а курс не задан или ≤ 0
    """
    unit_rate = _dec(getattr(item, "unit_rate", None)) or ZERO
    local = local_currency()
    currency = (getattr(item, "currency_type", None) or local).upper()

    if currency == local:
        return unit_rate

    rate = _dec(getattr(item, "currency_rate", None))
    if rate is None or rate <= ZERO:
        raise InvalidCurrencyRate(currency, rate, getattr(item, "id", None))
    return unit_rate * rate


def delivery_per_unit(item: Any, price: Decimal) -> Decimal:
    if getattr(item, "item_type", None) not in MATERIAL_TYPES:
        return ZERO

    policy = getattr(item, "delivery_price_type", None) or DELIVERY_INCLUDED
    if policy == DELIVERY_NOT_INCLUDED:
        return price * delivery_not_included_rate()
    if policy == DELIVERY_FIXED_AMOUNT:
        return _dec(getattr(item, "delivery_amount", None)) or ZERO
    return ZERO


def line_cost(item: Any, quantity: Any = None) -> LineCost:
    """
    Стоимость строки с разложением на цену, доставку и количество.

    Args:
        item: строка BOQ (или любой объект с теми же атрибутами)
        quantity: количество вместо item.quantity — для материалов,
            объём которых выводится из связанной работы

    Example:
        >>> line_cost(material, quantity=Decimal("30")).total
        Decimal('3090.00')
    """
    qty = _dec(quantity if quantity is not None else getattr(item, "quantity", None))
    qty = ZERO if qty is None else qty

    price = price_in_local(item)
    delivery = delivery_per_unit(item, price)
    return LineCost(
        price_in_local=price,
        delivery=delivery,
        quantity=qty,
        total=(price + delivery) * qty,
    )


def line_total(item: Any, quantity: Any = None) -> Decimal:
    return line_cost(item, quantity).total


# --- ВАЛИДАЦИЯ ДО ОБРАЩЕНИЯ К ХРАНИЛИЩУ -----------------------------------------


def validate_item_pricing(item: Any) -> None:
    """
    Проверяет строку BOQ перед записью: курс валюты, коэффициенты материала,
    сумму фиксированной доставки.
    """
    price_in_local(item)

    if getattr(item, "item_type", None) not in MATERIAL_TYPES:
        return

    validate_coefficients(
        getattr(item, "consumption_coefficient", None),
        getattr(item, "conversion_coefficient", None),
    )

    if (
        getattr(item, "delivery_price_type", None) == DELIVERY_FIXED_AMOUNT
        and _dec(getattr(item, "delivery_amount", None)) is None
    ):
        raise InvalidDeliveryAmount(getattr(item, "id", None))
