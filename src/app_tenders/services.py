"""
Сервис курсов валют тендера.

Курс тендера проставляется в currency_rate всех строк BOQ этой валюты,
после чего итоги всех позиций тендера пересчитываются.
"""

import logging
from decimal import Decimal
from typing import Dict, Optional

from django.conf import settings
from django.db import transaction

from app_boq.calculators import local_currency
from app_boq.exceptions import InvalidCurrencyRate, TenderNotFound
from app_boq.models import BOQItem
from app_boq.repositories import store_operation
from app_boq.services.totals import PositionTotalsService
from app_tenders.models import Tender
from core.utils.numbers import to_decimal

logger = logging.getLogger(__name__)

RATE_FIELDS = {"USD": "usd_rate", "EUR": "eur_rate", "CNY": "cny_rate"}


class CurrencyRatesService:
    def __init__(self, totals_service: PositionTotalsService = None):
        self.totals_service = totals_service or PositionTotalsService()

    def apply_currency_rates(
        self, tender_id: int, rates: Optional[Dict[str, Decimal]] = None
    ) -> Dict[str, int]:
        """
        Проставляет курсы тендера в строки BOQ.

        Args:
            tender_id: ID тендера
            rates: новые курсы {"USD": ..., "EUR": ..., "CNY": ...};
                если переданы — сначала сохраняются в тендер

        Returns:
            Количество обновлённых строк по каждой валюте

        Raises:
            TenderNotFound: тендер не найден
            InvalidCurrencyRate: курс не положительный или валюта не поддерживается
        """
        rates = self._validate(rates or {})

        with store_operation("apply_currency_rates"), transaction.atomic():
            tender = Tender.objects.select_for_update().filter(pk=tender_id).first()
            if tender is None:
                raise TenderNotFound(tender_id)

            if rates:
                for currency, rate in rates.items():
                    setattr(tender, RATE_FIELDS[currency], rate)
                tender.save(update_fields=[RATE_FIELDS[c] for c in rates])

            counts: Dict[str, int] = {}
            for currency in RATE_FIELDS:
                rate = tender.rate_for(currency)
                if rate is None:
                    counts[currency] = 0
                    continue
                counts[currency] = BOQItem.objects.filter(
                    client_position__tender=tender, currency_type=currency
                ).update(currency_rate=rate)

            position_ids = list(tender.positions.values_list("pk", flat=True))

        # .update() не вызывает сигналы — итоги пересчитываются явно
        self.totals_service.refresh(position_ids)
        logger.info(f"Курсы тендера {tender_id} применены: {counts}")
        return counts

    @staticmethod
    def _validate(rates: Dict[str, Decimal]) -> Dict[str, Decimal]:
        supported = set(getattr(settings, "BOQ_SUPPORTED_CURRENCIES", RATE_FIELDS))
        result = {}
        for currency, raw in rates.items():
            code = (currency or "").upper()
            if code == local_currency():
                continue
            rate = to_decimal(raw)
            if code not in RATE_FIELDS or code not in supported:
                raise InvalidCurrencyRate(code, rate)
            if rate is None or rate <= 0:
                raise InvalidCurrencyRate(code, rate)
            result[code] = rate
        return result


def apply_currency_rates(
    tender_id: int, rates: Optional[Dict[str, Decimal]] = None
) -> Dict[str, int]:
    return CurrencyRatesService().apply_currency_rates(tender_id, rates)
