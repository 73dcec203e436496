"""
Тесты применения курсов валют тендера к строкам BOQ.
"""

from decimal import Decimal

import pytest
from django.urls import reverse

from app_boq.exceptions import InvalidCurrencyRate, TenderNotFound
from app_boq.models import BOQItem
from app_tenders.services import apply_currency_rates

pytestmark = pytest.mark.django_db


@pytest.fixture
def usd_items(tender, position, item_factory):
    tender.usd_rate = Decimal("90")
    tender.save()
    return [
        item_factory(
            position,
            "material",
            unit_rate=Decimal("10"),
            quantity=Decimal("5"),
            currency_type="USD",
        ),
        item_factory(
            position,
            "work",
            unit_rate=Decimal("1"),
            quantity=Decimal("1"),
            currency_type="USD",
        ),
        item_factory(position, "work", unit_rate=Decimal("100"), quantity=Decimal("1")),
    ]


class TestApplyCurrencyRates:
    def test_sets_rate_and_refreshes_totals(self, tender, position, usd_items):
        counts = apply_currency_rates(tender.id)

        assert counts == {"USD": 2, "EUR": 0, "CNY": 0}
        assert set(
            BOQItem.objects.filter(currency_type="USD").values_list("currency_rate", flat=True)
        ) == {Decimal("90")}
        position.refresh_from_db()
        # 10 × 90 × 5 = 4500; работы 1 × 90 + 100 = 190
        assert position.total_materials_cost == Decimal("4500.00")
        assert position.total_works_cost == Decimal("190.00")

    def test_new_rates_saved_to_tender(self, tender, position, item_factory):
        item_factory(position, "material", currency_type="EUR", unit_rate=Decimal("1"))

        counts = apply_currency_rates(tender.id, {"eur": "100.5"})

        tender.refresh_from_db()
        assert tender.eur_rate == Decimal("100.5")
        assert counts["EUR"] == 1

    @pytest.mark.parametrize("rates", [{"USD": "0"}, {"USD": "-1"}, {"GBP": "95"}])
    def test_invalid_rates(self, tender, rates):
        with pytest.raises(InvalidCurrencyRate):
            apply_currency_rates(tender.id, rates)

    def test_unknown_tender(self, db):
        with pytest.raises(TenderNotFound):
            apply_currency_rates(999999)


class TestCurrencyRatesEndpoint:
    def test_post_rates(self, api_client, tender, usd_items):
        response = api_client.post(
            reverse("app_tenders:currency-rates", args=[tender.id]),
            {"USD": "92.5"},
            format="json",
        )

        assert response.status_code == 200
        assert response.json()["updated"]["USD"] == 2
        tender.refresh_from_db()
        assert tender.usd_rate == Decimal("92.5")

    def test_unknown_tender(self, api_client):
        response = api_client.post(
            reverse("app_tenders:currency-rates", args=[999999]), {}, format="json"
        )
        assert response.status_code == 404
