"""
Общие фикстуры тестов движка связей BOQ.

Чистые тесты (калькулятор, реестр, агрегатор) работают на SimpleNamespace
без БД. Тесты хранилища, сервисов и API помечены django_db.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest
from rest_framework.test import APIClient

from app_boq.models import BOQItem, WorkMaterialLink
from app_boq.services.linkage import LinkageService
from app_tenders.models import ClientPosition, Tender


# ---------------------------------------------------------------------------
# Объекты без БД
# ---------------------------------------------------------------------------

_ITEM_DEFAULTS = {
    "description": "",
    "unit": "",
    "quantity": Decimal("0"),
    "unit_rate": Decimal("0"),
    "currency_type": "RUB",
    "currency_rate": None,
    "consumption_coefficient": None,
    "conversion_coefficient": None,
    "delivery_price_type": "included",
    "delivery_amount": None,
    "detail_cost_category_id": None,
}


@pytest.fixture
def make_item():
    """Строка BOQ в памяти: make_item(1, "work", quantity=..., unit_rate=...)."""

    def make(item_id, item_type="work", **fields):
        data = dict(_ITEM_DEFAULTS, id=item_id, item_type=item_type)
        data["description"] = fields.pop("description", f"{item_type} #{item_id}")
        data.update(fields)
        return SimpleNamespace(**data)

    return make


@pytest.fixture
def make_link():
    """Связь в памяти: make_link(10, work, material, order=1)."""

    def make(link_id, work, material, position_id=1, **fields):
        data = {
            "id": link_id,
            "client_position_id": position_id,
            "work_item_id": work.id,
            "material_item_id": material.id,
            "material_quantity_per_work": None,
            "usage_coefficient": None,
            "order": 0,
            "notes": "",
        }
        data.update(fields)
        return SimpleNamespace(**data)

    return make


# ---------------------------------------------------------------------------
# Модели
# ---------------------------------------------------------------------------


@pytest.fixture
def tender(db):
    return Tender.objects.create(title="ЖК «Северный»", client_name="ООО Заказчик")


@pytest.fixture
def position_factory(tender):
    def make(number=1, **fields):
        fields.setdefault("work_name", f"Позиция {number}")
        return ClientPosition.objects.create(
            tender=tender, position_number=number, **fields
        )

    return make


@pytest.fixture
def position(position_factory):
    return position_factory(1)


@pytest.fixture
def item_factory():
    def make(position, item_type="work", **fields):
        fields.setdefault("description", item_type)
        return BOQItem.objects.create(
            client_position=position, item_type=item_type, **fields
        )

    return make


@pytest.fixture
def link_factory():
    def make(work, material, **fields):
        return WorkMaterialLink.objects.create(
            client_position_id=work.client_position_id,
            work_item=work,
            material_item=material,
            **fields,
        )

    return make


@pytest.fixture
def service():
    return LinkageService()


@pytest.fixture
def api_client(db, django_user_model):
    user = django_user_model.objects.create_user(username="estimator", password="pass")
    client = APIClient()
    client.force_authenticate(user=user)
    return client
