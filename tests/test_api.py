"""
Тесты HTTP API связей, итогов и переноса.
"""

from decimal import Decimal

import pytest
from django.urls import reverse

from app_boq.exceptions import StoreUnavailable
from app_boq.models import WorkMaterialLink
from app_boq.services.linkage import LinkageService

pytestmark = pytest.mark.django_db


@pytest.fixture
def scene(position, item_factory, link_factory):
    work = item_factory(position, "work", description="Стяжка", quantity=Decimal("10"), unit_rate=Decimal("50"))
    other = item_factory(position, "work", description="Гидроизоляция", quantity=Decimal("2"))
    mix = item_factory(
        position,
        "material",
        description="Смесь",
        material_ref="MIX",
        unit_rate=Decimal("100"),
        consumption_coefficient=Decimal("2"),
        conversion_coefficient=Decimal("1.5"),
        delivery_price_type="not_included",
    )
    link = link_factory(work, mix)
    return position, work, other, mix, link


class TestReadEndpoints:
    def test_totals(self, api_client, scene):
        position, work, other, mix, link = scene
        response = api_client.get(
            reverse("app_boq:position-totals", args=[position.id])
        )

        assert response.status_code == 200
        totals = response.json()["totals"]
        assert totals["works_total"] == 500.0
        assert totals["materials_total"] == 3090.0
        assert totals["position_total"] == 3590.0

    def test_links_grouped_by_work(self, api_client, scene):
        position, work, other, mix, link = scene
        response = api_client.get(reverse("app_boq:position-links", args=[position.id]))

        assert response.status_code == 200
        body = response.json()
        [view] = body["links"][str(work.id)]
        assert view["material_volume"] == 30.0
        assert view["line_total"] == 3090.0
        assert body["cost_categories"] == {}

    def test_unknown_position(self, api_client):
        response = api_client.get(reverse("app_boq:position-totals", args=[999999]))
        assert response.status_code == 404
        assert response.json()["ok"] is False

    def test_requires_authentication(self, scene, client):
        position = scene[0]
        response = client.get(reverse("app_boq:position-totals", args=[position.id]))
        assert response.status_code in (401, 403)

    def test_store_unavailable(self, api_client, scene, monkeypatch):
        def boom(self, position_id):
            raise StoreUnavailable("load_links")

        monkeypatch.setattr(LinkageService, "get_position_totals", boom)
        position = scene[0]
        response = api_client.get(reverse("app_boq:position-totals", args=[position.id]))
        assert response.status_code == 503


class TestLinkEndpoints:
    def test_create_link(self, api_client, scene, item_factory):
        position, work, other, mix, link = scene
        sand = item_factory(position, "material", description="Песок", unit_rate=Decimal("5"))

        response = api_client.post(
            reverse("app_boq:position-links", args=[position.id]),
            {"work_id": other.id, "material_id": sand.id, "material_quantity_per_work": "2"},
            format="json",
        )

        assert response.status_code == 201
        body = response.json()
        assert body["ok"] is True
        # 2 × 2 × 5 = 20 поверх 3090
        assert body["totals"][str(position.id)]["materials_total"] == 3110.0

    def test_create_link_for_occupied_material(self, api_client, scene):
        position, work, other, mix, link = scene
        response = api_client.post(
            reverse("app_boq:position-links", args=[position.id]),
            {"work_id": other.id, "material_id": mix.id},
            format="json",
        )
        assert response.status_code == 409
        assert response.json()["conflict"]["src_link_id"] == link.id

    def test_patch_rejects_consumption_below_one(self, api_client, scene):
        link = scene[4]
        response = api_client.patch(
            reverse("app_boq:link-detail", args=[link.id]),
            {"material_quantity_per_work": "0.5"},
            format="json",
        )
        assert response.status_code == 400
        assert response.json()["details"]["coefficient"] == "consumption_coefficient"

    def test_patch_requires_fields(self, api_client, scene):
        link = scene[4]
        response = api_client.patch(
            reverse("app_boq:link-detail", args=[link.id]), {}, format="json"
        )
        assert response.status_code == 400

    def test_delete_link(self, api_client, scene):
        position, work, other, mix, link = scene
        response = api_client.delete(reverse("app_boq:link-detail", args=[link.id]))

        assert response.status_code == 200
        assert not WorkMaterialLink.objects.filter(pk=link.pk).exists()
        # смесь стала непривязанной, собственное количество 0
        assert response.json()["totals"][str(position.id)]["materials_total"] == 0.0


class TestTransferEndpoints:
    def test_move(self, api_client, scene):
        position, work, other, mix, link = scene
        response = api_client.post(
            reverse("app_boq:material-transfer", args=[mix.id]),
            {"source_work_id": work.id, "target_work_id": other.id},
            format="json",
        )

        assert response.status_code == 200
        assert response.json()["state"] == "applied"

    def test_same_work_is_bad_request(self, api_client, scene):
        position, work, other, mix, link = scene
        response = api_client.post(
            reverse("app_boq:material-transfer", args=[mix.id]),
            {"source_work_id": work.id, "target_work_id": work.id},
            format="json",
        )
        assert response.status_code == 400

    def test_conflict_then_resolve(self, api_client, scene, item_factory, link_factory):
        position, work, other, mix, link = scene
        mix_2 = item_factory(
            position, "material", description="Смесь", material_ref="MIX", unit_rate=Decimal("100")
        )
        tgt = link_factory(other, mix_2)

        response = api_client.post(
            reverse("app_boq:material-transfer", args=[mix.id]),
            {"source_work_id": work.id, "target_work_id": other.id, "mode": "move"},
            format="json",
        )
        assert response.status_code == 409
        conflict = response.json()["conflict"]
        assert conflict["tgt_link_id"] == tgt.id

        response = api_client.post(
            reverse("app_boq:conflict-resolve"),
            {
                "src_link_id": conflict["src_link_id"],
                "tgt_link_id": conflict["tgt_link_id"],
                "target_work_id": conflict["target_work_id"],
                "strategy": "replace",
                "mode": conflict["mode"],
                "src_version": conflict["src_version"],
                "tgt_version": conflict["tgt_version"],
            },
            format="json",
        )
        assert response.status_code == 200
        assert response.json()["state"] == "resolved"

        response = api_client.post(
            reverse("app_boq:conflict-resolve"),
            {
                "src_link_id": conflict["src_link_id"],
                "tgt_link_id": conflict["tgt_link_id"],
                "target_work_id": conflict["target_work_id"],
                "strategy": "replace",
                "src_version": conflict["src_version"],
                "tgt_version": conflict["tgt_version"],
            },
            format="json",
        )
        assert response.status_code == 409

    def test_resolve_without_versions_is_bad_request(self, api_client, scene, item_factory, link_factory):
        position, work, other, mix, link = scene
        mix_2 = item_factory(position, "material", description="Смесь", material_ref="MIX")
        tgt = link_factory(other, mix_2)

        response = api_client.post(
            reverse("app_boq:conflict-resolve"),
            {
                "src_link_id": link.id,
                "tgt_link_id": tgt.id,
                "target_work_id": other.id,
                "strategy": "sum",
                "mode": "copy",
            },
            format="json",
        )
        assert response.status_code == 400

    def test_copy_rejected_when_position_has_unpriced_item(self, api_client, scene, item_factory):
        position, work, other, mix, link = scene
        item_factory(position, "material", description="Клей", unit_rate=Decimal("5"), currency_type="USD")

        response = api_client.post(
            reverse("app_boq:material-transfer", args=[mix.id]),
            {"source_work_id": work.id, "target_work_id": other.id, "mode": "copy"},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["ok"] is False
        assert not WorkMaterialLink.objects.filter(work_item=other).exists()
