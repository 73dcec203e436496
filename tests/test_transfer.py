"""
Тесты переноса материала между работами (хранилище + координатор).

Сценарии:
  - перенос и повторный перенос (идемпотентность)
  - копирование с новой строкой материала и нумерацией
  - привязка непривязанного материала и гонка с другой работой
  - обнаружение конфликта по коду материала
  - отказ хранилища, перенос в ту же работу, недопустимые типы строк
"""

from decimal import Decimal

import pytest

from app_boq.exceptions import InvalidCurrencyRate, InvalidTransfer, NoOpTransfer
from app_boq.models import BOQItem, WorkMaterialLink
from app_boq.results import (
    Applied,
    Failed,
    TransferMode,
    TransferRequest,
    TransferState,
)
from app_boq.services.transfer import TransferCoordinator

pytestmark = pytest.mark.django_db


@pytest.fixture
def setup(position, item_factory, link_factory):
    """Позиция: две работы, материал «Краска» привязан к первой."""
    wall = item_factory(position, "work", description="Окраска стен", quantity=Decimal("10"), unit_rate=Decimal("50"))
    ceiling = item_factory(position, "work", description="Окраска потолка", quantity=Decimal("4"), unit_rate=Decimal("60"))
    paint = item_factory(
        position,
        "material",
        description="Краска",
        material_ref="MAT-PAINT",
        unit_rate=Decimal("100"),
        sub_number=3,
    )
    link = link_factory(wall, paint)
    return position, wall, ceiling, paint, link


class TestMove:
    def test_move_repoints_link(self, setup, service):
        position, wall, ceiling, paint, link = setup

        request = service.transfer(paint.id, wall.id, ceiling.id, TransferMode.MOVE)

        assert request.state == TransferState.APPLIED
        assert isinstance(request.result, Applied)
        link.refresh_from_db()
        assert link.work_item_id == ceiling.id
        assert WorkMaterialLink.objects.filter(material_item=paint).count() == 1

    def test_move_refreshes_cached_totals(self, setup, service):
        """Работы 10×50 + 4×60 = 740; краска 4 × 100 = 400 (объём по потолку)."""
        position, wall, ceiling, paint, link = setup

        service.transfer(paint.id, wall.id, ceiling.id)

        position.refresh_from_db()
        assert position.total_works_cost == Decimal("740.00")
        assert position.total_materials_cost == Decimal("400.00")
        assert position.total_position_cost == Decimal("1140.00")
        assert position.totals_refreshed_at is not None

    def test_retry_is_idempotent(self, setup, service):
        position, wall, ceiling, paint, link = setup

        first = service.transfer(paint.id, wall.id, ceiling.id)
        second = service.transfer(paint.id, wall.id, ceiling.id)

        assert first.state == second.state == TransferState.APPLIED
        assert second.result.link_id == first.result.link_id
        assert WorkMaterialLink.objects.filter(work_item=ceiling).count() == 1

    def test_move_to_other_position_moves_material(
        self, setup, service, position_factory, item_factory
    ):
        position, wall, ceiling, paint, link = setup
        other = position_factory(2)
        facade = item_factory(other, "work", description="Фасад", quantity=Decimal("2"))

        request = service.transfer(paint.id, wall.id, facade.id)

        assert sorted(request.result.affected_positions) == [position.id, other.id]
        paint.refresh_from_db()
        link.refresh_from_db()
        assert paint.client_position_id == other.id
        assert paint.item_number.startswith("2.")
        assert link.client_position_id == other.id

    def test_source_changed_concurrently(self, setup, service, item_factory):
        position, wall, ceiling, paint, link = setup
        floor = item_factory(position, "work", description="Пол")

        request = service.transfer(paint.id, floor.id, ceiling.id)

        assert request.state == TransferState.FAILED
        assert isinstance(request.result, Failed)
        link.refresh_from_db()
        assert link.work_item_id == wall.id


class TestCopy:
    def test_copy_clones_material_and_link(self, setup, service):
        position, wall, ceiling, paint, link = setup

        request = service.transfer(paint.id, wall.id, ceiling.id, TransferMode.COPY)

        assert request.state == TransferState.APPLIED
        clone = BOQItem.objects.get(pk=request.result.material_id)
        assert clone.pk != paint.pk
        assert clone.material_ref == paint.material_ref
        assert clone.sub_number == 4
        assert clone.item_number == "1.4"
        assert clone.work_link.work_item_id == ceiling.id

        link.refresh_from_db()
        assert link.work_item_id == wall.id


class TestUnlinkedMaterial:
    def test_links_unlinked_material(self, position, item_factory, service):
        work = item_factory(position, "work", quantity=Decimal("2"))
        sand = item_factory(position, "material", description="Песок")

        request = service.transfer(sand.id, None, work.id)

        assert request.state == TransferState.APPLIED
        assert WorkMaterialLink.objects.get(material_item=sand).work_item_id == work.id

    def test_race_reports_occupying_link(self, setup, service):
        """Материал считался непривязанным, но уже занят другой работой."""
        position, wall, ceiling, paint, link = setup

        request = service.transfer(paint.id, None, ceiling.id)

        assert request.state == TransferState.CONFLICT_REPORTED
        assert request.conflict.src_link_id == link.id
        assert request.conflict.tgt_link_id is None
        assert request.conflict.source_work_name == "Окраска стен"


class TestConflictDetection:
    def test_target_already_consumes_same_material(
        self, setup, service, item_factory, link_factory
    ):
        position, wall, ceiling, paint, link = setup
        paint_2 = item_factory(
            position, "material", description="Краска (потолок)", material_ref="MAT-PAINT"
        )
        target_link = link_factory(ceiling, paint_2)

        request = service.transfer(paint.id, wall.id, ceiling.id)

        assert request.state == TransferState.CONFLICT_REPORTED
        details = request.conflict.to_dict()
        assert details["src_link_id"] == link.id
        assert details["tgt_link_id"] == target_link.id
        assert details["target_work_name"] == "Окраска потолка"
        assert details["mode"] == "move"
        link.refresh_from_db()
        assert link.work_item_id == wall.id

    def test_different_material_is_not_conflict(
        self, setup, service, item_factory, link_factory
    ):
        position, wall, ceiling, paint, link = setup
        putty = item_factory(position, "material", material_ref="MAT-PUTTY")
        link_factory(ceiling, putty)

        request = service.transfer(paint.id, wall.id, ceiling.id)

        assert request.state == TransferState.APPLIED


class TestRejectedRequests:
    def test_same_source_and_target(self, setup):
        position, wall, ceiling, paint, link = setup
        request = TransferRequest(paint.id, wall.id, wall.id)

        with pytest.raises(NoOpTransfer):
            TransferCoordinator().submit(request)
        assert request.state == TransferState.IDLE

    def test_target_must_be_work(self, setup, service, item_factory):
        position, wall, ceiling, paint, link = setup
        brick = item_factory(position, "material")

        with pytest.raises(InvalidTransfer):
            service.transfer(paint.id, wall.id, brick.id)

    def test_sub_material_requires_sub_work(self, setup, service):
        position, wall, ceiling, paint, link = setup
        BOQItem.objects.filter(pk=ceiling.pk).update(item_type="sub_work")

        with pytest.raises(InvalidTransfer):
            service.transfer(paint.id, wall.id, ceiling.id)


class TestPricingCheckedBeforeWrite:
    """Итоги позиции не считаются (валюта без курса) — перенос не выполняется."""

    @pytest.fixture
    def unpriced(self, setup, item_factory):
        position = setup[0]
        return item_factory(
            position,
            "material",
            description="Импортный клей",
            unit_rate=Decimal("10"),
            currency_type="USD",
        )

    def test_copy_rejected_without_changes(self, setup, unpriced, service):
        position, wall, ceiling, paint, link = setup
        items_before = BOQItem.objects.count()

        with pytest.raises(InvalidCurrencyRate):
            service.transfer(paint.id, wall.id, ceiling.id, TransferMode.COPY)

        assert not WorkMaterialLink.objects.filter(work_item=ceiling).exists()
        assert BOQItem.objects.count() == items_before

    def test_move_rejected_without_changes(self, setup, unpriced, service):
        position, wall, ceiling, paint, link = setup

        with pytest.raises(InvalidCurrencyRate):
            service.transfer(paint.id, wall.id, ceiling.id)

        link.refresh_from_db()
        assert link.work_item_id == wall.id

    def test_create_link_rejected(self, setup, unpriced, service, item_factory):
        position, wall, ceiling, paint, link = setup
        sand = item_factory(position, "material", description="Песок")

        with pytest.raises(InvalidCurrencyRate):
            service.create_link(position.id, ceiling.id, sand.id)

        assert not WorkMaterialLink.objects.filter(material_item=sand).exists()

    def test_applied_after_rate_is_set(self, setup, unpriced, service):
        position, wall, ceiling, paint, link = setup
        BOQItem.objects.filter(pk=unpriced.pk).update(currency_rate=Decimal("90"))

        request = service.transfer(paint.id, wall.id, ceiling.id, TransferMode.COPY)

        assert request.state == TransferState.APPLIED
        assert WorkMaterialLink.objects.filter(work_item=ceiling).count() == 1
