"""
Тесты разрешения конфликта переноса (sum / replace, move / copy).

Базовая ситуация: «Краска» привязана к работе «Стены» (объём 5, расход 1),
в работе «Потолок» (объём 1) уже есть та же краска с расходом 3.
"""

from decimal import Decimal

import pytest

from app_boq.exceptions import InvalidCoefficient, InvalidTransfer, StaleConflict
from app_boq.models import BOQItem, WorkMaterialLink
from app_boq.results import (
    ConflictStrategy,
    TransferMode,
    TransferRequest,
    TransferState,
)
from app_boq.services.conflicts import ConflictResolver

pytestmark = pytest.mark.django_db


@pytest.fixture
def conflict_setup(position, item_factory, link_factory):
    walls = item_factory(position, "work", description="Стены", quantity=Decimal("5"))
    ceiling = item_factory(position, "work", description="Потолок", quantity=Decimal("1"))
    paint = item_factory(
        position,
        "material",
        description="Краска",
        material_ref="MAT-PAINT",
        unit_rate=Decimal("10"),
        consumption_coefficient=Decimal("1"),
    )
    paint_ceiling = item_factory(
        position,
        "material",
        description="Краска",
        material_ref="MAT-PAINT",
        unit_rate=Decimal("10"),
        consumption_coefficient=Decimal("3"),
    )
    src = link_factory(walls, paint)
    tgt = link_factory(ceiling, paint_ceiling)
    return walls, ceiling, paint, paint_ceiling, src, tgt


def _reported(service, paint, walls, ceiling, mode=TransferMode.MOVE):
    request = service.transfer(paint.id, walls.id, ceiling.id, mode)
    assert request.state == TransferState.CONFLICT_REPORTED
    return request


def _ceiling_volume(service, position, ceiling):
    [view] = service.get_enriched_links(position.id)[ceiling.id]
    return view


class TestSumStrategy:
    def test_move_sums_volumes_and_drops_source(
        self, position, conflict_setup, service
    ):
        """5 + 3 = 8."""
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        request = _reported(service, paint, walls, ceiling)

        resolved = service.resolver.resolve(request, ConflictStrategy.SUM)

        assert resolved.state == TransferState.RESOLVED
        view = _ceiling_volume(service, position, ceiling)
        assert view.material_volume == Decimal("8")
        assert not BOQItem.objects.filter(pk=paint.pk).exists()
        assert not WorkMaterialLink.objects.filter(pk=src.pk).exists()

    def test_copy_leaves_source_untouched(self, position, conflict_setup, service):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        request = _reported(service, paint, walls, ceiling, TransferMode.COPY)

        service.resolver.resolve(request, ConflictStrategy.SUM)

        assert _ceiling_volume(service, position, ceiling).material_volume == Decimal("8")
        src.refresh_from_db()
        assert src.work_item_id == walls.id

    def test_totals_refreshed_after_resolution(self, position, conflict_setup, service):
        """Остаётся одна связь: 8 × 10 = 80."""
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        request = _reported(service, paint, walls, ceiling)

        service.resolver.resolve(request, ConflictStrategy.SUM)

        position.refresh_from_db()
        assert position.total_materials_cost == Decimal("80.00")
        assert position.total_position_cost == Decimal("80.00")

    def test_zero_target_volume_rejected_without_changes(
        self, position, conflict_setup, service
    ):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        request = _reported(service, paint, walls, ceiling)
        BOQItem.objects.filter(pk=ceiling.pk).update(quantity=Decimal("0"))

        with pytest.raises(InvalidCoefficient):
            service.resolver.resolve(request, ConflictStrategy.SUM)

        assert BOQItem.objects.filter(pk=paint.pk).exists()
        tgt.refresh_from_db()
        assert tgt.material_quantity_per_work == Decimal("1")


class TestReplaceStrategy:
    def test_move_keeps_source_coefficients(self, position, conflict_setup, service):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        request = _reported(service, paint, walls, ceiling)

        service.resolver.resolve(request, ConflictStrategy.REPLACE)

        view = _ceiling_volume(service, position, ceiling)
        assert view.link_id == src.id
        assert view.material_id == paint.id
        assert view.consumption_coefficient == Decimal("1")
        assert not WorkMaterialLink.objects.filter(pk=tgt.pk).exists()
        assert not BOQItem.objects.filter(pk=paint_ceiling.pk).exists()

    def test_copy_duplicates_source(self, position, conflict_setup, service):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        request = _reported(service, paint, walls, ceiling, TransferMode.COPY)

        resolved = service.resolver.resolve(request, ConflictStrategy.REPLACE)

        view = _ceiling_volume(service, position, ceiling)
        assert view.material_id == resolved.result.material_id
        assert view.material_id not in (paint.id, paint_ceiling.id)
        assert view.consumption_coefficient == Decimal("1")
        src.refresh_from_db()
        assert src.work_item_id == walls.id
        assert not WorkMaterialLink.objects.filter(pk=tgt.pk).exists()


class TestStaleConflict:
    def test_only_from_conflict_reported(self, conflict_setup):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        request = TransferRequest(
            paint.id, walls.id, ceiling.id, state=TransferState.APPLIED
        )
        with pytest.raises(StaleConflict):
            ConflictResolver().resolve(request, ConflictStrategy.SUM)

    def test_resolved_twice(self, conflict_setup, service):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        request = _reported(service, paint, walls, ceiling)
        service.resolver.resolve(request, ConflictStrategy.SUM)

        with pytest.raises(StaleConflict):
            service.resolver.resolve(request, ConflictStrategy.SUM)

    def test_target_link_vanished(self, conflict_setup, service):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        request = _reported(service, paint, walls, ceiling)
        tgt.delete()

        with pytest.raises(StaleConflict):
            service.resolver.resolve(request, ConflictStrategy.REPLACE)

    def test_facade_with_missing_source_link(self, conflict_setup, service):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        with pytest.raises(StaleConflict):
            service.resolve_conflict(
                999999,
                tgt.id,
                ceiling.id,
                ConflictStrategy.SUM,
                src_version=1,
                tgt_version=1,
            )

    def test_target_link_changed_after_report(self, conflict_setup, service):
        """Расход цели изменили между обнаружением и разрешением."""
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        request = _reported(service, paint, walls, ceiling, TransferMode.COPY)
        service.update_link(tgt.id, {"material_quantity_per_work": Decimal("2")})

        with pytest.raises(StaleConflict):
            service.resolver.resolve(request, ConflictStrategy.SUM)

        tgt.refresh_from_db()
        assert tgt.material_quantity_per_work == Decimal("2")


def _resolve_reported(service, conflict, strategy):
    return service.resolve_conflict(
        conflict.src_link_id,
        conflict.tgt_link_id,
        conflict.target_work_id,
        strategy,
        conflict.mode,
        src_version=conflict.src_version,
        tgt_version=conflict.tgt_version,
    )


class TestResolveThroughFacade:
    """Повторное разрешение того же конфликта через LinkageService."""

    @pytest.mark.parametrize("strategy", list(ConflictStrategy))
    @pytest.mark.parametrize("mode", list(TransferMode))
    def test_second_resolution_is_stale(self, conflict_setup, service, strategy, mode):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        conflict = _reported(service, paint, walls, ceiling, mode).conflict

        resolved = _resolve_reported(service, conflict, strategy)
        assert resolved.state == TransferState.RESOLVED

        with pytest.raises(StaleConflict):
            _resolve_reported(service, conflict, strategy)

    def test_copy_sum_not_added_twice(self, position, conflict_setup, service):
        """5 + 3 = 8 и после повторной попытки тоже 8."""
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        conflict = _reported(service, paint, walls, ceiling, TransferMode.COPY).conflict

        _resolve_reported(service, conflict, ConflictStrategy.SUM)
        with pytest.raises(StaleConflict):
            _resolve_reported(service, conflict, ConflictStrategy.SUM)

        assert _ceiling_volume(service, position, ceiling).material_volume == Decimal("8")

    def test_versions_required(self, conflict_setup, service):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        with pytest.raises(InvalidTransfer):
            service.resolve_conflict(src.id, tgt.id, ceiling.id, ConflictStrategy.SUM)
        tgt.refresh_from_db()
        assert tgt.version == 1

    def test_conflict_carries_link_versions(self, conflict_setup, service):
        walls, ceiling, paint, paint_ceiling, src, tgt = conflict_setup
        conflict = _reported(service, paint, walls, ceiling).conflict

        assert conflict.src_version == src.version == 1
        assert conflict.tgt_version == tgt.version == 1
        assert conflict.to_dict()["tgt_version"] == 1


class TestOccupiedMaterial:
    def test_occupying_link_moved_to_target(self, position, item_factory, link_factory, service):
        first = item_factory(position, "work", description="Работа 1", quantity=Decimal("2"))
        second = item_factory(position, "work", description="Работа 2", quantity=Decimal("3"))
        sand = item_factory(position, "material", description="Песок")
        occupying = link_factory(first, sand)

        request = service.transfer(sand.id, None, second.id)
        assert request.conflict.tgt_link_id is None

        service.resolver.resolve(request, ConflictStrategy.REPLACE)

        occupying.refresh_from_db()
        assert occupying.work_item_id == second.id
