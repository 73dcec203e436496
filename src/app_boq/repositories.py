"""
Репозитории BOQ: доступ к строкам и связям «работа → материал».

Ответственность:
- Чтение позиций, строк BOQ и связей (без блокировок)
- Атомарные изменения связей: каждое — одна транзакция с блокировкой
  затронутых позиций (select_for_update, по возрастанию id)
- Обнаружение конфликта переноса (целевая работа уже потребляет тот же материал)

Принципы:
- Single Responsibility: только доступ к данным и атомарность
- Конфликт — результат (Conflict), не исключение
- Ошибки БД (DatabaseError) оборачиваются в StoreUnavailable, повторов нет
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from django.db import DatabaseError, transaction
from django.db.models import Max, Q

from app_boq import calculators
from app_boq.aggregators import PositionAggregator
from app_boq.exceptions import (
    BOQEngineError,
    InvalidTransfer,
    ItemNotFound,
    LinkNotFound,
    NoOpTransfer,
    PositionNotFound,
    StaleConflict,
    StoreUnavailable,
)
from app_boq.link_registry import LinkRegistry
from app_boq.models import BOQItem, WorkMaterialLink
from app_boq.results import (
    Applied,
    Conflict,
    ConflictStrategy,
    Failed,
    TransferMode,
    TransferResult,
)
from app_tenders.models import ClientPosition
from core.base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Какие материалы может потреблять работа каждого уровня
LINKABLE_KINDS = {
    BOQItem.ItemType.WORK: BOQItem.ItemType.MATERIAL,
    BOQItem.ItemType.SUB_WORK: BOQItem.ItemType.SUB_MATERIAL,
}

UPDATABLE_LINK_FIELDS = ("material_quantity_per_work", "usage_coefficient", "notes", "order")

# Изменения внутри операций хранилища: итоги пересчитывает сам движок
_engine_write: ContextVar[bool] = ContextVar("boq_engine_write", default=False)

# Поля строки материала, переносимые в копию
CLONED_ITEM_FIELDS = (
    "item_type",
    "description",
    "unit",
    "material_ref",
    "quantity",
    "unit_rate",
    "currency_type",
    "currency_rate",
    "consumption_coefficient",
    "conversion_coefficient",
    "delivery_price_type",
    "delivery_amount",
    "detail_cost_category_id",
    "note",
)


@contextmanager
def store_operation(operation: str):
    """
    Оборачивает ошибки БД в StoreUnavailable. Доменные ошибки пропускаются как есть.

    Пока операция выполняется, сигналы не планируют пересчёт итогов
    (см. in_store_operation).
    """
    token = _engine_write.set(True)
    try:
        yield
    except BOQEngineError:
        raise
    except DatabaseError as e:
        logger.exception(f"Ошибка БД при операции «{operation}»: {e}")
        raise StoreUnavailable(operation, e) from e
    finally:
        _engine_write.reset(token)


def in_store_operation() -> bool:
    return _engine_write.get()


class BOQItemRepository(BaseRepository[BOQItem]):
    """Строки BOQ позиций."""

    model = BOQItem

    def get_by_id_or_raise(self, item_id: int, kind: str = "item") -> BOQItem:
        item = self.get_by_id(item_id)
        if not item:
            raise ItemNotFound(item_id, kind)
        return item

    def lock(self, item_id: int, kind: str = "item") -> BOQItem:
        item = self.lock_by_id(item_id)
        if not item:
            raise ItemNotFound(item_id, kind)
        return item

    def items_by_position(self, position_ids: Iterable[int]) -> Dict[int, List[BOQItem]]:
        """
        position_id → строки BOQ. Ключи есть только у существующих позиций,
        в том числе у позиций без строк.
        """
        ids = list(position_ids)
        result: Dict[int, List[BOQItem]] = {
            pid: []
            for pid in ClientPosition.objects.filter(pk__in=ids).values_list(
                "pk", flat=True
            )
        }
        for item in BOQItem.objects.filter(client_position_id__in=result.keys()):
            result[item.client_position_id].append(item)
        return result

    def next_sub_number(self, position_id: int) -> int:
        current = BOQItem.objects.filter(client_position_id=position_id).aggregate(
            m=Max("sub_number")
        )["m"]
        return (current or 0) + 1

    def clone_into(self, material: BOQItem, position: ClientPosition) -> BOQItem:
        """Копия строки материала в позиции с очередным подномером."""
        sub = self.next_sub_number(position.pk)
        return BOQItem.objects.create(
            client_position=position,
            sub_number=sub,
            sort_order=sub,
            item_number=f"{position.position_number}.{sub}",
            **{f: getattr(material, f) for f in CLONED_ITEM_FIELDS},
        )

    def move_into(self, material: BOQItem, position: ClientPosition) -> BOQItem:
        """Переносит строку материала в другую позицию с новым номером."""
        sub = self.next_sub_number(position.pk)
        material.client_position = position
        material.sub_number = sub
        material.sort_order = sub
        material.item_number = f"{position.position_number}.{sub}"
        material.save(
            update_fields=[
                "client_position",
                "sub_number",
                "sort_order",
                "item_number",
                "updated_at",
            ]
        )
        return material


class LinkStore(BaseRepository[WorkMaterialLink]):
    """
    Хранилище связей «работа → материал».

    Каждая изменяющая операция — одна транзакция. После неё состояние
    позиции перечитывается из БД (см. services.totals).
    """

    model = WorkMaterialLink

    def __init__(self, item_repo: BOQItemRepository = None):
        super().__init__()
        self.items = item_repo or BOQItemRepository()

    # --- ЧТЕНИЕ ----------------------------------------------------------------

    def load_items_by_position(
        self, position_ids: Iterable[int]
    ) -> Dict[int, List[BOQItem]]:
        with store_operation("load_items_by_position"):
            return self.items.items_by_position(position_ids)

    def load_links(self, position_id: int) -> List[WorkMaterialLink]:
        with store_operation("load_links"):
            return list(
                self.get_queryset(
                    filters={"client_position_id": position_id},
                    order_by=["order", "id"],
                )
            )

    def get_link_or_raise(self, link_id: int) -> WorkMaterialLink:
        link = self.get_by_id(link_id, select_related=["work_item", "material_item"])
        if not link:
            raise LinkNotFound(link_id)
        return link

    def works_using_material(self, material_id: int) -> List[BOQItem]:
        """Работы, к которым привязан материал (или материалы с тем же кодом)."""
        with store_operation("works_using_material"):
            material = self.items.get_by_id_or_raise(material_id, "material")
            return list(
                BOQItem.objects.filter(
                    material_links__material_item__in=self._same_material_q(material)
                )
                .distinct()
                .order_by("client_position_id", "sort_order", "id")
            )

    def materials_for_work(self, work_id: int) -> List[BOQItem]:
        with store_operation("materials_for_work"):
            return list(
                BOQItem.objects.filter(work_link__work_item_id=work_id).order_by(
                    "work_link__order", "work_link__id"
                )
            )

    def link_exists(self, work_id: int, material_id: int) -> bool:
        with store_operation("link_exists"):
            return self.exists(work_item_id=work_id, material_item_id=material_id)

    def affected_positions(self, *item_ids: int) -> List[int]:
        """Позиции, которым принадлежат строки (по возрастанию id)."""
        ids = [i for i in item_ids if i is not None]
        return sorted(
            set(
                BOQItem.objects.filter(pk__in=ids).values_list(
                    "client_position_id", flat=True
                )
            )
        )

    # --- ИЗМЕНЕНИЕ -------------------------------------------------------------

    def create_link(
        self,
        position_id: int,
        work_id: int,
        material_id: int,
        material_quantity_per_work: Optional[Decimal] = None,
        usage_coefficient: Optional[Decimal] = None,
        notes: str = "",
    ) -> TransferResult:
        """
        Привязывает материал к работе.

        Повторная привязка к той же работе — Applied без второй связи.
        Материал, уже привязанный к другой работе, — Conflict с занявшей
        его связью (tgt_link_id=None).
        """
        calculators.validate_coefficients(material_quantity_per_work, usage_coefficient)

        with store_operation("create_link"), transaction.atomic():
            position = self._lock_positions([position_id])[position_id]
            work = self.items.lock(work_id, "work")
            material = self.items.lock(material_id, "material")
            self._check_pair(work, material)
            if work.client_position_id != position.pk:
                raise InvalidTransfer(
                    "работа не принадлежит позиции",
                    {"work_id": work_id, "position_id": position_id},
                )
            self._check_totals_computable([position.pk, material.client_position_id])

            existing = self._lock_link_of_material(material_id)
            if existing is not None:
                if existing.work_item_id == work_id:
                    return Applied(existing.id, material_id, [position.pk])
                logger.info(
                    f"Материал {material_id} уже привязан к работе "
                    f"{existing.work_item_id} (связь {existing.id})"
                )
                return Conflict(
                    src_link_id=existing.id,
                    tgt_link_id=None,
                    material_id=material_id,
                    material_name=material.description,
                    source_work_name=existing.work_item.description,
                    target_work_name=work.description,
                    src_version=existing.version,
                )

            if material.client_position_id != position.pk:
                self.items.move_into(material, position)

            link = WorkMaterialLink.objects.create(
                client_position=position,
                work_item=work,
                material_item=material,
                material_quantity_per_work=material_quantity_per_work
                if material_quantity_per_work is not None
                else Decimal("1"),
                usage_coefficient=usage_coefficient
                if usage_coefficient is not None
                else Decimal("1"),
                order=self._next_order(work_id),
                notes=notes or "",
            )
            logger.info(
                f"Создана связь {link.id}: работа {work_id} → материал {material_id}"
            )
            return Applied(link.id, material_id, [position.pk])

    def update_link(self, link_id: int, fields: Dict[str, Any]) -> WorkMaterialLink:
        unknown = set(fields) - set(UPDATABLE_LINK_FIELDS)
        if unknown:
            raise InvalidTransfer(
                "недопустимые поля связи", {"fields": sorted(unknown)}
            )
        calculators.validate_coefficients(
            fields.get("material_quantity_per_work"), fields.get("usage_coefficient")
        )

        with store_operation("update_link"), transaction.atomic():
            link = self._lock_link(link_id)
            self._lock_positions([link.client_position_id])
            self._check_totals_computable([link.client_position_id])
            for name, value in fields.items():
                setattr(link, name, value)
            link.save(update_fields=[*fields.keys(), "updated_at"])
            return link

    def delete_link(self, link_id: int) -> Applied:
        """Удаляет связь. Материал остаётся в позиции непривязанным."""
        with store_operation("delete_link"), transaction.atomic():
            link = self._lock_link(link_id)
            self._lock_positions([link.client_position_id])
            self._check_totals_computable([link.client_position_id])
            position_id = link.client_position_id
            material_id = link.material_item_id
            link.delete()
            logger.info(f"Удалена связь {link_id} (материал {material_id})")
            return Applied(None, material_id, [position_id])

    def move_or_copy_material(
        self,
        material_id: int,
        source_work_id: Optional[int],
        target_work_id: int,
        mode: TransferMode = TransferMode.MOVE,
    ) -> TransferResult:
        """
        Перенос (move) или копирование (copy) привязанного материала в другую работу.

        Returns:
            Applied — перенос выполнен (или уже был выполнен ранее)
            Conflict — целевая работа уже потребляет тот же материал
            Failed — материал отвязан или перенесён кем-то другим
        """
        mode = TransferMode(mode)
        if source_work_id is not None and source_work_id == target_work_id:
            raise NoOpTransfer(material_id, target_work_id)

        with store_operation("move_or_copy_material"), transaction.atomic():
            material = self.items.get_by_id_or_raise(material_id, "material")
            target = self.items.get_by_id_or_raise(target_work_id, "work")
            self._check_pair(target, material)

            positions = self._lock_positions(
                [material.client_position_id, target.client_position_id]
            )
            target_position = positions[target.client_position_id]
            self._check_totals_computable(positions.keys())

            src_link = self._lock_link_of_material(material_id)
            if src_link is None:
                return Failed(
                    "Материал не привязан к работе",
                    {"material_id": material_id},
                )

            if src_link.work_item_id == target_work_id:
                # повтор уже выполненного переноса
                return Applied(src_link.id, material_id, [target_position.pk])

            if source_work_id is not None and src_link.work_item_id != source_work_id:
                return Failed(
                    "Материал уже перенесён в другую работу",
                    {
                        "material_id": material_id,
                        "expected_work_id": source_work_id,
                        "actual_work_id": src_link.work_item_id,
                    },
                )

            tgt_link = self._same_material_link(target_work_id, material, src_link.id)
            if tgt_link is not None:
                logger.info(
                    f"Конфликт переноса материала {material_id}: работа "
                    f"{target_work_id} уже содержит связь {tgt_link.id}"
                )
                return Conflict(
                    src_link_id=src_link.id,
                    tgt_link_id=tgt_link.id,
                    material_id=material_id,
                    material_name=material.description,
                    source_work_name=src_link.work_item.description,
                    target_work_name=target.description,
                    src_version=src_link.version,
                    tgt_version=tgt_link.version,
                )

            source_position_id = src_link.client_position_id
            if mode == TransferMode.MOVE:
                link = self._repoint(src_link, material, target, target_position)
                logger.info(
                    f"Материал {material_id} перенесён в работу {target_work_id}"
                )
                return Applied(
                    link.id,
                    material_id,
                    sorted({source_position_id, target_position.pk}),
                )

            clone, link = self._copy(src_link, material, target, target_position)
            logger.info(
                f"Материал {material_id} скопирован в работу {target_work_id} "
                f"(новая строка {clone.id})"
            )
            return Applied(link.id, clone.id, [target_position.pk])

    def resolve_conflict(
        self,
        src_link_id: int,
        tgt_link_id: Optional[int],
        target_work_id: int,
        strategy: ConflictStrategy,
        mode: TransferMode = TransferMode.MOVE,
        src_version: Optional[int] = None,
        tgt_version: Optional[int] = None,
    ) -> Applied:
        """
        Разрешает конфликт одной транзакцией.

        sum: расход целевой связи подбирается так, чтобы её объём стал
            суммой объёмов; источник удаляется (move) или не трогается (copy)
        replace: целевая связь и её материал удаляются, остаётся связь
            с коэффициентами источника

        src_version / tgt_version — версии связей из Conflict. Переданная
        версия должна совпасть с текущей.

        Raises:
            StaleConflict: связи исчезли, изменились после обнаружения
                конфликта или конфликт больше не актуален
        """
        strategy = ConflictStrategy(strategy)
        mode = TransferMode(mode)

        with store_operation("resolve_conflict"), transaction.atomic():
            src_link = self._lock_link_or_stale(src_link_id, src_link_id, tgt_link_id)
            self._check_version(src_link, src_version, src_link_id, tgt_link_id)
            target = self.items.get_by_id(target_work_id)
            if target is None:
                raise StaleConflict(src_link_id, tgt_link_id, "целевая работа удалена")

            if tgt_link_id is None:
                return self._resolve_occupied(src_link, target, strategy)

            tgt_link = self._lock_link_or_stale(tgt_link_id, src_link_id, tgt_link_id)
            self._check_version(tgt_link, tgt_version, src_link_id, tgt_link_id)
            src_material = src_link.material_item
            tgt_material = tgt_link.material_item

            if tgt_link.work_item_id != target_work_id or not self._same_material(
                src_material, tgt_material
            ):
                raise StaleConflict(src_link_id, tgt_link_id, "конфликт больше не актуален")

            positions = self._lock_positions(
                [src_link.client_position_id, tgt_link.client_position_id]
            )
            target_position = positions[tgt_link.client_position_id]
            affected = sorted(positions.keys())
            self._check_totals_computable(affected)

            if strategy == ConflictStrategy.SUM:
                self._merge_volumes(src_link, tgt_link)
                if mode == TransferMode.MOVE:
                    # связь источника удаляется каскадом
                    src_material.delete()
                logger.info(
                    f"Конфликт {src_link_id}/{tgt_link_id} разрешён суммированием ({mode.value})"
                )
                return Applied(tgt_link.id, tgt_material.id, affected)

            # REPLACE
            tgt_order = tgt_link.order
            tgt_material.delete()
            if mode == TransferMode.MOVE:
                link = self._repoint(
                    src_link, src_material, target, target_position, order=tgt_order
                )
                material_id = src_material.id
            else:
                clone, link = self._copy(
                    src_link, src_material, target, target_position, order=tgt_order
                )
                material_id = clone.id
            logger.info(
                f"Конфликт {src_link_id}/{tgt_link_id} разрешён заменой ({mode.value})"
            )
            return Applied(link.id, material_id, affected)

    # --- ВНУТРЕННЕЕ ------------------------------------------------------------

    def _lock_positions(self, position_ids: Iterable[int]) -> Dict[int, ClientPosition]:
        ids = sorted(set(position_ids))
        positions = {
            p.pk: p
            for p in ClientPosition.objects.select_for_update()
            .filter(pk__in=ids)
            .order_by("pk")
        }
        for pid in ids:
            if pid not in positions:
                raise PositionNotFound(pid)
        return positions

    def _lock_link(self, link_id: int) -> WorkMaterialLink:
        link = self.lock_by_id(link_id, select_related=["work_item", "material_item"])
        if not link:
            raise LinkNotFound(link_id)
        return link

    def _lock_link_or_stale(
        self, link_id: int, src_link_id: int, tgt_link_id: Optional[int]
    ) -> WorkMaterialLink:
        try:
            return self._lock_link(link_id)
        except LinkNotFound:
            raise StaleConflict(src_link_id, tgt_link_id, f"связь {link_id} удалена")

    def _check_totals_computable(self, position_ids: Iterable[int]) -> None:
        """
        Итоги позиций должны считаться до изменения: курсы валют заданы,
        коэффициенты не отрицательны. Иначе операция отклоняется.
        """
        ids = sorted(set(position_ids))
        items = self.items.items_by_position(ids)
        for position_id in ids:
            links = self.get_queryset(filters={"client_position_id": position_id})
            PositionAggregator.aggregate(LinkRegistry.build(position_id, items, links))

    @staticmethod
    def _check_version(
        link: WorkMaterialLink,
        expected: Optional[int],
        src_link_id: int,
        tgt_link_id: Optional[int],
    ) -> None:
        if expected is not None and link.version != expected:
            raise StaleConflict(
                src_link_id,
                tgt_link_id,
                f"связь {link.pk} изменена (версия {link.version}, ожидалась {expected})",
            )

    def _lock_link_of_material(self, material_id: int) -> Optional[WorkMaterialLink]:
        return (
            WorkMaterialLink.objects.select_for_update()
            .select_related("work_item", "material_item")
            .filter(material_item_id=material_id)
            .first()
        )

    def _next_order(self, work_id: int) -> int:
        current = WorkMaterialLink.objects.filter(work_item_id=work_id).aggregate(
            m=Max("order")
        )["m"]
        return (current or 0) + 1

    @staticmethod
    def _check_pair(work: BOQItem, material: BOQItem) -> None:
        if work.item_type not in LINKABLE_KINDS:
            raise InvalidTransfer(
                "целевая строка не является работой",
                {"item_id": work.id, "item_type": work.item_type},
            )
        if material.item_type != LINKABLE_KINDS[work.item_type]:
            raise InvalidTransfer(
                "тип материала не соответствует уровню работы",
                {
                    "work_id": work.id,
                    "work_type": work.item_type,
                    "material_id": material.id,
                    "material_type": material.item_type,
                },
            )
        if work.client_position.tender_id != material.client_position.tender_id:
            raise InvalidTransfer(
                "работа и материал относятся к разным тендерам",
                {"work_id": work.id, "material_id": material.id},
            )

    @staticmethod
    def _same_material(a: BOQItem, b: BOQItem) -> bool:
        if a.pk == b.pk:
            return True
        return bool(a.material_ref) and a.material_ref == b.material_ref

    @staticmethod
    def _same_material_q(material: BOQItem):
        query = Q(pk=material.pk)
        if material.material_ref:
            query |= Q(material_ref=material.material_ref)
        return BOQItem.objects.filter(query)

    def _same_material_link(
        self, work_id: int, material: BOQItem, exclude_link_id: int
    ) -> Optional[WorkMaterialLink]:
        return (
            WorkMaterialLink.objects.select_for_update()
            .select_related("work_item", "material_item")
            .filter(
                work_item_id=work_id,
                material_item__in=self._same_material_q(material),
            )
            .exclude(pk=exclude_link_id)
            .order_by("pk")
            .first()
        )

    def _repoint(
        self,
        link: WorkMaterialLink,
        material: BOQItem,
        target: BOQItem,
        target_position: ClientPosition,
        order: Optional[int] = None,
    ) -> WorkMaterialLink:
        if material.client_position_id != target_position.pk:
            self.items.move_into(material, target_position)
        link.work_item = target
        link.client_position = target_position
        link.order = order if order is not None else self._next_order(target.pk)
        link.save(update_fields=["work_item", "client_position", "order", "updated_at"])
        return link

    def _copy(
        self,
        link: WorkMaterialLink,
        material: BOQItem,
        target: BOQItem,
        target_position: ClientPosition,
        order: Optional[int] = None,
    ):
        clone = self.items.clone_into(material, target_position)
        new_link = WorkMaterialLink.objects.create(
            client_position=target_position,
            work_item=target,
            material_item=clone,
            material_quantity_per_work=link.material_quantity_per_work,
            usage_coefficient=link.usage_coefficient,
            order=order if order is not None else self._next_order(target.pk),
            notes=link.notes,
        )
        return clone, new_link

    def _merge_volumes(
        self, src_link: WorkMaterialLink, tgt_link: WorkMaterialLink
    ) -> Decimal:
        """Подбирает расход целевой связи: её объём = объём источника + объём цели."""
        src_coeffs = calculators.coefficients_for(src_link.material_item, src_link)
        tgt_coeffs = calculators.coefficients_for(tgt_link.material_item, tgt_link)
        src_volume = src_coeffs.volume(src_link.work_item.quantity)
        tgt_volume = tgt_coeffs.volume(tgt_link.work_item.quantity)

        consumption = calculators.reconcile_sum_coefficients(
            src_volume, tgt_volume, tgt_link.work_item.quantity, tgt_coeffs.conversion
        )

        tgt_material = tgt_link.material_item
        if tgt_material.consumption_coefficient is not None:
            tgt_material.consumption_coefficient = consumption
            tgt_material.save(update_fields=["consumption_coefficient", "updated_at"])
        tgt_link.material_quantity_per_work = consumption
        tgt_link.save(update_fields=["material_quantity_per_work", "updated_at"])
        return consumption

    def _resolve_occupied(
        self,
        occupying: WorkMaterialLink,
        target: BOQItem,
        strategy: ConflictStrategy,
    ) -> Applied:
        """
        Материал, который пытались привязать, занят другой работой.
        Обе стратегии переводят занявшую связь в целевую работу.
        """
        if occupying.work_item_id == target.pk:
            raise StaleConflict(occupying.pk, None, "материал уже в целевой работе")

        material = occupying.material_item
        self._check_pair(target, material)
        positions = self._lock_positions(
            [occupying.client_position_id, target.client_position_id]
        )
        self._check_totals_computable(positions.keys())
        link = self._repoint(
            occupying, material, target, positions[target.client_position_id]
        )
        logger.info(
            f"Занятый материал {material.pk} переведён в работу {target.pk} "
            f"({strategy.value})"
        )
        return Applied(link.id, material.pk, sorted(positions.keys()))
