import logging

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from app_boq.exceptions import BOQEngineError
from app_boq.models import BOQItem, WorkMaterialLink
from app_boq.repositories import in_store_operation
from app_tenders.models import ClientPosition

logger = logging.getLogger(__name__)


def _schedule_totals_refresh(position_id: int):
    """
    Пересчёт итогов позиции после коммита транзакции.

    Срабатывает при изменении строк и связей через .save()/.delete()
    вне операций движка (админка, импорт). Операции LinkStore пересчитывают
    итоги сами. НЕ срабатывает при .update() и .bulk_create().
    """

    def _refresh():
        # позиция могла быть удалена каскадом вместе со строками
        if not ClientPosition.objects.filter(pk=position_id).exists():
            return
        from app_boq.services.totals import PositionTotalsService

        try:
            PositionTotalsService().refresh([position_id])
        except BOQEngineError as e:
            # данные уже закоммичены, кешированные итоги остаются прежними
            logger.warning(
                f"Итоги позиции {position_id} не пересчитаны: {e.message} {e.details}"
            )

    transaction.on_commit(_refresh)


@receiver([post_save, post_delete], sender=BOQItem)
def refresh_totals_on_item_change(sender, instance, **kwargs):
    if kwargs.get("raw") or in_store_operation():
        return
    _schedule_totals_refresh(instance.client_position_id)


@receiver([post_save, post_delete], sender=WorkMaterialLink)
def refresh_totals_on_link_change(sender, instance, **kwargs):
    if kwargs.get("raw") or in_store_operation():
        return
    _schedule_totals_refresh(instance.client_position_id)
