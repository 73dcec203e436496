"""
Подписи категорий затрат для строк BOQ.

Если детальная статья не найдена в справочнике (удалена или ещё не
импортирована), подписью становится сам идентификатор статьи.
"""

import logging
from typing import Dict, Iterable

from app_cost_categories.models import DetailCostCategory

logger = logging.getLogger(__name__)


def batch_cost_category_displays(items: Iterable) -> Dict[int, str]:
    """
    Подписи категорий для набора строк BOQ за один запрос.

    Args:
        items: строки BOQ (нужен атрибут detail_cost_category_id)

    Returns:
        {detail_cost_category_id: подпись}
    """
    detail_ids = {
        item.detail_cost_category_id
        for item in items
        if getattr(item, "detail_cost_category_id", None)
    }
    if not detail_ids:
        return {}

    found = {
        detail.id: detail.display_name
        for detail in DetailCostCategory.objects.filter(
            id__in=detail_ids
        ).select_related("cost_category", "location")
    }

    displays: Dict[int, str] = {}
    for detail_id in detail_ids:
        label = found.get(detail_id)
        if not label:
            logger.debug(
                f"Категория затрат {detail_id} не найдена, подпись = идентификатор"
            )
            label = str(detail_id)
        displays[detail_id] = label
    return displays
