"""
Базовый репозиторий для работы с данными.

Предоставляет общие методы доступа к данным и снижает связанность
между бизнес-логикой и моделями Django ORM.

Принципы:
- Single Responsibility: только доступ к данным
- Dependency Inversion: бизнес-логика зависит от абстракции, а не от ORM
- Блокировки строк (select_for_update) — только внутри transaction.atomic()
"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from django.db.models import Model, QuerySet

ModelType = TypeVar("ModelType", bound=Model)


class BaseRepository(Generic[ModelType]):
    """
    Базовый класс репозитория для работы с Django ORM.

    Использует Generic для типизации модели.

    Example:
        class LinkStore(BaseRepository[WorkMaterialLink]):
            model = WorkMaterialLink

            def load_links(self, position_id: int) -> List[WorkMaterialLink]:
                return list(self.get_queryset(filters={"client_position_id": position_id}))
    """

    model: Type[ModelType] = None

    def __init__(self):
        if self.model is None:
            raise ValueError(
                f"{self.__class__.__name__} должен определить атрибут 'model'"
            )

    def get_by_id(
        self,
        obj_id: int,
        select_related: Optional[List[str]] = None,
        prefetch_related: Optional[List[str]] = None,
    ) -> Optional[ModelType]:
        """
        Получить объект по ID с оптимизацией запросов.

        Returns:
            Объект модели или None
        """
        qs = self.model.objects.all()

        if select_related:
            qs = qs.select_related(*select_related)

        if prefetch_related:
            qs = qs.prefetch_related(*prefetch_related)

        return qs.filter(pk=obj_id).first()

    def lock_by_id(
        self,
        obj_id: int,
        select_related: Optional[List[str]] = None,
    ) -> Optional[ModelType]:
        """
        Получить объект по ID с блокировкой строки до конца транзакции.

        Returns:
            Объект модели или None
        """
        qs = self.model.objects.select_for_update()

        if select_related:
            qs = qs.select_related(*select_related)

        return qs.filter(pk=obj_id).first()

    def get_queryset(
        self,
        filters: Optional[Dict[str, Any]] = None,
        select_related: Optional[List[str]] = None,
        order_by: Optional[List[str]] = None,
    ) -> QuerySet[ModelType]:
        """
        Получить QuerySet с фильтрацией и сортировкой.

        Args:
            filters: Словарь фильтров для QuerySet.filter(**filters)
            select_related: Список связей для select_related
            order_by: Список полей для сортировки
        """
        qs = self.model.objects.all()

        if filters:
            qs = qs.filter(**filters)

        if select_related:
            qs = qs.select_related(*select_related)

        if order_by:
            qs = qs.order_by(*order_by)

        return qs

    def exists(self, **filters) -> bool:
        """Проверить существование объекта по фильтрам."""
        return self.model.objects.filter(**filters).exists()
