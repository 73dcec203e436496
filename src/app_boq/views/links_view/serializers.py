"""
Сериализаторы для API связей и итогов позиции.
"""

from rest_framework import serializers

COEFFICIENT_FIELD = {"max_digits": 18, "decimal_places": 8}
MONEY_FIELD = {"max_digits": 20, "decimal_places": 2}


class LinkViewSerializer(serializers.Serializer):
    """Связь с вычисленными объёмом и стоимостью."""

    link_id = serializers.IntegerField()
    work_id = serializers.IntegerField()
    material_id = serializers.IntegerField()
    material_name = serializers.CharField()
    unit = serializers.CharField(allow_blank=True)
    order = serializers.IntegerField()
    consumption_coefficient = serializers.DecimalField(**COEFFICIENT_FIELD)
    conversion_coefficient = serializers.DecimalField(**COEFFICIENT_FIELD)
    work_quantity = serializers.DecimalField(max_digits=20, decimal_places=4)
    material_volume = serializers.DecimalField(max_digits=24, decimal_places=6)
    line_total = serializers.DecimalField(**MONEY_FIELD)
    notes = serializers.CharField(allow_blank=True)


class PositionTotalsSerializer(serializers.Serializer):
    """Итоги позиции."""

    works_total = serializers.DecimalField(**MONEY_FIELD)
    materials_total = serializers.DecimalField(**MONEY_FIELD)
    position_total = serializers.DecimalField(**MONEY_FIELD)
    linked_materials_total = serializers.DecimalField(**MONEY_FIELD)
    unlinked_materials_total = serializers.DecimalField(**MONEY_FIELD)


class PositionLinksResponseSerializer(serializers.Serializer):
    """Ответ списка связей: work_id → связи."""

    ok = serializers.BooleanField(default=True)
    position_id = serializers.IntegerField()
    links = serializers.DictField(child=serializers.ListField(child=LinkViewSerializer()))
    cost_categories = serializers.DictField(child=serializers.CharField())


class LinkCreateRequestSerializer(serializers.Serializer):
    """Запрос создания связи."""

    work_id = serializers.IntegerField(min_value=1)
    material_id = serializers.IntegerField(min_value=1)
    material_quantity_per_work = serializers.DecimalField(
        required=False, allow_null=True, **COEFFICIENT_FIELD
    )
    usage_coefficient = serializers.DecimalField(
        required=False, allow_null=True, **COEFFICIENT_FIELD
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class LinkUpdateRequestSerializer(serializers.Serializer):
    """Запрос изменения связи. Передаются только изменяемые поля."""

    material_quantity_per_work = serializers.DecimalField(
        required=False, allow_null=True, **COEFFICIENT_FIELD
    )
    usage_coefficient = serializers.DecimalField(
        required=False, allow_null=True, **COEFFICIENT_FIELD
    )
    notes = serializers.CharField(required=False, allow_blank=True)
    order = serializers.IntegerField(required=False, min_value=0)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Не передано ни одного поля для изменения")
        return attrs
