"""
Сериализаторы для API переноса материала и разрешения конфликта.
"""

from rest_framework import serializers

from app_boq.results import ConflictStrategy, TransferMode

MODE_CHOICES = [m.value for m in TransferMode]
STRATEGY_CHOICES = [s.value for s in ConflictStrategy]


class TransferRequestSerializer(serializers.Serializer):
    """Запрос переноса. source_work_id пустой — материал не привязан."""

    source_work_id = serializers.IntegerField(
        min_value=1, required=False, allow_null=True, default=None
    )
    target_work_id = serializers.IntegerField(min_value=1)
    mode = serializers.ChoiceField(choices=MODE_CHOICES, default=TransferMode.MOVE.value)


class ConflictSerializer(serializers.Serializer):
    """Данные конфликта для диалога выбора стратегии."""

    src_link_id = serializers.IntegerField()
    tgt_link_id = serializers.IntegerField(allow_null=True)
    material_id = serializers.IntegerField()
    material_name = serializers.CharField(allow_blank=True)
    source_work_name = serializers.CharField(allow_blank=True)
    target_work_name = serializers.CharField(allow_blank=True)
    target_work_id = serializers.IntegerField()
    mode = serializers.ChoiceField(choices=MODE_CHOICES)
    src_version = serializers.IntegerField(allow_null=True)
    tgt_version = serializers.IntegerField(allow_null=True)


class TransferResponseSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    state = serializers.CharField()
    link_id = serializers.IntegerField(required=False, allow_null=True)
    material_id = serializers.IntegerField(required=False)
    conflict = ConflictSerializer(required=False)
    totals = serializers.DictField(required=False)


class ConflictResolveRequestSerializer(serializers.Serializer):
    """Запрос разрешения конфликта. Версии связей — из ответа с конфликтом."""

    src_link_id = serializers.IntegerField(min_value=1)
    tgt_link_id = serializers.IntegerField(min_value=1, required=False, allow_null=True, default=None)
    target_work_id = serializers.IntegerField(min_value=1)
    strategy = serializers.ChoiceField(choices=STRATEGY_CHOICES)
    mode = serializers.ChoiceField(choices=MODE_CHOICES, default=TransferMode.MOVE.value)
    src_version = serializers.IntegerField(min_value=1)
    tgt_version = serializers.IntegerField(
        min_value=1, required=False, allow_null=True, default=None
    )
