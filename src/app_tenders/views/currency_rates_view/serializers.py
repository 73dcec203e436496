"""
Сериализаторы для API курсов валют тендера.
"""

from rest_framework import serializers

RATE_FIELD = {"max_digits": 12, "decimal_places": 4, "required": False, "allow_null": True}


class CurrencyRatesRequestSerializer(serializers.Serializer):
    """Новые курсы. Пустой запрос — применить уже сохранённые курсы тендера."""

    USD = serializers.DecimalField(**RATE_FIELD)
    EUR = serializers.DecimalField(**RATE_FIELD)
    CNY = serializers.DecimalField(**RATE_FIELD)


class CurrencyRatesResponseSerializer(serializers.Serializer):
    ok = serializers.BooleanField(default=True)
    tender_id = serializers.IntegerField()
    updated = serializers.DictField(child=serializers.IntegerField())
