"""
Доменные исключения движка связей и итогов BOQ.

Принципы:
- Явная обработка ошибок: каждое исключение несёт message и details
  (идентификаторы и названия), достаточные для сообщения пользователю
- Конфликт переноса — НЕ исключение, а штатный результат (см. results.py)
"""


class BOQEngineError(Exception):
    """Базовое исключение движка."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidCoefficient(BOQEngineError):
    """Коэффициент меньше допустимой нижней границы."""

    def __init__(self, name: str, value, lower_bound):
        super().__init__(
            message=(
                f"Некорректный коэффициент {name}: {value} "
                f"(минимально допустимое значение {lower_bound})"
            ),
            details={"coefficient": name, "value": str(value), "min": str(lower_bound)},
        )


class InvalidCurrencyRate(BOQEngineError):
    """Для валюты, отличной от локальной, не задан положительный курс."""

    def __init__(self, currency: str, rate=None, item_id=None):
        super().__init__(
            message=f"Для валюты {currency} не задан положительный курс",
            details={
                "currency": currency,
                "rate": None if rate is None else str(rate),
                "item_id": item_id,
            },
        )


class InvalidDeliveryAmount(BOQEngineError):
    """Фиксированная доставка без суммы."""

    def __init__(self, item_id=None):
        super().__init__(
            message="Для фиксированной доставки не указана сумма доставки",
            details={"item_id": item_id},
        )


class NoOpTransfer(BOQEngineError):
    """Перенос материала в ту же самую работу."""

    def __init__(self, material_id: int, work_id: int):
        super().__init__(
            message="Материал уже находится в выбранной работе",
            details={"material_id": material_id, "work_id": work_id},
        )


class InvalidTransfer(BOQEngineError):
    """Перенос невозможен (не тот тип строки, другой тендер и т.п.)."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message=f"Перенос невозможен: {message}", details=details)


class StaleConflict(BOQEngineError):
    """Конфликт уже разрешён или исчез — нужно перечитать состояние."""

    def __init__(self, src_link_id=None, tgt_link_id=None, reason: str = ""):
        super().__init__(
            message="Конфликт уже неактуален, обновите данные позиции",
            details={
                "src_link_id": src_link_id,
                "tgt_link_id": tgt_link_id,
                "reason": reason,
            },
        )


class StoreUnavailable(BOQEngineError):
    """Операция хранилища завершилась ошибкой. Автоматического повтора нет."""

    def __init__(self, operation: str, error: Exception = None):
        super().__init__(
            message=f"Хранилище недоступно при выполнении операции «{operation}»",
            details={"operation": operation, "error": str(error) if error else ""},
        )


class PositionNotFound(BOQEngineError):
    """Позиция заказчика не найдена."""

    def __init__(self, position_id: int):
        super().__init__(
            message=f"Позиция с ID {position_id} не найдена",
            details={"position_id": position_id},
        )


class ItemNotFound(BOQEngineError):
    """Строка BOQ не найдена."""

    def __init__(self, item_id: int, kind: str = "item"):
        super().__init__(
            message=f"Строка BOQ с ID {item_id} не найдена",
            details={"item_id": item_id, "kind": kind},
        )


class LinkNotFound(BOQEngineError):
    """Связь работа → материал не найдена."""

    def __init__(self, link_id: int):
        super().__init__(
            message=f"Связь с ID {link_id} не найдена",
            details={"link_id": link_id},
        )


class TenderNotFound(BOQEngineError):
    """Тендер не найден."""

    def __init__(self, tender_id: int):
        super().__init__(
            message=f"Тендер с ID {tender_id} не найден",
            details={"tender_id": tender_id},
        )
