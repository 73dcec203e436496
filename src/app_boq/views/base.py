"""
Базовый контроллер API движка BOQ.
"""

import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from app_boq.exceptions import (
    BOQEngineError,
    ItemNotFound,
    LinkNotFound,
    PositionNotFound,
    StaleConflict,
    StoreUnavailable,
    TenderNotFound,
)
from app_boq.services.linkage import LinkageService
from app_boq.views.links_view.serializers import PositionTotalsSerializer

logger = logging.getLogger(__name__)

NOT_FOUND_ERRORS = (PositionNotFound, ItemNotFound, LinkNotFound, TenderNotFound)


class BaseBOQAPIView(APIView):
    """Базовый класс для API связей и переноса."""

    permission_classes = [IsAuthenticated]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.service = LinkageService()

    def handle_error(self, e: Exception):
        """Централизованная обработка ошибок."""
        if isinstance(e, NOT_FOUND_ERRORS):
            code = status.HTTP_404_NOT_FOUND
        elif isinstance(e, StaleConflict):
            code = status.HTTP_409_CONFLICT
        elif isinstance(e, StoreUnavailable):
            code = status.HTTP_503_SERVICE_UNAVAILABLE
        elif isinstance(e, BOQEngineError):
            code = status.HTTP_400_BAD_REQUEST
        else:
            logger.exception(f"Необработанная ошибка API: {e}")
            return Response(
                {"ok": False, "error": "Внутренняя ошибка", "details": {"error": str(e)}},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return Response(
            {"ok": False, "error": e.message, "details": e.details},
            status=code,
        )

    def totals_payload(self, position_ids) -> dict:
        return {
            str(pid): PositionTotalsSerializer(
                self.service.get_position_totals(pid).to_dict()
            ).data
            for pid in sorted(set(position_ids))
        }
