"""
Контроллеры для API переноса материала между работами.

Исходы переноса:
- applied → 200, итоги затронутых позиций
- conflict_reported → 409, данные конфликта для выбора стратегии
- failed → 409, причина
"""

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response

from app_boq.results import Applied, TransferRequest, TransferState
from app_boq.views.base import BaseBOQAPIView

from .serializers import (
    ConflictResolveRequestSerializer,
    TransferRequestSerializer,
    TransferResponseSerializer,
)


class TransferResponseMixin:
    def transfer_response(self, request: TransferRequest) -> Response:
        if request.state == TransferState.CONFLICT_REPORTED:
            return Response(
                {
                    "ok": False,
                    "state": request.state.value,
                    "conflict": request.conflict.to_dict(),
                },
                status=status.HTTP_409_CONFLICT,
            )

        result = request.result
        if isinstance(result, Applied):
            return Response(
                {
                    "ok": True,
                    "state": request.state.value,
                    "link_id": result.link_id,
                    "material_id": result.material_id,
                    "totals": self.totals_payload(result.affected_positions),
                },
                status=status.HTTP_200_OK,
            )

        return Response(
            {
                "ok": False,
                "state": request.state.value,
                "error": result.reason,
                "details": result.details,
            },
            status=status.HTTP_409_CONFLICT,
        )


class MaterialTransferAPIView(TransferResponseMixin, BaseBOQAPIView):
    """API переноса (move) или копирования (copy) материала."""

    @extend_schema(
        summary="Перенести или скопировать материал в другую работу",
        request=TransferRequestSerializer,
        responses={200: TransferResponseSerializer, 409: TransferResponseSerializer},
        tags=["BOQ Transfer"],
    )
    def post(self, request, material_id: int):
        serializer = TransferRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            transfer = self.service.transfer(
                material_id=material_id,
                source_work_id=data.get("source_work_id"),
                target_work_id=data["target_work_id"],
                mode=data["mode"],
            )
            return self.transfer_response(transfer)
        except Exception as e:
            return self.handle_error(e)


class ConflictResolveAPIView(TransferResponseMixin, BaseBOQAPIView):
    """API разрешения конфликта переноса (sum / replace)."""

    @extend_schema(
        summary="Разрешить конфликт переноса",
        request=ConflictResolveRequestSerializer,
        responses={200: TransferResponseSerializer},
        tags=["BOQ Transfer"],
    )
    def post(self, request):
        serializer = ConflictResolveRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            transfer = self.service.resolve_conflict(
                src_link_id=data["src_link_id"],
                tgt_link_id=data.get("tgt_link_id"),
                target_work_id=data["target_work_id"],
                strategy=data["strategy"],
                mode=data["mode"],
                src_version=data["src_version"],
                tgt_version=data.get("tgt_version"),
            )
            return self.transfer_response(transfer)
        except Exception as e:
            return self.handle_error(e)
