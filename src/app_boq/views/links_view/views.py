"""
Контроллеры для API связей «работа → материал» и итогов позиции.
"""

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response

from app_boq.results import Applied, Conflict, Failed
from app_boq.views.base import BaseBOQAPIView

from .serializers import (
    LinkCreateRequestSerializer,
    LinkUpdateRequestSerializer,
    LinkViewSerializer,
    PositionLinksResponseSerializer,
    PositionTotalsSerializer,
)


class PositionTotalsAPIView(BaseBOQAPIView):
    """API итогов позиции (пересчёт по текущему состоянию)."""

    @extend_schema(
        summary="Итоги позиции",
        responses={200: PositionTotalsSerializer},
        tags=["BOQ Links"],
    )
    def get(self, request, position_id: int):
        try:
            totals = self.service.get_position_totals(position_id)
            data = PositionTotalsSerializer(totals.to_dict()).data
            return Response(
                {"ok": True, "position_id": position_id, "totals": data},
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_error(e)


class PositionLinksAPIView(BaseBOQAPIView):
    """API связей позиции: список и создание."""

    @extend_schema(
        summary="Связи позиции, сгруппированные по работам",
        responses={200: PositionLinksResponseSerializer},
        tags=["BOQ Links"],
    )
    def get(self, request, position_id: int):
        try:
            by_work = self.service.get_enriched_links(position_id)
            links = {
                str(work_id): LinkViewSerializer(
                    [v.to_dict() for v in views], many=True
                ).data
                for work_id, views in by_work.items()
            }
            labels = self.service.cost_category_labels(position_id)
            return Response(
                {
                    "ok": True,
                    "position_id": position_id,
                    "links": links,
                    "cost_categories": {str(k): v for k, v in labels.items()},
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_error(e)

    @extend_schema(
        summary="Привязать материал к работе",
        request=LinkCreateRequestSerializer,
        responses={201: PositionTotalsSerializer},
        tags=["BOQ Links"],
    )
    def post(self, request, position_id: int):
        serializer = LinkCreateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = self.service.create_link(
                position_id=position_id,
                work_id=data["work_id"],
                material_id=data["material_id"],
                material_quantity_per_work=data.get("material_quantity_per_work"),
                usage_coefficient=data.get("usage_coefficient"),
                notes=data.get("notes", ""),
            )
            if isinstance(result, Applied):
                return Response(
                    {
                        "ok": True,
                        "link_id": result.link_id,
                        "totals": self.totals_payload(result.affected_positions),
                    },
                    status=status.HTTP_201_CREATED,
                )
            if isinstance(result, Conflict):
                return Response(
                    {
                        "ok": False,
                        "error": "Материал уже привязан к другой работе",
                        "conflict": {
                            "src_link_id": result.src_link_id,
                            "tgt_link_id": result.tgt_link_id,
                            "material_id": result.material_id,
                            "material_name": result.material_name,
                            "source_work_name": result.source_work_name,
                            "target_work_name": result.target_work_name,
                            "target_work_id": data["work_id"],
                            "src_version": result.src_version,
                            "tgt_version": result.tgt_version,
                        },
                    },
                    status=status.HTTP_409_CONFLICT,
                )
            if isinstance(result, Failed):
                return Response(
                    {"ok": False, "error": result.reason, "details": result.details},
                    status=status.HTTP_409_CONFLICT,
                )
            raise TypeError(f"Неизвестный результат: {result!r}")
        except Exception as e:
            return self.handle_error(e)


class LinkDetailAPIView(BaseBOQAPIView):
    """API изменения и удаления связи."""

    @extend_schema(
        summary="Изменить коэффициенты или заметки связи",
        request=LinkUpdateRequestSerializer,
        responses={200: PositionTotalsSerializer},
        tags=["BOQ Links"],
    )
    def patch(self, request, link_id: int):
        serializer = LinkUpdateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            link = self.service.update_link(link_id, dict(serializer.validated_data))
            return Response(
                {
                    "ok": True,
                    "link_id": link.id,
                    "totals": self.totals_payload([link.client_position_id]),
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_error(e)

    @extend_schema(
        summary="Удалить связь",
        responses={200: PositionTotalsSerializer},
        tags=["BOQ Links"],
    )
    def delete(self, request, link_id: int):
        try:
            result = self.service.delete_link(link_id)
            return Response(
                {
                    "ok": True,
                    "material_id": result.material_id,
                    "totals": self.totals_payload(result.affected_positions),
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_error(e)
