"""
Контроллер применения курсов валют тендера.
"""

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response

from app_boq.views.base import BaseBOQAPIView
from app_tenders.services import CurrencyRatesService

from .serializers import CurrencyRatesRequestSerializer, CurrencyRatesResponseSerializer


class TenderCurrencyRatesAPIView(BaseBOQAPIView):
    """API применения курсов валют тендера к строкам BOQ."""

    @extend_schema(
        summary="Применить курсы валют тендера",
        request=CurrencyRatesRequestSerializer,
        responses={200: CurrencyRatesResponseSerializer},
        tags=["Tenders"],
    )
    def post(self, request, tender_id: int):
        serializer = CurrencyRatesRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rates = {k: v for k, v in serializer.validated_data.items() if v is not None}

        try:
            updated = CurrencyRatesService().apply_currency_rates(tender_id, rates)
            return Response(
                {"ok": True, "tender_id": tender_id, "updated": updated},
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_error(e)
