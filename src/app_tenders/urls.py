from django.urls import path

from app_tenders.views.currency_rates_view import views as currency_rates_view

app_name = "app_tenders"

urlpatterns = [
    path(
        "tenders/<int:tender_id>/currency-rates/",
        currency_rates_view.TenderCurrencyRatesAPIView.as_view(),
        name="currency-rates",
    ),
]
