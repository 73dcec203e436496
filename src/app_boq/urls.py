from django.urls import path

from app_boq.views.links_view import views as links_view
from app_boq.views.transfer_view import views as transfer_view

app_name = "app_boq"

urlpatterns = [
    # Итоги и связи позиции
    path(
        "positions/<int:position_id>/totals/",
        links_view.PositionTotalsAPIView.as_view(),
        name="position-totals",
    ),
    path(
        "positions/<int:position_id>/links/",
        links_view.PositionLinksAPIView.as_view(),
        name="position-links",
    ),
    path(
        "links/<int:link_id>/",
        links_view.LinkDetailAPIView.as_view(),
        name="link-detail",
    ),
    # Перенос материала и конфликты
    path(
        "materials/<int:material_id>/transfer/",
        transfer_view.MaterialTransferAPIView.as_view(),
        name="material-transfer",
    ),
    path(
        "conflicts/resolve/",
        transfer_view.ConflictResolveAPIView.as_view(),
        name="conflict-resolve",
    ),
]
