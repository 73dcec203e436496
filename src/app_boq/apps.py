from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class AppBoqConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "app_boq"
    verbose_name = _("Ведомость объёмов работ (BOQ)")

    def ready(self):
        import app_boq.signals
