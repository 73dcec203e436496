from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class AppTendersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "app_tenders"
    verbose_name = _("Тендеры")
