"""Catalog app configuration."""

from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """
    Configuration for the catalog app.

    Owns the process-wide CatalogHolder. The catalog is loaded once at
    startup; a ConfigurationError here is fatal and stops the process.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "catalog"
    verbose_name = "Event Catalog"

    holder = None

    def ready(self):
        from catalog.loader import load_catalog_from_settings
        from catalog.registry import CatalogHolder

        self.holder = CatalogHolder(load_catalog_from_settings())
