"""
Errores de dominio del catálogo.

Las rutas de app/main.py los traducen a respuestas HTTP:
- NotFoundError   -> 404
- ValidationError -> 400
- StoreError      -> 500 (se registra la causa en el log)
"""


class CatalogError(Exception):
    """Base de todos los errores del servicio."""


class NotFoundError(CatalogError):
    pass


class ValidationError(CatalogError):
    pass


class StoreError(CatalogError):
    """Fallo de la base de datos (conectividad, restricciones, etc.)."""
