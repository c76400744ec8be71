"""GEP Console: sesión, roles y navegación de la consola administrativa."""

__version__ = "0.1.0"
