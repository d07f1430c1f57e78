"""Pacote principal do painel administrativo de cartórios."""

from .errors import (
    CartorioAdminError,
    ValidationError,
    NotFoundError,
    ConflictError,
    StorageError,
)

__all__ = [
    "models",
    "services",
    "persistence",
    "CartorioAdminError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "StorageError",
]
__version__ = "0.4.0"
