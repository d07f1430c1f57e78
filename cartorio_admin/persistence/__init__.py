from .base import CatalogRepo, EntitlementRepo, CompletionRepo, CartorioRepo
from .repositories import (
    CatalogRepository,
    EntitlementRepository,
    CompletionRepository,
    CartorioRepository,
)

__all__ = [
    "CatalogRepo",
    "EntitlementRepo",
    "CompletionRepo",
    "CartorioRepo",
    "CatalogRepository",
    "EntitlementRepository",
    "CompletionRepository",
    "CartorioRepository",
]
