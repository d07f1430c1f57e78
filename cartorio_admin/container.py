from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional

from .persistence.repositories import (
    CatalogRepository,
    CartorioRepository,
    CompletionRepository,
    EntitlementRepository,
)
from .services.acesso import EntitlementResolver
from .services.conclusao import CompletionTracker
from .services.editor_permissoes import EntitlementEditor
from .services.progresso import ProgressAggregator


@dataclass
class Services:
    """Repositórios + serviços já ligados, prontos para o servidor ou a CLI."""
    catalog: CatalogRepository
    entitlements: EntitlementRepository
    completions: CompletionRepository
    cartorios: CartorioRepository
    resolver: EntitlementResolver
    editor: EntitlementEditor
    tracker: CompletionTracker
    aggregator: ProgressAggregator


def build_services(session_factory: Optional[Callable] = None, *, save_policy: Optional[str] = None) -> Services:
    catalog = CatalogRepository(session_factory)
    entitlements = EntitlementRepository(session_factory)
    completions = CompletionRepository(session_factory)
    cartorios = CartorioRepository(session_factory)
    resolver = EntitlementResolver(catalog, entitlements, cartorios)
    return Services(
        catalog=catalog,
        entitlements=entitlements,
        completions=completions,
        cartorios=cartorios,
        resolver=resolver,
        editor=EntitlementEditor(catalog, entitlements, cartorios, policy=save_policy),
        tracker=CompletionTracker(completions),
        aggregator=ProgressAggregator(resolver, catalog, completions, cartorios),
    )
