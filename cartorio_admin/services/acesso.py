from __future__ import annotations
import logging
from typing import Sequence

from ..errors import NotFoundError
from ..models import (
    AccessibleSet,
    Cartorio,
    DEFAULT_ACCESS_WHEN_NO_GRANTS,
    Entitlement,
    EntitlementKind,
    Sistema,
    index_produtos,
    index_sistemas,
)
from ..persistence.base import CatalogRepo, CartorioRepo, EntitlementRepo

logger = logging.getLogger(__name__)


def resolve_grants(grants: Sequence[Entitlement], sistemas: Sequence[Sistema]) -> AccessibleSet:
    """
    Conjunto efetivo = produtos de cada sistema liberado ∪ produtos liberados avulsos.

    Liberações para sistema/produto que não existe mais no catálogo são
    ignoradas. Sem nenhuma liberação vale a política padrão (acesso total).
    Um sistema e um produto dele liberados juntos só produzem um superconjunto.
    """
    if not grants:
        return DEFAULT_ACCESS_WHEN_NO_GRANTS

    por_sistema = index_sistemas(sistemas)
    por_produto = index_produtos(sistemas)
    efetivo = set()
    ignoradas = 0
    for g in grants:
        if g.kind is EntitlementKind.SISTEMA:
            sistema = por_sistema.get(g.target_id)
            if sistema is None:
                ignoradas += 1
                continue
            efetivo.update(p.id for p in sistema.produtos)
        elif g.target_id in por_produto:
            efetivo.add(g.target_id)
        else:
            ignoradas += 1
    if ignoradas:
        logger.warning("%d liberação(ões) apontam para conteúdo inexistente e foram ignoradas", ignoradas)
    return AccessibleSet.restricted(efetivo)


class EntitlementResolver:
    """Calcula quais produtos um cartório pode ver (sem efeitos colaterais)."""

    def __init__(self, catalog: CatalogRepo, entitlements: EntitlementRepo, cartorios: CartorioRepo) -> None:
        self.catalog = catalog
        self.entitlements = entitlements
        self.cartorios = cartorios

    def require_cartorio(self, cartorio_id: str) -> Cartorio:
        cartorio = self.cartorios.get(cartorio_id)
        if cartorio is None:
            raise NotFoundError("Cartório", cartorio_id)
        return cartorio

    def resolve(self, cartorio_id: str) -> AccessibleSet:
        self.require_cartorio(cartorio_id)
        grants = self.entitlements.list_active(cartorio_id)
        if not grants:
            if self.entitlements.count_active(cartorio_id):
                # só linhas sem alvo: continua restrito
                logger.warning("Cartório %s só tem liberações ilegíveis: nenhum produto acessível", cartorio_id)
                return AccessibleSet.restricted(())
            logger.info("Cartório %s sem liberações ativas: acesso a todo o catálogo", cartorio_id)
            return DEFAULT_ACCESS_WHEN_NO_GRANTS
        acesso = resolve_grants(grants, self.catalog.list_systems())
        logger.info(
            "Cartório %s: %d liberação(ões) -> %d produto(s) acessível(is)",
            cartorio_id, len(grants), len(acesso.produto_ids),
        )
        return acesso

    def can_access(self, cartorio_id: str, produto_id: str) -> bool:
        return self.resolve(cartorio_id).allows(produto_id)
