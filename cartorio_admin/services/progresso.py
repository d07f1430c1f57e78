# cartorio_admin/services/progresso.py
from __future__ import annotations
import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..errors import NotFoundError, StorageError
from ..models import (
    AccessibleSet,
    OverallProgress,
    ProductProgress,
    ProgressReport,
    Sistema,
    Usuario,
    VideoAula,
    percentual,
)
from ..persistence.base import CatalogRepo, CartorioRepo, CompletionRepo
from .acesso import EntitlementResolver

logger = logging.getLogger(__name__)

# produto -> aulas; None quando a leitura falhou
_AulasPorProduto = Dict[str, Optional[List[VideoAula]]]


class ProgressAggregator:
    """
    Progresso de usuários nos produtos que o cartório pode ver.

    O percentual geral sai das contagens somadas (concluídas / total), nunca
    da média dos percentuais por produto: 1/1 + 0/9 dá 10%, não 50%.
    """

    def __init__(
        self,
        resolver: EntitlementResolver,
        catalog: CatalogRepo,
        completions: CompletionRepo,
        cartorios: CartorioRepo,
    ) -> None:
        self.resolver = resolver
        self.catalog = catalog
        self.completions = completions
        self.cartorios = cartorios

    # ------------------ API pública ------------------

    def compute_progress(self, cartorio_id: str, user_id: str) -> ProgressReport:
        acesso = self.resolver.resolve(cartorio_id)
        usuario = self.cartorios.get_usuario(user_id)
        if usuario is None or usuario.cartorio_id != cartorio_id:
            raise NotFoundError("Usuário", user_id)

        sistemas = self.catalog.list_systems()
        aulas, warnings = self._load_lessons(sistemas, acesso)
        return self._report(cartorio_id, usuario, acesso, sistemas, aulas, warnings)

    def compute_cartorio_progress(self, cartorio_id: str, include_inactive: bool = False) -> List[ProgressReport]:
        """Um relatório por usuário do cartório (catálogo e aulas lidos uma vez só)."""
        acesso = self.resolver.resolve(cartorio_id)
        usuarios = [
            u for u in self.cartorios.list_usuarios(cartorio_id)
            if include_inactive or u.is_active
        ]
        if not usuarios:
            return []
        sistemas = self.catalog.list_systems()
        aulas, warnings = self._load_lessons(sistemas, acesso)
        return [self._report(cartorio_id, u, acesso, sistemas, aulas, warnings) for u in usuarios]

    # ------------------ internos ------------------

    def _load_lessons(
        self,
        sistemas: Sequence[Sistema],
        acesso: AccessibleSet,
    ) -> Tuple[_AulasPorProduto, List[str]]:
        aulas: _AulasPorProduto = {}
        warnings: List[str] = []
        for sistema in sistemas:
            for produto in sistema.produtos:
                if not acesso.allows(produto.id):
                    continue
                try:
                    aulas[produto.id] = self.catalog.list_lessons(produto.id)
                except StorageError as e:
                    logger.warning("Aulas do produto %s indisponíveis; entrada zerada: %s", produto.id, e)
                    warnings.append(f"Falha ao carregar aulas do produto '{produto.nome}' ({produto.id}): {e}")
                    aulas[produto.id] = None
        return aulas, warnings

    def _report(
        self,
        cartorio_id: str,
        usuario: Usuario,
        acesso: AccessibleSet,
        sistemas: Sequence[Sistema],
        aulas: _AulasPorProduto,
        warnings: List[str],
    ) -> ProgressReport:
        concluidas: Set[str] = {
            r.lesson_id for r in self.completions.list_for_user(usuario.id) if r.completed
        }
        report = ProgressReport(
            cartorio_id=cartorio_id,
            user_id=usuario.id,
            username=usuario.username,
            policy=acesso.policy,
            warnings=list(warnings),
        )
        total_geral = concluidas_geral = 0
        for sistema in sistemas:
            for produto in sistema.produtos:
                if produto.id not in aulas:
                    continue
                lista = aulas[produto.id]
                entry = ProductProgress(produto_id=produto.id, nome=produto.nome, sistema_nome=sistema.nome)
                if lista is None:
                    entry.degraded = True
                else:
                    entry.total = len(lista)
                    entry.completed = sum(1 for a in lista if a.id in concluidas)
                    entry.percentage = percentual(entry.completed, entry.total)
                report.per_product.append(entry)
                total_geral += entry.total
                concluidas_geral += entry.completed

        report.overall = OverallProgress(
            total=total_geral,
            completed=concluidas_geral,
            percentage=percentual(concluidas_geral, total_geral),
        )
        return report
