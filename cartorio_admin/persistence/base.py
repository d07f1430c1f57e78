# cartorio_admin/persistence/base.py
from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence

from ..models import (
    Cartorio,
    CompletionRecord,
    Entitlement,
    Sistema,
    Usuario,
    VideoAula,
)


# ----------------------------- Interfaces -----------------------------
# O núcleo (serviços) depende só destas formas; a implementação SQLAlchemy
# está em repositories.py e os testes usam fakes em memória.
# Toda falha de armazenamento deve chegar ao chamador como StorageError.

class CatalogRepo(ABC):
    """Leitura do catálogo Sistema -> Produto -> VideoAula."""

    @abstractmethod
    def list_systems(self) -> List[Sistema]:
        """
        Sistemas em ordem de exibição, cada um com seus produtos (ordenados)
        e as videoaulas de cada produto (ordenadas). Produtos sem sistema e
        aulas sem produto não aparecem.
        """
        raise NotImplementedError

    @abstractmethod
    def list_lessons(self, produto_id: str) -> List[VideoAula]:
        """Videoaulas de um produto, em ordem de exibição."""
        raise NotImplementedError


class EntitlementRepo(ABC):
    """Linhas de liberação de conteúdo por cartório."""

    @abstractmethod
    def list_active(self, cartorio_id: str) -> List[Entitlement]:
        raise NotImplementedError

    @abstractmethod
    def count_active(self, cartorio_id: str) -> int:
        """Linhas ativas gravadas, inclusive as que list_active não consegue ler."""
        raise NotImplementedError

    @abstractmethod
    def replace_all(self, cartorio_id: str, entitlements: Sequence[Entitlement]) -> List[Entitlement]:
        """
        Troca atômica: apaga as linhas ativas do cartório e insere as novas
        numa única transação. Se algo falhar, nada muda.
        """
        raise NotImplementedError


class CompletionRepo(ABC):
    """Fatos de conclusão (usuário, videoaula)."""

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[CompletionRecord]:
        raise NotImplementedError

    @abstractmethod
    def upsert(
        self,
        user_id: str,
        lesson_id: str,
        completed: bool,
        completed_at: Optional[datetime],
    ) -> None:
        """Idempotente: no máximo um registro por par; a última escrita vence."""
        raise NotImplementedError


class CartorioRepo(ABC):
    """Cartórios e seus usuários."""

    @abstractmethod
    def get(self, cartorio_id: str) -> Optional[Cartorio]:
        raise NotImplementedError

    @abstractmethod
    def get_usuario(self, user_id: str) -> Optional[Usuario]:
        raise NotImplementedError

    @abstractmethod
    def list_usuarios(self, cartorio_id: str) -> List[Usuario]:
        raise NotImplementedError
