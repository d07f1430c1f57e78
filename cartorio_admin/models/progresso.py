# cartorio_admin/models/progresso.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .acesso import AccessPolicy


@dataclass(frozen=True)
class CompletionRecord:
    """Fato (usuário, videoaula): concluída ou não, e quando."""
    lesson_id: str
    completed: bool
    completed_at: Optional[datetime] = None


def percentual(concluidas: int, total: int) -> int:
    """
    Percentual inteiro com arredondamento half-up (12.5 -> 13).
    Total zero devolve 0, nunca divide.
    """
    if total <= 0:
        return 0
    return (200 * concluidas + total) // (2 * total)


@dataclass
class ProductProgress:
    produto_id: str
    nome: str
    sistema_nome: str
    total: int = 0
    completed: int = 0
    percentage: int = 0
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "produto_id": self.produto_id,
            "nome": self.nome,
            "sistema_nome": self.sistema_nome,
            "total": self.total,
            "completed": self.completed,
            "percentage": self.percentage,
            "degraded": self.degraded,
        }


@dataclass
class OverallProgress:
    total: int = 0
    completed: int = 0
    percentage: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "completed": self.completed, "percentage": self.percentage}


@dataclass
class ProgressReport:
    """
    Relatório de progresso de um usuário dentro do que o cartório pode ver.
    ``warnings`` lista produtos que não puderam ser lidos (entrada zerada).
    """
    cartorio_id: str
    user_id: str
    username: str
    policy: AccessPolicy
    per_product: List[ProductProgress] = field(default_factory=list)
    overall: OverallProgress = field(default_factory=OverallProgress)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cartorio_id": self.cartorio_id,
            "user_id": self.user_id,
            "username": self.username,
            "policy": self.policy.value,
            "per_product": [p.to_dict() for p in self.per_product],
            "overall": self.overall.to_dict(),
            "warnings": list(self.warnings),
        }
