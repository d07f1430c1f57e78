# cartorio_admin/errors.py
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional


@dataclass
class ValidationIssue:
    """
    Problema encontrado em uma entrada da seleção de permissões.
    - index: posição da entrada no payload recebido
    - kind / target_id: o que foi enviado (como veio, sem normalizar)
    - reason: motivo legível
    """
    index: int
    kind: Optional[str]
    target_id: Optional[str]
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CartorioAdminError(Exception):
    """Erro base do núcleo de permissões/progresso."""


class ValidationError(CartorioAdminError):
    """Ids malformados ou inexistentes na seleção enviada para salvar."""
    def __init__(self, issues: List[ValidationIssue], message: Optional[str] = None):
        self.issues = list(issues)
        super().__init__(message or f"{len(self.issues)} entrada(s) inválida(s) na seleção")


class NotFoundError(CartorioAdminError):
    """Cartório, usuário, sistema ou produto inexistente."""
    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} não encontrado: {entity_id!r}")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(CartorioAdminError):
    """Reservado para lock otimista no salvamento (hoje o último commit vence)."""


class StorageError(CartorioAdminError):
    """Falha (transitória ou não) de um repositório."""
