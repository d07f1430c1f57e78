# cartorio_admin/models/acesso.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Iterable, Optional


class EntitlementKind(str, Enum):
    """Granularidade de uma liberação de conteúdo."""
    SISTEMA = "sistema"
    PRODUTO = "produto"

    @classmethod
    def parse(cls, value: object) -> "EntitlementKind":
        """
        Aceita o enum, o valor em PT ('sistema'/'produto') ou o nome em
        inglês usado pela API externa ('system'/'product').
        Levanta ValueError para qualquer outra coisa.
        """
        if isinstance(value, cls):
            return value
        v = str(value or "").strip().lower()
        aliases = {"system": cls.SISTEMA, "product": cls.PRODUTO}
        if v in aliases:
            return aliases[v]
        return cls(v)


@dataclass(frozen=True)
class SelectionKey:
    """Chave da seleção pendente do editor: System(id) ou Product(id)."""
    kind: EntitlementKind
    target_id: str

    @classmethod
    def sistema(cls, sistema_id: str) -> "SelectionKey":
        return cls(EntitlementKind.SISTEMA, sistema_id)

    @classmethod
    def produto(cls, produto_id: str) -> "SelectionKey":
        return cls(EntitlementKind.PRODUTO, produto_id)

    @property
    def is_sistema(self) -> bool:
        return self.kind is EntitlementKind.SISTEMA

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "target_id": self.target_id}


@dataclass
class Entitlement:
    """
    Linha de liberação de um cartório. Exatamente um alvo: um sistema
    inteiro ou um produto avulso (``kind`` diz qual).
    """
    cartorio_id: str
    kind: EntitlementKind
    target_id: str
    id: Optional[str] = None
    ativo: bool = True
    granted_at: Optional[datetime] = None

    @property
    def sistema_id(self) -> Optional[str]:
        return self.target_id if self.kind is EntitlementKind.SISTEMA else None

    @property
    def produto_id(self) -> Optional[str]:
        return self.target_id if self.kind is EntitlementKind.PRODUTO else None

    def key(self) -> SelectionKey:
        return SelectionKey(self.kind, self.target_id)


class AccessPolicy(str, Enum):
    ALL = "all"
    RESTRICTED = "restricted"


@dataclass(frozen=True)
class AccessibleSet:
    """Conjunto de produtos visíveis para um cartório, ou o sentinela ``ALL``."""
    policy: AccessPolicy
    produto_ids: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def restricted(cls, produto_ids: Iterable[str]) -> "AccessibleSet":
        return cls(AccessPolicy.RESTRICTED, frozenset(produto_ids))

    @property
    def is_all(self) -> bool:
        return self.policy is AccessPolicy.ALL

    def allows(self, produto_id: str) -> bool:
        return self.is_all or produto_id in self.produto_ids

    def to_dict(self) -> dict:
        if self.is_all:
            return {"policy": self.policy.value}
        return {"policy": self.policy.value, "produto_ids": sorted(self.produto_ids)}


ALL = AccessibleSet(AccessPolicy.ALL)

# Cartório sem nenhuma liberação ativa enxerga o catálogo inteiro.
# Ausência de linhas NÃO significa "sem acesso".
DEFAULT_ACCESS_WHEN_NO_GRANTS: AccessibleSet = ALL
