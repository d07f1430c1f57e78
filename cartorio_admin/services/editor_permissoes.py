# cartorio_admin/services/editor_permissoes.py
from __future__ import annotations
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..errors import NotFoundError, ValidationError, ValidationIssue
from ..models import (
    Entitlement,
    EntitlementKind,
    SelectionKey,
    Sistema,
    index_produtos,
    index_sistemas,
)
from ..persistence.base import CatalogRepo, CartorioRepo, EntitlementRepo

logger = logging.getLogger(__name__)

SAVE_POLICY_FAIL_FAST = "fail_fast"
SAVE_POLICY_BEST_EFFORT = "best_effort"
SAVE_POLICIES = (SAVE_POLICY_FAIL_FAST, SAVE_POLICY_BEST_EFFORT)

SelectionEntry = Union[SelectionKey, Mapping[str, Any]]


# ----------------------------- Seleção pendente -----------------------------

def normalize_keys(
    keys: Iterable[SelectionKey],
    sistemas: Sequence[Sistema],
) -> Tuple[Set[SelectionKey], List[SelectionKey]]:
    """
    Remove produtos cujo sistema inteiro também está selecionado
    (o sistema vence, como em toggle_system). Retorna (mantidas, descartadas).
    """
    keys = set(keys)
    por_produto = index_produtos(sistemas)
    sistemas_marcados = {k.target_id for k in keys if k.is_sistema}
    descartadas = []
    for k in sorted(keys, key=_sort_key):
        if k.is_sistema:
            continue
        produto = por_produto.get(k.target_id)
        if produto is not None and produto.sistema_id in sistemas_marcados:
            descartadas.append(k)
    keys.difference_update(descartadas)
    return keys, descartadas


def _sort_key(k: SelectionKey) -> Tuple[int, str]:
    return (0 if k.is_sistema else 1, k.target_id)


class PermissionSelection:
    """
    Seleção em edição (estado local de uma sessão, nada é gravado aqui).

    Nunca contém ao mesmo tempo System(S) e Product(p) com p dentro de S:
      - toggle_system(S) marcando: entra S, saem os produtos de S
      - toggle_product(p, S) marcando: entra p, sai S
    """

    def __init__(self, sistemas: Sequence[Sistema], keys: Iterable[SelectionKey] = ()) -> None:
        self._sistemas = index_sistemas(sistemas)
        self._produtos = index_produtos(sistemas)
        self._keys: Set[SelectionKey] = set()
        kept, _ = normalize_keys(keys, sistemas)
        self._keys.update(kept)

    def _produtos_do_sistema(self, sistema_id: str) -> List[str]:
        sistema = self._sistemas.get(sistema_id)
        return [p.id for p in sistema.produtos] if sistema else []

    def toggle_system(self, sistema_id: str) -> bool:
        """Alterna o sistema inteiro. Retorna True se ficou marcado."""
        key = SelectionKey.sistema(sistema_id)
        if key in self._keys:
            self._keys.discard(key)
            logger.debug("Sistema %s desmarcado", sistema_id)
            return False
        self._keys.add(key)
        for produto_id in self._produtos_do_sistema(sistema_id):
            self._keys.discard(SelectionKey.produto(produto_id))
        logger.debug("Sistema %s marcado (acesso completo)", sistema_id)
        return True

    def toggle_product(self, produto_id: str, sistema_id: Optional[str] = None) -> bool:
        """
        Alterna um produto avulso. Retorna True se ficou marcado.
        O sistema dono vem do catálogo; um sistema_id diferente é rejeitado.
        """
        produto = self._produtos.get(produto_id)
        if produto is not None:
            if sistema_id is not None and sistema_id != produto.sistema_id:
                raise ValidationError(
                    [ValidationIssue(0, EntitlementKind.PRODUTO.value, produto_id, "produto não pertence ao sistema")],
                    f"Produto {produto_id} não pertence ao sistema {sistema_id}",
                )
            sistema_id = produto.sistema_id
        key = SelectionKey.produto(produto_id)
        if key in self._keys:
            self._keys.discard(key)
            return False
        self._keys.add(key)
        # desagrega: o sistema inteiro deixa de valer
        if sistema_id is not None:
            self._keys.discard(SelectionKey.sistema(sistema_id))
        return True

    def is_system_selected(self, sistema_id: str) -> bool:
        return SelectionKey.sistema(sistema_id) in self._keys

    def is_product_selected(self, produto_id: str) -> bool:
        return SelectionKey.produto(produto_id) in self._keys

    @property
    def keys(self) -> FrozenSet[SelectionKey]:
        return frozenset(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[SelectionKey]:
        return iter(sorted(self._keys, key=_sort_key))

    def __len__(self) -> int:
        return len(self._keys)

    def to_list(self) -> List[Dict[str, str]]:
        return [k.to_dict() for k in self]


# ----------------------------- Resultado -----------------------------

@dataclass
class SaveResult:
    """
    Resultado do salvamento.
    - reverted_to_default: conjunto vazio gravado; o cartório volta a ver tudo
      (intencional, não é erro)
    - errors: entradas rejeitadas (só no modo best_effort)
    - dropped: produtos absorvidos por um sistema inteiro também selecionado
    """
    cartorio_id: str
    saved: List[Entitlement] = field(default_factory=list)
    errors: List[ValidationIssue] = field(default_factory=list)
    dropped: List[SelectionKey] = field(default_factory=list)
    reverted_to_default: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cartorio_id": self.cartorio_id,
            "saved": [e.key().to_dict() for e in self.saved],
            "errors": [i.to_dict() for i in self.errors],
            "dropped": [k.to_dict() for k in self.dropped],
            "reverted_to_default": self.reverted_to_default,
        }


# ----------------------------- Validação -----------------------------

def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


def _entry_fields(entry: SelectionEntry) -> Tuple[Any, Any]:
    if isinstance(entry, SelectionKey):
        return entry.kind, entry.target_id
    if isinstance(entry, Mapping):
        target = entry.get("target_id", entry.get("targetId"))
        return entry.get("kind"), target
    return None, None


def validate_entries(
    entries: Iterable[SelectionEntry],
    sistemas: Sequence[Sistema],
) -> Tuple[List[SelectionKey], List[ValidationIssue]]:
    """
    Confere cada entrada: tipo conhecido, id bem formado (UUID) e alvo
    existente no catálogo. Duplicatas são ignoradas.
    """
    por_sistema = index_sistemas(sistemas)
    por_produto = index_produtos(sistemas)
    keys: List[SelectionKey] = []
    issues: List[ValidationIssue] = []
    vistos: Set[SelectionKey] = set()

    for i, entry in enumerate(entries):
        raw_kind, raw_target = _entry_fields(entry)
        kind_txt = raw_kind.value if isinstance(raw_kind, EntitlementKind) else (None if raw_kind is None else str(raw_kind))
        target_txt = None if raw_target is None else str(raw_target)
        try:
            kind = EntitlementKind.parse(raw_kind)
        except ValueError:
            issues.append(ValidationIssue(i, kind_txt, target_txt, "tipo inválido (use 'sistema' ou 'produto')"))
            continue
        target = (target_txt or "").strip()
        if not _is_uuid(target):
            issues.append(ValidationIssue(i, kind_txt, target_txt, "id malformado"))
            continue
        if kind is EntitlementKind.SISTEMA and target not in por_sistema:
            issues.append(ValidationIssue(i, kind_txt, target_txt, "sistema inexistente"))
            continue
        if kind is EntitlementKind.PRODUTO and target not in por_produto:
            issues.append(ValidationIssue(i, kind_txt, target_txt, "produto inexistente"))
            continue
        key = SelectionKey(kind, target)
        if key not in vistos:
            vistos.add(key)
            keys.append(key)
    return keys, issues


# ----------------------------- Editor -----------------------------

class EntitlementEditor:
    """
    Edição das liberações de um cartório.
      - open(cartorio_id) -> PermissionSelection montada a partir do que está gravado
      - save(cartorio_id, selection) -> SaveResult (troca atômica de todas as linhas)

    Política para entradas inválidas (PERMISSOES_SAVE_POLICY ou parâmetro):
      - fail_fast (padrão): qualquer entrada inválida -> ValidationError, nada é gravado
      - best_effort: grava as válidas e devolve as inválidas em SaveResult.errors
    """

    def __init__(
        self,
        catalog: CatalogRepo,
        entitlements: EntitlementRepo,
        cartorios: CartorioRepo,
        policy: Optional[str] = None,
    ) -> None:
        self.catalog = catalog
        self.entitlements = entitlements
        self.cartorios = cartorios
        self.policy = (policy or os.getenv("PERMISSOES_SAVE_POLICY", SAVE_POLICY_FAIL_FAST)).strip().lower()
        if self.policy not in SAVE_POLICIES:
            raise ValueError(f"Política de salvamento desconhecida: {self.policy!r}. Use {' ou '.join(SAVE_POLICIES)}.")

    def _require_cartorio(self, cartorio_id: str) -> None:
        if self.cartorios.get(cartorio_id) is None:
            raise NotFoundError("Cartório", cartorio_id)

    def open(self, cartorio_id: str) -> PermissionSelection:
        self._require_cartorio(cartorio_id)
        sistemas = self.catalog.list_systems()
        por_sistema = index_sistemas(sistemas)
        por_produto = index_produtos(sistemas)

        keys = []
        for g in self.entitlements.list_active(cartorio_id):
            existe = g.target_id in (por_sistema if g.kind is EntitlementKind.SISTEMA else por_produto)
            if not existe:
                logger.warning("Liberação %s (%s %s) aponta para conteúdo removido; fora da seleção", g.id, g.kind.value, g.target_id)
                continue
            keys.append(g.key())

        kept, descartadas = normalize_keys(keys, sistemas)
        if descartadas:
            logger.warning(
                "Cartório %s tinha %d produto(s) gravados junto com o sistema inteiro; mantido o sistema",
                cartorio_id, len(descartadas),
            )
        return PermissionSelection(sistemas, kept)

    def new_selection(self, keys: Iterable[SelectionKey] = ()) -> PermissionSelection:
        return PermissionSelection(self.catalog.list_systems(), keys)

    def save(self, cartorio_id: str, selection: Iterable[SelectionEntry]) -> SaveResult:
        self._require_cartorio(cartorio_id)
        entries = list(selection)
        sistemas = self.catalog.list_systems()
        keys, issues = validate_entries(entries, sistemas)

        if issues:
            if self.policy == SAVE_POLICY_FAIL_FAST:
                logger.warning("Permissões do cartório %s NÃO salvas: %d entrada(s) inválida(s)", cartorio_id, len(issues))
                raise ValidationError(issues)
            if not keys:
                # gravar vazio aqui viraria "acesso total" por acidente
                raise ValidationError(issues, "Nenhuma entrada válida; permissões não salvas")
            for issue in issues:
                logger.warning("Entrada %d ignorada (%s %s): %s", issue.index, issue.kind, issue.target_id, issue.reason)

        kept, descartadas = normalize_keys(keys, sistemas)
        novas = [
            Entitlement(cartorio_id=cartorio_id, kind=k.kind, target_id=k.target_id)
            for k in sorted(kept, key=_sort_key)
        ]
        saved = self.entitlements.replace_all(cartorio_id, novas)

        result = SaveResult(
            cartorio_id=cartorio_id,
            saved=saved,
            errors=issues,
            dropped=descartadas,
            reverted_to_default=not novas,
        )
        if result.reverted_to_default:
            logger.info("Cartório %s sem liberações: volta ao acesso total (padrão)", cartorio_id)
        else:
            logger.info("Permissões do cartório %s salvas: %d liberação(ões)", cartorio_id, len(saved))
        return result
