from __future__ import annotations

# Exportamos só os nomes; o carregamento real é feito sob demanda em __getattr__
__all__ = [
    "EntitlementResolver",
    "resolve_grants",
    "EntitlementEditor",
    "PermissionSelection",
    "SaveResult",
    "CompletionTracker",
    "ProgressAggregator",
]


def __getattr__(name: str):
    if name in ("EntitlementResolver", "resolve_grants"):
        from . import acesso
        return getattr(acesso, name)
    if name in ("EntitlementEditor", "PermissionSelection", "SaveResult"):
        from . import editor_permissoes
        return getattr(editor_permissoes, name)
    if name == "CompletionTracker":
        from .conclusao import CompletionTracker
        return CompletionTracker
    if name == "ProgressAggregator":
        from .progresso import ProgressAggregator
        return ProgressAggregator
    raise AttributeError(name)
