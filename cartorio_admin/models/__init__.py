from .catalogo import Sistema, Produto, VideoAula, iter_produtos, index_produtos, index_sistemas
from .cartorio import Cartorio, Usuario
from .acesso import (
    EntitlementKind,
    SelectionKey,
    Entitlement,
    AccessPolicy,
    AccessibleSet,
    ALL,
    DEFAULT_ACCESS_WHEN_NO_GRANTS,
)
from .progresso import (
    CompletionRecord,
    ProductProgress,
    OverallProgress,
    ProgressReport,
    percentual,
)

__all__ = [
    "Sistema",
    "Produto",
    "VideoAula",
    "iter_produtos",
    "index_produtos",
    "index_sistemas",
    "Cartorio",
    "Usuario",
    "EntitlementKind",
    "SelectionKey",
    "Entitlement",
    "AccessPolicy",
    "AccessibleSet",
    "ALL",
    "DEFAULT_ACCESS_WHEN_NO_GRANTS",
    "CompletionRecord",
    "ProductProgress",
    "OverallProgress",
    "ProgressReport",
    "percentual",
]
