"""
Árvore do catálogo: Sistema -> Produto -> VideoAula.

Os objetos são instantâneos de leitura; a ordem de exibição de cada nível
vem do campo ``ordem`` e as listas já chegam ordenadas pelo repositório.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence


@dataclass
class VideoAula:
    id: str
    titulo: str
    ordem: int = 0
    produto_id: Optional[str] = None


@dataclass
class Produto:
    id: str
    nome: str
    ordem: int = 0
    sistema_id: Optional[str] = None
    video_aulas: List[VideoAula] = field(default_factory=list)


@dataclass
class Sistema:
    id: str
    nome: str
    ordem: int = 0
    descricao: Optional[str] = None
    produtos: List[Produto] = field(default_factory=list)


def iter_produtos(sistemas: Sequence[Sistema]) -> Iterator[Produto]:
    """Percorre todos os produtos alcançáveis, na ordem de exibição do catálogo."""
    for sistema in sistemas:
        for produto in sistema.produtos:
            yield produto


def index_produtos(sistemas: Sequence[Sistema]) -> Dict[str, Produto]:
    return {p.id: p for p in iter_produtos(sistemas)}


def index_sistemas(sistemas: Sequence[Sistema]) -> Dict[str, Sistema]:
    return {s.id: s for s in sistemas}
