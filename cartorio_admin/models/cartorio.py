from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Cartorio:
    id: str
    nome: str
    cidade: Optional[str] = None
    estado: Optional[str] = None
    is_active: bool = True
    data_cadastro: Optional[datetime] = None


@dataclass
class Usuario:
    id: str
    cartorio_id: str
    username: str
    email: Optional[str] = None
    is_active: bool = True
