from __future__ import annotations
import os
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import (
    create_engine, Column, Integer, String, DateTime, ForeignKey, Text, Boolean,
    UniqueConstraint, Index,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, scoped_session

# --------------------------------------------------------------------
# Configuração
# --------------------------------------------------------------------
DB_PATH = os.getenv("APP_DB_PATH", "data/app.db")
DB_URL = os.getenv("DB_URL", f"sqlite:///{DB_PATH}")


def make_engine(url: str) -> Engine:
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
        future=True,
    )


def make_session_factory(url_or_engine) -> sessionmaker:
    """Fábrica de sessões para outro banco (testes, CLI com --db-url)."""
    bind = make_engine(url_or_engine) if isinstance(url_or_engine, str) else url_or_engine
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


engine = make_engine(DB_URL)
SessionLocal = scoped_session(
    sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
)
Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --------------------------------------------------------------------
# Cartórios e usuários
# --------------------------------------------------------------------
class Cartorio(Base):
    __tablename__ = "cartorios"

    id = Column(String(36), primary_key=True, default=_uuid)
    nome = Column(String(255), nullable=False)
    cidade = Column(String(128), nullable=True)
    estado = Column(String(2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    observacoes = Column(Text, nullable=True)
    data_cadastro = Column(DateTime(timezone=True), default=_now)


class CartorioUsuario(Base):
    __tablename__ = "cartorio_usuarios"

    id = Column(String(36), primary_key=True, default=_uuid)
    cartorio_id = Column(String(36), ForeignKey("cartorios.id"), nullable=False, index=True)
    username = Column(String(128), nullable=False)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_now)


# --------------------------------------------------------------------
# Catálogo
# --------------------------------------------------------------------
class Sistema(Base):
    __tablename__ = "sistemas"

    id = Column(String(36), primary_key=True, default=_uuid)
    nome = Column(String(255), nullable=False)
    descricao = Column(Text, nullable=True)
    ordem = Column(Integer, nullable=False, default=0)


class Produto(Base):
    __tablename__ = "produtos"

    id = Column(String(36), primary_key=True, default=_uuid)
    # sem sistema (ou sistema removido) o produto fica inalcançável
    sistema_id = Column(String(36), ForeignKey("sistemas.id"), nullable=True, index=True)
    nome = Column(String(255), nullable=False)
    descricao = Column(Text, nullable=True)
    ordem = Column(Integer, nullable=False, default=0)


class VideoAula(Base):
    __tablename__ = "video_aulas"

    id = Column(String(36), primary_key=True, default=_uuid)
    produto_id = Column(String(36), ForeignKey("produtos.id"), nullable=True, index=True)
    titulo = Column(String(255), nullable=False)
    descricao = Column(Text, nullable=True)
    ordem = Column(Integer, nullable=False, default=0)
    url_video = Column(String(512), nullable=True)


# --------------------------------------------------------------------
# Liberações e progresso
# --------------------------------------------------------------------
class CartorioAcessoConteudo(Base):
    __tablename__ = "cartorio_acesso_conteudo"

    id = Column(String(36), primary_key=True, default=_uuid)
    cartorio_id = Column(String(36), ForeignKey("cartorios.id"), nullable=False, index=True)
    # sem FK: liberação para conteúdo removido continua gravada e é ignorada na leitura
    sistema_id = Column(String(36), nullable=True)
    produto_id = Column(String(36), nullable=True)
    ativo = Column(Boolean, nullable=False, default=True)
    data_liberacao = Column(DateTime(timezone=True), default=_now)


class UserVideoProgress(Base):
    __tablename__ = "user_video_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "video_aula_id", name="uq_user_video_progress"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    video_aula_id = Column(String(36), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)


Index("ix_acesso_cartorio_ativo", CartorioAcessoConteudo.cartorio_id, CartorioAcessoConteudo.ativo)

# --------------------------------------------------------------------
# Bootstrapping
# --------------------------------------------------------------------
def init_db(session_factory: Optional[Callable] = None) -> None:
    """Cria tabelas caso não existam (uso simples; produção usa as migrations)."""
    if session_factory is None:
        if DB_URL.startswith("sqlite:///") and os.path.dirname(DB_PATH):
            os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)
        Base.metadata.create_all(bind=engine)
        return
    Base.metadata.create_all(bind=session_factory.kw["bind"])


@contextmanager
def get_session(session_factory: Optional[Callable] = None):
    """Retorna sessão SQLAlchemy (commit no fim, rollback em erro)."""
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
