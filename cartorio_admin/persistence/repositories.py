# -*- coding: utf-8 -*-
from __future__ import annotations
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError
from ..models import (
    Cartorio,
    CompletionRecord,
    Entitlement,
    EntitlementKind,
    Produto,
    Sistema,
    Usuario,
    VideoAula,
)
from .base import CatalogRepo, CartorioRepo, CompletionRepo, EntitlementRepo
from .db import (
    init_db,
    get_session,
    Cartorio as CartorioModel,
    CartorioUsuario as UsuarioModel,
    Sistema as SistemaModel,
    Produto as ProdutoModel,
    VideoAula as VideoAulaModel,
    CartorioAcessoConteudo as AcessoModel,
    UserVideoProgress as ProgressModel,
)

logger = logging.getLogger(__name__)


@contextmanager
def _session_scope(session_factory: Optional[Callable] = None) -> Any:
    """Sessão com commit/rollback; qualquer erro do SQLAlchemy vira StorageError."""
    try:
        with get_session(session_factory) as db:
            yield db
    except SQLAlchemyError as e:
        logger.exception("Falha no banco de dados: %s", e)
        raise StorageError(str(e)) from e


def _acesso_row(cartorio_id: str, ent: Entitlement) -> AcessoModel:
    return AcessoModel(
        cartorio_id=cartorio_id,
        sistema_id=ent.sistema_id,
        produto_id=ent.produto_id,
        ativo=True,
        data_liberacao=ent.granted_at or datetime.now(timezone.utc),
    )


def _to_entitlement(row: AcessoModel) -> Optional[Entitlement]:
    if row.produto_id:
        # com os dois alvos gravados, vale o produto
        kind, target = EntitlementKind.PRODUTO, row.produto_id
        if row.sistema_id:
            logger.warning(
                "Liberação %s do cartório %s com sistema e produto; lida como produto %s",
                row.id, row.cartorio_id, row.produto_id,
            )
    elif row.sistema_id:
        kind, target = EntitlementKind.SISTEMA, row.sistema_id
    else:
        logger.warning("Liberação %s do cartório %s sem alvo; ignorada", row.id, row.cartorio_id)
        return None
    return Entitlement(
        id=row.id,
        cartorio_id=row.cartorio_id,
        kind=kind,
        target_id=target,
        ativo=bool(row.ativo),
        granted_at=row.data_liberacao,
    )


# ========= Catálogo =========
class CatalogRepository(CatalogRepo):
    """
    Catálogo de conteúdo.
      - list_systems() -> árvore completa, ordenada por `ordem` em cada nível
      - list_lessons(produto_id) -> aulas de um produto
      - criar_sistema / criar_produto / criar_video_aula -> id gerado
    """

    def __init__(self, session_factory: Optional[Callable] = None) -> None:
        self._sf = session_factory
        init_db(session_factory)

    def list_systems(self) -> List[Sistema]:
        with _session_scope(self._sf) as db:
            sistemas = db.query(SistemaModel).order_by(SistemaModel.ordem, SistemaModel.nome).all()
            produtos = db.query(ProdutoModel).order_by(ProdutoModel.ordem, ProdutoModel.nome).all()
            aulas = db.query(VideoAulaModel).order_by(VideoAulaModel.ordem, VideoAulaModel.titulo).all()

            by_sistema: Dict[str, Sistema] = {
                s.id: Sistema(id=s.id, nome=s.nome, ordem=s.ordem or 0, descricao=s.descricao)
                for s in sistemas
            }
            by_produto: Dict[str, Produto] = {}
            for p in produtos:
                sistema = by_sistema.get(p.sistema_id) if p.sistema_id else None
                if sistema is None:
                    logger.debug("Produto %s sem sistema válido (%s); fora do catálogo", p.id, p.sistema_id)
                    continue
                produto = Produto(id=p.id, nome=p.nome, ordem=p.ordem or 0, sistema_id=p.sistema_id)
                sistema.produtos.append(produto)
                by_produto[p.id] = produto
            for a in aulas:
                produto = by_produto.get(a.produto_id) if a.produto_id else None
                if produto is None:
                    continue
                produto.video_aulas.append(
                    VideoAula(id=a.id, titulo=a.titulo, ordem=a.ordem or 0, produto_id=a.produto_id)
                )
            return [by_sistema[s.id] for s in sistemas]

    def list_lessons(self, produto_id: str) -> List[VideoAula]:
        with _session_scope(self._sf) as db:
            rows = (
                db.query(VideoAulaModel)
                .filter(VideoAulaModel.produto_id == produto_id)
                .order_by(VideoAulaModel.ordem, VideoAulaModel.titulo)
                .all()
            )
            return [VideoAula(id=r.id, titulo=r.titulo, ordem=r.ordem or 0, produto_id=r.produto_id) for r in rows]

    def criar_sistema(self, nome: str, *, ordem: int = 0, descricao: Optional[str] = None) -> str:
        with _session_scope(self._sf) as db:
            row = SistemaModel(nome=nome, ordem=ordem, descricao=descricao)
            db.add(row)
            db.flush()
            return row.id

    def criar_produto(self, sistema_id: Optional[str], nome: str, *, ordem: int = 0) -> str:
        with _session_scope(self._sf) as db:
            row = ProdutoModel(sistema_id=sistema_id, nome=nome, ordem=ordem)
            db.add(row)
            db.flush()
            return row.id

    def criar_video_aula(
        self,
        produto_id: Optional[str],
        titulo: str,
        *,
        ordem: int = 0,
        url_video: Optional[str] = None,
    ) -> str:
        with _session_scope(self._sf) as db:
            row = VideoAulaModel(produto_id=produto_id, titulo=titulo, ordem=ordem, url_video=url_video)
            db.add(row)
            db.flush()
            return row.id


# ========= Liberações de conteúdo =========
class EntitlementRepository(EntitlementRepo):
    def __init__(self, session_factory: Optional[Callable] = None) -> None:
        self._sf = session_factory
        init_db(session_factory)

    def list_active(self, cartorio_id: str) -> List[Entitlement]:
        with _session_scope(self._sf) as db:
            rows = (
                db.query(AcessoModel)
                .filter(AcessoModel.cartorio_id == cartorio_id, AcessoModel.ativo.is_(True))
                .order_by(AcessoModel.data_liberacao)
                .all()
            )
            out: List[Entitlement] = []
            for r in rows:
                ent = _to_entitlement(r)
                if ent is not None:
                    out.append(ent)
            return out

    def count_active(self, cartorio_id: str) -> int:
        with _session_scope(self._sf) as db:
            return (
                db.query(func.count(AcessoModel.id))
                .filter(AcessoModel.cartorio_id == cartorio_id, AcessoModel.ativo.is_(True))
                .scalar()
            ) or 0

    def replace_all(self, cartorio_id: str, entitlements: Sequence[Entitlement]) -> List[Entitlement]:
        with _session_scope(self._sf) as db:
            removed = (
                db.query(AcessoModel)
                .filter(AcessoModel.cartorio_id == cartorio_id, AcessoModel.ativo.is_(True))
                .delete(synchronize_session=False)
            )
            rows = [_acesso_row(cartorio_id, e) for e in entitlements]
            db.add_all(rows)
            db.flush()
            logger.info(
                "Liberações do cartório %s substituídas: %d removida(s), %d inserida(s)",
                cartorio_id, removed, len(rows),
            )
            return [e for e in (_to_entitlement(r) for r in rows) if e is not None]


# ON CONFLICT (user_id, video_aula_id) DO UPDATE
_UPSERT_INSERTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


# ========= Conclusões de videoaulas =========
class CompletionRepository(CompletionRepo):
    def __init__(self, session_factory: Optional[Callable] = None) -> None:
        self._sf = session_factory
        init_db(session_factory)

    def list_for_user(self, user_id: str) -> List[CompletionRecord]:
        with _session_scope(self._sf) as db:
            rows = db.query(ProgressModel).filter(ProgressModel.user_id == user_id).all()
            return [
                CompletionRecord(lesson_id=r.video_aula_id, completed=bool(r.completed), completed_at=r.completed_at)
                for r in rows
            ]

    def upsert(
        self,
        user_id: str,
        lesson_id: str,
        completed: bool,
        completed_at: Optional[datetime],
    ) -> None:
        with _session_scope(self._sf) as db:
            insert = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
            if insert is not None:
                stmt = insert(ProgressModel).values(
                    user_id=user_id,
                    video_aula_id=lesson_id,
                    completed=bool(completed),
                    completed_at=completed_at,
                    updated_at=datetime.now(timezone.utc),
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[ProgressModel.user_id, ProgressModel.video_aula_id],
                    set_={
                        "completed": stmt.excluded.completed,
                        "completed_at": stmt.excluded.completed_at,
                        "updated_at": stmt.excluded.updated_at,
                    },
                )
                db.execute(stmt)
                return
            # outros bancos: lê e grava na mesma transação
            row = (
                db.query(ProgressModel)
                .filter(ProgressModel.user_id == user_id, ProgressModel.video_aula_id == lesson_id)
                .first()
            )
            if row is None:
                row = ProgressModel(user_id=user_id, video_aula_id=lesson_id)
                db.add(row)
            row.completed = bool(completed)
            row.completed_at = completed_at


# ========= Cartórios / usuários =========
class CartorioRepository(CartorioRepo):
    def __init__(self, session_factory: Optional[Callable] = None) -> None:
        self._sf = session_factory
        init_db(session_factory)

    @staticmethod
    def _cartorio(row: CartorioModel) -> Cartorio:
        return Cartorio(
            id=row.id,
            nome=row.nome,
            cidade=row.cidade,
            estado=row.estado,
            is_active=bool(row.is_active),
            data_cadastro=row.data_cadastro,
        )

    @staticmethod
    def _usuario(row: UsuarioModel) -> Usuario:
        return Usuario(
            id=row.id,
            cartorio_id=row.cartorio_id,
            username=row.username,
            email=row.email,
            is_active=bool(row.is_active),
        )

    def get(self, cartorio_id: str) -> Optional[Cartorio]:
        with _session_scope(self._sf) as db:
            row = db.get(CartorioModel, cartorio_id)
            return self._cartorio(row) if row else None

    def listar(self) -> List[Cartorio]:
        with _session_scope(self._sf) as db:
            rows = db.query(CartorioModel).order_by(CartorioModel.nome).all()
            return [self._cartorio(r) for r in rows]

    def get_usuario(self, user_id: str) -> Optional[Usuario]:
        with _session_scope(self._sf) as db:
            row = db.get(UsuarioModel, user_id)
            return self._usuario(row) if row else None

    def list_usuarios(self, cartorio_id: str) -> List[Usuario]:
        with _session_scope(self._sf) as db:
            rows = (
                db.query(UsuarioModel)
                .filter(UsuarioModel.cartorio_id == cartorio_id)
                .order_by(UsuarioModel.username)
                .all()
            )
            return [self._usuario(r) for r in rows]

    def criar(
        self,
        nome: str,
        *,
        cidade: Optional[str] = None,
        estado: Optional[str] = None,
        is_active: bool = True,
    ) -> str:
        with _session_scope(self._sf) as db:
            row = CartorioModel(nome=nome, cidade=cidade, estado=estado, is_active=is_active)
            db.add(row)
            db.flush()
            return row.id

    def criar_usuario(
        self,
        cartorio_id: str,
        username: str,
        *,
        email: Optional[str] = None,
        is_active: bool = True,
    ) -> str:
        with _session_scope(self._sf) as db:
            row = UsuarioModel(cartorio_id=cartorio_id, username=username, email=email, is_active=is_active)
            db.add(row)
            db.flush()
            return row.id
