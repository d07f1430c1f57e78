#!/usr/bin/env python
# cartorio_admin/main.py: CLI administrativa (permissões de conteúdo + progresso)
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

from .container import Services, build_services
from .errors import CartorioAdminError, NotFoundError, StorageError, ValidationError
from .models import SelectionKey
from .persistence.db import init_db, make_session_factory


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def _services(args) -> Services:
    factory = make_session_factory(args.db_url) if args.db_url else None
    init_db(factory)
    return build_services(factory, save_policy=getattr(args, "policy", None))


# -----------------------------------------------------------------------------
# Comandos
# -----------------------------------------------------------------------------
def cmd_init_db(args):
    _services(args)
    _print_json({"ok": True})


def cmd_seed_demo(args):
    svc = _services(args)
    cat = svc.catalog
    cartorio_id = svc.cartorios.criar("Cartório Demo", cidade="Curitiba", estado="PR")
    usuarios = [
        svc.cartorios.criar_usuario(cartorio_id, "escrevente", email="escrevente@demo.local"),
        svc.cartorios.criar_usuario(cartorio_id, "tabeliao", email="tabeliao@demo.local"),
    ]
    sistemas = {}
    for s_ordem, (s_nome, produtos) in enumerate([
        ("Orion TN", [("Escrituras", 4), ("Procurações", 2)]),
        ("Orion Reg", [("Registro de Imóveis", 3)]),
    ]):
        sistema_id = cat.criar_sistema(s_nome, ordem=s_ordem)
        sistemas[sistema_id] = []
        for p_ordem, (p_nome, n_aulas) in enumerate(produtos):
            produto_id = cat.criar_produto(sistema_id, p_nome, ordem=p_ordem)
            sistemas[sistema_id].append(produto_id)
            for a in range(n_aulas):
                cat.criar_video_aula(produto_id, f"{p_nome} - aula {a + 1}", ordem=a)
    _print_json({"cartorio_id": cartorio_id, "usuarios": usuarios, "sistemas": sistemas})


def cmd_acesso(args):
    svc = _services(args)
    _print_json(svc.resolver.resolve(args.cartorio).to_dict())


def cmd_salvar_permissoes(args):
    svc = _services(args)
    selection: List[SelectionKey] = []
    selection += [SelectionKey.sistema(s) for s in (args.sistema or [])]
    selection += [SelectionKey.produto(p) for p in (args.produto or [])]
    result = svc.editor.save(args.cartorio, selection)
    _print_json(result.to_dict())


def cmd_progresso(args):
    svc = _services(args)
    if args.usuario:
        _print_json(svc.aggregator.compute_progress(args.cartorio, args.usuario).to_dict())
    else:
        _print_json([r.to_dict() for r in svc.aggregator.compute_cartorio_progress(args.cartorio)])


def cmd_concluir(args):
    svc = _services(args)
    rec = svc.tracker.upsert(args.usuario, args.aula, completed=not args.desfazer)
    _print_json({"user_id": args.usuario, "lesson_id": rec.lesson_id, "completed": rec.completed,
                 "completed_at": rec.completed_at})


# -----------------------------------------------------------------------------
# Parsers / CLI
# -----------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cartorio_admin", description="Painel de cartórios – permissões e progresso")
    p.add_argument("--db-url", help="URL SQLAlchemy (padrão: DB_URL / APP_DB_PATH)")
    p.add_argument("-v", "--verbose", action="store_true")

    sp = p.add_subparsers(dest="cmd")

    sp_init = sp.add_parser("init-db", help="Cria as tabelas se não existirem")
    sp_init.set_defaults(func=cmd_init_db)

    sp_seed = sp.add_parser("seed-demo", help="Popula um cartório, usuários e um catálogo de exemplo")
    sp_seed.set_defaults(func=cmd_seed_demo)

    sp_acc = sp.add_parser("acesso", help="Mostra os produtos acessíveis de um cartório")
    sp_acc.add_argument("--cartorio", required=True)
    sp_acc.set_defaults(func=cmd_acesso)

    sp_save = sp.add_parser("salvar-permissoes", help="Substitui as liberações de um cartório")
    sp_save.add_argument("--cartorio", required=True)
    sp_save.add_argument("--sistema", action="append", help="Libera um sistema inteiro (repetível)")
    sp_save.add_argument("--produto", action="append", help="Libera um produto avulso (repetível)")
    sp_save.add_argument("--policy", choices=["fail_fast", "best_effort"])
    sp_save.set_defaults(func=cmd_salvar_permissoes)

    sp_prog = sp.add_parser("progresso", help="Progresso de um usuário (ou de todos do cartório)")
    sp_prog.add_argument("--cartorio", required=True)
    sp_prog.add_argument("--usuario")
    sp_prog.set_defaults(func=cmd_progresso)

    sp_done = sp.add_parser("concluir", help="Marca (ou desmarca) uma videoaula como concluída")
    sp_done.add_argument("--usuario", required=True)
    sp_done.add_argument("--aula", required=True)
    sp_done.add_argument("--desfazer", action="store_true")
    sp_done.set_defaults(func=cmd_concluir)

    # Fallback: sem subcomando -> imprime help e retorna 0 (sem SystemExit:2)
    def _no_cmd(args, _p=p):
        _p.print_help()
        return 0
    p.set_defaults(func=_no_cmd)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        ret = args.func(args)
    except ValidationError as e:
        _print_json({"ok": False, "erro": str(e), "issues": [i.to_dict() for i in e.issues]})
        return 2
    except NotFoundError as e:
        _print_json({"ok": False, "erro": str(e)})
        return 3
    except StorageError as e:
        _print_json({"ok": False, "erro": f"Falha de armazenamento: {e}"})
        return 4
    except CartorioAdminError as e:
        _print_json({"ok": False, "erro": str(e)})
        return 1
    return 0 if ret is None else ret


if __name__ == "__main__":
    sys.exit(main())
