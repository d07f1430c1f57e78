import pytest

from cartorio_admin.errors import NotFoundError
from cartorio_admin.models import AccessPolicy, Entitlement, EntitlementKind, percentual


def _liberar(env, *grants):
    env.entitlements.rows[env.C1] = [
        Entitlement(cartorio_id=env.C1, kind=kind, target_id=target) for kind, target in grants
    ]


def _concluir(env, user_id, *lesson_numbers, completed=True):
    for n in lesson_numbers:
        env.tracker.upsert(user_id, env.uid(n), completed=completed)


def test_percentual_geral_vem_das_contagens_somadas(env):
    # A: 1 aula, 1 concluída; B: 9 aulas, 0 concluídas
    _liberar(env, (EntitlementKind.PRODUTO, env.P1), (EntitlementKind.PRODUTO, env.P2))
    _concluir(env, env.U1, 100)

    report = env.aggregator.compute_progress(env.C1, env.U1)

    por_produto = {p.produto_id: p for p in report.per_product}
    assert por_produto[env.P1].percentage == 100
    assert por_produto[env.P2].percentage == 0
    assert report.overall.to_dict() == {"total": 10, "completed": 1, "percentage": 10}
    assert report.overall.percentage != 50


def test_produto_sem_aulas_aparece_com_zero(env):
    _liberar(env, (EntitlementKind.SISTEMA, env.S2))
    report = env.aggregator.compute_progress(env.C1, env.U1)
    vazio = [p for p in report.per_product if p.produto_id == env.P4][0]
    assert (vazio.total, vazio.completed, vazio.percentage) == (0, 0, 0)


def test_sem_liberacoes_lista_catalogo_inteiro_em_ordem(env):
    report = env.aggregator.compute_progress(env.C1, env.U1)
    assert report.policy is AccessPolicy.ALL
    assert [p.produto_id for p in report.per_product] == [env.P1, env.P2, env.P3, env.P4]
    assert [p.sistema_nome for p in report.per_product] == ["Orion TN", "Orion TN", "Orion Reg", "Orion Reg"]
    assert report.overall.total == 13


def test_conclusoes_fora_do_acesso_nao_contam(env):
    _liberar(env, (EntitlementKind.SISTEMA, env.S2))
    _concluir(env, env.U1, 100, 200, 300)
    report = env.aggregator.compute_progress(env.C1, env.U1)
    assert [p.produto_id for p in report.per_product] == [env.P3, env.P4]
    assert report.overall.to_dict() == {"total": 3, "completed": 1, "percentage": 33}


def test_aula_desmarcada_nao_conta(env):
    _concluir(env, env.U1, 300, 301)
    _concluir(env, env.U1, 301, completed=False)
    report = env.aggregator.compute_progress(env.C1, env.U1)
    registro = [p for p in report.per_product if p.produto_id == env.P3][0]
    assert registro.completed == 1
    assert registro.percentage == 33


def test_arredondamento_meio_para_cima():
    assert percentual(1, 8) == 13
    assert percentual(2, 3) == 67
    assert percentual(0, 0) == 0
    assert percentual(5, 5) == 100


def test_falha_em_um_produto_degrada_so_a_entrada(env):
    env.catalog.failing.add(env.P2)
    _concluir(env, env.U1, 100, 300)

    report = env.aggregator.compute_progress(env.C1, env.U1)

    p2 = [p for p in report.per_product if p.produto_id == env.P2][0]
    assert (p2.total, p2.completed, p2.percentage, p2.degraded) == (0, 0, 0, True)
    assert len(report.warnings) == 1
    assert "Procurações" in report.warnings[0]
    assert report.overall.to_dict() == {"total": 4, "completed": 2, "percentage": 50}


def test_usuario_inexistente(env):
    with pytest.raises(NotFoundError) as exc:
        env.aggregator.compute_progress(env.C1, env.uid(12345))
    assert exc.value.entity == "Usuário"


def test_usuario_de_outro_cartorio(env):
    with pytest.raises(NotFoundError):
        env.aggregator.compute_progress(env.C1, env.U3)


def test_cartorio_inexistente(env):
    with pytest.raises(NotFoundError):
        env.aggregator.compute_progress(env.uid(4040), env.U1)


def test_progresso_do_cartorio_so_usuarios_ativos(env):
    _concluir(env, env.U1, 100)
    reports = env.aggregator.compute_cartorio_progress(env.C1)
    assert [r.username for r in reports] == ["ana"]
    todos = env.aggregator.compute_cartorio_progress(env.C1, include_inactive=True)
    assert {r.user_id for r in todos} == {env.U1, env.U2}


def test_to_dict(env):
    _liberar(env, (EntitlementKind.PRODUTO, env.P1))
    _concluir(env, env.U1, 100)
    data = env.aggregator.compute_progress(env.C1, env.U1).to_dict()
    assert data["policy"] == "restricted"
    assert data["username"] == "ana"
    assert data["per_product"] == [{
        "produto_id": env.P1,
        "nome": "Escrituras",
        "sistema_nome": "Orion TN",
        "total": 1,
        "completed": 1,
        "percentage": 100,
        "degraded": False,
    }]
    assert data["warnings"] == []
