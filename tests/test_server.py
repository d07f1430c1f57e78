import pytest

from cartorio_admin.container import build_services
from cartorio_admin.errors import StorageError
from cartorio_admin.persistence.db import make_session_factory
from server import create_app


@pytest.fixture
def svc(tmp_path):
    return build_services(make_session_factory(f"sqlite:///{tmp_path / 'api.db'}"))


@pytest.fixture
def client(svc):
    app = create_app(svc)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def ids(svc):
    s = svc.catalog.criar_sistema("Orion TN")
    p1 = svc.catalog.criar_produto(s, "Escrituras", ordem=0)
    p2 = svc.catalog.criar_produto(s, "Procurações", ordem=1)
    outro = svc.catalog.criar_sistema("Orion Reg", ordem=1)
    p3 = svc.catalog.criar_produto(outro, "Registro")
    aula = svc.catalog.criar_video_aula(p1, "Introdução")
    c = svc.cartorios.criar("1º Tabelionato")
    u = svc.cartorios.criar_usuario(c, "ana")
    return dict(s=s, p1=p1, p2=p2, p3=p3, outro=outro, aula=aula, c=c, u=u)


def test_health_e_metrics(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["checks"]["db"] == "ok"
    assert resp.headers["X-Request-Id"]

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "app_requests_total 2" in metrics.get_data(as_text=True)


def test_acesso_padrao_e_total(client, ids):
    resp = client.get(f"/cartorios/{ids['c']}/acesso")
    assert resp.status_code == 200
    assert resp.get_json() == {"policy": "all"}


def test_salvar_permissoes_e_consultar(client, ids):
    resp = client.put(
        f"/cartorios/{ids['c']}/permissoes",
        json={"permissoes": [{"kind": "sistema", "target_id": ids["outro"]}, {"kind": "produto", "target_id": ids["p1"]}]},
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ok"] is True
    assert body["reverted_to_default"] is False

    acesso = client.get(f"/cartorios/{ids['c']}/acesso").get_json()
    assert acesso == {"policy": "restricted", "produto_ids": sorted([ids["p1"], ids["p3"]])}

    tela = client.get(f"/cartorios/{ids['c']}/permissoes").get_json()
    sistemas = {s["id"]: s for s in tela["sistemas"]}
    assert sistemas[ids["outro"]]["selecionado"] is True
    assert sistemas[ids["s"]]["selecionado"] is False
    assert [p["selecionado"] for p in sistemas[ids["s"]]["produtos"]] == [True, False]
    assert tela["total_produtos"] == 3


def test_entrada_invalida_nao_salva(client, ids):
    client.put(f"/cartorios/{ids['c']}/permissoes", json={"permissoes": [{"kind": "produto", "target_id": ids["p2"]}]})
    resp = client.put(
        f"/cartorios/{ids['c']}/permissoes",
        json={"permissoes": [{"kind": "sistema", "target_id": ids["s"]}, {"kind": "produto", "target_id": "abc"}]},
    )
    assert resp.status_code == 422
    body = resp.get_json()
    assert body["saved"] is False
    assert body["issues"][0]["index"] == 1
    acesso = client.get(f"/cartorios/{ids['c']}/acesso").get_json()
    assert acesso["produto_ids"] == [ids["p2"]]


def test_payload_sem_lista(client, ids):
    resp = client.put(f"/cartorios/{ids['c']}/permissoes", json={"permissoes": "tudo"})
    assert resp.status_code == 400


def test_cartorio_inexistente(client):
    resp = client.get("/cartorios/nao-existe/acesso")
    assert resp.status_code == 404
    assert resp.get_json()["entity"] == "Cartório"


def test_falha_de_armazenamento_vira_503(client, svc, ids, monkeypatch):
    def _fora(*args, **kwargs):
        raise StorageError("banco indisponível")

    monkeypatch.setattr(svc.entitlements, "replace_all", _fora)
    resp = client.put(f"/cartorios/{ids['c']}/permissoes", json={"permissoes": []})
    assert resp.status_code == 503
    assert resp.get_json()["saved"] is False
    assert "app_errors_total 1" in client.get("/metrics").get_data(as_text=True)


def test_conclusao_e_progresso(client, ids):
    resp = client.put(f"/usuarios/{ids['u']}/aulas/{ids['aula']}/conclusao", json={"completed": True})
    assert resp.status_code == 200
    assert resp.get_json()["completed_at"]

    prog = client.get(f"/cartorios/{ids['c']}/usuarios/{ids['u']}/progresso").get_json()
    assert prog["username"] == "ana"
    assert prog["overall"] == {"total": 1, "completed": 1, "percentage": 100}
    assert [p["nome"] for p in prog["per_product"]] == ["Escrituras", "Procurações", "Registro"]

    todos = client.get(f"/cartorios/{ids['c']}/progresso").get_json()
    assert [u["user_id"] for u in todos["usuarios"]] == [ids["u"]]


@pytest.mark.parametrize("valor", ["false", 0, None])
def test_conclusao_exige_booleano(client, svc, ids, valor):
    resp = client.put(f"/usuarios/{ids['u']}/aulas/{ids['aula']}/conclusao", json={"completed": valor})
    assert resp.status_code == 400
    assert svc.tracker.get_completions(ids["u"]) == frozenset()


def test_conclusao_com_usuario_em_branco(client, ids):
    resp = client.put(f"/usuarios/%20/aulas/{ids['aula']}/conclusao", json={"completed": True})
    assert resp.status_code == 422


def test_progresso_usuario_inexistente(client, ids):
    resp = client.get(f"/cartorios/{ids['c']}/usuarios/ninguem/progresso")
    assert resp.status_code == 404
