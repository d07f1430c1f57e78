import copy
from types import SimpleNamespace

import pytest

from cartorio_admin.errors import StorageError
from cartorio_admin.models import (
    Cartorio,
    CompletionRecord,
    Entitlement,
    Produto,
    Sistema,
    Usuario,
    VideoAula,
)
from cartorio_admin.persistence.base import CatalogRepo, CartorioRepo, CompletionRepo, EntitlementRepo
from cartorio_admin.services import (
    CompletionTracker,
    EntitlementEditor,
    EntitlementResolver,
    ProgressAggregator,
)


def uid(n: int) -> str:
    return f"00000000-0000-4000-8000-{n:012d}"


class FakeCatalog(CatalogRepo):
    def __init__(self, sistemas):
        self.sistemas = sistemas
        self.failing = set()
        self.down = False

    def list_systems(self):
        if self.down:
            raise StorageError("catálogo fora do ar")
        return copy.deepcopy(self.sistemas)

    def list_lessons(self, produto_id):
        if produto_id in self.failing:
            raise StorageError("timeout lendo aulas")
        for s in self.sistemas:
            for p in s.produtos:
                if p.id == produto_id:
                    return list(p.video_aulas)
        return []


class FakeEntitlements(EntitlementRepo):
    def __init__(self):
        self.rows = {}
        self.sem_alvo = {}
        self.replace_calls = 0
        self.down = False

    def list_active(self, cartorio_id):
        if self.down:
            raise StorageError("banco fora do ar")
        return [e for e in self.rows.get(cartorio_id, []) if e.ativo]

    def count_active(self, cartorio_id):
        return len(self.list_active(cartorio_id)) + self.sem_alvo.get(cartorio_id, 0)

    def replace_all(self, cartorio_id, entitlements):
        self.replace_calls += 1
        saved = []
        for i, e in enumerate(entitlements):
            saved.append(Entitlement(cartorio_id=cartorio_id, kind=e.kind, target_id=e.target_id, id=f"ent-{i}"))
        self.rows[cartorio_id] = saved
        self.sem_alvo.pop(cartorio_id, None)
        return list(saved)


class FakeCompletions(CompletionRepo):
    def __init__(self):
        self.records = {}

    def list_for_user(self, user_id):
        return [r for (u, _), r in self.records.items() if u == user_id]

    def upsert(self, user_id, lesson_id, completed, completed_at):
        self.records[(user_id, lesson_id)] = CompletionRecord(lesson_id, completed, completed_at)


class FakeCartorios(CartorioRepo):
    def __init__(self):
        self.cartorios = {}
        self.usuarios = {}

    def get(self, cartorio_id):
        return self.cartorios.get(cartorio_id)

    def get_usuario(self, user_id):
        return self.usuarios.get(user_id)

    def list_usuarios(self, cartorio_id):
        return [u for u in self.usuarios.values() if u.cartorio_id == cartorio_id]


def _produto(pid, sistema_id, nome, ordem, n_aulas, first_lesson):
    aulas = [
        VideoAula(id=uid(first_lesson + i), titulo=f"{nome} {i + 1}", ordem=i, produto_id=pid)
        for i in range(n_aulas)
    ]
    return Produto(id=pid, nome=nome, ordem=ordem, sistema_id=sistema_id, video_aulas=aulas)


@pytest.fixture
def env():
    """
    Catálogo:
      S1 "Orion TN":  P1 Escrituras (1 aula), P2 Procurações (9 aulas)
      S2 "Orion Reg": P3 Registro (3 aulas), P4 Em breve (0 aulas)
    Cartórios C1 (usuários U1, U2 inativo) e C2 (usuário U3).
    """
    S1, S2 = uid(1), uid(2)
    P1, P2, P3, P4 = uid(11), uid(12), uid(13), uid(14)
    sistemas = [
        Sistema(id=S1, nome="Orion TN", ordem=0, produtos=[
            _produto(P1, S1, "Escrituras", 0, 1, 100),
            _produto(P2, S1, "Procurações", 1, 9, 200),
        ]),
        Sistema(id=S2, nome="Orion Reg", ordem=1, produtos=[
            _produto(P3, S2, "Registro", 0, 3, 300),
            _produto(P4, S2, "Em breve", 1, 0, 400),
        ]),
    ]
    catalog = FakeCatalog(sistemas)
    entitlements = FakeEntitlements()
    completions = FakeCompletions()
    cartorios = FakeCartorios()

    C1, C2 = uid(50), uid(51)
    U1, U2, U3 = uid(60), uid(61), uid(62)
    cartorios.cartorios[C1] = Cartorio(id=C1, nome="1º Tabelionato", cidade="Curitiba", estado="PR")
    cartorios.cartorios[C2] = Cartorio(id=C2, nome="2º Registro", cidade="Londrina", estado="PR")
    cartorios.usuarios[U1] = Usuario(id=U1, cartorio_id=C1, username="ana")
    cartorios.usuarios[U2] = Usuario(id=U2, cartorio_id=C1, username="bruno", is_active=False)
    cartorios.usuarios[U3] = Usuario(id=U3, cartorio_id=C2, username="carla")

    resolver = EntitlementResolver(catalog, entitlements, cartorios)
    return SimpleNamespace(
        S1=S1, S2=S2, P1=P1, P2=P2, P3=P3, P4=P4,
        C1=C1, C2=C2, U1=U1, U2=U2, U3=U3,
        uid=uid,
        catalog=catalog,
        entitlements=entitlements,
        completions=completions,
        cartorios=cartorios,
        resolver=resolver,
        editor=EntitlementEditor(catalog, entitlements, cartorios, policy="fail_fast"),
        tracker=CompletionTracker(completions),
        aggregator=ProgressAggregator(resolver, catalog, completions, cartorios),
    )
