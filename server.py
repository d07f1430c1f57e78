import os, json, time, uuid, logging
from typing import Optional

from flask import Flask, jsonify, request, g, make_response, has_request_context
from flask_cors import CORS

from cartorio_admin.container import Services, build_services
from cartorio_admin.errors import ConflictError, NotFoundError, StorageError, ValidationError
from cartorio_admin.models import iter_produtos


# ====== JSON logger ======
def _json_log_format(record: logging.LogRecord) -> str:
    base = {
        "ts": int(time.time() * 1000),
        "level": record.levelname,
        "msg": record.getMessage(),
        "logger": record.name,
    }
    if has_request_context():
        rid = getattr(g, "request_id", None)
        if rid:
            base["request_id"] = rid
        base["path"] = request.path
        base["method"] = request.method
    # inclui traceback compacto quando houver exceção
    if record.exc_info:
        base["exc_info"] = True
    return json.dumps(base, ensure_ascii=False)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return _json_log_format(record)


def _configure_logging(app: Flask) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    root = logging.getLogger("cartorio_admin")
    if not any(isinstance(h.formatter, JsonFormatter) for h in root.handlers):
        root.addHandler(handler)
    root.setLevel(level)
    app.logger.handlers = [handler]
    app.logger.setLevel(level)


def _erro(status: int, message: str, **extra):
    body = {"ok": False, "error": message}
    body.update(extra)
    return jsonify(body), status


def create_app(services: Optional[Services] = None) -> Flask:
    app = Flask(__name__)
    _configure_logging(app)
    svc = services or build_services()
    app.extensions["cartorio_admin"] = svc
    metrics = {"requests_total": 0, "errors_total": 0}

    # ===== CORS =====
    allowed_origins = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]
    if allowed_origins:
        CORS(app, resources={r"/*": {"origins": allowed_origins}})

    @app.before_request
    def _start_request():
        g.request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]
        metrics["requests_total"] += 1

    @app.after_request
    def _finish_request(resp):
        if resp.status_code >= 500:
            metrics["errors_total"] += 1
        resp.headers["X-Request-Id"] = getattr(g, "request_id", "")
        return resp

    # ===== mapeamento de erros do núcleo =====
    @app.errorhandler(ValidationError)
    def _validation(e: ValidationError):
        return _erro(422, str(e), issues=[i.to_dict() for i in e.issues], saved=False)

    @app.errorhandler(NotFoundError)
    def _not_found(e: NotFoundError):
        return _erro(404, str(e), entity=e.entity)

    @app.errorhandler(ConflictError)
    def _conflict(e: ConflictError):
        return _erro(409, str(e))

    @app.errorhandler(StorageError)
    def _storage(e: StorageError):
        app.logger.error("Falha de armazenamento: %s", e)
        return _erro(503, "Falha de armazenamento; nada foi alterado", saved=False)

    # ===== saúde / métricas =====
    @app.route("/health")
    def health():
        checks = {"db": "ok"}
        try:
            svc.cartorios.listar()
        except StorageError:
            checks["db"] = "fail"
        status = 200 if checks["db"] == "ok" else 500
        return jsonify({"status": "ok" if status == 200 else "degraded", "checks": checks}), status

    @app.route("/metrics")
    def metrics_route():
        body = "\n".join(
            [
                "# HELP app_requests_total Total de requests",
                "# TYPE app_requests_total counter",
                f"app_requests_total {metrics['requests_total']}",
                "# HELP app_errors_total Total de erros",
                "# TYPE app_errors_total counter",
                f"app_errors_total {metrics['errors_total']}",
            ]
        )
        resp = make_response(body, 200)
        resp.headers["Content-Type"] = "text/plain; version=0.0.4"
        return resp

    # ===== permissões de conteúdo =====
    @app.get("/cartorios/<cartorio_id>/acesso")
    def acesso(cartorio_id: str):
        return jsonify(svc.resolver.resolve(cartorio_id).to_dict())

    @app.get("/cartorios/<cartorio_id>/permissoes")
    def permissoes(cartorio_id: str):
        selecao = svc.editor.open(cartorio_id)
        sistemas = svc.catalog.list_systems()
        return jsonify({
            "cartorio_id": cartorio_id,
            "selecao": selecao.to_list(),
            "sistemas": [
                {
                    "id": s.id,
                    "nome": s.nome,
                    "selecionado": selecao.is_system_selected(s.id),
                    "produtos": [
                        {"id": p.id, "nome": p.nome, "selecionado": selecao.is_product_selected(p.id)}
                        for p in s.produtos
                    ],
                }
                for s in sistemas
            ],
            "total_produtos": sum(1 for _ in iter_produtos(sistemas)),
        })

    @app.put("/cartorios/<cartorio_id>/permissoes")
    def salvar_permissoes(cartorio_id: str):
        data = request.get_json(silent=True) or {}
        entries = data.get("permissoes")
        if not isinstance(entries, list):
            return _erro(400, "Informe 'permissoes' como lista de {kind, target_id}")
        result = svc.editor.save(cartorio_id, entries)
        app.logger.info("Permissões salvas para cartório %s", cartorio_id)
        return jsonify({"ok": True, **result.to_dict()})

    # ===== progresso =====
    @app.get("/cartorios/<cartorio_id>/usuarios/<user_id>/progresso")
    def progresso_usuario(cartorio_id: str, user_id: str):
        return jsonify(svc.aggregator.compute_progress(cartorio_id, user_id).to_dict())

    @app.get("/cartorios/<cartorio_id>/progresso")
    def progresso_cartorio(cartorio_id: str):
        reports = svc.aggregator.compute_cartorio_progress(cartorio_id)
        return jsonify({"cartorio_id": cartorio_id, "usuarios": [r.to_dict() for r in reports]})

    @app.put("/usuarios/<user_id>/aulas/<aula_id>/conclusao")
    def conclusao(user_id: str, aula_id: str):
        data = request.get_json(silent=True) or {}
        completed = data.get("completed", True)
        if not isinstance(completed, bool):
            return _erro(400, "'completed' deve ser true ou false")
        rec = svc.tracker.upsert(user_id, aula_id, completed=completed)
        return jsonify({
            "ok": True,
            "user_id": user_id,
            "lesson_id": rec.lesson_id,
            "completed": rec.completed,
            "completed_at": rec.completed_at.isoformat() if rec.completed_at else None,
        })

    return app
