from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import FrozenSet, Optional, Set

from ..errors import ValidationError, ValidationIssue
from ..models import CompletionRecord
from ..persistence.base import CompletionRepo

logger = logging.getLogger(__name__)


class CompletionTracker:
    """Registro de conclusão de videoaulas (upsert por usuário + aula)."""

    def __init__(self, completions: CompletionRepo) -> None:
        self.completions = completions

    def upsert(
        self,
        user_id: str,
        lesson_id: str,
        completed: bool = True,
        completed_at: Optional[datetime] = None,
    ) -> CompletionRecord:
        if not (user_id or "").strip() or not (lesson_id or "").strip():
            raise ValidationError(
                [ValidationIssue(0, None, lesson_id, "user_id e lesson_id são obrigatórios")],
                "user_id e lesson_id são obrigatórios.",
            )
        if completed and completed_at is None:
            completed_at = datetime.now(timezone.utc)
        if not completed:
            completed_at = None
        self.completions.upsert(user_id, lesson_id, bool(completed), completed_at)
        logger.info("Aula %s do usuário %s -> completed=%s", lesson_id, user_id, bool(completed))
        return CompletionRecord(lesson_id=lesson_id, completed=bool(completed), completed_at=completed_at)

    def get_completions(self, user_id: str) -> FrozenSet[CompletionRecord]:
        return frozenset(self.completions.list_for_user(user_id))

    def completed_lesson_ids(self, user_id: str) -> Set[str]:
        return {r.lesson_id for r in self.completions.list_for_user(user_id) if r.completed}
