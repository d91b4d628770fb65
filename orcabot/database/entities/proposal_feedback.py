"""
PropostaFeedback ORM Model
==========================

Evaluation of a generated proposal written by staff after a visit
(``orcamento_proposta_feedbacks`` table). Records are insert-only; the most
recent ones are fed back into the synthesis prompt so the model learns what
sellers flagged as right or wrong.

Key features
~~~~~~~~~~~~
- Tri-state adequacy (``sim`` / ``parcialmente`` / ``nao``)
- Free-text hits, misses and suggestions
- Optional 1–5 precision rating
"""

from orcabot.database.config.connection_engine import declarativeBase
from orcabot.database.entities.sessions import utc_now
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import CheckConstraint, ForeignKey, DateTime, Integer, TEXT
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime
from typing import Optional


class PropostaFeedback(declarativeBase):
    """
    ORM model for the `orcamento_proposta_feedbacks` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    sessao_id : UUID
        Evaluated session.
    created_by, created_by_name : str
        Author of the evaluation.
    proposta_adequada : str
        ``sim`` | ``parcialmente`` | ``nao``.
    acertos, erros, sugestoes : str | None
        Free-text notes.
    nota_precisao : int | None
        Rating from 1 to 5.
    created_at : datetime
        Creation time (UTC).
    """

    __tablename__ = 'orcamento_proposta_feedbacks'
    __table_args__ = (
        CheckConstraint("proposta_adequada IN ('sim', 'parcialmente', 'nao')", name="ck_feedback_adequada"),
        CheckConstraint("nota_precisao IS NULL OR (nota_precisao BETWEEN 1 AND 5)", name="ck_feedback_nota"),
    )

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    sessao_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey('orcamento_sessoes.id'), nullable=False, index=True
    )
    created_by: Mapped[str] = mapped_column(TEXT, nullable=False)
    created_by_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    proposta_adequada: Mapped[str] = mapped_column(TEXT, nullable=False)
    acertos: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    erros: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    sugestoes: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    nota_precisao: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __init__(self, feedback_id: UUID, sessao_id: UUID, created_by: str, proposta_adequada: str, **fields):
        self.id = feedback_id
        self.sessao_id = sessao_id
        self.created_by = created_by
        self.proposta_adequada = proposta_adequada
        for key, value in fields.items():
            setattr(self, key, value)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "sessao_id": str(self.sessao_id),
            "created_by": self.created_by,
            "created_by_name": self.created_by_name,
            "proposta_adequada": self.proposta_adequada,
            "acertos": self.acertos,
            "erros": self.erros,
            "sugestoes": self.sugestoes,
            "nota_precisao": self.nota_precisao,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self) -> str:
        return f"Feedback: sessao:{self.sessao_id}, adequada: {self.proposta_adequada}, nota: {self.nota_precisao}"
