"""
OrcamentoMensagem ORM Model
===========================

One turn of a quote conversation (``orcamento_mensagens`` table). Rows are
append-only: the relay inserts them and nothing updates them afterwards.
Read in ``seq`` order, a session's rows are exactly the conversation
replayed to the language model.
"""

from orcabot.database.config.connection_engine import declarativeBase
from orcabot.database.entities.sessions import utc_now
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import ForeignKey, DateTime, Integer, TEXT
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


class OrcamentoMensagem(declarativeBase):
    """
    ORM model for the `orcamento_mensagens` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    sessao_id : UUID
        Foreign key to `orcamento_sessoes.id`.
    role : str
        ``user`` or ``assistant``.
    content : str
        Message text.
    seq : int
        Position in the session log, 1-based; the ordering key of the log.
    created_at : datetime
        Insert time (UTC).
    """

    __tablename__ = 'orcamento_mensagens'

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    sessao_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey('orcamento_sessoes.id'), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(TEXT, nullable=False)
    content: Mapped[str] = mapped_column(TEXT, nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __init__(self, message_id: UUID, sessao_id: UUID, role: str, content: str, seq: int = 0, created_at=None):
        self.id = message_id
        self.sessao_id = sessao_id
        self.role = role
        self.content = content
        self.seq = seq
        if isinstance(created_at, str):
            self.created_at = datetime.fromisoformat(created_at)
        else:
            self.created_at = created_at or utc_now()

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "sessao_id": str(self.sessao_id),
            "role": self.role,
            "content": self.content,
            "seq": self.seq,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self) -> str:
        return f"Mensagem: sessao:{self.sessao_id}, role: {self.role}, created_at: {self.created_at}"
