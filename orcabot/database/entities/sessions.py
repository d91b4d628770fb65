"""
OrcamentoSessao ORM Model
=========================

The ``OrcamentoSessao`` model represents one customer-visit / quote
conversation, stored in the ``orcamento_sessoes`` table and addressed from the
outside only by its opaque ``token`` (the quote link).

Lifecycle
~~~~~~~~~
``ativo`` → ``proposta_gerada`` → ``escopo_validado`` → ``relatorio_enviado``.
``cancelado`` is terminal and reachable from any non-final status.

Key features
~~~~~~~~~~~~
- UUID primary key and unique access token
- Customer and seller identification columns
- Latest generated proposal text (verbatim model output) and its timestamp
- ``proposta_versao``: monotonic generation counter, used as the optimistic
  concurrency token of proposal synthesis
"""

from orcabot.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import DateTime, Integer, TEXT
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime, timezone
from typing import Optional

STATUS_ATIVO = "ativo"
STATUS_PROPOSTA_GERADA = "proposta_gerada"
STATUS_ESCOPO_VALIDADO = "escopo_validado"
STATUS_RELATORIO_ENVIADO = "relatorio_enviado"
STATUS_CANCELADO = "cancelado"

CHAT_OPEN_STATUSES = (STATUS_ATIVO, STATUS_PROPOSTA_GERADA, STATUS_ESCOPO_VALIDADO)
"""Statuses in which the quote link still accepts chat turns and media."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrcamentoSessao(declarativeBase):
    """
    ORM model for the `orcamento_sessoes` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    token : str
        Opaque access token embedded in the quote link.
    status : str
        Lifecycle status (see module docstring).
    nome_cliente, email_cliente, telefone_cliente, endereco_condominio : str | None
        Customer data typed by the seller when issuing the link.
    vendedor_id, vendedor_nome : str | None
        Seller responsible for the quote.
    created_by, created_by_name : str | None
        Staff user that issued the link.
    proposta_gerada : str | None
        Latest proposal text returned by the model.
    proposta_gerada_at : datetime | None
        When the latest proposal was persisted.
    proposta_versao : int
        Number of proposals generated so far.
    created_at, updated_at : datetime
        Timestamps (UTC, timezone-aware).
    """

    __tablename__ = 'orcamento_sessoes'

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    token: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True, index=True)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default=STATUS_ATIVO)
    nome_cliente: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    email_cliente: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    telefone_cliente: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    endereco_condominio: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    vendedor_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    vendedor_nome: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_by_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    proposta_gerada: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    proposta_gerada_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    proposta_versao: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __init__(self, sessao_id: UUID, token: str, status: str = STATUS_ATIVO, **fields):
        """
        Initialize a new session.

        Parameters
        ----------
        sessao_id : UUID
            Unique identifier for the session.
        token : str
            Opaque access token.
        status : str
            Initial status, ``ativo`` unless importing existing data.
        **fields
            Any other column (customer, seller, creator data).
        """
        self.id = sessao_id
        self.token = token
        self.status = status
        self.proposta_versao = 0
        for key, value in fields.items():
            setattr(self, key, value)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "token": self.token,
            "status": self.status,
            "nome_cliente": self.nome_cliente,
            "email_cliente": self.email_cliente,
            "telefone_cliente": self.telefone_cliente,
            "endereco_condominio": self.endereco_condominio,
            "vendedor_id": self.vendedor_id,
            "vendedor_nome": self.vendedor_nome,
            "created_by": self.created_by,
            "created_by_name": self.created_by_name,
            "proposta_gerada": self.proposta_gerada,
            "proposta_gerada_at": self.proposta_gerada_at.isoformat() if self.proposta_gerada_at else None,
            "proposta_versao": self.proposta_versao,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __str__(self) -> str:
        return f"Sessao: id:{self.id}, cliente: {self.nome_cliente}, status: {self.status}"
