"""
Commercial history ORM Models
=============================

Past deals (``projects``) and the active customer base
(``customer_portfolio``). Both are owned by other parts of the business
system; this service only samples a few recent rows as grounding examples for
the language model.
"""

from orcabot.database.config.connection_engine import declarativeBase
from orcabot.database.entities.sessions import utc_now
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import DateTime, Integer, JSON, Numeric, TEXT
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime
from typing import Optional


class CustomerPortfolio(declarativeBase):
    """A customer currently under contract."""

    __tablename__ = 'customer_portfolio'

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    razao_social: Mapped[str] = mapped_column(TEXT, nullable=False)
    unidades: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tipo: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    mensalidade: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    taxa_ativacao: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    cameras: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    portoes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    portas: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def to_dict(self) -> dict:
        return {
            "razao_social": self.razao_social,
            "unidades": self.unidades,
            "tipo": self.tipo,
            "mensalidade": self.mensalidade,
            "taxa_ativacao": self.taxa_ativacao,
            "cameras": self.cameras,
            "portoes": self.portoes,
            "portas": self.portas,
        }


class Project(declarativeBase):
    """A closed deal with the sale form filled in by the seller."""

    __tablename__ = 'projects'

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    cliente_condominio_nome: Mapped[str] = mapped_column(TEXT, nullable=False)
    cliente_cidade: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    cliente_estado: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    numero_unidades: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    produto: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    sale_form: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def to_dict(self) -> dict:
        return {
            "cliente_condominio_nome": self.cliente_condominio_nome,
            "cliente_cidade": self.cliente_cidade,
            "cliente_estado": self.cliente_estado,
            "numero_unidades": self.numero_unidades,
            "produto": self.produto,
            "sale_form": self.sale_form or {},
        }
