"""
OrcamentoMidia ORM Model
========================

Pointer to an object uploaded during a visit (``orcamento_midias`` table).
``arquivo_url`` holds the storage key, never a public URL; callers resolve it
to a short-lived presigned link when they need to display or embed it.
"""

from orcabot.database.config.connection_engine import declarativeBase
from orcabot.database.entities.sessions import utc_now
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import ForeignKey, DateTime, Integer, TEXT
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime
from typing import Optional

TIPO_FOTO = "foto"
TIPO_VIDEO = "video"
TIPO_AUDIO = "audio"
TIPO_OUTRO = "outro"


def media_type_from_mime(mime: Optional[str]) -> str:
    """Coarse type tag of an upload from its MIME type."""
    mime = (mime or "").lower()
    if mime.startswith("image/"):
        return TIPO_FOTO
    if mime.startswith("video/"):
        return TIPO_VIDEO
    if mime.startswith("audio/"):
        return TIPO_AUDIO
    return TIPO_OUTRO


class OrcamentoMidia(declarativeBase):
    """
    ORM model for the `orcamento_midias` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    sessao_id : UUID
        Owning session.
    mensagem_id : UUID | None
        Message the upload was announced in, when known.
    tipo : str
        ``foto`` | ``video`` | ``audio`` | ``outro``.
    arquivo_url : str
        Object-storage key.
    nome_arquivo : str
        Original filename.
    tamanho : int | None
        Size in bytes.
    descricao : str | None
        Optional caption.
    created_at : datetime
        Upload time (UTC).
    """

    __tablename__ = 'orcamento_midias'

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    sessao_id: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey('orcamento_sessoes.id'), nullable=False, index=True
    )
    mensagem_id: Mapped[Optional[UUID]] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey('orcamento_mensagens.id'), nullable=True
    )
    tipo: Mapped[str] = mapped_column(TEXT, nullable=False, default=TIPO_OUTRO)
    arquivo_url: Mapped[str] = mapped_column(TEXT, nullable=False)
    nome_arquivo: Mapped[str] = mapped_column(TEXT, nullable=False)
    tamanho: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    descricao: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __init__(self, midia_id: UUID, sessao_id: UUID, tipo: str, arquivo_url: str, nome_arquivo: str,
                 tamanho: Optional[int] = None, descricao: Optional[str] = None, mensagem_id: Optional[UUID] = None):
        self.id = midia_id
        self.sessao_id = sessao_id
        self.tipo = tipo
        self.arquivo_url = arquivo_url
        self.nome_arquivo = nome_arquivo
        self.tamanho = tamanho
        self.descricao = descricao
        self.mensagem_id = mensagem_id

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "sessao_id": str(self.sessao_id),
            "mensagem_id": str(self.mensagem_id) if self.mensagem_id else None,
            "tipo": self.tipo,
            "arquivo_url": self.arquivo_url,
            "nome_arquivo": self.nome_arquivo,
            "tamanho": self.tamanho,
            "descricao": self.descricao,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
