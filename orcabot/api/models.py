"""
Pydantic models used for request/response validation and API data contracts.

Request models validate what the browser sends; proposal models validate the
structured block the language model appends to a proposal, tolerating the
usual model sloppiness (prices written as text, quantities as strings).
"""

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class ChatTurn(BaseModel):
    """One role/content turn as held by the client."""
    role: Literal["user", "assistant", "system"] = Field(..., description="Author of the turn.", example="user")
    content: str = Field(..., description="Turn text.", example="O condomínio tem 2 portões de garagem.")


class ChatRequest(BaseModel):
    """
    Body of `POST /orcamento-chat`.

    Without `action` the call relays the conversation (SSE); with
    `action="gerar_proposta"` it synthesizes the commercial proposal (JSON).
    """
    token: Optional[str] = Field(None, description="Quote-link token.", example="f3b0c4...")
    sessao_id: Optional[str] = Field(None, description="Session id, accepted in place of the token by staff screens.")
    messages: List[ChatTurn] = Field(default_factory=list, description="Conversation as held by the client; only the last user turn is read.")
    action: Optional[Literal["gerar_proposta"]] = Field(None, description="Set to `gerar_proposta` to request the proposal.")


class SessionCreationDetails(BaseModel):
    """
    Data typed by the seller when issuing a quote link.
    """
    nome_cliente: str
    """Condominium or customer name."""
    email_cliente: Optional[str] = None
    """Customer e-mail."""
    telefone_cliente: Optional[str] = None
    """Customer phone."""
    endereco_condominio: Optional[str] = None
    """Site address."""
    vendedor_id: Optional[str] = None
    """Seller that owns the quote; defaults to the issuing user."""
    vendedor_nome: Optional[str] = None
    """Seller display name."""


class ReportRequest(BaseModel):
    """
    Visit report delivery request.
    """
    email_destino: str = Field(..., description="Recipient of the report.", example="vendedor@empresa.com.br")
    html_content: str = Field(..., description="Rendered HTML body of the report.")
    assunto: Optional[str] = Field(None, description="Subject line; a default one is built from the customer name.")


class FeedbackDetails(BaseModel):
    """
    Staff evaluation of a generated proposal.
    """
    sessao_id: str = Field(..., description="Evaluated session.")
    proposta_adequada: Literal["sim", "parcialmente", "nao"] = Field(..., description="Overall adequacy.", example="parcialmente")
    acertos: Optional[str] = Field(None, description="What the proposal got right.")
    erros: Optional[str] = Field(None, description="What the proposal got wrong.")
    sugestoes: Optional[str] = Field(None, description="Suggestions for next proposals.")
    nota_precisao: Optional[int] = Field(None, ge=1, le=5, description="Precision rating, 1 to 5.", example=4)


THOUSANDS_GROUPED = re.compile(r"-?\d{1,3}(\.\d{3})+")


def coerce_number(value):
    """Read numbers the model may write as text (``"R$ 1.234,50"``, ``"2"``).

    Dots are thousands separators when a comma is present or when they
    group digits in threes (``"1.500"`` is 1500). Anything that is not a
    number (``"Sob consulta"``) becomes None.
    """
    if value is None or isinstance(value, (int, float)):
        return value
    text = re.sub(r"[^\d,.\-]", "", str(value))
    if not text:
        return None
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    elif THOUSANDS_GROUPED.fullmatch(text):
        text = text.replace(".", "")
    try:
        return float(text)
    except ValueError:
        return None


class ProposalItem(BaseModel):
    """A priced line of the proposal (kit, standalone product, salvaged item or service)."""
    nome: str
    """Catalog name."""
    codigo: Optional[str] = None
    """Catalog code."""
    id_kit: Optional[str] = None
    """Kit id, for kit lines."""
    id_produto: Optional[str] = None
    """Product id, for product lines."""
    qtd: float = 1
    """Quantity."""
    valor_locacao: Optional[float] = None
    """Monthly rental price per unit; None means price on request."""
    valor_instalacao: Optional[float] = None
    """One-time installation price per unit."""
    desconto: Optional[float] = None
    """Discount percent applied to both prices."""

    @field_validator("qtd", mode="before")
    @classmethod
    def _qtd(cls, value):
        number = coerce_number(value)
        return 1 if number is None else number

    @field_validator("valor_locacao", "valor_instalacao", "desconto", mode="before")
    @classmethod
    def _money(cls, value):
        return coerce_number(value)

    @field_validator("id_kit", "id_produto", "codigo", mode="before")
    @classmethod
    def _ids(cls, value):
        return None if value is None else str(value)


class Ambiente(BaseModel):
    """A physical zone of the property with the equipment installed in it."""
    nome: str
    tipo: Optional[str] = None
    equipamentos: List[str] = Field(default_factory=list)
    descricao_funcionamento: Optional[str] = None
    fotos: List[str] = Field(default_factory=list)
    """Filenames of visit photos (resolved to signed URLs for display)."""


class ProposalItems(BaseModel):
    """Structured block appended by the model to a proposal."""
    kits: List[ProposalItem] = Field(default_factory=list)
    avulsos: List[ProposalItem] = Field(default_factory=list)
    aproveitados: List[ProposalItem] = Field(default_factory=list)
    servicos: List[ProposalItem] = Field(default_factory=list)
    mensalidade_total: Optional[float] = None
    """Total reported by the model; informative only, display totals are recomputed."""
    taxa_conexao_total: Optional[float] = None
    """Installation total reported by the model; informative only."""
    ambientes: List[Ambiente] = Field(default_factory=list)

    @field_validator("mensalidade_total", "taxa_conexao_total", mode="before")
    @classmethod
    def _totals(cls, value):
        return coerce_number(value)

    @field_validator("kits", "avulsos", "aproveitados", "servicos", "ambientes", mode="before")
    @classmethod
    def _lists(cls, value):
        return value or []

    def is_empty(self) -> bool:
        return not (self.kits or self.avulsos or self.aproveitados or self.servicos)


class ExpandedItem(BaseModel):
    """A single product line after kits are flattened."""
    nome: str
    codigo: Optional[str] = None
    categoria: Optional[str] = None
    origem: str
    qtd: float
    valor_locacao: float = 0
    valor_instalacao: float = 0
    desconto: float = 0


class ProposalTotals(BaseModel):
    """Totals recomputed from the items."""
    mensalidade: float
    taxa_instalacao: float
    parcela_10x: float


class SessionSummary(BaseModel):
    nome_cliente: Optional[str] = None
    endereco: Optional[str] = None
    vendedor: Optional[str] = None
    email: Optional[str] = None
    telefone: Optional[str] = None


class ProposalPhoto(BaseModel):
    nome: str
    url: str


class ProposalView(BaseModel):
    """
    Everything the proposal screen and the document renderers need.
    """
    proposta: str
    """Display body (Markdown without the structured block)."""
    itens: Optional[ProposalItems] = None
    """Structured items, None when the model answered in free text only."""
    itensExpandidos: List[ExpandedItem] = Field(default_factory=list)
    totais: Optional[ProposalTotals] = None
    ambientes: List[Ambiente] = Field(default_factory=list)
    equipamentos_texto: List[dict] = Field(default_factory=list)
    """Lines scanned from Markdown tables when no structure is available."""
    fotos: List[ProposalPhoto] = Field(default_factory=list)
    sessao: SessionSummary = Field(default_factory=SessionSummary)
    versao: int = 0
    gerada_em: Optional[str] = None


class MediaUploadResult(BaseModel):
    """Outcome of a multipart media upload."""
    enviados: List[dict]
    """Stored media records."""
    falhas: List[str]
    """Filenames that could not be stored."""
    mensagem: Optional[str]
    """Suggested chat line announcing the uploads."""
