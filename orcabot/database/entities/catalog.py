"""
Catalog ORM Models — products, kits and kit composition
=======================================================

Read-only reference tables maintained by the commercial team. The chat and
synthesis prompts quote them verbatim so the model only names catalog items,
and kit composition is used to expand a proposal into individual products.

Tables
------
- ``orcamento_produtos``: priced products (rental and installation values)
- ``orcamento_kits``: bundles with their own prices and usage rules
- ``orcamento_kit_itens``: product quantities inside a kit
"""

from orcabot.database.config.connection_engine import declarativeBase
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import Boolean, ForeignKey, JSON, Numeric, TEXT
from sqlalchemy.orm import Mapped, mapped_column, relationship
from uuid import UUID
from typing import Optional

Money = Numeric(12, 2, asdecimal=False)


class Produto(declarativeBase):
    """A priced catalog product."""

    __tablename__ = 'orcamento_produtos'

    id_produto: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    codigo: Mapped[str] = mapped_column(TEXT, nullable=False)
    nome: Mapped[str] = mapped_column(TEXT, nullable=False)
    categoria: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    subgrupo: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    unidade: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    preco_unitario: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    valor_minimo: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    valor_locacao: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    valor_instalacao: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id_produto": str(self.id_produto),
            "codigo": self.codigo,
            "nome": self.nome,
            "categoria": self.categoria,
            "subgrupo": self.subgrupo,
            "unidade": self.unidade,
            "preco_unitario": self.preco_unitario,
            "valor_minimo": self.valor_minimo,
            "valor_locacao": self.valor_locacao,
            "valor_instalacao": self.valor_instalacao,
        }


class KitItem(declarativeBase):
    """Quantity of a product inside a kit."""

    __tablename__ = 'orcamento_kit_itens'

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    id_kit: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), ForeignKey('orcamento_kits.id_kit'), nullable=False)
    id_produto: Mapped[UUID] = mapped_column(
        pgUUID(as_uuid=True), ForeignKey('orcamento_produtos.id_produto'), nullable=False
    )
    quantidade: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False, default=1)

    produto: Mapped[Produto] = relationship(Produto, lazy="joined")


class Kit(declarativeBase):
    """A product bundle with its own prices and selection rules."""

    __tablename__ = 'orcamento_kits'

    id_kit: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True)
    codigo: Mapped[str] = mapped_column(TEXT, nullable=False)
    nome: Mapped[str] = mapped_column(TEXT, nullable=False)
    categoria: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    preco_kit: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    valor_locacao: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    valor_instalacao: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    descricao_uso: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    palavras_chave: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    regras_condicionais: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    itens: Mapped[list[KitItem]] = relationship(KitItem, lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id_kit": str(self.id_kit),
            "codigo": self.codigo,
            "nome": self.nome,
            "categoria": self.categoria,
            "preco_kit": self.preco_kit,
            "valor_locacao": self.valor_locacao,
            "valor_instalacao": self.valor_instalacao,
            "descricao_uso": self.descricao_uso,
            "palavras_chave": self.palavras_chave or [],
            "regras_condicionais": self.regras_condicionais,
            "itens": [
                {
                    "quantidade": item.quantidade,
                    "produto": {
                        "id_produto": str(item.produto.id_produto),
                        "codigo": item.produto.codigo,
                        "nome": item.produto.nome,
                        "categoria": item.produto.categoria,
                        "valor_locacao": item.produto.valor_locacao,
                        "valor_instalacao": item.produto.valor_instalacao,
                    },
                }
                for item in self.itens
            ],
        }
