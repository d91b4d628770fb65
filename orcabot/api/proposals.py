"""
Proposal parsing and derivations
================================

Turns the verbatim text persisted by a synthesis into what the proposal
screen and the document renderers display.

Key Functions
-------------
- parse_proposal        : body + structured items, tolerating free text and broken JSON
- compute_totals        : monthly and installation totals recomputed from the items
- line_total            : total of one item for one price column
- expand_items          : flatten kits into products using the kit catalog
- scan_equipment_lines  : fallback extractor over Markdown table rows
- infer_ambientes       : group scanned equipment into property zones
- build_proposal_view   : assemble the `ProposalView` for a session

Only `compute_totals` is a source of monetary truth. The scans are display
enrichment for proposals that came back without a structured block.
"""

import json
import logging
import re
import unicodedata
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from json_repair import repair_json
from pydantic import ValidationError

from orcabot.api.models import (
    Ambiente,
    ExpandedItem,
    ProposalItem,
    ProposalItems,
    ProposalPhoto,
    ProposalTotals,
    ProposalView,
    SessionSummary,
    coerce_number,
)

logger = logging.getLogger(__name__)

JSON_BLOCK = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
FENCED = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)
TABLE_ROW = re.compile(r"^\|\s*([\d.,]+)\s*(?:un\.?|und\.?)?\s*\|\s*(.+?)\s*\|", re.IGNORECASE)
CENTS = Decimal("0.01")
INSTALLMENTS = 10

GROUP_LABELS = {
    "kits": "KITS",
    "avulsos": "ITENS AVULSOS",
    "aproveitados": "ITENS APROVEITADOS (50% DO VALOR)",
    "servicos": "SERVIÇOS",
}
"""Item groups in display order."""

AMBIENT_RULES = [
    ("Portaria", "acesso_pedestre", r"portaria|facial|interfone|botoeira|leitor|ata kap", None,
     "Controle de acesso de pedestres com identificação e atendimento remoto."),
    ("Acesso Veicular", "acesso_veicular", r"port[ãa]o|controle remoto|cancela|acionamento", None,
     "Automação e controle dos portões de veículos."),
    ("CFTV", "cftv", r"c[âa]mera|dvr|nvr|stand alone|hd.*tera|bullet|dome", r"elevador",
     "Monitoramento por câmeras com gravação local."),
    ("Perímetro / Alarme", "perimetro", r"alarme|cerca|iva|sensor|sirene|choque|zona", None,
     "Proteção perimetral com sensores e alarme monitorado."),
    ("Elevadores", "elevador", r"elevador", None,
     "Câmeras e comunicação nas cabines de elevador."),
    ("Infraestrutura", "infraestrutura", r"cabo|infra|nobreak|switch|rack", None,
     "Cabeamento, energia e rede que sustentam os sistemas."),
]
"""(zone name, zone type, match pattern, exclusion pattern, description)."""


@dataclass
class ParsedProposal:
    """Result of `parse_proposal`."""
    body: str
    itens: Optional[ProposalItems]


def _load_json_object(raw: str) -> Optional[dict]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        try:
            data = json.loads(repair_json(raw))
        except (json.JSONDecodeError, ValueError, TypeError) as e:
            logger.info(f"Proposal JSON could not be repaired: {e}")
            return None
    return data if isinstance(data, dict) else None


def _items_from(data: dict) -> Optional[ProposalItems]:
    payload = data.get("itens") if isinstance(data.get("itens"), dict) else data
    try:
        items = ProposalItems.model_validate(payload)
    except ValidationError as e:
        logger.info(f"Proposal items rejected: {e.error_count()} validation errors")
        return None
    if items.is_empty() and not items.ambientes:
        return None
    return items


def parse_proposal(text: Optional[str]) -> ParsedProposal:
    """
    Split a model proposal into display body and structured items.

    Accepted shapes, in order:
    1. the whole text is a JSON object (optionally fenced): the body is its
       ``proposta`` field when present;
    2. Markdown followed by a fenced ```json block: the (last) block is
       removed from the body and parsed, repaired with `json_repair` if needed;
    3. anything else: the raw text is the body and items are None.

    Never raises on malformed model output.
    """
    raw = (text or "").strip()
    fenced = FENCED.match(raw)
    candidate = fenced.group(1).strip() if fenced else raw
    if candidate.startswith("{"):
        data = _load_json_object(candidate)
        if data is not None:
            body = data.get("proposta") if isinstance(data.get("proposta"), str) else raw
            return ParsedProposal(body=body.strip() or raw, itens=_items_from(data))

    blocks = list(JSON_BLOCK.finditer(raw))
    if blocks:
        block = blocks[-1]
        data = _load_json_object(block.group(1).strip())
        if data is not None:
            body = (raw[:block.start()] + raw[block.end():]).strip()
            return ParsedProposal(body=body or raw, itens=_items_from(data))

    return ParsedProposal(body=raw, itens=None)


def _decimal(value) -> Decimal:
    if value is None:
        return Decimal(0)
    return Decimal(str(value))


def line_total(item: ProposalItem, field: str) -> Decimal:
    """
    `price × qty × (1 − discount/100)` for one item, `field` being
    ``valor_locacao`` or ``valor_instalacao``. Items without price count as zero.
    """
    price = _decimal(getattr(item, field))
    discount = _decimal(item.desconto)
    return price * _decimal(item.qtd) * (Decimal(1) - discount / Decimal(100))


def iter_items(itens: Optional[ProposalItems]) -> Iterable[tuple[str, ProposalItem]]:
    """Yield ``(group, item)`` over every group in display order."""
    if itens is None:
        return
    for group in GROUP_LABELS:
        for item in getattr(itens, group):
            yield group, item


def compute_totals(itens: Optional[ProposalItems]) -> ProposalTotals:
    """
    Recompute the proposal totals from its items.

    Returns
    -------
    ProposalTotals
        mensalidade and taxa_instalacao rounded to cents, and the
        installation split in 10 installments.
    """
    mensalidade = Decimal(0)
    instalacao = Decimal(0)
    for _, item in iter_items(itens):
        mensalidade += line_total(item, "valor_locacao")
        instalacao += line_total(item, "valor_instalacao")
    mensalidade = mensalidade.quantize(CENTS, rounding=ROUND_HALF_UP)
    instalacao = instalacao.quantize(CENTS, rounding=ROUND_HALF_UP)
    parcela = (instalacao / INSTALLMENTS).quantize(CENTS, rounding=ROUND_HALF_UP)
    return ProposalTotals(mensalidade=float(mensalidade), taxa_instalacao=float(instalacao), parcela_10x=float(parcela))


def normalize_name(name: Optional[str]) -> str:
    """Lowercase, accent-free, single-spaced version of a catalog name."""
    text = unicodedata.normalize("NFKD", name or "")
    text = "".join(c for c in text if not unicodedata.combining(c))
    return " ".join(text.lower().split())


def _find_kit(item: ProposalItem, kits_catalog: list[dict]) -> Optional[dict]:
    if item.id_kit:
        for kit in kits_catalog:
            if kit.get("id_kit") == item.id_kit:
                return kit
    wanted = normalize_name(item.nome)
    for kit in kits_catalog:
        if normalize_name(kit.get("nome")) == wanted:
            return kit
    if item.codigo:
        for kit in kits_catalog:
            if kit.get("codigo") == item.codigo:
                return kit
    return None


def expand_items(itens: Optional[ProposalItems], kits_catalog: list[dict]) -> list[ExpandedItem]:
    """
    Flatten a proposal into individual products.

    Kits found in the catalog (by id, then normalized name, then code) are
    replaced by their products with quantity `kit item qty × kit qty`; unknown
    kits stay as a single line. Lines with the same code (or name) and origin
    are merged by summing quantities.
    """
    merged: dict[str, ExpandedItem] = {}

    def add(line: ExpandedItem):
        key = f"{(line.codigo or normalize_name(line.nome)).lower()}|{line.origem}"
        if key in merged:
            merged[key].qtd += line.qtd
        else:
            merged[key] = line

    if itens is None:
        return []

    for kit in itens.kits:
        catalog = _find_kit(kit, kits_catalog)
        origem = f"Kit: {kit.nome}"
        if catalog and catalog.get("itens"):
            for kit_item in catalog["itens"]:
                produto = kit_item.get("produto") or {}
                add(ExpandedItem(
                    nome=produto.get("nome") or "",
                    codigo=produto.get("codigo"),
                    categoria=produto.get("categoria"),
                    origem=origem,
                    qtd=float(kit_item.get("quantidade") or 1) * kit.qtd,
                    valor_locacao=produto.get("valor_locacao") or 0,
                    valor_instalacao=produto.get("valor_instalacao") or 0,
                    desconto=kit.desconto or 0,
                ))
        else:
            add(_expanded(kit, origem, categoria="Kit"))

    for group, origem in (("avulsos", "Avulso"), ("aproveitados", "Aproveitado (50%)"), ("servicos", "Serviço")):
        for item in getattr(itens, group):
            add(_expanded(item, origem))

    return list(merged.values())


def _expanded(item: ProposalItem, origem: str, categoria: Optional[str] = None) -> ExpandedItem:
    return ExpandedItem(
        nome=item.nome,
        codigo=item.codigo,
        categoria=categoria,
        origem=origem,
        qtd=item.qtd,
        valor_locacao=item.valor_locacao or 0,
        valor_instalacao=item.valor_instalacao or 0,
        desconto=item.desconto or 0,
    )


def scan_equipment_lines(text: Optional[str]) -> list[dict]:
    """
    Best-effort equipment extraction from Markdown table rows ``| qtd | descrição |``.

    Separator rows and header rows are skipped.

    Returns
    -------
    list[dict]
        ``{"qtd": float, "descricao": str}`` per row, in text order.
    """
    found = []
    for line in (text or "").splitlines():
        line = line.strip()
        if "---" in line:
            continue
        match = TABLE_ROW.match(line)
        if not match:
            continue
        descricao = match.group(2).strip().strip("*").strip()
        if normalize_name(descricao) in ("descricao", "item", "equipamento"):
            continue
        qtd = coerce_number(match.group(1))
        if qtd is None:
            continue
        found.append({"qtd": qtd, "descricao": descricao})
    return found


def _label(qtd: float, descricao: str) -> str:
    return f"{qtd:g}x {descricao}"


def infer_ambientes(equipment: list[dict]) -> list[Ambiente]:
    """
    Group scanned equipment lines into property zones by keyword.

    Each line goes to the first zone whose pattern matches; zones without
    equipment are omitted.
    """
    zones: dict[str, Ambiente] = {}
    for line in equipment:
        text = normalize_name(line["descricao"])
        for nome, tipo, pattern, exclude, descricao in AMBIENT_RULES:
            if not re.search(normalize_name(pattern), text):
                continue
            if exclude and re.search(exclude, text):
                continue
            zone = zones.setdefault(nome, Ambiente(nome=nome, tipo=tipo, descricao_funcionamento=descricao))
            zone.equipamentos.append(_label(line["qtd"], line["descricao"]))
            break
    order = [rule[0] for rule in AMBIENT_RULES]
    return sorted(zones.values(), key=lambda z: order.index(z.nome))


def _ambientes_from_items(itens: ProposalItems, photo_urls: dict[str, str]) -> list[Ambiente]:
    resolved = []
    for ambiente in itens.ambientes:
        fotos = [photo_urls[name] for name in ambiente.fotos if name in photo_urls]
        resolved.append(ambiente.model_copy(update={"fotos": fotos}))
    return resolved


def build_proposal_view(sessao: dict, kits_catalog: list[dict], fotos: list[ProposalPhoto]) -> ProposalView:
    """
    Assemble everything displayed for a session's current proposal.

    Parameters
    ----------
    sessao : dict
        Session as returned by the service layer (with `proposta_gerada`).
    kits_catalog : list[dict]
        Active kits with their composition, for kit expansion.
    fotos : list[ProposalPhoto]
        Visit photos already resolved to signed URLs.

    Returns
    -------
    ProposalView
        With structured items and recomputed totals when the proposal carries
        them, otherwise with the raw text and the fallback equipment scan.
    """
    parsed = parse_proposal(sessao.get("proposta_gerada"))
    photo_urls = {foto.nome: foto.url for foto in fotos}
    summary = SessionSummary(
        nome_cliente=sessao.get("nome_cliente"),
        endereco=sessao.get("endereco_condominio"),
        vendedor=sessao.get("vendedor_nome"),
        email=sessao.get("email_cliente"),
        telefone=sessao.get("telefone_cliente"),
    )
    view = ProposalView(
        proposta=parsed.body,
        itens=parsed.itens,
        fotos=fotos,
        sessao=summary,
        versao=sessao.get("proposta_versao") or 0,
        gerada_em=sessao.get("proposta_gerada_at"),
    )
    if parsed.itens is not None:
        view.itensExpandidos = expand_items(parsed.itens, kits_catalog)
        view.totais = compute_totals(parsed.itens)
        view.ambientes = _ambientes_from_items(parsed.itens, photo_urls)
    else:
        view.equipamentos_texto = scan_equipment_lines(parsed.body)
        view.ambientes = infer_ambientes(view.equipamentos_texto)
    return view
