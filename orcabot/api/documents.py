"""
Proposal Documents (PDF • XLSX)
===============================

Purpose
-------
Stateless renderers from a `ProposalView` to downloadable bytes:
- render_proposal_pdf      : branded commercial proposal (fpdf2)
- render_proposal_workbook : line-item spreadsheet (openpyxl)

Neither renderer touches the database. The only network access is
`fetch_image`, which downloads already-signed photo URLs for the PDF appendix;
a photo that cannot be fetched or decoded is logged and skipped.

Totals printed in both documents come from `compute_totals`, and row totals
from `line_total`, so the documents always agree with the proposal screen.
"""

import io
import logging
import re
from datetime import date
from typing import Callable, Optional

import httpx
from fpdf import FPDF
from fpdf.enums import XPos, YPos
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from orcabot.api.models import ProposalView
from orcabot.api.proposals import GROUP_LABELS, compute_totals, iter_items, line_total
from orcabot.database.config.config import settings

logger = logging.getLogger(__name__)

BRAND_RGB = (232, 107, 36)
BRAND_HEX = "E86B24"
PHOTO_W, PHOTO_H = 80, 60
VALIDITY_NOTICE = "ESTA PROPOSTA TEM VALIDADE DE 5 DIAS ÚTEIS."

HEADER_FILL = PatternFill(start_color=BRAND_HEX, end_color=BRAND_HEX, fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
TOTAL_FONT = Font(bold=True)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
MONEY_FORMAT = '"R$" #,##0.00'
SHEET_GROUPS = {"kits": "Kit", "avulsos": "Avulso", "aproveitados": "Aproveitado (50%)", "servicos": "Serviço"}


def format_brl(valor: float) -> str:
    s = f"{valor:,.2f}"
    s = s.replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {s}"


def latin1(s: str) -> str:
    return (s or "").encode("latin-1", "replace").decode("latin-1")


def truncate(text: Optional[str], size: int) -> str:
    text = text or ""
    return text if len(text) <= size else text[: size - 3] + "..."


def plain_text(markdown: str) -> str:
    """Drop the Markdown markers that would print literally in the PDF."""
    text = re.sub(r"^#+\s*", "", markdown or "", flags=re.MULTILINE)
    return text.replace("**", "").replace("__", "")


def fetch_image(url: str) -> bytes:
    """Download an image from a (presigned) URL."""
    response = httpx.get(url, timeout=15, follow_redirects=True)
    response.raise_for_status()
    return response.content


class ProposalPDF(FPDF):
    """A4 page with the brand band on top and the proposal footer on every page."""

    def __init__(self, proposal_label: str):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.proposal_label = proposal_label
        self.set_auto_page_break(auto=True, margin=22)
        self.alias_nb_pages()

    def header(self):
        self.set_fill_color(*BRAND_RGB)
        self.rect(0, 0, 210, 24, "F")
        self.set_text_color(255, 255, 255)
        self.set_xy(10, 7)
        self.set_font("Helvetica", "B", 16)
        self.cell(120, 10, latin1("PROPOSTA COMERCIAL"))
        self.set_font("Helvetica", "", 9)
        self.set_xy(130, 6)
        self.cell(70, 5, latin1("OUTSOURCING PCI"), align="R")
        self.set_xy(130, 12)
        self.cell(70, 5, latin1(date.today().strftime("%d/%m/%Y")), align="R")
        self.set_text_color(0, 0, 0)
        self.set_y(30)

    def footer(self):
        self.set_y(-18)
        self.set_font("Helvetica", "", 8)
        self.set_text_color(110, 110, 110)
        self.cell(
            0, 5,
            latin1(f"{settings.COMPANY_NAME} - Outsourcing PCI | Proposta {self.proposal_label} | Página {self.page_no()}/{{nb}}"),
            align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT,
        )
        self.set_font("Helvetica", "B", 8)
        self.cell(0, 5, latin1(VALIDITY_NOTICE), align="C")
        self.set_text_color(0, 0, 0)

    def section_title(self, title: str):
        self.ln(3)
        self.set_font("Helvetica", "B", 11)
        self.set_text_color(*BRAND_RGB)
        self.cell(0, 7, latin1(title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_text_color(0, 0, 0)


def _pdf_client_block(pdf: ProposalPDF, data: ProposalView):
    pdf.set_font("Helvetica", "", 10)
    rows = [
        ("Cliente", data.sessao.nome_cliente),
        ("Endereço", data.sessao.endereco),
        ("Consultor", data.sessao.vendedor),
    ]
    for label, value in rows:
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(25, 6, latin1(f"{label}:"))
        pdf.set_font("Helvetica", "", 10)
        pdf.multi_cell(0, 6, latin1(value or "-"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def _pdf_item_tables(pdf: ProposalPDF, data: ProposalView):
    widths = (15, 85, 25, 30, 35)
    for group, title in GROUP_LABELS.items():
        items = getattr(data.itens, group)
        if not items:
            continue
        pdf.section_title(title)
        pdf.set_font("Helvetica", "B", 9)
        pdf.set_fill_color(*BRAND_RGB)
        pdf.set_text_color(255, 255, 255)
        for width, label in zip(widths, ("Qtd", "Descrição", "Código", "Locação (un)", "Total")):
            pdf.cell(width, 7, latin1(label), border=1, fill=True, align="C")
        pdf.ln()
        pdf.set_text_color(0, 0, 0)
        pdf.set_font("Helvetica", "", 9)
        for item in items:
            unit = format_brl(item.valor_locacao) if item.valor_locacao is not None else "Sob consulta"
            total = format_brl(float(line_total(item, "valor_locacao"))) if item.valor_locacao is not None else "-"
            row = (f"{item.qtd:g}", truncate(item.nome, 50), item.codigo or "-", unit, total)
            for width, value, align in zip(widths, row, ("C", "L", "C", "R", "R")):
                pdf.cell(width, 6, latin1(value), border=1, align=align)
            pdf.ln()


def _pdf_totals(pdf: ProposalPDF, data: ProposalView):
    totals = compute_totals(data.itens)
    pdf.ln(4)
    if pdf.get_y() + 28 > pdf.h - 22:
        pdf.add_page()
    pdf.set_draw_color(*BRAND_RGB)
    top = pdf.get_y()
    pdf.rect(10, top, 190, 24)
    pdf.set_xy(14, top + 3)
    pdf.set_font("Helvetica", "B", 11)
    pdf.cell(0, 6, latin1(f"MENSALIDADE: {format_brl(totals.mensalidade)}/mês"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_x(14)
    pdf.cell(0, 6, latin1(f"TAXA DE INSTALAÇÃO: {format_brl(totals.taxa_instalacao)}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_x(14)
    pdf.set_font("Helvetica", "", 9)
    pdf.cell(0, 6, latin1(f"Taxa de instalação parcelada em até 10x de {format_brl(totals.parcela_10x)}"))
    pdf.set_draw_color(0, 0, 0)
    pdf.set_y(top + 28)


def _pdf_ambientes(pdf: ProposalPDF, data: ProposalView):
    if not data.ambientes:
        return
    pdf.section_title("AMBIENTES E EQUIPAMENTOS")
    for ambiente in data.ambientes:
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(0, 6, latin1(ambiente.nome), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", "", 9)
        if ambiente.descricao_funcionamento:
            pdf.multi_cell(0, 5, latin1(ambiente.descricao_funcionamento), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        for equipamento in ambiente.equipamentos:
            pdf.cell(0, 5, latin1(f"  - {equipamento}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(1)


def _pdf_photos(pdf: ProposalPDF, data: ProposalView, fetch: Callable[[str], bytes]) -> int:
    if not data.fotos:
        return 0
    pdf.add_page()
    pdf.section_title("FOTOS DA VISITA TÉCNICA")
    embedded = 0
    column = 0
    y = pdf.get_y() + 2
    for foto in data.fotos:
        try:
            raw = fetch(foto.url)
        except Exception as e:
            logger.warning(f"Skipping photo {foto.nome}: fetch failed ({e})")
            continue
        if column == 0 and y + PHOTO_H + 8 > pdf.h - 22:
            pdf.add_page()
            y = pdf.get_y()
        x = 10 + column * (PHOTO_W + 15)
        try:
            pdf.image(io.BytesIO(raw), x=x, y=y, w=PHOTO_W, h=PHOTO_H)
        except Exception as e:
            logger.warning(f"Skipping photo {foto.nome}: not embeddable ({e})")
            continue
        pdf.set_xy(x, y + PHOTO_H + 1)
        pdf.set_font("Helvetica", "", 8)
        pdf.cell(PHOTO_W, 4, latin1(truncate(foto.nome, 25)), align="C")
        embedded += 1
        column = (column + 1) % 2
        if column == 0:
            y += PHOTO_H + 10
    return embedded


def render_proposal_pdf(data: ProposalView, fetch: Callable[[str], bytes] = fetch_image) -> bytes:
    """
    Render the commercial proposal as a PDF.

    Parameters
    ----------
    data : ProposalView
        Proposal as returned by `build_proposal_view`.
    fetch : callable, optional
        Downloads one photo URL; injectable for tests.

    Returns
    -------
    bytes
        The PDF document.
    """
    pdf = ProposalPDF(proposal_label=str(data.versao or 1))
    pdf.add_page()
    _pdf_client_block(pdf, data)

    if data.itens is not None:
        _pdf_item_tables(pdf, data)
        _pdf_totals(pdf, data)
    else:
        pdf.section_title("PROPOSTA")
        pdf.set_font("Helvetica", "", 9)
        pdf.multi_cell(0, 5, latin1(plain_text(data.proposta)), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    _pdf_ambientes(pdf, data)
    embedded = _pdf_photos(pdf, data, fetch)
    logger.info(f"Proposal PDF rendered with {embedded}/{len(data.fotos)} photos")
    return bytes(pdf.output())


def _header_row(ws, row: int, headers: list[str]):
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center")


def _widths(ws, widths: list[int]):
    for col, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(col)].width = width


def render_proposal_workbook(data: ProposalView) -> bytes:
    """
    Render the proposal as an Excel workbook.

    Sheets
    ------
    - Detalhado: one row per priced line item and a TOTAL row
    - Agrupado : expanded equipment merged by code (bill of materials)
    - Resumo   : customer, seller, date and totals

    Returns
    -------
    bytes
        The .xlsx file content.
    """
    wb = Workbook()

    ws = wb.active
    ws.title = "Detalhado"
    headers = ["Grupo", "Descrição", "Código", "Qtd", "Locação Unitária", "Desconto (%)",
               "Locação Total", "Instalação Unitária", "Instalação Total"]
    _header_row(ws, 1, headers)
    row = 1
    for group, item in iter_items(data.itens):
        row += 1
        values = [
            SHEET_GROUPS[group],
            item.nome,
            item.codigo,
            item.qtd,
            item.valor_locacao,
            item.desconto or 0,
            float(line_total(item, "valor_locacao")),
            item.valor_instalacao,
            float(line_total(item, "valor_instalacao")),
        ]
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row, column=col, value=value)
            cell.border = THIN_BORDER
            if col in (5, 7, 8, 9):
                cell.number_format = MONEY_FORMAT
    if data.itens is None:
        for line in data.equipamentos_texto:
            row += 1
            ws.cell(row=row, column=1, value="Proposta (texto)")
            ws.cell(row=row, column=2, value=line["descricao"])
            ws.cell(row=row, column=4, value=line["qtd"])

    totals = compute_totals(data.itens)
    row += 2
    ws.cell(row=row, column=1, value="TOTAL").font = TOTAL_FONT
    for col, value in ((7, totals.mensalidade), (9, totals.taxa_instalacao)):
        cell = ws.cell(row=row, column=col, value=value)
        cell.font = TOTAL_FONT
        cell.number_format = MONEY_FORMAT
    _widths(ws, [22, 45, 14, 8, 18, 13, 16, 20, 18])

    ws = wb.create_sheet("Agrupado")
    _header_row(ws, 1, ["Descrição", "Código", "Categoria", "Qtd Total", "Origens"])
    grouped: dict[str, dict] = {}
    for item in data.itensExpandidos:
        key = (item.codigo or item.nome).lower()
        entry = grouped.setdefault(key, {"nome": item.nome, "codigo": item.codigo, "categoria": item.categoria, "qtd": 0, "origens": []})
        entry["qtd"] += item.qtd
        if item.origem not in entry["origens"]:
            entry["origens"].append(item.origem)
    for row, entry in enumerate(sorted(grouped.values(), key=lambda e: e["nome"].lower()), 2):
        values = [entry["nome"], entry["codigo"], entry["categoria"], entry["qtd"], ", ".join(entry["origens"])]
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=value).border = THIN_BORDER
    _widths(ws, [45, 14, 18, 10, 40])

    ws = wb.create_sheet("Resumo")
    summary = [
        ("Cliente", data.sessao.nome_cliente),
        ("Endereço", data.sessao.endereco),
        ("Consultor", data.sessao.vendedor),
        ("Data", date.today().strftime("%d/%m/%Y")),
        ("Mensalidade", totals.mensalidade),
        ("Taxa de Instalação", totals.taxa_instalacao),
        ("Parcela (até 10x)", totals.parcela_10x),
    ]
    for row, (label, value) in enumerate(summary, 1):
        ws.cell(row=row, column=1, value=label).font = TOTAL_FONT
        cell = ws.cell(row=row, column=2, value=value)
        if isinstance(value, float):
            cell.number_format = MONEY_FORMAT
    _widths(ws, [22, 50])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
