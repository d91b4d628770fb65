import io

import httpx
import pytest
from openpyxl import load_workbook
from PIL import Image

from orcabot.api.documents import format_brl, render_proposal_pdf, render_proposal_workbook
from orcabot.api.models import ProposalPhoto
from orcabot.api.proposals import build_proposal_view

PROPOSAL = """\
# Proposta Comercial

Sistema de portaria remota com controle de acesso facial.

```json
{
  "kits": [
    {"nome": "KIT PORTARIA", "codigo": "KIT-PORT", "qtd": 2, "valor_locacao": 100, "valor_instalacao": 300},
    {"nome": "KIT GARAGEM", "codigo": "KIT-GAR", "qtd": 1, "valor_locacao": 50, "valor_instalacao": 200, "desconto": 10}
  ],
  "avulsos": [{"nome": "Sirene", "codigo": "SIR-1", "qtd": 1, "valor_locacao": 5}],
  "aproveitados": [],
  "servicos": [],
  "ambientes": [{"nome": "Portaria", "equipamentos": ["2x KIT PORTARIA"], "descricao_funcionamento": "Acesso facial."}]
}
```
"""


def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), (232, 107, 36)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def view():
    sessao = {
        "nome_cliente": "Condomínio Jardim das Flores",
        "endereco_condominio": "Rua das Acácias, 100",
        "vendedor_nome": "Ana Souza",
        "proposta_gerada": PROPOSAL,
        "proposta_versao": 2,
    }
    fotos = [
        ProposalPhoto(nome="portaria.png", url="https://bucket.test/portaria.png"),
        ProposalPhoto(nome="expirada.png", url="https://bucket.test/expirada.png"),
        ProposalPhoto(nome="garagem.png", url="https://bucket.test/garagem.png"),
    ]
    return build_proposal_view(sessao, [], fotos)


def test_format_brl():
    assert format_brl(1234.5) == "R$ 1.234,50"


def test_pdf_skips_photo_whose_fetch_fails(view):
    fetched = []

    def fetch(url):
        fetched.append(url)
        if "expirada" in url:
            raise httpx.HTTPStatusError(
                "403 Forbidden", request=httpx.Request("GET", url), response=httpx.Response(403)
            )
        return png_bytes()

    content = render_proposal_pdf(view, fetch=fetch)

    assert content.startswith(b"%PDF")
    assert content.rstrip().endswith(b"%%EOF")
    assert len(fetched) == 3


def test_pdf_skips_unreadable_image_bytes(view):
    content = render_proposal_pdf(view, fetch=lambda url: b"not an image")

    assert content.startswith(b"%PDF")


def test_pdf_of_free_text_proposal():
    view = build_proposal_view({"proposta_gerada": "## Proposta\n\n**Mensalidade** sob consulta."}, [], [])

    assert render_proposal_pdf(view).startswith(b"%PDF")


def test_workbook_has_one_row_per_priced_item_and_matching_totals(view):
    wb = load_workbook(io.BytesIO(render_proposal_workbook(view)))

    assert wb.sheetnames == ["Detalhado", "Agrupado", "Resumo"]
    ws = wb["Detalhado"]
    rows = [r for r in ws.iter_rows(min_row=2, values_only=True) if r[1]]
    assert [(r[0], r[1], r[6]) for r in rows] == [
        ("Kit", "KIT PORTARIA", 200),
        ("Kit", "KIT GARAGEM", 45),
        ("Avulso", "Sirene", 5),
    ]
    total_row = ws.max_row
    assert ws.cell(row=total_row, column=1).value == "TOTAL"
    assert ws.cell(row=total_row, column=7).value == 250
    assert ws.cell(row=total_row, column=9).value == 780


def test_workbook_summary_sheet(view):
    wb = load_workbook(io.BytesIO(render_proposal_workbook(view)))

    summary = {row[0]: row[1] for row in wb["Resumo"].iter_rows(values_only=True)}
    assert summary["Cliente"] == "Condomínio Jardim das Flores"
    assert summary["Mensalidade"] == 250
    assert summary["Parcela (até 10x)"] == 78


def test_workbook_lists_scanned_lines_for_free_text_proposal():
    text = "| Qtd | Descrição |\n|---|---|\n| 3 | Câmera dome |"
    view = build_proposal_view({"proposta_gerada": text}, [], [])

    ws = load_workbook(io.BytesIO(render_proposal_workbook(view)))["Detalhado"]

    assert ws.cell(row=2, column=2).value == "Câmera dome"
    assert ws.cell(row=2, column=4).value == 3
    assert ws.cell(row=ws.max_row, column=7).value == 0
