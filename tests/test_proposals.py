import json

import pytest

from orcabot.api.models import ProposalItem, ProposalItems, ProposalPhoto
from orcabot.api.proposals import (
    build_proposal_view,
    compute_totals,
    expand_items,
    infer_ambientes,
    line_total,
    parse_proposal,
    scan_equipment_lines,
)

STRUCTURED = {
    "kits": [
        {"nome": "KIT PORTARIA", "codigo": "KIT-PORT", "qtd": 2, "valor_locacao": 100, "valor_instalacao": 300},
        {"nome": "KIT GARAGEM", "qtd": 1, "valor_locacao": 50, "valor_instalacao": 200, "desconto": 10},
    ],
    "avulsos": [],
    "aproveitados": [],
    "servicos": [],
    "ambientes": [
        {"nome": "Portaria", "tipo": "acesso_pedestre", "equipamentos": ["2x KIT PORTARIA"], "fotos": ["portaria.jpg", "sumiu.jpg"]},
    ],
}

MARKDOWN_TABLE = """\
## Equipamentos

| Qtd | Descrição |
|-----|-----------|
| 2 | Câmera bullet 1080p |
| 1 | Câmera elevador |
| 4 un | Leitor facial |
| 1 | Motor de portão deslizante |
| 1 | Nobreak 1200VA |
"""


def test_totals_apply_quantity_and_discount_per_line():
    itens = ProposalItems.model_validate(STRUCTURED)

    totals = compute_totals(itens)

    assert totals.mensalidade == 245.00
    assert totals.taxa_instalacao == 780.00
    assert totals.parcela_10x == 78.00


def test_totals_span_every_group():
    itens = ProposalItems(
        kits=[ProposalItem(nome="KIT PORTARIA", qtd=1, valor_locacao=100)],
        avulsos=[ProposalItem(nome="Sirene", qtd=3, valor_locacao="R$ 10,50")],
        aproveitados=[ProposalItem(nome="Câmera existente", qtd=2, valor_locacao=20, desconto=50)],
        servicos=[ProposalItem(nome="Monitoramento", qtd=1, valor_locacao="Sob consulta")],
    )

    assert compute_totals(itens).mensalidade == 100 + 31.5 + 20


def test_totals_of_empty_groups_are_zero():
    totals = compute_totals(ProposalItems())

    assert (totals.mensalidade, totals.taxa_instalacao, totals.parcela_10x) == (0, 0, 0)
    assert compute_totals(None).mensalidade == 0


@pytest.mark.parametrize("text, expected", [
    ("R$ 1.500", 1500.0),
    ("1.234.567", 1234567.0),
    ("R$ 1.234,50", 1234.5),
    ("12,5", 12.5),
    ("2.5", 2.5),
    ("Sob consulta", None),
])
def test_prices_written_as_brazilian_text(text, expected):
    assert ProposalItem(nome="KIT PORTARIA", qtd=1, valor_instalacao=text).valor_instalacao == expected


def test_totals_read_thousands_without_cents():
    itens = ProposalItems(kits=[ProposalItem(nome="KIT PORTARIA", qtd=2, valor_instalacao="R$ 1.500")])

    assert compute_totals(itens).taxa_instalacao == 3000.0


def test_line_total_treats_missing_price_as_zero():
    item = ProposalItem(nome="Projeto", qtd=2, valor_instalacao=None)

    assert line_total(item, "valor_instalacao") == 0


def test_parse_markdown_with_fenced_json_block():
    text = "# Proposta\n\nTexto comercial.\n\n```json\n" + json.dumps(STRUCTURED) + "\n```\n"

    parsed = parse_proposal(text)

    assert parsed.body == "# Proposta\n\nTexto comercial."
    assert [k.nome for k in parsed.itens.kits] == ["KIT PORTARIA", "KIT GARAGEM"]


def test_parse_whole_json_payload_uses_its_proposta_field():
    text = json.dumps({"proposta": "Resumo da proposta", "itens": STRUCTURED})

    parsed = parse_proposal(text)

    assert parsed.body == "Resumo da proposta"
    assert parsed.itens.kits[1].desconto == 10


def test_parse_repairs_slightly_broken_json():
    text = 'Proposta\n```json\n{"kits": [{"nome": "KIT PORTARIA", "qtd": 1, "valor_locacao": 90,}],}\n```'

    parsed = parse_proposal(text)

    assert parsed.body == "Proposta"
    assert parsed.itens.kits[0].valor_locacao == 90


@pytest.mark.parametrize("text", [
    "Proposta em texto livre, sem bloco estruturado.",
    "{ isto não é json",
    '```json\n["uma", "lista"]\n```',
])
def test_parse_falls_back_to_raw_text(text):
    parsed = parse_proposal(text)

    assert parsed.itens is None
    assert parsed.body == text.strip()


def test_expand_items_replaces_catalog_kits_by_products():
    itens = ProposalItems(
        kits=[ProposalItem(nome="Kit Portaria", qtd=2)],
        avulsos=[ProposalItem(nome="Leitor facial", codigo="LF-01", qtd=1, valor_locacao=40)],
    )
    kits_catalog = [{
        "id_kit": "k1",
        "nome": "KIT PORTARIA",
        "codigo": "KIT-PORT",
        "itens": [
            {"quantidade": 2, "produto": {"nome": "Leitor facial", "codigo": "LF-01", "valor_locacao": 40}},
            {"quantidade": 1, "produto": {"nome": "Fechadura magnética", "codigo": "FM-02", "valor_locacao": 15}},
        ],
    }]

    expanded = expand_items(itens, kits_catalog)

    by_origin = {(line.codigo, line.origem): line.qtd for line in expanded}
    assert by_origin == {
        ("LF-01", "Kit: Kit Portaria"): 4,
        ("FM-02", "Kit: Kit Portaria"): 2,
        ("LF-01", "Avulso"): 1,
    }


def test_expand_items_keeps_unknown_kit_as_one_line():
    itens = ProposalItems(kits=[ProposalItem(nome="KIT PISCINA", qtd=1, valor_locacao=70)])

    expanded = expand_items(itens, [])

    assert len(expanded) == 1
    assert expanded[0].categoria == "Kit"
    assert expanded[0].valor_locacao == 70


def test_scan_equipment_lines_reads_table_rows_only():
    lines = scan_equipment_lines(MARKDOWN_TABLE)

    assert lines == [
        {"qtd": 2.0, "descricao": "Câmera bullet 1080p"},
        {"qtd": 1.0, "descricao": "Câmera elevador"},
        {"qtd": 4.0, "descricao": "Leitor facial"},
        {"qtd": 1.0, "descricao": "Motor de portão deslizante"},
        {"qtd": 1.0, "descricao": "Nobreak 1200VA"},
    ]


def test_infer_ambientes_puts_each_line_in_its_first_zone():
    ambientes = infer_ambientes(scan_equipment_lines(MARKDOWN_TABLE))

    zones = {a.nome: a.equipamentos for a in ambientes}
    assert zones == {
        "Portaria": ["4x Leitor facial"],
        "Acesso Veicular": ["1x Motor de portão deslizante"],
        "CFTV": ["2x Câmera bullet 1080p"],
        "Elevadores": ["1x Câmera elevador"],
        "Infraestrutura": ["1x Nobreak 1200VA"],
    }
    assert [a.nome for a in ambientes][0] == "Portaria"


def test_view_of_structured_proposal_recomputes_totals_and_resolves_photos():
    sessao = {
        "nome_cliente": "Condomínio Aurora",
        "proposta_gerada": "Proposta\n```json\n" + json.dumps(STRUCTURED) + "\n```",
        "proposta_versao": 3,
    }
    fotos = [ProposalPhoto(nome="portaria.jpg", url="https://bucket.test/portaria.jpg?sig=1")]

    view = build_proposal_view(sessao, [], fotos)

    assert view.proposta == "Proposta"
    assert view.totais.mensalidade == 245.00
    assert view.ambientes[0].fotos == ["https://bucket.test/portaria.jpg?sig=1"]
    assert view.versao == 3
    assert view.equipamentos_texto == []


def test_view_of_free_text_proposal_falls_back_to_table_scan():
    sessao = {"nome_cliente": "Condomínio Aurora", "proposta_gerada": MARKDOWN_TABLE, "proposta_versao": 1}

    view = build_proposal_view(sessao, [], [])

    assert view.itens is None
    assert view.totais is None
    assert view.proposta == MARKDOWN_TABLE.strip()
    assert len(view.equipamentos_texto) == 5
    assert "CFTV" in [a.nome for a in view.ambientes]
