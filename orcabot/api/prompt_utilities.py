"""
Prompt Building & Upload Helpers
================================

Purpose
-------
Builds the two system prompts of the quote flow and the small helpers used
when visit media is uploaded.

Key Functions
-------------
- build_visit_prompt     : system prompt of the technical-visit chat
- build_proposal_prompt  : system prompt of the proposal synthesis
- format_feedback_lessons: past staff evaluations rendered as prompt lessons
- guess_ext              : file extension from a filename
- build_storage_key      : object key `{sessao_id}/{timestamp}_{rand}{ext}`
- media_announcement     : chat line announcing uploaded files

Both prompts embed the catalog and a bounded sample of commercial history
and instruct the model to write "Sob consulta" for anything without a
catalog price.
"""

import json
import os
import secrets
import time
from datetime import date

from orcabot.database.config.config import settings

PROPOSAL_INSTRUCTION = (
    "Com base em toda a conversa acima, gere agora a proposta comercial completa "
    "no formato obrigatório, seguida do bloco ```json com os itens estruturados."
)
"""Closing user turn appended to the log for the synthesis call."""

PRICE_DISCLAIMER = (
    "Nunca invente preços. Qualquer item sem valor no catálogo deve aparecer como \"Sob consulta\" "
    "e ficar com valor null no bloco JSON."
)

VISIT_CHECKLIST = """\
1. Informações gerais: produto desejado (portaria remota, autônoma ou híbrida), número de unidades e blocos.
2. Acesso de pedestres: quantidade de portas/eclusas, tipo de leitor (facial, tag, senha), botoeiras.
3. Acesso de veículos: quantidade de portões, tipo de motor, controles remotos, cancelas.
4. CFTV: câmeras existentes (aproveitáveis ou não), gravadores, pontos a cobrir.
5. Perímetro: cerca elétrica, sensores IVA, zonas de alarme.
6. Interfonia: central existente (analógica, híbrida ou digital) e quantidade de interfones.
7. Infraestrutura: rede, cabeamento, nobreak, rack e energia nos pontos."""

STRUCTURED_BLOCK_SPEC = """\
Ao final da proposta inclua um único bloco ```json com exatamente esta estrutura:
{
  "kits": [{"nome": "NOME DO KIT", "codigo": "COD", "id_kit": "ID", "qtd": 1, "valor_locacao": 0.0, "valor_instalacao": 0.0, "desconto": 0}],
  "avulsos": [{"nome": "NOME DO PRODUTO", "codigo": "COD", "id_produto": "ID", "qtd": 1, "valor_locacao": 0.0, "valor_instalacao": 0.0, "desconto": 0}],
  "aproveitados": [{"nome": "NOME DO PRODUTO", "codigo": "COD", "id_produto": "ID", "qtd": 1, "valor_locacao": 0.0, "valor_instalacao": 0.0, "desconto": 50}],
  "servicos": [{"nome": "NOME DO SERVIÇO", "codigo": "COD", "qtd": 1, "valor_locacao": 0.0, "valor_instalacao": 0.0, "desconto": 0}],
  "ambientes": [{"nome": "Portaria", "tipo": "acesso_pedestre", "equipamentos": ["1x LEITOR FACIAL"], "descricao_funcionamento": "...", "fotos": ["arquivo.jpg"]}],
  "mensalidade_total": 0.0,
  "taxa_conexao_total": 0.0
}
Regras do bloco:
- valor_locacao e valor_instalacao são os valores UNITÁRIOS do catálogo, sem desconto aplicado.
- desconto é um percentual; itens aproveitados usam sempre desconto 50.
- "fotos" só pode conter nomes de arquivos enviados durante a visita."""


def _dump(rows) -> str:
    return json.dumps(rows, ensure_ascii=False, default=str)


def _session_header(sessao: dict) -> str:
    return (
        f"Cliente/condomínio: {sessao.get('nome_cliente') or 'não informado'}\n"
        f"Endereço: {sessao.get('endereco_condominio') or 'não informado'}\n"
        f"Vendedor: {sessao.get('vendedor_nome') or 'não informado'}"
    )


def format_feedback_lessons(feedbacks: list[dict]) -> str:
    """
    Render past proposal evaluations as one line each.

    Example
    -------
    ``⚠️ Nota 3/5 | Acertos: kits de câmera | Erros: esqueceu o ATA | Sugestão: ...``
    """
    icons = {"sim": "✅", "parcialmente": "⚠️", "nao": "❌"}
    lines = []
    for feedback in feedbacks:
        parts = [f"{icons.get(feedback.get('proposta_adequada'), '•')} Nota {feedback.get('nota_precisao') or '-'}/5"]
        if feedback.get("acertos"):
            parts.append(f"Acertos: {feedback['acertos']}")
        if feedback.get("erros"):
            parts.append(f"Erros: {feedback['erros']}")
        if feedback.get("sugestoes"):
            parts.append(f"Sugestão: {feedback['sugestoes']}")
        lines.append(" | ".join(parts))
    return "\n".join(lines)


def _catalog_section(context: dict) -> str:
    return (
        "## CATÁLOGO DE PRODUTOS (use os nomes exatamente como aparecem aqui)\n"
        f"{_dump(context.get('produtos', []))}\n\n"
        "## KITS (prefira kits a produtos avulsos quando cobrirem a necessidade)\n"
        f"{_dump(context.get('kits', []))}\n\n"
        "## EXEMPLOS DE VENDAS RECENTES\n"
        f"{_dump(context.get('projetos', []))}\n\n"
        "## CARTEIRA DE CLIENTES (referência de mensalidades)\n"
        f"{_dump(context.get('carteira', []))}"
    )


def build_visit_prompt(context: dict, sessao: dict) -> str:
    """
    System prompt for the technical-visit conversation.

    Parameters
    ----------
    context : dict
        Output of `fetch_reference_context`.
    sessao : dict
        The session being quoted.

    Returns
    -------
    str
        Portuguese instructions, checklist, business rules and catalog.
    """
    return f"""Você é o consultor técnico da {settings.COMPANY_NAME} que acompanha o vendedor durante a visita técnica \
a um condomínio para montar o orçamento de segurança.

{_session_header(sessao)}

Sua fonte principal são os dados internos abaixo (catálogo, kits, vendas e carteira). \
Conhecimento externo só complementa e deve ser identificado como tal.

## CHECKLIST DA VISITA (siga esta ordem, uma pergunta por vez)
{VISIT_CHECKLIST}

## REGRAS
- Use exatamente os nomes e códigos do catálogo.
- Equipamentos aproveitados do cliente são cobrados pela metade do valor (50%). Interfones não são aproveitados.
- Sempre que incluir um ATA, inclua também 1 NOBREAK 600VA e 100 metros de CABO UTP CAT 5 e avise o vendedor.
- Não peça confirmação para incluir itens: informe o que incluiu e siga para a próxima pergunta.
- Ao resumir, separe Kits, Itens avulsos e Itens aproveitados (50% do valor).
- {PRICE_DISCLAIMER}
- Responda sempre em português, de forma objetiva.

{_catalog_section(context)}
"""


def build_proposal_prompt(context: dict, sessao: dict) -> str:
    """
    System prompt for the proposal synthesis.

    The lessons from the most recent staff evaluations are included so the
    model avoids mistakes already flagged by sellers.
    """
    lessons = format_feedback_lessons(context.get("feedbacks", []))
    lessons_section = f"## APRENDIZADOS DE PROPOSTAS ANTERIORES\n{lessons}\n\n" if lessons else ""
    return f"""Você é o consultor técnico da {settings.COMPANY_NAME}. Gere a proposta comercial a partir da conversa \
da visita técnica.

{_session_header(sessao)}

## FORMATO OBRIGATÓRIO (markdown)
# PROPOSTA COMERCIAL - {date.today().strftime('%d/%m/%Y')}
## PRODUTOS UTILIZADOS
| QTD | DESCRIÇÃO |
|---|---|
| 1 | NOME DO PRODUTO OU KIT |
(uma linha por produto ou kit, nomes exatamente como no catálogo)

## MONITORAMENTO
Mensalidade: R$ valor/mês

## TAXA DE CONEXÃO
Instalação: R$ valor (parcelável em até 10x)

## REGRAS
- Itens aproveitados aparecem em seção própria "Itens aproveitados (50% do valor)".
- {PRICE_DISCLAIMER}

{STRUCTURED_BLOCK_SPEC}

{lessons_section}{_catalog_section(context)}
"""


def guess_ext(filename: str) -> str:
    """
    Extract the file extension from a filename.

    Args:
        filename (str): Input filename.

    Returns:
        str: Lowercased file extension (e.g., ".jpg"), empty when absent.
    """
    _, ext = os.path.splitext(filename or "")
    return ext.lower()


def build_storage_key(sessao_id: str, filename: str) -> str:
    """Object key for an upload: ``{sessao_id}/{timestamp_ms}_{random}{ext}``."""
    return f"{sessao_id}/{int(time.time() * 1000)}_{secrets.token_hex(4)}{guess_ext(filename)}"


def media_announcement(uploaded: list[dict]) -> str | None:
    """
    Chat line the client sends after an upload, e.g.
    ``Enviei 2 arquivo(s): [foto: portao.jpg], [video: guarita.mp4]``.
    """
    if not uploaded:
        return None
    described = ", ".join(f"[{m['tipo']}: {m['nome_arquivo']}]" for m in uploaded)
    return f"Enviei {len(uploaded)} arquivo(s): {described}"
