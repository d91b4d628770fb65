import re

from orcabot.api.prompt_utilities import (
    PRICE_DISCLAIMER,
    build_proposal_prompt,
    build_storage_key,
    build_visit_prompt,
    format_feedback_lessons,
    media_announcement,
)
from orcabot.api.utils import create_access_token, parse_subject, verify_token

CONTEXT = {
    "produtos": [{"codigo": "LF-01", "nome": "Leitor facial", "valor_locacao": 40.0}],
    "kits": [],
    "projetos": [{"cliente_condominio_nome": "Residencial Sol", "numero_unidades": 60}],
    "carteira": [],
    "feedbacks": [
        {"proposta_adequada": "parcialmente", "nota_precisao": 3, "erros": "Esqueceu o nobreak do ATA"},
    ],
}
SESSAO = {"nome_cliente": "Condomínio Aurora", "vendedor_nome": "Ana Souza"}


def test_visit_prompt_carries_catalog_and_price_rule():
    prompt = build_visit_prompt(CONTEXT, SESSAO)

    assert "Condomínio Aurora" in prompt
    assert "Leitor facial" in prompt
    assert "Residencial Sol" in prompt
    assert PRICE_DISCLAIMER in prompt
    assert "Sob consulta" in prompt


def test_proposal_prompt_includes_feedback_lessons():
    prompt = build_proposal_prompt(CONTEXT, SESSAO)

    assert "APRENDIZADOS DE PROPOSTAS ANTERIORES" in prompt
    assert "Erros: Esqueceu o nobreak do ATA" in prompt
    assert "```json" in prompt


def test_proposal_prompt_without_feedback_has_no_lessons_section():
    prompt = build_proposal_prompt({**CONTEXT, "feedbacks": []}, SESSAO)

    assert "APRENDIZADOS" not in prompt


def test_feedback_lessons_one_line_each():
    lines = format_feedback_lessons([
        {"proposta_adequada": "sim", "nota_precisao": 5, "acertos": "Kits corretos"},
        {"proposta_adequada": "nao"},
    ]).splitlines()

    assert lines == ["✅ Nota 5/5 | Acertos: Kits corretos", "❌ Nota -/5"]


def test_storage_key_is_scoped_to_the_session():
    key = build_storage_key("abc", "Fachada.JPG")

    assert re.fullmatch(r"abc/\d+_[0-9a-f]{8}\.jpg", key)


def test_media_announcement():
    assert media_announcement([]) is None
    assert media_announcement([{"tipo": "video", "nome_arquivo": "guarita.mp4"}]) == \
        "Enviei 1 arquivo(s): [video: guarita.mp4]"


def test_token_round_trip_and_subject():
    token = create_access_token({"sub": "u-9+?Bruno Lima+?bruno@empresa.test"})

    assert parse_subject(verify_token(token)) == {
        "user_id": "u-9", "user_name": "Bruno Lima", "email": "bruno@empresa.test",
    }


def test_subject_without_name_falls_back_to_id():
    assert parse_subject("u-9") == {"user_id": "u-9", "user_name": "u-9", "email": None}


def test_tampered_token_is_rejected():
    token = create_access_token({"sub": "u-9"})

    assert verify_token(token[:-2] + ("aa" if token[-2:] != "aa" else "bb")) is None
