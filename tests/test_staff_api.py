import io
import smtplib

import pytest
from botocore.exceptions import ClientError
from openpyxl import load_workbook

from orcabot.api import fast_api
from orcabot.database.core.funcs import append_message, get_session, save_generated_proposal

PROPOSAL = """\
Proposta para o condomínio.

```json
{"kits": [{"nome": "KIT PORTARIA", "codigo": "KIT-PORT", "qtd": 1, "valor_locacao": 90, "valor_instalacao": 300}]}
```"""


class FakeS3:
    """Records uploads; objects whose name contains `falha` are refused."""

    def __init__(self):
        self.uploaded = {}

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None):
        if "falha" in ExtraArgs.get("ContentDisposition", ""):
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        self.uploaded[key] = (bucket, fileobj.read(), ExtraArgs)

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://{Params['Bucket']}.s3.test/{Params['Key']}?expires={ExpiresIn}"


@pytest.fixture
def s3(monkeypatch):
    fake = FakeS3()
    monkeypatch.setattr(fast_api, "get_client", lambda: fake)
    return fake


@pytest.fixture
def with_proposal(sessao):
    append_message(sessao_id=sessao["id"], role="user", content="Estou no condomínio.")
    append_message(sessao_id=sessao["id"], role="assistant", content="Quantos portões?")
    save_generated_proposal(sessao_id=sessao["id"], proposta=PROPOSAL, expected_version=0)
    return sessao


@pytest.mark.parametrize("cookies", [{}, {"token": "not-a-jwt"}])
def test_staff_routes_require_a_valid_token(client, cookies):
    client.cookies.clear()
    for name, value in cookies.items():
        client.cookies.set(name, value)

    assert client.get("/sessoes").status_code == 401


def test_issue_and_list_sessions(client, staff_cookies):
    client.cookies.update(staff_cookies)

    response = client.post("/sessoes", json={"nome_cliente": "Residencial Aurora", "endereco_condominio": "Av. Central, 10"})

    assert response.status_code == 200
    created = response.json()
    assert created["status"] == "ativo"
    assert created["vendedor_nome"] == "Ana Souza"
    assert created["link"] == f"http://localhost:5173/orcamento/{created['token']}"
    listed = client.get("/sessoes", params={"vendedor_id": "u-1"}).json()
    assert [s["id"] for s in listed] == [created["id"]]


def test_session_detail_and_messages(client, staff_cookies, with_proposal):
    client.cookies.update(staff_cookies)

    assert client.get(f"/sessoes/{with_proposal['id']}").json()["status"] == "proposta_gerada"
    assert len(client.get(f"/sessoes/{with_proposal['id']}/mensagens").json()) == 2
    assert client.get("/sessoes/00000000-0000-0000-0000-000000000000/mensagens").status_code == 404


def test_proposal_is_404_before_generation(client, staff_cookies, sessao):
    client.cookies.update(staff_cookies)

    assert client.get(f"/sessoes/{sessao['id']}/proposta").status_code == 404


def test_proposal_view_and_exports(client, staff_cookies, with_proposal, catalog):
    client.cookies.update(staff_cookies)
    base = f"/sessoes/{with_proposal['id']}/proposta"

    view = client.get(base).json()
    assert view["totais"]["mensalidade"] == 90.0
    assert {line["codigo"]: line["qtd"] for line in view["itensExpandidos"]} == {"LF-01": 2.0, "FM-02": 1.0}

    pdf = client.get(f"{base}.pdf")
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    xlsx = client.get(f"{base}.xlsx")
    wb = load_workbook(io.BytesIO(xlsx.content))
    assert wb["Detalhado"].cell(row=2, column=2).value == "KIT PORTARIA"


def test_scope_validation_then_report(client, staff_cookies, with_proposal, monkeypatch):
    sent = []
    monkeypatch.setattr(fast_api, "send_visit_report", lambda email, subject, html: sent.append((email, subject)))
    client.cookies.update(staff_cookies)
    report = {"email_destino": "comercial@empresa.test", "html_content": "<h1>Relatório</h1>"}

    assert client.post(f"/sessoes/{with_proposal['id']}/enviar-relatorio", json=report).status_code == 409
    assert sent == []

    assert client.post(f"/sessoes/{with_proposal['id']}/validar-escopo").json()["status"] == "escopo_validado"
    response = client.post(f"/sessoes/{with_proposal['id']}/enviar-relatorio", json=report)

    assert response.status_code == 200
    assert response.json()["status"] == "relatorio_enviado"
    assert sent == [("comercial@empresa.test", "Relatório de Visita Técnica - Condomínio Jardim das Flores")]


def test_report_not_marked_sent_when_mail_fails(client, staff_cookies, with_proposal, monkeypatch):
    def refuse(email, subject, html):
        raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    monkeypatch.setattr(fast_api, "send_visit_report", refuse)
    client.cookies.update(staff_cookies)
    client.post(f"/sessoes/{with_proposal['id']}/validar-escopo")

    response = client.post(
        f"/sessoes/{with_proposal['id']}/enviar-relatorio",
        json={"email_destino": "comercial@empresa.test", "html_content": "<p>ok</p>", "assunto": "Visita"},
    )

    assert response.status_code == 502
    assert get_session(sessao_id=with_proposal["id"])["status"] == "escopo_validado"


def test_cancel_session(client, staff_cookies, sessao):
    client.cookies.update(staff_cookies)

    assert client.post(f"/sessoes/{sessao['id']}/cancelar").json()["status"] == "cancelado"
    assert client.post(f"/sessoes/{sessao['id']}/cancelar").status_code == 409


def test_feedback_is_recorded_with_its_author(client, staff_cookies, with_proposal):
    client.cookies.update(staff_cookies)
    body = {
        "sessao_id": with_proposal["id"],
        "proposta_adequada": "parcialmente",
        "erros": "Faltou a cerca elétrica.",
        "nota_precisao": 4,
    }

    created = client.post("/orcamento/feedbacks", json=body)
    listed = client.get("/orcamento/feedbacks", params={"sessao_id": with_proposal["id"]})

    assert created.status_code == 200
    assert created.json()["created_by_name"] == "Ana Souza"
    assert [f["nota_precisao"] for f in listed.json()] == [4]


@pytest.mark.parametrize("change", [{"nota_precisao": 6}, {"proposta_adequada": "talvez"}])
def test_feedback_validation(client, staff_cookies, with_proposal, change):
    client.cookies.update(staff_cookies)
    body = {"sessao_id": with_proposal["id"], "proposta_adequada": "sim", **change}

    assert client.post("/orcamento/feedbacks", json=body).status_code == 422


def test_feedback_for_unknown_session(client, staff_cookies):
    client.cookies.update(staff_cookies)
    body = {"sessao_id": "00000000-0000-0000-0000-000000000000", "proposta_adequada": "sim"}

    assert client.post("/orcamento/feedbacks", json=body).status_code == 404


def test_media_upload_skips_failing_files(client, staff_cookies, sessao, s3):
    files = [
        ("files", ("portaria.jpg", b"jpeg-bytes", "image/jpeg")),
        ("files", ("falha.jpg", b"jpeg-bytes", "image/jpeg")),
        ("files", ("guarita.m4a", b"audio-bytes", "audio/mp4")),
    ]

    response = client.post("/orcamento/midias", data={"token": sessao["token"]}, files=files)

    assert response.status_code == 200
    body = response.json()
    assert [m["nome_arquivo"] for m in body["enviados"]] == ["portaria.jpg", "guarita.m4a"]
    assert [m["tipo"] for m in body["enviados"]] == ["foto", "audio"]
    assert body["falhas"] == ["falha.jpg"]
    assert body["mensagem"] == "Enviei 2 arquivo(s): [foto: portaria.jpg], [audio: guarita.m4a]"
    assert len(s3.uploaded) == 2
    assert all(key.startswith(f"{sessao['id']}/") for key in s3.uploaded)

    client.cookies.update(staff_cookies)
    midias = client.get(f"/sessoes/{sessao['id']}/midias").json()
    assert all(m["url"].startswith("https://orcamento-midias.s3.test/") for m in midias)


def test_proposal_carries_signed_visit_photos(client, staff_cookies, with_proposal, s3):
    client.post(
        "/orcamento/midias",
        data={"token": with_proposal["token"]},
        files=[("files", ("fachada.jpg", b"jpeg-bytes", "image/jpeg"))],
    )
    client.cookies.update(staff_cookies)

    fotos = client.get(f"/sessoes/{with_proposal['id']}/proposta").json()["fotos"]

    assert [f["nome"] for f in fotos] == ["fachada.jpg"]
    assert "expires=3600" in fotos[0]["url"]
