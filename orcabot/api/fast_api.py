"""
FastAPI Router — Quote chat • Proposals • Media • Sessions • Feedback
=====================================================================

Purpose
-------
Defines the HTTP API of the conversational quote flow:
- Quote link (authenticated by session token): chat relay (SSE), proposal
  synthesis, media upload, conversation reload
- Staff (authenticated by JWT cookie `token`): issue links, list sessions,
  read proposals and export them (PDF/XLSX), validate scope, send the visit
  report, cancel sessions, record and list proposal feedback

Key Notes
---------
- Input validation via Pydantic models in `orcabot.api.models`.
- Domain errors (`orcabot.errors`) carry their HTTP status and are converted
  to `HTTPException` here and only here.
- Chat streams SSE frames as `data: {json}\\n\\n` (see `llm_gateway`).
"""

import logging
import smtplib
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Cookie, Depends, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.responses import StreamingResponse
from langchain_core.language_models.chat_models import BaseChatModel
from starlette.concurrency import run_in_threadpool

from orcabot.api.aws_bucket_funcs.funcs import get_client, presign_media, upload
from orcabot.api.documents import render_proposal_pdf, render_proposal_workbook
from orcabot.api.llm_gateway import StreamRelay, build_chat_model, synthesize_proposal, to_langchain_messages
from orcabot.api.models import (
    ChatRequest,
    FeedbackDetails,
    MediaUploadResult,
    ProposalPhoto,
    ProposalView,
    ReportRequest,
    SessionCreationDetails,
)
from orcabot.api.prompt_utilities import (
    PROPOSAL_INSTRUCTION,
    build_proposal_prompt,
    build_storage_key,
    build_visit_prompt,
    media_announcement,
)
from orcabot.api.proposals import build_proposal_view
from orcabot.api.utils import parse_subject, verify_token
from orcabot.database.config.config import settings
from orcabot.database.core.funcs import (
    advance_session_status,
    append_message,
    cancel_session,
    check_transition,
    create_media,
    create_proposal_feedback,
    create_session,
    fetch_reference_context,
    get_session,
    get_session_messages,
    list_active_kits,
    list_proposal_feedbacks,
    list_session_media,
    list_sessions,
    load_synthesis_input,
    resolve_open_session,
    save_generated_proposal,
    send_visit_report,
)
from orcabot.database.entities.media import TIPO_FOTO, media_type_from_mime
from orcabot.database.entities.messages import ROLE_ASSISTANT, ROLE_USER
from orcabot.database.entities.sessions import (
    STATUS_ESCOPO_VALIDADO,
    STATUS_RELATORIO_ENVIADO,
)
from orcabot.errors import OrcamentoError

router = APIRouter()
"""Creates the FastAPI router in which we define its routes"""

logger = logging.getLogger("uvicorn")

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def to_http(e: OrcamentoError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.detail)


def get_chat_model(request: Request) -> BaseChatModel:
    """Chat model kept on `app.state`, built on first use when startup skipped it."""
    model = getattr(request.app.state, "chat_model", None)
    if model is None:
        model = build_chat_model()
        request.app.state.chat_model = model
    return model


def require_staff(token: str = Cookie(None)) -> dict:
    """Decode the staff JWT cookie.

    Returns:
        {"user_id", "user_name", "email"}; 401 when the cookie is missing or invalid.
    """
    if not token:
        raise HTTPException(status_code=401, detail='Missing Token')
    subject = verify_token(token)
    if not subject:
        raise HTTPException(status_code=401, detail='Invalid or expired token')
    return parse_subject(subject)


def signed_photos(sessao_id: str) -> list[ProposalPhoto]:
    """Visit photos of a session as short-lived signed URLs."""
    fotos = list_session_media(sessao_id=sessao_id, tipo=TIPO_FOTO)
    if not fotos:
        return []
    return [ProposalPhoto(**foto) for foto in presign_media(fotos, get_client())]


def session_proposal_view(sessao_id: str) -> ProposalView:
    try:
        sessao = get_session(sessao_id=sessao_id)
    except OrcamentoError as e:
        raise to_http(e)
    if not sessao["proposta_gerada"]:
        raise HTTPException(status_code=404, detail="Proposta ainda não gerada para esta sessão.")
    return build_proposal_view(sessao, list_active_kits(), signed_photos(sessao["id"]))


# -----------------------
# Quote link
# -----------------------

@router.post('/orcamento-chat')
async def orcamento_chat(data: ChatRequest, model: BaseChatModel = Depends(get_chat_model)):
    """Chat relay (SSE) or proposal synthesis (JSON) for a quote session.

    Request body:
        ChatRequest {token | sessao_id, messages[], action?}

    Responses:
        200: text/event-stream (chat) or ProposalView JSON (`action="gerar_proposta"`)
        400: neither token nor sessao_id
        404: unknown, cancelled or closed session
        409: log full, conversation too short, wrong status, concurrent generation
        429 / 402: upstream rate limit / credits exhausted
        500: any other upstream failure
    """
    if not data.token and not data.sessao_id:
        raise HTTPException(status_code=400, detail="Token ou sessao_id obrigatório.")
    try:
        sessao = resolve_open_session(token=data.token, sessao_id=data.sessao_id)
        if data.action == "gerar_proposta":
            return await generate_proposal(sessao, model)
        return await relay_chat(sessao, data, model)
    except OrcamentoError as e:
        raise to_http(e)


async def relay_chat(sessao: dict, data: ChatRequest, model: BaseChatModel) -> StreamingResponse:
    """Append the caller's new user turn, then stream the reply while it is saved in the background."""
    sessao_id = sessao["id"]
    last_turn = data.messages[-1] if data.messages else None
    if last_turn is not None and last_turn.role == ROLE_USER:
        append_message(sessao_id=sessao_id, role=ROLE_USER, content=last_turn.content)

    context = fetch_reference_context()
    log = get_session_messages(sessao_id=sessao_id)
    messages = to_langchain_messages(build_visit_prompt(context, sessao), log)

    def save_reply(text: str):
        append_message(sessao_id=sessao_id, role=ROLE_ASSISTANT, content=text)

    relay = await StreamRelay.open(model, messages, on_complete=save_reply)
    relay.start()
    return StreamingResponse(relay.client_stream(), media_type="text/event-stream")


async def generate_proposal(sessao: dict, model: BaseChatModel) -> dict:
    """Synthesize, persist (optimistically) and return the commercial proposal.

    Reads the log from the database, never from the request, and inserts no message.
    """
    synthesis = load_synthesis_input(sessao_id=sessao["id"])
    current = synthesis["sessao"]
    context = fetch_reference_context()
    messages = to_langchain_messages(
        build_proposal_prompt(context, current), synthesis["mensagens"], PROPOSAL_INSTRUCTION
    )
    text = await synthesize_proposal(model, messages)
    updated = save_generated_proposal(
        sessao_id=current["id"], proposta=text, expected_version=current["proposta_versao"]
    )
    logger.info(f"Proposal v{updated['proposta_versao']} generated for session {updated['id']}")
    view = build_proposal_view(updated, context["kits"], signed_photos(updated["id"]))
    return view.model_dump()


@router.get('/orcamento/mensagens')
async def quote_messages(token: str):
    """Reload a quote conversation from its link."""
    try:
        sessao = resolve_open_session(token=token)
    except OrcamentoError as e:
        raise to_http(e)
    return {
        "sessao": {
            "id": sessao["id"],
            "status": sessao["status"],
            "nome_cliente": sessao["nome_cliente"],
            "endereco_condominio": sessao["endereco_condominio"],
            "vendedor_nome": sessao["vendedor_nome"],
        },
        "mensagens": get_session_messages(sessao_id=sessao["id"]),
    }


@router.post('/orcamento/midias')
async def upload_media(token: str = Form(...), files: List[UploadFile] = File(...)) -> MediaUploadResult:
    """Store visit media in the bucket; a failing file is skipped and reported in `falhas`."""
    try:
        sessao = resolve_open_session(token=token)
    except OrcamentoError as e:
        raise to_http(e)

    s3_client = get_client()
    enviados, falhas = [], []
    for f in files:
        key = build_storage_key(sessao["id"], f.filename)
        try:
            upload(f.file, key, s3_client, content_type=f.content_type, filename=f.filename)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Upload of {f.filename} for session {sessao['id']} failed: {e}")
            falhas.append(f.filename)
            continue
        enviados.append(create_media(
            sessao_id=sessao["id"],
            tipo=media_type_from_mime(f.content_type),
            arquivo_url=key,
            nome_arquivo=f.filename,
            tamanho=f.size,
        ))
    return MediaUploadResult(enviados=enviados, falhas=falhas, mensagem=media_announcement(enviados))


# -----------------------
# Staff
# -----------------------

@router.post('/sessoes')
async def new_session(data: SessionCreationDetails, user: dict = Depends(require_staff)):
    """Issue a quote link; the response carries the token and the link URL."""
    sessao = create_session(data=data, created_by=user["user_id"], created_by_name=user["user_name"])
    sessao["link"] = f"{settings.FRONTEND_URL.rstrip('/')}/orcamento/{sessao['token']}"
    return sessao


@router.get('/sessoes')
async def sessions(vendedor_id: Optional[str] = None, user: dict = Depends(require_staff)):
    return list_sessions(vendedor_id=vendedor_id)


@router.get('/sessoes/{sessao_id}')
async def session_detail(sessao_id: str, user: dict = Depends(require_staff)):
    try:
        return get_session(sessao_id=sessao_id)
    except OrcamentoError as e:
        raise to_http(e)


@router.get('/sessoes/{sessao_id}/mensagens')
async def session_messages(sessao_id: str, user: dict = Depends(require_staff)):
    try:
        get_session(sessao_id=sessao_id)
    except OrcamentoError as e:
        raise to_http(e)
    return get_session_messages(sessao_id=sessao_id)


@router.get('/sessoes/{sessao_id}/midias')
async def session_media(sessao_id: str, user: dict = Depends(require_staff)):
    """Media of a session with signed URLs."""
    try:
        get_session(sessao_id=sessao_id)
    except OrcamentoError as e:
        raise to_http(e)
    midias = list_session_media(sessao_id=sessao_id)
    if not midias:
        return []
    urls = {m["nome"]: m["url"] for m in presign_media(midias, get_client())}
    return [{**m, "url": urls.get(m["nome_arquivo"])} for m in midias]


@router.get('/sessoes/{sessao_id}/proposta')
async def session_proposal(sessao_id: str, user: dict = Depends(require_staff)):
    return session_proposal_view(sessao_id).model_dump()


@router.get('/sessoes/{sessao_id}/proposta.pdf')
async def session_proposal_pdf(sessao_id: str, user: dict = Depends(require_staff)):
    view = session_proposal_view(sessao_id)
    content = await run_in_threadpool(render_proposal_pdf, view)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="proposta_{sessao_id}.pdf"'},
    )


@router.get('/sessoes/{sessao_id}/proposta.xlsx')
async def session_proposal_xlsx(sessao_id: str, user: dict = Depends(require_staff)):
    view = session_proposal_view(sessao_id)
    return Response(
        content=render_proposal_workbook(view),
        media_type=XLSX_MIME,
        headers={"Content-Disposition": f'attachment; filename="equipamentos_{sessao_id}.xlsx"'},
    )


@router.post('/sessoes/{sessao_id}/validar-escopo')
async def validate_scope(sessao_id: str, user: dict = Depends(require_staff)):
    try:
        return advance_session_status(sessao_id=sessao_id, target=STATUS_ESCOPO_VALIDADO)
    except OrcamentoError as e:
        raise to_http(e)


@router.post('/sessoes/{sessao_id}/enviar-relatorio')
async def send_report(sessao_id: str, data: ReportRequest, user: dict = Depends(require_staff)):
    """Mail the visit report, then mark the session as `relatorio_enviado`.

    The status is checked before sending so no e-mail leaves for a session
    whose scope was not validated.
    """
    try:
        sessao = get_session(sessao_id=sessao_id)
        check_transition(sessao["status"], STATUS_RELATORIO_ENVIADO)
    except OrcamentoError as e:
        raise to_http(e)
    subject = data.assunto or f"Relatório de Visita Técnica - {sessao['nome_cliente'] or 'Condomínio'}"
    try:
        await run_in_threadpool(send_visit_report, data.email_destino, subject, data.html_content)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Visit report for session {sessao_id} could not be sent: {e}")
        raise HTTPException(status_code=502, detail="Falha ao enviar o relatório por e-mail.")
    return advance_session_status(sessao_id=sessao_id, target=STATUS_RELATORIO_ENVIADO)


@router.post('/sessoes/{sessao_id}/cancelar')
async def cancel(sessao_id: str, user: dict = Depends(require_staff)):
    try:
        return cancel_session(sessao_id=sessao_id)
    except OrcamentoError as e:
        raise to_http(e)


@router.post('/orcamento/feedbacks')
async def new_feedback(data: FeedbackDetails, user: dict = Depends(require_staff)):
    """Store a staff evaluation of a proposal (author taken from the token)."""
    try:
        return create_proposal_feedback(data=data, created_by=user["user_id"], created_by_name=user["user_name"])
    except OrcamentoError as e:
        raise to_http(e)


@router.get('/orcamento/feedbacks')
async def feedbacks(sessao_id: str, user: dict = Depends(require_staff)):
    try:
        get_session(sessao_id=sessao_id)
    except OrcamentoError as e:
        raise to_http(e)
    return list_proposal_feedbacks(sessao_id=sessao_id)
