"""
Service-layer operations for quote sessions, their message log, media,
proposal persistence, feedback and reference data.

All database functions are wrapped with the `@transactional` decorator, which
manages SQLAlchemy sessions and transactions automatically. Each function
accepts (and uses) an injected `session: Session` provided by the decorator,
so callers pass every other argument by keyword.

Return values are plain dicts: ORM objects never leave a transaction.
"""

import logging
import secrets
import smtplib
import uuid
from datetime import datetime, timezone
from email.mime.text import MIMEText
from typing import Optional

from sqlalchemy.orm import Session

from orcabot.api.models import FeedbackDetails, SessionCreationDetails
from orcabot.database.config.config import settings
from orcabot.database.daos.media_dao import MediaDao
from orcabot.database.daos.message_dao import MessageDao
from orcabot.database.daos.proposal_feedback_dao import PropostaFeedbackDao
from orcabot.database.daos.reference_dao import ReferenceDao
from orcabot.database.daos.session_dao import SessionDao
from orcabot.database.entities.media import OrcamentoMidia
from orcabot.database.entities.messages import OrcamentoMensagem, ROLE_ASSISTANT, ROLE_USER
from orcabot.database.entities.proposal_feedback import PropostaFeedback
from orcabot.database.entities.sessions import (
    CHAT_OPEN_STATUSES,
    OrcamentoSessao,
    STATUS_ATIVO,
    STATUS_CANCELADO,
    STATUS_ESCOPO_VALIDADO,
    STATUS_PROPOSTA_GERADA,
    STATUS_RELATORIO_ENVIADO,
)
from orcabot.database.helpers.transactionManagement import transactional
from orcabot.errors import (
    ConversationTooShort,
    InvalidStatusTransition,
    MessageLogFull,
    ProposalConflict,
    SessionNotFound,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    STATUS_PROPOSTA_GERADA: (STATUS_ATIVO, STATUS_PROPOSTA_GERADA),
    STATUS_ESCOPO_VALIDADO: (STATUS_PROPOSTA_GERADA,),
    STATUS_RELATORIO_ENVIADO: (STATUS_ESCOPO_VALIDADO, STATUS_RELATORIO_ENVIADO),
    STATUS_CANCELADO: (STATUS_ATIVO, STATUS_PROPOSTA_GERADA, STATUS_ESCOPO_VALIDADO),
}
"""Target status -> statuses it may be reached from."""

FEEDBACK_CONTEXT_LIMIT = 20


def _as_uuid(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise SessionNotFound()


def check_transition(current: str, target: str) -> None:
    """Raise `InvalidStatusTransition` unless `current -> target` is a lifecycle step."""
    if current not in ALLOWED_TRANSITIONS.get(target, ()):
        raise InvalidStatusTransition(f"Não é possível passar de '{current}' para '{target}'.")


def generate_session_token() -> str:
    """Opaque, URL-safe token for a quote link."""
    return secrets.token_urlsafe(24)


@transactional
def create_session(session: Session, data: SessionCreationDetails, created_by: str, created_by_name: str) -> dict:
    """
    Issue a new quote link.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    data : SessionCreationDetails
        Customer and seller data.
    created_by, created_by_name : str
        Staff user issuing the link; also the seller when none is given.

    Returns
    -------
    dict
        The new session (status ``ativo``) including its token.
    """
    sessao = OrcamentoSessao(
        sessao_id=uuid.uuid4(),
        token=generate_session_token(),
        nome_cliente=data.nome_cliente,
        email_cliente=data.email_cliente,
        telefone_cliente=data.telefone_cliente,
        endereco_condominio=data.endereco_condominio,
        vendedor_id=data.vendedor_id or created_by,
        vendedor_nome=data.vendedor_nome or created_by_name,
        created_by=created_by,
        created_by_name=created_by_name,
    )
    SessionDao().createSession(session, sessao)
    logger.info(f"Quote session {sessao.id} issued by {created_by_name}")
    return sessao.to_dict()


@transactional
def resolve_open_session(session: Session, token: Optional[str] = None, sessao_id: Optional[str] = None) -> dict:
    """
    Resolve a quote link (or a session id) to a session that still accepts chat turns.

    Raises
    ------
    SessionNotFound
        Unknown token/id, cancelled session, or report already sent.
    """
    dao = SessionDao()
    if token:
        sessao = dao.fetchSessionByToken(session, token)
    elif sessao_id:
        sessao = dao.fetchSessionById(session, _as_uuid(sessao_id))
    else:
        sessao = None
    if sessao is None or sessao.status not in CHAT_OPEN_STATUSES:
        raise SessionNotFound()
    return sessao.to_dict()


@transactional
def get_session(session: Session, sessao_id: str) -> dict:
    sessao = SessionDao().fetchSessionById(session, _as_uuid(sessao_id))
    if sessao is None:
        raise SessionNotFound()
    return sessao.to_dict()


@transactional
def list_sessions(session: Session, vendedor_id: Optional[str] = None) -> list[dict]:
    return [s.to_dict() for s in SessionDao().fetchSessions(session, vendedor_id=vendedor_id)]


@transactional
def append_message(session: Session, sessao_id: str, role: str, content: str) -> dict:
    """
    Append one turn to a session's log.

    User turns are refused once the log cannot hold the turn plus its reply
    (`settings.MAX_SESSION_MESSAGES`); assistant turns always fit because
    their user turn reserved the slot.

    Raises
    ------
    MessageLogFull
        When a user turn would overflow the log.
    """
    sessao_uuid = _as_uuid(sessao_id)
    message_dao = MessageDao()
    if role == ROLE_USER:
        count = message_dao.countMessagesBySession(session, sessao_uuid)
        if count + 2 > settings.MAX_SESSION_MESSAGES:
            raise MessageLogFull()
    seq = message_dao.fetchLastSeq(session, sessao_uuid) + 1
    message = message_dao.createMessage(
        session,
        OrcamentoMensagem(message_id=uuid.uuid4(), sessao_id=sessao_uuid, role=role, content=content, seq=seq),
    )
    SessionDao().touchSession(session, sessao_uuid)
    return message.to_dict()


@transactional
def get_session_messages(session: Session, sessao_id: str) -> list[dict]:
    """
    Read a session's log oldest first.

    Returns
    -------
    list[dict]
        ``{id, sessao_id, role, content, created_at}`` per message.
    """
    return [m.to_dict() for m in MessageDao().fetchMessagesBySession(session, _as_uuid(sessao_id))]


@transactional
def load_synthesis_input(session: Session, sessao_id: str) -> dict:
    """
    Read everything a proposal synthesis needs and check it may run.

    Returns
    -------
    dict
        ``{"sessao": <session dict>, "mensagens": [<message dicts>]}``.

    Raises
    ------
    InvalidStatusTransition
        When the scope was already validated or the session is closed.
    ConversationTooShort
        When the log lacks a user/assistant exchange.
    """
    sessao = SessionDao().fetchSessionById(session, _as_uuid(sessao_id))
    if sessao is None:
        raise SessionNotFound()
    check_transition(sessao.status, STATUS_PROPOSTA_GERADA)
    mensagens = [m.to_dict() for m in MessageDao().fetchMessagesBySession(session, sessao.id)]
    roles = {m["role"] for m in mensagens}
    if ROLE_USER not in roles or ROLE_ASSISTANT not in roles:
        raise ConversationTooShort()
    return {"sessao": sessao.to_dict(), "mensagens": mensagens}


@transactional
def save_generated_proposal(session: Session, sessao_id: str, proposta: str, expected_version: int) -> dict:
    """
    Persist a freshly generated proposal, replacing the previous one.

    The write only succeeds if `proposta_versao` still equals
    `expected_version` and the status is still ``ativo`` or
    ``proposta_gerada``. It increments the counter and sets the status to
    ``proposta_gerada`` in the same statement.

    Raises
    ------
    ProposalConflict
        Another generation committed after `expected_version` was read, or
        the session was cancelled or validated in the meantime.
    """
    sessao_uuid = _as_uuid(sessao_id)
    dao = SessionDao()
    generated_at = datetime.now(timezone.utc)
    if not dao.updateProposalIfVersion(session, sessao_uuid, expected_version, proposta, generated_at):
        logger.warning(f"Proposal generation for session {sessao_uuid} lost the race (version {expected_version})")
        raise ProposalConflict()
    session.expire_all()
    return dao.fetchSessionById(session, sessao_uuid).to_dict()


@transactional
def advance_session_status(session: Session, sessao_id: str, target: str) -> dict:
    """
    Move a session forward in its lifecycle.

    Raises
    ------
    SessionNotFound, InvalidStatusTransition
    """
    dao = SessionDao()
    sessao = dao.fetchSessionById(session, _as_uuid(sessao_id))
    if sessao is None:
        raise SessionNotFound()
    check_transition(sessao.status, target)
    dao.updateStatus(session, sessao, target)
    logger.info(f"Session {sessao.id} -> {target}")
    return sessao.to_dict()


@transactional
def cancel_session(session: Session, sessao_id: str) -> dict:
    """Cancel a session that has not reached `relatorio_enviado`; its link stops resolving."""
    return advance_session_status(sessao_id=sessao_id, target=STATUS_CANCELADO)


@transactional
def create_media(
    session: Session,
    sessao_id: str,
    tipo: str,
    arquivo_url: str,
    nome_arquivo: str,
    tamanho: Optional[int] = None,
    descricao: Optional[str] = None,
) -> dict:
    midia = OrcamentoMidia(
        midia_id=uuid.uuid4(),
        sessao_id=_as_uuid(sessao_id),
        tipo=tipo,
        arquivo_url=arquivo_url,
        nome_arquivo=nome_arquivo,
        tamanho=tamanho,
        descricao=descricao,
    )
    return MediaDao().createMedia(session, midia).to_dict()


@transactional
def list_session_media(session: Session, sessao_id: str, tipo: Optional[str] = None) -> list[dict]:
    return [m.to_dict() for m in MediaDao().fetchMediaBySession(session, _as_uuid(sessao_id), tipo=tipo)]


@transactional
def create_proposal_feedback(session: Session, data: FeedbackDetails, created_by: str, created_by_name: str) -> dict:
    """
    Store a staff evaluation of a session's proposal.

    Raises
    ------
    SessionNotFound
        When the evaluated session does not exist.
    """
    sessao = SessionDao().fetchSessionById(session, _as_uuid(data.sessao_id))
    if sessao is None:
        raise SessionNotFound()
    feedback = PropostaFeedback(
        feedback_id=uuid.uuid4(),
        sessao_id=sessao.id,
        created_by=created_by,
        created_by_name=created_by_name,
        proposta_adequada=data.proposta_adequada,
        acertos=data.acertos,
        erros=data.erros,
        sugestoes=data.sugestoes,
        nota_precisao=data.nota_precisao,
    )
    return PropostaFeedbackDao().createFeedback(session, feedback).to_dict()


@transactional
def list_proposal_feedbacks(session: Session, sessao_id: str) -> list[dict]:
    return [f.to_dict() for f in PropostaFeedbackDao().fetchFeedbacksBySession(session, _as_uuid(sessao_id))]


@transactional
def fetch_reference_context(session: Session) -> dict:
    """
    Bounded grounding data for the model prompts.

    Returns
    -------
    dict
        - projetos: up to 30 recent deals
        - carteira: up to 30 customers with a known monthly fee
        - produtos: active catalog products
        - kits: active kits with their composition
        - feedbacks: last 20 proposal evaluations
    """
    reference_dao = ReferenceDao()
    return {
        "projetos": [p.to_dict() for p in reference_dao.fetchRecentProjects(session)],
        "carteira": [c.to_dict() for c in reference_dao.fetchPortfolioSample(session)],
        "produtos": [p.to_dict() for p in reference_dao.fetchActiveProducts(session)],
        "kits": [k.to_dict() for k in reference_dao.fetchActiveKits(session)],
        "feedbacks": [
            f.to_dict() for f in PropostaFeedbackDao().fetchRecentFeedbacks(session, limit=FEEDBACK_CONTEXT_LIMIT)
        ],
    }


@transactional
def list_active_kits(session: Session) -> list[dict]:
    """Active kits with their composition, used to expand proposals."""
    return [k.to_dict() for k in ReferenceDao().fetchActiveKits(session)]


def send_visit_report(email: str, subject: str, html_content: str) -> None:
    """
    Send a visit report as an HTML e-mail.

    Parameters
    ----------
    email : str
        Recipient address.
    subject : str
        Subject line.
    html_content : str
        Rendered report.

    Notes
    -----
    - Uses `settings.SENDER_EMAIL` and `settings.APP_PASSWORD` for SMTP auth.
    - STARTTLS on `settings.SMTP_HOST:settings.SMTP_PORT`.
    - Exceptions are propagated to the caller.
    """
    sender_email = settings.SENDER_EMAIL

    msg = MIMEText(html_content, "html", "utf-8")
    msg["Subject"] = subject
    msg["From"] = sender_email
    msg["To"] = email

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        server.starttls()
        server.login(sender_email, settings.APP_PASSWORD)
        server.sendmail(sender_email, [email], msg.as_string())
