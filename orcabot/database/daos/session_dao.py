"""
Session DAO

Purpose
-------
Thin data-access layer for the `OrcamentoSessao` entity:
- Create sessions
- Fetch by id, by token, or list by seller
- Conditional proposal write guarded by the generation counter
- Status updates

Design
------
- Requires an active SQLAlchemy `Session` supplied by the caller; transaction
  boundaries live in the service layer (`database.core.funcs`).
- Methods log the error and re-raise so the service layer decides the policy.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import desc, update
from sqlalchemy.orm import Session

from orcabot.database.entities.sessions import OrcamentoSessao, STATUS_ATIVO, STATUS_PROPOSTA_GERADA, utc_now

logger = logging.getLogger(__name__)


class SessionDao:
    """
    Data Access Object (DAO) for quote sessions.
    """

    def createSession(self, session: Session, sessao: OrcamentoSessao) -> OrcamentoSessao:
        """
        Stage a new session and flush it so defaults are populated.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        sessao : OrcamentoSessao
            Entity to insert.
        """
        try:
            session.add(sessao)
            session.flush()
            return sessao
        except Exception as e:
            logger.error(f"Error in SessionDao.createSession. Error: {e}")
            raise e

    def fetchSessionById(self, session: Session, sessao_id: UUID) -> Optional[OrcamentoSessao]:
        try:
            return session.get(OrcamentoSessao, sessao_id)
        except Exception as e:
            logger.error(f"Error in SessionDao.fetchSessionById. Error: {e}")
            raise e

    def fetchSessionByToken(self, session: Session, token: str) -> Optional[OrcamentoSessao]:
        """
        Fetch the session addressed by a quote-link token.

        Returns
        -------
        OrcamentoSessao | None
            The session, or None when the token is unknown.
        """
        try:
            return (
                session.query(OrcamentoSessao)
                .filter(OrcamentoSessao.token == token)
                .one_or_none()
            )
        except Exception as e:
            logger.error(f"Error in SessionDao.fetchSessionByToken. Error: {e}")
            raise e

    def fetchSessions(self, session: Session, vendedor_id: Optional[str] = None) -> list[OrcamentoSessao]:
        """
        List sessions, most recently updated first, optionally for one seller.
        """
        try:
            query = session.query(OrcamentoSessao)
            if vendedor_id:
                query = query.filter(OrcamentoSessao.vendedor_id == vendedor_id)
            return query.order_by(desc(OrcamentoSessao.updated_at)).all()
        except Exception as e:
            logger.error(f"Error in SessionDao.fetchSessions. Error: {e}")
            raise e

    def updateStatus(self, session: Session, sessao: OrcamentoSessao, status: str) -> None:
        try:
            sessao.status = status
            sessao.updated_at = utc_now()
            session.flush()
        except Exception as e:
            logger.error(f"Error in SessionDao.updateStatus. Error: {e}")
            raise e

    def touchSession(self, session: Session, sessao_id: UUID) -> None:
        try:
            session.execute(
                update(OrcamentoSessao)
                .where(OrcamentoSessao.id == sessao_id)
                .values(updated_at=utc_now())
            )
        except Exception as e:
            logger.error(f"Error in SessionDao.touchSession. Error: {e}")
            raise e

    def updateProposalIfVersion(
        self, session: Session, sessao_id: UUID, expected_version: int, proposta: str, generated_at: datetime
    ) -> bool:
        """
        Write a new proposal only if nobody else did since `expected_version` was read.

        The row's `proposta_versao` is compared and incremented in the same
        UPDATE statement, so two overlapping generations cannot both win. The
        row must also still be ``ativo`` or ``proposta_gerada`` at write time.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        sessao_id : UUID
            Target session.
        expected_version : int
            Generation counter observed before calling the model.
        proposta : str
            Verbatim model output.
        generated_at : datetime
            Timestamp stored in `proposta_gerada_at`.

        Returns
        -------
        bool
            True when the row was updated, False when the counter had moved or
            the status left ``ativo``/``proposta_gerada``.
        """
        try:
            result = session.execute(
                update(OrcamentoSessao)
                .where(OrcamentoSessao.id == sessao_id)
                .where(OrcamentoSessao.proposta_versao == expected_version)
                .where(OrcamentoSessao.status.in_((STATUS_ATIVO, STATUS_PROPOSTA_GERADA)))
                .values(
                    proposta_gerada=proposta,
                    proposta_gerada_at=generated_at,
                    proposta_versao=OrcamentoSessao.proposta_versao + 1,
                    status=STATUS_PROPOSTA_GERADA,
                    updated_at=generated_at,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except Exception as e:
            logger.error(f"Error in SessionDao.updateProposalIfVersion. Error: {e}")
            raise e
