"""
Message DAO

Append and read operations over `orcamento_mensagens`. There is
no update or delete method: the log is append-only.
"""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from orcabot.database.entities.messages import OrcamentoMensagem

logger = logging.getLogger(__name__)


class MessageDao:
    """
    Data Access Object (DAO) for session messages.
    """

    def createMessage(self, session: Session, message: OrcamentoMensagem) -> OrcamentoMensagem:
        try:
            session.add(message)
            session.flush()
            return message
        except Exception as e:
            logger.error(f"Error in MessageDao.createMessage. Error: {e}")
            raise e

    def fetchMessagesBySession(self, session: Session, sessao_id: UUID) -> list[OrcamentoMensagem]:
        """
        Fetch a session's messages in creation order.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        sessao_id : UUID
            Owning session.

        Returns
        -------
        list[OrcamentoMensagem]
            Oldest first.
        """
        try:
            return (
                session.query(OrcamentoMensagem)
                .filter(OrcamentoMensagem.sessao_id == sessao_id)
                .order_by(
                    OrcamentoMensagem.seq.asc(),
                    OrcamentoMensagem.created_at.asc(),
                    OrcamentoMensagem.id.asc(),
                )
                .all()
            )
        except Exception as e:
            logger.error(f"Error in MessageDao.fetchMessagesBySession. Error: {e}")
            raise e

    def fetchLastSeq(self, session: Session, sessao_id: UUID) -> int:
        try:
            return (
                session.query(func.coalesce(func.max(OrcamentoMensagem.seq), 0))
                .filter(OrcamentoMensagem.sessao_id == sessao_id)
                .scalar()
            )
        except Exception as e:
            logger.error(f"Error in MessageDao.fetchLastSeq. Error: {e}")
            raise e

    def countMessagesBySession(self, session: Session, sessao_id: UUID) -> int:
        try:
            return (
                session.query(func.count(OrcamentoMensagem.id))
                .filter(OrcamentoMensagem.sessao_id == sessao_id)
                .scalar()
            )
        except Exception as e:
            logger.error(f"Error in MessageDao.countMessagesBySession. Error: {e}")
            raise e
