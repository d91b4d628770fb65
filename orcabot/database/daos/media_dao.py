"""
Media DAO

Records and lists storage pointers for uploads made during a visit.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from orcabot.database.entities.media import OrcamentoMidia

logger = logging.getLogger(__name__)


class MediaDao:
    """
    Data Access Object (DAO) for `orcamento_midias`.
    """

    def createMedia(self, session: Session, midia: OrcamentoMidia) -> OrcamentoMidia:
        try:
            session.add(midia)
            session.flush()
            return midia
        except Exception as e:
            logger.error(f"Error in MediaDao.createMedia. Error: {e}")
            raise e

    def fetchMediaBySession(self, session: Session, sessao_id: UUID, tipo: Optional[str] = None) -> list[OrcamentoMidia]:
        """
        List a session's uploads in upload order, optionally of a single type.
        """
        try:
            query = session.query(OrcamentoMidia).filter(OrcamentoMidia.sessao_id == sessao_id)
            if tipo:
                query = query.filter(OrcamentoMidia.tipo == tipo)
            return query.order_by(OrcamentoMidia.created_at.asc()).all()
        except Exception as e:
            logger.error(f"Error in MediaDao.fetchMediaBySession. Error: {e}")
            raise e
