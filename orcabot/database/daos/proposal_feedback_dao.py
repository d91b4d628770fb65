"""
Proposal Feedback DAO

Persists and reads staff evaluations of generated proposals.

Methods
-------
- createFeedback(session, PropostaFeedback) — stages a feedback record
- fetchFeedbacksBySession(session, sessao_id) — newest first
- fetchRecentFeedbacks(session, limit) — newest first, across sessions, for prompt grounding
"""

import logging
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session

from orcabot.database.entities.proposal_feedback import PropostaFeedback

logger = logging.getLogger(__name__)


class PropostaFeedbackDao:
    """
    Data Access Object (DAO) for `orcamento_proposta_feedbacks`.
    """

    def createFeedback(self, session: Session, feedback: PropostaFeedback) -> PropostaFeedback:
        try:
            session.add(feedback)
            session.flush()
            return feedback
        except Exception as e:
            logger.error(f"Error in PropostaFeedbackDao.createFeedback. Error: {e}")
            raise e

    def fetchFeedbacksBySession(self, session: Session, sessao_id: UUID) -> list[PropostaFeedback]:
        try:
            return (
                session.query(PropostaFeedback)
                .filter(PropostaFeedback.sessao_id == sessao_id)
                .order_by(desc(PropostaFeedback.created_at))
                .all()
            )
        except Exception as e:
            logger.error(f"Error in PropostaFeedbackDao.fetchFeedbacksBySession. Error: {e}")
            raise e

    def fetchRecentFeedbacks(self, session: Session, limit: int = 20) -> list[PropostaFeedback]:
        try:
            return (
                session.query(PropostaFeedback)
                .order_by(desc(PropostaFeedback.created_at))
                .limit(limit)
                .all()
            )
        except Exception as e:
            logger.error(f"Error in PropostaFeedbackDao.fetchRecentFeedbacks. Error: {e}")
            raise e
