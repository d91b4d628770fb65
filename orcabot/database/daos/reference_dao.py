"""
Reference DAO

Read-only, bounded sample queries used as in-context examples for the model:
recent deals, the customer portfolio and the active catalog.
"""

import logging

from sqlalchemy import desc
from sqlalchemy.orm import Session

from orcabot.database.entities.catalog import Kit, Produto
from orcabot.database.entities.history import CustomerPortfolio, Project

logger = logging.getLogger(__name__)

SAMPLE_LIMIT = 30
"""Upper bound of rows sampled from each history table."""


class ReferenceDao:
    """
    Data Access Object (DAO) for catalog and commercial-history tables.
    """

    def fetchRecentProjects(self, session: Session, limit: int = SAMPLE_LIMIT) -> list[Project]:
        try:
            return (
                session.query(Project)
                .order_by(desc(Project.created_at))
                .limit(min(limit, SAMPLE_LIMIT))
                .all()
            )
        except Exception as e:
            logger.error(f"Error in ReferenceDao.fetchRecentProjects. Error: {e}")
            raise e

    def fetchPortfolioSample(self, session: Session, limit: int = SAMPLE_LIMIT) -> list[CustomerPortfolio]:
        """Customers with a known monthly fee, newest first."""
        try:
            return (
                session.query(CustomerPortfolio)
                .filter(CustomerPortfolio.mensalidade.isnot(None))
                .order_by(desc(CustomerPortfolio.created_at))
                .limit(min(limit, SAMPLE_LIMIT))
                .all()
            )
        except Exception as e:
            logger.error(f"Error in ReferenceDao.fetchPortfolioSample. Error: {e}")
            raise e

    def fetchActiveProducts(self, session: Session) -> list[Produto]:
        try:
            return (
                session.query(Produto)
                .filter(Produto.ativo.is_(True))
                .order_by(Produto.categoria, Produto.nome)
                .all()
            )
        except Exception as e:
            logger.error(f"Error in ReferenceDao.fetchActiveProducts. Error: {e}")
            raise e

    def fetchActiveKits(self, session: Session) -> list[Kit]:
        try:
            return (
                session.query(Kit)
                .filter(Kit.ativo.is_(True))
                .order_by(Kit.categoria, Kit.nome)
                .all()
            )
        except Exception as e:
            logger.error(f"Error in ReferenceDao.fetchActiveKits. Error: {e}")
            raise e
