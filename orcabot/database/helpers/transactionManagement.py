"""
Database Transaction Management
===============================

Manages SQLAlchemy sessions with a context variable and a decorator-based
transaction wrapper, so service functions never thread a session through
their signatures.

Key features
~~~~~~~~~~~~
- Context variable to store the active session
- Implicit reuse of an existing session (nested service calls share one transaction)
- Commit on success, rollback and re-raise on failure
- Session closed and context cleared after the outermost call

Service functions must be called with keyword arguments only; the decorator
injects ``session`` as a keyword.
"""

from functools import wraps
from sqlalchemy.orm import sessionmaker
import contextvars
from orcabot.database.config.connection_engine import connection_engine

db_session_context = contextvars.ContextVar("db_session_context", default=None)
"""Context variable storing the active SQLAlchemy session."""

SessionFactory = sessionmaker(bind=connection_engine, expire_on_commit=False)
"""Session factory bound to the application engine."""


def transactional(func):
    """
    Decorator to wrap functions in a managed SQLAlchemy transaction.

    Ensures that:
    - If a session already exists in context, it is reused.
    - Otherwise, a new session is created, committed, and closed.
    - On errors, the session is rolled back and the error re-raised.

    Parameters
    ----------
    func : callable
        The function to wrap. It must accept a `session` keyword argument.

    Returns
    -------
    callable
        The wrapped function, executed within a database transaction.

    Example
    -------
    >>> @transactional
    ... def close_session(session=None, sessao_id=None):
    ...     ...
    >>> close_session(sessao_id=some_id)
    """
    @wraps(func)
    def wrap_func(*args, **kwargs):
        session = db_session_context.get()
        if session:
            return func(*args, session=session, **kwargs)

        session = SessionFactory()
        token = db_session_context.set(session)

        try:
            result = func(*args, session=session, **kwargs)
            session.flush()
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
            db_session_context.reset(token)

        return result

    return wrap_func
