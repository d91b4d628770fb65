"""
DAOs Package — Data Access Layer (SQLAlchemy 2.0)
=================================================

The `daos` package encapsulates all interactions with SQLAlchemy ORM
entities, giving the service layer small CRUD APIs.

Conventions
-----------
- SQLAlchemy 2.0 typed mappings (Mapped[...] / mapped_column)
- Session lifecycle (open/commit/rollback) is handled by callers
- DAOs log and surface exceptions so upper layers decide error policy

Contents
--------
- SessionDao
    Quote sessions: create, fetch by id/token, list, status changes and the
    version-checked proposal update.

- MessageDao
    Append-only message log: create, fetch in creation order, count.

- MediaDao
    Visit media metadata per session.

- PropostaFeedbackDao
    Staff evaluations of proposals, per session and most recent first.

- ReferenceDao
    Read-only, bounded samples of past deals, the customer portfolio and the
    active catalog used to ground the model.
"""
