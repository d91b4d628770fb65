"""
Entities Package — SQLAlchemy 2.0 ORM Models (PostgreSQL + UUID + UTC)
======================================================================

Tech Stack & Conventions
------------------------
- PostgreSQL with native UUID columns
- Timezone-aware timestamps (UTC)
- SQLAlchemy 2.0 style `Mapped[...]` + `mapped_column(...)`

Contents
--------
- OrcamentoSessao (`orcamento_sessoes`)
    A quote session: customer data, seller, opaque link token, lifecycle
    status, the last generated proposal and its version counter.

- OrcamentoMensagem (`orcamento_mensagens`)
    One turn of the conversation log (`user` | `assistant`).

- OrcamentoMidia (`orcamento_midias`)
    Photo/video/audio/document sent during the visit, stored in S3.

- PropostaFeedback (`orcamento_proposta_feedbacks`)
    Staff evaluation of a generated proposal.

- Produto, Kit, KitItem
    Product catalog and kit composition.

- CustomerPortfolio, Project
    Existing customers and past deals used as pricing references.
"""
