"""
Persistence layer of the quote assistant.

Everything the quote flow keeps between requests lives here: quote sessions
and their status, the append-only conversation log, uploaded media metadata
and staff feedback on proposals, plus read-only access to the product
catalog and the commercial history used to ground prompts.

Contents:
    - config:
        Settings (database, LLM, SMTP, S3, message cap) and the SQLAlchemy
        engine built from them.

    - entities:
        `orcamento_*` tables, catalog and history models.

    - daos:
        One DAO per aggregate; the session DAO holds the versioned proposal
        write.

    - core:
        Keyword-only service functions called by the router (session store,
        message log, proposal save, status transitions, reference context,
        report mail).

    - helpers:
        `@transactional`, which binds one session per call chain.
"""
