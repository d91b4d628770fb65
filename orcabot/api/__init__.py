"""
API Package — FastAPI Router • Models • Proposal Parsing • Documents • S3
=========================================================================

Mission
-------
HTTP interface of the conversational quote ("orçamento") flow and its support
stack: chat relay towards the language model gateway, proposal synthesis and
parsing, PDF/XLSX rendering, visit-media storage and staff JWT auth.

Contents
--------
- fast_api
    FastAPI router:
      • Quote link: chat relay (SSE) and proposal synthesis (`/orcamento-chat`),
        media upload, conversation reload
      • Staff: sessions, proposal view/exports, scope validation, visit report,
        cancellation, proposal feedback

- models
    Pydantic request/response contracts and the tolerant proposal-item models.

- llm_gateway
    LangChain chat model construction, message building, the stream relay
    (tee of the upstream stream into the client and a background save) and the
    one-shot proposal synthesis.

- proposals
    Structured-block extraction with raw-text fallback, totals, kit
    expansion, Markdown table scanning and zone inference.

- prompt_utilities
    System prompts built from bounded reference data and staff feedback;
    storage keys and upload announcements.

- documents
    Proposal PDF (fpdf2) and equipment workbook (openpyxl).

- aws_bucket_funcs
    S3 client, upload and presigned URLs for visit media.

- utils
    JWT helpers for staff tokens.

Operational Notes
-----------------
- Streaming: chat streams SSE frames as `data: {json}\n\n` and ends with `data: [DONE]`.
- Security: staff routes read the HttpOnly `token` cookie (JWT); quote links
  are authenticated by their opaque session token.
"""
