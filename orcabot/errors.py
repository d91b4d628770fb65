"""
Domain errors raised by the service layer and the LLM gateway.

The router translates them into HTTP responses; nothing below this module
knows about HTTP status codes except the upstream classification, which
mirrors the gateway's own status.
"""


class OrcamentoError(Exception):
    """Base class for quote-flow errors."""
    status_code = 500
    detail = "Erro interno."

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class SessionNotFound(OrcamentoError):
    """Token or id does not resolve to an open session."""
    status_code = 404
    detail = "Sessão inválida ou expirada."


class InvalidStatusTransition(OrcamentoError):
    status_code = 409
    detail = "Transição de status inválida."


class ConversationTooShort(OrcamentoError):
    """Synthesis requested before any user/assistant exchange."""
    status_code = 409
    detail = "A conversa ainda não tem informações suficientes para gerar a proposta."


class ProposalConflict(OrcamentoError):
    """Another synthesis committed first (stale generation counter)."""
    status_code = 409
    detail = "A proposta foi gerada por outra requisição. Recarregue a sessão."


class MessageLogFull(OrcamentoError):
    status_code = 409
    detail = "Limite de mensagens da sessão atingido. Gere a proposta."


class UpstreamError(OrcamentoError):
    """LLM gateway failure that is not a rate or credit limit."""
    status_code = 500
    detail = "Erro ao consultar o modelo de IA."


class UpstreamRateLimited(UpstreamError):
    status_code = 429
    detail = "Limite de requisições excedido. Tente novamente em alguns instantes."


class UpstreamQuotaExceeded(UpstreamError):
    status_code = 402
    detail = "Créditos insuficientes."


def classify_upstream_error(exc: Exception) -> UpstreamError:
    """Map an exception raised by the LLM client to an ``UpstreamError``.

    The OpenAI SDK (and every OpenAI-compatible gateway behind it) exposes the
    HTTP status as ``status_code`` on ``APIStatusError`` subclasses.
    """
    if isinstance(exc, UpstreamError):
        return exc
    status = getattr(exc, "status_code", None)
    if status == 429:
        return UpstreamRateLimited()
    if status == 402:
        return UpstreamQuotaExceeded()
    return UpstreamError()
