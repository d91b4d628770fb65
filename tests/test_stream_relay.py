import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from orcabot.api.llm_gateway import StreamRelay, synthesize_proposal, to_langchain_messages
from orcabot.errors import UpstreamError, UpstreamQuotaExceeded, UpstreamRateLimited

MESSAGES = to_langchain_messages("Você é um consultor.", [{"role": "user", "content": "Oi"}])


async def drain(relay: StreamRelay) -> list[str]:
    return [frame async for frame in relay.client_stream()]


async def test_relay_streams_and_saves_the_full_reply():
    saved = []
    model = FakeListChatModel(responses=["Quantos portões?"])

    relay = await StreamRelay.open(model, MESSAGES, on_complete=saved.append)
    relay.start()
    frames = await drain(relay)
    await relay.task

    assert frames[-1] == "data: [DONE]\n\n"
    assert len(frames) == len("Quantos portões?") + 1
    assert '"response": "Q"' in frames[0]
    assert saved == ["Quantos portões?"]
    assert relay.saved


async def test_relay_saves_even_if_nobody_reads_the_stream():
    saved = []
    model = FakeListChatModel(responses=["Resposta completa"])

    relay = await StreamRelay.open(model, MESSAGES, on_complete=saved.append)
    await relay.start()

    assert saved == ["Resposta completa"]


async def test_relay_failure_mid_stream_skips_the_save():
    saved = []
    model = FakeListChatModel(responses=["Resposta interrompida"], error_on_chunk_number=5)

    relay = await StreamRelay.open(model, MESSAGES, on_complete=saved.append)
    relay.start()
    frames = await drain(relay)
    await relay.task

    assert len(frames) == 6
    assert '"status": 500' in frames[-1]
    assert saved == []
    assert not relay.saved


async def test_relay_save_failure_is_logged_not_raised(caplog):
    def broken_save(text):
        raise RuntimeError("database unavailable")

    relay = await StreamRelay.open(FakeListChatModel(responses=["ok"]), MESSAGES, on_complete=broken_save)
    relay.start()
    frames = await drain(relay)
    await relay.task

    assert frames[-1] == "data: [DONE]\n\n"
    assert not relay.saved
    assert "Failed to persist assistant reply" in caplog.text


async def test_relay_error_on_first_chunk_is_raised_before_streaming():
    model = FakeListChatModel(responses=["nada"], error_on_chunk_number=0)

    with pytest.raises(UpstreamError) as excinfo:
        await StreamRelay.open(model, MESSAGES, on_complete=lambda text: None)
    assert excinfo.value.status_code == 500


@pytest.mark.parametrize("status, error", [(429, UpstreamRateLimited), (402, UpstreamQuotaExceeded)])
async def test_gateway_limits_are_classified(status, error, failing_chat_model):
    model = failing_chat_model(status)

    with pytest.raises(error):
        await StreamRelay.open(model, MESSAGES, on_complete=lambda text: None)
    with pytest.raises(error):
        await synthesize_proposal(model, MESSAGES)


async def test_synthesis_returns_model_text():
    model = FakeListChatModel(responses=["  # Proposta\n\nTexto  "])

    assert await synthesize_proposal(model, MESSAGES) == "# Proposta\n\nTexto"


async def test_synthesis_rejects_empty_answer():
    with pytest.raises(UpstreamError):
        await synthesize_proposal(FakeListChatModel(responses=["   "]), MESSAGES)
