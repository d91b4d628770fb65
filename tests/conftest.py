"""
Shared pytest fixtures.

Settings are read when `orcabot` is first imported, so the environment is
filled in before any project import. The database is a sqlite file that is
recreated for every test.

Provides:
    - tables: per-test create_all/drop_all (autouse)
    - chat_model: scripted LangChain chat model installed on the app
    - failing_chat_model: installs a model failing with a given gateway status
    - client: FastAPI TestClient (lifespan entered)
    - staff_cookies: valid staff JWT cookie
    - sessao: an `ativo` quote session
    - catalog: one kit with two products
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="orcabot-tests-")

TEST_ENV = {
    "FRONTEND_URL": "http://localhost:5173",
    "DB_DRIVER_NAME": "sqlite",
    "DB_DATABASE_NAME": os.path.join(_DB_DIR, "orcabot.db"),
    "SECRET_KEY": "test-secret-key",
    "ALGORITHM": "HS256",
    "API_KEY": "test-api-key",
    "LLM_BASE_URL": "https://gateway.test/v1",
    "INIT_MODE": "test",
    "SENDER_EMAIL": "relatorios@empresa.test",
    "APP_PASSWORD": "app-password",
    "AWS_ACCESS_KEY": "AKIATEST",
    "AWS_SECRET_KEY": "secret",
    "REGION": "sa-east-1",
    "BUCKET_NAME": "orcamento-midias",
    "MAX_SESSION_MESSAGES": "200",
}
os.environ.update(TEST_ENV)

import uuid  # noqa: E402

import httpx  # noqa: E402
import openai  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from langchain_core.language_models.fake_chat_models import FakeListChatModel  # noqa: E402

from orcabot.api.models import SessionCreationDetails  # noqa: E402
from orcabot.api.utils import create_access_token  # noqa: E402
from orcabot.database.config.connection_engine import connection_engine, declarativeBase  # noqa: E402
from orcabot.database.core.funcs import create_session  # noqa: E402
from orcabot.database.entities.catalog import Kit, KitItem, Produto  # noqa: E402
from orcabot.database.helpers.transactionManagement import SessionFactory  # noqa: E402
from orcabot.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def tables():
    declarativeBase.metadata.create_all(connection_engine)
    yield
    declarativeBase.metadata.drop_all(connection_engine)


@pytest.fixture
def chat_model():
    model = FakeListChatModel(responses=["Olá! Quantos portões de garagem o condomínio possui?"])
    app.state.chat_model = model
    yield model
    app.state.chat_model = None


def upstream_status_error(status: int) -> openai.APIStatusError:
    """The error the OpenAI SDK raises for a non-2xx gateway answer."""
    request = httpx.Request("POST", "https://gateway.test/v1/chat/completions")
    response = httpx.Response(status, request=request)
    if status == 429:
        return openai.RateLimitError("Rate limit reached", response=response, body=None)
    return openai.APIStatusError("Gateway error", response=response, body=None)


class FailingChatModel(FakeListChatModel):
    """Chat model whose every call fails with an upstream HTTP status."""
    status: int = 500

    def _call(self, *args, **kwargs):
        raise upstream_status_error(self.status)

    def _stream(self, *args, **kwargs):
        raise upstream_status_error(self.status)

    async def _astream(self, *args, **kwargs):
        raise upstream_status_error(self.status)
        yield


@pytest.fixture
def failing_chat_model():
    def install(status: int) -> FailingChatModel:
        model = FailingChatModel(responses=["-"], status=status)
        app.state.chat_model = model
        return model
    yield install
    app.state.chat_model = None


@pytest.fixture
def client(chat_model):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def staff_cookies():
    return {"token": create_access_token({"sub": "u-1+?Ana Souza+?ana@empresa.test"})}


@pytest.fixture
def sessao():
    details = SessionCreationDetails(
        nome_cliente="Condomínio Jardim das Flores",
        email_cliente="sindico@jardim.test",
        endereco_condominio="Rua das Acácias, 100",
    )
    return create_session(data=details, created_by="u-1", created_by_name="Ana Souza")


@pytest.fixture
def catalog():
    """Active kit `KIT PORTARIA` = 2 × Leitor facial + 1 × Fechadura magnética."""
    leitor = Produto(
        id_produto=uuid.uuid4(), codigo="LF-01", nome="Leitor facial", categoria="Acesso",
        valor_locacao=40.0, valor_instalacao=150.0, ativo=True,
    )
    fechadura = Produto(
        id_produto=uuid.uuid4(), codigo="FM-02", nome="Fechadura magnética", categoria="Acesso",
        valor_locacao=15.0, valor_instalacao=80.0, ativo=True,
    )
    kit = Kit(
        id_kit=uuid.uuid4(), codigo="KIT-PORT", nome="KIT PORTARIA", categoria="Portaria",
        valor_locacao=90.0, valor_instalacao=300.0, ativo=True,
    )
    with SessionFactory() as session:
        session.add_all([leitor, fechadura, kit])
        session.flush()
        session.add_all([
            KitItem(id=uuid.uuid4(), id_kit=kit.id_kit, id_produto=leitor.id_produto, quantidade=2),
            KitItem(id=uuid.uuid4(), id_kit=kit.id_kit, id_produto=fechadura.id_produto, quantidade=1),
        ])
        session.commit()
        return {"kit_id": str(kit.id_kit)}
