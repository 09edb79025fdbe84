import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from contentops.core.config import Settings
from contentops.core.rate_limiting import limiter
from contentops.main import create_app
from contentops.services.ai.health import ProviderHealthTracker
from contentops.services.ai.orchestrator import GenerationOrchestrator
from contentops.services.articles import InMemoryArticleRepository
from contentops.services.generation import build_generation_service
from contentops.services.queue.store import InMemoryJobStore
from tests.factories import FakeAdapter, GenerationRequestFactory


@pytest.fixture
def test_settings():
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        ANTHROPIC_API_KEY="",
        OPENAI_API_KEY="",
        GOOGLE_API_KEY="",
        AI_MAX_RETRIES=1,
        AI_RETRY_MIN_WAIT=0,
        AI_RETRY_MAX_WAIT=0,
        JOB_PROGRESS_TICK_SECONDS=0.01,
        JOB_ESTIMATED_DURATION_SECONDS=1.0,
        QUEUE_MAX_CONCURRENT_JOBS=3,
        QUEUE_MAX_BATCH_SIZE=5,
        JOB_STORE_BACKEND="memory",
    )


@pytest.fixture
def primary_adapter():
    return FakeAdapter("primary")


@pytest.fixture
def secondary_adapter():
    return FakeAdapter("secondary")


@pytest.fixture
def tracker():
    return ProviderHealthTracker(window_size=10, declaration_order=["primary", "secondary"])


@pytest.fixture
def orchestrator(primary_adapter, secondary_adapter, tracker):
    return GenerationOrchestrator([primary_adapter, secondary_adapter], tracker)


@pytest.fixture
def article_repository():
    return InMemoryArticleRepository()


@pytest_asyncio.fixture
async def generation_service(test_settings, primary_adapter, secondary_adapter, article_repository):
    service = build_generation_service(
        test_settings,
        adapters=[primary_adapter, secondary_adapter],
        articles=article_repository,
        store=InMemoryJobStore()
    )
    yield service
    await service.shutdown()


@pytest.fixture
def sample_request():
    return GenerationRequestFactory(
        title="Intro to Widgets",
        keywords=("widgets", "widget setup"),
        template="How-to Guide",
        target_word_count=800
    )


@pytest.fixture
def mock_openai_client(mocker):
    """Mock AsyncOpenAI client for adapter tests."""
    mock_client = mocker.Mock()
    mock_client.chat.completions.create = mocker.AsyncMock(return_value=mocker.Mock(
        choices=[
            mocker.Mock(
                message=mocker.Mock(content="TITLE: Mocked\nCONTENT:\nMocked body"),
                finish_reason="stop"
            )
        ],
        usage=mocker.Mock(total_tokens=1200),
        model="gpt-4-turbo-preview"
    ))
    return mock_client


@pytest.fixture
def mock_anthropic_client(mocker):
    """Mock AsyncAnthropic client for adapter tests."""
    mock_client = mocker.Mock()
    mock_client.messages.create = mocker.AsyncMock(return_value=mocker.Mock(
        content=[mocker.Mock(type="text", text="TITLE: Mocked\nCONTENT:\nMocked anthropic body")],
        usage=mocker.Mock(input_tokens=400, output_tokens=600),
        stop_reason="end_turn",
        model="claude-3-sonnet-20240229"
    ))
    return mock_client


@pytest.fixture(autouse=True)
def disable_rate_limits():
    """Keep slowapi from throttling tests that hit the same endpoint repeatedly."""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest_asyncio.fixture
async def async_client(test_settings, generation_service):
    """Async HTTP client bound to an app wired with fake providers."""
    app = create_app(test_settings, service=generation_service)
    # ASGITransport does not run the lifespan, so wire the service directly
    app.state.generation_service = generation_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
