import pytest

from mindgraph.core.config import Settings


@pytest.fixture
def config():
    return Settings(
        GROQ_API_KEY=None,
        GOOGLE_API_KEY=None,
        MIN_CALL_DELAY_MS=0,
        CHUNK_SIZE=1500,
        MAX_NODES=150,
        MAX_LEVELS=4,
        ATTACH_UNREACHABLE=False,
    )
