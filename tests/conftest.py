from pathlib import Path

import httpx
import pytest

from api_dochancer.config import Settings

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def settings(tmp_path):
    return Settings(_env_file=None, llm_api_key="", output_dir=str(tmp_path / "generated"))


def mock_transport(routes: dict[str, httpx.Response | Exception], default: int = 404) -> httpx.MockTransport:
    """Transport answering by request path; exceptions in ``routes`` are raised."""

    def handler(request: httpx.Request) -> httpx.Response:
        answer = routes.get(request.url.path)
        if isinstance(answer, Exception):
            raise answer
        if answer is None:
            return httpx.Response(default)
        return answer

    return httpx.MockTransport(handler)
