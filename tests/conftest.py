import json
from typing import Any, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient

import http_client
from main import app


class FakeUpstream:
    """Answers outbound calls from a URL table and records every request it sees."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._routes: Dict[str, Any] = {}

    def on(self, url: str, status_code: int = 200, **response_kwargs: Any) -> None:
        self._routes[url] = (status_code, response_kwargs)

    def fail(self, url: str, error: Exception) -> None:
        self._routes[url] = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._routes.get(str(request.url).split("?")[0])
        if route is None:
            return httpx.Response(404, json={"error": "no fake route"})
        if isinstance(route, Exception):
            raise route
        status_code, response_kwargs = route
        return httpx.Response(status_code, **response_kwargs)

    def json_body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)

    def urls(self) -> List[str]:
        return [str(r.url) for r in self.requests]


@pytest.fixture
def upstream(monkeypatch) -> FakeUpstream:
    fake = FakeUpstream()

    def _client(timeout=None) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(fake), timeout=timeout)

    monkeypatch.setattr(http_client, "upstream_client", _client)
    return fake


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)

