from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from webmirror.api.mirror.routes import _get_service
from webmirror.main import app
from webmirror.services.mirror.service import MirrorService
from webmirror.workers.transport import ThrottledTransport

# 4 anchors, 1 image
CANONICAL_HTML = """
<!DOCTYPE html>
<html>
<head>
<title>Test HTML Page</title>
</head>
<body>
<h1>Test Page</h1>
<p>This is a test page with links.</p>
<a href="https://www.google.com">Google</a>
<a href="https://www.wikipedia.org">Wikipedia</a>
<a href="https://www.youtube.com">YouTube</a>
<img src="https://upload.wikimedia.org/wikipedia/commons/a/a9/Example.png" alt="Example image">
<p>This is some more text with a link:</p>
<a href="https://www.example.com">Example website</a>
</body>
</html>
"""


@pytest.fixture
def canonical_html() -> str:
    return CANONICAL_HTML


@pytest.fixture
async def transport():
    t = ThrottledTransport(max_concurrency=4, timeout=5.0)
    yield t
    await t.aclose()


@pytest.fixture
def client(tmp_path):
    """TestClient storing into a temporary directory, shutdown hook mocked."""
    transport = ThrottledTransport()
    app.dependency_overrides[_get_service] = lambda: MirrorService(transport, tmp_path)
    with patch("webmirror.main.close_transport", new_callable=AsyncMock):
        with TestClient(app) as c:
            yield c
    app.dependency_overrides.clear()
    asyncio.run(transport.aclose())
