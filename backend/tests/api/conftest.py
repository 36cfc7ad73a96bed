"""API-specific test fixtures.

The app is built without its lifespan: components are wired onto app.state
against fakeredis, and neither background task is started.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from recruitment.core.config import get_settings
from recruitment.main import build_components, create_app


@pytest.fixture
async def api_app(redis):
    app = create_app()
    await build_components(app, redis, get_settings())
    app.state.shutting_down = False
    return app


@pytest.fixture
async def client(api_app):
    async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as ac:
        yield ac
