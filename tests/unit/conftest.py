"""
Unit test configuration.

pydantic-settings must never read a developer's real .env file here (it
would leak a real DATABASE_URL or JWT_SECRET into config tests). Tests
control configuration only through monkeypatch.setenv().
"""

import pytest


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})
