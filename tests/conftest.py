import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from sitekernel.core.admission import AdmissionController  # noqa: E402
from sitekernel.core.hub import SpaceInfo, UserInfo  # noqa: E402
from sitekernel.models.config import AppConfig  # noqa: E402


@pytest.fixture(autouse=True)
def _no_server_tokens(monkeypatch):
    monkeypatch.delenv("HF_TOKEN", raising=False)
    monkeypatch.delenv("DEFAULT_HF_TOKEN", raising=False)


@pytest.fixture
def app_config():
    return AppConfig()


@pytest.fixture
def admission():
    return AdmissionController(max_concurrent_per_client=2)


@pytest.fixture
def app(app_config, admission):
    from sitekernel.server.app import create_app, get_admission, get_app_config

    application = create_app()
    application.dependency_overrides[get_app_config] = lambda: app_config
    application.dependency_overrides[get_admission] = lambda: admission
    return application


@pytest.fixture
def space_info():
    return SpaceInfo(id="alice/cool-demo", author="alice", sdk="static", private=False)


@pytest.fixture
def alice():
    return UserInfo(sub="1", name="Alice", preferred_username="alice")
