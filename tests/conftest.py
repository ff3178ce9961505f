import json

import httpx
import pytest

from listscanner.config import ScanConfig
from listscanner.session import SessionCookie, SessionCredential

LANDING_PAGE = """
<html><head><script>
var g_ck = '{token}';
var NOW = {{}};
</script></head><body>portal</body></html>
"""


def landing_page(token: str = "T1") -> str:
    return LANDING_PAGE.format(token=token)


def widget_response(records=None, status_code: int = 200, payload=None) -> httpx.Response:
    """Build a widget list response with ``records`` under result.data.list."""
    if payload is None:
        payload = {"result": {"data": {"list": records if records is not None else []}}}
    return httpx.Response(status_code, content=json.dumps(payload).encode(),
                          headers={"Content-Type": "application/json"})


@pytest.fixture
def credential():
    return SessionCredential(
        host="https://a.example",
        token="T1",
        cookies=(
            SessionCookie(name="JSESSIONID", value="abc", domain="a.example", path="/"),
            SessionCookie(name="glide_user_route", value="xyz", domain="a.example", path="/"),
        )
    )


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        values = {
            'hosts': ["https://a.example"],
            'tables': ("t=kb_knowledge", "t=incident"),
            'results_dir': str(tmp_path / "result"),
        }
        values.update(overrides)
        return ScanConfig(**values)
    return _make
