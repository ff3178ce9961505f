import httpx
import pytest

from listscanner.session import (
    SessionBootstrapper, BootstrapError, InvalidHost, TokenNotFound,
    cookie_applies, extract_token, validate_host
)

from conftest import landing_page


def test_extract_token():
    assert extract_token(landing_page("abc123DEF")) == "abc123DEF"


def test_extract_token_missing():
    with pytest.raises(TokenNotFound):
        extract_token("<html>var g_ck = '';</html>")


@pytest.mark.parametrize("host", ["", "a.example", "ftp://a.example", "https://"])
def test_validate_host_rejects_malformed(host):
    with pytest.raises(InvalidHost):
        validate_host(host)


def test_validate_host_strips_trailing_slash():
    assert validate_host(" https://a.example/ ") == "https://a.example"


async def test_bootstrap_harvests_token_and_cookies():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(
            200,
            text=landing_page("T1"),
            headers=[
                ("Set-Cookie", "glide_user_route=xyz; Path=/"),
                ("Set-Cookie", "JSESSIONID=abc; Path=/"),
            ]
        )

    bootstrapper = SessionBootstrapper(transport=httpx.MockTransport(handler))
    credential = await bootstrapper.bootstrap("https://a.example")

    assert len(requests) == 1
    assert requests[0].method == "GET"
    assert "X-UserToken" not in requests[0].headers
    assert credential.host == "https://a.example"
    assert credential.token == "T1"
    assert [c.name for c in credential.cookies] == ["JSESSIONID", "glide_user_route"]
    assert credential.cookie_header == "JSESSIONID=abc; glide_user_route=xyz"


async def test_bootstrap_uses_fresh_cookie_jar_per_host():
    def handler(request):
        headers = []
        if request.url.host == "a.example":
            headers.append(("Set-Cookie", "only_a=1; Path=/"))
        return httpx.Response(200, text=landing_page("T1"), headers=headers)

    bootstrapper = SessionBootstrapper(transport=httpx.MockTransport(handler))
    first = await bootstrapper.bootstrap("https://a.example")
    second = await bootstrapper.bootstrap("https://b.example")

    assert first.cookie_header == "only_a=1"
    assert second.cookies == ()


async def test_bootstrap_without_token_fails():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html></html>"))

    with pytest.raises(TokenNotFound):
        await SessionBootstrapper(transport=transport).bootstrap("https://a.example")


async def test_bootstrap_network_failure_is_bootstrap_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(BootstrapError) as exc_info:
        await SessionBootstrapper(transport=httpx.MockTransport(handler)).bootstrap("https://a.example")

    assert not isinstance(exc_info.value, TokenNotFound)


async def test_bootstrap_rejects_invalid_host_without_request():
    calls = []
    transport = httpx.MockTransport(lambda request: calls.append(request) or httpx.Response(200))

    with pytest.raises(InvalidHost):
        await SessionBootstrapper(transport=transport).bootstrap("not a url")

    assert calls == []


async def test_bootstrap_keeps_only_cookies_for_the_target_host():
    def handler(request):
        if request.url.host == "a.example":
            return httpx.Response(
                302,
                headers=[("Location", "https://sso.other.net/login"), ("Set-Cookie", "A=1; Path=/")]
            )
        return httpx.Response(200, text=landing_page("T1"), headers=[("Set-Cookie", "SSO=secret; Path=/")])

    credential = await SessionBootstrapper(transport=httpx.MockTransport(handler)).bootstrap("https://a.example")

    assert credential.token == "T1"
    assert credential.cookie_header == "A=1"


def test_cookie_applies_to_host_and_subdomains():
    assert cookie_applies("a.example", "a.example")
    assert cookie_applies(".example", "a.example")
    assert cookie_applies("localhost.local", "localhost")
    assert not cookie_applies("sso.other.net", "a.example")
    assert not cookie_applies("b.example", "a.example")


async def test_bootstrap_session_routes_through_proxy():
    session = SessionBootstrapper(proxy="http://127.0.0.1:8080").new_session()
    await session.start()
    try:
        mounts = session._client._mounts
        assert any(pattern.pattern == "all://" and transport is not None
                   for pattern, transport in mounts.items())
    finally:
        await session.close()
