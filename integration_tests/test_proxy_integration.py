import pytest

from finnet.registry import DATAHUB_IO, YAHOO

ECHO_URL = "https://httpbin.org/headers"
COOKIE_URL = "https://httpbin.org/cookies/set?finnet=1"


@pytest.mark.integration
def test_every_client_reaches_echo_endpoint(live_registry) -> None:
    # Proxies are volatile; only assert that each configured path answers.
    for name in live_registry.names():
        response = live_registry.resolve(name).get(ECHO_URL)
        assert response.status_code == 200, name


@pytest.mark.integration
def test_yahoo_clients_share_cookies(live_registry) -> None:
    names = [n for n in live_registry.names() if n == YAHOO or n.startswith(f"{YAHOO}_")]
    first = live_registry.resolve(names[0])
    first.get(COOKIE_URL)

    jar = live_registry.session_manager.get_session_state(YAHOO).cookie_jar
    assert jar.get("finnet") == "1"

    last = live_registry.resolve(names[-1])
    body = last.get("https://httpbin.org/cookies").json()
    assert body["cookies"].get("finnet") == "1"


@pytest.mark.integration
def test_direct_client_sends_browser_identity(live_registry) -> None:
    body = live_registry.resolve(DATAHUB_IO).get(ECHO_URL).json()

    assert "Mozilla" in body["headers"]["User-Agent"]
