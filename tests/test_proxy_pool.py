import random

import pytest

import finnet.network.proxy_pool as pool_mod
from finnet.exceptions import ConfigurationError
from finnet.network.proxy import ProxyDescriptor, ProxyKind
from finnet.network.transport import TransportFactory
from finnet.session.state import SessionState

HTTP_A = ProxyDescriptor(ProxyKind.HTTP, "1.1.1.1", 80)
HTTP_B = ProxyDescriptor(ProxyKind.HTTP, "2.2.2.2", 8080)
SOCKS_C = ProxyDescriptor(ProxyKind.SOCKS5, "3.3.3.3", 1080)


def test_named_transports_one_per_index() -> None:
    state = SessionState("yahoo")
    pool = pool_mod.ProxyPool([HTTP_A, HTTP_B, SOCKS_C])

    transports = pool.named_transports("yahoo", TransportFactory(), state)

    assert list(transports) == ["yahoo_0", "yahoo_1", "yahoo_2"]
    assert transports["yahoo_1"].proxies["http"] == "http://2.2.2.2:8080"
    assert transports["yahoo_2"].proxies["https"] == "socks5://3.3.3.3:1080"
    assert all(t.cookies is state.cookie_jar for t in transports.values())


def test_named_transports_empty_pool_builds_nothing() -> None:
    assert pool_mod.ProxyPool([]).named_transports("yahoo", TransportFactory()) == {}


def test_round_robin_cycles_in_order() -> None:
    pool = pool_mod.ProxyPool([HTTP_A, HTTP_B], strategy="round_robin")

    picks = [pool.select_descriptor() for _ in range(4)]

    assert picks == [HTTP_A, HTTP_B, HTTP_A, HTTP_B]


def test_random_selection_uses_injected_rng() -> None:
    descriptors = [HTTP_A, HTTP_B, SOCKS_C]
    expected_rng = random.Random(42)
    expected = [expected_rng.choice(descriptors) for _ in range(10)]

    pool = pool_mod.ProxyPool(descriptors, strategy="random", rng=random.Random(42))

    assert [pool.choose_descriptor() for _ in range(10)] == expected


def test_random_selection_over_empty_pool_is_direct() -> None:
    rotating = pool_mod.RotatingTransport(pool_mod.ProxyPool([]), TransportFactory())

    for _ in range(5):
        transport = rotating.select()
        assert transport.descriptor.is_direct
        assert transport.proxies == {}


def test_single_none_descriptor_behaves_like_empty_pool() -> None:
    factory = TransportFactory()
    empty = pool_mod.RotatingTransport(pool_mod.ProxyPool([]), factory)
    only_none = pool_mod.RotatingTransport(
        pool_mod.ProxyPool([ProxyDescriptor(ProxyKind.NONE, "ignored", 1)]), factory
    )

    a = empty.select()
    b = only_none.select()

    assert a.descriptor == b.descriptor == ProxyDescriptor.direct()
    assert a.proxies == b.proxies == {}
    assert only_none.select() is b


def test_rotating_transport_reuses_built_transports(monkeypatch: pytest.MonkeyPatch) -> None:
    factory = TransportFactory()
    builds = []
    original_build = factory.build

    def counting_build(descriptor, session=None, **kwargs):
        builds.append(descriptor)
        return original_build(descriptor, session, **kwargs)

    monkeypatch.setattr(factory, "build", counting_build)
    rotating = pool_mod.RotatingTransport(
        pool_mod.ProxyPool([HTTP_A, HTTP_B], rng=random.Random(7)), factory
    )

    seen = {rotating.select().descriptor for _ in range(20)}

    assert seen == {HTTP_A, HTTP_B}
    assert sorted(builds, key=lambda d: d.address) == [HTTP_A, HTTP_B]


def test_rotating_transport_shares_session_state() -> None:
    state = SessionState("yahoo")
    rotating = pool_mod.RotatingTransport(
        pool_mod.ProxyPool([HTTP_A, SOCKS_C], strategy="round_robin"), TransportFactory(), state
    )

    first = rotating.select()
    second = rotating.select()

    assert first is not second
    assert first.cookies is second.cookies is state.cookie_jar


def test_validate_surfaces_bad_descriptor() -> None:
    bogus = ProxyDescriptor(kind="gopher", address="x", port=70)  # type: ignore[arg-type]
    rotating = pool_mod.RotatingTransport(pool_mod.ProxyPool([HTTP_A, bogus]), TransportFactory())

    with pytest.raises(ConfigurationError):
        rotating.validate()


def test_unknown_strategy_rejected() -> None:
    with pytest.raises(ConfigurationError):
        pool_mod.ProxyPool([HTTP_A], strategy="weighted")
