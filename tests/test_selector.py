from unittest.mock import MagicMock

import pytest
import requests

import dapi_endpoints.health.prober as prober_mod
from dapi_endpoints.config import AppConfig
from dapi_endpoints.errors import (
    EmptyFallbackError,
    EnvironmentVariableNotSet,
    RemoteConfigurationUnavailable,
    ServerError,
)
from dapi_endpoints.health import EndpointHealthProber
from dapi_endpoints.networks import Network
from dapi_endpoints.provider import EndpointConfigurationProvider
from dapi_endpoints.selector import EndpointSelector, SelectionTier
from dapi_endpoints.sources import EnvironmentVariableSource, RemoteSource

CONFIG_URL = "https://config.example/testnet.json"
CONFIGURED = ["https://node-1.test:1443", "https://node-2.test:1443"]
FALLBACKS = ["https://fb-1.test:1443", "https://fb-2.test:1443"]


@pytest.fixture
def build_selector(make_session, make_response, clock):
    def _build(routes, *, default=None):
        session = make_session(routes, default=default)
        provider = EndpointConfigurationProvider(
            {Network.TESTNET: RemoteSource(CONFIG_URL)},
            fallbacks={n: FALLBACKS for n in Network},
            session=session,
            clock=clock,
        )
        prober = EndpointHealthProber(session=session, clock=clock)
        return EndpointSelector(Network.TESTNET, provider=provider, prober=prober), session

    return _build


def _config_ok(make_response):
    return make_response(200, {"endpoints": CONFIGURED})


def test_tier1_returns_healthy_configured(build_selector, make_response):
    selector, _ = build_selector(
        {CONFIG_URL: _config_ok(make_response), CONFIGURED[1]: make_response(502)},
        default=make_response(200),
    )

    result = selector.select()

    assert result.tier is SelectionTier.CONFIGURED
    assert result.endpoints == (CONFIGURED[0],)
    assert result.configuration_error is None


def test_remote_500_falls_through_to_probed_fallback(build_selector, make_response):
    selector, session = build_selector({CONFIG_URL: make_response(500)}, default=make_response(200))

    result = selector.select()

    assert result.tier is SelectionTier.FALLBACK_PROBED
    assert sorted(result.endpoints) == sorted(FALLBACKS)
    assert isinstance(result.configuration_error, RemoteConfigurationUnavailable)
    assert not any(url in CONFIGURED for url in session.urls())


def test_remote_always_raising_still_yields_endpoints(build_selector, make_response):
    selector, _ = build_selector(
        {CONFIG_URL: requests.ConnectionError("dns failure"), FALLBACKS[0]: make_response(503)},
        default=make_response(200),
    )

    assert selector.get_healthy_endpoints() == [FALLBACKS[1]]


def test_unhealthy_configured_falls_back_to_probed_fallback(build_selector, make_response):
    routes = {CONFIG_URL: _config_ok(make_response)}
    routes.update({url: make_response(500) for url in CONFIGURED})
    selector, _ = build_selector(routes, default=make_response(204))

    result = selector.select()

    assert result.tier is SelectionTier.FALLBACK_PROBED
    assert result.configuration_error is None
    assert sorted(result.endpoints) == sorted(FALLBACKS)


def test_all_probes_timing_out_returns_unverified_fallback(build_selector, make_response):
    selector, _ = build_selector(
        {CONFIG_URL: _config_ok(make_response)},
        default=requests.ReadTimeout("timed out"),
    )

    result = selector.select()

    assert result.tier is SelectionTier.FALLBACK_UNVERIFIED
    assert list(result.endpoints) == FALLBACKS
    assert selector.get_healthy_endpoints() == FALLBACKS


def test_string_round_trips_to_list(build_selector, make_response):
    selector, _ = build_selector({CONFIG_URL: _config_ok(make_response)}, default=make_response(200))

    endpoints = selector.get_healthy_endpoints()
    joined = selector.get_healthy_endpoints_string()

    assert joined.split(",") == endpoints
    assert sorted(endpoints) == sorted(CONFIGURED)


def test_get_best_endpoint_is_first_healthy(build_selector, make_response):
    selector, _ = build_selector(
        {CONFIG_URL: _config_ok(make_response), CONFIGURED[0]: make_response(500)},
        default=make_response(200),
    )

    assert selector.get_best_endpoint() == CONFIGURED[1]


def test_selection_uses_caches(build_selector, make_response):
    selector, session = build_selector({CONFIG_URL: _config_ok(make_response)}, default=make_response(200))

    selector.get_healthy_endpoints()
    selector.get_healthy_endpoints()

    assert session.urls().count(CONFIG_URL) == 1
    assert session.urls().count(CONFIGURED[0]) == 1


def test_refresh_endpoints_clears_both_caches(build_selector, make_response):
    selector, session = build_selector({CONFIG_URL: _config_ok(make_response)}, default=make_response(200))
    selector.get_healthy_endpoints()

    selector.refresh_endpoints()
    selector.get_healthy_endpoints()

    assert session.urls().count(CONFIG_URL) == 2
    assert session.urls().count(CONFIGURED[0]) == 2


def test_refresh_endpoints_swallows_configuration_errors(build_selector, make_response, caplog):
    selector, _ = build_selector({CONFIG_URL: make_response(503)})

    selector.refresh_endpoints()

    assert "Failed to refresh DAPI endpoints" in caplog.text


def test_connectivity_report_probes_both_sets(build_selector, make_response):
    selector, session = build_selector(
        {CONFIG_URL: _config_ok(make_response), FALLBACKS[1]: make_response(500)},
        default=make_response(200),
    )

    report = selector.get_connectivity_report()

    assert [s.endpoint for s in report.configured_endpoints] == CONFIGURED
    assert [s.endpoint for s in report.fallback_endpoints] == FALLBACKS
    assert {s.category for s in report.configured_endpoints} == {"Configured"}
    assert {s.category for s in report.fallback_endpoints} == {"Fallback"}
    assert report.total_endpoints == 4
    assert report.healthy_endpoints == 3
    assert report.has_healthy_endpoints is True
    assert report.configuration_error is None
    assert report.summary == "Network: testnet, Healthy: 3/4 endpoints"
    assert isinstance(report.fallback_endpoints[1].error, ServerError)
    assert report.fallback_endpoints[1].status_description.startswith("Unhealthy - Server error")


def test_connectivity_report_is_not_cached(build_selector, make_response):
    selector, session = build_selector({CONFIG_URL: _config_ok(make_response)}, default=make_response(200))

    first = selector.get_connectivity_report()
    second = selector.get_connectivity_report()

    assert first is not second
    assert session.urls().count(FALLBACKS[0]) == 2


def test_connectivity_report_with_configuration_error(build_selector, make_response):
    selector, _ = build_selector({CONFIG_URL: make_response(404)}, default=make_response(200))

    report = selector.get_connectivity_report()

    assert report.configured_endpoints == ()
    assert len(report.fallback_endpoints) == 2
    assert isinstance(report.configuration_error, RemoteConfigurationUnavailable)
    assert report.summary.startswith("Configuration failed: Remote DAPI configuration returned HTTP 404")
    assert report.summary.endswith("Using fallback endpoints only.")


def test_empty_fallback_table_is_a_loud_error(caplog):
    provider = MagicMock(spec=EndpointConfigurationProvider)
    provider.fetch_candidates.side_effect = EnvironmentVariableNotSet()
    provider.fallback_endpoints.return_value = []
    prober = MagicMock(spec=EndpointHealthProber)

    selector = EndpointSelector(Network.DEVNET, provider=provider, prober=prober)

    with pytest.raises(EmptyFallbackError):
        selector.get_healthy_endpoints()
    assert "Static fallback endpoint table is empty" in caplog.text
    prober.get_healthy_endpoints.assert_not_called()


def test_from_config_applies_settings(monkeypatch, tmp_path, make_session, make_response):
    config = AppConfig(
        network=Network.DEVNET,
        log_directory=tmp_path,
        log_level="INFO",
        source=EnvironmentVariableSource("CUSTOM_LIST"),
        max_concurrent_probes=2,
        environment={"CUSTOM_LIST": "http://10.0.0.5:3000, http://10.0.0.6:3000"},
    )
    session = make_session(default=make_response(200))
    health_session = make_session(default=make_response(200))
    monkeypatch.setattr(prober_mod.requests, "get", health_session.get)

    selector = EndpointSelector.from_config(config, session=session)
    result = selector.select()

    assert selector.network is Network.DEVNET
    assert selector.prober.max_concurrent == 2
    assert result.tier is SelectionTier.CONFIGURED
    assert sorted(result.endpoints) == ["http://10.0.0.5:3000", "http://10.0.0.6:3000"]
    # Health checks never go through the caller's configuration session.
    assert session.calls == []
    assert sorted(health_session.urls()) == ["http://10.0.0.5:3000", "http://10.0.0.6:3000"]


def test_from_config_selector_closes_its_provider(tmp_path, make_session):
    config = AppConfig(network=Network.TESTNET, log_directory=tmp_path, log_level="INFO")
    session = make_session()

    with EndpointSelector.from_config(config, session=session) as selector:
        assert selector.network is Network.TESTNET

    assert session.closed is True


def test_close_leaves_injected_provider_open():
    provider = MagicMock()
    selector = EndpointSelector(Network.TESTNET, provider=provider, prober=MagicMock())

    selector.close()

    provider.close.assert_not_called()
