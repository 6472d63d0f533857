from __future__ import annotations

import json

import httpx
import pytest

from deploy_tunnel.adapters.api.base import VendorAPIError, VendorNetworkError, bridge_error_from
from deploy_tunnel.adapters.vercel import VercelAdapter, VercelClient
from deploy_tunnel.bridge import BridgeClient, BridgeEngine, BridgeError, EnvTarget, ErrorCode, Verb, call_with_retry
from deploy_tunnel.config import BUNDLED_ADAPTERS_PATH

PROJECT = {
    "id": "prj_123",
    "name": "marketing-site",
    "framework": "nextjs",
    "buildCommand": None,
    "outputDirectory": "out",
    "targets": {"production": {"alias": ["www.example.com", "example.com"]}},
}


def _adapter(handler, **kwargs) -> VercelAdapter:
    return VercelAdapter(transport=httpx.MockTransport(handler), **kwargs)


def test_capabilities_advertise_implemented_verbs():
    envelope = VercelAdapter().handle("capabilities")

    assert envelope.ok is True
    assert envelope.adapter_version == "1.0.0"
    assert envelope.data["supported_verbs"] == ["capabilities", "auth:start", "fetch:config", "sync:env"]
    assert envelope.data["auth_type"] == "token"
    assert envelope.data["features"] == {"dns_management": False, "preview_deployments": False, "env_variables": True, "build_logs": True}


def test_auth_start_points_to_token_page():
    envelope = VercelAdapter().handle("auth:start", {"provider": "vercel"})

    assert envelope.data == {"auth_url": "https://vercel.com/account/tokens"}


@pytest.mark.parametrize("verb", ["auth:refresh", "deploy:preview", "dns:update", "dns:rollback"])
def test_remaining_verbs_are_unsupported(verb):
    params = {
        "provider": "vercel",
        "token": "t",
        "refresh_token": "r",
        "project_id": "p",
        "domain": "example.com",
        "record_type": "A",
        "record_name": "@",
        "record_value": "1.1.1.1",
        "record_id": "rec",
        "rollback_to": "2.2.2.2",
    }

    envelope = VercelAdapter().handle(verb, params)

    assert envelope.error.code is ErrorCode.UNSUPPORTED


def test_fetch_config_maps_project_and_env():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        assert request.headers["Authorization"] == "Bearer tok"
        if request.url.path == "/v9/projects/prj_123":
            return httpx.Response(200, json=PROJECT)
        if request.url.path == "/v9/projects/prj_123/env":
            return httpx.Response(
                200,
                json={
                    "envs": [
                        {"key": "API_URL", "value": "https://api.example.com", "target": ["production", "preview"]},
                        {"key": "LEGACY", "value": "1", "target": "staging"},
                    ]
                },
            )
        return httpx.Response(404, json={"error": {"message": "unexpected"}})

    envelope = _adapter(handler).handle("fetch:config", {"provider": "vercel", "token": "tok", "project_id": "prj_123"})

    assert envelope.ok is True
    assert envelope.data["project"] == {"id": "prj_123", "name": "marketing-site", "domain": "www.example.com", "framework": "nextjs"}
    assert envelope.data["build"] == {"command": "npm run build", "output_dir": "out"}
    assert envelope.data["env"] == [
        {"key": "API_URL", "value": "https://api.example.com", "target": ["production", "preview"]},
        {"key": "LEGACY", "value": "1", "target": []},
    ]
    assert [request.url.path for request in seen] == ["/v9/projects/prj_123", "/v9/projects/prj_123/env"]


def test_fetch_config_defaults_domain_and_tolerates_env_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/env"):
            return httpx.Response(403, json={"error": {"message": "forbidden"}})
        return httpx.Response(200, json={"id": "prj_1", "name": "docs"})

    envelope = _adapter(handler).handle("fetch:config", {"provider": "vercel", "token": "tok", "project_id": "prj_1"})

    assert envelope.data["project"]["domain"] == "docs.vercel.app"
    assert envelope.data["build"]["output_dir"] == ".next"
    assert envelope.data["env"] == []


def test_fetch_config_without_project_lists_candidates():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v9/projects"
        return httpx.Response(200, json={"projects": [{"id": "a", "name": "one"}, {"id": "b", "name": "two"}]})

    envelope = _adapter(handler).handle("fetch:config", {"provider": "vercel", "token": "tok"})

    error = envelope.error
    assert error.code is ErrorCode.INVALID_PARAMS
    assert error.recoverable is False
    assert error.details == {"projects": [{"id": "a", "name": "one"}, {"id": "b", "name": "two"}]}


def test_missing_project_is_not_retried():
    listings = []

    def handler(request: httpx.Request) -> httpx.Response:
        listings.append(request.url.path)
        return httpx.Response(200, json={"projects": [{"id": "a", "name": "one"}]})

    adapter = _adapter(handler)

    def fetch():
        envelope = adapter.handle("fetch:config", {"provider": "vercel", "token": "tok"})
        raise envelope.error

    with pytest.raises(BridgeError) as excinfo:
        call_with_retry(fetch, attempts=3)

    assert excinfo.value.code is ErrorCode.INVALID_PARAMS
    assert listings == ["/v9/projects"]


@pytest.mark.parametrize(
    ("status", "code", "recoverable"),
    [
        (401, ErrorCode.AUTH_FAILED, False),
        (403, ErrorCode.AUTH_FAILED, False),
        (404, ErrorCode.NOT_FOUND, False),
        (429, ErrorCode.RATE_LIMITED, True),
        (500, ErrorCode.PROVIDER_ERROR, False),
    ],
)
def test_fetch_config_maps_http_failures(status, code, recoverable):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": {"code": "x", "message": f"status {status}"}})

    envelope = _adapter(handler).handle("fetch:config", {"provider": "vercel", "token": "tok", "project_id": "prj"})

    assert envelope.error.code is code
    assert envelope.error.recoverable is recoverable
    assert envelope.error.message == f"status {status}"


def test_network_failure_is_recoverable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    envelope = _adapter(handler, max_attempts=1).handle("fetch:config", {"provider": "vercel", "token": "tok", "project_id": "prj"})

    assert envelope.error.code is ErrorCode.NETWORK_ERROR
    assert envelope.error.recoverable is True


def test_sync_env_counts_successes_and_failures():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/v10/projects/prj/env"
        body = json.loads(request.content)
        bodies.append(body)
        if body["key"] == "BROKEN":
            return httpx.Response(400, json={"error": {"message": "invalid key"}})
        return httpx.Response(201, json={"created": body})

    params = {
        "provider": "vercel",
        "token": "tok",
        "project_id": "prj",
        "env_vars": [
            {"key": "API_URL", "value": "https://api.example.com", "target": ["production"]},
            {"key": "BROKEN", "value": "x", "target": ["preview"]},
            {"key": "DEBUG", "value": "0", "target": ["development", "preview"]},
        ],
    }

    envelope = _adapter(handler).handle("sync:env", params)

    assert envelope.data == {"synced": 2, "failed": ["BROKEN"]}
    assert bodies[0] == {"key": "API_URL", "value": "https://api.example.com", "target": ["production"], "type": "encrypted"}


def test_client_retries_transport_errors(monkeypatch):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) < 2:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json={"projects": []})

    monkeypatch.setattr("time.sleep", lambda seconds: None)
    client = VercelClient("tok", transport=httpx.MockTransport(handler))

    assert client.list_projects() == []
    assert len(attempts) == 2


def test_bridge_error_from_unknown_exception():
    error = bridge_error_from(ValueError("odd"), fallback="Failed")

    assert error.code is ErrorCode.UNKNOWN
    assert bridge_error_from(VendorNetworkError("down"), fallback="x").recoverable is True
    assert bridge_error_from(VendorAPIError("gone", status_code=404), fallback="x").message == "x"


def test_env_targets_filter_unknown_values():
    from deploy_tunnel.adapters.vercel.adapter import _env_targets

    assert _env_targets(["production", "staging"]) == [EnvTarget.PRODUCTION]
    assert _env_targets("preview") == [EnvTarget.PREVIEW]


def test_bundled_adapter_runs_as_child_process(src_on_pythonpath):
    client = BridgeClient(engine=BridgeEngine(adapters_path=BUNDLED_ADAPTERS_PATH, timeout=30))

    caps = client.capabilities("vercel")
    start = client.call("vercel", Verb.AUTH_START, {"provider": "vercel"})

    assert caps.adapter_name == "vercel"
    assert caps.supports(Verb.SYNC_ENV)
    assert start.data["auth_url"] == "https://vercel.com/account/tokens"


def test_bundled_adapter_reports_invalid_params(src_on_pythonpath):
    client = BridgeClient(engine=BridgeEngine(adapters_path=BUNDLED_ADAPTERS_PATH, timeout=30))

    with pytest.raises(BridgeError) as excinfo:
        client.call("vercel", Verb.SYNC_ENV, {"provider": "vercel"})

    assert excinfo.value.code is ErrorCode.INVALID_PARAMS
    assert excinfo.value.details == {"field": "token"}
