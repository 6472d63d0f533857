"""
Vercel provider adapter.

Vercel authenticates with personal access tokens, so ``auth:start`` only
points the user at the token page and ``auth:refresh`` is unsupported.
Project configuration and environment variables go through the v9/v10 REST
API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, MutableMapping, Optional

import httpx

from ...bridge.errors import BridgeError
from ...bridge.schema import (
    AuthStartData,
    AuthStartParams,
    AuthType,
    BuildConfig,
    EnvTarget,
    EnvVar,
    ErrorCode,
    Features,
    FetchConfigData,
    FetchConfigParams,
    ProjectInfo,
    SyncEnvData,
    SyncEnvParams,
)
from ..api.base import BaseAPIClient, VendorAPIError, VendorNetworkError, bridge_error_from
from ..base import BaseAdapter

VERCEL_API_BASE = "https://api.vercel.com"
VERCEL_TOKENS_URL = "https://vercel.com/account/tokens"
DEFAULT_BUILD_COMMAND = "npm run build"
DEFAULT_OUTPUT_DIR = ".next"

_ENV_TARGETS = {member.value for member in EnvTarget}


class VercelClient(BaseAPIClient):
    """Minimal client for the Vercel REST API."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = VERCEL_API_BASE,
        timeout: float = 20.0,
        max_attempts: int = 3,
        transport: Optional[httpx.BaseTransport] = None,
        default_headers: Optional[MutableMapping[str, str]] = None,
    ) -> None:
        headers: MutableMapping[str, str] = {"Accept": "application/json", "Authorization": f"Bearer {token}"}
        if default_headers:
            headers.update(default_headers)
        super().__init__(base_url=base_url, timeout=timeout, default_headers=headers, max_attempts=max_attempts, transport=transport)

    def list_projects(self) -> List[Mapping[str, Any]]:
        payload = self._get_json("/v9/projects")
        projects = payload.get("projects") if isinstance(payload, Mapping) else None
        return [item for item in projects or [] if isinstance(item, Mapping)]

    def get_project(self, project_id: str) -> Mapping[str, Any]:
        payload = self._get_json(f"/v9/projects/{project_id}")
        if not isinstance(payload, Mapping):
            raise VendorAPIError("Unexpected project payload from Vercel.", status_code=200, payload=None)
        return payload

    def list_env(self, project_id: str) -> List[Mapping[str, Any]]:
        payload = self._get_json(f"/v9/projects/{project_id}/env")
        envs = payload.get("envs") if isinstance(payload, Mapping) else None
        return [item for item in envs or [] if isinstance(item, Mapping)]

    def create_env(self, project_id: str, env: EnvVar) -> None:
        self._post_json(
            f"/v10/projects/{project_id}/env",
            json_body={
                "key": env.key,
                "value": env.value,
                "target": [target.value for target in env.target],
                "type": "encrypted",
            },
        )


def _production_domain(project: Mapping[str, Any], name: str) -> str:
    targets = project.get("targets")
    if isinstance(targets, Mapping):
        production = targets.get("production")
        if isinstance(production, Mapping):
            aliases = production.get("alias")
            if isinstance(aliases, list) and aliases and isinstance(aliases[0], str):
                return aliases[0]
    return f"{name}.vercel.app"


def _env_targets(raw: Any) -> List[EnvTarget]:
    values = raw if isinstance(raw, list) else [raw]
    return [EnvTarget(value) for value in values if value in _ENV_TARGETS]


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def project_summary(projects: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [{"id": item.get("id"), "name": item.get("name")} for item in projects]


class VercelAdapter(BaseAdapter):
    """Bridge adapter for Vercel."""

    name = "vercel"
    version = "1.0.0"
    auth_type = AuthType.TOKEN
    # No dns:update or deploy:preview handler yet.
    features = Features(dns_management=False, preview_deployments=False, env_variables=True, build_logs=True)

    def __init__(self, *, base_url: str = VERCEL_API_BASE, transport: Optional[httpx.BaseTransport] = None, max_attempts: int = 3) -> None:
        super().__init__()
        self.base_url = base_url
        self.transport = transport
        self.max_attempts = max_attempts

    def client(self, token: str) -> VercelClient:
        return VercelClient(token, base_url=self.base_url, transport=self.transport, max_attempts=self.max_attempts)

    def auth_start(self, params: AuthStartParams) -> AuthStartData:
        return AuthStartData(auth_url=VERCEL_TOKENS_URL)

    def fetch_config(self, params: FetchConfigParams) -> FetchConfigData:
        client = self.client(params.token)
        if not params.project_id:
            try:
                projects = client.list_projects()
            except (VendorAPIError, VendorNetworkError) as exc:
                raise bridge_error_from(exc, fallback="Failed to fetch projects") from exc
            raise BridgeError(
                ErrorCode.INVALID_PARAMS,
                "Multiple projects found. Please specify project_id.",
                recoverable=False,
                details={"projects": project_summary(projects)},
            )

        try:
            project = client.get_project(params.project_id)
        except (VendorAPIError, VendorNetworkError) as exc:
            raise bridge_error_from(exc, fallback="Failed to fetch project") from exc

        try:
            envs = client.list_env(params.project_id)
        except VendorAPIError as exc:
            self.logger.warning("Could not list environment variables", extra={"status_code": exc.status_code})
            envs = []
        except VendorNetworkError as exc:
            raise bridge_error_from(exc, fallback="Failed to fetch environment variables") from exc

        name = str(project.get("name") or params.project_id)
        return FetchConfigData(
            project=ProjectInfo(
                id=str(project.get("id") or params.project_id),
                name=name,
                domain=_production_domain(project, name),
                framework=_optional_str(project.get("framework")),
            ),
            build=BuildConfig(
                command=_optional_str(project.get("buildCommand")) or DEFAULT_BUILD_COMMAND,
                output_dir=_optional_str(project.get("outputDirectory")) or DEFAULT_OUTPUT_DIR,
                install_command=_optional_str(project.get("installCommand")),
            ),
            env=[
                EnvVar(key=str(item.get("key", "")), value=str(item.get("value", "")), target=_env_targets(item.get("target")))
                for item in envs
                if item.get("key")
            ],
        )

    def sync_env(self, params: SyncEnvParams) -> SyncEnvData:
        client = self.client(params.token)
        synced = 0
        failed: List[str] = []
        for env in params.env_vars:
            try:
                client.create_env(params.project_id, env)
            except VendorAPIError as exc:
                self.logger.warning("Failed to sync environment variable", extra={"key": env.key, "status_code": exc.status_code})
                failed.append(env.key)
            except VendorNetworkError as exc:
                raise bridge_error_from(exc, fallback="Failed to sync environment variables") from exc
            else:
                synced += 1
        return SyncEnvData(synced=synced, failed=failed)


__all__ = ["VercelAdapter", "VercelClient"]
