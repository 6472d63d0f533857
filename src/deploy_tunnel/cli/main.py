"""
Primary Typer application wiring for the deploy-tunnel CLI.

The CLI is a thin controller over :class:`~deploy_tunnel.bridge.BridgeClient`:
every command maps to one or a few adapter verbs, prints the typed result and
renders failures through :func:`~deploy_tunnel.bridge.describe_error` so users
never see raw error codes without a hint.
"""

from __future__ import annotations

import json
import os
import tomllib
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

import typer

from ..bridge import (
    AuthRefreshParams,
    AuthStartParams,
    BridgeCallError,
    BridgeClient,
    BridgeError,
    CapabilitiesData,
    DeployPreviewParams,
    DnsRollbackParams,
    DnsUpdateParams,
    EnvTarget,
    EnvVar,
    ErrorCode,
    FetchConfigParams,
    RecordType,
    SyncEnvParams,
    Verb,
    call_with_retry,
    describe_error,
    encode_record,
)
from ..config import load_settings
from ..core.logging import configure_logging, get_logger, log_progress

T = TypeVar("T")

TOKEN_ENVVAR = "DEPLOY_TUNNEL_TOKEN"

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Drive deployment provider adapters through the deploy-tunnel bridge.\n\n"
        "Command groups:\n"
        "- auth: authenticate against a provider.\n"
        "- config / env: read project configuration and push environment variables.\n"
        "- deploy / dns: preview deployments and DNS record changes."
    ),
)
auth_app = typer.Typer(help="Authenticate against a provider and refresh credentials.")
app.add_typer(auth_app, name="auth")
config_app = typer.Typer(help="Inspect provider-side project configuration.")
app.add_typer(config_app, name="config")
env_app = typer.Typer(help="Manage provider-side environment variables.")
app.add_typer(env_app, name="env")
deploy_app = typer.Typer(help="Create preview deployments.")
app.add_typer(deploy_app, name="deploy")
dns_app = typer.Typer(help="Update and roll back DNS records.")
app.add_typer(dns_app, name="dns")


@app.callback(invoke_without_command=False)
def main(
    ctx: typer.Context,
    adapters_path: Optional[Path] = typer.Option(
        None,
        "--adapters-path",
        help="Directory holding one sub-directory per provider adapter.",
        file_okay=False,
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Deadline in seconds for each adapter call."),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration TOML file. Defaults to .deploy-tunnel/config.toml.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    retries: int = typer.Option(0, "--retries", min=0, help="Retry recoverable failures up to this many times."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)."),
) -> None:
    """
    Configure the bridge client shared by every command.

    The callback stores the client in Typer's state so child commands can
    retrieve it via :class:`typer.Context`.
    """

    if log_level:
        configure_logging(log_level, force=True)
    if timeout is not None and timeout <= 0:
        raise typer.BadParameter("Timeout must be a positive number of seconds.", param_hint="--timeout")

    env = dict(os.environ)
    if config_file is not None:
        env["DEPLOY_TUNNEL_CONFIG"] = str(config_file)
    try:
        settings = load_settings(env=env)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        typer.echo(f"Failed to load configuration: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if adapters_path is not None:
        settings.adapters_path = adapters_path
    if timeout is not None:
        settings.timeout = timeout

    state = ctx.ensure_object(dict)
    state["client"] = BridgeClient.from_settings(settings)
    state["retries"] = retries


def _require_client(ctx: typer.Context) -> BridgeClient:
    state = ctx.ensure_object(dict)
    client = state.get("client")
    if not isinstance(client, BridgeClient):
        raise typer.Exit(code=2)
    return client


def _report(exc: BridgeCallError, provider: str) -> None:
    typer.echo(describe_error(exc, provider=provider).render(), err=True)


def _run(ctx: typer.Context, provider: str, call: Callable[[], T]) -> T:
    """Execute ``call`` with the configured retry budget, exiting with status 1 on failure."""

    retries = int(ctx.ensure_object(dict).get("retries") or 0)

    def on_retry(exc: BridgeError, attempt: int) -> None:
        typer.echo(f"Attempt {attempt} failed ({exc.code.value}): {exc.message}. Retrying...", err=True)

    try:
        if retries > 0:
            return call_with_retry(call, attempts=retries + 1, on_retry=on_retry)
        return call()
    except BridgeCallError as exc:
        _report(exc, provider)
        raise typer.Exit(code=1) from exc


def _echo_record(record: Any) -> None:
    typer.echo(json.dumps(encode_record(record), ensure_ascii=False, indent=2))


def _parse_assignments(values: Optional[List[str]], *, option: str) -> Dict[str, str]:
    assignments: Dict[str, str] = {}
    if not values:
        return assignments
    for entry in values:
        if "=" not in entry:
            raise typer.BadParameter(f"'{entry}' must use KEY=VALUE format.", param_hint=option)
        key, value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise typer.BadParameter(f"'{entry}' is missing a key.", param_hint=option)
        assignments[key] = value
    return assignments


def _read_dotenv(path: Path) -> Dict[str, str]:
    """Parse a dotenv-style file: ``KEY=VALUE`` lines, ``#`` comments and optional ``export`` prefixes."""

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise typer.BadParameter(f"Failed to read '{path}': {exc}", param_hint="--file") from exc

    values: Dict[str, str] = {}
    for number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export ") :].lstrip()
        if "=" not in stripped:
            raise typer.BadParameter(f"{path}:{number}: expected KEY=VALUE.", param_hint="--file")
        key, value = stripped.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        values[key.strip()] = value
    return values


def _render_capabilities(caps: CapabilitiesData) -> None:
    typer.echo(f"Adapter: {caps.adapter_name} {caps.adapter_version}")
    typer.echo(f"Auth Type: {caps.auth_type.value}")
    typer.echo(f"Verbs: {', '.join(caps.supported_verbs)}")
    features = caps.features
    typer.echo("Features:")
    typer.echo(f"  dns_management: {features.dns_management}")
    typer.echo(f"  preview_deployments: {features.preview_deployments}")
    typer.echo(f"  env_variables: {features.env_variables}")
    typer.echo(f"  build_logs: {features.build_logs}")


@app.command("capabilities")
def capabilities(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider identifier, e.g. 'vercel'."),
    output_json: bool = typer.Option(False, "--json", help="Emit capabilities in JSON format."),
) -> None:
    """Show what a provider adapter supports."""

    client = _require_client(ctx)
    caps = _run(ctx, provider, lambda: client.capabilities(provider))
    if output_json:
        _echo_record(caps)
        return
    _render_capabilities(caps)


@app.command("call")
def call(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider identifier."),
    verb: str = typer.Argument(..., help="Adapter verb, e.g. 'fetch:config'."),
    params: Optional[str] = typer.Option(None, "--params", "-p", help="JSON object passed to the adapter on stdin."),
) -> None:
    """Invoke a single verb and print the raw response envelope."""

    payload: Optional[Dict[str, Any]] = None
    if params is not None:
        try:
            payload = json.loads(params)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"Invalid JSON: {exc}", param_hint="--params") from exc
        if not isinstance(payload, dict):
            raise typer.BadParameter("Parameters must be a JSON object.", param_hint="--params")

    client = _require_client(ctx)
    envelope = _run(ctx, provider, lambda: client.call(provider, verb, payload))
    typer.echo(json.dumps(envelope.to_payload(), ensure_ascii=False, indent=2))


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider identifier."),
    token: Optional[str] = typer.Option(None, "--token", envvar=TOKEN_ENVVAR, help="Personal access token; prompted for when omitted."),
    callback_url: Optional[str] = typer.Option(None, "--callback-url", help="Redirect URL for browser-based flows."),
    no_browser: bool = typer.Option(False, "--no-browser", help="Print the authentication URL instead of opening it."),
) -> None:
    """
    Authenticate against a provider.

    The flow checks the adapter's capabilities, starts authentication, opens
    the provider's authentication page when one is returned and finally
    verifies the credential with ``fetch:config``.
    """

    client = _require_client(ctx)
    logger = get_logger(__name__)

    caps = _run(ctx, provider, lambda: client.capabilities(provider))
    if not caps.supports(Verb.AUTH_START):
        typer.echo(f"The {provider} adapter does not support authentication.", err=True)
        raise typer.Exit(code=1)

    log_progress(logger, "Starting authentication", provider=provider, verb=Verb.AUTH_START.value, status="started")
    start = _run(ctx, provider, lambda: client.auth_start(AuthStartParams(provider=provider, callback_url=callback_url)))

    credential = start.token or token
    if credential is None:
        if start.requires_browser:
            typer.echo(f"Open {start.auth_url} to authenticate with {provider}.")
            if not no_browser:
                typer.launch(start.auth_url)
        credential = typer.prompt(f"{provider} access token", hide_input=True)

    if caps.supports(Verb.FETCH_CONFIG):
        log_progress(logger, "Verifying credential", provider=provider, verb=Verb.FETCH_CONFIG.value, status="verifying")
        try:
            client.fetch_config(FetchConfigParams(provider=provider, token=credential))
        except BridgeError as exc:
            # Without a project id adapters answer INVALID_PARAMS once the token itself was accepted.
            if exc.code is not ErrorCode.INVALID_PARAMS:
                _report(exc, provider)
                raise typer.Exit(code=1) from exc
        except BridgeCallError as exc:
            _report(exc, provider)
            raise typer.Exit(code=1) from exc

    log_progress(logger, "Authentication complete", provider=provider, status="authenticated")
    typer.echo(f"Authenticated with {provider}.")
    if start.expires_at is not None:
        typer.echo(f"Token expires at {start.expires_at}.")
    typer.echo(f"Export the token as {TOKEN_ENVVAR} to reuse it with other commands.")


@auth_app.command("refresh")
def auth_refresh(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider identifier."),
    refresh_token: str = typer.Option(..., "--refresh-token", help="Refresh token issued by the provider."),
) -> None:
    """Exchange a refresh token for a new access token."""

    client = _require_client(ctx)
    result = _run(ctx, provider, lambda: client.auth_refresh(AuthRefreshParams(provider=provider, refresh_token=refresh_token)))
    _echo_record(result)


@config_app.command("fetch")
def config_fetch(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider identifier."),
    token: str = typer.Option(..., "--token", envvar=TOKEN_ENVVAR, help="Provider access token."),
    project_id: Optional[str] = typer.Option(None, "--project-id", help="Provider-side project identifier."),
) -> None:
    """Fetch project, build and environment configuration."""

    client = _require_client(ctx)
    result = _run(ctx, provider, lambda: client.fetch_config(FetchConfigParams(provider=provider, token=token, project_id=project_id)))
    _echo_record(result)


@env_app.command("sync")
def env_sync(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider identifier."),
    token: str = typer.Option(..., "--token", envvar=TOKEN_ENVVAR, help="Provider access token."),
    project_id: str = typer.Option(..., "--project-id", help="Provider-side project identifier."),
    env_file: Optional[Path] = typer.Option(None, "--file", "-f", help="Dotenv-style file with KEY=VALUE lines.", dir_okay=False),
    assignments: Optional[List[str]] = typer.Option(None, "--set", "-s", help="Variable in KEY=VALUE form. Can be repeated."),
    targets: Optional[List[EnvTarget]] = typer.Option(None, "--target", "-t", help="Target environment. Can be repeated; defaults to all."),
) -> None:
    """Push environment variables to the provider."""

    values: Dict[str, str] = {}
    if env_file is not None:
        values.update(_read_dotenv(env_file))
    values.update(_parse_assignments(assignments, option="--set"))
    if not values:
        raise typer.BadParameter("Provide variables with --file or --set.")

    selected = list(targets) if targets else list(EnvTarget)
    env_vars = [EnvVar(key=key, value=value, target=selected) for key, value in values.items()]

    client = _require_client(ctx)
    result = _run(ctx, provider, lambda: client.sync_env(SyncEnvParams(provider=provider, token=token, project_id=project_id, env_vars=env_vars)))
    typer.echo(f"Synced {result.synced} of {len(env_vars)} variable(s).")
    if result.failed:
        typer.echo(f"Failed: {', '.join(result.failed)}", err=True)
        raise typer.Exit(code=1)


@deploy_app.command("preview")
def deploy_preview(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider identifier."),
    token: str = typer.Option(..., "--token", envvar=TOKEN_ENVVAR, help="Provider access token."),
    project_id: str = typer.Option(..., "--project-id", help="Provider-side project identifier."),
    branch: Optional[str] = typer.Option(None, "--branch", help="Git branch to deploy."),
    env: Optional[List[str]] = typer.Option(None, "--env", "-e", help="Build variable in KEY=VALUE form. Can be repeated."),
) -> None:
    """Create a preview deployment."""

    overrides = _parse_assignments(env, option="--env") or None
    params = DeployPreviewParams(provider=provider, token=token, project_id=project_id, branch=branch, env=overrides)
    client = _require_client(ctx)
    result = _run(ctx, provider, lambda: client.deploy_preview(params))
    _echo_record(result)


@dns_app.command("update")
def dns_update(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider identifier."),
    token: str = typer.Option(..., "--token", envvar=TOKEN_ENVVAR, help="Provider access token."),
    domain: str = typer.Option(..., "--domain", help="Zone the record belongs to."),
    record_type: RecordType = typer.Option(..., "--type", help="DNS record type."),
    record_name: str = typer.Option(..., "--name", help="Record name within the zone."),
    record_value: str = typer.Option(..., "--value", help="New record value."),
    ttl: Optional[int] = typer.Option(None, "--ttl", min=1, help="Record TTL in seconds."),
) -> None:
    """Create or update a DNS record."""

    params = DnsUpdateParams(
        provider=provider,
        token=token,
        domain=domain,
        record_type=record_type,
        record_name=record_name,
        record_value=record_value,
        ttl=ttl,
    )
    client = _require_client(ctx)
    result = _run(ctx, provider, lambda: client.dns_update(params))
    _echo_record(result)


@dns_app.command("rollback")
def dns_rollback(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider identifier."),
    token: str = typer.Option(..., "--token", envvar=TOKEN_ENVVAR, help="Provider access token."),
    record_id: str = typer.Option(..., "--record-id", help="Identifier returned by 'dns update'."),
    rollback_to: str = typer.Option(..., "--rollback-to", help="Value to restore."),
) -> None:
    """Restore a DNS record to a previous value."""

    client = _require_client(ctx)
    result = _run(ctx, provider, lambda: client.dns_rollback(DnsRollbackParams(provider=provider, token=token, record_id=record_id, rollback_to=rollback_to)))
    _echo_record(result)


__all__ = ["app"]
