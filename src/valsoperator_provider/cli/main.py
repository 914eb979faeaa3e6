"""Main entry point for the valsop CLI.

A thin host boundary over ``ValsOperatorProvider``: desired-state documents
in, observed state out as JSON on stdout.

Commands:
    valsop apply: Create or update a ValsSecret/DbSecret from YAML or JSON
    valsop get: Read a managed object
    valsop delete: Delete a managed object
    valsop lookup: Read-only lookup of a ValsSecret or core Secret

Example:
    $ valsop --provider-config provider.yaml apply dbsecret.yaml
    $ TF_LOG=DEBUG valsop get DbSecret default example
    $ valsop lookup --kind Secret default example
"""

from __future__ import annotations

import functools
import json
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import IO, Any, TypeVar

import click
import structlog
import yaml
from pydantic import BaseModel, ValidationError

from valsoperator_provider.cancellation import CancellationToken
from valsoperator_provider.cli.utils import ExitCode, error_exit, exit_code_for, success
from valsoperator_provider.config import ProviderConfig
from valsoperator_provider.errors import ValsProviderError
from valsoperator_provider.logging import configure_logging
from valsoperator_provider.provider import ValsOperatorProvider

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

MANAGED_KINDS = ("ValsSecret", "DbSecret")


def _get_version() -> str:
    """Return the installed package version, or 'unknown'."""
    try:
        return get_version("valsoperator-provider")
    except PackageNotFoundError:
        return "unknown"


@dataclass(frozen=True)
class CliSettings:
    """Global options shared by every command."""

    provider_config: Path | None
    terraform_version: str
    timeout: float | None
    strict: bool


def handle_provider_errors(func: F) -> F:
    """Turn provider and validation errors into stderr messages and exit codes."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ValsProviderError as e:
            logger.debug("command failed", error_type=type(e).__name__)
            error_exit(e.message, exit_code=exit_code_for(e), retryable=e.retryable or None)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            error_exit(
                f"Invalid document: {first['msg']}",
                exit_code=ExitCode.VALIDATION_ERROR,
                field=field or None,
            )

    return wrapper  # type: ignore[return-value]


def _provider(ctx: click.Context) -> ValsOperatorProvider:
    """Return the provider, configuring it on first use."""
    obj = ctx.ensure_object(dict)
    if "provider" not in obj:
        settings: CliSettings = obj["settings"]
        config = (
            ProviderConfig.from_file(settings.provider_config)
            if settings.provider_config
            else ProviderConfig()
        )
        obj["provider"] = ValsOperatorProvider.configure(
            config,
            terraform_version=settings.terraform_version,
            strict=settings.strict,
        )
    provider: ValsOperatorProvider = obj["provider"]
    return provider


def _cancel_token(ctx: click.Context) -> CancellationToken | None:
    settings: CliSettings | None = ctx.ensure_object(dict).get("settings")
    if settings is None or settings.timeout is None:
        return None
    return CancellationToken.with_timeout(settings.timeout)


def _read_mapping(stream: IO[str]) -> dict[str, Any]:
    """Parse a YAML or JSON document into a mapping."""
    try:
        data = yaml.safe_load(stream)
    except yaml.YAMLError as e:
        error_exit(f"Malformed document: {e}", exit_code=ExitCode.VALIDATION_ERROR)
    if not isinstance(data, Mapping):
        error_exit("Document must be a mapping", exit_code=ExitCode.VALIDATION_ERROR)
    return dict(data)


def _render(kind: str, spec: BaseModel) -> str:
    return json.dumps({"kind": kind, **spec.model_dump(mode="json")}, indent=2)


# =============================================================================
# Root group
# =============================================================================


@click.group(
    name="valsop",
    help="valsop - Manage vals-operator ValsSecret and DbSecret resources.",
    epilog="Use 'valsop <command> --help' for command-specific help.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=_get_version(), prog_name="valsop", message="%(prog)s %(version)s")
@click.option(
    "--provider-config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="VALSOP_PROVIDER_CONFIG",
    help="Provider configuration file (YAML or JSON).",
    metavar="PATH",
)
@click.option(
    "--log-level",
    envvar="TF_LOG",
    default="WARN",
    show_default=True,
    help="Log level (TRACE, DEBUG, INFO, WARN, ERROR, OFF).",
)
@click.option(
    "--json-logs/--console-logs",
    default=False,
    show_default=True,
    help="Render logs as JSON lines.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Deadline in seconds for the whole command.",
)
@click.option(
    "--terraform-version",
    default="",
    help="Host version reported in the default User-Agent.",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Fail instead of continuing when the kubeconfig cannot be loaded.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    provider_config: Path | None,
    log_level: str,
    json_logs: bool,
    timeout: float | None,
    terraform_version: str,
    strict: bool,
) -> None:
    """Root command group for valsop."""
    try:
        configure_logging(log_level, json_output=json_logs)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--log-level") from e

    obj = ctx.ensure_object(dict)
    obj["settings"] = CliSettings(
        provider_config=provider_config,
        terraform_version=terraform_version,
        timeout=timeout,
        strict=strict,
    )


# =============================================================================
# Commands
# =============================================================================


@cli.command(
    name="apply",
    epilog="""
Examples:
    $ valsop apply valssecret.yaml
    $ cat dbsecret.json | valsop apply -
    $ valsop apply renamed.yaml --prior original.yaml
""",
)
@click.argument("document", type=click.File("r"))
@click.option(
    "--prior",
    type=click.File("r"),
    default=None,
    help="Previously applied document; a different name or namespace forces recreation.",
)
@click.pass_context
@handle_provider_errors
def apply_command(ctx: click.Context, document: IO[str], prior: IO[str] | None) -> None:
    """Create or update the resource described by DOCUMENT.

    DOCUMENT is YAML or JSON with a top-level ``kind`` (ValsSecret or
    DbSecret) next to the resource fields. Prints the observed state.
    """
    data = _read_mapping(document)
    kind = data.pop("kind", None)
    if kind is None:
        error_exit("Document has no 'kind'", exit_code=ExitCode.VALIDATION_ERROR)

    provider = _provider(ctx)
    try:
        adapter = provider.adapter_for(str(kind))
    except ValueError as e:
        error_exit(str(e), exit_code=ExitCode.VALIDATION_ERROR)

    desired = adapter.parse(data)
    prior_spec = None
    if prior is not None:
        prior_data = _read_mapping(prior)
        prior_kind = prior_data.pop("kind", kind)
        if str(prior_kind).lower() != str(kind).lower():
            error_exit(
                "Prior document has a different kind",
                exit_code=ExitCode.VALIDATION_ERROR,
                kind=str(kind),
                prior_kind=str(prior_kind),
            )
        prior_spec = adapter.parse(prior_data)

    observed = adapter.apply(desired, prior_spec, cancel=_cancel_token(ctx))
    success(_render(adapter.kind, observed))


@cli.command(name="get")
@click.argument("kind", type=click.Choice(MANAGED_KINDS, case_sensitive=False))
@click.argument("namespace")
@click.argument("name")
@click.pass_context
@handle_provider_errors
def get_command(ctx: click.Context, kind: str, namespace: str, name: str) -> None:
    """Print the stored state of a managed object."""
    adapter = _provider(ctx).adapter_for(kind)
    observed = adapter.read(namespace, name, cancel=_cancel_token(ctx))
    success(_render(adapter.kind, observed))


@cli.command(name="delete")
@click.argument("kind", type=click.Choice(MANAGED_KINDS, case_sensitive=False))
@click.argument("namespace")
@click.argument("name")
@click.option(
    "--ignore-not-found",
    is_flag=True,
    default=False,
    help="Succeed when the object does not exist.",
)
@click.pass_context
@handle_provider_errors
def delete_command(
    ctx: click.Context, kind: str, namespace: str, name: str, ignore_not_found: bool
) -> None:
    """Delete a managed object."""
    adapter = _provider(ctx).adapter_for(kind)
    cancel = _cancel_token(ctx)
    if ignore_not_found and not adapter.exists(namespace, name, cancel=cancel):
        success(f"{adapter.kind} '{namespace}/{name}' not found, nothing to delete")
        return
    adapter.delete(namespace, name, cancel=cancel)
    success(f"{adapter.kind} '{namespace}/{name}' deleted")


@cli.command(name="lookup")
@click.argument("namespace")
@click.argument("name")
@click.option(
    "--kind",
    type=click.Choice(["ValsSecret", "Secret"], case_sensitive=False),
    default="ValsSecret",
    show_default=True,
    help="Kind to look up.",
)
@click.pass_context
@handle_provider_errors
def lookup_command(ctx: click.Context, namespace: str, name: str, kind: str) -> None:
    """Print a read-only summary (name, namespace, type) of an object."""
    provider = _provider(ctx)
    cancel = _cancel_token(ctx)
    summary: BaseModel
    if kind.lower() == "secret":
        summary = provider.secrets.read(namespace, name, cancel=cancel)
        rendered_kind = provider.secrets.kind
    else:
        summary = provider.vals_secrets.lookup(namespace, name, cancel=cancel)
        rendered_kind = provider.vals_secrets.kind
    success(_render(rendered_kind, summary))


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the valsop CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(ExitCode.GENERAL_ERROR)


if __name__ == "__main__":
    main()
