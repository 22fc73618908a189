"""Subscription ID and access token resolution.

Values are resolved from an ordered list of resolver functions; the first
one returning a non-empty value wins. Resolvers take their inputs
explicitly (flag value, an environment snapshot, a CLI runner) so the
precedence chain can be tested without touching process state.
"""

import shutil
import subprocess
from collections.abc import Callable, Mapping, Sequence

from aztf_bridge.client.exceptions import ConfigurationError
from aztf_bridge.utils.logging import get_logger

logger = get_logger(__name__)

Resolver = Callable[[], str | None]
CliRunner = Callable[[Sequence[str]], str | None]

SUBSCRIPTION_ENV_VARS = ("AZTF_BRIDGE_SUBSCRIPTION_ID", "ARM_SUBSCRIPTION_ID")
TOKEN_ENV_VARS = ("AZTF_BRIDGE_ACCESS_TOKEN", "ARM_ACCESS_TOKEN")


def resolve_first(resolvers: Sequence[tuple[str, Resolver]]) -> tuple[str, str] | None:
    """Run resolvers in priority order and return the first non-empty value.

    Args:
        resolvers: ``(source_name, resolver)`` pairs, highest priority first

    Returns:
        ``(source_name, value)`` of the winning resolver, or None
    """
    for source, resolver in resolvers:
        value = resolver()
        if value and value.strip():
            return source, value.strip()
    return None


def az_cli_runner(args: Sequence[str]) -> str | None:
    """Run an Azure CLI command and return its stripped stdout.

    Returns None when the CLI is not installed or the command fails.
    """
    az = shutil.which("az")
    if az is None:
        return None
    try:
        result = subprocess.run(
            [az, *args], capture_output=True, text=True, check=False, timeout=60
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("az_cli_failed", args=list(args), error=str(e))
        return None
    if result.returncode != 0:
        logger.debug("az_cli_failed", args=list(args), stderr=result.stderr.strip())
        return None
    return result.stdout.strip() or None


def _env_resolvers(environ: Mapping[str, str], names: Sequence[str]) -> list[tuple[str, Resolver]]:
    return [(f"env:{name}", lambda name=name: environ.get(name)) for name in names]


def resolve_subscription_id(
    flag_value: str | None,
    environ: Mapping[str, str],
    cli_runner: CliRunner | None = az_cli_runner,
) -> str:
    """Resolve the subscription ID.

    Priority: command line flag, ``AZTF_BRIDGE_SUBSCRIPTION_ID``,
    ``ARM_SUBSCRIPTION_ID``, then the Azure CLI's active subscription.

    Raises:
        ConfigurationError: If no source yields a subscription ID
    """
    resolvers: list[tuple[str, Resolver]] = [("flag", lambda: flag_value)]
    resolvers.extend(_env_resolvers(environ, SUBSCRIPTION_ENV_VARS))
    if cli_runner is not None:
        resolvers.append(
            ("azure-cli", lambda: cli_runner(["account", "show", "--query", "id", "-o", "tsv"]))
        )

    resolved = resolve_first(resolvers)
    if resolved is None:
        raise ConfigurationError(
            "Subscription ID not found. Use --subscription-id, set ARM_SUBSCRIPTION_ID, "
            "or log in with the Azure CLI."
        )
    source, value = resolved
    logger.debug("subscription_id_resolved", source=source)
    return value


def resolve_access_token(
    flag_value: str | None,
    environ: Mapping[str, str],
    cli_runner: CliRunner | None = az_cli_runner,
) -> str:
    """Resolve an ARM bearer token.

    Priority: configured value, ``AZTF_BRIDGE_ACCESS_TOKEN``,
    ``ARM_ACCESS_TOKEN``, then ``az account get-access-token``.

    Raises:
        ConfigurationError: If no source yields a token
    """
    resolvers: list[tuple[str, Resolver]] = [("config", lambda: flag_value)]
    resolvers.extend(_env_resolvers(environ, TOKEN_ENV_VARS))
    if cli_runner is not None:
        resolvers.append(
            (
                "azure-cli",
                lambda: cli_runner(
                    ["account", "get-access-token", "--query", "accessToken", "-o", "tsv"]
                ),
            )
        )

    resolved = resolve_first(resolvers)
    if resolved is None:
        raise ConfigurationError(
            "Azure access token not found. Set ARM_ACCESS_TOKEN or log in with the Azure CLI."
        )
    source, value = resolved
    logger.debug("access_token_resolved", source=source)
    return value
