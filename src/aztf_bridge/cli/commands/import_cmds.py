"""
Import commands.

One command per selection mode (single resource, resource group, Resource
Graph query, saved mapping file). They share the session options and the
same pipeline: discover, build the session, resolve types (interactively or
not), import, and report.
"""

import asyncio
import os
import time
from collections.abc import Awaitable, Callable
from pathlib import Path

import click

from aztf_bridge.cli.context import BridgeContext
from aztf_bridge.cli.decorators import handle_errors, pass_context
from aztf_bridge.cli.interactive import RichImportList
from aztf_bridge.cli.utils import (
    console,
    echo_info,
    echo_success,
    echo_warning,
    format_duration,
)
from aztf_bridge.client.exceptions import EngineUnavailableError
from aztf_bridge.client.resource_graph import ResourceGraphClient
from aztf_bridge.config import BridgeConfig
from aztf_bridge.credentials import resolve_access_token, resolve_subscription_id
from aztf_bridge.discovery import (
    MappingFileProvider,
    QueryProvider,
    ResourceGroupProvider,
    SingleResourceProvider,
)
from aztf_bridge.engine import ImportExecutor, TerraformEngine
from aztf_bridge.reporting import ImportProgressDisplay, ImportReport, print_summary
from aztf_bridge.schema import load_catalog
from aztf_bridge.session import ImportStateStore, ResourceDescriptor, TypeResolver
from aztf_bridge.session.controller import SessionController, build_session
from aztf_bridge.session.models import SessionOutcome
from aztf_bridge.utils.logging import get_logger

logger = get_logger(__name__)

Discover = Callable[[BridgeConfig], Awaitable[list[ResourceDescriptor]]]


def session_options(f: Callable) -> Callable:
    """Options shared by every import command."""
    options = [
        click.option(
            "--output-dir",
            "-o",
            type=click.Path(file_okay=False, path_type=Path),
            help="Terraform working directory (must be initialised)",
        ),
        click.option(
            "--parallelism", "-p", type=int, help="Maximum concurrent imports (default: 10)"
        ),
        click.option(
            "--continue",
            "-k",
            "continue_on_error",
            is_flag=True,
            default=None,
            help="Keep importing other resources after an import error",
        ),
        click.option(
            "--non-interactive",
            "-n",
            is_flag=True,
            default=None,
            help="Resolve types from recommendations without the interactive list",
        ),
        click.option(
            "--resume",
            is_flag=True,
            default=None,
            help="Resume from the mapping file in the output directory",
        ),
        click.option(
            "--generate-mapping-file",
            "generate_mapping_only",
            is_flag=True,
            default=None,
            help="Only resolve types and write the mapping file",
        ),
        click.option("--subscription-id", "-s", help="Azure subscription ID"),
        click.option("--module-path", help="Import into this module (e.g. mod1.mod2)"),
        click.option(
            "--provider-schema",
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            help="Output of `terraform providers schema -json` used to validate types",
        ),
        click.option(
            "--recommendations",
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            help="YAML file mapping Azure resource kinds to Terraform types",
        ),
        click.option(
            "--report-file",
            type=click.Path(dir_okay=False, path_type=Path),
            help="Write a session report (.md for Markdown, JSON otherwise)",
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _config_from_options(ctx: BridgeContext, **options) -> BridgeConfig:
    return ctx.build_config(
        output__output_dir=_str_or_none(options.get("output_dir")),
        performance__parallelism=options.get("parallelism"),
        continue_on_error=options.get("continue_on_error"),
        non_interactive=options.get("non_interactive"),
        resume=options.get("resume"),
        generate_mapping_only=options.get("generate_mapping_only"),
        subscription_id=options.get("subscription_id"),
        engine__module_path=options.get("module_path"),
        catalog__provider_schema_file=_str_or_none(options.get("provider_schema")),
        catalog__recommendations_file=_str_or_none(options.get("recommendations")),
        output__report_file=_str_or_none(options.get("report_file")),
    )


def _str_or_none(value: Path | str | None) -> str | None:
    return str(value) if value is not None else None


def _graph_client(config: BridgeConfig) -> ResourceGraphClient:
    token = resolve_access_token(config.discovery.access_token, os.environ)
    return ResourceGraphClient(config.discovery, token)


async def _run_session(config: BridgeConfig, discover: Discover) -> int:
    start_time = time.time()
    output_dir = Path(config.output.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    catalog = load_catalog(
        config.catalog.provider_schema_file, config.catalog.recommendations_file
    )
    store = ImportStateStore(output_dir / config.output.mapping_file_name)
    loaded = store.load() if config.resume else None

    descriptors = await discover(config)
    if not descriptors:
        echo_warning("No resources discovered")
        return 0
    echo_info(f"Discovered {len(descriptors)} resource(s)")

    session = build_session(
        descriptors,
        loaded=loaded,
        parallelism=config.performance.parallelism,
        continue_on_error=config.continue_on_error,
        output_dir=output_dir,
        module_path=config.engine.module_path,
    )
    engine = TerraformEngine(
        output_dir,
        engine_config=config.engine,
        performance_config=config.performance,
        stub_file_name=config.output.stub_file_name,
        subscription_id=config.subscription_id,
    )
    executor = ImportExecutor(
        engine,
        parallelism=config.performance.parallelism,
        timeout=config.performance.import_timeout,
    )
    controller = SessionController(
        session,
        TypeResolver(catalog),
        executor,
        store,
        engine,
        generate_mapping_only=config.generate_mapping_only,
    )

    frontend = None if config.non_interactive else RichImportList(console)
    display = ImportProgressDisplay(
        enabled=config.non_interactive and not config.logging.disable_progress
    )
    controller.subscribe(display.on_transition)

    try:
        with display:
            outcome = await controller.run(frontend)
    except EngineUnavailableError:
        outcome = controller.outcome()
        print_summary(outcome, console)
        _write_report(outcome, config.output.report_file)
        raise

    print_summary(outcome, console)
    _write_report(outcome, config.output.report_file)
    echo_info(f"Finished in {format_duration(time.time() - start_time)}")

    if config.generate_mapping_only:
        echo_success(f"Mapping file written to {outcome.mapping_file}")
    elif outcome.errored:
        echo_warning(f"{len(outcome.errored)} resource(s) failed to import")
    return outcome.exit_code


def _write_report(outcome: SessionOutcome, report_file: str | None) -> None:
    if not report_file:
        return
    report = ImportReport(outcome)
    if Path(report_file).suffix.lower() == ".md":
        report.generate_markdown(report_file)
    else:
        report.generate_json(report_file)
    echo_info(f"Report written to {report_file}")


def _execute(ctx: BridgeContext, discover: Discover, **options) -> None:
    config = _config_from_options(ctx, **options)
    logger.info(
        "import_command_started",
        output_dir=config.output.output_dir,
        non_interactive=config.non_interactive,
        resume=config.resume,
    )
    exit_code = asyncio.run(_run_session(config, discover))
    if exit_code:
        raise click.exceptions.Exit(exit_code)


@click.command(name="resource")
@click.argument("resource_id")
@click.option("--name", help="Terraform resource name (default: res-0)")
@click.option("--type", "resource_type", help="Terraform resource type to import as")
@session_options
@pass_context
@handle_errors
def resource_cmd(
    ctx: BridgeContext, resource_id: str, name: str | None, resource_type: str | None, **options
) -> None:
    """Import a single resource by its Azure resource ID."""

    async def discover(config: BridgeConfig) -> list[ResourceDescriptor]:
        return await SingleResourceProvider(resource_id, name, resource_type).discover()

    _execute(ctx, discover, **options)


@click.command(name="resource-group")
@click.argument("name")
@click.option("--name-pattern", help="Resource name pattern; '*' is replaced by the index")
@session_options
@pass_context
@handle_errors
def resource_group_cmd(
    ctx: BridgeContext, name: str, name_pattern: str | None, **options
) -> None:
    """Import a resource group and every resource in it."""

    async def discover(config: BridgeConfig) -> list[ResourceDescriptor]:
        pattern = name_pattern or config.discovery.resource_name_pattern
        subscription_id = resolve_subscription_id(config.subscription_id, os.environ)
        async with _graph_client(config) as client:
            provider = ResourceGroupProvider(client, subscription_id, name, pattern)
            return await provider.discover()

    _execute(ctx, discover, **options)


@click.command(name="query")
@click.argument("predicate")
@click.option("--name-pattern", help="Resource name pattern; '*' is replaced by the index")
@session_options
@pass_context
@handle_errors
def query_cmd(ctx: BridgeContext, predicate: str, name_pattern: str | None, **options) -> None:
    """Import resources matching an Azure Resource Graph where-clause.

    Example:

        aztf-bridge query -n "resourceGroup =~ 'my-rg' and type =~ 'microsoft.network/virtualnetworks'"
    """

    async def discover(config: BridgeConfig) -> list[ResourceDescriptor]:
        pattern = name_pattern or config.discovery.resource_name_pattern
        subscription_id = resolve_subscription_id(config.subscription_id, os.environ)
        async with _graph_client(config) as client:
            provider = QueryProvider(client, subscription_id, predicate, pattern)
            return await provider.discover()

    _execute(ctx, discover, **options)


@click.command(name="mapping-file")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@session_options
@pass_context
@handle_errors
def mapping_file_cmd(ctx: BridgeContext, path: Path, **options) -> None:
    """Import the resources listed in a saved resource mapping file."""

    async def discover(config: BridgeConfig) -> list[ResourceDescriptor]:
        return await MappingFileProvider(path).discover()

    _execute(ctx, discover, **options)
