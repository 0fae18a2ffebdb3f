"""Main CLI entry point for the fabric-sync command.

This module provides the Typer application with two commands:

- publish-all: publish every in-scope repository item to a workspace
- unpublish-orphans: delete deployed items that are no longer in the repository
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import typer

from src.cli.models import ExitCode, PublishSummary
from src.cli.output import OutputHandler
from src.fabric_client.auth import Authenticator, TokenProvider
from src.fabric_client.endpoint import FabricEndpoint
from src.fabric_client.errors import (
    ApiError,
    AuthError,
    OperationCancelledError,
    RetryBudgetExhaustedError,
    SyncError,
    TransportError,
)
from src.publish.publish import publish_all_items, unpublish_all_orphan_items
from src.workspace.config import ConfigLoader, FeatureFlags, WorkspaceConfig
from src.workspace.constants import VERSION
from src.workspace.errors import InputError, ItemPublishError
from src.workspace.fabric_workspace import FabricWorkspace

app = typer.Typer(
    name="fabric-sync",
    help="""Publish a repository of Fabric item definitions to a Fabric workspace.

QUICK START:
  fabric-sync publish-all --repo ./workspace --workspace-id <guid> --environment PROD
  fabric-sync unpublish-orphans --repo ./workspace --workspace-id <guid>""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'src' namespace logger to avoid affecting third-party
    libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    app_logger = logging.getLogger("src")
    app_logger.setLevel(level)
    app_logger.handlers.clear()

    log_format = "%(asctime)s [%(levelname)8s] %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"fabric-sync_{timestamp}.log"

        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        file_formatter = logging.Formatter(file_format, datefmt=date_format)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def _build_config(
    config_file: Optional[str],
    repo: Optional[str],
    workspace_id: Optional[str],
    workspace_name: Optional[str],
    environment: Optional[str],
    item_types: Optional[List[str]],
    exclude_regex: Optional[str],
    feature_flags: Optional[List[str]],
    parameter_file: Optional[str],
) -> WorkspaceConfig:
    """Merge the optional config file with command-line options.

    Command-line options take precedence over values from the file.

    Raises:
        ConfigError: If the config file or a feature flag is invalid
        InputError: If no repository directory or workspace is given
    """
    config = ConfigLoader.load(config_file) if config_file else WorkspaceConfig()

    if repo:
        config.repository_directory = repo
    if workspace_id:
        config.workspace_id = workspace_id
        config.workspace_name = None
    elif workspace_name:
        config.workspace_name = workspace_name
        config.workspace_id = None
    if environment:
        config.environment = environment
    if item_types:
        config.item_types = list(item_types)
    if exclude_regex:
        config.item_name_exclude_regex = exclude_regex
    if feature_flags:
        config.feature_flags = FeatureFlags.from_names(feature_flags)
    if parameter_file:
        config.parameter_file = parameter_file

    if not config.repository_directory:
        raise InputError("A repository directory is required (--repo or repository_directory in config)")
    if not config.workspace_id and not config.workspace_name:
        raise InputError("A target workspace is required (--workspace-id or --workspace-name)")

    return config


def _create_workspace(config: WorkspaceConfig) -> FabricWorkspace:
    """Authenticate and build the workspace snapshot for a run."""
    credential = Authenticator().get_credential()
    endpoint = FabricEndpoint(TokenProvider(credential))
    return FabricWorkspace(
        repository_directory=config.repository_directory,
        endpoint=endpoint,
        workspace_id=config.workspace_id,
        workspace_name=config.workspace_name,
        item_type_in_scope=config.item_types,
        environment=config.environment,
        feature_flags=config.feature_flags,
        parameter_file_path=config.parameter_file,
    )


def _exit_code_for(error: Exception) -> ExitCode:
    if isinstance(error, ItemPublishError):
        return ExitCode.PUBLISH_FAILED
    if isinstance(error, AuthError):
        return ExitCode.AUTH_ERROR
    if isinstance(error, ApiError) and error.status_code in (401, 403):
        return ExitCode.AUTH_ERROR
    if isinstance(error, (TransportError, RetryBudgetExhaustedError)):
        return ExitCode.NETWORK_ERROR
    return ExitCode.GENERAL_ERROR


def _run(output: OutputHandler, operation: Callable[[], None]) -> None:
    """Run an operation and translate its outcome into an exit code."""
    try:
        operation()
    except OperationCancelledError as e:
        logger.warning(f"Run cancelled: {e}")
        output.warning(f"Run cancelled: {e}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except SyncError as e:
        exit_code = _exit_code_for(e)
        logger.error(f"{type(e).__name__}: {e}")
        output.error(str(e))
        raise typer.Exit(exit_code)
    except typer.Exit:
        raise
    except Exception as e:
        logger.exception("Unexpected error")
        output.error(f"Unexpected error: {e}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    raise typer.Exit(ExitCode.SUCCESS)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"fabric-sync version {VERSION}")
        raise typer.Exit()


@app.callback()
def callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Publish a repository of Fabric item definitions to a Fabric workspace."""


@app.command("publish-all")
def publish_all_command(
    repo: Optional[str] = typer.Option(None, "--repo", help="Repository directory holding item definitions", metavar="DIR"),
    workspace_id: Optional[str] = typer.Option(None, "--workspace-id", help="Target workspace id", metavar="GUID"),
    workspace_name: Optional[str] = typer.Option(None, "--workspace-name", help="Target workspace name", metavar="NAME"),
    environment: Optional[str] = typer.Option(None, "--environment", "-e", help="Environment key for parameter.yml"),
    item_types: Optional[List[str]] = typer.Option(
        None, "--item-type", help="Item type in scope (can be used multiple times)", metavar="TYPE"
    ),
    exclude_regex: Optional[str] = typer.Option(None, "--exclude-regex", help="Skip items whose name matches this regex"),
    feature_flags: Optional[List[str]] = typer.Option(
        None, "--feature-flag", help="Enable a feature flag (can be used multiple times)", metavar="FLAG"
    ),
    parameter_file: Optional[str] = typer.Option(None, "--parameter-file", help="Parameter file path", metavar="PATH"),
    config_file: Optional[str] = typer.Option(None, "--config", help="YAML config file", metavar="FILE"),
    logdir: Optional[str] = typer.Option(None, "--logdir", help="Directory for log files (creates timestamped log file)"),
    verbosity: int = typer.Option(0, "--verbosity", "-v", help="Verbosity level: 0=summary, 1=info, 2=debug"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
) -> None:
    """Publish every in-scope repository item to the workspace.

    \b
    EXAMPLE:
      fabric-sync publish-all --repo ./workspace --workspace-id <guid> \\
          --environment PROD --item-type Notebook --item-type DataPipeline
    """
    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    def operation() -> None:
        config = _build_config(
            config_file, repo, workspace_id, workspace_name, environment,
            item_types, exclude_regex, feature_flags, parameter_file,
        )
        workspace = _create_workspace(config)
        output.info(f"Target workspace: {workspace.workspace_id}")
        processed = publish_all_items(
            workspace,
            item_name_exclude_regex=config.item_name_exclude_regex,
            header=output.print_header,
        )
        output.print_publish_summary(PublishSummary.from_items(processed))

    _run(output, operation)


@app.command("unpublish-orphans")
def unpublish_orphans_command(
    repo: Optional[str] = typer.Option(None, "--repo", help="Repository directory holding item definitions", metavar="DIR"),
    workspace_id: Optional[str] = typer.Option(None, "--workspace-id", help="Target workspace id", metavar="GUID"),
    workspace_name: Optional[str] = typer.Option(None, "--workspace-name", help="Target workspace name", metavar="NAME"),
    environment: Optional[str] = typer.Option(None, "--environment", "-e", help="Environment key for parameter.yml"),
    item_types: Optional[List[str]] = typer.Option(
        None, "--item-type", help="Item type in scope (can be used multiple times)", metavar="TYPE"
    ),
    exclude_regex: Optional[str] = typer.Option(None, "--exclude-regex", help="Keep orphans whose name matches this regex"),
    feature_flags: Optional[List[str]] = typer.Option(
        None, "--feature-flag", help="Enable a feature flag (can be used multiple times)", metavar="FLAG"
    ),
    config_file: Optional[str] = typer.Option(None, "--config", help="YAML config file", metavar="FILE"),
    logdir: Optional[str] = typer.Option(None, "--logdir", help="Directory for log files (creates timestamped log file)"),
    verbosity: int = typer.Option(0, "--verbosity", "-v", help="Verbosity level: 0=summary, 1=info, 2=debug"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
) -> None:
    """Delete deployed items that no longer exist in the repository.

    \b
    NOTE:
      Lakehouse, Warehouse and SQLDatabase items are only deleted with
      --feature-flag enable_lakehouse_unpublish / enable_warehouse_unpublish /
      enable_sqldatabase_unpublish.
    """
    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    def operation() -> None:
        config = _build_config(
            config_file, repo, workspace_id, workspace_name, environment,
            item_types, exclude_regex, feature_flags, None,
        )
        workspace = _create_workspace(config)
        deleted = unpublish_all_orphan_items(
            workspace,
            item_name_exclude_regex=config.item_name_exclude_regex or "^$",
            header=output.print_header,
        )
        output.print_unpublish_summary(deleted)

    _run(output, operation)


def main() -> None:
    """Main entry point for the CLI application.

    This function is called when the module is executed directly or
    when the console script is invoked.
    """
    app()


# Allow running as: python -m src.cli.main
if __name__ == "__main__":
    main()
