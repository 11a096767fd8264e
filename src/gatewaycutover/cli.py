"""
Command-line entry point for the gateway cutover.

Commands:
    init     Create a migration and validate the environment
    execute  Run the remaining phases of a migration
    status   Show the migrations recorded in a state file

Every flag can also be supplied through an environment variable named after
the flag in uppercase with underscores (``--cluster-api-key`` ->
``CLUSTER_API_KEY``).

Exit codes:
    0  success
    1  the migration failed (validation, timeout, remote error)
    2  progress could not be persisted; inspect the state file before retrying
    130 interrupted
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from gatewaycutover.clusterlink import ClusterLinkClient, RestClusterLinkClient
from gatewaycutover.exceptions import MigrationError, PersistenceError
from gatewaycutover.gateway import GatewayClient, KubernetesGatewayClient
from gatewaycutover.migration import Migration
from gatewaycutover.models import MigrationConfig, MigrationOptions, MigrationRecord
from gatewaycutover.stores import FileStateStore

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_PERSISTENCE_FAILURE = 2
EXIT_INTERRUPTED = 130

DEFAULT_STATE_FILE = Path("migration-state.json")

app = typer.Typer(
    name="gateway-cutover",
    help="Move Kafka clients behind a gateway from a source cluster to Confluent Cloud.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def build_gateway_client(kube_config_path: str) -> GatewayClient:
    return KubernetesGatewayClient(kube_config_path)


def build_cluster_link_client() -> ClusterLinkClient:
    return RestClusterLinkClient()


def build_config() -> MigrationConfig:
    return MigrationConfig()


def _split_topics(values: list[str]) -> tuple[str, ...]:
    topics: list[str] = []
    for value in values:
        topics.extend(t.strip() for t in value.split(",") if t.strip())
    return tuple(topics)


def _run(coro: Coroutine[Any, Any, None]) -> None:
    """Run a command coroutine and map failures onto exit codes."""
    try:
        asyncio.run(coro)
    except PersistenceError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        err_console.print(f"[yellow]{e.suggested_action}[/yellow]")
        raise typer.Exit(EXIT_PERSISTENCE_FAILURE) from e
    except MigrationError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_FAILURE) from e
    except ValueError as e:
        err_console.print(f"[red]Invalid option:[/red] {e}")
        raise typer.Exit(EXIT_FAILURE) from e
    except KeyboardInterrupt as e:
        err_console.print("[yellow]Interrupted[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED) from e


@app.callback()
def main(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        envvar="LOG_LEVEL",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Gateway cutover for Kafka cluster migrations."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("init")
def init_migration(
    state_file: Path = typer.Option(
        DEFAULT_STATE_FILE, "--state-file", envvar="STATE_FILE", help="Migration state file"
    ),
    gateway_namespace: str = typer.Option(
        ..., "--gateway-namespace", envvar="GATEWAY_NAMESPACE", help="Namespace of the gateway"
    ),
    gateway_crd_name: str = typer.Option(
        ..., "--gateway-crd-name", envvar="GATEWAY_CRD_NAME", help="Name of the gateway resource"
    ),
    source_name: str = typer.Option(
        ..., "--source-name", envvar="SOURCE_NAME", help="Streaming domain of the source cluster"
    ),
    dest_name: str = typer.Option(
        ..., "--dest-name", envvar="DEST_NAME", help="Streaming domain of the destination cluster"
    ),
    source_route_name: str = typer.Option(
        ..., "--source-route-name", envvar="SOURCE_ROUTE_NAME", help="Route currently in use"
    ),
    dest_route_name: str = typer.Option(
        ..., "--dest-route-name", envvar="DEST_ROUTE_NAME", help="Route for the destination"
    ),
    cluster_id: str = typer.Option(
        ..., "--cluster-id", envvar="CLUSTER_ID", help="Destination cluster ID"
    ),
    cluster_rest_endpoint: str = typer.Option(
        ..., "--cluster-rest-endpoint", envvar="CLUSTER_REST_ENDPOINT", help="Cluster REST endpoint"
    ),
    cluster_link_name: str = typer.Option(
        ..., "--cluster-link-name", envvar="CLUSTER_LINK_NAME", help="Cluster link name"
    ),
    cluster_api_key: str = typer.Option(
        ..., "--cluster-api-key", envvar="CLUSTER_API_KEY", help="Cluster API key"
    ),
    cluster_api_secret: str = typer.Option(
        ..., "--cluster-api-secret", envvar="CLUSTER_API_SECRET", help="Cluster API secret"
    ),
    topics: list[str] = typer.Option(
        [], "--topics", envvar="TOPICS", help="Topics to migrate (comma separated or repeated)"
    ),
    auth_mode: str = typer.Option(
        "dest_swap", "--auth-mode", envvar="AUTH_MODE", help="'dest_swap' or 'source_swap'"
    ),
    kube_path: str = typer.Option(
        "", "--kube-path", envvar="KUBE_PATH", help="Kubernetes config file"
    ),
    cc_bootstrap_endpoint: str = typer.Option(
        "", "--cc-bootstrap-endpoint", envvar="CC_BOOTSTRAP_ENDPOINT",
        help="Destination bootstrap endpoint used by the switchover",
    ),
    load_balancer_endpoint: str = typer.Option(
        "", "--load-balancer-endpoint", envvar="LOAD_BALANCER_ENDPOINT",
        help="Endpoint of the switched route (defaults to the current route endpoint)",
    ),
    skip_validate: bool = typer.Option(
        False, "--skip-validate", help="Record the migration without validating the environment"
    ),
) -> None:
    """Create a migration and validate the gateway and cluster link."""

    async def run() -> None:
        options = MigrationOptions(
            gateway_namespace=gateway_namespace,
            gateway_crd_name=gateway_crd_name,
            source_name=source_name,
            destination_name=dest_name,
            source_route_name=source_route_name,
            destination_route_name=dest_route_name,
            cluster_id=cluster_id,
            cluster_rest_endpoint=cluster_rest_endpoint,
            cluster_link_name=cluster_link_name,
            cluster_api_key=cluster_api_key,
            cluster_api_secret=cluster_api_secret,
            topics=_split_topics(topics),
            auth_mode=auth_mode,
            kube_config_path=kube_path,
            cc_bootstrap_endpoint=cc_bootstrap_endpoint,
            load_balancer_endpoint=load_balancer_endpoint,
        )
        config = build_config()
        store = FileStateStore(state_file, retry_config=config.persistence_retry)
        state = await store.load_or_create()
        migration = Migration.new_migration(
            f"migration-{uuid.uuid4()}",
            options,
            state=state,
            store=store,
            gateway=build_gateway_client(options.kube_config_path),
            cluster_link=build_cluster_link_client(),
            config=config,
        )

        if skip_validate:
            await migration.persist()
            logger.info("Migration %s created without validation", migration.migration_id)
        else:
            await migration.initialize()

        console.print(f"Migration ID: [bold]{migration.migration_id}[/bold]")
        console.print(f"State: {migration.get_current_state()}")
        console.print(f"State file: {state_file}")

    _run(run())


@app.command("execute")
def execute_migration(
    migration_id: str = typer.Option(
        ..., "--migration-id", envvar="MIGRATION_ID", help="Migration to execute"
    ),
    state_file: Path = typer.Option(
        DEFAULT_STATE_FILE, "--state-file", envvar="STATE_FILE", help="Migration state file"
    ),
    threshold: int = typer.Option(
        0, "--threshold", envvar="THRESHOLD", help="Per-partition lag that must not be reached"
    ),
    max_wait_time: int = typer.Option(
        ..., "--max-wait-time", envvar="MAX_WAIT_TIME", help="Seconds to wait for lag to drain"
    ),
    cluster_api_key: str = typer.Option(
        ..., "--cluster-api-key", envvar="CLUSTER_API_KEY", help="Cluster API key"
    ),
    cluster_api_secret: str = typer.Option(
        ..., "--cluster-api-secret", envvar="CLUSTER_API_SECRET", help="Cluster API secret"
    ),
) -> None:
    """Run every remaining phase of a migration, resuming where it stopped."""

    async def run() -> None:
        config = build_config()
        store = FileStateStore(state_file, retry_config=config.persistence_retry)
        state = await store.load()
        record = state.get_migration(migration_id)
        migration = Migration.load_migration(
            migration_id,
            state=state,
            store=store,
            gateway=build_gateway_client(record.kube_config_path),
            cluster_link=build_cluster_link_client(),
            config=config,
        )
        await migration.execute(
            lag_threshold=threshold,
            max_wait_seconds=max_wait_time,
            api_key=cluster_api_key,
            api_secret=cluster_api_secret,
        )
        console.print(
            f"Migration [bold]{migration.migration_id}[/bold] is {migration.get_current_state()}"
        )

    _run(run())


@app.command("status")
def status(
    state_file: Path = typer.Option(
        DEFAULT_STATE_FILE, "--state-file", envvar="STATE_FILE", help="Migration state file"
    ),
    migration_id: str = typer.Option(
        "", "--migration-id", envvar="MIGRATION_ID", help="Show only this migration"
    ),
) -> None:
    """Show the migrations recorded in a state file."""

    async def run() -> None:
        store = FileStateStore(state_file)
        if not await store.exists():
            console.print(f"[yellow]No migrations found in {state_file}[/yellow]")
            return
        state = await store.load()

        if migration_id:
            _print_migration(state.get_migration(migration_id))
            return

        if not state.migrations:
            console.print(f"[yellow]No migrations found in {state_file}[/yellow]")
            return

        table = Table(title=f"Migrations ({len(state.migrations)})")
        table.add_column("Migration ID", style="bold", no_wrap=True)
        table.add_column("State", style="cyan")
        table.add_column("Topics", justify="right")
        table.add_column("Updated")
        for record in reversed(state.migrations):
            table.add_row(
                record.migration_id,
                record.current_state.value,
                str(len(record.topics)),
                record.updated_at.strftime("%Y-%m-%d %H:%M:%S"),
            )
        console.print(table)

    _run(run())


def _print_migration(record: MigrationRecord) -> None:
    console.print(f"Migration ID: [bold]{record.migration_id}[/bold]")
    console.print(f"State: {record.current_state.value}")
    console.print(f"Gateway: {record.gateway_namespace}/{record.gateway_crd_name}")
    console.print(f"Route: {record.source_route_name} -> {record.destination_route_name}")
    console.print(f"Cluster link: {record.cluster_link_name} ({record.cluster_id})")
    console.print(f"Topics: {', '.join(record.topics) or '(all mirror topics)'}")
    console.print(f"Created: {record.created_at.isoformat()}")
    console.print(f"Updated: {record.updated_at.isoformat()}")


__all__ = ["app", "build_gateway_client", "build_cluster_link_client", "build_config"]
