"""Main CLI entry point for the Anchors runtime manager.

This module provides commands to start or connect to an Anchors server,
stop it, and inspect the local Java runtime and server jar.
"""

import asyncio
import sys
import traceback
from typing import Optional

import click

from . import __version__
from .config import configure_logging, get_settings
from .exceptions import AnchorsError
from .installation import ArtifactResolver, default_locator
from .management import ConnectionManager, LaunchSpec


def handle_cli_error(error: Exception, ctx: Optional[click.Context] = None):
    """Report an error and exit non-zero."""
    if isinstance(error, AnchorsError):
        click.echo(f"Error: {error.message}", err=True)
        if error.suggestion:
            click.echo(f"Suggestion: {error.suggestion}", err=True)
    else:
        verbose = bool(ctx and ctx.obj and ctx.obj.get("verbose"))
        click.echo(f"Unexpected error: {error}", err=True)
        if verbose:
            click.echo(traceback.format_exc(), err=True)
        else:
            click.echo("Run with --verbose for detailed error information", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="anchors-runtime")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output with detailed logging",
)
@click.option(
    "--quiet", "-q", is_flag=True, help="Enable quiet mode with minimal output"
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool):
    """Anchors runtime manager

    Starts, connects to and shuts down the Anchors explanation server,
    a Java process reached over a local socket.

    \b
    Examples:
      anchors-runtime start --port 6666
      anchors-runtime stop --port 6666
      anchors-runtime resolve --force-download
      anchors-runtime check-java
    """
    if verbose and quiet:
        raise click.BadParameter("Cannot use both --verbose and --quiet options")

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["settings"] = get_settings()

    settings = ctx.obj["settings"]
    if verbose:
        level = "DEBUG"
    elif quiet:
        level = "ERROR"
    else:
        level = settings.logging.level
    configure_logging(
        level=level,
        log_file=settings.logging.file_path,
        json_logs=settings.logging.json_format,
    )


@cli.command()
@click.option("--ip", default="localhost", help="Server host")
@click.option("--port", "-p", type=int, default=6666, help="Server port")
@click.option("--name", "-n", type=str, help="Session name")
@click.option(
    "--no-start", is_flag=True, help="Only connect, never start a local server"
)
@click.option(
    "--force-download", is_flag=True, help="Download the server jar again"
)
@click.option("--min-memory", type=str, help="Initial JVM heap, e.g. 512m")
@click.option("--max-memory", type=str, help="Maximum JVM heap, e.g. 4g")
@click.option("--max-anchor-size", type=int, default=0, show_default=True)
@click.option("--beam-size", type=int, default=2, show_default=True)
@click.option("--delta", type=float, default=0.1, show_default=True)
@click.option("--epsilon", type=float, default=0.1, show_default=True)
@click.option("--tau", type=float, default=0.9, show_default=True)
@click.option("--tau-discrepancy", type=float, default=0.05, show_default=True)
@click.option("--init-sample-count", type=int, default=1, show_default=True)
@click.option(
    "--allow-suboptimal-steps/--no-suboptimal-steps", default=True, show_default=True
)
@click.option("--batch-size", type=int, default=100, show_default=True)
@click.pass_context
def start(
    ctx: click.Context,
    ip: str,
    port: int,
    name: Optional[str],
    no_start: bool,
    force_download: bool,
    min_memory: Optional[str],
    max_memory: Optional[str],
    max_anchor_size: int,
    beam_size: int,
    delta: float,
    epsilon: float,
    tau: float,
    tau_discrepancy: float,
    init_sample_count: int,
    allow_suboptimal_steps: bool,
    batch_size: int,
):
    """Connect to an Anchors server, starting one locally if needed.

    The server powers itself off after 30 idle seconds once this command
    disconnects.

    \b
    Examples:
      anchors-runtime start
      anchors-runtime start --port 7777 --max-memory 4g
      anchors-runtime start --ip 10.0.0.5 --no-start
    """
    spec = LaunchSpec(
        ip=ip,
        port=port,
        min_memory=min_memory,
        max_memory=max_memory,
        max_anchor_size=max_anchor_size,
        beam_size=beam_size,
        delta=delta,
        epsilon=epsilon,
        tau=tau,
        tau_discrepancy=tau_discrepancy,
        init_sample_count=init_sample_count,
        allow_suboptimal_steps=allow_suboptimal_steps,
        batch_size=batch_size,
    )
    try:
        manager = ConnectionManager(ctx.obj["settings"])
        asyncio.run(
            _start_command(manager, ip, port, name, not no_start, spec, force_download)
        )
    except Exception as error:
        handle_cli_error(error, ctx)


@cli.command()
@click.option("--ip", default="localhost", help="Server host")
@click.option("--port", "-p", type=int, default=6666, help="Server port")
@click.pass_context
def stop(ctx: click.Context, ip: str, port: int):
    """Send the quit handshake to a running Anchors server."""
    try:
        manager = ConnectionManager(ctx.obj["settings"])
        asyncio.run(_stop_command(manager, ip, port))
        click.echo(f"Stopped Anchors server on {ip}:{port}")
    except Exception as error:
        handle_cli_error(error, ctx)


@cli.command()
@click.option(
    "--force-download", is_flag=True, help="Ignore bundled and cached jars"
)
@click.pass_context
def resolve(ctx: click.Context, force_download: bool):
    """Locate the server jar, downloading it if necessary."""
    try:
        resolver = ArtifactResolver(ctx.obj["settings"])
        location = asyncio.run(resolver.resolve(force_refresh=force_download))
        click.echo(f"Jar: {location.path}")
        click.echo(f"Version: {location.version or 'unknown'}")
    except Exception as error:
        handle_cli_error(error, ctx)


@cli.command("check-java")
@click.pass_context
def check_java(ctx: click.Context):
    """Locate Java and check that its version is supported."""
    try:
        locator = default_locator(ctx.obj["settings"])
        path = locator.locate()
        info = asyncio.run(locator.inspect(path))
        click.echo(f"Java: {info.path}")
        for line in info.version_output:
            click.echo(f"   {line}")
        if info.client_vm:
            click.echo("Warning: 32-bit Client VM, default max heap lowered to 1g")
        click.echo("Java version is supported")
    except Exception as error:
        handle_cli_error(error, ctx)


async def _start_command(
    manager: ConnectionManager,
    ip: str,
    port: int,
    name: Optional[str],
    auto_start: bool,
    spec: LaunchSpec,
    force_download: bool,
):
    """Connect, report the session and release the socket."""
    handle = await manager.connect(
        ip=ip,
        port=port,
        name=name,
        auto_start=auto_start,
        launch_spec=spec,
        force_refresh=force_download,
    )
    try:
        click.echo(f"Connected to Anchors on {handle.host}:{handle.port}")
        click.echo(f"   Session: {handle.name}")
        record = manager.registry.get_by_port(handle.port)
        if record is not None:
            click.echo(f"   Process ID: {record.pid}")
            click.echo(f"   Logs: {record.stdout_log}, {record.stderr_log}")
    finally:
        await handle.close()


async def _stop_command(manager: ConnectionManager, ip: str, port: int):
    handle = await manager.connect(ip=ip, port=port, auto_start=False)
    await manager.shutdown(handle)


if __name__ == "__main__":
    cli()
