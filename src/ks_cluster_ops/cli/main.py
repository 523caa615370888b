"""ks-cluster-ops CLI.

Commands:
    serve               Run the plugin API standalone under uvicorn
    extract-kubeconfig  Print a single-cluster kubeconfig from the local one
    check-tools         Report whether kubectl and clusteradm are on PATH
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import click

from ks_cluster_ops import __version__
from ks_cluster_ops.config import PluginConfig, load_config
from ks_cluster_ops.errors import KubeconfigError, NotFoundError
from ks_cluster_ops.kubeconfig.resolver import KubeconfigResolver
from ks_cluster_ops.plugin import REQUIRED_TOOLS, check_tools

# --- Root group ---


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Onboard and detach KubeStellar clusters through an OCM hub."""


# --- serve command ---


@cli.command()
@click.option("--host", default=None, help="Bind address")
@click.option("--port", default=None, type=int, help="Port number")
@click.option(
    "--config", "config_path", default=None, type=click.Path(dir_okay=False),
    help="Plugin manifest YAML (its configuration: block is used)",
)
@click.option("--its-context", default=None, help="kubectl context of the ITS hub")
@click.option("--kubeconfig-dir", default=None, help="Directory for staged kubeconfigs")
@click.option("--log-level", default=None, help="Logging level (debug, info, warning, ...)")
def serve(
    host: str | None,
    port: int | None,
    config_path: str | None,
    its_context: str | None,
    kubeconfig_dir: str | None,
    log_level: str | None,
) -> None:
    """Serve the cluster operations API."""
    try:
        cfg = load_config(config_path) if config_path else PluginConfig.from_env()
    except (FileNotFoundError, ValueError) as e:
        click.echo(click.style("ERROR", fg="red", bold=True) + f" {e}", err=True)
        sys.exit(1)

    overrides: dict[str, Any] = {
        "host": host,
        "port": port,
        "its_context": its_context,
        "kubeconfig_dir": kubeconfig_dir,
        "log_level": log_level,
    }
    cfg = PluginConfig.from_mapping(overrides, base=cfg)

    logging.basicConfig(
        level=cfg.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    import uvicorn

    from ks_cluster_ops.api.app import create_app

    app = create_app(cfg)

    click.echo(f"Cluster operations API: http://{cfg.host}:{cfg.port}{cfg.api_prefix}")
    click.echo(f"ITS context: {cfg.its_context}")
    uvicorn.run(app, host=cfg.host, port=cfg.port, log_level=cfg.log_level.lower())


# --- kubeconfig helpers ---


@cli.command("extract-kubeconfig")
@click.argument("name")
@click.option(
    "--source", default=None, type=click.Path(dir_okay=False),
    help="Kubeconfig to read (default: $KUBECONFIG or ~/.kube/config)",
)
def extract_kubeconfig(name: str, source: str | None) -> None:
    """Print a standalone kubeconfig for cluster or context NAME."""
    resolver = KubeconfigResolver(source)
    try:
        data = resolver.resolve_bytes(name)
    except (NotFoundError, KubeconfigError) as e:
        click.echo(
            click.style("ERROR", fg="red", bold=True)
            + f" Failed to find cluster '{name}' in {resolver.source}: {e}",
            err=True,
        )
        sys.exit(1)
    click.echo(data.decode(), nl=False)


@cli.command("check-tools")
def check_tools_cmd() -> None:
    """Check that kubectl and clusteradm are available."""
    missing = False
    for tool, path in check_tools(REQUIRED_TOOLS).items():
        if path is None:
            missing = True
            click.echo(click.style("MISSING", fg="red", bold=True) + f"  {tool}")
        else:
            click.echo(click.style("OK", fg="green", bold=True) + f"       {tool} ({path})")
    if missing:
        sys.exit(1)
