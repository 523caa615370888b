"""Connectivity check for a kubeconfig payload.

Parses the kubeconfig and issues a server version query with the
official ``kubernetes`` client.  This is the only place the plugin talks
to a cluster API directly; everything else goes through the CLIs.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from ks_cluster_ops.errors import ConnectivityError

logger = logging.getLogger(__name__)


@runtime_checkable
class ConnectivityValidator(Protocol):
    def validate(self, kubeconfig: bytes) -> str:
        """Return the server git version, or raise ``ConnectivityError``."""
        ...


def parse_kubeconfig(kubeconfig: bytes | str) -> dict[str, Any]:
    """Parse a YAML/JSON kubeconfig payload into a dict."""
    try:
        data = yaml.safe_load(kubeconfig)
    except yaml.YAMLError as exc:
        raise ConnectivityError(f"failed to parse kubeconfig: {exc}") from exc
    if not isinstance(data, dict) or not data.get("clusters"):
        raise ConnectivityError("failed to parse kubeconfig: no clusters defined")
    return data


class KubernetesConnectivityValidator:
    """Validates connectivity using ``VersionApi.get_code``."""

    def __init__(self, request_timeout: float = 10.0) -> None:
        self._timeout = request_timeout

    def validate(self, kubeconfig: bytes) -> str:
        data = parse_kubeconfig(kubeconfig)
        try:
            api_client = config.new_client_from_config_dict(
                data, context=data.get("current-context") or None,
            )
        except (ConfigException, ValueError, TypeError, KeyError) as exc:
            raise ConnectivityError(
                f"failed to create kubernetes client: {exc}"
            ) from exc

        try:
            version = client.VersionApi(api_client).get_code(
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise ConnectivityError(
                f"failed to connect to cluster ({exc.status}): {exc.reason}"
            ) from exc
        except (HTTPError, OSError) as exc:
            raise ConnectivityError(f"failed to connect to cluster: {exc}") from exc
        finally:
            api_client.close()

        logger.debug("Cluster reachable, server version %s", version.git_version)
        return version.git_version
