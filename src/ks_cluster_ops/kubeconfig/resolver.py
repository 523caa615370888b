"""Extract a standalone kubeconfig for one cluster from a local kubeconfig.

The source file is ``$KUBECONFIG`` (first existing entry when it is a
path list) or ``~/.kube/config``.  The result contains exactly one
cluster, one user and one context, with ``current-context`` pointing at
that context, so it can be handed to ``clusteradm join --kubeconfig``.
"""

from __future__ import annotations

import copy
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from ks_cluster_ops.errors import KubeconfigError, NotFoundError

# Keys inside cluster/user entries that reference files on disk.
_PATH_KEYS = {
    "cluster": ("certificate-authority",),
    "user": ("client-certificate", "client-key", "tokenFile"),
}


def default_kubeconfig_path(environ: Mapping[str, str] | None = None) -> Path:
    """Return the kubeconfig location from the environment or the user default."""
    env = os.environ if environ is None else environ
    value = env.get("KUBECONFIG", "")
    candidates = [p for p in value.split(os.pathsep) if p]
    for candidate in candidates:
        if Path(candidate).expanduser().is_file():
            return Path(candidate).expanduser()
    if candidates:
        return Path(candidates[0]).expanduser()
    return Path.home() / ".kube" / "config"


def load_kubeconfig(path: str | Path) -> dict[str, Any]:
    """Read and parse a kubeconfig file into a dict."""
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise KubeconfigError(f"failed to load kubeconfig {source}: {exc}") from exc
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise KubeconfigError(f"failed to parse kubeconfig {source}: {exc}") from exc
    if not isinstance(data, dict):
        raise KubeconfigError(f"kubeconfig {source} is not a mapping")
    return data


def _named(entries: Any, name: str, key: str) -> dict[str, Any] | None:
    """Find the ``key`` body of the entry called *name* in a kubeconfig list."""
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("name") == name:
            body = entry.get(key)
            return body if isinstance(body, dict) else {}
    return None


def _absolutize(body: dict[str, Any], keys: tuple[str, ...], base: Path | None) -> dict[str, Any]:
    body = copy.deepcopy(body)
    if base is None:
        return body
    for key in keys:
        val = body.get(key)
        if isinstance(val, str) and val and not os.path.isabs(val):
            body[key] = str((base / val).resolve())
    return body


def extract_context(
    config: dict[str, Any],
    context_name: str,
    base_dir: Path | None = None,
) -> dict[str, Any]:
    """Build a minimal kubeconfig holding only *context_name* and its references."""
    ctx = _named(config.get("contexts"), context_name, "context")
    if ctx is None:
        raise NotFoundError(f"context '{context_name}' not found")

    cluster_name = ctx.get("cluster", "")
    cluster = _named(config.get("clusters"), cluster_name, "cluster")
    if cluster is None:
        raise NotFoundError(f"cluster '{cluster_name}' not found")

    user_name = ctx.get("user", "")
    user = _named(config.get("users"), user_name, "user")
    if user is None:
        raise NotFoundError(f"user '{user_name}' not found")

    return {
        "apiVersion": "v1",
        "kind": "Config",
        "preferences": {},
        "clusters": [{
            "name": cluster_name,
            "cluster": _absolutize(cluster, _PATH_KEYS["cluster"], base_dir),
        }],
        "users": [{
            "name": user_name,
            "user": _absolutize(user, _PATH_KEYS["user"], base_dir),
        }],
        "contexts": [{"name": context_name, "context": copy.deepcopy(ctx)}],
        "current-context": context_name,
    }


class KubeconfigResolver:
    """Resolves a cluster name to a minimal kubeconfig from a local file."""

    def __init__(self, source: str | Path | None = None) -> None:
        self._source = Path(source).expanduser() if source else None

    @property
    def source(self) -> Path:
        return self._source or default_kubeconfig_path()

    def resolve(self, cluster_name: str) -> dict[str, Any]:
        """Return the minimal kubeconfig dict for *cluster_name*.

        A cluster entry with that name wins, using the first context that
        references it; otherwise a context with that name is used.
        """
        source = self.source
        config = load_kubeconfig(source)
        base_dir = source.resolve().parent

        if _named(config.get("clusters"), cluster_name, "cluster") is not None:
            for entry in config.get("contexts") or []:
                if not isinstance(entry, dict):
                    continue
                if (entry.get("context") or {}).get("cluster") == cluster_name:
                    return extract_context(config, entry["name"], base_dir)
            raise NotFoundError(f"no context found for cluster '{cluster_name}'")

        if _named(config.get("contexts"), cluster_name, "context") is not None:
            return extract_context(config, cluster_name, base_dir)

        raise NotFoundError(f"cluster '{cluster_name}' not found in local kubeconfig")

    def resolve_bytes(self, cluster_name: str) -> bytes:
        data = self.resolve(cluster_name)
        return yaml.safe_dump(data, sort_keys=False).encode("utf-8")
