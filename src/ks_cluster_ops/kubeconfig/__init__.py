"""Kubeconfig resolution and connectivity validation."""

from ks_cluster_ops.kubeconfig.resolver import (
    KubeconfigResolver,
    default_kubeconfig_path,
    extract_context,
    load_kubeconfig,
)

__all__ = [
    "KubeconfigResolver",
    "default_kubeconfig_path",
    "extract_context",
    "load_kubeconfig",
]
