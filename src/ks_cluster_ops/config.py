"""Plugin configuration.

Settings come from three places, highest precedence first:

1. The configuration mapping handed over by the host (``initialize``)
   or read from a plugin manifest's ``configuration:`` block.
2. Environment variables prefixed with ``KS_CLUSTER_OPS_``
   (e.g., ``KS_CLUSTER_OPS_ITS_CONTEXT=its2``).
3. Dataclass defaults.
"""

from __future__ import annotations

import dataclasses
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

ENV_PREFIX = "KS_CLUSTER_OPS_"
DEFAULT_PLUGIN_ID = "kubestellar-cluster-plugin"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_SCALE = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


@dataclass
class PluginConfig:
    """Settings for the cluster operations plugin."""

    plugin_id: str = DEFAULT_PLUGIN_ID
    host: str = "127.0.0.1"
    port: int = 8090
    its_context: str = "its1"
    kubeconfig_dir: str = "/tmp/kubestellar-clusters"
    source_kubeconfig: str | None = None
    cluster_namespace: str = "kubestellar-system"
    log_level: str = "info"
    csr_settle_seconds: float = 5.0
    connect_timeout: float = 10.0
    max_workers: int = 4
    kubectl_path: str = "kubectl"
    clusteradm_path: str = "clusteradm"
    api_prefix: str = ""
    ws_prefix: str = ""

    def __post_init__(self) -> None:
        if not self.api_prefix:
            self.api_prefix = f"/api/plugins/{self.plugin_id}"
        if not self.ws_prefix:
            self.ws_prefix = f"/ws/plugins/{self.plugin_id}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PluginConfig:
        """Create config from environment variables."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, Any] = {}
        for fld in dataclasses.fields(cls):
            val = env.get(f"{ENV_PREFIX}{fld.name.upper()}")
            if val is None:
                continue
            kwargs[fld.name] = _coerce(fld.type, val)
        return cls(**kwargs)

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        base: PluginConfig | None = None,
    ) -> PluginConfig:
        """Overlay a host configuration map on *base* (default: env config).

        Unknown keys are ignored so a full plugin manifest configuration
        block (``timeout``, ``retries``, ...) can be passed as-is.
        """
        base = base if base is not None else cls.from_env()
        known = {fld.name: fld for fld in dataclasses.fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, val in values.items():
            fld = known.get(key)
            if fld is None or val is None:
                continue
            kwargs[key] = _coerce(fld.type, val)
        # Prefixes derive from plugin_id unless set explicitly.
        if "plugin_id" in kwargs:
            kwargs.setdefault("api_prefix", "")
            kwargs.setdefault("ws_prefix", "")
        return dataclasses.replace(base, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def load_config(path: str | Path) -> PluginConfig:
    """Load settings from a plugin manifest YAML file.

    The manifest's ``configuration:`` block is used when present;
    otherwise the top-level mapping itself is treated as configuration.
    """
    config_path = Path(path)
    if not config_path.is_file():
        msg = f"Config file not found: {config_path}"
        raise FileNotFoundError(msg)

    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ValueError(msg)

    block = data.get("configuration", data)
    if not isinstance(block, dict):
        msg = f"'configuration' in {config_path} must be a mapping"
        raise ValueError(msg)
    if "id" in data and "plugin_id" not in block:
        block = {**block, "plugin_id": data["id"]}
    return PluginConfig.from_mapping(block)


def parse_duration(value: str | float | int) -> float:
    """Parse ``"60s"``, ``"5m"``, ``"250ms"`` or a bare number into seconds."""
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(value)
    if match is None:
        msg = f"Invalid duration: {value!r}"
        raise ValueError(msg)
    return float(match.group(1)) * _DURATION_SCALE[match.group(2)]


def _coerce(fld_type: Any, val: Any) -> Any:
    # Annotations are strings under ``from __future__ import annotations``.
    type_name = fld_type if isinstance(fld_type, str) else getattr(fld_type, "__name__", "")
    if type_name == "int":
        return int(val)
    if type_name == "float":
        return parse_duration(val)
    if type_name == "bool":
        if isinstance(val, bool):
            return val
        return str(val).lower() in ("1", "true", "yes")
    return str(val)
