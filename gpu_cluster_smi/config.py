"""Cluster configuration files: a named list of hosts stored as YAML."""
import logging
import os
from dataclasses import dataclass, field

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CLUSTER_CONFIG_DIR = os.path.expanduser("~/.gpu-cluster-monitor")
CONFIG_EXTENSIONS = (".yaml", ".yml")


class ConfigError(Exception):
    pass


@dataclass
class ClusterConfig:
    cluster_name: str
    hosts: list
    user: str | None = None
    ssh_options: list = field(default_factory=list)


def load_cluster_config(config_path: str) -> ClusterConfig:
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found at {config_path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config file {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    hosts = config.get("hosts")
    if not hosts or not isinstance(hosts, list):
        raise ConfigError(f"No hosts defined in config: {config_path}")

    ssh_options = config.get("ssh_options") or []
    if not isinstance(ssh_options, list):
        raise ConfigError(f"'ssh_options' must be a list in {config_path}")

    default_name = os.path.splitext(os.path.basename(config_path))[0]
    logger.debug("Loaded %d host(s) from %s", len(hosts), config_path)
    return ClusterConfig(
        cluster_name=config.get("cluster_name", default_name),
        hosts=[str(h) for h in hosts],
        user=config.get("user"),
        ssh_options=[str(o) for o in ssh_options],
    )


def find_cluster_config(config_dir: str, cluster_name: str) -> str:
    """Return the path of `<cluster_name>.yaml` or `.yml` inside `config_dir`."""
    for ext in CONFIG_EXTENSIONS:
        path = os.path.join(config_dir, f"{cluster_name}{ext}")
        if os.path.exists(path):
            return path
    raise ConfigError(
        f"Config file for cluster '{cluster_name}' not found in {config_dir}. "
        f"Tried: {cluster_name}.yaml and {cluster_name}.yml"
    )


def list_cluster_configs(config_dir: str) -> list:
    if not os.path.isdir(config_dir):
        return []
    files = [f for f in os.listdir(config_dir) if f.endswith(CONFIG_EXTENSIONS)]
    return [os.path.splitext(f)[0] for f in sorted(files)]
