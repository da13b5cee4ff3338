import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from .config import (
    DEFAULT_CLUSTER_CONFIG_DIR,
    ConfigError,
    find_cluster_config,
    list_cluster_configs,
    load_cluster_config,
)
from .fetch import fetch_hosts
from .presenter import render

logger = logging.getLogger(__name__)

CONSOLE = Console()


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def print_cluster_configs(config_dir: str) -> None:
    names = list_cluster_configs(config_dir)
    if not names:
        CONSOLE.print(f"No cluster configuration files found in '{config_dir}'.")
        return
    CONSOLE.print(f"[bold]Available cluster configurations in '{config_dir}':[/bold]")
    for name in names:
        CONSOLE.print(f"  - {name}")


def resolve_hosts(args) -> tuple:
    """Combine positional hosts with the hosts of --cluster, if given.

    Returns (hosts, user, ssh_options); command-line values win over the file.
    """
    hosts = list(args.hosts)
    user = args.user
    ssh_options = []
    if args.cluster:
        cluster_cfg = load_cluster_config(find_cluster_config(args.config_dir, args.cluster))
        hosts.extend(h for h in cluster_cfg.hosts if h not in hosts)
        user = user or cluster_cfg.user
        ssh_options = cluster_cfg.ssh_options
    return hosts, user, ssh_options


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{value}'") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Show GPU memory and utilization of remote hosts, queried over ssh with nvidia-smi.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("hosts", nargs="*", help="Hostnames to query.")
    parser.add_argument("--cluster", help="Also query the hosts of this cluster config (e.g., 'my_cluster').")
    parser.add_argument(
        "--config-dir",
        default=DEFAULT_CLUSTER_CONFIG_DIR,
        help=f"Directory for cluster YAML files.\nDefault: {DEFAULT_CLUSTER_CONFIG_DIR}",
    )
    parser.add_argument("--list-clusters", action="store_true", help="List available cluster configurations and exit.")
    parser.add_argument("--user", help="SSH username to use. Overrides system ssh_config User for this run.")
    parser.add_argument("--timeout", type=float, default=None, help="Per-host timeout in seconds. Default: none")
    parser.add_argument("--max-workers", type=positive_int, default=None, help="Maximum hosts queried at once. Default: all")
    parser.add_argument("--sort", action="store_true", help="Sort hosts naturally (h1, h2, h10) instead of input order.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.list_clusters:
        print_cluster_configs(args.config_dir)
        return 0

    try:
        hosts, user, ssh_options = resolve_hosts(args)
    except ConfigError as e:
        CONSOLE.print(f"[bold red]Error: {e}[/bold red]")
        return 0

    if not hosts:
        CONSOLE.print("[bold red]Error: no hosts given. Pass hostnames or --cluster <name>.[/bold red]")
        return 0

    try:
        results = fetch_hosts(hosts, user=user, ssh_options=ssh_options, timeout=args.timeout,
                              max_workers=args.max_workers)
        render(results, CONSOLE, sort_hosts=args.sort)
    except KeyboardInterrupt:
        CONSOLE.print("\n[bold green]Interrupted. Goodbye![/bold green]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
