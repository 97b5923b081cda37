"""lhc command line.

    lhc list
    lhc contents -v pvc-12345 [-n default]
    lhc download -v pvc-12345 -o backup.tar.gz
    lhc copy -s pvc-source -d pvc-dest [-c longhorn]
    lhc cleanup [-n default]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Sequence

from tabulate import tabulate

from lhc import __version__
from lhc.config import Settings, get_settings
from lhc.drivers.k8s import (
    K8sCommandRunner,
    K8sControlPlane,
    KubeClientManager,
    LonghornVolumeSource,
)
from lhc.errors import LhcError
from lhc.logging_config import setup_logging
from lhc.managers import EphemeralProvisioner, VolumeAccessResolver, VolumeManager
from lhc.models.volume import Volume
from lhc.services.copy import StreamCopyEngine
from lhc.services.gc import SweepCandidates, TemporaryResourceSweeper
from lhc.streams import stderr_sink, stdout_sink


def echo(line: str = "") -> None:
    print(line, flush=True)


@dataclass
class Services:
    volumes: VolumeManager
    sweeper: TemporaryResourceSweeper


@asynccontextmanager
async def open_services(settings: Settings) -> AsyncIterator[Services]:
    """Wire the Kubernetes drivers into the managers for one invocation."""
    async with KubeClientManager(settings.kube) as kube:
        plane = K8sControlPlane(kube.api_client)
        source = LonghornVolumeSource(kube.api_client, settings.longhorn)
        runner = K8sCommandRunner(kube.ws_client)

        provisioner = EphemeralProvisioner(plane, settings.provision, settings.longhorn)
        resolver = VolumeAccessResolver(source, plane, provisioner)
        yield Services(
            volumes=VolumeManager(
                source,
                resolver,
                provisioner,
                runner,
                StreamCopyEngine(runner, settings.transfer),
                echo=echo,
            ),
            sweeper=TemporaryResourceSweeper(plane, provisioner.naming, echo=echo),
        )


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-n",
        dest="namespace",
        default=settings.cli.namespace,
        help=f"Kubernetes namespace (default: '{settings.cli.namespace}')",
    )
    common.add_argument(
        "-c",
        dest="storage_class",
        default=settings.cli.storage_class,
        help=f"Storage class name (default: '{settings.cli.storage_class}')",
    )

    parser = argparse.ArgumentParser(
        prog="lhc",
        description="Inspect, export and copy Longhorn volumes through temporary access pods",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default=settings.logging.level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for stderr diagnostics",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="<command>", required=True)

    subparsers.add_parser("list", parents=[common], help="List all Longhorn volumes")

    contents = subparsers.add_parser(
        "contents", parents=[common], help="Show volume contents recursively"
    )
    contents.add_argument("-v", dest="volume", required=True, help="Volume name")

    download = subparsers.add_parser(
        "download", parents=[common], help="Download volume as tar.gz"
    )
    download.add_argument("-v", dest="volume", required=True, help="Volume name")
    download.add_argument("-o", dest="output", required=True, help="Output file path")

    copy = subparsers.add_parser(
        "copy", parents=[common], help="Copy source volume to destination volume"
    )
    copy.add_argument("-s", dest="source", required=True, help="Source volume name")
    copy.add_argument("-d", dest="destination", required=True, help="Destination volume name")

    subparsers.add_parser(
        "cleanup",
        parents=[common],
        help=f"Clean up temporary resources ({settings.provision.name_prefix}-* prefixed)",
    )

    return parser


def format_volumes(volumes: Sequence[Volume]) -> str:
    rows = [
        [v.name, v.state.value, v.size, "Yes" if v.is_bound else "No"]
        for v in volumes
    ]
    return tabulate(rows, headers=["NAME", "STATUS", "SIZE", "PV_BOUND"], tablefmt="plain")


def confirm_cleanup(candidates: SweepCandidates) -> bool:
    echo(f"Found {candidates.total} temporary resources:")
    echo()
    for line in candidates.describe():
        echo(line)
    try:
        answer = input("Do you want to delete these resources? (y/N): ")
    except EOFError:
        echo()
        return False
    return answer.strip() in ("y", "Y")


async def run_command(args: argparse.Namespace, services: Services) -> None:
    volumes = services.volumes

    if args.command == "list":
        echo(format_volumes(await volumes.list_volumes()))

    elif args.command == "contents":
        await volumes.list_contents(
            args.volume,
            args.namespace,
            args.storage_class,
            stdout=stdout_sink(),
            stderr=stderr_sink(),
        )

    elif args.command == "download":
        await volumes.download(args.volume, args.namespace, args.storage_class, args.output)
        echo()
        echo(f"Download completed: {args.output}")

    elif args.command == "copy":
        await volumes.copy(
            args.source,
            args.destination,
            args.namespace,
            args.storage_class,
            stdout=stdout_sink(),
        )
        echo()
        echo(f"Copy completed: {args.source} -> {args.destination}")

    elif args.command == "cleanup":
        echo(
            f"Searching for temporary resources with "
            f"'{services.sweeper.naming.prefix}-' prefix in namespace '{args.namespace}'..."
        )
        echo()
        result = await services.sweeper.sweep(args.namespace, confirm_cleanup)
        if result.found_count == 0:
            echo("No temporary resources found.")
        elif not result.confirmed:
            echo("Cleanup cancelled.")
        else:
            echo()
            echo("Cleanup completed.")


async def _main(args: argparse.Namespace, settings: Settings) -> None:
    async with open_services(settings) as services:
        await run_command(args, services)


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    args = build_parser(settings).parse_args(argv)
    setup_logging(args.log_level, json_output=settings.logging.json_output)

    try:
        asyncio.run(_main(args, settings))
    except KeyboardInterrupt:
        sys.exit(130)
    except LhcError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
