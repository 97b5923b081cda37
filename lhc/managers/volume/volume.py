"""VolumeManager - the operator-facing volume operations.

Each operation resolves access first and then runs plain commands in the
resolved container. Progress lines go through `echo`; command output goes
to the sinks the caller provides.
"""

from __future__ import annotations

import os
import shlex
from typing import TYPE_CHECKING, Callable

import structlog

from lhc.errors import ExecFailedError
from lhc.models.access import AccessHandle, Resolution
from lhc.services.copy import StreamCopyEngine
from lhc.streams import BufferSink, ByteSink, FileSink

if TYPE_CHECKING:
    from lhc.drivers.base import CommandRunner, VolumeSource
    from lhc.managers.provisioner import EphemeralProvisioner
    from lhc.managers.resolver import VolumeAccessResolver
    from lhc.models.copy import CopyJob
    from lhc.models.volume import Volume

logger = structlog.get_logger()


def contents_command(mount_path: str) -> list[str]:
    return ["find", mount_path, "-type", "f", "-exec", "ls", "-la", "{}", ";"]


def archive_command(mount_path: str) -> list[str]:
    return ["tar", "-czf", "-", "-C", mount_path, "."]


def clear_command(mount_path: str) -> list[str]:
    # Regular entries, dot entries and ..foo entries; never . or ..
    root = shlex.quote(mount_path.rstrip("/") or "/")
    return ["sh", "-c", f"rm -rf {root}/* {root}/.[!.]* {root}/..?*"]


def _noop(_: str) -> None:
    return None


class VolumeManager:
    """list / contents / download / copy over resolved access handles."""

    def __init__(
        self,
        volume_source: "VolumeSource",
        resolver: "VolumeAccessResolver",
        provisioner: "EphemeralProvisioner",
        runner: "CommandRunner",
        copy_engine: StreamCopyEngine,
        *,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        self._volumes = volume_source
        self._resolver = resolver
        self._provisioner = provisioner
        self._runner = runner
        self._copy_engine = copy_engine
        self._echo = echo or _noop
        self._log = logger.bind(manager="volume")

    async def list_volumes(self) -> list["Volume"]:
        volumes = await self._volumes.list_volumes()
        return sorted(volumes, key=lambda v: v.name)

    async def list_contents(
        self,
        volume_name: str,
        namespace: str,
        storage_class: str,
        *,
        stdout: ByteSink,
        stderr: ByteSink | None = None,
    ) -> Resolution:
        """Recursively list every file under the volume's mount root.

        The ephemeral set, if one was provisioned, is left in place for
        later calls on the same volume.
        """
        resolution = await self._resolver.resolve(volume_name, namespace, storage_class)
        handle = resolution.handle
        self._describe("Volume", volume_name, handle)
        self._echo("")
        self._echo("Contents (recursive):")

        await self._runner.run(
            handle,
            contents_command(handle.mount_path),
            stdout=stdout,
            stderr=stderr,
        )
        return resolution

    async def download(
        self,
        volume_name: str,
        namespace: str,
        storage_class: str,
        output_file: str,
    ) -> int:
        """Write a gzip tar of the volume's mount root to `output_file`.

        Returns:
            Number of bytes written

        Raises:
            ExecFailedError: Archive command failed; the partial file is removed
            OSError: Output file could not be created
        """
        resolution = await self._resolver.resolve(volume_name, namespace, storage_class)
        handle = resolution.handle
        self._describe("Volume", volume_name, handle)
        self._echo(f"Output File: {output_file}")
        self._echo("")
        self._echo("Creating tar.gz archive...")

        errors = BufferSink()
        try:
            with open(output_file, "wb") as f:
                sink = FileSink(f)
                await self._runner.run(
                    handle,
                    archive_command(handle.mount_path),
                    stdout=sink,
                    stderr=errors,
                )
        except ExecFailedError as e:
            self._remove_partial(output_file)
            detail = errors.text().strip()
            if detail:
                e.details.setdefault("stderr", detail)
            raise

        self._log.info("download.done", volume=volume_name, path=output_file, bytes=sink.bytes_written)
        return sink.bytes_written

    async def copy(
        self,
        source_volume: str,
        destination_volume: str,
        namespace: str,
        storage_class: str,
        *,
        stdout: ByteSink | None = None,
    ) -> "CopyJob":
        """Replace the destination volume's contents with the source's.

        Ephemeral sets created for either side are torn down afterwards,
        whether or not the copy succeeded. Teardown failures are warnings.
        """
        resolutions: list[Resolution] = []
        try:
            source = await self._resolver.resolve(source_volume, namespace, storage_class)
            resolutions.append(source)
            destination = await self._resolver.resolve(destination_volume, namespace, storage_class)
            resolutions.append(destination)

            src, dst = source.handle, destination.handle
            self._echo(f"Source Volume: {source_volume}")
            self._echo(f"Source Pod: {src.pod}, Container: {src.container}, Mount: {src.mount_path}")
            self._echo(f"Destination Volume: {destination_volume}")
            self._echo(f"Destination Pod: {dst.pod}, Container: {dst.container}, Mount: {dst.mount_path}")
            self._echo("")

            self._echo("Clearing destination directory...")
            await self._runner.run(dst, clear_command(dst.mount_path))

            self._echo("Checking source volume contents...")
            await self._show_listing(src, stdout, "source")

            self._echo("Streaming data from source to destination...")
            job = await self._copy_engine.copy(src, dst)

            self._echo("Verifying destination volume contents...")
            await self._show_listing(dst, stdout, "destination")
            return job
        finally:
            await self._teardown(resolutions)

    # Helpers

    def _describe(self, label: str, volume_name: str, handle: AccessHandle) -> None:
        self._echo(f"{label}: {volume_name}")
        self._echo(f"Pod: {handle.pod}")
        self._echo(f"Container: {handle.container}")
        self._echo(f"Mount Path: {handle.mount_path}")

    async def _show_listing(self, handle: AccessHandle, stdout: ByteSink | None, side: str) -> None:
        try:
            await self._runner.run(handle, ["ls", "-la", handle.mount_path], stdout=stdout)
        except ExecFailedError as e:
            self._log.warning("copy.listing_failed", side=side, pod=handle.pod, error=str(e))
            self._echo(f"Warning: failed to list {side} contents: {e.message}")

    async def _teardown(self, resolutions: list[Resolution]) -> None:
        seen = set()
        for resolution in resolutions:
            if not resolution.owns_resources or resolution.resources in seen:
                continue
            resources = resolution.resources
            seen.add(resources)
            for warning in await self._provisioner.teardown(resources):
                self._echo(f"Warning: {warning}")

    def _remove_partial(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self._log.warning("download.cleanup_failed", path=path, error=str(e))
