"""StreamCopyEngine - tar a directory tree from one pod straight into another.

    producer: tar -cf - -C <src> .   stdout -> BytePipe
    consumer: tar -xf - -C <dst>     stdin  <- BytePipe

Memory is bounded by the pipe capacity. The producer closes the pipe
whatever happens and the consumer closes its reader end when it exits.
The first failure on either side cancels the other.
Clearing the destination beforehand is the caller's job.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable

import structlog

from lhc.config import CopyConfig
from lhc.errors import StreamCopyFailedError
from lhc.models.access import AccessHandle
from lhc.models.copy import CopyJob, CopyStatus
from lhc.streams import BufferSink, BytePipe

if TYPE_CHECKING:
    from lhc.drivers.base import CommandRunner

logger = structlog.get_logger()

PRODUCER = "producer"
CONSUMER = "consumer"


def producer_command(source: AccessHandle) -> list[str]:
    return ["tar", "-cf", "-", "-C", source.mount_path, "."]


def consumer_command(destination: AccessHandle) -> list[str]:
    return ["tar", "-xf", "-", "-C", destination.mount_path]


class StreamCopyEngine:
    """Runs one producer/consumer pair per copy() call."""

    def __init__(self, runner: "CommandRunner", copy_cfg: CopyConfig | None = None) -> None:
        self._runner = runner
        self._cfg = copy_cfg or CopyConfig()
        self._log = logger.bind(service="copy")

    async def copy(self, source: AccessHandle, destination: AccessHandle) -> CopyJob:
        """Stream the source mount into the destination mount.

        Returns:
            The finished job (status SUCCEEDED)

        Raises:
            StreamCopyFailedError: Either side failed; the cause is the
                first error observed
        """
        job = CopyJob(source=source, destination=destination, status=CopyStatus.RUNNING)
        log = self._log.bind(
            source=f"{source.namespace}/{source.pod}:{source.mount_path}",
            destination=f"{destination.namespace}/{destination.pod}:{destination.mount_path}",
        )
        log.info("copy.start")

        pipe = BytePipe(max_chunks=self._cfg.pipe_max_chunks)
        stderr = {PRODUCER: BufferSink(), CONSUMER: BufferSink()}
        # One slot per side so reporting never blocks
        results: asyncio.Queue[tuple[str, BaseException | None]] = asyncio.Queue(maxsize=2)

        async def produce() -> None:
            try:
                await self._runner.run(
                    source,
                    producer_command(source),
                    stdout=pipe,
                    stderr=stderr[PRODUCER],
                )
            finally:
                pipe.close()

        async def consume() -> None:
            try:
                await self._runner.run(
                    destination,
                    consumer_command(destination),
                    stdin=aiter(pipe),
                    stderr=stderr[CONSUMER],
                )
            finally:
                # tar -x stops at the end-of-archive blocks; trailing
                # padding from the producer has nowhere to go
                pipe.close_reader()

        async def report(side: str, work: Awaitable[None]) -> None:
            try:
                await work
            except asyncio.CancelledError as e:
                results.put_nowait((side, e))
                raise
            except Exception as e:
                results.put_nowait((side, e))
            else:
                results.put_nowait((side, None))

        tasks = {
            PRODUCER: asyncio.create_task(report(PRODUCER, produce())),
            CONSUMER: asyncio.create_task(report(CONSUMER, consume())),
        }

        try:
            for _ in range(len(tasks)):
                side, error = await results.get()
                if error is None:
                    log.debug("copy.side.done", side=side)
                    continue
                job.fail(side, error)
                log.warning("copy.side.failed", side=side, error=str(error))
                for other, task in tasks.items():
                    if other != side and not task.done():
                        log.debug("copy.side.cancel", side=other)
                        task.cancel()
                break
        finally:
            for task in tasks.values():
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            pipe.close()

        # Drain whatever the other side reported
        while not results.empty():
            side, error = results.get_nowait()
            if error is not None and not isinstance(error, asyncio.CancelledError):
                log.debug("copy.side.also_failed", side=side, error=str(error))

        if job.first_error is not None:
            side = job.failed_side or "unknown"
            raise StreamCopyFailedError(
                f"stream copy failed ({side}): {job.first_error}",
                details={
                    "side": side,
                    "stderr": stderr[side].text().strip() if side in stderr else "",
                },
            ) from job.first_error

        job.status = CopyStatus.SUCCEEDED
        log.info("copy.done")
        return job
