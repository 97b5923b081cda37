"""Remote command execution over the pod exec websocket.

Frames carry a one-byte channel prefix:
    0 stdin, 1 stdout, 2 stderr, 3 status (JSON v1.Status)

The v4 channel protocol has no way to half-close stdin, so commands fed
from stdin must stop reading on their own (tar does, at end-of-archive).
"""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, Sequence

import aiohttp
import structlog
from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiException
from kubernetes_asyncio.stream import WsApiClient

from lhc.drivers.base import CommandRunner
from lhc.errors import ExecFailedError
from lhc.models.access import AccessHandle
from lhc.streams import ByteSink

logger = structlog.get_logger()

STDIN_CHANNEL = 0
STDOUT_CHANNEL = 1
STDERR_CHANNEL = 2
STATUS_CHANNEL = 3


def parse_status(payload: bytes) -> tuple[bool, str]:
    """Decode a status-channel frame into (success, message)."""
    try:
        status = json.loads(payload.decode("utf-8", errors="replace") or "{}")
    except ValueError:
        return False, f"unreadable exec status: {payload[:200]!r}"
    if status.get("status") == "Success":
        return True, ""
    message = status.get("message") or status.get("reason") or "command failed"
    return False, message


class K8sCommandRunner(CommandRunner):
    """CommandRunner over connect_get_namespaced_pod_exec."""

    def __init__(self, ws_client: WsApiClient) -> None:
        self._ws_client = ws_client
        self._log = logger.bind(driver="k8s_exec")

    async def run(
        self,
        handle: AccessHandle,
        command: Sequence[str],
        *,
        stdin: AsyncIterator[bytes] | None = None,
        stdout: ByteSink | None = None,
        stderr: ByteSink | None = None,
    ) -> None:
        log = self._log.bind(pod=handle.pod, namespace=handle.namespace, command=list(command))
        log.debug("exec.start")

        api = client.CoreV1Api(api_client=self._ws_client)
        try:
            ws = await api.connect_get_namespaced_pod_exec(
                name=handle.pod,
                namespace=handle.namespace,
                container=handle.container,
                command=list(command),
                stdin=stdin is not None,
                stdout=True,
                stderr=True,
                tty=False,
                _preload_content=False,
            )
            async with ws as conn:
                await self._pump(conn, stdin, stdout, stderr)
        except ExecFailedError:
            log.debug("exec.failed")
            raise
        except ApiException as e:
            raise ExecFailedError(
                f"exec in pod {handle.pod} failed: {e.status} {e.reason}"
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise ExecFailedError(f"exec in pod {handle.pod} failed: {e}") from e

        log.debug("exec.done")

    async def _pump(
        self,
        conn: aiohttp.ClientWebSocketResponse,
        stdin: AsyncIterator[bytes] | None,
        stdout: ByteSink | None,
        stderr: ByteSink | None,
    ) -> None:
        feeder: asyncio.Task | None = None
        if stdin is not None:
            feeder = asyncio.create_task(self._feed_stdin(conn, stdin))

        try:
            success: bool | None = None
            message = ""
            async for msg in conn:
                if msg.type == aiohttp.WSMsgType.ERROR:
                    raise ExecFailedError(f"exec stream error: {conn.exception()}")
                if msg.type != aiohttp.WSMsgType.BINARY or not msg.data:
                    continue

                channel, data = msg.data[0], msg.data[1:]
                if channel == STDOUT_CHANNEL:
                    if stdout is not None and data:
                        await stdout.write(data)
                elif channel == STDERR_CHANNEL:
                    if stderr is not None and data:
                        await stderr.write(data)
                elif channel == STATUS_CHANNEL:
                    success, message = parse_status(data)
                    break

                if feeder is not None and feeder.done() and feeder.exception() is not None:
                    raise ExecFailedError(
                        f"feeding stdin failed: {feeder.exception()}"
                    ) from feeder.exception()

            if success is None:
                raise ExecFailedError("exec stream closed without exit status")
            if not success:
                raise ExecFailedError(f"remote command failed: {message}")
        finally:
            if feeder is not None:
                await self._stop_feeder(feeder)

    async def _stop_feeder(self, feeder: asyncio.Task) -> None:
        if not feeder.done():
            feeder.cancel()
        try:
            await feeder
        except asyncio.CancelledError:
            pass
        except Exception as e:
            # The command already exited; leftover stdin no longer matters
            self._log.debug("exec.stdin.stopped", error=str(e))

    async def _feed_stdin(
        self, conn: aiohttp.ClientWebSocketResponse, stdin: AsyncIterator[bytes]
    ) -> None:
        prefix = bytes([STDIN_CHANNEL])
        async for chunk in stdin:
            if chunk:
                await conn.send_bytes(prefix + chunk)
