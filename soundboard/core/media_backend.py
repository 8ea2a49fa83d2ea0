"""
Local media backends: play a directly addressable file or stream.

LocalMediaBackend is the contract the orchestrator consumes (set_source,
play, pause, stop, set_current_time, set_volume plus time_update, duration,
ended and error signals). play() raises a classified LocalError.

MpvMediaBackend drives an idle mpv process over its JSON IPC socket.
SimulatedMediaBackend produces no sound (development without an audio
device, and tests).
"""
import asyncio
import json
import logging
import os
import urllib.parse
from typing import Any, Dict, Optional

from soundboard.config import MPV_BINARY, MPV_IPC_SOCKET, MPV_LOAD_TIMEOUT_SEC
from soundboard.core.errors import (
    LocalInterrupted,
    LocalPlaybackBlocked,
    LocalPlaybackFailed,
    LocalSourceMissing,
    LocalSourceUnsupported,
)
from soundboard.core.events import EventEmitter

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".mp3", ".ogg", ".oga", ".wav", ".flac", ".m4a", ".aac", ".opus", ".webm")


class LocalMediaBackend(EventEmitter):
    """Signals: time_update(seconds), duration(seconds), ended(), error(message)."""

    events = ("time_update", "duration", "ended", "error")

    async def set_source(self, locator: str) -> None:
        raise NotImplementedError

    async def play(self) -> None:
        """Start (or resume) the current source."""
        raise NotImplementedError

    async def pause(self) -> None:
        raise NotImplementedError

    async def stop(self) -> None:
        """Pause and rewind to the start."""
        await self.pause()
        await self.set_current_time(0.0)

    async def set_current_time(self, seconds: float) -> None:
        raise NotImplementedError

    async def set_volume(self, level: float) -> None:
        """``level`` is 0..1."""
        raise NotImplementedError

    async def shutdown(self) -> None:
        pass


class SimulatedMediaBackend(LocalMediaBackend):
    """Keeps playback state in memory; finish_track()/report_error() emit signals."""

    def __init__(self, default_duration: float = 120.0) -> None:
        super().__init__()
        self.default_duration = default_duration
        self.source: Optional[str] = None
        self.paused = True
        self.position = 0.0
        self.duration = 0.0
        self.volume = 1.0
        self.blocked = False  # set to simulate the audio output refusing to play
        self.played: list = []  # sources started, in order
        self._loaded: Optional[str] = None

    async def set_source(self, locator: str) -> None:
        self.source = locator
        self.position = 0.0

    async def play(self) -> None:
        if not self.source:
            raise LocalSourceMissing()
        ext = os.path.splitext(urllib.parse.urlparse(self.source).path)[1].lower()
        if ext and ext not in SUPPORTED_EXTENSIONS:
            raise LocalSourceUnsupported.for_locator(self.source)
        if self.blocked:
            raise LocalPlaybackBlocked()
        if self._loaded != self.source:
            self._loaded = self.source
            self.played.append(self.source)
            self.duration = self.default_duration
            await self._emit("duration", self.duration)
        self.paused = False

    async def pause(self) -> None:
        self.paused = True

    async def set_current_time(self, seconds: float) -> None:
        self.position = seconds
        await self._emit("time_update", seconds)

    async def set_volume(self, level: float) -> None:
        self.volume = level

    async def finish_track(self) -> None:
        """Simulate the current source playing to its end."""
        self.paused = True
        self.position = self.duration
        self._loaded = None
        await self._emit("ended")

    async def report_error(self, message: str = "decode error") -> None:
        self.paused = True
        self._loaded = None
        await self._emit("error", message)


class MpvMediaBackend(LocalMediaBackend):
    """Controls one mpv process (--idle) via --input-ipc-server."""

    OBSERVED = {1: "time-pos", 2: "duration"}

    def __init__(
        self,
        binary: str = MPV_BINARY,
        ipc_socket: str = MPV_IPC_SOCKET,
        load_timeout: float = MPV_LOAD_TIMEOUT_SEC,
    ) -> None:
        super().__init__()
        self._binary = binary
        self._ipc_socket = ipc_socket
        self._load_timeout = load_timeout
        self._process: Optional[asyncio.subprocess.Process] = None
        self._ipc_reader: Optional[asyncio.StreamReader] = None
        self._ipc_writer: Optional[asyncio.StreamWriter] = None
        self._ipc_task: Optional[asyncio.Task] = None
        # ended/error listeners may call play(), which needs the reader to keep going
        self._signals: Optional[asyncio.Queue] = None
        self._signal_task: Optional[asyncio.Task] = None
        self._source: Optional[str] = None
        self._loaded_source: Optional[str] = None
        self._load_waiter: Optional[asyncio.Future] = None
        self._load_started = False
        self._paused = True
        self._volume = 1.0

    # ── mpv lifecycle ──

    def _mpv_running(self) -> bool:
        return (
            self._process is not None
            and self._process.returncode is None
            and self._ipc_writer is not None
        )

    async def _ensure_running(self) -> None:
        if self._mpv_running():
            return
        await self._close_ipc()
        try:
            os.unlink(self._ipc_socket)
        except FileNotFoundError:
            pass

        cmd = [
            self._binary,
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={self._ipc_socket}",
            f"--volume={round(self._volume * 100)}",
        ]
        try:
            self._process = await self._spawn(cmd)
        except OSError as e:
            raise LocalPlaybackBlocked(f"Audio player {self._binary!r} could not be started: {e}") from e

        # Wait for IPC socket and connect
        for _ in range(50):  # up to 5 s
            await asyncio.sleep(0.1)
            if self._process.returncode is not None:
                raise LocalPlaybackBlocked("Audio player exited immediately.")
            if os.path.exists(self._ipc_socket):
                try:
                    self._ipc_reader, self._ipc_writer = await asyncio.open_unix_connection(self._ipc_socket)
                    break
                except (ConnectionRefusedError, FileNotFoundError):
                    continue
        if self._ipc_writer is None:
            raise LocalPlaybackBlocked("Could not connect to the audio player.")

        for prop_id, name in self.OBSERVED.items():
            await self._send_ipc(["observe_property", prop_id, name])
        self._ipc_task = asyncio.create_task(self._read_ipc_events())
        self._loaded_source = None
        logger.info("mpv launched (ipc %s)", self._ipc_socket)

    async def _spawn(self, cmd: list) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )

    # ── Signal dispatch ──

    def _queue_signal(self, event: str, *args: Any) -> None:
        if self._signal_task is None or self._signal_task.done():
            self._signals = asyncio.Queue()
            self._signal_task = asyncio.create_task(self._dispatch_signals(self._signals))
        self._signals.put_nowait((event, args))

    async def _dispatch_signals(self, signals: asyncio.Queue) -> None:
        while True:
            event, args = await signals.get()
            await self._emit(event, *args)

    # ── IPC communication ──

    async def _send_ipc(self, command: list) -> None:
        if not self._ipc_writer:
            return
        try:
            self._ipc_writer.write(json.dumps({"command": command}).encode() + b"\n")
            await self._ipc_writer.drain()
        except (ConnectionError, OSError) as e:
            logger.error("mpv IPC send error: %s", e)

    async def _close_ipc(self) -> None:
        if self._ipc_writer:
            try:
                self._ipc_writer.close()
                await self._ipc_writer.wait_closed()
            except (ConnectionError, OSError):
                pass
        self._ipc_reader = None
        self._ipc_writer = None

    async def _read_ipc_events(self) -> None:
        """Background task: property changes and file events from mpv."""
        try:
            while self._ipc_reader:
                line = await self._ipc_reader.readline()
                if not line:
                    break  # EOF, mpv closed
                try:
                    msg = json.loads(line)
                except json.JSONDecodeError:
                    continue
                await self._handle_message(msg)
        except asyncio.CancelledError:
            return
        except (ConnectionError, OSError) as e:
            logger.debug("IPC reader ended: %s", e)

        # mpv exited on its own (shutdown() cancels this task first)
        self._ipc_reader = None
        self._ipc_writer = None
        self._loaded_source = None
        self._fail_load(LocalInterrupted())
        if not self._paused:
            self._paused = True
            self._queue_signal("error", "Audio player exited unexpectedly")

    def _fail_load(self, error: Exception) -> None:
        waiter = self._load_waiter
        if waiter is not None and not waiter.done():
            waiter.set_exception(error)

    async def _handle_message(self, msg: Dict[str, Any]) -> None:
        event = msg.get("event")
        if event == "property-change":
            data = msg.get("data")
            if data is None:
                return
            if msg.get("name") == "time-pos":
                await self._emit("time_update", float(data))
            elif msg.get("name") == "duration":
                await self._emit("duration", float(data))
        elif event == "start-file":
            if self._load_waiter is not None:
                self._load_started = True
        elif event == "file-loaded":
            waiter = self._load_waiter
            if waiter is not None and self._load_started and not waiter.done():
                waiter.set_result(None)
        elif event == "end-file":
            await self._handle_end_file(msg)

    async def _handle_end_file(self, msg: Dict[str, Any]) -> None:
        reason = msg.get("reason")
        waiter = self._load_waiter
        if waiter is not None and not waiter.done():
            if not self._load_started:
                return  # the previous file being replaced
            if reason == "error":
                self._fail_load(LocalSourceUnsupported.for_locator(self._source or ""))
            else:
                self._fail_load(LocalInterrupted())
            return
        if reason == "eof":
            self._paused = True
            self._loaded_source = None
            self._queue_signal("ended")
        elif reason == "error":
            self._paused = True
            self._loaded_source = None
            self._queue_signal("error", msg.get("file_error") or "playback error")

    # ── Public controls ──

    async def set_source(self, locator: str) -> None:
        self._source = locator

    async def play(self) -> None:
        if not self._source:
            raise LocalSourceMissing()
        await self._ensure_running()
        if self._loaded_source == self._source:
            await self._send_ipc(["set_property", "pause", False])
            self._paused = False
            return

        self._fail_load(LocalInterrupted())
        waiter = asyncio.get_running_loop().create_future()
        self._load_waiter = waiter
        self._load_started = False
        try:
            await self._send_ipc(["loadfile", self._source, "replace"])
            await self._send_ipc(["set_property", "pause", False])
            await asyncio.wait_for(waiter, timeout=self._load_timeout)
        except asyncio.TimeoutError as e:
            raise LocalPlaybackFailed(f"Timed out loading {self._source}") from e
        finally:
            if self._load_waiter is waiter:
                self._load_waiter = None
        self._loaded_source = self._source
        self._paused = False
        logger.info("Local track started: %s", self._source)

    async def pause(self) -> None:
        if self._mpv_running():
            await self._send_ipc(["set_property", "pause", True])
        self._paused = True

    async def set_current_time(self, seconds: float) -> None:
        if self._mpv_running() and self._loaded_source:
            await self._send_ipc(["set_property", "time-pos", float(seconds)])

    async def set_volume(self, level: float) -> None:
        self._volume = level
        if self._mpv_running():
            await self._send_ipc(["set_property", "volume", round(level * 100)])

    async def shutdown(self) -> None:
        for task in (self._ipc_task, self._signal_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._ipc_task = None
        self._signal_task = None
        self._signals = None
        await self._send_ipc(["quit"])
        await self._close_ipc()
        if self._process and self._process.returncode is None:
            try:
                await asyncio.wait_for(self._process.wait(), timeout=3)
            except asyncio.TimeoutError:
                self._process.kill()
        self._process = None
        try:
            os.unlink(self._ipc_socket)
        except FileNotFoundError:
            pass
