"""Telemetry sinks for per-tick control data.

Components publish named values with record() during a tick; the robot loop
calls flush() once at the end of the tick. Sinks provided:
- CsvTelemetry: one CSV row per tick in a timestamped run directory
- WebSocketTelemetry: JSON frames streamed to a dashboard over WebSocket
- MemoryTelemetry: frames kept in memory (simulation summaries, tests)

Telemetry is never allowed to break the control loop: publish() and
flush_telemetry() swallow and log sink failures, dropping the data.
"""

import asyncio
import csv
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, TextIO, Union

import websockets

from .config import (
    TELEMETRY_MAX_RETRY_DELAY_SECONDS,
    TELEMETRY_QUEUE_SIZE,
    TELEMETRY_RETRY_DELAY_SECONDS,
    TELEMETRY_URI,
    TERM_BLUE,
    TERM_RESET,
)
from .geometry import Pose

Value = Union[float, bool, Sequence[float], Pose]


class TelemetrySink(Protocol):
    def record(self, name: str, value: Value) -> None: ...

    def flush(self, timestamp: float) -> None: ...


def flatten(name: str, value: Value) -> Dict[str, float]:
    """Expand a telemetry value into scalar columns.

    Poses become name.x, name.y, name.heading; sequences become name[i].
    """
    if isinstance(value, Pose):
        return {f"{name}.x": value.x, f"{name}.y": value.y, f"{name}.heading": value.heading}
    if isinstance(value, (list, tuple)):
        return {f"{name}[{i}]": float(v) for i, v in enumerate(value)}
    return {name: float(value)}


def publish(sink: Optional[TelemetrySink], name: str, value: Value) -> None:
    """Record a value, logging and dropping it if the sink fails."""
    if sink is None:
        return
    try:
        sink.record(name, value)
    except Exception as e:
        logging.warning(f"Telemetry dropped '{name}': {e}")


def flush_telemetry(sink: Optional[TelemetrySink], timestamp: float) -> None:
    """Flush a sink, logging and dropping the frame if the sink fails."""
    if sink is None:
        return
    try:
        sink.flush(timestamp)
    except Exception as e:
        logging.warning(f"Telemetry frame dropped at t={timestamp:.2f}s: {e}")


class MemoryTelemetry:
    """Keeps every flushed frame in memory.

    Attributes:
        frames: Flushed frames, each a dict with a "timestamp" key
    """

    def __init__(self) -> None:
        self.frames: List[Dict[str, float]] = []
        self._pending: Dict[str, float] = {}

    def record(self, name: str, value: Value) -> None:
        self._pending.update(flatten(name, value))

    def flush(self, timestamp: float) -> None:
        frame = {"timestamp": timestamp}
        frame.update(self._pending)
        self.frames.append(frame)
        self._pending = {}

    def series(self, column: str) -> List[float]:
        return [frame[column] for frame in self.frames if column in frame]

    @property
    def latest(self) -> Dict[str, float]:
        return self.frames[-1] if self.frames else {}


class CsvTelemetry:
    """Writes one CSV row per tick to a per-run directory.

    The column set is fixed by the first flushed frame; columns recorded
    later are dropped with a warning, missing columns are left empty.

    Attributes:
        run_dir: Directory path for this run's output files
        output_path: Path of the telemetry CSV file
    """

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Initialize the CSV sink.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates a
                timestamped directory. Can also be set via RUN_DIR.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.output_path: Path = self.run_dir / "telemetry.csv"

        self.csv_file: Optional[TextIO] = None
        self.csv_writer: Any = None
        self.columns: Optional[List[str]] = None
        self._pending: Dict[str, float] = {}
        self._warned: set = set()

    def setup(self) -> None:
        self.csv_file = open(self.output_path, "w", newline="")
        self.csv_writer = csv.writer(self.csv_file)
        logging.info(f"{TERM_BLUE}✓ Recording telemetry to {self.output_path}{TERM_RESET}")

    def record(self, name: str, value: Value) -> None:
        self._pending.update(flatten(name, value))

    def flush(self, timestamp: float) -> None:
        if self.csv_writer is None:
            raise RuntimeError("CsvTelemetry.setup() must be called before flush()")

        pending, self._pending = self._pending, {}
        if self.columns is None:
            self.columns = ["timestamp"] + sorted(pending)
            self.csv_writer.writerow(self.columns)

        unknown = set(pending) - set(self.columns) - self._warned
        if unknown:
            logging.warning(f"Telemetry columns added after the first frame are dropped: {sorted(unknown)}")
            self._warned |= unknown

        pending["timestamp"] = timestamp
        self.csv_writer.writerow([pending.get(column, "") for column in self.columns])
        if self.csv_file:
            self.csv_file.flush()

    def cleanup(self) -> None:
        if self.csv_file:
            self.csv_file.close()
            self.csv_file = None
            self.csv_writer = None

    def __enter__(self) -> "CsvTelemetry":
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()


class WebSocketTelemetry:
    """Streams one JSON frame per tick to a dashboard over WebSocket.

    flush() only enqueues, so the control tick never waits on the network.
    run() is a coroutine that drains the queue, reconnecting with exponential
    backoff. If the queue is full (dashboard unreachable), new frames are
    dropped with a warning.
    """

    def __init__(self, uri: str = TELEMETRY_URI, queue_size: int = TELEMETRY_QUEUE_SIZE) -> None:
        """Initialize the WebSocket sink.

        Args:
            uri: WebSocket URI to connect to (must start with ws:// or wss://).
            queue_size: Frames buffered while disconnected.

        Raises:
            ValueError: If URI format is invalid.
        """
        if not uri or not uri.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid WebSocket URI: {uri}. Must start with 'ws://' or 'wss://'")

        self.uri = uri
        self.queue: "asyncio.Queue[str]" = asyncio.Queue(maxsize=queue_size)
        self.should_stop = False
        self.frames_dropped = 0
        self._pending: Dict[str, float] = {}

    def record(self, name: str, value: Value) -> None:
        self._pending.update(flatten(name, value))

    def flush(self, timestamp: float) -> None:
        frame = {"message_type": "telemetry", "timestamp": timestamp, "values": self._pending}
        self._pending = {}
        try:
            self.queue.put_nowait(json.dumps(frame))
        except asyncio.QueueFull:
            self.frames_dropped += 1
            if self.frames_dropped == 1 or self.frames_dropped % 100 == 0:
                logging.warning(f"Telemetry queue full, {self.frames_dropped} frames dropped")

    async def run(self) -> None:
        """Send queued frames until stop() is called."""
        retry_delay = TELEMETRY_RETRY_DELAY_SECONDS

        while not self.should_stop:
            try:
                async with websockets.connect(self.uri) as websocket:
                    logging.info(f"{TERM_BLUE}✓ Connected to telemetry dashboard{TERM_RESET}")
                    retry_delay = TELEMETRY_RETRY_DELAY_SECONDS

                    while not self.should_stop:
                        try:
                            message = await asyncio.wait_for(self.queue.get(), timeout=0.5)
                        except asyncio.TimeoutError:
                            continue
                        await websocket.send(message)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self.should_stop:
                    break
                logging.error(f"Telemetry connection error: {e}")
                logging.info(f"Retrying telemetry in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, TELEMETRY_MAX_RETRY_DELAY_SECONDS)

    def stop(self) -> None:
        self.should_stop = True


class MultiTelemetry:
    """Fans every call out to several sinks; one failing sink does not affect the others."""

    def __init__(self, *sinks: TelemetrySink) -> None:
        self.sinks = list(sinks)

    def record(self, name: str, value: Value) -> None:
        for sink in self.sinks:
            publish(sink, name, value)

    def flush(self, timestamp: float) -> None:
        for sink in self.sinks:
            flush_telemetry(sink, timestamp)
