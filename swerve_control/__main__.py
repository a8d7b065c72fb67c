"""
Main entry point when running the swerve_control module with python -m.

Runs a headless simulated match (autonomous, then teleop) on ideal simulated
hardware, recording telemetry to CSV and optionally streaming it to a
WebSocket dashboard.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from .config import TERM_BLUE, TERM_RESET
from .errors import ActuatorFault, RoutineRegistryError
from .robot import SwerveRobot
from .telemetry import CsvTelemetry, MultiTelemetry, TelemetrySink, WebSocketTelemetry


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    INFO messages are printed bare; WARNING, ERROR and DEBUG keep their
    timestamp and level.
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return record.getMessage()
        return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Headless swerve drivetrain match simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Simulate the default routine in real time
  python -m swerve_control

  # Run the "Square" routine as fast as possible
  python -m swerve_control --routine Square --fast

  # Stream telemetry to a dashboard
  python -m swerve_control --telemetry-uri ws://localhost:5810
        """,
    )
    parser.add_argument("--routine", type=str, default=None, help="Autonomous routine to run")
    parser.add_argument(
        "--auto-seconds", type=float, default=15.0, help="Autonomous duration (default: 15)"
    )
    parser.add_argument(
        "--teleop-seconds", type=float, default=5.0, help="Teleop duration (default: 5)"
    )
    parser.add_argument("--list-routines", action="store_true", help="List routines and exit")
    parser.add_argument(
        "--telemetry-uri",
        type=str,
        default=None,
        help="WebSocket URI to stream telemetry to (e.g., ws://localhost:5810)",
    )
    parser.add_argument(
        "--output-dir", type=str, default=".", help="Base directory for results (default: .)"
    )
    parser.add_argument(
        "--fast", action="store_true", help="Run ticks back to back instead of in real time"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    return parser.parse_args(argv)


async def main(args: argparse.Namespace) -> int:
    """Run one simulated match.

    Returns:
        Process exit code
    """
    with CsvTelemetry(args.output_dir) as csv_sink:
        streamer: Optional[WebSocketTelemetry] = None
        sink: TelemetrySink = csv_sink
        if args.telemetry_uri:
            streamer = WebSocketTelemetry(args.telemetry_uri)
            sink = MultiTelemetry(csv_sink, streamer)

        robot = SwerveRobot.simulated(telemetry=sink)
        if args.routine:
            robot.selector.select(args.routine)

        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            logging.info("\nShutdown signal received...")
            robot.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        stream_task = asyncio.create_task(streamer.run()) if streamer else None
        try:
            with robot:
                await robot.run_match(args.auto_seconds, args.teleop_seconds, realtime=not args.fast)
        except ActuatorFault as e:
            logging.error(f"Match aborted: {e}")
            return 1
        finally:
            if streamer and stream_task:
                streamer.stop()
                stream_task.cancel()
                try:
                    await stream_task
                except asyncio.CancelledError:
                    pass

        pose = robot.drivetrain.get_pose()
        logging.info(
            f"{TERM_BLUE}✓ Final pose: ({pose.x:.3f}, {pose.y:.3f}, "
            f"{pose.heading:.3f} rad) after {robot.elapsed:.2f}s{TERM_RESET}"
        )
        logging.info(f"{TERM_BLUE}✓ Telemetry saved to {csv_sink.output_path}{TERM_RESET}")
    return 0


if __name__ == "__main__":
    args = parse_args()
    setup_logging(args.verbose)

    if args.list_routines:
        robot = SwerveRobot.simulated()
        for i, name in enumerate(robot.selector.options(), 1):
            default = " (default)" if name == robot.selector.default else ""
            logging.info(f"  {i}. {name}{default}")
        sys.exit(0)

    try:
        sys.exit(asyncio.run(main(args)))
    except RoutineRegistryError as e:
        logging.error(f"Error: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)
