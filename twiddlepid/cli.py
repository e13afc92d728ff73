"""
Command line entry point.

Reads simulator frames from stdin, one per line, and writes each reply frame
as one line to stdout:

    python -m twiddlepid 0.2 0.0001 3.0 --max-steps 2000 < frames.txt
"""

import argparse
import sys
from typing import Dict, List, Optional, TextIO

from loguru import logger

from .auto_steering import AutoSteeringPID, AutoSteeringPIDError
from .exceptions import TelemetryError

COEFFICIENT_LABELS = ("Kp", "Ki", "Kd")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twiddlepid",
        description="PID steering controller with online twiddle tuning",
    )
    parser.add_argument(
        "gains", nargs="*", metavar="GAIN", help="Initial Kp Ki Kd coefficients"
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Scored samples per tuning cycle; 0 disables tuning",
    )
    parser.add_argument(
        "--config", default="twiddlepid.yaml", help="YAML configuration file"
    )
    parser.add_argument(
        "--log-level", default="INFO", help="Loguru level for stderr output"
    )
    return parser


def parse_gains(values: List[str]) -> Dict[str, float]:
    """Read Kp Ki Kd, falling back to 0 for anything that is not a number."""
    gains = {}
    for label, text in zip(COEFFICIENT_LABELS, values):
        try:
            gains[label.lower()] = float(text)
        except ValueError:
            logger.warning(f"Could not read {label} coefficient, using 0")
            gains[label.lower()] = 0.0
    return gains


def run(session: AutoSteeringPID, stream: TextIO, out: TextIO) -> int:
    """Feed every line of stream to the session, returning the reply count."""
    replies = 0
    for line in stream:
        frame = line.strip()
        if not frame:
            continue
        reply = session.handle_message(frame)
        if reply is not None:
            out.write(reply + "\n")
            out.flush()
            replies += 1
    return replies


def main(
    argv: Optional[List[str]] = None,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.gains and len(args.gains) != 3:
        parser.error(
            f"Number of required arguments does not match: requires 3, got: {len(args.gains)}"
        )

    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())

    overrides: Dict[str, Dict] = {}
    if args.gains:
        overrides["pid"] = parse_gains(args.gains)
    if args.max_steps is not None:
        overrides["tuning"] = {"max_steps": args.max_steps}

    try:
        with AutoSteeringPID(args.config, overrides=overrides) as session:
            run(session, stdin or sys.stdin, stdout or sys.stdout)
            if session.is_tuning_enabled():
                logger.info(f"Best gains so far: {session.get_best_gains()}")
    except AutoSteeringPIDError as e:
        logger.error(f"Could not start session: {e}")
        return 1
    except TelemetryError as e:
        logger.error(f"Aborting on malformed telemetry: {e}")
        return 1

    return 0
