"""
AutoSteeringPID - Self-Tuning Steering Session

This module ties the steering controller and the twiddle tuner to the
simulator message stream:
- Handles one socket.io frame at a time and returns the reply frame
- Optionally tunes the steering gains online across simulator resets
- Reads settings from a YAML configuration file
- Logs every processed sample to a SQLite database keyed by the initial gains
"""

import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger

from .exceptions import TwiddlePIDError
from .log_observer import LogMode, LogObserver
from .observer_base import TuningObserver
from .steering_pid import SteeringPID
from .telemetry import (
    FrameKind,
    Telemetry,
    clamp_steering,
    encode_manual,
    encode_reset,
    encode_steer,
    parse_frame,
)
from .twiddle import Twiddle

GAIN_NAMES = ("kp", "ki", "kd")


class AutoSteeringPIDError(TwiddlePIDError):
    """Exception raised by AutoSteeringPID operations."""

    pass


class AutoSteeringPID:
    """
    Self-tuning steering session with persistent configuration and data logging.

    Usage:
        with AutoSteeringPID("twiddlepid.yaml", overrides={"tuning": {"max_steps": 2000}}) as session:
            for frame in incoming_frames:
                reply = session.handle_message(frame)
                if reply is not None:
                    send(reply)
    """

    def __init__(
        self,
        config_path: str,
        overrides: Optional[Dict[str, Any]] = None,
        observer: Optional[TuningObserver] = None,
    ):
        """
        Initialize the session from a configuration file.

        Args:
            config_path: Path to YAML configuration file
            overrides: Nested values merged over the file contents, never saved
            observer: Tuner observer; defaults to a LogObserver
        """
        self.config_path = Path(config_path)

        # Internal components
        self._pid: Optional[SteeringPID] = None
        self._tuner: Optional[Twiddle] = None
        self._observer = observer

        # Configuration and state
        self.config: Dict[str, Any] = {}
        self._db_connection: Optional[sqlite3.Connection] = None
        self._gains: Dict[str, float] = {}
        self._run_key: str = ""
        self._sample: int = 0
        self._resets: int = 0

        logger.info(f"Initializing AutoSteeringPID with config: {self.config_path}")

        self._load_config()
        if overrides:
            _update_nested_dict(self.config, overrides)
            self._validate_config()

        self._create_controller()
        self._create_tuner()
        self._setup_database()

        if self.is_tuning_enabled():
            logger.info(
                f"Tuning {', '.join(self.config['tuning']['parameters'])} "
                f"with {self._tuner.get_max_steps()} samples per cycle"
            )
        else:
            logger.info("Tuning disabled - using fixed PID gains")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with cleanup."""
        self._cleanup()

    def handle_message(self, frame: str) -> Optional[str]:
        """
        Process one frame from the simulator.

        Args:
            frame: Raw text frame

        Returns:
            Reply frame to send back, or None when the frame needs no reply

        Raises:
            TelemetryError: If a telemetry frame cannot be decoded
        """
        message = parse_frame(frame)

        if message.kind == FrameKind.IGNORED:
            return None

        if message.kind == FrameKind.MANUAL:
            return encode_manual()

        if message.event != "telemetry":
            logger.debug(f"Ignoring '{message.event}' event")
            return None

        return self.process_telemetry(Telemetry.from_dict(message.data))

    def process_telemetry(self, telemetry: Telemetry) -> str:
        """
        Run the tuner and controller for one telemetry sample.

        Args:
            telemetry: Decoded telemetry sample

        Returns:
            Steer command frame, or reset command frame at a cycle boundary
        """
        cte = telemetry.cte

        if self.is_tuning_enabled():
            was_tuned = self._tuner.is_tuned()
            params = self._tuner.tune(cte)
            self._apply_tuned_params(params)

            if not was_tuned and self._tuner.is_reset_cycle():
                self._resets += 1
                self._log_reset()
                return encode_reset()

        self._pid.set_tunings(self._gains["kp"], self._gains["ki"], self._gains["kd"])
        self._pid.update_error(cte)

        drive_config = self.config["drive"]
        steer_value = clamp_steering(
            self._pid.total_error(), drive_config["steering_limit"]
        )
        throttle = drive_config["throttle"]

        logger.debug(
            f"Current Speed: {telemetry.speed}, "
            f"Current Steering Angle: {telemetry.steering_angle}"
        )
        logger.debug(f"CTE: {cte}, Steering Value: {steer_value}")

        self._sample += 1
        self._log_to_database(telemetry, steer_value, throttle)

        return encode_steer(steer_value, throttle)

    def _apply_tuned_params(self, params: List[float]) -> None:
        """Copy tuner output onto the tuned gains."""
        for name, value in zip(self.config["tuning"]["parameters"], params):
            self._gains[name] = value

    def _load_config(self) -> None:
        """Load configuration from YAML file or create default."""
        try:
            if self.config_path.exists():
                logger.info(f"Loading existing configuration from {self.config_path}")
                with open(self.config_path, "r") as f:
                    self.config = yaml.safe_load(f) or {}
                self._validate_config()
            else:
                logger.warning(
                    f"Configuration file not found, creating default: {self.config_path}"
                )
                self._create_default_config()
                self._save_config()

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML configuration: {e}")
            raise AutoSteeringPIDError(f"Configuration parsing error: {e}")
        except AutoSteeringPIDError:
            raise
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise AutoSteeringPIDError(f"Configuration loading error: {e}")

    def _create_default_config(self) -> None:
        """Create default configuration structure."""
        self.config = {
            "pid": {
                "kp": 0.0,
                "ki": 0.0,
                "kd": 0.0,
            },
            "tuning": {
                "max_steps": 0,
                "parameters": ["kp", "kd"],
                "deltas": [0.1, 1.0],
                "warmup_steps": 600,
                "divergence_threshold": 4.0,
                "convergence_threshold": 0.1,
                "log_mode": "LOG_SUMMARY",
            },
            "drive": {
                "throttle": 0.3,
                "steering_limit": 1.0,
            },
            "logging": {
                "database_path": "telemetry.db",
                "enabled": True,
            },
        }

    def _validate_config(self) -> None:
        """Validate loaded configuration structure."""
        required_sections = ["pid", "tuning", "drive", "logging"]
        for section in required_sections:
            if not isinstance(self.config.get(section), dict):
                raise AutoSteeringPIDError(
                    f"Missing required configuration section: {section}"
                )

        for key in GAIN_NAMES:
            if key not in self.config["pid"]:
                raise AutoSteeringPIDError(f"Missing required PID parameter: {key}")

        tuning_required = ["max_steps", "parameters", "deltas"]
        for key in tuning_required:
            if key not in self.config["tuning"]:
                raise AutoSteeringPIDError(f"Missing required tuning parameter: {key}")

        parameters = self.config["tuning"]["parameters"]
        unknown = [name for name in parameters if name not in GAIN_NAMES]
        if unknown:
            raise AutoSteeringPIDError(f"Unknown tuned parameters: {unknown}")

        if len(parameters) != len(self.config["tuning"]["deltas"]):
            raise AutoSteeringPIDError(
                "Tuning parameters and deltas must have the same length"
            )

        for key in ["throttle", "steering_limit"]:
            if key not in self.config["drive"]:
                raise AutoSteeringPIDError(f"Missing required drive parameter: {key}")

    def _save_config(self) -> None:
        """Save current configuration to YAML file."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.config_path, "w") as f:
                yaml.dump(self.config, f, default_flow_style=False, indent=2)
            logger.info(f"Configuration saved to {self.config_path}")

        except Exception as e:
            logger.error(f"Failed to save configuration: {e}")
            raise AutoSteeringPIDError(f"Configuration save error: {e}")

    def _create_controller(self) -> None:
        """Create the steering controller from configuration."""
        pid_config = self.config["pid"]
        try:
            self._gains = {name: float(pid_config[name]) for name in GAIN_NAMES}
        except (TypeError, ValueError) as e:
            raise AutoSteeringPIDError(f"PID gains must be numbers: {e}")

        self._pid = SteeringPID(**self._gains)
        self._run_key = "_".join(f"{self._gains[name]:g}" for name in GAIN_NAMES)

        logger.info(
            f"Using PID coefficients: Kp={self._gains['kp']}, "
            f"Ki={self._gains['ki']}, Kd={self._gains['kd']}"
        )

    def _create_tuner(self) -> None:
        """Create the twiddle tuner from configuration."""
        tuning_config = self.config["tuning"]

        observer = self._observer
        if observer is None:
            log_mode = tuning_config.get("log_mode", "LOG_SUMMARY")
            if log_mode not in LogMode.__members__:
                raise AutoSteeringPIDError(f"Unknown tuning log mode: {log_mode}")
            observer = LogObserver(LogMode[log_mode])

        try:
            self._tuner = Twiddle(
                params=[self._gains[name] for name in tuning_config["parameters"]],
                params_delta=tuning_config["deltas"],
                max_steps=max(0, int(tuning_config["max_steps"])),
                warmup_steps=int(tuning_config.get("warmup_steps", 600)),
                divergence_threshold=float(
                    tuning_config.get("divergence_threshold", 4.0)
                ),
                convergence_threshold=float(
                    tuning_config.get("convergence_threshold", 0.1)
                ),
                observer=observer,
            )
        except TwiddlePIDError as e:
            logger.error(f"Failed to create tuner: {e}")
            raise AutoSteeringPIDError(f"Tuner creation failed: {e}")

    def _setup_database(self) -> None:
        """Setup SQLite database for per-run telemetry logging."""
        if not self.config["logging"].get("enabled", True):
            logger.info("Database logging disabled in configuration")
            return

        try:
            db_path = Path(self.config["logging"]["database_path"])
            db_path.parent.mkdir(parents=True, exist_ok=True)

            if not db_path.exists():
                logger.info(f"Creating new database: {db_path}")

            self._db_connection = sqlite3.connect(str(db_path))
            self._db_connection.execute("""
                CREATE TABLE IF NOT EXISTS telemetry_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    run_key TEXT NOT NULL,
                    sample INTEGER NOT NULL,
                    speed REAL NOT NULL,
                    steering_angle REAL NOT NULL,
                    cte REAL NOT NULL,
                    steer_value REAL NOT NULL,
                    throttle REAL NOT NULL,
                    mode TEXT NOT NULL DEFAULT 'PID'
                )
            """)
            self._db_connection.execute("""
                CREATE TABLE IF NOT EXISTS reset_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    run_key TEXT NOT NULL,
                    cycle INTEGER NOT NULL,
                    best_error REAL NOT NULL
                )
            """)
            self._db_connection.commit()

            logger.info(f"Database setup completed: {db_path}")

        except Exception as e:
            logger.error(f"Failed to setup database: {e}")
            # Don't fail initialization for database errors
            self._db_connection = None

    def _log_to_database(
        self, telemetry: Telemetry, steer_value: float, throttle: float
    ) -> None:
        """Log one steered sample to the database."""
        if not self._db_connection:
            return

        mode = "TUNING" if self.is_tuning_enabled() and not self.is_tuned() else "PID"

        try:
            self._db_connection.execute(
                """
                INSERT INTO telemetry_logs
                (run_key, sample, speed, steering_angle, cte, steer_value, throttle, mode)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    self._run_key,
                    self._sample,
                    telemetry.speed,
                    telemetry.steering_angle,
                    telemetry.cte,
                    steer_value,
                    throttle,
                    mode,
                ),
            )
            self._db_connection.commit()

        except Exception as e:
            logger.warning(f"Failed to log to database: {e}")

    def _log_reset(self) -> None:
        """Log a simulator reset issued at a cycle boundary."""
        if not self._db_connection:
            return

        try:
            self._db_connection.execute(
                "INSERT INTO reset_logs (run_key, cycle, best_error) VALUES (?, ?, ?)",
                (
                    self._run_key,
                    self._tuner.get_cycle() - 1,
                    self._tuner.get_best_error(),
                ),
            )
            self._db_connection.commit()

        except Exception as e:
            logger.warning(f"Failed to log reset: {e}")

    def _cleanup(self) -> None:
        """Cleanup resources."""
        if self._db_connection:
            try:
                self._db_connection.close()
            except Exception as e:
                logger.warning(f"Error closing database connection: {e}")
            finally:
                self._db_connection = None

    def close(self) -> None:
        """Release the database connection."""
        self._cleanup()

    # Query methods

    def get_gains(self) -> Dict[str, float]:
        """Get the gains used for the next sample."""
        return dict(self._gains)

    def get_run_key(self) -> str:
        """Get the per-run key built from the initial gains."""
        return self._run_key

    def get_controller(self) -> SteeringPID:
        """Get the steering controller."""
        return self._pid

    def get_tuner(self) -> Twiddle:
        """Get the twiddle tuner."""
        return self._tuner

    def is_tuning_enabled(self) -> bool:
        """Check if online tuning is enabled."""
        return self._tuner.enabled()

    def is_tuned(self) -> bool:
        """Check if online tuning has converged."""
        return self._tuner.is_tuned()

    def get_best_gains(self) -> Dict[str, float]:
        """Get the gains with the best cycle score so far."""
        best = dict(self._gains)
        for name, value in zip(
            self.config["tuning"]["parameters"], self._tuner.get_best_params()
        ):
            best[name] = value
        return best

    def get_sample_count(self) -> int:
        """Get the number of steered samples."""
        return self._sample

    def get_reset_count(self) -> int:
        """Get the number of simulator resets issued."""
        return self._resets

    def get_database_path(self) -> str:
        """Get path to logging database."""
        return self.config["logging"]["database_path"]

    def get_config(self) -> Dict[str, Any]:
        """Get a copy of the current configuration."""
        return self.config.copy()

    def __repr__(self) -> str:
        """String representation for debugging."""
        status = "tuned" if self.is_tuned() else "tuning"
        if not self.is_tuning_enabled():
            status = "fixed"
        return (
            f"AutoSteeringPID(config={self.config_path}, "
            f"Kp={self._gains['kp']:.4f}, Ki={self._gains['ki']:.4f}, "
            f"Kd={self._gains['kd']:.4f}, status={status})"
        )


def _update_nested_dict(d: Dict[str, Any], u: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in u.items():
        if isinstance(v, dict):
            d[k] = _update_nested_dict(d.get(k, {}), v)
        else:
            d[k] = v
    return d
