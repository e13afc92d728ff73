"""
Command line verification
"""

import io
import json
import sys

import pytest
import yaml
from loguru import logger

from twiddlepid.cli import build_parser, main, parse_gains

FRAMES = "\n".join(
    [
        '0{"sid":"abc"}',
        '42["telemetry",{"cte":"0.5","speed":"10","steering_angle":"0"}]',
        "",
        '42["telemetry",null]',
        '42["telemetry",{"cte":"0.6","speed":"10","steering_angle":"0"}]',
    ]
)


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    # main() replaces the loguru handlers
    logger.remove()
    logger.add(sys.stderr)


def test_parse_gains():
    assert parse_gains(["0.2", "0.0004", "3"]) == {"kp": 0.2, "ki": 0.0004, "kd": 3.0}


def test_parse_gains_falls_back_to_zero():
    assert parse_gains(["abc", "0.1", "1e"]) == {"kp": 0.0, "ki": 0.1, "kd": 0.0}


def test_parser_defaults():
    args = build_parser().parse_args([])

    assert args.gains == []
    assert args.max_steps is None
    assert args.config == "twiddlepid.yaml"


def test_wrong_number_of_gains(workdir):
    with pytest.raises(SystemExit) as excinfo:
        main(["0.2", "0.1"], stdin=io.StringIO(""), stdout=io.StringIO())
    assert excinfo.value.code == 2


def test_replies_written_per_line(workdir):
    out = io.StringIO()

    status = main(
        ["0.2", "0", "3", "--max-steps", "0"], stdin=io.StringIO(FRAMES), stdout=out
    )

    assert status == 0
    lines = out.getvalue().splitlines()
    assert len(lines) == 3
    assert json.loads(lines[0][2:]) == [
        "steer",
        {"steering_angle": pytest.approx(-0.1), "throttle": 0.3},
    ]
    assert lines[1] == '42["manual",{}]'
    assert json.loads(lines[2][2:])[0] == "steer"

    config = yaml.safe_load((workdir / "twiddlepid.yaml").read_text())
    assert config["pid"]["kp"] == 0.0, "Command line gains are not saved"
    assert (workdir / "telemetry.db").exists()


def test_tuning_from_command_line(workdir):
    out = io.StringIO()
    config_path = workdir / "custom.yaml"
    config_path.write_text(
        yaml.dump(
            {
                "pid": {"kp": 0.2, "ki": 0.0, "kd": 3.0},
                "tuning": {
                    "max_steps": 0,
                    "warmup_steps": 0,
                    "parameters": ["kp", "kd"],
                    "deltas": [0.1, 1.0],
                },
                "drive": {"throttle": 0.3, "steering_limit": 1.0},
                "logging": {"enabled": False},
            }
        )
    )

    frames = "\n".join(
        f'42["telemetry",{{"cte":"{cte}","speed":"10","steering_angle":"0"}}]'
        for cte in [0.1, 0.1, 0.1]
    )
    status = main(
        ["--max-steps", "2", "--config", str(config_path)],
        stdin=io.StringIO(frames),
        stdout=out,
    )

    assert status == 0
    assert out.getvalue().splitlines()[1] == '42["reset",{}]'


def test_malformed_telemetry_aborts(workdir):
    frames = '42["telemetry",{"cte":"oops","speed":"1","steering_angle":"0"}]\n'

    assert main([], stdin=io.StringIO(frames), stdout=io.StringIO()) == 1


def test_bad_config_aborts(workdir):
    (workdir / "twiddlepid.yaml").write_text("pid: {}\n")

    assert main([], stdin=io.StringIO(""), stdout=io.StringIO()) == 1
