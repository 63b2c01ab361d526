import sys
import time

import psutil
import pytest

from modtools.app.settings import HarnessSettings
from modtools.bisect.harness import GameHarness, TrialReport


def _py(code: str, *args: str) -> list[str]:
    return [sys.executable, "-c", code, *args]


SLEEPER = "import time; time.sleep(30)"


def _harness(gameCommand, **overrides) -> GameHarness:
    options = {
        "timeoutSeconds": 10.0,
        "launchDelaySeconds": 0.0,
        "teardownDelaySeconds": 0.0,
    }
    options.update(overrides)
    return GameHarness(gameCommand, **options)


def test_success_marker_captures_fps():
    harness = _harness(_py("import time; print('warming up'); print('BENCH:FPS:59.5', flush=True); time.sleep(30)"))

    report = harness.runTrial(2)

    assert report.outcome == "success"
    assert report.roundNumber == 2
    assert report.fps == 59.5
    assert not report.crashed


def test_game_exit_with_crash_code_is_a_crash():
    report = _harness(_py("import sys; sys.exit(42)")).runTrial()
    assert report.outcome == "crash"
    assert report.exitCode == 42
    assert report.crashed


def test_game_exit_without_marker_is_inconclusive():
    report = _harness(_py("print('bye')")).runTrial()
    assert report.outcome == "exited"
    assert report.exitCode == 0
    assert not report.crashed


def test_control_crash_code_fails_the_trial():
    harness = _harness(_py(SLEEPER), controlCommand=_py("import sys; sys.exit(42)"))

    report = harness.runTrial()

    assert report.outcome == "crash"
    assert report.exitCode == 42


def test_control_normal_exit_completes_the_trial():
    harness = _harness(_py(SLEEPER), controlCommand=_py("import sys; sys.exit(0)"))

    report = harness.runTrial()

    assert report.outcome == "completed"
    assert report.exitCode == 0
    assert not report.crashed


def test_timeout_counts_as_pass():
    report = _harness(_py(SLEEPER), timeoutSeconds=0.5).runTrial()
    assert report.outcome == "timeout"
    assert not report.crashed


ORPHANING_GAME = (
    "import pathlib, subprocess, sys; "
    "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)']); "
    "pathlib.Path(sys.argv[1]).write_text(str(child.pid))"
)


def _stopped(pid: int) -> bool:
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        try:
            if psutil.Process(pid).status() == psutil.STATUS_ZOMBIE:
                return True
        except psutil.NoSuchProcess:
            return True
        time.sleep(0.05)
    return False


@pytest.mark.skipif(sys.platform == "win32", reason="relies on POSIX process groups")
def test_children_left_by_an_exited_game_are_killed(tmp_path):
    pidFile = tmp_path / "child.pid"
    started = time.monotonic()

    report = _harness(_py(ORPHANING_GAME, str(pidFile)), timeoutSeconds=30.0).runTrial()

    assert report.outcome == "exited"
    assert time.monotonic() - started < 15
    assert _stopped(int(pidFile.read_text(encoding="utf-8")))


def test_marker_split_inside_a_multibyte_character():
    game = _py("import sys; sys.stdout.buffer.write(b'x' * 4089 + 'BENCH:\\u00e9:60\\n'.encode('utf-8')); sys.stdout.flush()")

    report = _harness(game, successPattern=r"BENCH:é:(?P<fps>\d+)").runTrial()

    assert report.outcome == "success"
    assert report.fps == 60.0


def test_missing_executable_is_an_error_outcome(tmp_path):
    report = _harness([str(tmp_path / "no-such-game")]).runTrial()
    assert report.outcome == "error"
    assert not report.crashed


def test_bot_config_is_installed_then_restored(tmp_path):
    config = tmp_path / "bot.json"
    config.write_text("original", encoding="utf-8")
    check = "import sys; sys.exit(0 if open(sys.argv[1]).read() == 'crash-test' else 3)"
    harness = _harness(_py(check, str(config)), botConfigPath=config, botConfig="crash-test")

    report = harness.runTrial()

    assert report.outcome == "exited"
    assert report.exitCode == 0
    assert config.read_text(encoding="utf-8") == "original"


def test_bot_config_is_removed_when_it_did_not_exist(tmp_path):
    config = tmp_path / "bot.json"
    harness = _harness(_py("pass"), botConfigPath=config, botConfig="crash-test")

    harness.runTrial()

    assert not config.exists()


def test_bot_config_restored_after_launch_failure(tmp_path):
    config = tmp_path / "bot.json"
    config.write_text("original", encoding="utf-8")
    harness = _harness([str(tmp_path / "no-such-game")], botConfigPath=config, botConfig="crash-test")

    assert harness.runTrial().outcome == "error"
    assert config.read_text(encoding="utf-8") == "original"


def test_empty_game_command_rejected():
    with pytest.raises(ValueError):
        GameHarness([])


def test_from_settings_without_control_leaves_bot_config_alone():
    settings = HarnessSettings(
        gameCommand=["game"],
        controlCommand=["bot"],
        botConfigPath="bot.json",
        botConfig="{}",
        timeoutSeconds=5,
    )

    bare = GameHarness.fromSettings(settings, withControl=False)
    full = GameHarness.fromSettings(settings)

    assert bare.controlCommand == [] and bare.botConfigPath is None
    assert full.controlCommand == ["bot"]
    assert full.timeoutSeconds == 5


def test_only_crash_is_a_failure():
    outcomes = ["success", "crash", "completed", "exited", "timeout", "error"]
    assert [TrialReport(1, outcome).crashed for outcome in outcomes] == [False, True, False, False, False, False]
