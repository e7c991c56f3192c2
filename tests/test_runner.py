import sys
import threading
import time

from contextkeeper.runner import CommandStatus, ExternalCommandRunner


def test_run_captures_stdout():
    runner = ExternalCommandRunner(timeout=10)
    result = runner.run(sys.executable, ["-c", "print('hello')"])
    assert result.ok
    assert result.stdout.strip() == "hello"
    assert result.returncode == 0


def test_run_non_zero_exit_is_typed():
    runner = ExternalCommandRunner(timeout=10)
    result = runner.run(
        sys.executable, ["-c", "import sys; sys.stderr.write('boom\\n'); sys.exit(3)"]
    )
    assert result.status is CommandStatus.NON_ZERO_EXIT
    assert result.returncode == 3
    assert "exited with code 3: boom" in result.describe()


def test_missing_program_is_not_found():
    result = ExternalCommandRunner().run("definitely-not-a-real-binary-4711", ["ps"])
    assert result.status is CommandStatus.NOT_FOUND
    assert not result.ok


def test_timeout_kills_process():
    runner = ExternalCommandRunner(timeout=0.5)
    started = time.monotonic()
    result = runner.run(sys.executable, ["-c", "import time; time.sleep(30)"])
    elapsed = time.monotonic() - started

    assert result.status is CommandStatus.TIMEOUT
    assert elapsed < 10


def test_abort_kills_running_command_and_refuses_new_ones():
    runner = ExternalCommandRunner(timeout=30)
    results = []

    t = threading.Thread(
        target=lambda: results.append(
            runner.run(sys.executable, ["-c", "import time; time.sleep(30)"])
        )
    )
    t.start()
    time.sleep(0.5)
    runner.abort()
    t.join(timeout=10)

    assert not t.is_alive()
    assert results[0].status is CommandStatus.TIMEOUT
    assert runner.run(sys.executable, ["-c", "pass"]).status is CommandStatus.TIMEOUT


def test_spawn_returns_independent_runner():
    parent = ExternalCommandRunner(timeout=2.5)
    child = parent.spawn()
    child.abort()
    assert child.timeout == 2.5
    assert parent.run(sys.executable, ["-c", "pass"]).ok
