import subprocess
import sys


def test_app_help_runs():
    proc = subprocess.run(
        [sys.executable, "-m", "qup.app", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "main entrypoint" in out
    assert "serve" in out
    assert "request" in out


def test_serve_help_is_forwarded_to_service():
    proc = subprocess.run(
        [sys.executable, "-m", "qup.app", "serve", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "--seed" in out
    assert "--publish-status-every" in out
    assert "--max-retries" in out


def test_request_help_is_forwarded_to_client():
    proc = subprocess.run(
        [sys.executable, "-m", "qup.app", "request", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "--token" in out
    assert "enter_queue" in out
