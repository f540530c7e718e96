"""Unit tests for scripts.ceph_cli command construction and error mapping."""

from __future__ import annotations

import subprocess

import pytest

from config.settings import Settings
from scripts import ceph_cli
from scripts.ceph_cli import CephCommandRunner, CommandError, MalformedResponseError, parse_value


class _Recorder:
    def __init__(self, stdout: bytes = b"", returncode: int = 0, exc: Exception | None = None):
        self.calls: list[list[str]] = []
        self.kwargs: list[dict] = []
        self.stdout = stdout
        self.returncode = returncode
        self.exc = exc

    def __call__(self, cmd, **kwargs):  # noqa: ANN001, ANN003
        self.calls.append(cmd)
        self.kwargs.append(kwargs)
        if self.exc is not None:
            raise self.exc
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.stdout)


def test_read_health_command(monkeypatch):
    rec = _Recorder(stdout=b'{"status": "HEALTH_OK"}')
    monkeypatch.setattr(ceph_cli.subprocess, "run", rec)
    out = CephCommandRunner().read_health()
    assert out == b'{"status": "HEALTH_OK"}'
    assert rec.calls == [["ceph", "health", "-f", "json"]]
    assert rec.kwargs[0]["timeout"] == 60
    assert rec.kwargs[0]["stderr"] == subprocess.STDOUT


def test_read_value_command_and_parse(monkeypatch):
    rec = _Recorder(stdout=b'{"pool": "data", "pool_id": 3, "pg_num": 1000}')
    monkeypatch.setattr(ceph_cli.subprocess, "run", rec)
    assert CephCommandRunner().read_value("data", "pg_num") == 1000
    assert rec.calls == [["ceph", "osd", "pool", "get", "data", "pg_num", "-f", "json"]]


def test_write_value_command(monkeypatch):
    rec = _Recorder(stdout=b"set pool 3 pgp_num to 1010")
    monkeypatch.setattr(ceph_cli.subprocess, "run", rec)
    CephCommandRunner().write_value("data", "pgp_num", 1010)
    assert rec.calls == [["ceph", "osd", "pool", "set", "data", "pgp_num", "1010"]]


def test_from_settings_uses_binary_and_timeout(monkeypatch):
    rec = _Recorder(stdout=b"{}")
    monkeypatch.setattr(ceph_cli.subprocess, "run", rec)
    cfg = Settings(POOL="data", TARGET=64, CEPH_BIN="/usr/local/bin/ceph", CEPH_TIMEOUT_SECONDS=5)
    CephCommandRunner.from_settings(cfg).read_health()
    assert rec.calls[0][0] == "/usr/local/bin/ceph"
    assert rec.kwargs[0]["timeout"] == 5


def test_non_zero_exit_raises_with_output(monkeypatch):
    rec = _Recorder(stdout=b"Error ENOENT: unrecognized pool 'nope'\n", returncode=2)
    monkeypatch.setattr(ceph_cli.subprocess, "run", rec)
    with pytest.raises(CommandError) as excinfo:
        CephCommandRunner().read_value("nope", "pg_num")
    assert "exit status 2" in str(excinfo.value)
    assert "ceph osd pool get nope pg_num" in str(excinfo.value)
    assert excinfo.value.output == "Error ENOENT: unrecognized pool 'nope'"


def test_timeout_raises_command_error(monkeypatch):
    rec = _Recorder(exc=subprocess.TimeoutExpired(["ceph"], 60))
    monkeypatch.setattr(ceph_cli.subprocess, "run", rec)
    with pytest.raises(CommandError, match="timed out"):
        CephCommandRunner().read_health()


def test_missing_binary_raises_command_error(monkeypatch):
    rec = _Recorder(exc=FileNotFoundError(2, "No such file or directory"))
    monkeypatch.setattr(ceph_cli.subprocess, "run", rec)
    with pytest.raises(CommandError, match="could not run"):
        CephCommandRunner().write_value("data", "pg_num", 16)


class TestParseValue:
    def test_float_value_truncates(self):
        assert parse_value(b'{"pg_num": 512.0}', "data", "pg_num") == 512

    def test_missing_key(self):
        with pytest.raises(MalformedResponseError, match="Error in getting pgp_num of data"):
            parse_value(b'{"pg_num": 512}', "data", "pgp_num")

    def test_invalid_json(self):
        with pytest.raises(MalformedResponseError):
            parse_value(b"Error EPERM", "data", "pg_num")

    def test_non_object_payload(self):
        with pytest.raises(MalformedResponseError):
            parse_value(b"[512]", "data", "pg_num")

    @pytest.mark.parametrize("raw", [b'{"pg_num": "512"}', b'{"pg_num": true}', b'{"pg_num": null}'])
    def test_non_numeric_value(self, raw):
        with pytest.raises(MalformedResponseError, match="not a number"):
            parse_value(raw, "data", "pg_num")
