from pathlib import Path
from unittest import mock

import pytest

from provisio.encoding import base64_decode
from provisio.hashing import fnv
from provisio.registry import (
    ModuleRecord,
    ModuleRegistry,
    cache_path,
    retry,
    to_file_name,
)


def test_short_name_is_base32():
    assert to_file_name(b"lib1 :: Module") == "NRUWEMJAHI5CATLPMR2WYZI"


def test_str_and_bytes_give_same_name():
    assert to_file_name("lib1 :: Module") == to_file_name(b"lib1 :: Module")


def test_forty_bytes_still_short_form():
    data = b"a" * 40
    name = to_file_name(data)
    assert name.isupper()
    assert len(name) == 64


def test_long_name_keeps_prefix_and_hash():
    data = b"my.very.special_package_123.Module456WithAnExtremelyLongName"
    name = to_file_name(data)
    assert "/" not in name
    decoded = base64_decode(name.replace("_", "/").encode())
    assert decoded[:32] == data[:32]
    assert decoded[32:] == fnv(data)


def test_long_names_differ_by_hash():
    first = to_file_name(b"x" * 50 + b"one")
    second = to_file_name(b"x" * 50 + b"two")
    assert first[:40] == second[:40]
    assert first != second


def test_record_lines_round_trip():
    record = ModuleRecord(
        path="package.sub.Module",
        exported_types=("builtins.int", "pkg.Box"),
        package="lib1",
        program=None,
    )
    lines = record.to_lines()
    assert lines[:3] == ["lib1", "", "package.sub.Module"]
    assert ModuleRecord.from_lines(lines) == record


def test_record_missing_fields():
    with pytest.raises(ValueError, match="Missing path field"):
        ModuleRecord.from_lines(["lib1", ""])


def test_record_rejects_newlines():
    with pytest.raises(ValueError):
        ModuleRecord(path="Module", exported_types=("a\nb",))


def test_key_substitutes_package():
    record = ModuleRecord(path="package.sub.Module", package="lib1")
    assert record.key() == "lib1.sub.Module"


def test_key_without_package_keeps_path():
    record = ModuleRecord(path="package.Module")
    assert record.key() == record.path


def test_key_rejects_invalid_path():
    with pytest.raises(ValueError):
        ModuleRecord(path="not a path!").key()


def test_ensure_persists_and_reloads(tmp_path):
    registry = ModuleRegistry(tmp_path)
    record = ModuleRecord(path="Module", exported_types=("builtins.int",), package="lib1")
    assert registry.ensure(record) is True
    assert (tmp_path / to_file_name(record.key())).is_file()
    assert registry.get(record.key()) == record
    assert ModuleRegistry(tmp_path).get(record.key()) == record


def test_ensure_same_record_twice_is_noop(tmp_path):
    registry = ModuleRegistry(tmp_path)
    record = ModuleRecord(path="Module", exported_types=("builtins.int",))
    registry.ensure(record)
    assert registry.ensure(record) is False


def test_ensure_without_exports_forgets(tmp_path):
    registry = ModuleRegistry(tmp_path)
    record = ModuleRecord(path="Module", exported_types=("builtins.int",))
    registry.ensure(record)
    emptied = ModuleRecord(path="Module")
    assert registry.ensure(emptied) is True
    assert registry.get("Module") is None
    assert list(tmp_path.iterdir()) == []


def test_ensure_without_exports_unknown_is_noop(tmp_path):
    registry = ModuleRegistry(tmp_path / "missing")
    assert registry.ensure(ModuleRecord(path="Module")) is False
    assert not (tmp_path / "missing").exists()


def test_load_removes_file_with_invalid_key(tmp_path):
    bad = tmp_path / "BAD"
    bad.write_text("\n\nnot a path!\nbuiltins.int\n", encoding="utf-8")
    registry = ModuleRegistry(tmp_path)
    assert not bad.exists()
    assert registry.get("not a path!") is None


def test_load_rejects_truncated_file(tmp_path):
    (tmp_path / "BAD").write_text("lib1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        ModuleRegistry(tmp_path)


def test_cache_path_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("PROVISIO_OUT_DIR", str(tmp_path))
    assert cache_path() == tmp_path


def test_cache_path_default(monkeypatch):
    monkeypatch.delenv("PROVISIO_OUT_DIR", raising=False)
    assert cache_path() == Path("./target/.provisio")


@mock.patch("provisio.registry.time.sleep")
def test_retry_until_success(sleep):
    calls = []

    def action():
        calls.append(1)
        if len(calls) < 3:
            raise OSError("busy")
        return "done"

    assert retry(10, action) == "done"
    assert len(calls) == 3
    assert sleep.call_count == 2


@mock.patch("provisio.registry.time.sleep")
def test_retry_gives_up(sleep):
    calls = []

    def action():
        calls.append(1)
        raise OSError("busy")

    with pytest.raises(OSError):
        retry(2, action)
    assert len(calls) == 3


@mock.patch("provisio.registry.time.sleep")
def test_retry_zero_times_runs_once(sleep):
    calls = []

    def action():
        calls.append(1)
        raise OSError("busy")

    with pytest.raises(OSError):
        retry(0, action)
    assert len(calls) == 1
    assert sleep.call_count == 0