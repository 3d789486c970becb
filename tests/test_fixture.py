import os

import pytest

from oomtools.errors import OomdError
from oomtools.fixture import (
    DirEntry,
    make_dir,
    make_file,
    materialize,
    mkdirs_checked,
    mkdtemp_checked,
    rmr_checked,
    write_checked,
)


@pytest.fixture
def temp_root(tmp_path, monkeypatch):
    monkeypatch.setenv("TMPDIR", str(tmp_path))
    return tmp_path


def _read(path):
    with open(path) as handle:
        return handle.read()


def test_mkdtemp_checked_unique(temp_root):
    seen = set()
    for _ in range(50):
        made = mkdtemp_checked()
        assert os.path.isdir(made)
        assert made not in seen
        seen.add(made)
    assert all(os.path.dirname(d) == str(temp_root) for d in seen)
    assert all(os.path.basename(d).startswith("__oomd_fixtures_") for d in seen)


def test_mkdtemp_checked_env_precedence(tmp_path, monkeypatch):
    monkeypatch.delenv("TMPDIR", raising=False)
    monkeypatch.setenv("TMP", str(tmp_path))
    made = mkdtemp_checked()
    assert os.path.dirname(made) == str(tmp_path)


def test_mkdtemp_checked_failure(tmp_path, monkeypatch):
    monkeypatch.setenv("TMPDIR", str(tmp_path / "missing"))
    with pytest.raises(OomdError) as info:
        mkdtemp_checked()
    assert "mkdtemp failed" in str(info.value)


def test_mkdirs_checked(temp_root):
    temp_dir = mkdtemp_checked()
    mkdirs_checked(temp_dir)
    assert os.listdir(temp_dir) == []

    mkdirs_checked("A//B///C/", temp_dir)
    assert os.listdir(os.path.join(temp_dir, "A")) == ["B"]
    assert os.listdir(os.path.join(temp_dir, "A", "B")) == ["C"]

    mkdirs_checked("A/D", temp_dir)
    assert sorted(os.listdir(os.path.join(temp_dir, "A"))) == ["B", "D"]
    assert os.listdir(os.path.join(temp_dir, "A", "B")) == ["C"]
    assert os.listdir(os.path.join(temp_dir, "A", "D")) == []


def test_mkdirs_checked_absolute_ignores_prefix(temp_root):
    target = os.path.join(str(temp_root), "x", "y")
    mkdirs_checked(target, "/nonexistent-prefix")
    assert os.listdir(os.path.join(str(temp_root), "x")) == ["y"]
    assert os.listdir(target) == []
    assert os.path.exists("/nonexistent-prefix") is False


def test_mkdirs_checked_through_file_fails(temp_root):
    temp_dir = mkdtemp_checked()
    write_checked(os.path.join(temp_dir, "plain"), "data")
    with pytest.raises(OomdError) as info:
        mkdirs_checked("plain/sub", temp_dir)
    assert "mkdir failed" in str(info.value)


def test_write_checked(temp_root):
    temp_dir = mkdtemp_checked()
    filepath = os.path.join(temp_dir, "writetest.txt")
    content = "Hello, Facebook!\nHello, world!\n"
    new_content = "Bye, Facebook!\nHello again, world!\n"

    write_checked(filepath, content)
    assert _read(filepath) == content

    write_checked(filepath, new_content)
    assert _read(filepath) == new_content


def test_write_checked_missing_dir(temp_root):
    with pytest.raises(OomdError) as info:
        write_checked(os.path.join(str(temp_root), "no", "file"), "x")
    assert "open failed" in str(info.value)


def test_rmr_checked(temp_root):
    temp_dir = mkdtemp_checked()
    mkdirs_checked("A/B/C", temp_dir)
    mkdirs_checked("D/E", temp_dir)
    write_checked(temp_dir + "/file1", "file1 content")
    write_checked(temp_dir + "/A/file2", "file2 content")
    write_checked(temp_dir + "/D/E/file3", "file3 content")
    assert sorted(os.listdir(temp_dir)) == ["A", "D", "file1"]

    rmr_checked(temp_dir)
    assert os.path.exists(temp_dir) is False
    assert os.listdir(str(temp_root)) == []

    rmr_checked(temp_dir)
    assert os.path.exists(temp_dir) is False


def test_materialize_tree(temp_root):
    temp_dir = mkdtemp_checked()
    fixture = make_dir(
        "root",
        [
            make_dir(
                "A",
                [make_dir("B", [make_dir("C")]), make_file("file2", "file2 content")],
            ),
            make_dir("D", [make_dir("E", [make_file("file3", "file3 content")])]),
            make_file("file1", "file1 content"),
        ],
    )
    fixture[1].materialize(temp_dir, fixture[0])

    root = os.path.join(temp_dir, "root")
    assert os.path.isdir(root + "/A/B/C")
    assert _read(root + "/A/file2") == "file2 content"
    assert _read(root + "/D/E/file3") == "file3 content"
    assert _read(root + "/file1") == "file1 content"


def test_materialize_helper_with_absolute_name(temp_root):
    target = os.path.join(str(temp_root), "write_test")
    materialize(make_dir(target, {"memory.high": make_file("ignored")[1]}))
    assert os.path.isdir(target)
    assert _read(os.path.join(target, "memory.high")) == ""


def test_dir_entry_calls_materializer():
    calls = []
    entry = DirEntry(lambda path, name: calls.append((path, name)))
    entry.materialize("/some/path", "entry")
    assert calls == [("/some/path", "entry")]