import io
import os
import stat
import zipfile

import pytest

from switchblade.archives import extract_zip
from switchblade.errors import SwitchbladeError


def _zip(entries):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            if isinstance(name, zipfile.ZipInfo):
                archive.writestr(name, content)
            else:
                archive.writestr(name, content)
    return buffer.getvalue()


def test_extracts_files_from_a_stream(tmp_path):
    data = _zip({"some-file": b"some-content", "nested/other-file": b"other-content"})

    extract_zip(io.BytesIO(data), tmp_path / "out")

    assert (tmp_path / "out" / "some-file").read_bytes() == b"some-content"
    assert (tmp_path / "out" / "nested" / "other-file").read_bytes() == b"other-content"


def test_bytes_and_streams_extract_the_same(tmp_path):
    data = _zip({"a/b": b"one", "c": b"two"})

    extract_zip(data, tmp_path / "from-bytes")
    extract_zip(io.BytesIO(data), tmp_path / "from-stream")

    def listing(root):
        return sorted(
            (str(path.relative_to(root)), path.read_bytes())
            for path in root.rglob("*")
            if path.is_file()
        )

    assert listing(tmp_path / "from-bytes") == listing(tmp_path / "from-stream")


def test_strip_components_drops_leading_directory(tmp_path):
    data = _zip({"some-dir/": b"", "some-dir/some-file": b"repo-content"})

    extract_zip(data, tmp_path / "repo", strip_components=1)

    assert os.listdir(tmp_path / "repo") == ["some-file"]
    assert (tmp_path / "repo" / "some-file").read_bytes() == b"repo-content"


def test_directory_entries_become_directories(tmp_path):
    data = _zip({"empty-dir/": b""})

    extract_zip(data, tmp_path / "out")

    assert (tmp_path / "out" / "empty-dir").is_dir()


def test_file_mode_is_kept(tmp_path):
    info = zipfile.ZipInfo("run")
    info.external_attr = (stat.S_IFREG | 0o755) << 16

    extract_zip(_zip({info: b"#!/bin/sh"}), tmp_path / "out")

    assert stat.S_IMODE(os.stat(tmp_path / "out" / "run").st_mode) == 0o755


def test_symlinks_are_recreated(tmp_path):
    link = zipfile.ZipInfo("link")
    link.external_attr = (stat.S_IFLNK | 0o777) << 16

    extract_zip(_zip({"target.txt": b"payload", link: b"target.txt"}), tmp_path / "out")

    assert os.readlink(tmp_path / "out" / "link") == "target.txt"
    assert (tmp_path / "out" / "link").read_bytes() == b"payload"


def test_invalid_zip_raises(tmp_path):
    with pytest.raises(SwitchbladeError) as excinfo:
        extract_zip(io.BytesIO(b"this is not a zip file"), tmp_path / "out")

    assert "not a valid zip file" in str(excinfo.value)


def test_entries_escaping_destination_are_rejected(tmp_path):
    data = _zip({"../escaped": b"evil"})

    with pytest.raises(SwitchbladeError):
        extract_zip(data, tmp_path / "out")

    assert not (tmp_path / "escaped").exists()