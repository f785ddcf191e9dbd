"""Extraction of zip archives into directories."""

import io
import os
import shutil
import stat
import zipfile
from pathlib import Path

from .errors import SwitchbladeError


def extract_zip(source, destination, strip_components=0):
    """Extract the zip archive in *source* into the directory *destination*.

    *source* is bytes or a readable binary stream. The first *strip_components*
    path components of every entry are dropped; entries left with no path are
    skipped.
    """
    data = bytes(source) if isinstance(source, (bytes, bytearray)) else source.read()
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as err:
        raise SwitchbladeError("failed to create zip reader: not a valid zip file") from err

    root = Path(destination).resolve()
    root.mkdir(parents=True, exist_ok=True)

    with archive:
        try:
            for info in archive.infolist():
                _extract_entry(archive, info, root, strip_components)
        except zipfile.BadZipFile as err:
            raise SwitchbladeError(f"failed to extract zip entry: {err}") from err


def _extract_entry(archive, info, root, strip_components):
    parts = [part for part in info.filename.replace("\\", "/").split("/") if part]
    parts = parts[strip_components:]
    if not parts:
        return

    target = root.joinpath(*parts).resolve()
    if target != root and root not in target.parents:
        raise SwitchbladeError(f"illegal file path in zip archive: {info.filename}")

    mode = info.external_attr >> 16
    if info.is_dir() or stat.S_ISDIR(mode):
        target.mkdir(parents=True, exist_ok=True)
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    if stat.S_ISLNK(mode):
        link = archive.read(info).decode()
        os.symlink(link, target)
        return

    with archive.open(info) as reader, open(target, "wb") as writer:
        shutil.copyfileobj(reader, writer)
    if mode & 0o777:
        os.chmod(target, mode & 0o777)