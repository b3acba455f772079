# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Tar packaging for build contexts and single-file uploads."""

from __future__ import annotations

import io
import os
import pathlib
import tarfile


def _reset_tar_info(info: tarfile.TarInfo) -> tarfile.TarInfo:
    """Reset ownership so the archive does not leak host uids."""
    info.uid = 0
    info.gid = 0
    info.uname = "root"
    info.gname = "root"
    return info


def pack_directory(path: str | os.PathLike[str]) -> bytes:
    """Return a gzip-compressed tar of everything under *path*.

    Entry names are relative to *path* and added in sorted order so the same
    tree always produces the same member list.

    Raises:
        NotADirectoryError: If *path* is not a directory.

    """
    root = pathlib.Path(path)
    if not root.is_dir():
        msg = f"build context is not a directory: {root}"
        raise NotADirectoryError(msg)

    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for entry in sorted(root.rglob("*")):
            arcname = entry.relative_to(root).as_posix()
            tar.add(str(entry), arcname=arcname, recursive=False, filter=_reset_tar_info)
    return buf.getvalue()


def pack_file(path: str, data: bytes, *, mode: int = 0o644) -> bytes:
    """Return an uncompressed tar holding *data* as a single file.

    The leading ``/`` is stripped from *path* so the archive extracts
    relative to the root it is uploaded to.
    """
    name = pathlib.PurePosixPath(path).as_posix().lstrip("/")
    if not name or name == ".":
        msg = f"not a file path: {path!r}"
        raise ValueError(msg)
    info = _reset_tar_info(tarfile.TarInfo(name=name))
    info.size = len(data)
    info.mode = mode
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()
