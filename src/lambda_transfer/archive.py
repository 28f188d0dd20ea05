"""
Zip codec for Lambda deployment packages.

pack_directory() turns a directory into in-memory archive bytes suitable for
UpdateFunctionCode. unpack_archive() expands a deployment package (path, bytes
or binary stream) into a destination directory, replacing existing files.
"""

from __future__ import annotations

import io
import logging
import os
import stat
import zipfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Iterable, List, Optional, Tuple, Union

from lambda_transfer.errors import PackError, UnpackError
from lambda_transfer.progress import ProgressSink, as_tracker

LOGGER = logging.getLogger(__name__)

ArchiveSource = Union[str, os.PathLike, bytes, bytearray, BinaryIO]

# share of the operation's budget reported at start and at the midpoint;
# completion reports the rest
_START_SHARE = 0.1
_MIDPOINT_SHARE = 0.4


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def _raise_walk_error(err: OSError) -> None:
    raise err


def _collect_files(root: Path, exclude: Iterable[Path]) -> List[Tuple[Path, str]]:
    """
    Walk `root` without following directory links and return (path, arcname)
    pairs in a stable order. File links are kept only when they point inside
    the root.
    """
    excluded = [Path(p).resolve() for p in exclude]
    files: List[Tuple[Path, str]] = []

    for current, dirnames, filenames in os.walk(root, onerror=_raise_walk_error, followlinks=False):
        current_path = Path(current)
        dirnames[:] = sorted(
            d for d in dirnames
            if (current_path / d).resolve() not in excluded
        )
        for filename in sorted(filenames):
            file_path = current_path / filename
            resolved = file_path.resolve()
            if resolved in excluded:
                continue
            if file_path.is_symlink() and not _is_within(resolved, root):
                LOGGER.warning("Skipping link outside of package root: %s", file_path)
                continue
            if not resolved.is_file():
                continue
            arcname = file_path.relative_to(root).as_posix()
            files.append((file_path, arcname))

    return files


def pack_directory(
    directory: Union[str, os.PathLike],
    progress: Optional[ProgressSink] = None,
    exclude: Iterable[Union[str, os.PathLike]] = (),
) -> bytes:
    """
    Zip every file under `directory`, keyed by its path relative to it.

    Args:
        directory: Root of the package.
        progress: Receives start, midpoint and completion increments.
        exclude: Files or directories to leave out.

    Returns:
        The closed archive as bytes.

    Raises:
        PackError: The directory is missing or a file cannot be read.
    """
    tracker = as_tracker(progress)
    root = Path(directory).resolve()
    if not root.is_dir():
        raise PackError(f"Directory not found: {directory}")

    tracker.report(tracker.budget * _START_SHARE, f"Packing {root}")

    buffer = io.BytesIO()
    try:
        files = _collect_files(root, [Path(p) for p in exclude])
        midpoint = len(files) // 2
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for index, (file_path, arcname) in enumerate(files):
                if index == midpoint:
                    tracker.report(tracker.budget * _MIDPOINT_SHARE)
                archive.write(file_path, arcname)
    except OSError as exc:
        raise PackError(f"Failed to pack {directory}: {exc}") from exc

    data = buffer.getvalue()
    tracker.finish(f"Packed {len(files)} files")
    LOGGER.info("Packed %d files from %s (%d bytes)", len(files), root, len(data))
    return data


def _open_source(source: ArchiveSource):
    if isinstance(source, (bytes, bytearray)):
        return io.BytesIO(bytes(source))
    return source


def _safe_target(destination: Path, member_name: str) -> Path:
    """Map an archive entry to a path, refusing entries that leave destination."""
    posix = PurePosixPath(member_name.replace("\\", "/"))
    if posix.is_absolute() or ".." in posix.parts:
        raise UnpackError(f"Archive entry escapes destination: {member_name}")
    target = (destination / Path(*posix.parts)).resolve()
    if not _is_within(target, destination):
        raise UnpackError(f"Archive entry escapes destination: {member_name}")
    return target


def unpack_archive(
    source: ArchiveSource,
    destination: Union[str, os.PathLike],
    overwrite: bool = True,
    progress: Optional[ProgressSink] = None,
) -> List[Path]:
    """
    Expand every entry of a zip archive into `destination`.

    Existing files are replaced when `overwrite` is set; otherwise a collision
    fails the extraction. On error the destination may be partially written
    and an UnpackError is raised.

    Returns:
        Paths of the extracted files.
    """
    tracker = as_tracker(progress)
    dest = Path(destination)
    extracted: List[Path] = []

    tracker.report(tracker.budget * _START_SHARE, f"Extracting into {dest}")

    try:
        dest.mkdir(parents=True, exist_ok=True)
        dest = dest.resolve()
        with zipfile.ZipFile(_open_source(source)) as archive:
            members = archive.infolist()
            midpoint = len(members) // 2
            for index, member in enumerate(members):
                if index == midpoint:
                    tracker.report(tracker.budget * _MIDPOINT_SHARE)
                target = _safe_target(dest, member.filename)

                if member.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue

                if target.exists() and not overwrite:
                    raise UnpackError(f"File already exists: {target}")

                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(member) as src, open(target, "wb") as dst:
                    while True:
                        chunk = src.read(64 * 1024)
                        if not chunk:
                            break
                        dst.write(chunk)

                mode = (member.external_attr >> 16) & 0o777
                if mode and member.create_system == 3:
                    os.chmod(target, mode | stat.S_IRUSR | stat.S_IWUSR)
                extracted.append(target)
    except zipfile.BadZipFile as exc:
        raise UnpackError(f"Not a valid zip archive: {exc}") from exc
    except (RuntimeError, NotImplementedError) as exc:
        # encrypted entries, unsupported compression methods
        raise UnpackError(f"Cannot extract archive: {exc}") from exc
    except (OSError, zipfile.LargeZipFile) as exc:
        raise UnpackError(f"Failed to extract archive into {dest}: {exc}") from exc

    tracker.finish(f"Extracted {len(extracted)} files")
    LOGGER.info("Extracted %d files into %s", len(extracted), dest)
    return extracted
