"""In-memory bundle of generated configuration files awaiting upload."""

import logging
import os
import posixpath
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .errors import BundleFrozenError, ConfigurationError

logger = logging.getLogger("kubeprep.bundle")


@dataclass(frozen=True)
class BundleEntry:
    """Content captured during generation; source is the local file it was read from, if any."""
    path: str
    content: str
    source: Optional[Path] = None


def _normalize(path: str) -> str:
    normalized = posixpath.normpath(path)
    if not path or normalized in ('.', '..') or normalized.startswith(('/', '../')):
        raise ConfigurationError(f"bundle paths must be relative: {path!r}")
    return normalized


class ConfigurationBundle:
    """Ordered mapping from relative path to file content.

    Filled once during generation, then frozen and only read while being
    uploaded to every host. Adding a path twice keeps its position and the
    last content.
    """

    def __init__(self):
        self._entries: 'OrderedDict[str, BundleEntry]' = OrderedDict()
        self._frozen = False

    def _add(self, entry: BundleEntry) -> None:
        if self._frozen:
            raise BundleFrozenError(f"cannot add {entry.path}: configuration bundle is frozen")
        if entry.path in self._entries:
            logger.debug(f"Overwriting bundle entry {entry.path}")
        self._entries[entry.path] = entry

    def add_file(self, path: str, content: str) -> None:
        """Add inline content under path."""
        self._add(BundleEntry(path=_normalize(path), content=content))

    def add_file_path(self, path: str, source: Union[str, Path], manifest_path: Optional[Union[str, Path]] = None) -> None:
        """Add the local file source under path.

        Relative sources are resolved against the directory of the manifest.
        The content is read here, so every host later receives exactly
        what was read during generation.

        Raises:
            ConfigurationError: If the source file is missing or unreadable
        """
        source = Path(source).expanduser()
        if not source.is_absolute() and manifest_path is not None:
            source = Path(manifest_path).expanduser().parent / source

        if not source.is_file():
            raise ConfigurationError(f"file {source} does not exist")
        if not os.access(source, os.R_OK):
            raise ConfigurationError(f"file {source} is not readable")

        try:
            content = source.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"unable to read {source}: {e}") from e

        self._add(BundleEntry(path=_normalize(path), content=content, source=source.resolve()))

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def paths(self) -> List[str]:
        return list(self._entries)

    def read(self, path: str) -> str:
        return self._entries[path].content

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[BundleEntry]:
        return iter(self._entries.values())

    def upload_to(self, conn, work_dir: str) -> None:
        """Upload every entry below work_dir on the remote host, keeping relative paths."""
        for entry in self:
            remote_path = posixpath.join(work_dir, entry.path)
            logger.debug(f"Uploading {entry.path} to {remote_path}")
            conn.upload(entry.content, remote_path)

    def write_to(self, directory: Union[str, Path]) -> List[Path]:
        """Write every entry below a local directory."""
        directory = Path(directory)
        written = []
        for entry in self:
            target = directory / entry.path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(entry.content, encoding='utf-8')
            os.chmod(target, 0o600)
            written.append(target)
        return written
