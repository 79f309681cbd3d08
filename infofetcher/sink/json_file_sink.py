"""JSON file implementation of StatusSink: atomic full replace of one output file."""

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from infofetcher.sink.base import SinkError, StatusSink

logger = logging.getLogger(__name__)


def _default_file_mode() -> int:
    """Mode a plain open() would create a new file with under the process umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class JsonFileSink(StatusSink):
    """Write the snapshot document to path.

    The document is written to a temporary file in the same directory and moved over the
    target with os.replace, so readers never see a half-written file. The published file keeps
    the mode of the file it replaces, or gets the umask default when it is new.
    """

    def __init__(self, path: str, indent: Optional[int] = None) -> None:
        self.path = Path(path)
        self.indent = indent
        self._new_file_mode = _default_file_mode()

    def _target_mode(self) -> int:
        try:
            return stat.S_IMODE(os.stat(self.path).st_mode)
        except FileNotFoundError:
            return self._new_file_mode

    def write_snapshot(self, document: Dict[str, Any]) -> None:
        try:
            data = json.dumps(document, indent=self.indent, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise SinkError(f"snapshot is not serializable: {e}") from e

        directory = self.path.parent
        tmp_name: Optional[str] = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.chmod(tmp_name, self._target_mode())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise SinkError(f"Error writing to output file {self.path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError as e:
                    logger.debug("Could not remove temp file %s: %s", tmp_name, e)
        logger.debug("Snapshot written to %s (%d bytes)", self.path, len(data))
