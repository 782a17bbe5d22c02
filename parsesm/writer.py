import logging
import os

from .errors import BadPathError

logger = logging.getLogger(__name__)

OUTPUT_ROOT = "out"
PARENT_DIR_NAME = "parent_dir"


def host_key(origin: str) -> str:
    """Strip a single leading http:// or https:// to get a directory name."""
    if origin.startswith("http://"):
        origin = origin[len("http://"):]
    if origin.startswith("https://"):
        origin = origin[len("https://"):]
    return origin


def split_logical_path(source_path: str):
    """Sanitise webpack paths and split them into (directory parts, file name)."""
    if source_path.startswith("webpack:///"):
        source_path = source_path[len("webpack:///"):]
    if source_path.startswith("./"):
        source_path = source_path[2:]
    if "\0" in source_path:
        raise BadPathError(f"Refusing path with embedded NUL {source_path!r}")

    path, filename = source_path.rpartition("/")[::2]
    if filename in ("", ".", ".."):
        raise BadPathError(f"Could not extract a file name from {source_path!r}")

    parts = []
    for part in path.split("/"):
        if part in ("", "."):
            continue
        # keep everything under the host directory
        parts.append(PARENT_DIR_NAME if part == ".." else part)
    return parts, filename


class OutputWriter:
    """Places recovered sources under <root>/<host>/<module path>/<file>."""

    def __init__(self, root=OUTPUT_ROOT):
        self.root = root

    def out_dir(self, host: str, parts) -> str:
        return os.path.join(self.root, host_key(host), *parts)

    def write(self, host: str, source_path: str, contents: str) -> str:
        """Append contents to the file a logical source path maps to.

        Files are never truncated: two sources that sanitise to the same path
        end up concatenated in the order they were written.
        """
        parts, filename = split_logical_path(source_path)
        out_dir = self.out_dir(host, parts)
        # encoded before any file is created
        data = contents.encode("utf-8")
        os.makedirs(out_dir, exist_ok=True)
        write_path = os.path.join(out_dir, filename)
        with open(write_path, "ab") as f:
            f.write(data)

        logger.info(
            f"found original source for module {out_dir} and file {filename} "
            f"of size {len(data)}"
        )
        return write_path
