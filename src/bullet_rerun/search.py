"""Locate robot description files across an ordered list of search paths."""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def resolve_search_path(search_paths: Iterable[PathLike], description_filename: PathLike) -> Optional[Path]:
    """Return the first search path that contains ``description_filename``.

    Paths are checked in order and the first hit wins, even if a later path
    holds an equally valid file.

    Args:
        search_paths: Candidate directories, in priority order.
        description_filename: File name (or relative path) of the description.

    Returns:
        The matching directory, or None if no directory contains the file.
    """
    for path in search_paths:
        directory = Path(path)
        candidate = directory / description_filename
        if candidate.exists():
            logger.debug("Found %s in %s", description_filename, directory)
            return directory
        logger.debug("No %s in %s", description_filename, directory)
    return None


def description_path(search_path: Optional[PathLike], description_filename: PathLike) -> Path:
    """Compose the load path for a description.

    Without a matching search path this degrades to the bare file name, which
    the loader then rejects with a clear not-found error.
    """
    if search_path is None:
        return Path(description_filename)
    return Path(search_path) / description_filename
