"""Recording host: owns the rerun session and the description search paths."""

import logging
from pathlib import Path
from typing import List, Optional, Union

import rerun as rr

from .config import RecordingConfig
from .recorder import RobotRecorderBuilder
from .robots import description_filename
from .search import description_path, resolve_search_path

logger = logging.getLogger(__name__)


class RerunHost:
    """Opens one recording session and hands out robot recorder builders.

    Every recorder built here logs to the same session; their entity paths
    (``world/robots/<name>``) keep the robots apart.
    """

    def __init__(self, session_name: str, config: Optional[RecordingConfig] = None):
        self.config = config or RecordingConfig()
        self.session = rr.RecordingStream(session_name)
        self.memory = None
        self.search_paths: List[Path] = []
        self._closed = False

        sink = self.config.sink
        if sink == "spawn":
            self.session.spawn(memory_limit=self.config.spawn_memory_limit)
        elif sink == "connect":
            if self.config.url:
                self.session.connect_grpc(self.config.url)
            else:
                self.session.connect_grpc()
        elif sink == "save":
            self.session.save(self.config.save_path)
        else:
            self.memory = self.session.memory_recording()
        logger.info("Opened recording '%s' (sink: %s)", session_name, sink)

        self.session.log("world", rr.ViewCoordinates.RIGHT_HAND_Z_UP, static=True)

    def add_search_path(self, path: Union[str, Path]) -> "RerunHost":
        """Append a directory to the description search list (no checks yet)."""
        self.search_paths.append(Path(path))
        return self

    def begin_robot(self, robot_type, name: str) -> RobotRecorderBuilder:
        """Start configuring a recorder for one instance of ``robot_type``.

        The builder loads from the first search path holding the type's
        description, or from the bare file name when none does.
        """
        filename = description_filename(robot_type)
        search_path = resolve_search_path(self.search_paths, filename)
        if search_path is None:
            logger.debug("%s not found in %d search paths", filename, len(self.search_paths))
        return RobotRecorderBuilder(
            self.session,
            description_path(search_path, filename),
            mesh_dir=search_path,
            name=str(name),
            timeline=self.config.timeline,
        )

    def close(self) -> None:
        """Flush pending data and release the sink."""
        if self._closed:
            return
        self._closed = True
        self.session.flush()
        if self.memory is None:
            self.session.disconnect()
        logger.info("Closed recording")

    def __enter__(self) -> "RerunHost":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
