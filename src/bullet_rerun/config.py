"""Recording-session configuration."""

import os
from dataclasses import dataclass
from typing import Optional

SINKS = ("spawn", "connect", "save", "memory")


@dataclass(frozen=True)
class RecordingConfig:
    """Where a :class:`~bullet_rerun.host.RerunHost` sends its recording.

    Attributes:
        sink: ``"spawn"`` starts a local viewer, ``"connect"`` streams to
              ``url``, ``"save"`` writes an ``.rrd`` file to ``save_path`` and
              ``"memory"`` buffers in-process (used by tests).
        save_path: Output file for the ``"save"`` sink.
        url: gRPC address for the ``"connect"`` sink; rerun's default when None.
        spawn_memory_limit: Viewer memory budget for the ``"spawn"`` sink.
        timeline: Sequence timeline the recorders index frames on.
    """
    sink: str = "spawn"
    save_path: Optional[str] = None
    url: Optional[str] = None
    spawn_memory_limit: str = "75%"
    timeline: str = "realtime"

    def __post_init__(self):
        if self.sink not in SINKS:
            raise ValueError(f"Unknown sink '{self.sink}', expected one of {SINKS}")
        if self.sink == "save" and not self.save_path:
            raise ValueError("The 'save' sink needs a save_path")

    @classmethod
    def from_env(cls, **overrides) -> "RecordingConfig":
        """Build a config from ``BULLET_RERUN_*`` environment variables."""
        save_path = os.environ.get("BULLET_RERUN_SAVE_PATH")
        values = dict(
            sink=os.environ.get("BULLET_RERUN_SINK", "save" if save_path else "spawn"),
            save_path=save_path,
            url=os.environ.get("BULLET_RERUN_URL"),
        )
        values.update(overrides)
        return cls(**values)
