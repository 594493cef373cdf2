"""Robot descriptions bound to a recording namespace.

A :class:`RobotDescription` wraps a parsed :class:`RobotModel` together with
the entity-path prefix that scopes one robot instance in the recording. It
owns the entity layout below that prefix:

* ``<prefix>/description``: static text view of the link tree
* ``<prefix>/links/<link>``: world pose of each link, one per frame
* ``<prefix>/links/<link>/visual_<k>``: static visual geometry in the link frame
* ``<prefix>/skeleton``: parent-to-child segments, one set per frame
"""

import logging
from pathlib import Path
from typing import Mapping, Optional, Union

import numpy as np
import rerun as rr

from .chain import rest_poses
from .core import RobotModel, Visual
from .errors import DescriptionNotFoundError, MeshResolutionError, StaticRegistrationError
from .io import load_urdf
from .transforms import Pose

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Formats rr.Asset3D can decode.
SUPPORTED_MESH_SUFFIXES = (".obj", ".stl", ".glb", ".gltf")
REST_POSE_FRAME = 0
# Timeline for the zero-configuration layout; never the recorder's timeline.
REST_POSE_TIMELINE = "rest_pose"


class RobotDescription:
    """Parsed robot description plus its namespace in the recording."""

    def __init__(self, model: RobotModel, path: Path, mesh_dir: Optional[Path], root_prefix: str):
        self.model = model
        self.path = path
        self.mesh_dir = mesh_dir
        self.root_prefix = root_prefix

    @classmethod
    def from_file(cls, path: PathLike, mesh_dir: Optional[PathLike] = None,
                  namespace: str = "world/robots/robot",
                  scaling: Optional[float] = None) -> "RobotDescription":
        """Parse a URDF file and bind it to ``namespace``.

        Raises:
            DescriptionNotFoundError: ``path`` is not an existing file.
            DescriptionParseError: the file is not a usable description.
        """
        path = Path(path)
        if not path.is_file():
            raise DescriptionNotFoundError(f"Robot description not found: {path}")
        model = load_urdf(str(path), scaling=scaling)
        logger.info("Loaded %s: %d links, %d actuated joints", path.name,
                    len(model.link_names), len(model.joint_names))
        return cls(model, path, Path(mesh_dir) if mesh_dir is not None else None,
                   namespace.rstrip("/"))

    def ordered_links(self) -> list:
        """Link names, root first, in engine link-index order (offset by one)."""
        return list(self.model.link_names)

    def link_entity(self, link_name: str) -> str:
        return f"{self.root_prefix}/links/{link_name}"

    # Static registration
    def resolve_mesh(self, filename: str) -> Path:
        """Map a mesh reference from the description to a readable file.

        ``package://`` and relative references are looked up under the mesh
        directory first and the description's own directory second.
        """
        if filename.startswith("file://"):
            candidates = [Path(filename[len("file://"):])]
        elif Path(filename).is_absolute():
            candidates = [Path(filename)]
        else:
            relative = Path(filename.split("package://", 1)[-1])
            roots = [d for d in (self.mesh_dir, self.path.parent) if d is not None]
            candidates = [root / relative for root in roots]
            if filename.startswith("package://") and len(relative.parts) > 1:
                # package://<package>/<rest>: the package directory may be the root itself.
                stripped = Path(*relative.parts[1:])
                candidates += [root / stripped for root in roots]

        for candidate in candidates:
            if candidate.is_file():
                if candidate.suffix.lower() not in SUPPORTED_MESH_SUFFIXES:
                    raise MeshResolutionError(f"Unsupported mesh format '{candidate.suffix}' for {filename}")
                return candidate
        raise MeshResolutionError(
            f"Cannot resolve mesh '{filename}' (tried {[str(c) for c in candidates]})"
        )

    def register_statics(self, session: rr.RecordingStream, base_pose: Optional[Pose] = None,
                         rest_timeline: str = REST_POSE_TIMELINE) -> None:
        """Log geometry that never changes, plus the rest-pose layout.

        Visual geometry is logged as static data relative to each link, so
        only the per-frame link transforms need to move afterwards. The rest
        pose (zero configuration on ``base_pose``) is logged at frame 0 of its
        own ``rest_timeline`` so the robot is visible before the first step.
        The session's time is cleared before and after, leaving the caller's
        timeline untouched.

        Raises:
            MeshResolutionError: a mesh reference cannot be resolved.
            StaticRegistrationError: the session rejected the data.
        """
        base_pose = base_pose or Pose.identity()
        try:
            session.log(f"{self.root_prefix}/description",
                        rr.TextDocument(self._tree_markdown(), media_type=rr.MediaType.MARKDOWN),
                        static=True)
            for link_name, visuals in zip(self.model.link_names, self.model.visuals):
                for k, visual in enumerate(visuals):
                    self._log_visual(session, f"{self.link_entity(link_name)}/visual_{k}", visual)

            poses = rest_poses(self.model, base_pose)
        except MeshResolutionError:
            raise
        except (OSError, TypeError, ValueError) as exc:
            raise StaticRegistrationError(f"Failed to register statics for {self.root_prefix}: {exc}") from exc

        session.reset_time()
        try:
            self.log_frame(session, REST_POSE_FRAME, poses, rest_timeline)
        finally:
            session.reset_time()

    def _log_visual(self, session: rr.RecordingStream, entity: str, visual: Visual) -> None:
        origin = visual.origin
        colors = None if visual.rgba is None else [_rgba8(visual.rgba)]

        if visual.geometry == "mesh":
            mesh_path = self.resolve_mesh(visual.filename)
            session.log(entity, rr.Transform3D(translation=origin.translation_list(),
                                               rotation=rr.Quaternion(xyzw=origin.quaternion_xyzw()),
                                               scale=list(visual.scale)), static=True)
            if colors is None:
                session.log(entity, rr.Asset3D(path=mesh_path), static=True)
            else:
                session.log(entity, rr.Asset3D(path=mesh_path, albedo_factor=colors[0]), static=True)
            return

        session.log(entity, rr.Transform3D(translation=origin.translation_list(),
                                           rotation=rr.Quaternion(xyzw=origin.quaternion_xyzw())),
                    static=True)
        solid = rr.components.FillMode.Solid
        if visual.geometry == "box":
            half = [s / 2.0 for s in visual.size]
            session.log(entity, rr.Boxes3D(half_sizes=[half], colors=colors, fill_mode=solid), static=True)
        elif visual.geometry == "sphere":
            r = visual.radius
            session.log(entity, rr.Ellipsoids3D(half_sizes=[[r, r, r]], colors=colors, fill_mode=solid),
                        static=True)
        elif visual.geometry == "cylinder":
            session.log(entity, rr.Cylinders3D(lengths=[visual.length], radii=[visual.radius],
                                               colors=colors, fill_mode=solid), static=True)
        else:
            raise StaticRegistrationError(f"Unknown visual geometry '{visual.geometry}' at {entity}")

    def _tree_markdown(self) -> str:
        depth = [0] * len(self.model.link_names)
        parents = np.asarray(self.model.parent_indices).tolist()
        lines = [f"- `{self.model.root_link}` (base)"]
        for i, name in enumerate(self.model.link_names[1:], start=1):
            depth[i] = depth[parents[i]] + 1
            lines.append(f"{'  ' * depth[i]}- `{name}` (link {i - 1})")
        return "\n".join(lines)

    # Per-frame logging
    def log_frame(self, session: rr.RecordingStream, frame_index: int,
                  poses: Mapping[str, Pose], sequence_label: str) -> None:
        """Log one transform per link at ``frame_index`` on ``sequence_label``.

        The pose map must cover every link; a partial map is rejected before
        anything is written. The frame counter belongs to the caller.
        """
        missing = [name for name in self.model.link_names if name not in poses]
        if missing:
            raise ValueError(f"Incomplete pose map for {self.root_prefix}, missing {missing}")

        session.set_time(sequence_label, sequence=frame_index)
        for name in self.model.link_names:
            pose = poses[name]
            session.log(self.link_entity(name),
                        rr.Transform3D(translation=pose.translation_list(),
                                       rotation=rr.Quaternion(xyzw=pose.quaternion_xyzw())))

        parents = np.asarray(self.model.parent_indices).tolist()
        segments = [
            [poses[self.model.link_names[parents[i]]].translation_list(), poses[name].translation_list()]
            for i, name in enumerate(self.model.link_names) if i > 0
        ]
        if segments:
            session.log(f"{self.root_prefix}/skeleton", rr.LineStrips3D(segments))


def _rgba8(rgba) -> list:
    return [int(round(min(max(c, 0.0), 1.0) * 255)) for c in rgba]
