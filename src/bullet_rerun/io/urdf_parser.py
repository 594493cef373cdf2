"""URDF parser producing the flat, ordered :class:`RobotModel`.

Links are ordered depth-first from the root, visiting children in the order
their joints are declared. This is the order in which pybullet assigns link
indices when it loads the same file, so ``link_names[i]`` is engine link
``i - 1`` for every ``i > 0``.
"""

import logging
from typing import Dict, List, Optional, Tuple

import jax.numpy as jnp
import numpy as np
from lxml import etree

from ..core.robot_model import RobotModel, Visual
from ..errors import DescriptionNotFoundError, DescriptionParseError
from ..transforms import Pose, se3

logger = logging.getLogger(__name__)

ACTUATED_TYPES = ("revolute", "continuous", "prismatic")


def load_urdf(urdf_path: str, scaling: Optional[float] = None) -> RobotModel:
    """Load a URDF file and convert it to a RobotModel PyTree.

    Args:
        urdf_path: Path to the URDF file to load.
        scaling: Optional uniform scale applied to joint origins and visual
                 geometry, mirroring pybullet's ``globalScaling``.

    Returns:
        RobotModel: the ordered link arena for the description.

    Raises:
        DescriptionNotFoundError: if the file cannot be read.
        DescriptionParseError: if the XML is malformed or the links do not
            form a single tree.
    """
    scale = 1.0 if scaling is None else float(scaling)
    try:
        tree = etree.parse(str(urdf_path))
    except OSError as exc:
        raise DescriptionNotFoundError(f"Cannot read robot description {urdf_path}: {exc}") from exc
    except etree.XMLSyntaxError as exc:
        raise DescriptionParseError(f"Malformed robot description {urdf_path}: {exc}") from exc

    try:
        return _build_model(tree.getroot(), scale)
    except DescriptionParseError:
        raise
    except (TypeError, ValueError) as exc:
        raise DescriptionParseError(f"Invalid value in robot description {urdf_path}: {exc}") from exc


def _build_model(root, scale: float) -> RobotModel:
    materials = _named_materials(root)

    # First pass: topology
    link_elems: Dict[str, etree._Element] = {}
    for link in root.findall("link"):
        name = link.get("name")
        if not name:
            raise DescriptionParseError("Found a <link> without a name")
        if name in link_elems:
            raise DescriptionParseError(f"Duplicate link name: {name}")
        link_elems[name] = link

    joint_by_child: Dict[str, etree._Element] = {}
    children: Dict[str, List[str]] = {name: [] for name in link_elems}
    for joint in root.findall("joint"):
        parent_elem = joint.find("parent")
        child_elem = joint.find("child")
        if parent_elem is None or child_elem is None:
            raise DescriptionParseError(f"Joint '{joint.get('name')}' lacks a parent or child")

        parent_name = parent_elem.get("link")
        child_name = child_elem.get("link")
        for name in (parent_name, child_name):
            if name not in link_elems:
                raise DescriptionParseError(f"Joint '{joint.get('name')}' references unknown link '{name}'")
        if child_name in joint_by_child:
            raise DescriptionParseError(f"Link '{child_name}' has more than one parent joint")

        joint_by_child[child_name] = joint
        children[parent_name].append(child_name)

    # Find root link (not a child of any joint)
    root_links = [name for name in link_elems if name not in joint_by_child]
    if len(root_links) != 1:
        raise DescriptionParseError(f"Expected exactly one root link, found: {root_links}")

    ordered_links = _depth_first(root_links[0], children)
    if len(ordered_links) != len(link_elems):
        unreachable = sorted(set(link_elems) - set(ordered_links))
        raise DescriptionParseError(f"Links not connected to the root: {unreachable}")
    link_index = {name: i for i, name in enumerate(ordered_links)}

    # Second pass: per-link data, in link order
    parent_indices: List[int] = []
    joint_transforms = []
    joint_axes = []
    visuals: List[Tuple[Visual, ...]] = []
    actuated_names: List[str] = []
    actuated_links: List[int] = []

    for i, link_name in enumerate(ordered_links):
        parsed = (_parse_visual(v, materials, scale) for v in link_elems[link_name].findall("visual"))
        visuals.append(tuple(v for v in parsed if v is not None))

        joint = joint_by_child.get(link_name)
        if joint is None:
            parent_indices.append(i)  # Root parents itself
            joint_transforms.append(jnp.eye(4))
            joint_axes.append(jnp.zeros(6))
            continue

        parent_indices.append(link_index[joint.find("parent").get("link")])
        xyz, rpy = _parse_origin(joint.find("origin"))
        joint_transforms.append(se3.from_xyz_rpy(jnp.array(xyz * scale), jnp.array(rpy)))

        joint_type = joint.get("type", "fixed")
        joint_axes.append(_joint_axis(joint, joint_type))
        if joint_type in ACTUATED_TYPES:
            actuated_names.append(joint.get("name"))
            actuated_links.append(i)

    logger.debug("Parsed %d links (%d actuated joints), root '%s'",
                 len(ordered_links), len(actuated_names), ordered_links[0])

    return RobotModel(
        link_names=tuple(ordered_links),
        joint_names=tuple(actuated_names),
        visuals=tuple(visuals),
        parent_indices=jnp.array(parent_indices, dtype=jnp.int32),
        joint_transforms=jnp.stack(joint_transforms),
        joint_axes=jnp.stack(joint_axes),
        actuated_joint_to_link_idx=jnp.array(actuated_links, dtype=jnp.int32),
    )


def _depth_first(root_link: str, children: Dict[str, List[str]]) -> List[str]:
    ordered = []
    stack = [root_link]
    visited = set()
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        ordered.append(current)
        # Reversed so the first declared child is popped first.
        stack.extend(reversed(children[current]))
    return ordered


def _floats(text: Optional[str], count: int) -> np.ndarray:
    if text is None:
        raise DescriptionParseError(f"Missing attribute, expected {count} numbers")
    values = np.array([float(x) for x in text.split()])
    if values.shape != (count,):
        raise DescriptionParseError(f"Expected {count} numbers, got '{text}'")
    return values


def _parse_origin(origin_elem) -> Tuple[np.ndarray, np.ndarray]:
    if origin_elem is None:
        return np.zeros(3), np.zeros(3)
    return (_floats(origin_elem.get("xyz", "0 0 0"), 3),
            _floats(origin_elem.get("rpy", "0 0 0"), 3))


def _joint_axis(joint, joint_type: str):
    if joint_type not in ACTUATED_TYPES:
        return jnp.zeros(6)

    axis_elem = joint.find("axis")
    # URDF defaults the axis to +X
    axis_xyz = _floats(axis_elem.get("xyz", "1 0 0") if axis_elem is not None else "1 0 0", 3)
    norm = np.linalg.norm(axis_xyz)
    if norm < 1e-12:
        raise DescriptionParseError(f"Joint '{joint.get('name')}' has a zero axis")
    axis_xyz = jnp.array(axis_xyz / norm)

    if joint_type == "prismatic":
        return jnp.concatenate([axis_xyz, jnp.zeros(3)])
    return jnp.concatenate([jnp.zeros(3), axis_xyz])


def _named_materials(root) -> Dict[str, Tuple[float, ...]]:
    materials = {}
    for material in root.findall("material"):
        color = material.find("color")
        if material.get("name") and color is not None:
            materials[material.get("name")] = tuple(_floats(color.get("rgba", "1 1 1 1"), 4))
    return materials


def _parse_visual(visual_elem, materials, scale: float) -> Optional[Visual]:
    xyz, rpy = _parse_origin(visual_elem.find("origin"))
    origin = Pose.from_matrix(se3.from_xyz_rpy(jnp.array(xyz * scale), jnp.array(rpy)))

    rgba = None
    material = visual_elem.find("material")
    if material is not None:
        color = material.find("color")
        if color is not None:
            rgba = tuple(_floats(color.get("rgba", "1 1 1 1"), 4))
        else:
            rgba = materials.get(material.get("name"))

    geometry = visual_elem.find("geometry")
    shapes = [] if geometry is None else [child for child in geometry if isinstance(child.tag, str)]
    if not shapes:
        raise DescriptionParseError("Found a <visual> without geometry")
    shape = shapes[0]

    if shape.tag == "mesh":
        filename = shape.get("filename")
        if not filename:
            raise DescriptionParseError("Found a <mesh> without a filename")
        mesh_scale = _floats(shape.get("scale", "1 1 1"), 3) * scale
        return Visual(origin=origin, geometry="mesh", filename=filename,
                      scale=tuple(mesh_scale.tolist()), rgba=rgba)
    if shape.tag == "box":
        size = _floats(shape.get("size"), 3) * scale
        return Visual(origin=origin, geometry="box", size=tuple(size.tolist()), rgba=rgba)
    if shape.tag == "cylinder":
        return Visual(origin=origin, geometry="cylinder", radius=float(shape.get("radius")) * scale,
                      length=float(shape.get("length")) * scale, rgba=rgba)
    if shape.tag == "sphere":
        return Visual(origin=origin, geometry="sphere", radius=float(shape.get("radius")) * scale, rgba=rgba)

    logger.warning("Skipping unsupported visual geometry <%s>", shape.tag)
    return None
