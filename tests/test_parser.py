"""Tests for URDF parser functionality."""

from pathlib import Path

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from bullet_rerun.core import RobotModel
from bullet_rerun.errors import DescriptionNotFoundError, DescriptionParseError
from bullet_rerun.io import load_urdf

FIXTURES = Path(__file__).parent / "fixtures"


def _write(tmp_path, body):
    path = tmp_path / "robot.urdf"
    path.write_text(f'<?xml version="1.0"?>\n<robot name="t">{body}</robot>\n')
    return path


def test_load_three_link_urdf():
    """Test loading a small chain and verify RobotModel structure."""
    robot = load_urdf(str(FIXTURES / "three_link.urdf"))

    assert isinstance(robot, RobotModel)
    assert robot.link_names == ("base", "link1", "link2")
    assert robot.root_link == "base"

    # Only the revolute joint is actuated
    assert robot.joint_names == ("joint1",)
    np.testing.assert_array_equal(robot.actuated_joint_to_link_idx, jnp.array([1]))

    # Verify array shapes
    num_links = len(robot.link_names)
    assert robot.parent_indices.shape == (num_links,)
    assert robot.joint_transforms.shape == (num_links, 4, 4)
    assert robot.joint_axes.shape == (num_links, 6)

    # Root parents itself
    np.testing.assert_array_equal(robot.parent_indices, jnp.array([0, 0, 1]))

    for i in range(num_links):
        T = robot.joint_transforms[i]
        np.testing.assert_allclose(T[3, :], jnp.array([0, 0, 0, 1]), rtol=1e-6, atol=1e-6)
        R = T[:3, :3]
        np.testing.assert_allclose(R @ R.T, jnp.eye(3), rtol=1e-6, atol=1e-6)

    np.testing.assert_allclose(robot.joint_transforms[1][:3, 3], [0.0, 0.0, 0.1], atol=1e-9)
    np.testing.assert_allclose(robot.joint_transforms[2][:3, 3], [0.0, 0.0, 0.4], atol=1e-9)


def test_joint_axes():
    robot = load_urdf(str(FIXTURES / "three_link.urdf"))

    # Revolute about +Y is an angular axis; fixed joints carry no axis
    np.testing.assert_allclose(robot.joint_axes[1], [0, 0, 0, 0, 1, 0])
    np.testing.assert_allclose(robot.joint_axes[2], jnp.zeros(6))


def test_branching_links_are_depth_first():
    """Children are visited in joint-declaration order, each subtree completed first."""
    robot = load_urdf(str(FIXTURES / "branching.urdf"))

    assert robot.link_names == ("base", "arm_a", "arm_a_tip", "arm_b", "arm_b_tip")
    np.testing.assert_array_equal(robot.parent_indices, jnp.array([0, 0, 1, 0, 3]))

    # Actuated joints follow link order
    assert robot.joint_names == ("joint_a", "joint_b", "joint_b_tip")
    np.testing.assert_array_equal(robot.actuated_joint_to_link_idx, jnp.array([1, 3, 4]))

    # Prismatic joint is a linear axis
    np.testing.assert_allclose(robot.joint_axes[4], [1, 0, 0, 0, 0, 0])


def test_parents_precede_children():
    for name in ("three_link.urdf", "branching.urdf", "mesh_robot.urdf"):
        robot = load_urdf(str(FIXTURES / name))
        for i in range(1, len(robot.link_names)):
            assert int(robot.parent_indices[i]) < i


def test_visuals_and_materials():
    robot = load_urdf(str(FIXTURES / "three_link.urdf"))

    (base_visual,) = robot.visuals[0]
    assert base_visual.geometry == "box"
    assert base_visual.size == pytest.approx((0.2, 0.2, 0.1))
    # Named top-level material
    assert base_visual.rgba == pytest.approx((0.6, 0.6, 0.65, 1.0))
    np.testing.assert_allclose(base_visual.origin.position, [0.0, 0.0, 0.05], atol=1e-9)

    (link1_visual,) = robot.visuals[1]
    assert link1_visual.geometry == "cylinder"
    assert link1_visual.radius == pytest.approx(0.03)
    assert link1_visual.length == pytest.approx(0.4)
    assert link1_visual.rgba == pytest.approx((1.0, 0.5, 0.0, 1.0))

    (link2_visual,) = robot.visuals[2]
    assert link2_visual.geometry == "sphere"
    assert link2_visual.rgba is None


def test_mesh_visuals():
    robot = load_urdf(str(FIXTURES / "mesh_robot.urdf"))

    (chassis,) = robot.visuals[0]
    assert chassis.geometry == "mesh"
    assert chassis.filename == "package://mesh_robot/meshes/part.stl"
    assert chassis.scale == pytest.approx((0.5, 0.5, 0.5))

    (wheel,) = robot.visuals[1]
    assert wheel.scale == pytest.approx((1.0, 1.0, 1.0))


def test_scaling():
    robot = load_urdf(str(FIXTURES / "three_link.urdf"), scaling=2.0)

    np.testing.assert_allclose(robot.joint_transforms[2][:3, 3], [0.0, 0.0, 0.8], atol=1e-9)
    assert robot.visuals[0][0].size == pytest.approx((0.4, 0.4, 0.2))
    assert robot.visuals[2][0].radius == pytest.approx(0.08)


def test_unsupported_geometry_is_skipped(tmp_path):
    path = _write(tmp_path, '<link name="a"><visual><geometry><capsule radius="1" length="2"/>'
                            '</geometry></visual></link>')
    robot = load_urdf(str(path))
    assert robot.visuals == ((),)


def test_missing_file():
    with pytest.raises(DescriptionNotFoundError):
        load_urdf(str(FIXTURES / "nope.urdf"))


def test_malformed_xml(tmp_path):
    path = tmp_path / "broken.urdf"
    path.write_text("<robot><link name='a'></robot>")
    with pytest.raises(DescriptionParseError, match="Malformed"):
        load_urdf(str(path))


@pytest.mark.parametrize("body, message", [
    ('<link name="a"/><link name="b"/>', "exactly one root"),
    ('<link name="a"/><link name="a"/>', "Duplicate link"),
    ('<link name="a"/><joint name="j" type="fixed"><parent link="a"/><child link="z"/></joint>', "unknown link"),
    ('<link name="a"/><link name="b"/>'
     '<joint name="j" type="revolute"><parent link="a"/><child link="b"/><axis xyz="0 0 0"/></joint>', "zero axis"),
    ('<link name="a"/><link name="b"/>'
     '<joint name="j" type="fixed"><parent link="a"/><child link="b"/><origin xyz="1 2"/></joint>', "Expected 3"),
])
def test_invalid_descriptions(tmp_path, body, message):
    with pytest.raises(DescriptionParseError, match=message):
        load_urdf(str(_write(tmp_path, body)))


def test_default_axis_is_x(tmp_path):
    path = _write(tmp_path, '<link name="a"/><link name="b"/>'
                            '<joint name="j" type="continuous"><parent link="a"/><child link="b"/></joint>')
    robot = load_urdf(str(path))
    np.testing.assert_allclose(robot.joint_axes[1], [0, 0, 0, 1, 0, 0])


def test_robot_model_is_pytree():
    """Test that RobotModel works as a JAX PyTree."""
    robot = load_urdf(str(FIXTURES / "branching.urdf"))

    flat_robot, tree_def = jax.tree_util.tree_flatten(robot)
    reconstructed_robot = jax.tree_util.tree_unflatten(tree_def, flat_robot)

    # Static metadata rides in the treedef, arrays are leaves
    assert reconstructed_robot.link_names == robot.link_names
    assert reconstructed_robot.visuals == robot.visuals
    np.testing.assert_array_equal(reconstructed_robot.parent_indices, robot.parent_indices)


def test_robot_model_jit_compatibility():
    """Test that RobotModel can be passed through jit."""
    robot = load_urdf(str(FIXTURES / "three_link.urdf"))

    @jax.jit
    def first_offset(robot):
        return robot.joint_transforms[1][:3, 3]

    np.testing.assert_allclose(first_offset(robot), [0.0, 0.0, 0.1], atol=1e-9)
