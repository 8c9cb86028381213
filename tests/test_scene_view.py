import numpy as np
import pytest

from parallax_tracking.types import CameraPose, Vec3
from scene_view import WireframeSurface, box_edges, look_at_matrix


def test_look_at_target_projects_to_image_center():
    surface = WireframeSurface(width=320, height=240)
    pose = CameraPose(position=Vec3(1.5, -0.7, 6.0))
    (pt,) = surface.project(pose, [np.zeros(3)])
    assert pt == pytest.approx((160.0, 120.0))


def test_points_behind_camera_are_dropped():
    surface = WireframeSurface(width=320, height=240)
    pose = CameraPose(position=Vec3(0.0, 0.0, 5.0))
    front, behind = surface.project(pose, [np.array([0.0, 0.0, 0.0]), np.array([0.0, 0.0, 10.0])])
    assert front is not None
    assert behind is None


def test_points_in_front_of_target_shift_against_camera_motion():
    surface = WireframeSurface(width=320, height=240)
    point = [np.array([0.0, 1.0, 2.0])]
    (centered,) = surface.project(CameraPose(position=Vec3(0.0, 0.0, 5.0)), point)
    (moved,) = surface.project(CameraPose(position=Vec3(2.0, 0.0, 5.0)), point)
    assert moved[0] < centered[0]


def test_view_matrix_is_rigid():
    view = look_at_matrix(CameraPose(position=Vec3(3.0, 2.0, 4.0)))
    rot = view[:3, :3]
    assert np.allclose(rot @ rot.T, np.eye(3))


def test_box_has_twelve_edges():
    assert len(box_edges((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))) == 12


def test_render_returns_image_of_surface_size():
    surface = WireframeSurface(width=200, height=100)
    img = surface.render(CameraPose())
    assert img.shape == (100, 200, 3)
    assert img.dtype == np.uint8
