"""Unit tests for the sphere primitive.

Tests cover:
- Ray-sphere intersection (hit, miss, tangent, inside)
- Open interval (t_min, t_max) handling
- Normal orientation and front_face flag
"""

import pytest
import taichi as ti


def _make_kernel():
    """Build a kernel that intersects one ray with one sphere."""
    from spheretrace.geometry.sphere import hit_sphere, make_sphere
    from spheretrace.core.ray import vec3

    hit = ti.field(dtype=ti.i32, shape=())
    t = ti.field(dtype=ti.f32, shape=())
    point = ti.Vector.field(3, dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    front_face = ti.field(dtype=ti.i32, shape=())

    @ti.kernel
    def intersect(
        ox: ti.f32, oy: ti.f32, oz: ti.f32,
        dx: ti.f32, dy: ti.f32, dz: ti.f32,
        cx: ti.f32, cy: ti.f32, cz: ti.f32,
        radius: ti.f32, t_min: ti.f32, t_max: ti.f32,
    ):
        sphere = make_sphere(vec3(cx, cy, cz), radius)
        rec = hit_sphere(vec3(ox, oy, oz), vec3(dx, dy, dz), sphere, t_min, t_max)
        hit[None] = rec.hit
        t[None] = rec.t
        point[None] = rec.point
        normal[None] = rec.normal
        front_face[None] = rec.front_face

    def run(origin, direction, center, radius, t_min=0.001, t_max=1e30):
        intersect(*origin, *direction, *center, radius, t_min, t_max)
        return {
            "hit": hit[None],
            "t": t[None],
            "point": point[None],
            "normal": normal[None],
            "front_face": front_face[None],
        }

    return run


class TestSphereHit:
    """Tests for hit_sphere."""

    def test_hit_from_outside(self):
        run = _make_kernel()
        rec = run((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), (0.0, 0.0, -5.0), 1.0)

        assert rec["hit"] == 1
        assert abs(rec["t"] - 4.0) < 1e-5
        assert abs(rec["point"][2] + 4.0) < 1e-5
        assert abs(rec["normal"][2] - 1.0) < 1e-5
        assert rec["front_face"] == 1

    def test_miss(self):
        run = _make_kernel()
        rec = run((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, -5.0), 1.0)

        assert rec["hit"] == 0

    def test_unnormalized_direction_scales_t(self):
        run = _make_kernel()
        rec = run((0.0, 0.0, 0.0), (0.0, 0.0, -2.0), (0.0, 0.0, -5.0), 1.0)

        assert rec["hit"] == 1
        assert abs(rec["t"] - 2.0) < 1e-5
        assert abs(rec["point"][2] + 4.0) < 1e-5

    def test_hit_from_inside_uses_far_root(self):
        run = _make_kernel()
        rec = run((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, 0.0), 2.0)

        assert rec["hit"] == 1
        assert abs(rec["t"] - 2.0) < 1e-5
        # Normal faces against the ray on a back face
        assert abs(rec["normal"][0] + 1.0) < 1e-5
        assert rec["front_face"] == 0

    def test_sphere_behind_ray(self):
        run = _make_kernel()
        rec = run((0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, -5.0), 1.0)

        assert rec["hit"] == 0

    def test_t_max_excludes_hit(self):
        run = _make_kernel()
        rec = run((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), (0.0, 0.0, -5.0), 1.0, t_max=3.0)

        assert rec["hit"] == 0

    def test_t_max_between_roots_keeps_near_root(self):
        run = _make_kernel()
        rec = run((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), (0.0, 0.0, -5.0), 1.0, t_max=5.0)

        assert rec["hit"] == 1
        assert abs(rec["t"] - 4.0) < 1e-5

    def test_t_min_skips_near_root(self):
        run = _make_kernel()
        rec = run((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), (0.0, 0.0, -5.0), 1.0, t_min=4.5)

        assert rec["hit"] == 1
        assert abs(rec["t"] - 6.0) < 1e-5
        assert rec["front_face"] == 0

    def test_origin_on_surface_leaving_misses(self):
        """A scattered ray leaving a convex sphere cannot hit it again."""
        run = _make_kernel()
        rec = run((0.0, 0.0, 1.0), (0.3, 0.2, 1.0), (0.0, 0.0, 0.0), 1.0)

        assert rec["hit"] == 0

    @pytest.mark.parametrize(
        "origin,direction",
        [
            ((3.0, 0.5, 2.0), (-1.0, -0.1, -0.7)),
            ((0.0, 5.0, 0.0), (0.05, -1.0, 0.02)),
            ((-4.0, -1.0, 0.3), (1.0, 0.2, 0.0)),
        ],
    )
    def test_hit_invariants(self, origin, direction):
        """Hits lie on the surface with a unit normal facing the ray."""
        import numpy as np

        run = _make_kernel()
        center = (0.2, 0.1, -0.3)
        radius = 1.3
        rec = run(origin, direction, center, radius)

        assert rec["hit"] == 1
        assert 0.001 < rec["t"]
        p = np.array(rec["point"])
        n = np.array(rec["normal"])
        assert abs(np.linalg.norm(p - np.array(center)) - radius) < 1e-4
        assert abs(np.linalg.norm(n) - 1.0) < 1e-4
        assert np.dot(np.array(direction), n) <= 0.0


class TestFaceNormal:
    """Tests for face_normal."""

    def test_front_face_keeps_outward_normal(self):
        from spheretrace.core.ray import vec3
        from spheretrace.geometry.sphere import face_normal

        normal = ti.Vector.field(3, dtype=ti.f32, shape=())
        front = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            n, f = face_normal(vec3(0.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))
            normal[None] = n
            front[None] = f

        test_kernel()
        assert front[None] == 1
        assert abs(normal[None][1] - 1.0) < 1e-6

    def test_back_face_flips_normal(self):
        from spheretrace.core.ray import vec3
        from spheretrace.geometry.sphere import face_normal

        normal = ti.Vector.field(3, dtype=ti.f32, shape=())
        front = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            n, f = face_normal(vec3(0.0, 1.0, 0.0), vec3(0.0, 1.0, 0.0))
            normal[None] = n
            front[None] = f

        test_kernel()
        assert front[None] == 0
        assert abs(normal[None][1] + 1.0) < 1e-6
