"""Unit tests for scene-level intersection.

Tests cover:
- SceneHitRecord miss defaults
- Sphere storage, capacity and the world bounding box
- Closest hit selection over the flat list
- BVH traversal returning exactly the flat list's results
- Equal-t ties resolving to the lower primitive index
- Moving spheres through the BVH
"""

import numpy as np
import pytest
import taichi as ti

N_RAYS = 512


def _random_spheres(rng, count):
    from bvhtracer.scene.intersection import add_sphere

    for i in range(count):
        center = rng.uniform(-5.0, 5.0, 3)
        radius = rng.uniform(0.2, 1.0)
        if i % 3 == 0:
            center2 = center + rng.uniform(-0.5, 0.5, 3)
            add_sphere(center, radius, material_id=i, center2=center2)
        else:
            add_sphere(center, radius, material_id=i)


def _trace_both(origins, directions, times):
    """Intersect every ray with the flat list and with the BVH."""
    from bvhtracer.scene.intersection import intersect_bvh, intersect_list

    n = origins.shape[0]
    ray_o = ti.Vector.field(3, dtype=ti.f32, shape=n)
    ray_d = ti.Vector.field(3, dtype=ti.f32, shape=n)
    ray_time = ti.field(dtype=ti.f32, shape=n)
    ray_o.from_numpy(origins.astype(np.float32))
    ray_d.from_numpy(directions.astype(np.float32))
    ray_time.from_numpy(times.astype(np.float32))

    out = {
        key: ti.field(dtype=dtype, shape=(2, n))
        for key, dtype in [
            ("hit", ti.i32),
            ("t", ti.f32),
            ("material_id", ti.i32),
            ("primitive", ti.i32),
            ("front_face", ti.i32),
        ]
    }
    normals = ti.Vector.field(3, dtype=ti.f32, shape=(2, n))
    hit_f, t_f, mat_f, prim_f, ff_f = (
        out["hit"], out["t"], out["material_id"], out["primitive"], out["front_face"]
    )

    @ti.kernel
    def test_kernel():
        for i in range(n):
            a = intersect_list(ray_o[i], ray_d[i], ray_time[i], 0.001, 1e30)
            b = intersect_bvh(ray_o[i], ray_d[i], ray_time[i], 0.001, 1e30)
            hit_f[0, i] = a.hit
            hit_f[1, i] = b.hit
            t_f[0, i] = a.t
            t_f[1, i] = b.t
            mat_f[0, i] = a.material_id
            mat_f[1, i] = b.material_id
            prim_f[0, i] = a.primitive
            prim_f[1, i] = b.primitive
            ff_f[0, i] = a.front_face
            ff_f[1, i] = b.front_face
            normals[0, i] = a.normal
            normals[1, i] = b.normal

    test_kernel()
    result = {key: field.to_numpy() for key, field in out.items()}
    result["normal"] = normals.to_numpy()
    return result


class TestSceneHitRecordBasics:
    def test_miss_record(self):
        from bvhtracer.scene.intersection import _make_miss_record

        result_hit = ti.field(dtype=ti.i32, shape=())
        result_material_id = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            rec = _make_miss_record()
            result_hit[None] = rec.hit
            result_material_id[None] = rec.material_id

        test_kernel()
        assert result_hit[None] == 0
        assert result_material_id[None] == -1


class TestSceneSphereStorage:
    def test_add_sphere(self):
        from bvhtracer.scene.intersection import add_sphere, get_sphere_count

        assert get_sphere_count() == 0
        assert add_sphere((1.0, 2.0, 3.0), 0.5, material_id=1) == 0
        assert add_sphere((0.0, 0.0, 0.0), 1.0, material_id=1) == 1
        assert get_sphere_count() == 2

    def test_negative_radius_clamped(self):
        from bvhtracer.scene.intersection import add_sphere, sphere_radii

        idx = add_sphere((0.0, 0.0, 0.0), -1.0, material_id=0)
        assert sphere_radii[idx] == 0.0

    def test_clear_scene(self):
        from bvhtracer.core.interval import Interval
        from bvhtracer.geometry.aabb import AABB
        from bvhtracer.geometry.bvh import IntersectableKind
        from bvhtracer.scene.intersection import (
            add_sphere,
            build_scene_bvh,
            clear_scene,
            get_sphere_count,
            get_world_bounding_box,
            get_world_kind,
        )

        add_sphere((0.0, 0.0, 0.0), 1.0, material_id=0)
        build_scene_bvh()
        clear_scene()

        assert get_sphere_count() == 0
        assert get_world_bounding_box() == AABB.EMPTY
        assert get_world_bounding_box().x == Interval.EMPTY
        assert get_world_kind() == IntersectableKind.LIST

    def test_capacity(self, monkeypatch):
        from bvhtracer.scene import intersection

        monkeypatch.setattr(intersection, "MAX_SPHERES", 2)
        intersection.add_sphere((0.0, 0.0, 0.0), 1.0)
        intersection.add_sphere((1.0, 0.0, 0.0), 1.0)
        with pytest.raises(RuntimeError):
            intersection.add_sphere((2.0, 0.0, 0.0), 1.0)

    def test_world_bounding_box(self):
        from bvhtracer.scene.intersection import add_sphere, get_world_bounding_box

        add_sphere((0.0, 0.0, 0.0), 1.0, material_id=0)
        add_sphere((5.0, 0.0, 0.0), 0.5, material_id=0, center2=(5.0, 2.0, 0.0))
        box = get_world_bounding_box()
        assert box.min_corner() == (-1.0, -1.0, -1.0)
        assert box.max_corner() == (5.5, 2.5, 1.0)

    def test_build_bvh_on_empty_scene_raises(self):
        from bvhtracer.scene.intersection import build_scene_bvh

        with pytest.raises(ValueError):
            build_scene_bvh()

    def test_adding_sphere_falls_back_to_list(self):
        from bvhtracer.geometry.bvh import IntersectableKind
        from bvhtracer.scene.intersection import add_sphere, build_scene_bvh, get_world_kind

        add_sphere((0.0, 0.0, 0.0), 1.0)
        build_scene_bvh()
        assert get_world_kind() == IntersectableKind.BVH_NODE
        add_sphere((3.0, 0.0, 0.0), 1.0)
        assert get_world_kind() == IntersectableKind.LIST


class TestClosestHit:
    def test_nearest_of_overlapping_spheres(self):
        from bvhtracer.scene.intersection import add_sphere, intersect_scene, vec3

        add_sphere((0.0, 0.0, -10.0), 1.0, material_id=7)
        add_sphere((0.0, 0.0, -5.0), 1.0, material_id=3)
        add_sphere((0.0, 0.0, -20.0), 1.0, material_id=9)

        t_val = ti.field(dtype=ti.f32, shape=())
        mat = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            rec = intersect_scene(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, -1.0), 0.0, 0.001, 1e30)
            t_val[None] = rec.t
            mat[None] = rec.material_id

        test_kernel()
        assert t_val[None] == pytest.approx(4.0)
        assert mat[None] == 3

    def test_empty_scene_misses(self):
        from bvhtracer.scene.intersection import intersect_scene, vec3

        hit = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            rec = intersect_scene(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, -1.0), 0.0, 0.001, 1e30)
            hit[None] = rec.hit

        test_kernel()
        assert hit[None] == 0


class TestBVHMatchesList:
    @pytest.mark.parametrize("count", [1, 2, 3, 10, 60])
    def test_identical_nearest_hits(self, count):
        from bvhtracer.scene.intersection import build_scene_bvh

        rng = np.random.default_rng(count)
        _random_spheres(rng, count)
        build_scene_bvh()

        origins = rng.uniform(-12.0, 12.0, (N_RAYS, 3))
        targets = rng.uniform(-5.0, 5.0, (N_RAYS, 3))
        times = rng.uniform(0.0, 1.0, N_RAYS)
        result = _trace_both(origins, targets - origins, times)

        for key in ("hit", "t", "material_id", "primitive", "front_face"):
            np.testing.assert_array_equal(result[key][0], result[key][1])
        np.testing.assert_array_equal(result["normal"][0], result["normal"][1])
        assert result["hit"][0].sum() > 0

    def test_axis_aligned_rays(self):
        from bvhtracer.scene.intersection import build_scene_bvh

        rng = np.random.default_rng(11)
        _random_spheres(rng, 25)
        build_scene_bvh()

        # Two zero direction components per ray exercise the infinite slabs
        grid = np.linspace(-5.0, 5.0, 16)
        origins = np.array([(x, y, 20.0) for x in grid for y in grid])
        directions = np.tile((0.0, 0.0, -1.0), (origins.shape[0], 1))
        times = np.zeros(origins.shape[0])
        result = _trace_both(origins, directions, times)

        for key in ("hit", "t", "material_id", "primitive"):
            np.testing.assert_array_equal(result[key][0], result[key][1])
        assert result["hit"][0].sum() > 0

    @pytest.mark.parametrize("swap", [False, True])
    def test_equal_t_prefers_lower_index(self, swap):
        from bvhtracer.scene.intersection import add_sphere, build_scene_bvh

        # Both spheres are first entered at exactly t = 1 along -z
        near = ((0.0, 0.0, -2.0), 1.0, 10)
        wide = ((0.0, 0.0, -3.0), 2.0, 20)
        first, second = (wide, near) if swap else (near, wide)
        for center, radius, material_id in (first, second):
            add_sphere(center, radius, material_id=material_id)
        add_sphere((10.0, 0.0, -3.0), 0.5, material_id=30)
        build_scene_bvh()

        result = _trace_both(np.zeros((1, 3)), np.array([[0.0, 0.0, -1.0]]), np.zeros(1))

        expected_material = first[2]
        for path in (0, 1):
            assert result["hit"][path][0] == 1
            assert result["t"][path][0] == 1.0
            assert result["primitive"][path][0] == 0
            assert result["material_id"][path][0] == expected_material

    def test_scene_root_dispatch(self):
        from bvhtracer.scene.intersection import (
            add_sphere,
            build_scene_bvh,
            intersect_scene,
            use_list_root,
            vec3,
        )

        add_sphere((0.0, 0.0, -3.0), 1.0, material_id=5)
        add_sphere((4.0, 0.0, -3.0), 1.0, material_id=6)

        t_val = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            rec = intersect_scene(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, -1.0), 0.0, 0.001, 1e30)
            t_val[None] = rec.t

        test_kernel()
        list_t = t_val[None]
        build_scene_bvh()
        test_kernel()
        bvh_t = t_val[None]
        use_list_root()
        test_kernel()

        assert list_t == pytest.approx(2.0)
        assert bvh_t == list_t
        assert t_val[None] == list_t
