"""
Unit tests for Voxel Tools.
"""

import sys
import tempfile
from pathlib import Path
import numpy as np
import unittest
from PIL import Image

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_tools.dispatch import DispatchKey, DispatchTable
from voxel_tools.errors import ErrorKind, Result
from voxel_tools.filters import HistogramEqualizationFilter
from voxel_tools.formats import codec_for_path, read_grid, read_grid_info, write_grid
from voxel_tools.formats import NumpyCodec, PillowCodec, SimpleITKCodec
from voxel_tools.grid import Grid, IndexSpace
from voxel_tools.pipeline import (
    EqualizeParameters,
    HISTOGRAM_EQUALIZE,
    PipelineRunner,
    Stage,
    histogram_equalize_image,
)
from voxel_tools.pixel_types import (
    ValueType,
    cast_to_value_type,
    normalize_type_tag,
    parse_value_type,
)
from voxel_tools.rasterize import (
    CREATE_SPHERE,
    SphereParameters,
    create_sphere,
    rasterize,
    synthesize_sphere,
)
from voxel_tools.spatial import SphereSpatialFunction, supersample_offsets


class TempDirTestCase(unittest.TestCase):
    """Provides self.tmp, a fresh directory per test."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()


class TestPixelTypes(unittest.TestCase):
    """Tests for value type tags and the casting policy."""

    def test_underscore_normalization(self):
        assert normalize_type_tag("unsigned_char") == "unsigned char"
        assert normalize_type_tag("unsigned__short") == "unsigned short"

    def test_parse_aliases(self):
        assert parse_value_type("short") == ValueType.INT16
        assert parse_value_type("unsigned_short") == ValueType.UINT16
        assert parse_value_type("char") == ValueType.INT8
        assert parse_value_type("float") == ValueType.FLOAT32
        assert parse_value_type("float64") == ValueType.FLOAT64
        assert parse_value_type(ValueType.UINT8) == ValueType.UINT8
        assert parse_value_type("int32") is None

    def test_integer_cast_clamps_and_rounds(self):
        values = np.array([300.0, -5.0, 2.5, 3.5, 1.4, np.nan])
        cast = cast_to_value_type(values, ValueType.UINT8)
        assert cast.dtype == np.uint8
        assert list(cast) == [255, 0, 2, 4, 1, 0]

    def test_signed_cast_range(self):
        cast = cast_to_value_type(np.array([-200.0, 200.0]), ValueType.INT8)
        assert list(cast) == [-128, 127]

    def test_integer_input_is_clamped(self):
        cast = cast_to_value_type(np.array([70000, -1]), ValueType.UINT16)
        assert list(cast) == [65535, 0]

    def test_float_cast(self):
        cast = cast_to_value_type(np.array([0.25, 1e3]), ValueType.FLOAT32)
        assert cast.dtype == np.float32
        assert np.allclose(cast, [0.25, 1e3])


class TestIndexSpace(unittest.TestCase):
    """Tests for index generation."""

    def test_row_major_order(self):
        indices = list(IndexSpace((2, 3)))
        assert indices == [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (1, 2)]

    def test_restartable(self):
        space = IndexSpace((3, 2, 2))
        assert list(space) == list(space)
        assert len(space) == 12

    def test_batches_match_iteration(self):
        space = IndexSpace((4, 3, 5))
        batched = np.concatenate(list(space.batches(7)))
        assert batched.shape == (60, 3)
        assert [tuple(row) for row in batched] == list(space)

    def test_covers_each_index_once(self):
        space = IndexSpace((3, 4))
        seen = {tuple(row) for block in space.batches(5) for row in block}
        assert len(seen) == len(space) == 12


class TestGrid(unittest.TestCase):
    """Tests for the Grid data model."""

    def test_allocate(self):
        result = Grid.allocate((4, 5, 6), ValueType.INT16, spacing=(0.5, 1, 2))
        assert result.ok
        grid = result.value
        assert grid.extent == (4, 5, 6)
        assert grid.dimension == 3
        assert grid.spacing == (0.5, 1.0, 2.0)
        assert grid.origin == (0.0, 0.0, 0.0)
        assert grid.data.dtype == np.int16

    def test_allocate_invalid_extent(self):
        result = Grid.allocate((4, 0), ValueType.UINT8)
        assert not result.ok
        assert result.error.kind == ErrorKind.INVALID_ARGUMENT

    def test_allocate_spacing_length_mismatch(self):
        result = Grid.allocate((4, 4), ValueType.UINT8, spacing=(1.0, 1.0, 1.0))
        assert not result.ok
        assert result.error.kind == ErrorKind.INVALID_ARGUMENT

    def test_allocate_too_large(self):
        result = Grid.allocate((3000000,) * 3, ValueType.FLOAT64)
        assert not result.ok
        assert result.error.kind == ErrorKind.ALLOCATION_FAILURE

    def test_nan_spacing_rejected(self):
        with self.assertRaises(ValueError):
            Grid(np.zeros((2, 2), dtype=np.uint8), spacing=(1.0, float("nan")))
        result = Grid.allocate((2, 2), ValueType.UINT8, spacing=(float("nan"), 1.0))
        assert result.error.kind == ErrorKind.INVALID_ARGUMENT

    def test_physical_mapping(self):
        grid = Grid(np.zeros((3, 3), dtype=np.float32), spacing=(0.5, 2.0), origin=(1.0, -1.0))
        assert np.allclose(grid.physical_point((2, 1)), [2.0, 1.0])
        points = grid.physical_points(np.array([[0, 0], [2, 1]]))
        assert np.allclose(points, [[1.0, -1.0], [2.0, 1.0]])

    def test_unsupported_dtype(self):
        with self.assertRaises(ValueError):
            Grid(np.zeros((2, 2), dtype=np.int32))


class TestDispatch(unittest.TestCase):
    """Tests for the (value type, dimension) dispatch table."""

    def test_sphere_matrix(self):
        assert len(CREATE_SPHERE) == 12
        for value_type in ValueType:
            for dimension in (2, 3):
                found = CREATE_SPHERE.lookup(value_type, dimension)
                assert found.ok
                assert found.value.key == DispatchKey(value_type, dimension)

    def test_equalize_matrix(self):
        assert len(HISTOGRAM_EQUALIZE) == 12

    def test_unsupported_dimension(self):
        result = CREATE_SPHERE.lookup(ValueType.FLOAT32, 4)
        assert not result.ok
        assert result.error.kind == ErrorKind.UNSUPPORTED_CONFIGURATION

    def test_unknown_type(self):
        result = CREATE_SPHERE.lookup("long double", 3)
        assert not result.ok
        assert result.error.kind == ErrorKind.UNSUPPORTED_CONFIGURATION

    def test_invokes_exactly_once(self):
        calls = []

        def entry(key, value):
            calls.append((key, value))
            return Result.success(value * 2)

        table = DispatchTable("test").specialize(entry, [ValueType.UINT8, ValueType.FLOAT32], (2,))
        result = table.invoke("unsigned_char", 2, 21)

        assert result.ok and result.value == 42
        assert calls == [(DispatchKey(ValueType.UINT8, 2), 21)]

    def test_no_invocation_when_unsupported(self):
        calls = []
        table = DispatchTable("test").specialize(
            lambda key: calls.append(key) or Result.success(), [ValueType.UINT8], (3,)
        )
        result = table.invoke("uint8", 2)
        assert not result.ok
        assert calls == []

    def test_duplicate_registration(self):
        table = DispatchTable("test")
        table.register(ValueType.INT8, 2, lambda key: Result.success())
        with self.assertRaises(ValueError):
            table.register(ValueType.INT8, 2, lambda key: Result.success())


class TestSphere(unittest.TestCase):
    """Tests for the sphere spatial function and rasterization."""

    def test_single_point(self):
        sphere = SphereSpatialFunction((2, 2, 2), 1.5)
        assert sphere((2, 2, 2)) == 1.0
        assert sphere((0, 0, 0)) == 0.0
        assert sphere((2, 2, 3.5)) == 1.0  # boundary counts as inside

    def test_known_voxels(self):
        params = SphereParameters(extent=(5, 5, 5), center=(2, 2, 2), radius=1.5)
        result = synthesize_sphere(DispatchKey(ValueType.INT16, 3), params)
        assert result.ok
        grid = result.value
        assert grid.data[2, 2, 2] == 1
        assert grid.data[0, 0, 0] == 0

    def test_matches_independent_evaluation(self):
        spacing = (0.7, 1.3, 0.9)
        origin = (-1.0, 0.5, 2.0)
        center = (1.2, 3.1, 4.4)
        radius = 2.3
        params = SphereParameters(
            extent=(6, 5, 7), center=center, radius=radius, spacing=spacing, origin=origin
        )
        grid = synthesize_sphere(DispatchKey(ValueType.UINT8, 3), params).value

        for index in np.ndindex(6, 5, 7):
            point = [origin[i] + index[i] * spacing[i] for i in range(3)]
            dist_sq = sum((point[i] - center[i]) ** 2 for i in range(3))
            expected = 1 if dist_sq <= radius * radius else 0
            assert grid.data[index] == expected, index

    def test_small_batches_give_same_grid(self):
        grid_a = Grid.allocate((9, 8), ValueType.FLOAT32).value
        grid_b = Grid.allocate((9, 8), ValueType.FLOAT32).value
        sphere = SphereSpatialFunction((4, 4), 3)
        rasterize(grid_a, sphere)
        rasterize(grid_b, sphere, batch_size=5)
        assert grid_a == grid_b

    def test_inside_outside_values(self):
        params = SphereParameters(
            extent=(5, 5), center=(2, 2), radius=1, inside_value=200, outside_value=10
        )
        grid = synthesize_sphere(DispatchKey(ValueType.UINT8, 2), params).value
        assert grid.data[2, 2] == 200
        assert grid.data[0, 0] == 10

    def test_supersampling_gives_partial_values(self):
        params = SphereParameters(extent=(11, 11), center=(5, 5), radius=3.3, supersampling=4)
        grid = synthesize_sphere(DispatchKey(ValueType.FLOAT64, 2), params).value
        assert grid.data[5, 5] == 1.0
        assert grid.data[0, 0] == 0.0
        partial = (grid.data > 0) & (grid.data < 1)
        assert partial.any()

    def test_supersample_offsets(self):
        offsets = supersample_offsets((1.0, 2.0), 2)
        assert offsets.shape == (4, 2)
        assert np.allclose(sorted(set(offsets[:, 0])), [-0.25, 0.25])
        assert np.allclose(sorted(set(offsets[:, 1])), [-0.5, 0.5])
        assert np.allclose(supersample_offsets((1.0, 1.0), 1), 0)

    def test_extra_vector_entries_ignored(self):
        params = SphereParameters(extent=(4, 4, 99), center=(1, 1, 1), radius=1)
        grid = synthesize_sphere(DispatchKey(ValueType.UINT8, 2), params).value
        assert grid.extent == (4, 4)

    def test_short_vectors_rejected(self):
        params = SphereParameters(extent=(4, 4), center=(1, 1, 1), radius=1)
        result = synthesize_sphere(DispatchKey(ValueType.UINT8, 3), params)
        assert not result.ok
        assert result.error.kind == ErrorKind.INVALID_ARGUMENT

    def test_non_positive_radius_rejected(self):
        params = SphereParameters(extent=(4, 4), center=(1, 1), radius=0)
        result = synthesize_sphere(DispatchKey(ValueType.UINT8, 2), params)
        assert result.error.kind == ErrorKind.INVALID_ARGUMENT

    def test_nan_radius_rejected(self):
        params = SphereParameters(extent=(4, 4), center=(1, 1), radius=float("nan"))
        result = synthesize_sphere(DispatchKey(ValueType.UINT8, 2), params)
        assert not result.ok
        assert result.error.kind == ErrorKind.INVALID_ARGUMENT
        with self.assertRaises(ValueError):
            SphereSpatialFunction((1, 1), float("nan"))

    def test_nan_spacing_rejected(self):
        params = SphereParameters(
            extent=(4, 4), center=(1, 1), radius=1, spacing=(1.0, float("nan"))
        )
        result = synthesize_sphere(DispatchKey(ValueType.UINT8, 2), params)
        assert not result.ok
        assert result.error.kind == ErrorKind.INVALID_ARGUMENT

    def test_nan_center_rejected(self):
        params = SphereParameters(extent=(4, 4), center=(float("nan"), 1), radius=1)
        result = synthesize_sphere(DispatchKey(ValueType.UINT8, 2), params)
        assert result.error.kind == ErrorKind.INVALID_ARGUMENT


class TestFormats(TempDirTestCase):
    """Tests for the grid codecs."""

    def test_codec_selection(self):
        assert isinstance(codec_for_path("a.mha"), SimpleITKCodec)
        assert isinstance(codec_for_path("a.NII.GZ"), SimpleITKCodec)
        assert isinstance(codec_for_path("a.png"), PillowCodec)
        assert isinstance(codec_for_path("a.npz"), NumpyCodec)
        assert codec_for_path("a.xyz") is None

    def test_metaimage_keeps_geometry(self):
        data = np.arange(24, dtype=np.int16).reshape(2, 3, 4)
        grid = Grid(data, spacing=(0.5, 1.0, 2.0), origin=(1.0, 2.0, 3.0))
        path = self.tmp / "grid.mha"
        assert write_grid(grid, path).ok

        info = read_grid_info(path).value
        assert info.value_type == ValueType.INT16
        assert info.dimension == 3
        assert info.extent == (2, 3, 4)

        back = read_grid(path).value
        assert back == grid

    def test_png_orientation(self):
        data = np.zeros((5, 3), dtype=np.uint8)
        data[4, 0] = 255
        path = self.tmp / "grid.png"
        assert write_grid(Grid(data), path).ok

        back = read_grid(path).value
        assert back.extent == (5, 3)
        assert back.data[4, 0] == 255

    def test_palette_png_reads_indices(self):
        img = Image.new("P", (3, 2))
        img.putpalette([0, 0, 0, 200, 40, 10] + [0] * (3 * 254))
        img.putpixel((2, 1), 1)
        path = self.tmp / "palette.png"
        img.save(path)

        assert read_grid_info(path).value.value_type == ValueType.UINT8
        back = read_grid(path).value
        assert back.extent == (3, 2)
        assert back.data[2, 1] == 1
        assert back.data[0, 0] == 0

    def test_npz_keeps_geometry(self):
        grid = Grid(np.ones((2, 2), dtype=np.float64), spacing=(2.0, 3.0), origin=(-1.0, 1.0))
        path = self.tmp / "grid.npz"
        assert write_grid(grid, path).ok
        assert read_grid(path).value == grid

    def test_read_with_cast(self):
        path = self.tmp / "grid.npy"
        assert write_grid(Grid(np.array([[0.0, 300.0]], dtype=np.float32)), path).ok
        back = read_grid(path, ValueType.UINT8).value
        assert back.value_type == ValueType.UINT8
        assert list(back.data[0]) == [0, 255]

    def test_read_missing_file(self):
        result = read_grid(self.tmp / "missing.mha")
        assert result.error.kind == ErrorKind.READ_INPUT

    def test_unknown_extension(self):
        grid = Grid(np.zeros((2, 2), dtype=np.uint8))
        result = write_grid(grid, self.tmp / "grid.xyz")
        assert result.error.kind == ErrorKind.WRITE_OUTPUT
        assert not (self.tmp / "grid.xyz").exists()

    def test_failed_write_leaves_existing_file(self):
        path = self.tmp / "grid.png"
        path.write_bytes(b"previous run")
        grid = Grid(np.zeros((2, 2), dtype=np.float32))

        result = write_grid(grid, path)

        assert result.error.kind == ErrorKind.WRITE_OUTPUT
        assert path.read_bytes() == b"previous run"
        assert sorted(p.name for p in self.tmp.iterdir()) == ["grid.png"]

    def test_missing_directory(self):
        grid = Grid(np.zeros((2, 2), dtype=np.uint8))
        result = write_grid(grid, self.tmp / "nope" / "grid.mha")
        assert result.error.kind == ErrorKind.WRITE_OUTPUT


class TestCreateSphere(TempDirTestCase):
    """Tests for the sphere synthesis operation."""

    def test_writes_file(self):
        params = SphereParameters(extent=(10, 10, 10), center=(5, 5, 5), radius=3)
        path = self.tmp / "sphere.mha"
        result = create_sphere(params, path, value_type="float", dimension=3)
        assert result.ok

        grid = read_grid(path).value
        assert grid.value_type == ValueType.FLOAT32
        assert grid.data[5, 5, 5] == 1.0
        assert grid.data[0, 0, 0] == 0.0

    def test_idempotent(self):
        params = SphereParameters(extent=(7, 6, 5), center=(3, 3, 2), radius=2.5, supersampling=3)
        first, second = self.tmp / "a.npz", self.tmp / "b.npz"
        assert create_sphere(params, first, "double", 3).ok
        assert create_sphere(params, second, "double", 3).ok
        assert read_grid(first).value == read_grid(second).value

    def test_unsupported_writes_nothing(self):
        params = SphereParameters(extent=(3, 3, 3, 3), center=(1, 1, 1, 1), radius=1)
        path = self.tmp / "sphere.npy"
        result = create_sphere(params, path, value_type="short", dimension=4)
        assert result.error.kind == ErrorKind.UNSUPPORTED_CONFIGURATION
        assert not path.exists()

    def test_write_failure_reported(self):
        params = SphereParameters(extent=(4, 4), center=(2, 2), radius=1)
        path = self.tmp / "disk.png"
        result = create_sphere(params, path, value_type="double", dimension=2)
        assert result.error.kind == ErrorKind.WRITE_OUTPUT
        assert not path.exists()


class TestHistogramEqualization(TempDirTestCase):
    """Tests for the filter and the read/filter/write pipeline."""

    def _ramp(self, dtype=np.uint8):
        return Grid(np.arange(64, dtype=dtype).reshape(8, 8) * 2)

    def test_filter_keeps_type_and_order(self):
        grid = self._ramp()
        equalizer = HistogramEqualizationFilter()
        assert equalizer.configure(grid).ok
        out = equalizer.execute().value

        assert out.value_type == ValueType.UINT8
        assert out.extent == grid.extent
        flat = out.data.ravel()
        assert np.all(np.diff(flat.astype(int)) >= 0)
        assert flat.min() >= 0 and flat.max() <= 126

    def test_filter_mask_mismatch(self):
        equalizer = HistogramEqualizationFilter()
        mask = Grid(np.ones((4, 4), dtype=np.uint8))
        result = equalizer.configure(self._ramp(), mask)
        assert result.error.kind == ErrorKind.FILTER_PRECONDITION

    def test_filter_empty_mask(self):
        equalizer = HistogramEqualizationFilter()
        mask = Grid(np.zeros((8, 8), dtype=np.uint8))
        assert equalizer.configure(self._ramp(), mask).ok
        assert equalizer.execute().error.kind == ErrorKind.FILTER_EXECUTION

    def test_filter_constant_image(self):
        grid = Grid(np.full((4, 4), 7, dtype=np.int16))
        equalizer = HistogramEqualizationFilter()
        equalizer.configure(grid)
        assert equalizer.execute().value == grid

    def test_pipeline_success(self):
        input_path, output_path = self.tmp / "in.mha", self.tmp / "out.mha"
        write_grid(self._ramp(np.int16), input_path)

        runner = PipelineRunner(
            DispatchKey(ValueType.INT16, 2),
            HistogramEqualizationFilter(),
            input_path,
            output_path
        )
        result = runner.run()

        assert result.ok
        assert runner.stage == Stage.SUCCESS
        assert runner.history == [
            Stage.INIT,
            Stage.INPUT_LOADED,
            Stage.FILTER_CONFIGURED,
            Stage.FILTER_EXECUTED,
            Stage.OUTPUT_WRITTEN,
            Stage.SUCCESS,
        ]
        assert read_grid(output_path).value.value_type == ValueType.INT16

    def test_pipeline_with_mask(self):
        input_path, mask_path = self.tmp / "in.mha", self.tmp / "mask.mha"
        output_path = self.tmp / "out.mha"
        write_grid(self._ramp(), input_path)
        mask = np.zeros((8, 8), dtype=np.uint8)
        mask[2:6, 2:6] = 1
        write_grid(Grid(mask), mask_path)

        runner = PipelineRunner(
            DispatchKey(ValueType.UINT8, 2),
            HistogramEqualizationFilter(),
            input_path,
            output_path,
            mask_path
        )
        result = runner.run()

        assert result.ok
        assert Stage.MASK_LOADED in runner.history
        assert read_grid(output_path).value.extent == (8, 8)

    def test_missing_input(self):
        output_path = self.tmp / "out.mha"
        runner = PipelineRunner(
            DispatchKey(ValueType.UINT8, 2),
            HistogramEqualizationFilter(),
            self.tmp / "missing.mha",
            output_path
        )
        result = runner.run()

        assert result.error.kind == ErrorKind.READ_INPUT
        assert runner.stage == Stage.FAILED
        assert runner.failed_stage == Stage.INPUT_LOADED
        assert not output_path.exists()

    def test_missing_mask(self):
        input_path, output_path = self.tmp / "in.mha", self.tmp / "out.mha"
        write_grid(self._ramp(), input_path)

        result = histogram_equalize_image(
            EqualizeParameters(input_path, output_path, mask_path=self.tmp / "nomask.mha")
        )

        assert result.error.kind == ErrorKind.READ_MASK
        assert not output_path.exists()

    def test_mask_extent_mismatch_writes_nothing(self):
        input_path, mask_path = self.tmp / "in.mha", self.tmp / "mask.mha"
        output_path = self.tmp / "out.mha"
        write_grid(self._ramp(), input_path)
        write_grid(Grid(np.ones((4, 8), dtype=np.uint8)), mask_path)

        runner = PipelineRunner(
            DispatchKey(ValueType.UINT8, 2),
            HistogramEqualizationFilter(),
            input_path,
            output_path,
            mask_path
        )
        result = runner.run()

        assert result.error.kind == ErrorKind.FILTER_PRECONDITION
        assert runner.failed_stage == Stage.FILTER_CONFIGURED
        assert not output_path.exists()

    def test_runner_runs_once(self):
        runner = PipelineRunner(
            DispatchKey(ValueType.UINT8, 2),
            HistogramEqualizationFilter(),
            self.tmp / "missing.mha",
            self.tmp / "out.mha"
        )
        runner.run()
        with self.assertRaises(RuntimeError):
            runner.run()

    def test_unsupported_input_type(self):
        input_path = self.tmp / "in.npy"
        np.save(input_path, np.zeros((4, 4), dtype=np.int32))

        result = histogram_equalize_image(EqualizeParameters(input_path, self.tmp / "out.npy"))

        assert result.error.kind == ErrorKind.UNSUPPORTED_CONFIGURATION
        assert not (self.tmp / "out.npy").exists()


if __name__ == "__main__":
    unittest.main(verbosity=2)
