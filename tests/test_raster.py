#   This Python module is part of the LOSDecomp software package.
#
#   Copyright 2024 Geoscience Australia
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.
"""
This Python module contains tests for the raster.py LOSDecomp module.
"""
import os
import warnings

import numpy as np
from numpy import nan
from numpy.testing import assert_array_equal, assert_array_almost_equal
import pytest
import rasterio

import losdecomp.constants as C
from losdecomp.core import raster
from losdecomp.core.shared import Grid, ConfigurationError, DataQualityWarning
from losdecomp.default_parameters import LOSDECOMP_DEFAULT_CONFIGURATION
from tests.common import make_frame, lattice, write_frame_dir


@pytest.fixture
def grid():
    return Grid(lattice(100.0, 5, 0.5), lattice(-30.0, 3, 0.25))


@pytest.fixture
def io_params(tmp_path):
    params = {k: v['DefaultValue'] for k, v in LOSDECOMP_DEFAULT_CONFIGURATION.items()}
    params[C.OUT_DIR] = str(tmp_path)
    return params


class TestGeotiff:

    def test_write_read_round_trip(self, tmp_path, grid):
        data = np.arange(15, dtype=float).reshape(grid.shape)
        data[1, 2] = nan
        dest = str(tmp_path / 'test.tif')
        raster.write_geotiff(data, grid, dest)
        x, y, read = raster.read_geotiff(dest)
        assert_array_almost_equal(x, grid.x)
        # files are stored north up
        assert_array_almost_equal(y, grid.y[::-1])
        assert_array_equal(read, np.flipud(data))

    def test_written_metadata(self, tmp_path, grid):
        dest = str(tmp_path / 'test.tif')
        raster.write_geotiff(np.zeros(grid.shape), grid, dest)
        with rasterio.open(dest) as ds:
            assert ds.count == 1
            assert ds.dtypes[0] == 'float32'
            assert ds.crs.to_epsg() == 4326
            assert ds.transform.a == pytest.approx(0.5)
            assert ds.transform.e == pytest.approx(-0.25)
            assert ds.transform.c == pytest.approx(99.75)
            assert ds.transform.f == pytest.approx(-29.375)

    def test_nodata_converted_to_nan(self, tmp_path, grid):
        data = np.ones(grid.shape)
        data[0, 0] = -9999
        dest = str(tmp_path / 'test.tif')
        raster.write_geotiff(data, grid, dest, nodata=-9999)
        _, _, read = raster.read_geotiff(dest)
        assert np.isnan(read[-1, 0])
        assert np.sum(np.isnan(read)) == 1

    def test_shape_mismatch(self, tmp_path, grid):
        with pytest.raises(raster.RasterException):
            raster.write_geotiff(np.zeros((2, 2)), grid, str(tmp_path / 'test.tif'))

    def test_missing_file(self, tmp_path):
        with pytest.raises(IOError):
            raster.read_geotiff(str(tmp_path / 'missing.tif'))


class TestFrameDirectories:

    def test_frame_name(self):
        assert raster.frame_name('/data/frames/073D_12345_131313') == '073D_12345_131313'
        assert raster.frame_name('/data/175A_05500_141414_v2/') == '175A_05500_141414'

    def test_frame_name_not_found(self):
        with pytest.raises(ConfigurationError):
            raster.frame_name('/data/frames/something')

    def test_find_layer(self, tmp_path):
        for name in ('a.vel.tif', 'a.vstd.tif', 'a.E.geo.tif'):
            (tmp_path / name).touch()
        assert raster.find_layer(str(tmp_path), 'vel') == str(tmp_path / 'a.vel.tif')
        assert raster.find_layer(str(tmp_path), 'E.geo') == str(tmp_path / 'a.E.geo.tif')
        assert raster.find_layer(str(tmp_path), 'U.geo') is None

    def test_load_frame(self, tmp_path, io_params):
        frame = make_frame('073D_12345_131313', lattice(0, 6), lattice(0, 4), east=1.0, up=2.0)
        frame.vel[1, 1] = nan
        frame_dir = write_frame_dir(tmp_path, frame)
        loaded = raster.load_frame(str(frame_dir), io_params)
        assert loaded.name == frame.name
        assert loaded.track == '073D'
        assert loaded.direction == C.DESCENDING
        assert_array_almost_equal(loaded.x, frame.x)
        assert_array_almost_equal(loaded.y, frame.y)
        assert_array_almost_equal(loaded.vel, frame.vel)
        assert_array_almost_equal(loaded.comp_u, frame.comp_u)
        assert np.isnan(loaded.vel[1, 1])
        assert loaded.mask is None

    def test_load_frame_with_mask(self, tmp_path, io_params):
        mask = np.ones((4, 6))
        mask[0, :] = 0
        frame = make_frame('073D_12345_131313', lattice(0, 6), lattice(0, 4), mask=mask)
        frame_dir = write_frame_dir(tmp_path, frame, with_mask=True)
        io_params[C.USE_MASK] = 1
        loaded = raster.load_frame(str(frame_dir), io_params)
        assert_array_equal(loaded.mask, mask)

    def test_load_frame_missing_layer(self, tmp_path, io_params):
        frame = make_frame('073D_12345_131313', lattice(0, 6), lattice(0, 4))
        frame_dir = write_frame_dir(tmp_path, frame)
        os.remove(frame_dir / f'{frame.name}.U.geo.tif')
        with pytest.raises(raster.RasterException):
            raster.load_frame(str(frame_dir), io_params)

    def test_load_frames_drops_directory_without_velocity(self, tmp_path, io_params):
        frame = make_frame('073D_12345_131313', lattice(0, 6), lattice(0, 4))
        good = write_frame_dir(tmp_path, frame)
        empty = tmp_path / '175A_05500_141414'
        empty.mkdir()
        io_params[C.FRAME_DIRS] = [str(good), str(empty)]
        with pytest.warns(DataQualityWarning):
            frames = raster.load_frames(io_params)
        assert [f.name for f in frames] == [frame.name]

    def test_load_frames_nothing_loaded(self, tmp_path, io_params):
        empty = tmp_path / '175A_05500_141414'
        empty.mkdir()
        io_params[C.FRAME_DIRS] = [str(empty)]
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', DataQualityWarning)
            with pytest.raises(ConfigurationError):
                raster.load_frames(io_params)


def test_write_outputs(tmp_path, grid, io_params):
    outputs = {'vE': np.ones(grid.shape), 'vU': np.zeros(grid.shape),
               'cond_mask': np.zeros(grid.shape), 'unknown': np.ones(grid.shape)}
    paths = raster.write_outputs(outputs, grid, io_params)
    expected = [os.path.join(str(tmp_path), f'decomp_{n}.geo.tif') for n in ('vE', 'vU', 'cond_mask')]
    assert paths == expected
    for path in expected:
        assert os.path.exists(path)
