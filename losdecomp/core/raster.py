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
This Python module contains the GeoTIFF input and output adapter: frame
directories are read into Frame records and result grids are written
to disk.
"""
# pylint: disable=invalid-name
import glob
import os
from os.path import join, basename, normpath
from typing import List, Optional

import numpy as np
from numpy import nan
import rasterio
from rasterio.transform import from_origin

import losdecomp.constants as C
from losdecomp.core.shared import Frame, Grid, ConfigurationError, data_quality_warning
from losdecomp.core.logger import losdecomplogger as log

DEFAULT_CRS = 'EPSG:4326'


class RasterException(Exception):
    """
    Generic exception class for LOSDecomp raster errors.
    """


def read_geotiff(path):
    """
    Read the first band of a GeoTIFF.

    :param str path: GeoTIFF file name

    :return: x: pixel centre x coordinates
    :rtype: ndarray
    :return: y: pixel centre y coordinates, in file row order
    :rtype: ndarray
    :return: data: band values with nodata converted to NaN
    :rtype: ndarray
    """
    if not os.path.exists(path):
        raise IOError(f'The file {path} does not exist')
    with rasterio.open(path) as ds:
        data = ds.read(1).astype(np.float64)
        transform = ds.transform
        nodata = ds.nodata
        width, height = ds.width, ds.height
    if nodata is not None and not np.isnan(nodata):
        data[data == nodata] = nan
    x = transform.c + transform.a * (np.arange(width) + 0.5)
    y = transform.f + transform.e * (np.arange(height) + 0.5)
    return x, y, data


def find_layer(frame_dir: str, file_id: str) -> Optional[str]:
    """
    Path of the file in frame_dir whose name contains file_id, or None.
    """
    matches = sorted(glob.glob(join(frame_dir, f'*{file_id}*')))
    if len(matches) > 1:
        log.debug(f'Several files in {frame_dir} match {file_id}, using {matches[0]}')
    return matches[0] if matches else None


def frame_name(frame_dir: str) -> str:
    """
    Extract the frame name, such as 073D_12345_131313, from a directory path.
    """
    match = C.frame_name_pattern.search(normpath(frame_dir))
    if match is None:
        raise ConfigurationError(f'Cannot find a frame name in {frame_dir}')
    return match.group(0)


def load_frame(frame_dir: str, params: dict) -> Frame:
    """
    Read the velocity, uncertainty, unit vector and (optionally) mask
    layers of one frame directory.
    """
    def _path(key):
        path = find_layer(frame_dir, params[key])
        if path is None:
            raise RasterException(f'No file matching {params[key]} in {frame_dir}')
        return path

    name = frame_name(frame_dir)
    log.info(f'Loading {name} from {frame_dir}')
    x, y, vel = read_geotiff(_path(C.ID_VEL))
    _, _, vstd = read_geotiff(_path(C.ID_VSTD))
    comp_x, comp_y, comp_e = read_geotiff(_path(C.ID_E))
    _, _, comp_n = read_geotiff(_path(C.ID_N))
    _, _, comp_u = read_geotiff(_path(C.ID_U))
    mask = None
    if params.get(C.USE_MASK, 0):
        _, _, mask = read_geotiff(_path(C.ID_MASK))
    return Frame(name, x, y, vel, vstd, comp_e, comp_n, comp_u, mask=mask,
                 comp_x=comp_x, comp_y=comp_y,
                 track_prefix_len=params.get(C.TRACK_PREFIX_LEN, 4))


def load_frames(params: dict) -> List[Frame]:
    """
    Load every frame directory listed in the configuration. Directories
    without a velocity file are dropped with a warning.
    """
    frames = []
    for frame_dir in params[C.FRAME_DIRS]:
        if find_layer(frame_dir, params[C.ID_VEL]) is None:
            data_quality_warning(f'{frame_dir} does not contain a velocity file - removing')
            continue
        frames.append(load_frame(frame_dir, params))
    if not frames:
        raise ConfigurationError('No input frames could be loaded')
    return frames


def write_geotiff(data, grid: Grid, dest: str, nodata=nan, crs=DEFAULT_CRS):
    """
    Write a 2D array on the common grid to a single band float32 GeoTIFF.
    Rows are written north up.
    """
    if data.shape != grid.shape:
        raise RasterException(f'Data shape {data.shape} does not match grid {grid.shape}')
    transform = from_origin(grid.x[0] - grid.dx / 2, grid.y[-1] + grid.dy / 2, grid.dx, grid.dy)
    nrows, ncols = data.shape
    with rasterio.open(dest, 'w', driver='GTiff', height=nrows, width=ncols, count=1,
                       dtype='float32', crs=crs, transform=transform, nodata=nodata,
                       compress='packbits') as ds:
        ds.write(np.flipud(data).astype(np.float32), 1)


def write_outputs(outputs: dict, grid: Grid, params: dict) -> List[str]:
    """
    Write each output grid to <outdir>/<outprefix>_<name>.geo.tif.
    """
    paths = []
    for name in C.OUTPUT_TYPES:
        if name not in outputs:
            continue
        dest = join(params[C.OUT_DIR], f'{params[C.OUT_PREFIX]}_{name}.geo.tif')
        write_geotiff(outputs[name], grid, dest)
        log.info(f'Written {basename(dest)}')
        paths.append(dest)
    return paths
