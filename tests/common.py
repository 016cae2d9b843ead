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
This Python module contains synthetic data builders for use in the
LOSDecomp test suite.
"""
import numpy as np

import losdecomp.constants as C
from losdecomp.core.shared import Frame, Grid
from losdecomp.core.raster import write_geotiff

DEFAULT_AZIMUTH = {C.ASCENDING: C.AV_AZ_ASC, C.DESCENDING: C.AV_AZ_DESC}


def unit_vector(inc, az):
    """
    East, North and Up components of a ground to satellite unit vector for
    incidence and azimuth angles in degrees.
    """
    inc, az = np.radians(inc), np.radians(az)
    return -np.sin(inc) * np.cos(az), np.sin(inc) * np.sin(az), np.cos(inc)


def lattice(start, n, step=1.0):
    return start + np.arange(n) * step


def make_frame(name, x, y, vel=None, vstd=1.0, inc=C.AV_INC, az=None, mask=None,
               east=0.0, north=0.0, up=0.0):
    """
    Frame on the lattice (x, y) with constant look geometry.

    vel may be an array, a callable of the (xx, yy) meshgrid or None, in
    which case the LOS projection of the (east, north, up) velocities is
    used (each may also be a callable).
    """
    x, y = np.asarray(x, dtype=float), np.asarray(y, dtype=float)
    xx, yy = np.meshgrid(x, y)
    direction = name[3]
    az = DEFAULT_AZIMUTH[direction] if az is None else az
    ce, cn, cu = unit_vector(inc, az)

    def _field(v):
        return v(xx, yy) if callable(v) else np.full(xx.shape, v, dtype=float)

    if vel is None:
        vel = _field(east) * ce + _field(north) * cn + _field(up) * cu
    else:
        vel = _field(vel) if callable(vel) or np.isscalar(vel) else np.asarray(vel, dtype=float)
    return Frame(name, x, y, vel, _field(vstd), np.full(xx.shape, ce), np.full(xx.shape, cn),
                 np.full(xx.shape, cu), mask=mask)


def write_config(tmp_path, frame_dirs, **overrides):
    """
    Write a frame list and a configuration file to tmp_path; returns the
    configuration file path.
    """
    framelist = tmp_path / 'framelist.txt'
    framelist.write_text('\n'.join(str(d) for d in frame_dirs) + '\n')
    params = {
        C.FRAME_LIST: str(framelist),
        C.OUT_DIR: str(tmp_path / 'out'),
        C.DECOMP_METHOD: C.ZERO_NORTH,
    }
    params.update(overrides)
    conf = tmp_path / 'losdecomp.conf'
    conf.write_text(''.join(f'{k}: {v}\n' for k, v in params.items()))
    return conf


def save_field(path, x, y, east, north, sigma_east=None, sigma_north=None):
    """Save a velocity field npz file"""
    arrays = dict(x=x, y=y, E=east, N=north)
    if sigma_east is not None:
        arrays.update(sE=sigma_east, sN=sigma_north)
    np.savez(path, **arrays)
    return str(path)


def write_frame_dir(root, frame, with_mask=False):
    """
    Write the layers of a Frame as GeoTIFFs into <root>/<frame name>;
    returns the directory.
    """
    frame_dir = root / frame.name
    frame_dir.mkdir(parents=True, exist_ok=True)
    grid = Grid(frame.x, frame.y)
    layers = {'vel': frame.vel, 'vstd': frame.vstd, 'E.geo': frame.comp_e,
              'N.geo': frame.comp_n, 'U.geo': frame.comp_u}
    if with_mask:
        layers['mask'] = np.ones(frame.shape) if frame.mask is None else frame.mask
    for suffix, data in layers.items():
        write_geotiff(data, grid, str(frame_dir / f'{frame.name}.{suffix}.tif'))
    return frame_dir
