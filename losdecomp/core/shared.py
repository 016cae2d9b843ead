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
# coding: utf-8
"""
This Python module contains the data model and the utilities shared by
all other LOSDecomp modules
"""
# pylint: disable=too-many-lines, too-many-arguments, invalid-name
import warnings
from enum import IntEnum
from itertools import product
from typing import List, Optional, Sequence, Tuple

import numpy as np
from numpy import isnan, nan
from numpy.linalg import pinv, cond
from joblib import Parallel, delayed
from scipy.interpolate import RegularGridInterpolator

import losdecomp.constants as C
from losdecomp.core.logger import losdecomplogger as log


# velocity stack layer names
VEL = 'vel'
VSTD = 'vstd'
COMP_E = 'comp_e'
COMP_N = 'comp_n'
COMP_U = 'comp_u'
LAYER_ARRAYS = (VEL, VSTD, COMP_E, COMP_N, COMP_U)

# surface model degrees
PLANAR = 1
QUADRATIC = 2


class ConfigurationError(Exception):
    """
    Fatal error caused by the run configuration or by input data that
    leaves nothing to process.
    """


class DataQualityWarning(UserWarning):
    """
    A frame, track, segment or pixel was skipped because of its data.
    """


class NumericalInstability(UserWarning):
    """
    Decomposed values exceeded the condition number or variance thresholds.
    """


def data_quality_warning(msg):
    """
    Log and emit a DataQualityWarning. Processing continues.
    """
    log.warning(msg)
    warnings.warn(msg, DataQualityWarning, stacklevel=2)


def joblib_log_level(level: str) -> int:
    """
    Convert python log level to joblib int verbosity.
    """
    if level == 'INFO':
        return 0
    else:
        return 60


def run_parallel(func, items: Sequence, processes: int) -> list:
    """
    Apply func to each item, using a joblib thread pool when processes > 0.

    Threads are used so that workers can write into disjoint regions of
    shared output arrays.

    :param callable func: function of a single item
    :param list items: items to process
    :param int processes: number of workers, 0 for serial processing

    :return: list of results, in item order
    :rtype: list
    """
    if processes:
        return Parallel(n_jobs=processes, prefer='threads',
                        verbose=joblib_log_level(C.LOG_LEVEL))(delayed(func)(i) for i in items)
    return [func(i) for i in items]


def nanmedian(x):
    """
    Median of the non-NaN values of x; NaN if there are none.
    """
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', category=RuntimeWarning)
        return np.nanmedian(x)


def nanmean(x, axis=None):
    """
    Mean of the non-NaN values of x along axis; NaN where there are none.
    """
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', category=RuntimeWarning)
        return np.nanmean(x, axis=axis)


class CellState(IntEnum):
    """
    State of a cell of a stacked layer.

    EXTERIOR cells are outside the layer's original footprint and are
    stored as 0. MASKED cells are inside the footprint but invalid and are
    stored as NaN. VALUE cells hold a finite number.
    """
    EXTERIOR = 0
    MASKED = 1
    VALUE = 2


def _increasing(coords, *arrays, axis):
    """
    Flip coords and arrays along axis so that coords increase.
    """
    coords = np.asarray(coords, dtype=np.float64)
    if coords.size > 1 and coords[0] > coords[-1]:
        coords = coords[::-1]
        arrays = [None if a is None else np.flip(a, axis=axis) for a in arrays]
    return (coords, *arrays)


def _spacing(coords):
    if coords.size < 2:
        raise ValueError('At least two coordinates are needed to define a grid spacing')
    return float(np.abs(np.median(np.diff(coords))))


class Frame:
    """
    One acquisition: LOS velocity, its uncertainty, the East, North and Up
    components of the LOS unit vector and an optional validity mask, each
    on the frame's native lattice.

    The unit vector components may sit on their own (finer) lattice given
    by comp_x and comp_y. All arrays are reoriented so that the coordinate
    vectors increase.
    """
    # pylint: disable=too-many-instance-attributes

    def __init__(self, name: str, x, y, vel, vstd, comp_e, comp_n, comp_u,
                 mask=None, comp_x=None, comp_y=None, track: Optional[str] = None,
                 direction: Optional[str] = None, track_prefix_len: int = 4):
        self.name = name
        self.x, vel, vstd, mask = _increasing(x, vel, vstd, mask, axis=1)
        self.y, vel, vstd, mask = _increasing(y, vel, vstd, mask, axis=0)
        self.vel = np.asarray(vel, dtype=np.float64)
        self.vstd = np.asarray(vstd, dtype=np.float64)
        self.mask = None if mask is None else np.asarray(mask, dtype=np.float64)

        comp_x = x if comp_x is None else comp_x
        comp_y = y if comp_y is None else comp_y
        self.comp_x, comp_e, comp_n, comp_u = _increasing(comp_x, comp_e, comp_n, comp_u, axis=1)
        self.comp_y, comp_e, comp_n, comp_u = _increasing(comp_y, comp_e, comp_n, comp_u, axis=0)
        self.comp_e = np.asarray(comp_e, dtype=np.float64)
        self.comp_n = np.asarray(comp_n, dtype=np.float64)
        self.comp_u = np.asarray(comp_u, dtype=np.float64)

        if self.vel.shape != (self.y.size, self.x.size):
            raise ValueError(f'Velocity shape {self.vel.shape} of frame {name} does not '
                             f'match its coordinates ({self.y.size}, {self.x.size})')
        if self.vstd.shape != self.vel.shape:
            raise ValueError(f'Uncertainty shape of frame {name} does not match velocity')
        if self.mask is not None and self.mask.shape != self.vel.shape:
            raise ValueError(f'Mask shape of frame {name} does not match velocity')
        for comp in (self.comp_e, self.comp_n, self.comp_u):
            if comp.shape != (self.comp_y.size, self.comp_x.size):
                raise ValueError(f'Unit vector shape of frame {name} does not match its coordinates')

        self.track = name[:track_prefix_len] if track is None else track
        self.direction = self.track[-1] if direction is None else direction
        if self.direction not in C.PASS_DIRECTIONS:
            raise ValueError(f'Cannot determine pass direction of frame {name}: '
                             f'{self.direction} is not one of {C.PASS_DIRECTIONS}')

    @property
    def dx(self):
        return _spacing(self.x)

    @property
    def dy(self):
        return _spacing(self.y)

    @property
    def shape(self):
        return self.vel.shape

    @property
    def extent(self):
        """(xmin, xmax, ymin, ymax) of the native lattice"""
        return self.x[0], self.x[-1], self.y[0], self.y[-1]

    @property
    def is_empty(self):
        return not np.any(np.isfinite(self.vel))

    def __repr__(self):
        return f'Frame({self.name}, track={self.track}, direction={self.direction}, shape={self.shape})'


class Grid:
    """
    Common lattice with uniform spacing and increasing coordinate vectors.
    """

    def __init__(self, x, y):
        self.x = np.asarray(x, dtype=np.float64)
        self.y = np.asarray(y, dtype=np.float64)

    @classmethod
    def from_frames(cls, frames: Sequence[Frame]) -> 'Grid':
        """
        Grid spanning the union of the frame extents, with spacing equal to
        the minimum frame spacing along each axis.
        """
        dx = min(f.dx for f in frames)
        dy = min(f.dy for f in frames)
        xmin = min(f.x[0] for f in frames)
        xmax = max(f.x[-1] for f in frames)
        ymin = min(f.y[0] for f in frames)
        ymax = max(f.y[-1] for f in frames)
        return cls(_lattice(xmin, xmax, dx), _lattice(ymin, ymax, dy))

    @property
    def shape(self):
        return self.y.size, self.x.size

    @property
    def dx(self):
        return _spacing(self.x)

    @property
    def dy(self):
        return _spacing(self.y)

    @property
    def extent(self):
        return self.x[0], self.x[-1], self.y[0], self.y[-1]

    def meshgrid(self):
        return np.meshgrid(self.x, self.y)

    def window(self, xmin, xmax, ymin, ymax) -> Tuple[slice, slice]:
        """
        Row and column slices of the grid cells lying inside the given
        bounds (inclusive, with a small tolerance for rounding).
        """
        tolx, toly = 1e-6 * self.dx, 1e-6 * self.dy
        c0 = np.searchsorted(self.x, xmin - tolx, side='left')
        c1 = np.searchsorted(self.x, xmax + tolx, side='right')
        r0 = np.searchsorted(self.y, ymin - toly, side='left')
        r1 = np.searchsorted(self.y, ymax + toly, side='right')
        return slice(r0, r1), slice(c0, c1)

    def __eq__(self, other):
        return isinstance(other, Grid) and np.array_equal(self.x, other.x) \
            and np.array_equal(self.y, other.y)

    def __repr__(self):
        return f'Grid(shape={self.shape}, extent={self.extent})'


def _lattice(start, stop, step):
    # include stop when it falls on the lattice, allowing for rounding
    n = int(np.floor((stop - start) / step + 1e-9)) + 1
    return start + np.arange(n) * step


def interp2(x, y, data, xi, yi):
    """
    Bilinear interpolation of data (rows along y, columns along x) at the
    points (xi, yi). Points outside the data lattice are NaN, and NaN
    propagates from any contributing neighbour.

    :param ndarray x: increasing column coordinates of data
    :param ndarray y: increasing row coordinates of data
    :param ndarray data: 2D array to interpolate
    :param ndarray xi: x coordinates to interpolate at
    :param ndarray yi: y coordinates to interpolate at, same shape as xi

    :return: interpolated values with the shape of xi
    :rtype: ndarray
    """
    interpolator = RegularGridInterpolator((y, x), data, method='linear',
                                           bounds_error=False, fill_value=nan)
    points = np.column_stack((np.ravel(yi), np.ravel(xi)))
    return interpolator(points).reshape(np.shape(xi))


def downsample_array(data, xfac, yfac, method='mean', x=None, y=None):
    """
    Block downsample a 2D array by integer factors, ignoring NaNs.

    Trailing rows and columns that do not fill a whole block are dropped.
    Coordinate vectors, if given, are averaged over the same blocks.

    :param ndarray data: 2D array
    :param int xfac: downsampling factor along columns
    :param int yfac: downsampling factor along rows
    :param str method: 'mean' or 'median'
    :param ndarray x: optional column coordinates
    :param ndarray y: optional row coordinates

    :return: downsampled data, x and y (None when not given)
    :rtype: tuple
    """
    if method not in ('mean', 'median'):
        raise ConfigurationError(f"Invalid downsampling method: {method}. Use 'mean' or 'median'.")
    nrows, ncols = data.shape[0] // yfac, data.shape[1] // xfac
    blocks = data[:nrows * yfac, :ncols * xfac].reshape(nrows, yfac, ncols, xfac)
    blocks = blocks.transpose(0, 2, 1, 3).reshape(nrows, ncols, yfac * xfac)
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', category=RuntimeWarning)
        if method == 'mean':
            out = np.nanmean(blocks, axis=2)
        else:
            out = np.nanmedian(blocks, axis=2)
    if x is not None:
        x = np.asarray(x)[:ncols * xfac].reshape(ncols, xfac).mean(axis=1)
    if y is not None:
        y = np.asarray(y)[:nrows * yfac].reshape(nrows, yfac).mean(axis=1)
    return out, x, y


def get_num_params(degree, intercept: bool = True) -> int:
    """
    Returns number of surface model parameters for a polynomial degree
    """
    if degree == PLANAR:
        nparams = 2
    elif degree == QUADRATIC:
        nparams = 5
    else:
        raise ConfigurationError(f"Invalid polynomial degree: {degree}")
    if intercept:
        nparams += 1
    return nparams


def get_design_matrix(x, y, degree, intercept: bool = True):
    """
    Returns a 2D polynomial surface design matrix for the points (x, y).

    Column order is 1, x, y for PLANAR and 1, x, y, x*y, x^2, y^2 for
    QUADRATIC; the leading column of ones is omitted without intercept.

    :param ndarray x: x coordinate of each point
    :param ndarray y: y coordinate of each point
    :param int degree: PLANAR or QUADRATIC
    :param bool intercept: whether to include the constant column

    :return: dm: design matrix
    :rtype: ndarray
    """
    x = np.ravel(x).astype(np.float64)
    y = np.ravel(y).astype(np.float64)
    cols = [x, y]
    if degree == QUADRATIC:
        cols += [x * y, x**2, y**2]
    elif degree != PLANAR:
        raise ConfigurationError(f"Invalid polynomial degree: {degree}")
    if intercept:
        cols.insert(0, np.ones(x.size))
    dm = np.column_stack(cols)
    assert dm.shape[1] == get_num_params(degree, intercept)
    return dm


def fit_surface(x, y, data, degree=PLANAR):
    """
    Least squares fit of a 2D polynomial surface (with intercept) to the
    non-NaN values of data.

    :return: model coefficients in get_design_matrix column order
    :rtype: ndarray
    """
    data = np.ravel(data)
    valid = ~isnan(data)
    dm = get_design_matrix(np.ravel(x)[valid], np.ravel(y)[valid], degree)
    # report condition number of the design matrix - L2-norm computed using SVD
    log.debug(f'The condition number of the design matrix is {cond(dm)}')
    return pinv(dm) @ data[valid]


def eval_surface(x, y, coefs, degree=PLANAR):
    """
    Evaluate a fitted polynomial surface at x, y (any matching shape).
    """
    dm = get_design_matrix(x, y, degree)
    return (dm @ coefs).reshape(np.shape(x))


def deramp(xx, yy, data):
    """
    Remove the best fitting plane from data. NaNs are preserved and an
    all-NaN array is returned unchanged.
    """
    if np.all(isnan(data)):
        return data.copy()
    coefs = fit_surface(xx, yy, data, PLANAR)
    return data - eval_surface(xx, yy, coefs, PLANAR)


class LayerInfo:
    """
    Identity of one layer of a VelocityStack: a frame, or a merged track
    (segment) made of one or more frames.
    """

    def __init__(self, name: str, track: str, direction: str, segment: Optional[int] = None,
                 frames: Optional[Sequence[str]] = None):
        self.name = name
        self.track = track
        self.direction = direction
        self.segment = segment
        self.frames = tuple(frames) if frames is not None else (name,)

    @classmethod
    def from_frame(cls, frame: Frame) -> 'LayerInfo':
        return cls(frame.name, frame.track, frame.direction)

    def __eq__(self, other):
        return isinstance(other, LayerInfo) and self.__dict__ == other.__dict__

    def __repr__(self):
        return f'LayerInfo({self.name}, track={self.track}, direction={self.direction}, ' \
               f'segment={self.segment})'


class VelocityStack:
    """
    Velocity, uncertainty and unit vector layers on a common Grid, one
    layer per frame or merged track.

    Arrays have shape (nlayers, nrows, ncols) and use the dense storage
    encoding: EXTERIOR cells are 0 and MASKED cells are NaN. The boolean
    footprint array records which cells are inside each layer's original
    footprint, so a stored 0 is only EXTERIOR where the footprint is False.
    """

    def __init__(self, grid: Grid, layers: List[LayerInfo], vel, vstd, comp_e, comp_n, comp_u,
                 footprint):
        self.grid = grid
        self.layers = list(layers)
        self.vel = vel
        self.vstd = vstd
        self.comp_e = comp_e
        self.comp_n = comp_n
        self.comp_u = comp_u
        self.footprint = footprint.astype(bool)
        expected = (len(self.layers),) + grid.shape
        for name in LAYER_ARRAYS + ('footprint',):
            if getattr(self, name).shape != expected:
                raise ValueError(f'{name} has shape {getattr(self, name).shape}, expected {expected}')

    @classmethod
    def empty(cls, grid: Grid, layers: List[LayerInfo]) -> 'VelocityStack':
        """
        Stack with every cell of every layer EXTERIOR.
        """
        shape = (len(layers),) + grid.shape
        arrays = [np.zeros(shape, dtype=np.float64) for _ in LAYER_ARRAYS]
        return cls(grid, layers, *arrays, np.zeros(shape, dtype=bool))

    def __len__(self):
        return len(self.layers)

    @property
    def names(self):
        return [lyr.name for lyr in self.layers]

    @property
    def tracks(self):
        return [lyr.track for lyr in self.layers]

    @property
    def directions(self):
        return [lyr.direction for lyr in self.layers]

    def direction_indices(self, direction: str) -> List[int]:
        return [i for i, lyr in enumerate(self.layers) if lyr.direction == direction]

    def valid(self, k=None):
        """
        Boolean VALUE-state mask of layer k (or all layers).
        """
        if k is None:
            return self.footprint & np.isfinite(self.vel)
        return self.footprint[k] & np.isfinite(self.vel[k])

    def state(self, k):
        """
        Array of CellState codes for layer k.
        """
        state = np.full(self.grid.shape, CellState.MASKED, dtype=np.int8)
        state[~self.footprint[k]] = CellState.EXTERIOR
        state[self.valid(k)] = CellState.VALUE
        return state

    def is_empty(self, k):
        return not np.any(self.valid(k))

    def decoded(self, name: str, k: int):
        """
        Copy of layer k of array name with every non-VALUE cell set to NaN,
        the working representation for computations.
        """
        out = np.array(getattr(self, name)[k], dtype=np.float64)
        out[~self.footprint[k]] = nan
        return out

    def store(self, name: str, k: int, values):
        """
        Store values as layer k of array name, applying the dense encoding
        of the layer's footprint.
        """
        getattr(self, name)[k] = encode(values, self.footprint[k])

    def select(self, indices: Sequence[int]) -> 'VelocityStack':
        """
        New stack holding copies of the given layers.
        """
        indices = list(indices)
        arrays = [getattr(self, name)[indices].copy() for name in LAYER_ARRAYS]
        return VelocityStack(self.grid, [self.layers[i] for i in indices], *arrays,
                             self.footprint[indices].copy())

    def copy(self) -> 'VelocityStack':
        return self.select(range(len(self)))

    def __repr__(self):
        return f'VelocityStack({len(self)} layers, grid={self.grid})'


def encode(values, footprint):
    """
    Dense storage encoding: 0 outside the footprint, NaN for non-finite
    cells inside it, values elsewhere.
    """
    values = np.where(np.isfinite(values), values, nan)
    return np.where(footprint, values, 0.0)


class ReferenceField:
    """
    East and North velocity field, with optional uncertainties, from an
    independent source such as interpolated GNSS station velocities.
    """

    def __init__(self, x, y, east, north, sigma_east=None, sigma_north=None):
        self.x, east, north, sigma_east, sigma_north = _increasing(
            x, east, north, sigma_east, sigma_north, axis=1)
        self.y, east, north, sigma_east, sigma_north = _increasing(
            y, east, north, sigma_east, sigma_north, axis=0)
        self.east = np.asarray(east, dtype=np.float64)
        self.north = np.asarray(north, dtype=np.float64)
        self.sigma_east = None if sigma_east is None else np.asarray(sigma_east, dtype=np.float64)
        self.sigma_north = None if sigma_north is None else np.asarray(sigma_north, dtype=np.float64)

    @classmethod
    def from_npz(cls, path) -> 'ReferenceField':
        """
        Load a field saved with numpy.savez using the keys x, y, E, N and,
        optionally, sE and sN.
        """
        with np.load(path) as f:
            missing = {'x', 'y', 'E', 'N'}.difference(f.files)
            if missing:
                raise ConfigurationError(f'Velocity field file {path} is missing {sorted(missing)}')
            return cls(f['x'], f['y'], f['E'], f['N'],
                       f['sE'] if 'sE' in f.files else None,
                       f['sN'] if 'sN' in f.files else None)

    @property
    def has_uncertainties(self):
        return self.sigma_east is not None and self.sigma_north is not None

    def resample(self, grid: Grid) -> 'ReferenceField':
        """
        Bilinear resampling onto grid; cells outside the field are NaN.
        """
        xx, yy = grid.meshgrid()
        fields = [None if a is None else interp2(self.x, self.y, a, xx, yy)
                  for a in (self.east, self.north, self.sigma_east, self.sigma_north)]
        return ReferenceField(grid.x, grid.y, *fields)

    def los(self, comp_e, comp_n):
        """
        Project the field into a line-of-sight given its East and North
        unit vector components.
        """
        return self.east * comp_e + self.north * comp_n


def create_tiles(shape, nrows=2, ncols=2):
    """
    Return a list of tiles containing nrows x ncols with each tile preserving
    the physical layout of original array. When the array shape (rows,
    columns) are not divisible by (nrows, ncols) then some of the array
    dimensions can change according to numpy.array_split.

    :param tuple shape: Shape tuple (2-element) of the grid.
    :param int nrows: Number of rows of tiles
    :param int ncols: Number of columns of tiles

    :return: List of Tile class instances.
    :rtype: list
    """
    if len(shape) != 2:
        raise ValueError('shape must be a length 2 tuple')

    no_y, no_x = shape
    nrows, ncols = min(nrows, no_y), min(ncols, no_x)
    col_arr = np.array_split(range(no_x), ncols)
    row_arr = np.array_split(range(no_y), nrows)
    return [Tile(i, (r[0], c[0]), (r[-1]+1, c[-1]+1)) for i, (r, c) in enumerate(product(row_arr, col_arr))]


class Tile():
    """
    Tile class for containing a sub-part of a grid
    """
    def __init__(self, index, top_left, bottom_right):
        """
        Parameters
        ----------
        index: int
            identifying index of a tile
        top_left: tuple
            grid index of top left of tile
        bottom_right: tuple
            grid index of bottom right of tile
        """

        self.index = index
        self.top_left = top_left
        self.bottom_right = bottom_right
        self.top_left_y, self.top_left_x = top_left
        self.bottom_right_y, self.bottom_right_x = bottom_right

    @property
    def window(self):
        return slice(self.top_left_y, self.bottom_right_y), slice(self.top_left_x, self.bottom_right_x)

    def __str__(self):
        return "Convenience Tile class containing tile co-ordinates"
