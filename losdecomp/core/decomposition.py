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
This Python module implements the per-pixel weighted least-squares
decomposition of LOS velocities from several look directions into East,
North and Up velocities, with condition number and variance masks.
"""
# pylint: disable=invalid-name, too-many-locals, too-many-arguments
import warnings
from collections import namedtuple
from typing import Optional

import numpy as np
from numpy import nan, isnan
from numpy.linalg import cond, inv, matrix_rank, LinAlgError

import losdecomp.constants as C
from losdecomp.core import shared
from losdecomp.core.shared import (VelocityStack, ReferenceField, ConfigurationError,
                                   NumericalInstability, data_quality_warning)
from losdecomp.core.logger import losdecomplogger as log

# smallest |u1 x u2| for two unit vectors to count as independent look directions
PARALLEL_TOLERANCE = 1e-6

PixelSolution = namedtuple('PixelSolution', 'east up north var_east var_up var_north cond')


class DecompositionResult:
    """
    East, Up and (where available) North velocities on the common grid with
    their variances, quality masks and coverage diagnostics. Unsolved
    pixels are NaN in every velocity and variance grid and False in the
    masks.
    """
    # pylint: disable=too-many-instance-attributes

    def __init__(self, shape, with_north=True):
        self.east = np.full(shape, nan)
        self.up = np.full(shape, nan)
        self.north = np.full(shape, nan) if with_north else None
        self.var_east = np.full(shape, nan)
        self.var_up = np.full(shape, nan)
        self.var_north = np.full(shape, nan) if with_north else None
        self.cond = np.full(shape, nan)
        self.cond_mask = np.zeros(shape, dtype=bool)
        self.var_mask = np.zeros(shape, dtype=bool)
        self.nobs = np.zeros(shape, dtype=np.int16)
        self.asc_coverage = np.zeros(shape, dtype=bool)
        self.desc_coverage = np.zeros(shape, dtype=bool)

    @property
    def solved(self):
        return ~isnan(self.east)

    def outputs(self) -> dict:
        """
        Result grids keyed by output product name.
        """
        out = {'vE': self.east, 'vU': self.up, 'var_vE': self.var_east,
               'var_vU': self.var_up, 'cond_mask': self.cond_mask.astype(np.float32),
               'var_mask': self.var_mask.astype(np.float32)}
        if self.north is not None:
            out['vN'] = self.north
            out['var_vN'] = self.var_north
        return out


def coverage_mask(stack: VelocityStack) -> np.ndarray:
    """
    Pixels observed by at least two valid layers whose look directions are
    not parallel.
    """
    valid = stack.valid()
    units = np.stack([stack.comp_e, stack.comp_n, stack.comp_u], axis=-1)
    units = np.where(valid[..., np.newaxis], units, nan)
    independent = np.zeros(stack.grid.shape, dtype=bool)
    n = len(stack)
    for k in range(n):
        for m in range(k + 1, n):
            cross = np.linalg.norm(np.cross(units[k], units[m]), axis=-1)
            with np.errstate(invalid='ignore'):
                independent |= cross > PARALLEL_TOLERANCE
    return independent


def decompose(stack: VelocityStack, params: dict,
              reference: Optional[ReferenceField] = None) -> DecompositionResult:
    """
    Decompose the stacked LOS velocities into East, Up and North.

    :param VelocityStack stack: merged and referenced LOS velocities (read only)
    :param dict params: Dictionary of configuration parameters
    :param ReferenceField reference: reference field on the stack grid,
        required for methods using the reference North velocity

    :return: result: decomposed velocities and diagnostics
    :rtype: DecompositionResult
    """
    method = params.get(C.DECOMP_METHOD, C.REMOVE_NORTH)
    if method not in C.DECOMP_METHOD_NAMES:
        raise ConfigurationError(f'Invalid {C.DECOMP_METHOD}: {method}')
    if method in C.NORTH_REFERENCED_METHODS and reference is None:
        raise ConfigurationError(f'Decomposition method {method} '
                                 f'({C.DECOMP_METHOD_NAMES[method]}) needs a reference North '
                                 f'velocity field, set {C.GNSS_FILE}')

    coverage = coverage_mask(stack)
    if not np.any(coverage):
        raise ConfigurationError('No pixels with multiple look directions - did you provide '
                                 'more than one track?')

    log.info(f'Performing velocity decomposition: {C.DECOMP_METHOD_NAMES[method]}')
    result = DecompositionResult(stack.grid.shape, with_north=method != C.ZERO_NORTH)
    valid = stack.valid()
    result.nobs[:] = valid.sum(axis=0)
    for direction, cover in ((C.ASCENDING, result.asc_coverage),
                             (C.DESCENDING, result.desc_coverage)):
        idx = stack.direction_indices(direction)
        if idx:
            cover[:] = np.any(valid[idx], axis=0)

    north, sigma_north = _reference_north(reference, params)
    tiles = shared.create_tiles(stack.grid.shape, nrows=max(params.get(C.PROCESSES, 0), 1) * 4,
                                ncols=1)

    def _decompose_tile(tile):
        return _decompose_block(stack, valid, tile.window, coverage, method, north, sigma_north,
                                result)

    skipped = sum(shared.run_parallel(_decompose_tile, tiles, params.get(C.PROCESSES, 0)))
    if skipped:
        data_quality_warning(f'{skipped} pixels with multiple look directions could not be '
                             f'solved and were left as no-data')

    threshold_masks(result, params)
    log.info(f'Decomposed {np.count_nonzero(result.solved)} pixels')
    return result


def _reference_north(reference, params):
    if reference is None:
        return None, None
    sigma = reference.sigma_north if params.get(C.GNSS_UNCER, 0) else None
    return reference.north, sigma


def _decompose_block(stack, valid, window, coverage, method, north, sigma_north, result) -> int:
    """
    Solve every covered pixel of one grid window, writing into result.
    Returns the number of covered pixels that could not be solved.
    """
    rows, cols = window
    vel = stack.vel[:, rows, cols]
    vstd = stack.vstd[:, rows, cols]
    comps = [stack.comp_e[:, rows, cols], stack.comp_n[:, rows, cols],
             stack.comp_u[:, rows, cols]]
    valid = valid[:, rows, cols]
    cover = coverage[rows, cols]
    r0, c0 = rows.start, cols.start
    skipped = 0
    for i, j in zip(*np.nonzero(cover)):
        obs = valid[:, i, j]
        n_ref = None if north is None else north[r0 + i, c0 + j]
        s_ref = None if sigma_north is None else sigma_north[r0 + i, c0 + j]
        sol = decompose_pixel(vel[obs, i, j], vstd[obs, i, j], comps[0][obs, i, j],
                              comps[1][obs, i, j], comps[2][obs, i, j], method, n_ref, s_ref)
        if sol is None:
            skipped += 1
            continue
        r, c = r0 + i, c0 + j
        result.east[r, c], result.up[r, c] = sol.east, sol.up
        result.var_east[r, c], result.var_up[r, c] = sol.var_east, sol.var_up
        result.cond[r, c] = sol.cond
        if result.north is not None:
            result.north[r, c], result.var_north[r, c] = sol.north, sol.var_north
    return skipped


def decompose_pixel(vel, vstd, comp_e, comp_n, comp_u, method=C.ZERO_NORTH,
                    north=None, sigma_north=None) -> Optional[PixelSolution]:
    """
    Weighted least-squares decomposition of the LOS observations of one pixel.

    :param ndarray vel: LOS velocities
    :param ndarray vstd: LOS velocity standard deviations
    :param ndarray comp_e: East unit vector component of each observation
    :param ndarray comp_n: North unit vector component of each observation
    :param ndarray comp_u: Up unit vector component of each observation
    :param int method: decomposition method code
    :param float north: reference North velocity at the pixel
    :param float sigma_north: reference North standard deviation, or None
        to ignore reference uncertainty

    :return: solution, or None when the system cannot be solved
    :rtype: PixelSolution
    """
    vel = np.asarray(vel, dtype=np.float64)
    var = np.asarray(vstd, dtype=np.float64) ** 2
    if vel.size < 2 or np.any(~np.isfinite(var)) or np.any(var <= 0):
        return None
    if method in C.NORTH_REFERENCED_METHODS and (north is None or isnan(north)):
        return None
    if sigma_north is not None and isnan(sigma_north):
        sigma_north = None

    if method == C.REMOVE_NORTH:
        d = vel - north * comp_n
        if sigma_north is not None:
            var = var + (comp_n * sigma_north) ** 2
        G = np.column_stack((comp_e, comp_u))
    elif method == C.ESTIMATE_NORTH:
        # reference North enters as a pseudo-observation of the North unknown
        s = C.DEFAULT_NORTH_SIGMA if sigma_north is None else sigma_north
        d = np.append(vel, north)
        var = np.append(var, s ** 2)
        G = np.vstack((np.column_stack((comp_e, comp_n, comp_u)), [0.0, 1.0, 0.0]))
    elif method == C.EAST_NORTH_UP_TWO_STAGE:
        d = vel
        G = np.column_stack((comp_e, np.hypot(comp_n, comp_u)))
    else:
        d = vel
        G = np.column_stack((comp_e, comp_u))

    if not (np.all(np.isfinite(G)) and np.all(np.isfinite(d))):
        return None
    m, cov = _weighted_lstsq(G, d, 1.0 / var)
    if m is None:
        return None
    cond_g = cond(G)
    var_m = np.diag(cov)

    if method == C.ESTIMATE_NORTH:
        return PixelSolution(m[0], m[2], m[1], var_m[0], var_m[2], var_m[1], cond_g)
    if method == C.EAST_NORTH_UP_TWO_STAGE:
        up, var_up = split_north_up(m[1], var_m[1], comp_n, comp_u, 1.0 / var, north, sigma_north)
        return PixelSolution(m[0], up, north, var_m[0], var_up, _north_var(sigma_north), cond_g)
    if method == C.REMOVE_NORTH:
        return PixelSolution(m[0], m[1], north, var_m[0], var_m[1], _north_var(sigma_north), cond_g)
    return PixelSolution(m[0], m[1], None, var_m[0], var_m[1], None, cond_g)


def _north_var(sigma_north):
    return nan if sigma_north is None else sigma_north ** 2


def _weighted_lstsq(G, d, w):
    """
    Solve m = (G'WG)^-1 G'Wd. Returns (None, None) if G is rank deficient.
    """
    if matrix_rank(G) < G.shape[1]:
        return None, None
    GtW = G.T * w
    try:
        cov = inv(GtW @ G)
    except LinAlgError:
        return None, None
    return cov @ (GtW @ d), cov


def split_north_up(nu, var_nu, comp_n, comp_u, w, north, sigma_north=None):
    """
    Split a combined North-Up velocity into Up, given the reference North.

    Each observation senses h * (N sin(t) + U cos(t)) with h the horizontal
    and vertical unit vector magnitude in the North-Up plane and t its
    angle from vertical. The weighted mean t of the observations is used.
    """
    theta = np.sum(w * np.arctan2(comp_n, comp_u)) / np.sum(w)
    s, c = np.sin(theta), np.cos(theta)
    up = (nu - north * s) / c
    var_up = var_nu / c ** 2
    if sigma_north is not None:
        var_up += (sigma_north * s / c) ** 2
    return up, var_up


def threshold_masks(result: DecompositionResult, params: dict) -> None:
    """
    Flag solved pixels whose condition number or largest parameter
    variance exceeds the configured thresholds. A threshold of 0 disables
    the corresponding mask. Values are never discarded.
    """
    solved = result.solved
    cond_threshold = params.get(C.COND_THRESHOLD, 0)
    var_threshold = params.get(C.VAR_THRESHOLD, 0)
    if cond_threshold:
        with np.errstate(invalid='ignore'):
            result.cond_mask[:] = solved & (result.cond > cond_threshold)
        log.info(f'{np.count_nonzero(result.cond_mask)} pixels with condition number '
                 f'above {cond_threshold}')
    if var_threshold:
        variances = [result.var_east, result.var_up]
        if result.var_north is not None and params.get(C.DECOMP_METHOD) == C.ESTIMATE_NORTH:
            variances.append(result.var_north)
        with np.errstate(invalid='ignore'):
            high = np.any([v > var_threshold for v in variances], axis=0)
        result.var_mask[:] = solved & high
        log.info(f'{np.count_nonzero(result.var_mask)} pixels with variance '
                 f'above {var_threshold}')
    flagged = np.count_nonzero(result.cond_mask | result.var_mask)
    if flagged:
        msg = f'{flagged} decomposed pixels exceed the condition number or variance thresholds'
        log.warning(msg)
        warnings.warn(msg, NumericalInstability, stacklevel=2)
