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
This Python module implements across-track merging of along-track merged
velocities. LOS velocities are projected into a common incidence and
azimuth for each pass direction and offsets between adjacent tracks are
removed. The result is for inspecting the consistency of the velocity
field and is not used by the decomposition.
"""
# pylint: disable=invalid-name, too-many-locals
from typing import Dict, List, Optional

import numpy as np
from numpy import nan

import losdecomp.constants as C
from losdecomp.core import shared
from losdecomp.core.shared import VelocityStack, data_quality_warning, nanmean
from losdecomp.core.logger import losdecomplogger as log

CANONICAL_AZIMUTH = {C.ASCENDING: C.AV_AZ_ASC, C.DESCENDING: C.AV_AZ_DESC}


class AcrossTrackResult:
    """
    Diagnostic output of across-track merging.

    :ivar dict los: average projected LOS velocity per pass direction
    :ivar dict order: layer names per pass direction, in merge order
    :ivar dict offsets: offset removed from each layer, by layer name
    :ivar ndarray east: East velocity from the simple decomposition, or None
    :ivar ndarray up: Up velocity from the simple decomposition, or None
    """

    def __init__(self, los: Dict[str, np.ndarray], order: Dict[str, List[str]],
                 offsets: Dict[str, float], east: Optional[np.ndarray] = None,
                 up: Optional[np.ndarray] = None):
        self.los = los
        self.order = order
        self.offsets = offsets
        self.east = east
        self.up = up


def incidence_azimuth(comp_e, comp_u):
    """
    Incidence and azimuth angles (degrees) from the East and Up unit
    vector components.
    """
    inc = np.degrees(np.arccos(comp_u))
    with np.errstate(divide='ignore', invalid='ignore'):
        az = np.degrees(np.arccos(comp_e / np.sin(np.radians(inc)))) - 180
    return inc, az


def projection_factor(inc, az, direction):
    """
    Cosine factor projecting a LOS velocity into the canonical geometry
    of its pass direction.
    """
    av_az = CANONICAL_AZIMUTH[direction]
    return np.cos(np.radians(av_az - az)) * np.cos(np.radians(C.AV_INC - inc))


def merge_frames_across_track(stack: VelocityStack, params: dict) -> AcrossTrackResult:
    """
    Project tracks into the canonical geometry, remove offsets between
    adjacent tracks of the same pass direction and average them.

    The input stack is not modified.

    :param VelocityStack stack: along-track merged velocities
    :param dict params: Dictionary of configuration parameters

    :return: AcrossTrackResult
    """
    log.info('Merging tracks across-track. Not used in decomposition.')
    vel = np.stack([stack.decoded(shared.VEL, k) for k in range(len(stack))])
    for k, direction in enumerate(stack.directions):
        inc, az = incidence_azimuth(stack.decoded(shared.COMP_E, k),
                                    stack.decoded(shared.COMP_U, k))
        vel[k] *= projection_factor(inc, az, direction)

    los, order, offsets = {}, {}, {}
    for direction in C.PASS_DIRECTIONS:
        ids = stack.direction_indices(direction)
        if not ids:
            continue
        ids = sorted(ids, key=lambda k: _min_valid_x(vel[k], stack.grid.x))
        for first, second in zip(ids[:-1], ids[1:]):
            resid = vel[second] - vel[first]
            resid = resid[~np.isnan(resid)]
            if resid.size == 0:
                data_quality_warning(f'No overlap between {stack.layers[first].name} and '
                                     f'{stack.layers[second].name}, skipping')
                continue
            offset = constant_offset(resid)
            vel[second] -= offset
            offsets[stack.layers[second].name] = offset
        order[direction] = [stack.layers[k].name for k in ids]
        los[direction] = nanmean(vel[ids], axis=0)

    east = up = None
    if all(d in los for d in C.PASS_DIRECTIONS):
        east, up = decompose_average_los(los[C.ASCENDING], los[C.DESCENDING],
                                         stack.grid, params)
    else:
        log.info('Both pass directions are needed for the across-track decomposition, skipping')
    return AcrossTrackResult(los, order, offsets, east, up)


def _min_valid_x(vel, x):
    cols = np.nonzero(np.any(~np.isnan(vel), axis=0))[0]
    return x[cols[0]] if cols.size else np.inf


def constant_offset(resid):
    """Least squares constant fitted to the overlap residuals"""
    G = np.ones((resid.size, 1))
    return float(np.linalg.lstsq(G, resid, rcond=None)[0][0])


def reference_window(grid, params):
    """
    Row and column slices of the shared reference region; limits given as
    0 fall back to the grid limits.
    """
    limits = []
    for key, default in ((C.REF_XMIN, grid.x[0]), (C.REF_XMAX, grid.x[-1]),
                         (C.REF_YMIN, grid.y[0]), (C.REF_YMAX, grid.y[-1])):
        value = params.get(key, 0)
        if not value:
            log.info(f'Invalid {key}. Setting to {default:.2f}')
            value = default
        limits.append(value)
    xmin, xmax, ymin, ymax = limits
    c0, c1 = sorted((int(np.argmin(np.abs(grid.x - xmin))), int(np.argmin(np.abs(grid.x - xmax)))))
    r0, r1 = sorted((int(np.argmin(np.abs(grid.y - ymin))), int(np.argmin(np.abs(grid.y - ymax)))))
    return slice(r0, r1 + 1), slice(c0, c1 + 1)


def decompose_average_los(los_asc, los_desc, grid, params):
    """
    East and Up velocities from the averaged ascending and descending LOS
    fields, after referencing both to the mean of a shared region.
    """
    rows, cols = reference_window(grid, params)
    los_asc = los_asc - nanmean(los_asc[rows, cols])
    los_desc = los_desc - nanmean(los_desc[rows, cols])

    sin_inc, cos_inc = np.sin(np.radians(C.AV_INC)), np.cos(np.radians(C.AV_INC))
    G = np.array([[sin_inc * -np.cos(np.radians(C.AV_AZ_ASC)), cos_inc],
                  [sin_inc * -np.cos(np.radians(C.AV_AZ_DESC)), cos_inc]])

    east = np.full(grid.shape, nan)
    up = np.full(grid.shape, nan)
    both = ~np.isnan(los_asc) & ~np.isnan(los_desc)
    if np.any(both):
        d = np.vstack((los_asc[both], los_desc[both]))
        m = np.linalg.solve(G.T @ G, G.T @ d)
        east[both], up[both] = m[0], m[1]
    return east, up
