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
This Python module implements grid unification: every frame's velocity,
uncertainty, unit vector and mask layers are interpolated onto one common
lattice and stacked.
"""
# pylint: disable=invalid-name
from typing import Optional, Sequence, Tuple

import numpy as np
from numpy import nan

import losdecomp.constants as C
from losdecomp.core import shared
from losdecomp.core.shared import (Frame, Grid, VelocityStack, LayerInfo, ReferenceField,
                                   ConfigurationError, interp2, downsample_array,
                                   data_quality_warning)
from losdecomp.core.logger import losdecomplogger as log

MASK_THRESHOLD = 0.5


def unify_grids(frames: Sequence[Frame], params: dict) -> Tuple[Grid, VelocityStack]:
    """
    Interpolate all frames onto a common grid.

    The grid spacing is the minimum frame spacing and its extent is the
    union of the frame extents. Cells outside a frame's footprint are
    EXTERIOR (0) in that frame's layer; masked or undefined cells inside
    it are MASKED (NaN).

    :param list frames: Frame objects
    :param dict params: Dictionary of configuration parameters

    :return: grid: the common Grid
    :rtype: Grid
    :return: stack: VelocityStack with one layer per retained frame
    :rtype: VelocityStack
    """
    if not frames:
        raise ConfigurationError('No input frames provided')

    frames = [f for f in frames if not _drop_if_empty(f, 'is all NaNs')]
    if not frames:
        raise ConfigurationError('No input frames with valid velocities')

    ds_factor = params.get(C.DS_FACTOR, 0)
    ds_method = params.get(C.DS_METHOD, 'mean')
    frames = [match_unit_vector_resolution(f) for f in frames]
    if ds_factor and ds_factor > 1:
        log.info(f'Downsampling inputs by a factor of {ds_factor}')
        frames = [downsample_frame(f, ds_factor, ds_method) for f in frames]

    grid = Grid.from_frames(frames)
    log.info(f'Unifying {len(frames)} frames onto a grid of shape {grid.shape}')

    use_mask = bool(params.get(C.USE_MASK, 0))
    regridded = shared.run_parallel(lambda f: regrid_frame(f, grid, use_mask), frames,
                                    params.get(C.PROCESSES, 0))

    kept = []
    for frame, layer in zip(frames, regridded):
        window, arrays = layer
        if not np.any(np.isfinite(arrays[shared.VEL])):
            data_quality_warning(f'{frame.name} is empty after masking - removing')
            continue
        kept.append((frame, window, arrays))

    if not kept:
        raise ConfigurationError('No input frames with valid velocities after masking')

    stack = VelocityStack.empty(grid, [LayerInfo.from_frame(f) for f, _, _ in kept])
    for k, (_, (rows, cols), arrays) in enumerate(kept):
        stack.footprint[k, rows, cols] = True
        for name, values in arrays.items():
            getattr(stack, name)[k, rows, cols] = np.where(np.isfinite(values), values, nan)

    log.info('Grid unification complete')
    return grid, stack


def _drop_if_empty(frame: Frame, reason: str) -> bool:
    if frame.is_empty:
        data_quality_warning(f'{frame.name} {reason} - removing')
        return True
    return False


def regrid_frame(frame: Frame, grid: Grid, use_mask: bool = False):
    """
    Interpolate one frame onto the part of the grid covered by its native
    extent.

    :return: window: (row slice, column slice) of the grid covered by the frame
    :rtype: tuple
    :return: arrays: dict of interpolated layers over the window
    :rtype: dict
    """
    log.debug(f'Interpolating {frame.name}')
    rows, cols = grid.window(*frame.extent)
    xx, yy = np.meshgrid(grid.x[cols], grid.y[rows])

    arrays = {
        shared.VEL: interp2(frame.x, frame.y, frame.vel, xx, yy),
        shared.VSTD: interp2(frame.x, frame.y, frame.vstd, xx, yy),
        shared.COMP_E: interp2(frame.comp_x, frame.comp_y, frame.comp_e, xx, yy),
        shared.COMP_N: interp2(frame.comp_x, frame.comp_y, frame.comp_n, xx, yy),
        shared.COMP_U: interp2(frame.comp_x, frame.comp_y, frame.comp_u, xx, yy),
    }

    if use_mask and frame.mask is not None:
        mask = interp2(frame.x, frame.y, frame.mask, xx, yy)
        # account for interpolation, NaN mask cells are left unmasked
        invalid = mask < MASK_THRESHOLD
        for values in arrays.values():
            values[invalid] = nan

    return (rows, cols), arrays


def match_unit_vector_resolution(frame: Frame) -> Frame:
    """
    Block-average the unit vector components when they are supplied at a
    finer resolution than the velocities.
    """
    dsfac = int(round(frame.comp_e.shape[0] / frame.vel.shape[0]))
    if dsfac <= 1:
        return frame
    log.info(f'Downsampling unit vectors of {frame.name} by a factor of {dsfac}')
    comp_e, comp_x, comp_y = downsample_array(frame.comp_e, dsfac, dsfac, 'mean',
                                              frame.comp_x, frame.comp_y)
    comp_n, _, _ = downsample_array(frame.comp_n, dsfac, dsfac, 'mean')
    comp_u, _, _ = downsample_array(frame.comp_u, dsfac, dsfac, 'mean')
    return _new_frame(frame, comp_e=comp_e, comp_n=comp_n, comp_u=comp_u,
                      comp_x=comp_x, comp_y=comp_y)


def downsample_frame(frame: Frame, factor: int, method: str = 'mean') -> Frame:
    """
    Block downsample every layer of a frame by the same factor.
    """
    vel, x, y = downsample_array(frame.vel, factor, factor, method, frame.x, frame.y)
    vstd, _, _ = downsample_array(frame.vstd, factor, factor, method)
    comp_e, comp_x, comp_y = downsample_array(frame.comp_e, factor, factor, method,
                                              frame.comp_x, frame.comp_y)
    comp_n, _, _ = downsample_array(frame.comp_n, factor, factor, method)
    comp_u, _, _ = downsample_array(frame.comp_u, factor, factor, method)
    mask = None
    if frame.mask is not None:
        mask, _, _ = downsample_array(frame.mask, factor, factor, method)
    return _new_frame(frame, x=x, y=y, vel=vel, vstd=vstd, comp_e=comp_e, comp_n=comp_n,
                      comp_u=comp_u, comp_x=comp_x, comp_y=comp_y, mask=mask)


def _new_frame(frame: Frame, **changes) -> Frame:
    kwargs = dict(x=frame.x, y=frame.y, vel=frame.vel, vstd=frame.vstd, comp_e=frame.comp_e,
                  comp_n=frame.comp_n, comp_u=frame.comp_u, mask=frame.mask,
                  comp_x=frame.comp_x, comp_y=frame.comp_y)
    kwargs.update(changes)
    return Frame(frame.name, track=frame.track, direction=frame.direction, **kwargs)


def resample_reference_field(field: Optional[ReferenceField], grid: Grid) -> Optional[ReferenceField]:
    """
    Resample an external velocity field onto the common grid.
    """
    if field is None:
        return None
    log.info('Resampling reference velocity field onto the common grid')
    return field.resample(grid)
