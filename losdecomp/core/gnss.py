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
This Python module ties InSAR velocities to an independent velocity field,
usually interpolated GNSS station velocities.

For each frame or track the reference field is projected into the LOS, the
residual between InSAR and reference is smoothed, either by fitting a
polynomial surface or by a moving average filter, and the smoothed residual
is subtracted from the InSAR velocities.
"""
# pylint: disable=invalid-name, too-many-locals
import numpy as np
from numpy import isnan, nan
from scipy.ndimage import uniform_filter, distance_transform_edt

import losdecomp.constants as C
from losdecomp.core import shared
from losdecomp.core.shared import (VelocityStack, ReferenceField, ConfigurationError,
                                   data_quality_warning, nanmean)
from losdecomp.core.logger import losdecomplogger as log


def validate_gnss_params(params: dict) -> None:
    """
    Raise a ConfigurationError for inconsistent referencing options.
    """
    method = params.get(C.TIE_TO_GNSS, C.NO_REFERENCING)
    if method == C.POLYNOMIAL_REFERENCING:
        if params.get(C.REF_POLY_ORDER) is None:
            raise ConfigurationError(f'Must set {C.REF_POLY_ORDER} if using a polynomial '
                                     f'for referencing')
        if params[C.REF_POLY_ORDER] not in (shared.PLANAR, shared.QUADRATIC):
            raise ConfigurationError(f'Invalid {C.REF_POLY_ORDER}: {params[C.REF_POLY_ORDER]}. '
                                     f'Provide 1 or 2.')
    elif method == C.FILTER_REFERENCING:
        window = params.get(C.REF_FILTER_WINDOW)
        if window is None or window < 1 or window % 2 != 1:
            raise ConfigurationError(f'Filter window size must be an odd number, got {window}')
    elif method != C.NO_REFERENCING:
        raise ConfigurationError(f'Invalid {C.TIE_TO_GNSS} method: {method}')


def ref_to_gnss(stack: VelocityStack, reference: ReferenceField, params: dict) -> np.ndarray:
    """
    Shift every layer of the stack into the reference frame of the
    reference velocity field. Velocities are modified in situ.

    :param VelocityStack stack: LOS velocities
    :param ReferenceField reference: reference field resampled onto the stack grid
    :param dict params: Dictionary of configuration parameters

    :return: correction surface removed from each layer, densely encoded
        (layers that were skipped hold NaN inside their footprint)
    :rtype: ndarray
    """
    validate_gnss_params(params)
    method = params[C.TIE_TO_GNSS]
    if method == C.NO_REFERENCING:
        log.info('Referencing to GNSS not required!')
        return np.zeros_like(stack.vel)
    if reference is None:
        raise ConfigurationError(f'{C.TIE_TO_GNSS}={method} needs a reference velocity field, '
                                 f'set {C.GNSS_FILE}')

    log.info('Referencing InSAR to interpolated GNSS velocities using '
             + ('a polynomial surface' if method == C.POLYNOMIAL_REFERENCING else 'a filter'))
    xx, yy = stack.grid.meshgrid()

    def _reference_layer(k):
        surface = reference_surface(stack, k, reference, xx, yy, params)
        if surface is not None:
            stack.store(shared.VEL, k, stack.decoded(shared.VEL, k) - surface)
        else:
            surface = np.full(stack.grid.shape, nan)
        log.debug(f'{k + 1}/{len(stack)} complete')
        return shared.encode(surface, stack.footprint[k])

    surfaces = shared.run_parallel(_reference_layer, range(len(stack)),
                                   params.get(C.PROCESSES, 0))
    log.debug('Finished GNSS referencing')
    return np.stack(surfaces)


def reference_surface(stack: VelocityStack, k: int, reference: ReferenceField, xx, yy,
                      params: dict):
    """
    Smoothed residual between layer k and the reference field projected
    into its LOS, or None when the layer cannot be referenced.
    """
    name = stack.layers[k].name
    if stack.is_empty(k):
        data_quality_warning(f'Layer {name} is empty after masking, skipping referencing')
        return None

    vel = stack.decoded(shared.VEL, k)
    ref_los = reference.los(stack.decoded(shared.COMP_E, k), stack.decoded(shared.COMP_N, k))
    resid = gnss_residual(xx, yy, vel, ref_los)
    if np.all(isnan(resid)):
        data_quality_warning(f'Layer {name} has no valid residual with the reference field, '
                             f'skipping referencing')
        return None

    if params[C.TIE_TO_GNSS] == C.POLYNOMIAL_REFERENCING:
        surface, _ = polynomial_surface(xx, yy, resid, params[C.REF_POLY_ORDER])
    else:
        surface = filter_surface(resid, params[C.REF_FILTER_WINDOW])
    # intersect with the layer state
    surface[isnan(vel)] = nan
    return surface


def gnss_residual(xx, yy, vel, ref_los, limit=C.GNSS_DERAMP_MASK_LIMIT):
    """
    Residual between InSAR and reference LOS velocities, excluding pixels
    whose deramped, zero-mean velocity exceeds the limit (large local
    signals such as subsidence). The deramp is only used for the masking.
    """
    vel_deramp = shared.deramp(xx, yy, vel)
    vel_deramp = vel_deramp - nanmean(vel_deramp)
    with np.errstate(invalid='ignore'):
        vel_mask = (vel_deramp > limit) | (vel_deramp < -limit)
    vel_tmp = np.where(vel_mask, nan, vel)
    return vel_tmp - ref_los


def polynomial_surface(xx, yy, resid, order):
    """
    Fit a 2D polynomial of the given order to the valid residuals, using
    coordinates centred on the midpoint of the valid data, and evaluate it
    over the whole grid.

    :return: surface: fitted surface over the grid
    :rtype: ndarray
    :return: coefs: coefficients in centred coordinates, ordered as in
        shared.get_design_matrix
    :rtype: ndarray
    """
    if order not in (shared.PLANAR, shared.QUADRATIC):
        raise ConfigurationError(f'Invalid polynomial order: {order}')
    valid = ~isnan(resid)
    gx, gy = xx[valid], yy[valid]
    midx = (gx.max() + gx.min()) / 2
    midy = (gy.max() + gy.min()) / 2
    coefs = shared.fit_surface(gx - midx, gy - midy, resid[valid], order)
    surface = shared.eval_surface(xx - midx, yy - midy, coefs, order)
    return surface, coefs


def filter_surface(resid, window):
    """
    NaN-aware rectangular moving average of the residual, evaluated over
    the whole grid. Cells with no valid residual inside their window take
    the value of the nearest smoothed cell.
    """
    if window is None or window < 1 or window % 2 != 1:
        raise ConfigurationError(f'Filter window size must be an odd number, got {window}')
    valid = ~isnan(resid)
    total = uniform_filter(np.where(valid, resid, 0.0), size=window, mode='constant', cval=0.0)
    count = uniform_filter(valid.astype(np.float64), size=window, mode='constant', cval=0.0)
    with np.errstate(divide='ignore', invalid='ignore'):
        filtered = np.where(count > 0.5 / window**2, total / count, nan)
    holes = isnan(filtered)
    if np.any(holes) and not np.all(holes):
        _, (rows, cols) = distance_transform_edt(holes, return_indices=True)
        filtered = filtered[rows, cols]
    return filtered
