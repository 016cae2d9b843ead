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
This Python module removes an externally supplied velocity bias, such as
the reference frame bias caused by rigid plate motion, from stacked LOS
velocities.
"""
import numpy as np

from losdecomp.core import shared
from losdecomp.core.shared import VelocityStack, ReferenceField
from losdecomp.core.logger import losdecomplogger as log


def remove_plate_motion(stack: VelocityStack, bias: ReferenceField) -> np.ndarray:
    """
    Project an East/North bias velocity field into the LOS of every layer
    and subtract it. Velocities are modified in situ.

    :param VelocityStack stack: LOS velocities
    :param ReferenceField bias: bias field resampled onto the stack grid

    :return: the LOS bias removed from each layer, densely encoded
    :rtype: ndarray
    """
    log.info('Applying plate motion correction')
    removed = np.zeros_like(stack.vel)
    for k in range(len(stack)):
        los_bias = bias.los(stack.decoded(shared.COMP_E, k), stack.decoded(shared.COMP_N, k))
        subtract_bias(stack, k, los_bias)
        removed[k] = shared.encode(los_bias, stack.footprint[k])
    return removed


def subtract_bias(stack: VelocityStack, k: int, los_bias):
    """
    Subtract a per-pixel LOS bias from layer k. Cells without a bias value
    become MASKED.
    """
    stack.store(shared.VEL, k, stack.decoded(shared.VEL, k) - los_bias)
