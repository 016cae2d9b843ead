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
This Python module runs the LOSDecomp workflow: frames are unified onto a
common grid, merged along-track, optionally merged across-track for
inspection, corrected for an external bias, tied to a reference velocity
field and decomposed into East, North and Up velocities.
"""
from os.path import join
from typing import List, Optional, Sequence

import numpy as np

import losdecomp.constants as C
from losdecomp.core import raster
from losdecomp.core.shared import Frame, Grid, VelocityStack, ReferenceField, ConfigurationError
from losdecomp.core.unify import unify_grids, resample_reference_field
from losdecomp.core.along_track import merge_frames_along_track, AlongTrackResult
from losdecomp.core.across_track import merge_frames_across_track, AcrossTrackResult
from losdecomp.core.plate_motion import remove_plate_motion
from losdecomp.core.gnss import ref_to_gnss
from losdecomp.core.decomposition import decompose, DecompositionResult
from losdecomp.core.logger import losdecomplogger as log


class WorkflowResult:
    """
    Products of one workflow run.

    :ivar Grid grid: the common grid
    :ivar AlongTrackResult along: along-track merge output
    :ivar AcrossTrackResult across: across-track diagnostic, or None
    :ivar ndarray bias: LOS bias removed from each layer, or None
    :ivar ndarray corrections: reference surface removed from each layer, or None
    :ivar VelocityStack stack: stack passed to the decomposition
    :ivar DecompositionResult result: decomposed velocities, or None
    """
    # pylint: disable=too-many-instance-attributes,too-few-public-methods

    def __init__(self, grid: Grid, along: AlongTrackResult):
        self.grid = grid
        self.along = along
        self.across: Optional[AcrossTrackResult] = None
        self.bias: Optional[np.ndarray] = None
        self.corrections: Optional[np.ndarray] = None
        self.stack: VelocityStack = along.stack
        self.result: Optional[DecompositionResult] = None


def process_frames(frames: Sequence[Frame], params: dict,
                   reference: Optional[ReferenceField] = None,
                   bias: Optional[ReferenceField] = None,
                   run_decomposition: bool = True) -> WorkflowResult:
    """
    Run the processing chain on frames already in memory.

    :param list frames: input Frame objects
    :param dict params: Dictionary of configuration parameters
    :param ReferenceField reference: reference (GNSS) velocity field on its own grid
    :param ReferenceField bias: plate motion bias field on its own grid
    :param bool run_decomposition: False to stop after the across-track step

    :return: WorkflowResult
    """
    grid, stack = unify_grids(frames, params)
    along = merge_frames_along_track(stack, params)
    run = WorkflowResult(grid, along)

    if params.get(C.MERGE_ACROSS, 0):
        run.across = merge_frames_across_track(run.stack, params)
    if not run_decomposition:
        return run

    if params.get(C.PLATE_MOTION, 0):
        if bias is None:
            raise ConfigurationError(f'{C.PLATE_MOTION_FILE} is required when '
                                     f'{C.PLATE_MOTION} is 1')
        run.bias = remove_plate_motion(run.stack, resample_reference_field(bias, grid))

    reference = resample_reference_field(reference, grid)
    if params.get(C.TIE_TO_GNSS, C.NO_REFERENCING) != C.NO_REFERENCING:
        run.corrections = ref_to_gnss(run.stack, reference, params)

    run.result = decompose(run.stack, params, reference)
    return run


def load_inputs(params: dict):
    """
    Read the frames and the optional reference and bias velocity fields.
    """
    log.info('Loading inputs')
    frames = raster.load_frames(params)
    reference = bias = None
    if params.get(C.GNSS_FILE):
        reference = ReferenceField.from_npz(params[C.GNSS_FILE])
    if params.get(C.PLATE_MOTION, 0):
        bias = ReferenceField.from_npz(params[C.PLATE_MOTION_FILE])
    return frames, reference, bias


def main(params: dict) -> WorkflowResult:
    """
    LOSDecomp decompose main function. Runs the full workflow and saves
    the decomposed velocities as geotiffs.
    """
    frames, reference, bias = load_inputs(params)
    run = process_frames(frames, params, reference, bias)
    if params.get(C.SAVE_GEOTIFF, 1):
        raster.write_outputs(run.result.outputs(), run.grid, params)
    else:
        log.info('Not saving output geotiffs')
    return run


def across(params: dict) -> WorkflowResult:
    """
    LOSDecomp across main function. Stops after the across-track merge and
    saves the per-direction LOS and simple East/Up fields as geotiffs.
    """
    if params.get(C.MERGE_ALONG, C.MERGE_AND_COMBINE) != C.MERGE_AND_COMBINE:
        raise ConfigurationError(f'Across-track merging requires {C.MERGE_ALONG} = 2')
    params = dict(params)
    params[C.MERGE_ACROSS] = 1
    frames, _, _ = load_inputs(params)
    run = process_frames(frames, params, run_decomposition=False)
    if params.get(C.SAVE_GEOTIFF, 1):
        write_across_outputs(run.across, run.grid, params)
    return run


def write_across_outputs(result: AcrossTrackResult, grid: Grid, params: dict) -> List[str]:
    """
    Write the across-track diagnostic fields to <outdir>/<outprefix>_across_<name>.geo.tif.
    """
    fields = {f'los_{d}': v for d, v in result.los.items()}
    if result.east is not None:
        fields.update({'vE': result.east, 'vU': result.up})
    paths = []
    for name, data in fields.items():
        dest = join(params[C.OUT_DIR], f"{params[C.OUT_PREFIX]}_across_{name}.geo.tif")
        raster.write_geotiff(data, grid, dest)
        paths.append(dest)
    log.info(f'Written {len(paths)} across-track products')
    return paths
