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
This Python module implements along-track merging: frames sharing a track
are offset-corrected pairwise using their overlaps and then combined into
one velocity field per track (or per segment when a track has gaps).
"""
# pylint: disable=invalid-name, too-many-locals
from collections import OrderedDict, namedtuple
from functools import reduce
from typing import Dict, List, Sequence

import numpy as np
from numpy import nan

import losdecomp.constants as C
from losdecomp.core import shared
from losdecomp.core.shared import (VelocityStack, LayerInfo, ConfigurationError, PLANAR,
                                   data_quality_warning, nanmean)
from losdecomp.core.logger import losdecomplogger as log

Segment = namedtuple('Segment', ['track', 'index', 'layers'])
"""Consecutive overlapping layers of one track; index counts from 0 along the track."""

OverlapCorrection = namedtuple('OverlapCorrection', ['track', 'first', 'second', 'correction',
                                                     'residual'])
"""Correction applied to layer `second` relative to layer `first`, and the
overlap residual (second - first) remaining after it was applied."""


class AlongTrackResult:
    """
    Output of along-track merging.

    :ivar VelocityStack stack: merged stack, or the offset-corrected input
        stack when merging is off
    :ivar list segments: Segment per output layer group, in input layer indices
    :ivar list overlaps: OverlapCorrection per corrected frame pair
    """

    def __init__(self, stack: VelocityStack, segments: List[Segment],
                 overlaps: List[OverlapCorrection]):
        self.stack = stack
        self.segments = segments
        self.overlaps = overlaps

    @property
    def names(self):
        return self.stack.names


def merge_frames_along_track(stack: VelocityStack, params: dict) -> AlongTrackResult:
    """
    Wrapper for along-track merging.

    Frames are grouped by track and ordered along-track. The velocities of
    every frame after the first are corrected in place, relative to the
    already corrected previous frame, using the function selected by
    'mergealongfunc'. Frame pairs without overlap split the track into
    independent segments. With 'mergealong' = 2 each segment is then
    combined into one layer by inverse uncertainty weighting.

    :param VelocityStack stack: unified frames; velocities are modified in situ
    :param dict params: Dictionary of configuration parameters

    :return: AlongTrackResult
    """
    mode = params.get(C.MERGE_ALONG, C.MERGE_AND_COMBINE)
    func = params.get(C.MERGE_ALONG_FUNC, C.MEAN_OFFSET)
    if func not in C.MERGE_FUNC_NAMES:
        raise ConfigurationError(f"Invalid along-track merge function: {func}")
    if mode not in (C.MERGE_OFF, C.MERGE_OFFSETS_ONLY, C.MERGE_AND_COMBINE):
        raise ConfigurationError(f"Invalid along-track merge mode: {mode}")

    tracks = group_tracks(stack)
    if mode == C.MERGE_OFF:
        segments = [Segment(t, 0, [k]) for t, ids in tracks.items() for k in ids]
        return AlongTrackResult(stack, segments, [])

    log.info(f'Merging frames along-track using {C.MERGE_FUNC_NAMES[func]}')
    xx, yy = stack.grid.meshgrid()

    # tracks are independent, the chain within a track is sequential
    corrected = shared.run_parallel(
        lambda item: correct_track(stack, item[0], item[1], func, xx, yy),
        list(tracks.items()), params.get(C.PROCESSES, 0))

    segments, overlaps = [], []
    for (track, ids), (breaks, track_overlaps) in zip(tracks.items(), corrected):
        segments += split_segments(track, ids, breaks)
        overlaps += track_overlaps

    if mode == C.MERGE_OFFSETS_ONLY:
        return AlongTrackResult(stack, segments, overlaps)

    merged = combine_segments(stack, segments)
    log.info(f'Merged {len(stack)} frames into {len(merged)} tracks: {merged.names}')
    return AlongTrackResult(merged, segments, overlaps)


def group_tracks(stack: VelocityStack) -> Dict[str, List[int]]:
    """
    Layer indices of each track, ordered along-track by the mean row
    coordinate of valid data (layer name breaks ties).
    """
    tracks = OrderedDict()
    for k, lyr in enumerate(stack.layers):
        tracks.setdefault(lyr.track, []).append(k)
    y = stack.grid.y
    for track, ids in tracks.items():
        tracks[track] = sorted(ids, key=lambda k: (_along_track_position(stack, k, y),
                                                   stack.layers[k].name))
    return tracks


def _along_track_position(stack, k, y):
    rows = np.nonzero(np.any(stack.valid(k), axis=1))[0]
    return float(np.mean(y[rows])) if rows.size else np.inf


def correct_track(stack: VelocityStack, track: str, ids: Sequence[int], func: int, xx, yy):
    """
    Sequentially correct each frame of a track relative to its predecessor.

    :return: breaks: layer indices that start a new segment
    :rtype: set
    :return: overlaps: OverlapCorrection per corrected pair
    :rtype: list
    """
    log.debug(f'Merging {track}')
    breaks, overlaps = set(), []
    for first, second in zip(ids[:-1], ids[1:]):
        vel_first = stack.decoded(shared.VEL, first)
        vel_second = stack.decoded(shared.VEL, second)
        resid = vel_second - vel_first
        overlap = ~np.isnan(resid)

        if not np.any(overlap):
            data_quality_warning(f'No overlap between {stack.layers[first].name} and '
                                 f'{stack.layers[second].name}, splitting {track} into '
                                 f'multiple segments')
            breaks.add(second)
            continue

        correction = overlap_correction(resid[overlap], xx[overlap], yy[overlap], func)
        if func == C.PLANAR_OFFSET:
            surface = shared.eval_surface(xx, yy, correction, PLANAR)
        else:
            surface = correction
        stack.store(shared.VEL, second, vel_second - surface)

        remaining = stack.decoded(shared.VEL, second)[overlap] - vel_first[overlap]
        log.debug(f'Overlap {stack.layers[first].name} - {stack.layers[second].name}: mean '
                  f'residual {np.mean(remaining):.3f}, std {np.std(remaining):.3f}')
        overlaps.append(OverlapCorrection(track, first, second, correction, remaining))
    return breaks, overlaps


def overlap_correction(resid, x, y, func):
    """
    Offset (scalar) or plane coefficients (intercept, x, y) fitted to the
    valid overlap residuals.
    """
    if func == C.MEAN_OFFSET:
        return float(np.mean(resid))
    if func == C.MEDIAN_OFFSET:
        return float(np.median(resid))
    if func == C.MODE_OFFSET:
        values, counts = np.unique(np.round(resid, 1), return_counts=True)
        return float(values[np.argmax(counts)])
    if func == C.PLANAR_OFFSET:
        return shared.fit_surface(x, y, resid, PLANAR)
    raise ConfigurationError(f"Invalid along-track merge function: {func}")


def split_segments(track: str, ids: Sequence[int], breaks) -> List[Segment]:
    """
    Fold the ordered layers of a track into segments, starting a new
    segment at every break.
    """
    def _fold(groups, k):
        if k in breaks:
            return groups + [[k]]
        return groups[:-1] + [groups[-1] + [k]]

    groups = reduce(_fold, ids[1:], [[ids[0]]])
    return [Segment(track, i, g) for i, g in enumerate(groups)]


def combine_segments(stack: VelocityStack, segments: List[Segment]) -> VelocityStack:
    """
    Combine the layers of each segment into a single layer of a new stack.

    Velocities are averaged with weights 1/vstd, the uncertainty is
    1/sqrt(sum of weights) and unit vectors are plain means. A segment made
    of a single layer is copied unchanged.
    """
    nsegs = {}
    for seg in segments:
        nsegs[seg.track] = nsegs.get(seg.track, 0) + 1

    layers = []
    for seg in segments:
        first = stack.layers[seg.layers[0]]
        split = nsegs[seg.track] > 1
        name = f'{seg.track}_{seg.index + 1}' if split else seg.track
        frames = tuple(f for k in seg.layers for f in stack.layers[k].frames)
        layers.append(LayerInfo(name, seg.track, first.direction,
                                segment=seg.index if split else None, frames=frames))

    merged = VelocityStack.empty(stack.grid, layers)
    for j, seg in enumerate(segments):
        if len(seg.layers) == 1:
            k = seg.layers[0]
            merged.footprint[j] = stack.footprint[k]
            for name in shared.LAYER_ARRAYS:
                getattr(merged, name)[j] = getattr(stack, name)[k]
            continue
        _combine(stack, seg.layers, merged, j)
    return merged


def _combine(stack, ids, merged, j):
    merged.footprint[j] = np.any(stack.footprint[ids], axis=0)

    vel = np.stack([stack.decoded(shared.VEL, k) for k in ids])
    vstd = np.stack([stack.decoded(shared.VSTD, k) for k in ids])
    weights = 1.0 / vstd
    usable = np.isfinite(vel) & np.isfinite(weights) & (vstd > 0)
    weights = np.where(usable, weights, 0.0)
    wsum = np.sum(weights, axis=0)

    with np.errstate(divide='ignore', invalid='ignore'):
        merged_vel = np.sum(np.where(usable, vel, 0.0) * weights, axis=0) / wsum
        merged_vstd = 1.0 / np.sqrt(wsum)
    merged_vel[wsum == 0] = nan
    merged_vstd[wsum == 0] = nan

    merged.store(shared.VEL, j, merged_vel)
    merged.store(shared.VSTD, j, merged_vstd)
    for name in (shared.COMP_E, shared.COMP_N, shared.COMP_U):
        comps = np.stack([stack.decoded(name, k) for k in ids])
        merged.store(name, j, nanmean(comps, axis=0))
