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
This Python module contains fixtures for use in the LOSDecomp test suite.
"""
import numpy as np
import pytest

import losdecomp.constants as C
from tests.common import make_frame, lattice


@pytest.fixture
def params():
    """
    Default processing parameters for core functions.
    """
    return {
        C.USE_MASK: 0,
        C.DS_FACTOR: 0,
        C.DS_METHOD: 'mean',
        C.MERGE_ALONG: C.MERGE_AND_COMBINE,
        C.MERGE_ALONG_FUNC: C.MEAN_OFFSET,
        C.MERGE_ACROSS: 0,
        C.REF_XMIN: 0.0, C.REF_XMAX: 0.0, C.REF_YMIN: 0.0, C.REF_YMAX: 0.0,
        C.PLATE_MOTION: 0,
        C.TIE_TO_GNSS: C.NO_REFERENCING,
        C.GNSS_UNCER: 0,
        C.REF_POLY_ORDER: None,
        C.REF_FILTER_WINDOW: None,
        C.DECOMP_METHOD: C.ZERO_NORTH,
        C.COND_THRESHOLD: 0.0,
        C.VAR_THRESHOLD: 0.0,
        C.PROCESSES: 0,
    }


@pytest.fixture(params=[0, 2])
def processes(request):
    return request.param


def _east(xx, yy):
    return 1.0 + 0.1 * xx


def _up(xx, yy):
    return -2.0 + 0.05 * yy


@pytest.fixture
def asc_desc_frames():
    """
    An ascending and a descending frame overlapping in columns 5 to 9 of a
    10 x 15 grid, generated from known East and Up velocities.
    """
    y = lattice(0, 10)
    asc = make_frame('001A_00001_000001', lattice(0, 10), y, east=_east, up=_up)
    desc = make_frame('002D_00001_000001', lattice(5, 10), y, east=_east, up=_up)
    return [asc, desc]


@pytest.fixture
def truth():
    xx, yy = np.meshgrid(lattice(0, 15), lattice(0, 10))
    return _east(xx, yy), _up(xx, yy)
