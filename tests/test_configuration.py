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
This Python module contains tests for the configuration.py LOSDecomp module.
"""
from pathlib import Path

import numpy as np
import pytest

import losdecomp.constants as C
from losdecomp.configuration import (Configuration, ConfigurationError, parse_namelist,
                                     set_parameter_value, validate_parameter_value)
from tests.common import write_config, save_field, lattice


@pytest.fixture
def frame_dirs(tmp_path):
    dirs = [tmp_path / 'frames' / '073D_12345_131313', tmp_path / 'frames' / '175A_05500_141414']
    for d in dirs:
        d.mkdir(parents=True)
    return dirs


@pytest.fixture
def gnss_file(tmp_path):
    ones = np.ones((2, 3))
    return save_field(tmp_path / 'gnss.npz', lattice(0, 3), lattice(0, 2), ones, ones)


@pytest.fixture
def gnss_file_with_uncertainties(tmp_path):
    ones = np.ones((2, 3))
    return save_field(tmp_path / 'gnss_sig.npz', lattice(0, 3), lattice(0, 2), ones, ones,
                      ones, ones)


class TestConfiguration:

    def test_defaults(self, tmp_path, frame_dirs):
        params = Configuration(write_config(tmp_path, frame_dirs)).__dict__
        assert params[C.OUT_PREFIX] == 'decomp'
        assert params[C.MERGE_ALONG] == C.MERGE_AND_COMBINE
        assert params[C.MERGE_ALONG_FUNC] == C.MEAN_OFFSET
        assert params[C.TIE_TO_GNSS] == C.NO_REFERENCING
        assert params[C.DECOMP_METHOD] == C.ZERO_NORTH
        assert params[C.COND_THRESHOLD] == 0.0
        assert params[C.PROCESSES] == 0
        assert params[C.TRACK_PREFIX_LEN] == 4
        assert params[C.REF_POLY_ORDER] is None
        assert params[C.GNSS_FILE] is None
        assert params[C.FRAME_DIRS] == [str(d) for d in frame_dirs]

    def test_output_directory_created(self, tmp_path, frame_dirs):
        params = Configuration(write_config(tmp_path, frame_dirs)).__dict__
        assert Path(params[C.OUT_DIR]).is_dir()
        assert isinstance(params[C.OUT_DIR], str)

    def test_values_are_typed(self, tmp_path, frame_dirs):
        conf = write_config(tmp_path, frame_dirs, condthreshold=50, processes=2, dsmethod='median',
                            mergealongfunc=1)
        config = Configuration(conf)
        assert config.condthreshold == 50.0
        assert isinstance(config.condthreshold, float)
        assert config.processes == 2
        assert config.dsmethod == 'median'
        assert config.mergealongfunc == C.PLANAR_OFFSET

    def test_missing_required(self, tmp_path, frame_dirs):
        conf = tmp_path / 'bad.conf'
        conf.write_text(f'outdir: {tmp_path / "out"}\n')
        with pytest.raises(ConfigurationError):
            Configuration(conf)

    @pytest.mark.parametrize('key, value', [(C.MERGE_ALONG, 5), (C.DS_METHOD, 'mode'),
                                            (C.PROCESSES, -1), (C.PROCESSES, 'many'),
                                            (C.REF_POLY_ORDER, 3), (C.DECOMP_METHOD, 4)])
    def test_invalid_values(self, tmp_path, frame_dirs, key, value):
        with pytest.raises(ConfigurationError):
            Configuration(write_config(tmp_path, frame_dirs, **{key: value}))

    def test_missing_path(self, tmp_path, frame_dirs):
        with pytest.raises(ConfigurationError):
            Configuration(write_config(tmp_path, frame_dirs,
                                       gnssfile=str(tmp_path / 'missing.npz')))

    def test_empty_frame_list(self, tmp_path):
        with pytest.raises(ConfigurationError):
            Configuration(write_config(tmp_path, []))


class TestBespokeValidation:

    def test_polynomial_order_required(self, tmp_path, frame_dirs, gnss_file):
        with pytest.raises(ConfigurationError, match=C.REF_POLY_ORDER):
            Configuration(write_config(tmp_path, frame_dirs, tie2gnss=1, gnssfile=gnss_file))

    def test_polynomial_referencing(self, tmp_path, frame_dirs, gnss_file):
        config = Configuration(write_config(tmp_path, frame_dirs, tie2gnss=1, refpolyorder=2,
                                            gnssfile=gnss_file))
        assert config.refpolyorder == 2
        assert config.gnssfile == gnss_file

    @pytest.mark.parametrize('window', [2, 10])
    def test_even_filter_window(self, tmp_path, frame_dirs, gnss_file, window):
        with pytest.raises(ConfigurationError, match='odd'):
            Configuration(write_config(tmp_path, frame_dirs, tie2gnss=2, reffilterwindow=window,
                                       gnssfile=gnss_file))

    def test_filter_window_required(self, tmp_path, frame_dirs, gnss_file):
        with pytest.raises(ConfigurationError):
            Configuration(write_config(tmp_path, frame_dirs, tie2gnss=2, gnssfile=gnss_file))

    @pytest.mark.parametrize('method', [C.REMOVE_NORTH, C.ESTIMATE_NORTH,
                                        C.EAST_NORTH_UP_TWO_STAGE])
    def test_reference_file_required(self, tmp_path, frame_dirs, method):
        with pytest.raises(ConfigurationError, match=C.GNSS_FILE):
            Configuration(write_config(tmp_path, frame_dirs, decompmethod=method))

    def test_uncertainties_required(self, tmp_path, frame_dirs, gnss_file):
        with pytest.raises(ConfigurationError, match='sE and sN'):
            Configuration(write_config(tmp_path, frame_dirs, gnssuncer=1, gnssfile=gnss_file))

    def test_uncertainties_present(self, tmp_path, frame_dirs, gnss_file_with_uncertainties):
        config = Configuration(write_config(tmp_path, frame_dirs, gnssuncer=1, decompmethod=0,
                                            gnssfile=gnss_file_with_uncertainties))
        assert config.gnssuncer == 1

    def test_plate_motion_file_required(self, tmp_path, frame_dirs):
        with pytest.raises(ConfigurationError, match=C.PLATE_MOTION_FILE):
            Configuration(write_config(tmp_path, frame_dirs, platemotion=1))

    def test_across_requires_merged_tracks(self, tmp_path, frame_dirs):
        with pytest.raises(ConfigurationError, match=C.MERGE_ACROSS):
            Configuration(write_config(tmp_path, frame_dirs, mergeacross=1, mergealong=1))


def test_parse_namelist_skips_blank_and_comment_lines(tmp_path):
    nml = tmp_path / 'frames.txt'
    nml.write_text('a/073D_1_1\n\n# removed\n  b/175A_2_2  \n')
    assert parse_namelist(nml) == ['a/073D_1_1', 'b/175A_2_2']


def test_set_parameter_value():
    assert set_parameter_value(int, '3', 0, False, 'processes') == 3
    assert set_parameter_value(int, '', 0, False, 'processes') == 0
    assert set_parameter_value('path', 'a/b', None, False, 'outdir') == Path('a/b')
    with pytest.raises(ConfigurationError):
        set_parameter_value(int, '', None, True, 'processes')


def test_validate_parameter_value():
    assert validate_parameter_value('processes', 2, min_value=0)
    with pytest.raises(ConfigurationError):
        validate_parameter_value('dsfactor', 5, max_value=4)
    with pytest.raises(ConfigurationError):
        validate_parameter_value('dsmethod', 'mode', possible_values=['mean', 'median'])
