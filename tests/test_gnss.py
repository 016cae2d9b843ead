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
This Python module contains tests for the gnss.py LOSDecomp module.
"""
import numpy as np
import pytest
from numpy import nan
from numpy.testing import assert_allclose

import losdecomp.constants as C
from losdecomp.core import shared
from losdecomp.core.shared import ConfigurationError, DataQualityWarning, ReferenceField
from losdecomp.core.unify import unify_grids
from losdecomp.core.gnss import (ref_to_gnss, polynomial_surface, filter_surface, gnss_residual,
                                 validate_gnss_params)
from tests.common import make_frame, lattice, unit_vector

GNSS_E, GNSS_N = 3.0, -1.5


def _ramp(xx, yy):
    return 1.0 + 0.2 * xx - 0.3 * yy


class TestPolynomialSurface:

    def setup_method(self):
        self.xx, self.yy = np.meshgrid(lattice(0, 12), lattice(0, 8))

    def test_degree_one_coefficients(self):
        resid = _ramp(self.xx, self.yy)
        resid[3:5, 2:4] = nan
        surface, coefs = polynomial_surface(self.xx, self.yy, resid, shared.PLANAR)
        # coordinates are centred on the midpoint (5.5, 3.5)
        assert_allclose(coefs, [_ramp(5.5, 3.5), 0.2, -0.3], atol=1e-10)
        assert_allclose(surface, _ramp(self.xx, self.yy), atol=1e-10)

    def test_degree_two(self):
        resid = 2.0 + 0.01 * (self.xx - 5.5) ** 2
        surface, coefs = polynomial_surface(self.xx, self.yy, resid, shared.QUADRATIC)
        assert_allclose(surface, resid, atol=1e-10)
        assert_allclose(coefs[4], 0.01, atol=1e-12)

    def test_invalid_order(self):
        with pytest.raises(ConfigurationError):
            polynomial_surface(self.xx, self.yy, self.xx, 3)


class TestFilterSurface:

    def test_constant_residual(self):
        resid = np.full((9, 9), 2.5)
        resid[4, 4] = nan
        out = filter_surface(resid, 3)
        assert_allclose(out, 2.5)

    def test_gaps_wider_than_window_filled_from_nearest(self):
        resid = np.zeros((10, 10))
        resid[:, 5:] = 1.0
        resid[2:8, 2:8] = nan
        out = filter_surface(resid, 3)
        assert not np.any(np.isnan(out))
        assert out[4, 3] == pytest.approx(0.0)
        assert out[4, 6] == pytest.approx(1.0)

    def test_smooths_noise(self):
        rng = np.random.default_rng(1)
        resid = rng.normal(size=(40, 40))
        out = filter_surface(resid, 7)
        assert np.std(out) < 0.5 * np.std(resid)

    @pytest.mark.parametrize('window', [2, 4, 0, None])
    def test_window_must_be_odd(self, window):
        with pytest.raises(ConfigurationError):
            filter_surface(np.ones((5, 5)), window)


class TestValidation:

    def test_polynomial_order_required(self):
        with pytest.raises(ConfigurationError):
            validate_gnss_params({C.TIE_TO_GNSS: C.POLYNOMIAL_REFERENCING, C.REF_POLY_ORDER: None})

    def test_even_window(self):
        with pytest.raises(ConfigurationError):
            validate_gnss_params({C.TIE_TO_GNSS: C.FILTER_REFERENCING, C.REF_FILTER_WINDOW: 4})

    def test_valid(self):
        validate_gnss_params({C.TIE_TO_GNSS: C.FILTER_REFERENCING, C.REF_FILTER_WINDOW: 5})
        validate_gnss_params({C.TIE_TO_GNSS: C.POLYNOMIAL_REFERENCING, C.REF_POLY_ORDER: 2})
        validate_gnss_params({C.TIE_TO_GNSS: C.NO_REFERENCING})


def test_large_signals_excluded_from_residual():
    xx, yy = np.meshgrid(lattice(0, 20), lattice(0, 20))
    vel = np.zeros((20, 20))
    vel[8:12, 8:12] = 50.0
    resid = gnss_residual(xx, yy, vel, np.full((20, 20), 1.0))
    assert np.all(np.isnan(resid[8:12, 8:12]))
    assert_allclose(resid[0, :], -1.0)


class TestRefToGnss:

    def setup_method(self):
        x, y = lattice(0, 12), lattice(0, 10)
        self.looks = {'001A_00001_000001': unit_vector(C.AV_INC, C.AV_AZ_ASC),
                      '002D_00001_000001': unit_vector(C.AV_INC, C.AV_AZ_DESC)}
        frames = []
        for name, (e, n, _) in self.looks.items():
            los_ref = GNSS_E * e + GNSS_N * n
            frames.append(make_frame(name, x, y, vel=lambda xx, yy, r=los_ref: r + _ramp(xx, yy)))
        # a third frame outside the others, for exterior checks
        frames.append(make_frame('003A_00001_000001', lattice(14, 4), y, vel=1.0))
        self.grid, self.stack = unify_grids(frames, {})
        shape = self.grid.shape
        self.reference = ReferenceField(self.grid.x, self.grid.y, np.full(shape, GNSS_E),
                                        np.full(shape, GNSS_N))
        self.params = {C.TIE_TO_GNSS: C.POLYNOMIAL_REFERENCING, C.REF_POLY_ORDER: 1,
                       C.REF_FILTER_WINDOW: None, C.PROCESSES: 0}

    def _los_ref(self, k):
        e, n, _ = self.looks[self.stack.names[k]]
        return GNSS_E * e + GNSS_N * n

    def test_polynomial_referencing_removes_residual(self):
        corrections = ref_to_gnss(self.stack, self.reference, self.params)
        for k in range(2):
            valid = self.stack.valid(k)
            assert_allclose(self.stack.vel[k][valid], self._los_ref(k), atol=1e-10)
            xx, yy = self.grid.meshgrid()
            assert_allclose(corrections[k][valid], _ramp(xx, yy)[valid], atol=1e-10)

    def test_filter_referencing(self):
        self.params.update({C.TIE_TO_GNSS: C.FILTER_REFERENCING, C.REF_FILTER_WINDOW: 3})
        ref_to_gnss(self.stack, self.reference, self.params)
        for k in range(2):
            valid = self.stack.valid(k)
            # a linear ramp is reproduced by the moving average away from the edges
            interior = valid.copy()
            interior[[0, -1], :] = False
            interior[:, [0, -1]] = False
            interior[:, self.grid.x >= 11] = False
            assert_allclose(self.stack.vel[k][interior], self._los_ref(k), atol=1e-10)

    def test_exterior_preserved(self, processes):
        self.params[C.PROCESSES] = processes
        footprint = self.stack.footprint.copy()
        corrections = ref_to_gnss(self.stack, self.reference, self.params)
        assert np.all(self.stack.vel[~footprint] == 0)
        assert np.all(corrections[~footprint] == 0)

    def test_empty_layer_skipped(self):
        self.stack.vel[1][self.stack.footprint[1]] = nan
        with pytest.warns(DataQualityWarning, match='skipping referencing'):
            corrections = ref_to_gnss(self.stack, self.reference, self.params)
        assert np.all(np.isnan(corrections[1][self.stack.footprint[1]]))
        assert self.stack.valid(0).any()

    def test_no_referencing(self):
        before = self.stack.vel.copy()
        corrections = ref_to_gnss(self.stack, self.reference, {C.TIE_TO_GNSS: C.NO_REFERENCING})
        np.testing.assert_array_equal(self.stack.vel, before)
        assert not corrections.any()

    def test_missing_polynomial_order(self):
        self.params[C.REF_POLY_ORDER] = None
        with pytest.raises(ConfigurationError):
            ref_to_gnss(self.stack, self.reference, self.params)

    def test_missing_reference(self):
        with pytest.raises(ConfigurationError, match=C.GNSS_FILE):
            ref_to_gnss(self.stack, None, self.params)


@pytest.mark.parametrize('method, options', [(C.FILTER_REFERENCING, {C.REF_FILTER_WINDOW: 3}),
                                             (C.POLYNOMIAL_REFERENCING, {C.REF_POLY_ORDER: 1})])
def test_large_signal_survives_referencing(method, options):
    x = y = lattice(0, 20)

    def _subsidence(xx, yy):
        vel = np.full(xx.shape, 2.0)
        vel[8:12, 8:12] = 50.0
        return vel

    grid, stack = unify_grids([make_frame('001A_00001_000001', x, y, vel=_subsidence)], {})
    zeros = np.zeros(grid.shape)
    params = {C.TIE_TO_GNSS: method, C.PROCESSES: 0}
    params.update(options)
    ref_to_gnss(stack, ReferenceField(grid.x, grid.y, zeros, zeros), params)
    assert np.count_nonzero(stack.valid(0)) == 400
    assert_allclose(stack.vel[0, 8:12, 8:12], 48.0, atol=1e-10)
    assert_allclose(stack.vel[0, :8, :], 0.0, atol=1e-10)
