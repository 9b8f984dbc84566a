"""Tests for the numeric guards."""
from __future__ import annotations

import math

import numpy as np
import pytest

from universalequation.model.errors import NumericInstability
from universalequation.utils import (
    clamp, finite_or_default, freeze, require_finite, safe_div, safe_exp, safe_exp_array, sanitize
)


def test_clamp():
    assert clamp(5.0, 0.0, 1.0) == 1.0
    assert clamp(-5.0, 0.0, 1.0) == 0.0
    assert clamp(0.25, 0.0, 1.0) == 0.25


def test_safe_exp_never_overflows():
    assert math.isfinite(safe_exp(1e6))
    assert safe_exp(-1e6) == pytest.approx(math.exp(-709.0))
    assert np.all(np.isfinite(safe_exp_array(np.array([1e6, 0.0, -1e6]))))


def test_safe_div():
    assert safe_div(1.0, 0.0) == 0.0
    assert safe_div(1.0, float("inf")) == 0.0
    assert safe_div(1.0, 4.0) == 0.25


def test_require_finite():
    assert require_finite(2.0, "x") == 2.0
    with pytest.raises(NumericInstability) as info:
        require_finite(float("nan"), "x")
    assert info.value.label == "x"


def test_finite_or_default_logs(caplog):
    assert finite_or_default(float("inf"), 0.5, "field") == 0.5
    assert "Non-finite value in 'field'" in caplog.text


def test_sanitize_repairs_a_copy():
    values = np.array([1.0, np.nan, np.inf])
    repaired = sanitize(values, 0.0, "column")
    np.testing.assert_array_equal(repaired, [1.0, 0.0, 0.0])
    assert np.isnan(values[1])
    clean = np.ones(3)
    assert sanitize(clean, 0.0, "column") is clean


def test_freeze():
    array = freeze(np.zeros(2))
    with pytest.raises(ValueError):
        array[0] = 1.0
