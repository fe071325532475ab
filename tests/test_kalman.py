"""
Unit tests for the constant-velocity filter.
"""
import numpy as np
import pytest

from shuttletrack.tracking import KalmanConfig, KalmanFilter3D


def test_initial_state():
    kf = KalmanFilter3D(initial_position=(1, 2, 3))

    np.testing.assert_array_equal(kf.position, [1, 2, 3])
    np.testing.assert_array_equal(kf.velocity, [0, 0, 0])
    assert kf.position_variance == 1.0
    assert kf.velocity_variance == 1.0


def test_single_update_matches_equations():
    """Test one update step against the filter equations."""
    kf = KalmanFilter3D(KalmanConfig(measurement_noise=1.0))
    kf.update((1, 0, 0), 0.1)

    predicted_p = 1.0 + 1.0 * 0.01 + 0.1
    gain = predicted_p / (predicted_p + 1.0)

    np.testing.assert_allclose(kf.position, [gain, 0, 0])
    np.testing.assert_allclose(kf.velocity, [10.0, 0, 0])
    assert kf.position_variance == pytest.approx(predicted_p * (1 - gain))
    assert kf.velocity_variance == pytest.approx(1.1)


def test_identical_measurements_converge():
    """Test repeated measurements pull position to the value and velocity to zero."""
    kf = KalmanFilter3D()
    target = np.array([1.0, 2.0, 3.0])

    for _ in range(200):
        kf.update(target, 0.1)

    np.testing.assert_allclose(kf.position, target, atol=1e-3)
    np.testing.assert_allclose(kf.velocity, [0, 0, 0], atol=1e-2)


def test_tiny_dt_keeps_velocity():
    """Test velocity is not re-derived for dt below min_dt."""
    kf = KalmanFilter3D()
    kf.update((1, 0, 0), 0.1)
    velocity = kf.velocity.copy()

    kf.update((1.5, 0, 0), 0.0005)
    np.testing.assert_array_equal(kf.velocity, velocity)


def test_predict_position_zero_is_identity():
    kf = KalmanFilter3D()
    kf.update((0.3, -0.2, 5.0), 0.1)

    assert np.array_equal(kf.predict_position(0), kf.position)


def test_predict_position_does_not_mutate():
    kf = KalmanFilter3D()
    kf.update((1, 0, 0), 0.1)
    before = kf.position.copy()

    ahead = kf.predict_position(0.5)

    np.testing.assert_allclose(ahead, before + kf.velocity * 0.5)
    np.testing.assert_array_equal(kf.position, before)


def test_predict_grows_variance():
    kf = KalmanFilter3D()
    kf.predict(0.1)

    assert kf.position_variance == pytest.approx(1.0 + 0.01 + 0.1)
    assert kf.velocity_variance == pytest.approx(1.1)


def test_reset():
    kf = KalmanFilter3D()
    kf.update((1, 0, 0), 0.1)
    kf.reset((4, 5, 6))

    np.testing.assert_array_equal(kf.position, [4, 5, 6])
    np.testing.assert_array_equal(kf.velocity, [0, 0, 0])
    assert kf.position_variance == 1.0
    assert kf.velocity_variance == 1.0


def test_config_validation():
    with pytest.raises(ValueError):
        KalmanConfig(measurement_noise=0.0)
    with pytest.raises(ValueError):
        KalmanConfig(process_noise=-1.0)
