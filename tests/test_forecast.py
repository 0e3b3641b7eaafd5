"""Tests for forecast outputs."""

import numpy as np
import pandas as pd
import pytest
import torch

from forecast_pipeline.exceptions import InvalidConfigurationError, InvalidQuantileError
from forecast_pipeline.forecast import DistributionForecast, SampleForecast


class TestSampleForecast:
    """Test sample-based forecasts."""

    def test_mean(self):
        """Test the per-step arithmetic mean across samples."""
        samples = np.array([[1.0, 2.0], [3.0, 6.0]])
        forecast = SampleForecast(samples, "2020-01-01", "D")
        np.testing.assert_allclose(forecast.mean, [2.0, 4.0])

    def test_median_odd_count_exact(self):
        """Test that q=0.5 with an odd sample count is the middle order statistic."""
        rng = np.random.default_rng(0)
        samples = rng.normal(size=(101, 12))
        forecast = SampleForecast(samples, "2020-01-01", "D")
        expected = np.sort(samples, axis=0)[50]
        np.testing.assert_array_equal(forecast.quantile(0.5), expected)

    def test_interpolation(self):
        """Test linear interpolation between bracketing order statistics."""
        samples = np.array([[0.0], [10.0], [20.0], [30.0]])
        forecast = SampleForecast(samples, "2020-01-01", "D")
        # position 0.5 * 3 = 1.5 -> halfway between 10 and 20
        np.testing.assert_allclose(forecast.quantile(0.5), [15.0])
        np.testing.assert_allclose(forecast.quantile(0.1), [3.0])

    def test_quantile_monotone(self):
        """Test that quantiles never decrease with the level."""
        rng = np.random.default_rng(1)
        forecast = SampleForecast(rng.standard_t(2, size=(37, 20)), "2020-01-01", "H")
        levels = np.linspace(0.01, 0.99, 50)
        quantiles = np.stack([forecast.quantile(q) for q in levels])
        assert np.all(np.diff(quantiles, axis=0) >= 0)

    @pytest.mark.parametrize("q", [0.0, 1.0, -0.1, 1.5, "abc"])
    def test_invalid_quantile(self, q):
        """Test that levels outside (0, 1) are rejected."""
        forecast = SampleForecast(np.zeros((3, 4)), "2020-01-01", "D")
        with pytest.raises(InvalidQuantileError):
            forecast.quantile(q)

    def test_string_quantile(self):
        """Test that a level may be given as a string."""
        forecast = SampleForecast(np.array([[1.0], [2.0], [3.0]]), "2020-01-01", "D")
        np.testing.assert_allclose(forecast.quantile("0.5"), [2.0])

    def test_single_sample(self):
        """Test that one sample is enough."""
        forecast = SampleForecast(np.array([[1.0, 2.0]]), "2020-01-01", "D")
        np.testing.assert_allclose(forecast.quantile(0.9), [1.0, 2.0])

    def test_invalid_shapes(self):
        """Test construction requirements."""
        with pytest.raises(InvalidConfigurationError):
            SampleForecast(np.zeros((0, 4)), "2020-01-01", "D")
        with pytest.raises(InvalidConfigurationError):
            SampleForecast(np.zeros((3, 0)), "2020-01-01", "D")
        with pytest.raises(InvalidConfigurationError):
            SampleForecast(np.zeros(3), "2020-01-01", "D")

    def test_immutable(self):
        """Test that stored samples cannot be changed through the forecast."""
        samples = np.zeros((2, 3))
        forecast = SampleForecast(samples, "2020-01-01", "D")
        samples[0, 0] = 5.0
        assert forecast.samples[0, 0] == 0.0
        with pytest.raises(ValueError):
            forecast.samples[0, 0] = 1.0

    def test_index(self):
        """Test horizon timestamps."""
        forecast = SampleForecast(np.zeros((2, 12)), "1959-01-01", "M")
        assert forecast.prediction_length == 12
        assert forecast.index[0] == pd.Timestamp("1959-01-01")
        assert forecast.index[-1] == pd.Timestamp("1959-12-01")
        assert list(forecast.mean_ts.index) == list(forecast.index)

    def test_index_month_end(self):
        """Test horizon timestamps of a month-end series."""
        forecast = SampleForecast(np.zeros((2, 3)), "2020-01-31", "M")
        assert list(forecast.index) == [
            pd.Timestamp("2020-01-31"),
            pd.Timestamp("2020-02-29"),
            pd.Timestamp("2020-03-31"),
        ]

    def test_prediction_interval(self):
        """Test the central interval."""
        samples = np.arange(101, dtype=float).reshape(101, 1)
        forecast = SampleForecast(samples, "2020-01-01", "D")
        lower, upper = forecast.prediction_interval(0.8)
        np.testing.assert_allclose(lower, [10.0])
        np.testing.assert_allclose(upper, [90.0])

    def test_multivariate(self):
        """Test samples with a variate axis."""
        samples = np.random.default_rng(0).normal(size=(10, 5, 3))
        forecast = SampleForecast(samples, "2020-01-01", "D")
        assert forecast.dim() == 3
        assert forecast.mean.shape == (5, 3)
        assert forecast.quantile(0.3).shape == (5, 3)
        univariate = forecast.copy_dim(1)
        np.testing.assert_allclose(univariate.mean, samples[:, :, 1].mean(axis=0))


class TestDistributionForecast:
    """Test parametric forecasts."""

    def make_forecast(self):
        dist = torch.distributions.Normal(torch.arange(4.0), torch.ones(4))
        return DistributionForecast(dist, "2020-01-01", "D")

    def test_mean(self):
        """Test the mean of the distribution."""
        np.testing.assert_allclose(self.make_forecast().mean, [0.0, 1.0, 2.0, 3.0])

    def test_quantile(self):
        """Test quantiles from the inverse CDF."""
        forecast = self.make_forecast()
        np.testing.assert_allclose(forecast.quantile(0.5), [0.0, 1.0, 2.0, 3.0], atol=1e-6)
        upper = forecast.quantile(0.975)
        np.testing.assert_allclose(upper - np.arange(4.0), 1.959964, atol=1e-4)

    def test_quantile_monotone(self):
        """Test that quantiles never decrease with the level."""
        forecast = self.make_forecast()
        assert np.all(forecast.quantile(0.2) <= forecast.quantile(0.8))

    def test_invalid_quantile(self):
        """Test that levels outside (0, 1) are rejected."""
        with pytest.raises(InvalidQuantileError):
            self.make_forecast().quantile(1.0)

    def test_to_sample_forecast(self):
        """Test drawing trajectories."""
        samples = self.make_forecast().to_sample_forecast(num_samples=50, seed=0)
        assert samples.samples.shape == (50, 4)
        again = self.make_forecast().to_sample_forecast(num_samples=50, seed=0)
        np.testing.assert_array_equal(samples.samples, again.samples)

    def test_prediction_length(self):
        """Test horizon derived from the batch shape."""
        assert self.make_forecast().prediction_length == 4
        with pytest.raises(InvalidConfigurationError):
            DistributionForecast(torch.distributions.Normal(torch.tensor(0.0), torch.tensor(1.0)), "2020-01-01", "D")

    def test_student_t_quantile(self):
        """Test quantiles of a distribution without an inverse CDF."""
        dist = torch.distributions.StudentT(3.0, torch.zeros(4), torch.ones(4))
        forecast = DistributionForecast(dist, "2020-01-01", "D")

        upper = forecast.quantile(0.9)

        # 90% quantile of Student's t with 3 degrees of freedom
        np.testing.assert_allclose(upper, np.full(4, 1.6377), atol=0.15)
        np.testing.assert_array_equal(upper, forecast.quantile(0.9))
        np.testing.assert_allclose(forecast.median, np.zeros(4), atol=0.1)

    def test_student_t_interval(self):
        """Test that sampled fallback quantiles stay ordered."""
        dist = torch.distributions.StudentT(3.0, torch.arange(4.0), torch.ones(4))
        forecast = DistributionForecast(dist, "2020-01-01", "D")

        lower, upper = forecast.prediction_interval(0.8)

        assert np.all(lower <= forecast.median)
        assert np.all(forecast.median <= upper)

    def test_mean_without_closed_form(self):
        """Test the sampled mean of a transformed distribution."""
        base = torch.distributions.Normal(torch.zeros(3), torch.ones(3))
        dist = torch.distributions.TransformedDistribution(
            base, [torch.distributions.AffineTransform(5.0, 2.0)]
        )
        forecast = DistributionForecast(dist, "2020-01-01", "D")

        np.testing.assert_allclose(forecast.mean, np.full(3, 5.0), atol=0.1)
        np.testing.assert_allclose(forecast.quantile(0.5), np.full(3, 5.0), atol=1e-5)
