"""Statistics engine for benchmark samples.

Provides descriptive statistics, linear-interpolation quantiles, IQR
outlier classification, percentile bootstrap confidence intervals, and
the outlier-variance estimate, all in pure Python.

Outliers are counted, never removed: they describe how noisy the
measurement was, they are not a correction.

References:
    Bootstrap CI: Efron, B. & Tibshirani, R. J. (1993). "An
        Introduction to the Bootstrap."
    Outlier fences: Tukey, J. W. (1977). "Exploratory Data Analysis."
    Outlier variance: the lower-bound heuristic used by the criterion
        family of benchmarking tools (B. O'Sullivan, 2009).
"""

from __future__ import annotations

import math
import random
import statistics
from dataclasses import dataclass
from typing import Any, Callable, Sequence

MILD_FENCE = 1.5
SEVERE_FENCE = 3.0
DEFAULT_TAIL_QUANTILE = 0.025


# ---------------------------------------------------------------------------
# Basic statistics
# ---------------------------------------------------------------------------


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean."""
    return statistics.fmean(values)


def variance(values: Sequence[float]) -> float:
    """Sample variance with Bessel's correction (divides by n - 1)."""
    return statistics.variance(values)


def stdev(values: Sequence[float]) -> float:
    """Square root of :func:`variance`."""
    return math.sqrt(variance(values))


def quantile(values: Sequence[float], p: float) -> float:
    """The *p*-quantile of *values* by linear interpolation.

    ``quantile(v, 0)`` is the minimum and ``quantile(v, 1)`` the maximum.
    Input does not need to be sorted.
    """
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"Quantile fraction must be in [0, 1] (got {p}).")
    return _percentile(sorted(values), p)


def _percentile(sorted_values: Sequence[float], p: float) -> float:
    """Compute the p-th quantile of already-sorted data.

    Equivalent to numpy.percentile with interpolation='linear'.
    """
    n = len(sorted_values)
    if n == 0:
        return float("nan")
    if n == 1:
        return sorted_values[0]

    k = (n - 1) * p
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_values[int(k)]
    d = k - f
    return sorted_values[int(f)] * (1 - d) + sorted_values[int(c)] * d


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DescriptiveStats:
    """Summary statistics for a sample set (nanoseconds)."""

    n: int
    mean: float
    variance: float
    stdev: float
    median: float
    min: float
    max: float
    q1: float  # 25th percentile
    q3: float  # 75th percentile
    iqr: float
    cv: float  # coefficient of variation (stdev/mean)
    tail_quantile: float
    lower_tail: float  # quantile(tail_quantile)
    upper_tail: float  # quantile(1 - tail_quantile)

    def to_dict(self) -> dict[str, float | int]:
        """Serialize to a dict with rounded values."""
        return {
            "n": self.n,
            "mean": round(self.mean, 6),
            "variance": round(self.variance, 6),
            "stdev": round(self.stdev, 6),
            "median": round(self.median, 6),
            "min": round(self.min, 6),
            "max": round(self.max, 6),
            "q1": round(self.q1, 6),
            "q3": round(self.q3, 6),
            "iqr": round(self.iqr, 6),
            "cv": round(self.cv, 6),
            "tail_quantile": self.tail_quantile,
            "lower_tail": round(self.lower_tail, 6),
            "upper_tail": round(self.upper_tail, 6),
        }


def describe(
    values: Sequence[float],
    *,
    tail_quantile: float = DEFAULT_TAIL_QUANTILE,
) -> DescriptiveStats:
    """Compute descriptive statistics for a sample set.

    Args:
        values: Sample values.  At least 1 for location statistics,
            at least 2 for variance.
        tail_quantile: Fraction for the reported lower/upper tail
            quantiles (0.025 gives the 2.5% and 97.5% quantiles).

    Returns:
        DescriptiveStats.  Empty input yields NaN everywhere; a single
        value yields zero variance.
    """
    if not values:
        nan = float("nan")
        return DescriptiveStats(
            n=0,
            mean=nan,
            variance=nan,
            stdev=nan,
            median=nan,
            min=nan,
            max=nan,
            q1=nan,
            q3=nan,
            iqr=nan,
            cv=nan,
            tail_quantile=tail_quantile,
            lower_tail=nan,
            upper_tail=nan,
        )

    data = list(values)
    sorted_v = sorted(data)
    n = len(data)
    m = mean(data)
    if n >= 2:
        var = variance(data)
        sd = math.sqrt(var)
        cv = sd / m if m != 0 else (0.0 if sd == 0 else float("inf"))
    else:
        var = sd = cv = 0.0

    q1 = _percentile(sorted_v, 0.25)
    q3 = _percentile(sorted_v, 0.75)

    return DescriptiveStats(
        n=n,
        mean=m,
        variance=var,
        stdev=sd,
        median=_percentile(sorted_v, 0.5),
        min=sorted_v[0],
        max=sorted_v[-1],
        q1=q1,
        q3=q3,
        iqr=q3 - q1,
        cv=cv,
        tail_quantile=tail_quantile,
        lower_tail=_percentile(sorted_v, tail_quantile),
        upper_tail=_percentile(sorted_v, 1 - tail_quantile),
    )


# ---------------------------------------------------------------------------
# Outlier classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OutlierCounts:
    """How many samples fall into each IQR fence band."""

    low_severe: int = 0
    low_mild: int = 0
    unaffected: int = 0
    high_mild: int = 0
    high_severe: int = 0

    @property
    def total(self) -> int:
        return self.low_severe + self.low_mild + self.unaffected + self.high_mild + self.high_severe

    @property
    def outliers(self) -> int:
        """Samples outside the mild fences, in either direction."""
        return self.total - self.unaffected

    def to_dict(self) -> dict[str, int]:
        return {
            "low_severe": self.low_severe,
            "low_mild": self.low_mild,
            "unaffected": self.unaffected,
            "high_mild": self.high_mild,
            "high_severe": self.high_severe,
        }


def classify_outliers(values: Sequence[float]) -> OutlierCounts:
    """Count samples per outlier band using Tukey's fences.

    With Q1, Q3 the quartiles and IQR = Q3 - Q1:

    * low-severe: ``v < Q1 - 3*IQR``
    * low-mild: ``Q1 - 3*IQR <= v < Q1 - 1.5*IQR``
    * high-mild: ``Q3 + 1.5*IQR < v <= Q3 + 3*IQR``
    * high-severe: ``v > Q3 + 3*IQR``

    Everything else is unaffected.  The counts always sum to ``len(values)``.
    """
    if not values:
        return OutlierCounts()

    sorted_v = sorted(values)
    q1 = _percentile(sorted_v, 0.25)
    q3 = _percentile(sorted_v, 0.75)
    iqr = q3 - q1
    low_severe_fence = q1 - SEVERE_FENCE * iqr
    low_mild_fence = q1 - MILD_FENCE * iqr
    high_mild_fence = q3 + MILD_FENCE * iqr
    high_severe_fence = q3 + SEVERE_FENCE * iqr

    counts = {"low_severe": 0, "low_mild": 0, "unaffected": 0, "high_mild": 0, "high_severe": 0}
    for v in values:
        if v < low_severe_fence:
            counts["low_severe"] += 1
        elif v < low_mild_fence:
            counts["low_mild"] += 1
        elif v > high_severe_fence:
            counts["high_severe"] += 1
        elif v > high_mild_fence:
            counts["high_mild"] += 1
        else:
            counts["unaffected"] += 1
    return OutlierCounts(**counts)


# ---------------------------------------------------------------------------
# Bootstrap confidence intervals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BootstrapEstimate:
    """Percentile-bootstrap confidence interval for one statistic."""

    point: float  # statistic on the original sample set
    lower: float
    upper: float
    confidence_level: float
    n_resamples: int

    def contains(self, value: float) -> bool:
        return self.lower <= value <= self.upper

    def to_dict(self) -> dict[str, Any]:
        return {
            "point": round(self.point, 6),
            "lower": round(self.lower, 6),
            "upper": round(self.upper, 6),
            "confidence_level": self.confidence_level,
            "n_resamples": self.n_resamples,
        }


def bootstrap_estimate(
    values: Sequence[float],
    statistic: Callable[[Sequence[float]], float] = mean,
    *,
    confidence: float = 0.95,
    n_resamples: int = 1000,
    rng: random.Random | None = None,
    seed: int | None = None,
) -> BootstrapEstimate:
    """Percentile bootstrap confidence interval for *statistic*.

    Draws *n_resamples* resamples of ``len(values)`` with replacement,
    evaluates *statistic* on each, sorts the results and reads off the
    ``(1 - confidence) / 2`` tails.  No normality assumption is made,
    which matters for right-skewed timing distributions.

    The interval is widened, if needed, to contain the point estimate.

    Args:
        values: The sample set.
        statistic: Function of a sequence, e.g. :func:`mean`.
        confidence: Confidence level, strictly between 0 and 1.
        n_resamples: Number of bootstrap resamples (at least 1).
        rng: Random source to draw from; takes precedence over *seed*.
        seed: Seed for a fresh ``random.Random`` when *rng* is None.

    Raises:
        ValueError: For an empty sample set, a confidence level outside
            (0, 1), or a non-positive resample count.
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"Confidence level must be strictly between 0 and 1 (got {confidence}).")
    if n_resamples < 1:
        raise ValueError(f"Need at least one bootstrap resample (got {n_resamples}).")
    if not values:
        raise ValueError("Cannot bootstrap an empty sample set.")

    if rng is None:
        rng = random.Random(seed)
    data = list(values)
    k = len(data)
    point = statistic(data)

    resampled = sorted(statistic(rng.choices(data, k=k)) for _ in range(n_resamples))

    alpha = 1 - confidence
    lower_idx = int(math.floor(alpha / 2 * n_resamples))
    upper_idx = int(math.ceil((1 - alpha / 2) * n_resamples)) - 1
    lower_idx = max(0, min(lower_idx, n_resamples - 1))
    upper_idx = max(0, min(upper_idx, n_resamples - 1))

    return BootstrapEstimate(
        point=point,
        lower=min(resampled[lower_idx], point),
        upper=max(resampled[upper_idx], point),
        confidence_level=confidence,
        n_resamples=n_resamples,
    )


def bootstrap_mean_variance(
    values: Sequence[float],
    *,
    confidence: float = 0.95,
    n_resamples: int = 1000,
    seed: int | None = None,
) -> tuple[BootstrapEstimate, BootstrapEstimate]:
    """Bootstrap intervals for the mean and the variance.

    Both draw from one ``random.Random(seed)`` so a seeded call is
    fully reproducible.
    """
    if len(values) < 2:
        raise ValueError(f"Need at least 2 samples for a variance interval (got {len(values)}).")
    rng = random.Random(seed)
    mean_ci = bootstrap_estimate(
        values, mean, confidence=confidence, n_resamples=n_resamples, rng=rng
    )
    variance_ci = bootstrap_estimate(
        values, variance, confidence=confidence, n_resamples=n_resamples, rng=rng
    )
    return mean_ci, variance_ci


# ---------------------------------------------------------------------------
# Variance introduced by outliers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OutlierEffect:
    """Fraction of the observed variance attributable to outliers."""

    fraction: float
    label: str  # unaffected, slight, moderate, severe

    def to_dict(self) -> dict[str, Any]:
        return {"fraction": round(self.fraction, 6), "label": self.label}


def classify_outlier_variance(fraction: float) -> str:
    """Label an outlier-variance fraction.

    < 0.01: unaffected
    < 0.1: slight
    < 0.5: moderate
    otherwise: severe
    """
    if fraction < 0.01:
        return "unaffected"
    if fraction < 0.1:
        return "slight"
    if fraction < 0.5:
        return "moderate"
    return "severe"


def outlier_variance(mean_value: float, variance_value: float, n: int) -> OutlierEffect:
    """Estimate how much of the variance outliers are responsible for.

    Each sample is a block of *n* calls.  The block is modelled as *n*
    "good" call times plus a number ``c`` of calls hit by an external
    disturbance; the result is the smallest share of *variance_value*
    that such disturbances must explain.

    Args:
        mean_value: Mean block time (per-call mean times *n*).
        variance_value: Variance of the block times.
        n: Calls per block.
    """
    if n < 2 or variance_value <= 0 or mean_value <= 0:
        return OutlierEffect(fraction=0.0, label="unaffected")

    a = float(n)
    sb2 = variance_value
    sb = math.sqrt(sb2)
    mu_a = mean_value / a
    mu_g_min = mu_a / 2
    sg = min(mu_g_min / 4, sb / math.sqrt(a))
    sg2 = sg * sg

    def var_out(c: float) -> float:
        ac = a - c
        return (ac / a) * (sb2 - ac * sg2)

    def c_max(x: float) -> float:
        k = mu_a - x
        d = k * k
        ad = a * d
        k0 = -a * ad
        k1 = sb2 - a * sg2 + ad
        det = k1 * k1 - 4 * sg2 * k0
        denom = k1 + math.sqrt(max(det, 0.0))
        if denom == 0:
            return 0.0
        return float(math.floor(-2 * k0 / denom))

    fraction = min(var_out(1), var_out(min(c_max(0), c_max(mu_g_min)))) / sb2
    fraction = min(max(fraction, 0.0), 1.0)
    return OutlierEffect(fraction=fraction, label=classify_outlier_variance(fraction))
