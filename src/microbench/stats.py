"""Statistical analysis for benchmark samples.

Pure functions over samples of per-invocation periods (seconds):
- Mean, Bessel-corrected variance and standard error
- 95% confidence margin of error using a Student's t table
- Mann-Whitney U / z comparison of two samples
"""

from __future__ import annotations

import enum
import math
from collections.abc import Sequence
from dataclasses import dataclass

# Two-tailed critical values of Student's t for 95% confidence, by degrees
# of freedom. Beyond 30 the normal approximation is used.
T_TABLE: dict[int, float] = {
    1: 12.706,
    2: 4.303,
    3: 3.182,
    4: 2.776,
    5: 2.571,
    6: 2.447,
    7: 2.365,
    8: 2.306,
    9: 2.262,
    10: 2.228,
    11: 2.201,
    12: 2.179,
    13: 2.16,
    14: 2.145,
    15: 2.131,
    16: 2.12,
    17: 2.11,
    18: 2.101,
    19: 2.093,
    20: 2.086,
    21: 2.08,
    22: 2.074,
    23: 2.069,
    24: 2.064,
    25: 2.06,
    26: 2.056,
    27: 2.052,
    28: 2.048,
    29: 2.045,
    30: 2.042,
}
T_INFINITY = 1.96

# Critical Mann-Whitney U values for 95% confidence. Keyed by the larger
# sample size; entry ``i`` is for a smaller sample size of ``i + 3``.
U_TABLE: dict[int, tuple[int, ...]] = {
    5: (0, 1, 2),
    6: (1, 2, 3, 5),
    7: (1, 3, 5, 6, 8),
    8: (2, 4, 6, 8, 10, 13),
    9: (2, 4, 7, 10, 12, 15, 17),
    10: (3, 5, 8, 11, 14, 17, 20, 23),
    11: (3, 6, 9, 13, 16, 19, 23, 26, 30),
    12: (4, 7, 11, 14, 18, 22, 26, 29, 33, 37),
    13: (4, 8, 12, 16, 20, 24, 28, 33, 37, 41, 45),
    14: (5, 9, 13, 17, 22, 26, 31, 36, 40, 45, 50, 55),
    15: (5, 10, 14, 19, 24, 29, 34, 39, 44, 49, 54, 59, 64),
    16: (6, 11, 15, 21, 26, 31, 37, 42, 47, 53, 59, 64, 70, 75),
    17: (6, 11, 17, 22, 28, 34, 39, 45, 51, 57, 63, 67, 75, 81, 87),
    18: (7, 12, 18, 24, 30, 36, 42, 48, 55, 61, 67, 74, 80, 86, 93, 99),
    19: (7, 13, 19, 25, 32, 38, 45, 52, 58, 65, 72, 78, 85, 92, 99, 106, 113),
    20: (8, 14, 20, 27, 34, 41, 48, 55, 62, 69, 76, 83, 90, 98, 105, 112, 119, 127),
    21: (
        8, 15, 22, 29, 36, 43, 50, 58, 65, 73, 80, 88, 96, 103, 111, 119, 126,
        134, 142,
    ),
    22: (
        9, 16, 23, 30, 38, 45, 53, 61, 69, 77, 85, 93, 101, 109, 117, 125, 133,
        141, 150, 158,
    ),
    23: (
        9, 17, 24, 32, 40, 48, 56, 64, 73, 81, 89, 98, 106, 115, 123, 132, 140,
        149, 157, 166, 175,
    ),
    24: (
        10, 17, 25, 33, 42, 50, 59, 67, 76, 85, 94, 102, 111, 120, 129, 138,
        147, 156, 165, 174, 183, 192,
    ),
    25: (
        10, 18, 27, 35, 44, 53, 62, 71, 80, 89, 98, 107, 117, 126, 135, 145,
        154, 163, 173, 182, 192, 201, 211,
    ),
    26: (
        11, 19, 28, 37, 46, 55, 64, 74, 83, 93, 102, 112, 122, 132, 141, 151,
        161, 171, 181, 191, 200, 210, 220, 230,
    ),
    27: (
        11, 20, 29, 38, 48, 57, 67, 77, 87, 97, 107, 118, 125, 138, 147, 158,
        168, 178, 188, 199, 209, 219, 230, 240, 250,
    ),
    28: (
        12, 21, 30, 40, 50, 60, 70, 80, 90, 101, 111, 122, 132, 143, 154, 164,
        175, 186, 196, 207, 218, 228, 239, 250, 261, 272,
    ),
    29: (
        13, 22, 32, 42, 52, 62, 73, 83, 94, 105, 116, 127, 138, 149, 160, 171,
        182, 193, 204, 215, 226, 238, 249, 260, 271, 282, 294,
    ),
    30: (
        13, 23, 33, 43, 54, 65, 76, 87, 98, 109, 120, 131, 143, 154, 166, 177,
        189, 200, 212, 223, 235, 247, 258, 270, 282, 293, 305, 317,
    ),
}

# Samples smaller than this cannot reach significance in the U table.
MIN_COMPARABLE_SIZE = 5
# Combined size above which the normal approximation replaces the U table.
Z_TEST_THRESHOLD = 30
Z_CRITICAL = 1.96


class Comparison(enum.Enum):
    """Outcome of comparing the periods of two samples."""

    FASTER = 1
    SLOWER = -1
    INDETERMINATE = 0


@dataclass(frozen=True)
class Stats:
    """Statistical summary of a benchmark sample.

    Attributes:
        sample: Per-cycle periods in chronological order (seconds).
        mean: Arithmetic mean of the sample.
        variance: Sample variance (Bessel-corrected).
        std_dev: Sample standard deviation.
        std_err_mean: Standard error of the mean.
        margin_of_error: Half-width of the 95% confidence interval.
        relative_margin_of_error: Margin of error as a percentage of the mean.
        hz: Operations per second (1 / mean), 0 for an empty sample.
    """

    sample: tuple[float, ...] = ()
    mean: float = 0.0
    variance: float = 0.0
    std_dev: float = 0.0
    std_err_mean: float = 0.0
    margin_of_error: float = 0.0
    relative_margin_of_error: float = 0.0
    hz: float = 0.0

    @property
    def size(self) -> int:
        return len(self.sample)


def mean(sample: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sample."""
    if not sample:
        return 0.0
    return math.fsum(sample) / len(sample)


def variance(sample: Sequence[float], sample_mean: float | None = None) -> float:
    """Sample variance with Bessel's correction; 0.0 when ``n <= 1``.

    Args:
        sample: Observations.
        sample_mean: Precomputed mean of ``sample`` (computed when omitted).

    Returns:
        The unbiased variance estimate.
    """
    n = len(sample)
    if n <= 1:
        return 0.0
    if sample_mean is None:
        sample_mean = mean(sample)
    return math.fsum((x - sample_mean) ** 2 for x in sample) / (n - 1)


def std_dev(sample: Sequence[float]) -> float:
    return math.sqrt(variance(sample))


def std_error(sample: Sequence[float]) -> float:
    """Standard error of the mean: ``sqrt(variance) / sqrt(n)``."""
    n = len(sample)
    if n == 0:
        return 0.0
    return math.sqrt(variance(sample)) / math.sqrt(n)


def critical_t(degrees_of_freedom: int) -> float:
    """Two-tailed 95% Student's t critical value.

    Degrees of freedom below 1 are treated as 1; above 30 the z value 1.96
    is returned.
    """
    df = max(1, round(degrees_of_freedom))
    return T_TABLE.get(df, T_INFINITY)


def margin_of_error(std_err: float, critical: float) -> float:
    return std_err * critical


def relative_margin_of_error(moe: float, sample_mean: float) -> float:
    """Margin of error as a percentage of the mean (0 when the mean is 0)."""
    if sample_mean == 0:
        return 0.0
    return moe / sample_mean * 100


def compute_stats(sample: Sequence[float]) -> Stats:
    """Compute every statistic from scratch for the given sample.

    Args:
        sample: Per-cycle periods in seconds.

    Returns:
        A fresh Stats; all fields are zero for an empty sample.
    """
    if not sample:
        return Stats()

    m = mean(sample)
    var = variance(sample, m)
    sd = math.sqrt(var)
    sem = sd / math.sqrt(len(sample))
    moe = margin_of_error(sem, critical_t(len(sample) - 1))

    return Stats(
        sample=tuple(sample),
        mean=m,
        variance=var,
        std_dev=sd,
        std_err_mean=sem,
        margin_of_error=moe,
        relative_margin_of_error=relative_margin_of_error(moe, m),
        hz=1 / m if m > 0 else 0.0,
    )


def _u_statistic(sample_a: Sequence[float], sample_b: Sequence[float]) -> float:
    """Score every pair: 1 where ``a`` is the larger value, 0.5 on ties."""
    total = 0.0
    for a in sample_a:
        for b in sample_b:
            if b < a:
                total += 1.0
            elif b == a:
                total += 0.5
    return total


def z_statistic(u: float, size_a: int, size_b: int) -> float:
    """Normal approximation of the U statistic."""
    product = size_a * size_b
    return (u - product / 2) / math.sqrt(product * (size_a + size_b + 1) / 12)


def critical_u(size_a: int, size_b: int) -> int | None:
    """Tabulated critical U for the two sizes, or None outside the table."""
    max_size = max(size_a, size_b)
    min_size = min(size_a, size_b)
    row = U_TABLE.get(max_size)
    if row is None or min_size < 3 or min_size - 3 >= len(row):
        return None
    return row[min_size - 3]


def compare(sample_a: Sequence[float], sample_b: Sequence[float]) -> Comparison:
    """Decide whether ``sample_a`` has significantly lower periods than ``sample_b``.

    Uses the Mann-Whitney U test with tabulated critical values for small
    samples and its z approximation once the combined size exceeds 30.

    Args:
        sample_a: Periods of the first benchmark.
        sample_b: Periods of the second benchmark.

    Returns:
        FASTER if ``a`` is faster, SLOWER if it is slower, INDETERMINATE when
        no significant difference is found or either sample is too small.
    """
    size_a = len(sample_a)
    size_b = len(sample_b)
    if min(size_a, size_b) < MIN_COMPARABLE_SIZE:
        return Comparison.INDETERMINATE

    # u_a counts pairs where a is slower; the smaller U marks the faster sample.
    u_a = _u_statistic(sample_a, sample_b)
    u_b = _u_statistic(sample_b, sample_a)
    u = min(u_a, u_b)
    ordering = Comparison.FASTER if u == u_a else Comparison.SLOWER

    if size_a + size_b > Z_TEST_THRESHOLD:
        if abs(z_statistic(u, size_a, size_b)) > Z_CRITICAL:
            return ordering
        return Comparison.INDETERMINATE

    critical = critical_u(size_a, size_b)
    if critical is not None and u <= critical:
        return ordering
    return Comparison.INDETERMINATE
