import math
import random
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from datavault.models import Anomaly, Severity

MIN_SAMPLES = 11
MIN_STD_DEV = 0.1


def severity_for(deviation: float) -> Severity:
    if deviation > 3.5:
        return Severity.HIGH
    if deviation > 2.5:
        return Severity.MEDIUM
    return Severity.LOW


def detect_anomaly(
    column: str,
    values: Sequence[float],
    rng: Optional[random.Random] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Optional[Anomaly]:
    """
    Synthesize one flagged value for a numeric column.

    The candidate sits 2-4 standard deviations from the mean in a random
    direction, clamped to half a range beyond the observed min/max. Columns
    with fewer than 11 values or a std dev of 0.1 or less yield None.
    """
    if len(values) < MIN_SAMPLES:
        return None

    rng = rng or random.Random()
    n = len(values)
    mean = sum(values) / n
    std_dev = math.sqrt(sum((v - mean) ** 2 for v in values) / n)
    if std_dev <= MIN_STD_DEV:
        return None

    lo, hi = min(values), max(values)
    spread = hi - lo

    factor = 2 + rng.random() * 2
    direction = 1 if rng.random() > 0.5 else -1
    candidate = mean + direction * std_dev * factor
    candidate = max(lo - spread * 0.5, min(hi + spread * 0.5, candidate))

    deviation = abs(candidate - mean) / std_dev
    return Anomaly(
        id=uuid.uuid4().hex,
        column=column,
        value=candidate,
        expected=mean,
        deviation=deviation,
        severity=severity_for(deviation),
        timestamp=(clock or (lambda: datetime.now(timezone.utc)))(),
    )
