from datetime import datetime

from app.location.distance import latitude_span

T0 = datetime(2026, 3, 14, 12, 0, 0)
PARIS = (48.8566, 2.3522)


def north_of(point: tuple[float, float], meters: float) -> tuple[float, float]:
    """Point ``meters`` due north of ``point``."""
    return point[0] + latitude_span(meters), point[1]
