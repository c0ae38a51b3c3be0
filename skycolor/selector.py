"""Random choice among candidate wallpapers."""

import random
from typing import Optional, Sequence

from skycolor.errors import NoMatchError


def select_wallpaper(
    candidates: Sequence[str],
    period: str = "",
    rng: Optional[random.Random] = None,
) -> str:
    """
    Pick one candidate uniformly at random.

    Args:
        candidates: Candidate file paths
        period: Period name, used in the error message
        rng: Random source (a fresh one is created if omitted)

    Raises:
        NoMatchError: If there are no candidates
    """
    if not candidates:
        raise NoMatchError(period)
    if rng is None:
        rng = random.Random()
    return rng.choice(candidates)
