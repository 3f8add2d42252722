"""Pure scoring helpers for location and map-name guesses."""

from __future__ import annotations

from dataclasses import dataclass
import math
import re

from .utils import Point

REFERENCE_WORLD_SIZE = 3000.0
NAME_MATCH_POINTS = 100
NAME_MATCH_MAX_DISTANCE = 2
MISS_LABEL = "Miss"

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class ScoreStep:
    """Points awarded for guesses up to ``max_distance`` world units away."""

    max_distance: float
    points: int
    label: str = ""


REFERENCE_STEPS: tuple[ScoreStep, ...] = (
    ScoreStep(20, 100, "Perfect!"),
    ScoreStep(50, 80, "Great!"),
    ScoreStep(100, 60, "Nice"),
    ScoreStep(200, 40, "Good"),
    ScoreStep(300, 20, "Meh"),
    ScoreStep(500, 10, "Close-ish.."),
)


def scaled_steps(
    world_size: float,
    steps: tuple[ScoreStep, ...] = REFERENCE_STEPS,
) -> tuple[ScoreStep, ...]:
    """Scale thresholds from the 3000 unit reference map to ``world_size``."""
    scale = world_size / REFERENCE_WORLD_SIZE
    return tuple(ScoreStep(s.max_distance * scale, s.points, s.label) for s in steps)


def distance(a: Point, b: Point) -> float:
    """Euclidean distance between two points."""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def points_for_distance(d: float, steps: tuple[ScoreStep, ...]) -> int:
    """Piecewise-linear score for a distance against a sorted step table.

    A distance exactly on a threshold gets that step's points; between two
    thresholds the points are interpolated and rounded to the nearest integer.
    """
    if d <= steps[0].max_distance:
        return steps[0].points
    if d > steps[-1].max_distance:
        return 0
    for prev, nxt in zip(steps, steps[1:]):
        if d <= nxt.max_distance:
            ratio = (d - prev.max_distance) / (nxt.max_distance - prev.max_distance)
            return _round_half_up(prev.points + (nxt.points - prev.points) * ratio)
    return 0


def label_for_distance(d: float | None, steps: tuple[ScoreStep, ...]) -> str:
    """Return the label of the first step the distance falls under."""
    if d is None:
        return MISS_LABEL
    for step in steps:
        if d <= step.max_distance:
            return step.label
    return MISS_LABEL


def score_location(guess: Point, solution: Point, world_size: float) -> tuple[int, float]:
    """Score a world-space guess; return ``(points, distance)``."""
    d = distance(guess, solution)
    return points_for_distance(d, scaled_steps(world_size)), d


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute; no transpositions)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def normalize_name(text: str) -> str:
    """Lowercase, trim and collapse internal whitespace to single spaces."""
    return _WHITESPACE.sub(" ", text.lower().strip())


def name_distance(guess: str, true_name: str) -> int:
    """Effective distance between a typed guess and the true map name.

    The whole guess with whitespace removed is tried first, so "al basrah"
    matches "albasrah". Otherwise every word is compared on its own and the
    closest one counts, which tolerates filler words around the map name.
    """
    guess = normalize_name(guess)
    true_name = normalize_name(true_name)
    if _WHITESPACE.sub("", guess) == true_name:
        return 0
    return min(levenshtein(true_name, word) for word in guess.split(" "))


def score_name(guess: str, true_name: str) -> tuple[int, int]:
    """Score a map-name guess; return ``(points, effective distance)``."""
    d = name_distance(guess, true_name)
    return (NAME_MATCH_POINTS if d <= NAME_MATCH_MAX_DISTANCE else 0), d


def format_distance(meters: float) -> str:
    """Human readable distance: centimetre precision close up, km far away."""
    if meters < 10:
        return f"{meters:.2f}m"
    if meters < 1000:
        return f"{meters:.0f}m"
    return f"{meters / 1000:.1f}km"
