"""Graphical cuts and particle-identification z-lines stored as text files."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

MAX_ZLINES = 22

Point = tuple[float, float]


@dataclass
class Cut:
    """A closed polygon in a two-dimensional plot."""

    name: str = "cut1"
    points: list[Point] = field(default_factory=list)

    def contains(self, x: float, y: float) -> bool:
        """Return True when (x, y) lies inside the polygon (crossing rule)."""
        inside = False
        count = len(self.points)
        if count < 3:
            return False
        for (x1, y1), (x2, y2) in zip(self.points, self.points[1:] + self.points[:1]):
            if (y1 > y) != (y2 > y):
                crossing = x1 + (y - y1) * (x2 - x1) / (y2 - y1)
                if x < crossing:
                    inside = not inside
        return inside


@dataclass
class ZLine:
    """One particle-identification line for a given charge and mass."""

    name: str
    z: int
    a: int
    points: list[Point] = field(default_factory=list)


def write_cut(path, cut: Cut) -> None:
    """Write the point count followed by one "x y" line per point."""
    lines = [str(len(cut.points))]
    lines.extend(f"{x:g} {y:g}" for x, y in cut.points)
    Path(path).write_text("\n".join(lines) + "\n")


def _tokens(path) -> list[str]:
    return Path(path).read_text().split()


def read_cut(path) -> Cut:
    tokens = _tokens(path)
    try:
        count = int(tokens[0])
        numbers = [float(token) for token in tokens[1:]]
    except (IndexError, ValueError) as error:
        raise ValueError(f"{path}: malformed cut file") from error
    if count < 0 or len(numbers) != 2 * count:
        raise ValueError(f"{path}: expected {count} points")
    return Cut(points=list(zip(numbers[0::2], numbers[1::2])))


def zline_path(quad: int) -> str:
    return f"zline/pid_quad{quad}.zline"


def read_zlines(path) -> list[ZLine]:
    """Read a z-line file: a line count, then per line Z, A, a point count and points."""
    tokens = iter(_tokens(path))

    def take(kind):
        try:
            return kind(next(tokens))
        except StopIteration as error:
            raise ValueError(f"{path}: file ends early") from error
        except ValueError as error:
            raise ValueError(f"{path}: malformed value") from error

    count = take(int)
    if not 0 <= count <= MAX_ZLINES:
        raise ValueError(f"{path}: {count} lines, at most {MAX_ZLINES} allowed")
    zlines = []
    for index in range(count):
        z = take(int)
        a = take(int)
        npoints = take(int)
        if npoints < 0:
            raise ValueError(f"{path}: negative point count")
        points = [(take(float), take(float)) for _ in range(npoints)]
        zlines.append(ZLine(f"finger[{index}]", z, a, points))
    return zlines