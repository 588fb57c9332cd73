"""
Line-oriented trajectory files

Input:  one waypoint per line, "x y theta" (radians), whitespace separated.
Output: "x y theta" rows for states, "u0 u1" rows for controls.
"""
import math
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import List, Tuple, Union

import numpy as np

from models.errors import MalformedInputError

PathLike = Union[str, Path]

N_FIELDS = 3


def parse_waypoint_line(line: str) -> Tuple[List[float], bool]:
    """
    Read up to three numbers from a line.

    Reading stops at the first missing or non-numeric field and the
    remaining fields stay 0. Returns (values, well_formed).
    """
    values = [0.0] * N_FIELDS
    tokens = line.split()
    n_read = 0
    for i in range(min(N_FIELDS, len(tokens))):
        try:
            value = float(tokens[i])
        except ValueError:
            break
        if not math.isfinite(value):
            break
        values[i] = value
        n_read += 1
    return values, n_read == N_FIELDS


def load_waypoints(path: PathLike, strict: bool = False) -> np.ndarray:
    """
    Load reference waypoints as an (n, 3) array.

    Blank lines and '#' comments are skipped. In tolerant mode short or
    malformed lines are zero-filled; in strict mode they are rejected.
    At least two well-formed lines are required either way. Bytes that
    are not UTF-8 decode to U+FFFD and make their field malformed.
    """
    path = Path(path)
    if not path.is_file():
        raise MalformedInputError(f"cannot open reference state file: {path}")

    rows = []
    n_well_formed = 0
    with open(path, encoding='utf-8', errors='replace') as f:
        for lineno, line in enumerate(f, 1):
            content = line.split('#', 1)[0].strip()
            if not content:
                continue
            values, well_formed = parse_waypoint_line(content)
            if not well_formed and strict:
                raise MalformedInputError(
                    f"{path}:{lineno}: expected {N_FIELDS} numeric fields, got {content!r}")
            n_well_formed += well_formed
            rows.append(values)

    if not rows:
        raise MalformedInputError(f"reference state file is empty: {path}")
    if n_well_formed < 2:
        raise MalformedInputError(
            f"{path}: need at least 2 well-formed waypoints, found {n_well_formed}")

    return np.array(rows, dtype=float)


@contextmanager
def _atomic_open(path: Path):
    """
    Yield a temp file beside path and move it over path on success, so a
    crash or abort never leaves a half-written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            yield f
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def write_rows(path: PathLike, rows, n_cols: int) -> Path:
    """Write rows atomically at full double precision"""
    path = Path(path)
    data = np.asarray(rows, dtype=float).reshape(-1, n_cols)
    with _atomic_open(path) as f:
        np.savetxt(f, data, fmt='%.17g', delimiter=' ')
    return path


def write_text(path: PathLike, text: str) -> Path:
    path = Path(path)
    with _atomic_open(path) as f:
        f.write(text)
    return path


def read_rows(path: PathLike, n_cols: int) -> np.ndarray:
    """Read a file written by write_rows back into an (n, n_cols) array"""
    path = Path(path)
    if path.stat().st_size == 0:
        return np.empty((0, n_cols))
    return np.loadtxt(path, ndmin=2).reshape(-1, n_cols)


def write_states(path: PathLike, states) -> Path:
    return write_rows(path, states, 3)


def write_controls(path: PathLike, controls) -> Path:
    return write_rows(path, controls, 2)
