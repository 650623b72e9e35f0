"""
Mark Six Draw History

Canonical in-memory form of the draw history used by every analyzer and
generator, plus a CSV loader and a synthetic history generator.

Data schema:
    num1-num6 (winning numbers), special_number, date (optional)

Numbers range 1-49. Draws are consumed in ascending date order.
"""
import hashlib
import os
from datetime import datetime, timedelta

import numpy as np
import pandas as pd

from marksix.errors import EmptyHistory, InvalidDraw

NUM_COLS = [f"num{i}" for i in range(1, 7)]
SPECIAL_COL = "special_number"
DATE_COL = "date"
DRAW_COLS = NUM_COLS + [SPECIAL_COL]
ALL_NUMBERS = list(range(1, 50))
TOTAL_NUMBERS = 49
NUMBERS_PER_DRAW = 7

DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")
CSV_PATH = os.path.join(DATA_DIR, "mark6_results.csv")


# ── Construction ─────────────────────────────────────────────────────────

def _record_field(record, *names, default=None):
    for name in names:
        if name in record:
            return record[name]
    return default


def to_frame(records):
    """
    Build the canonical history frame from draw records.

    Each record is a mapping with ``winning_numbers`` (6 ints),
    ``special_number`` and an optional ``draw_date``. The camelCase keys of
    the web layer (``winningNumbers``, ``specialNumber``, ``drawDate``) are
    accepted too.
    """
    rows = []
    for record in records:
        winning = list(_record_field(record, "winning_numbers", "winningNumbers", default=[]))
        special = _record_field(record, "special_number", "specialNumber")
        draw_date = _record_field(record, "draw_date", "drawDate", "date")
        if len(winning) != 6 or special is None:
            raise InvalidDraw(f"Draw record must have 6 winning numbers and a special number: {record}")
        row = {col: int(n) for col, n in zip(NUM_COLS, winning)}
        row[SPECIAL_COL] = int(special)
        row[DATE_COL] = draw_date
        rows.append(row)

    df = pd.DataFrame(rows, columns=DRAW_COLS + [DATE_COL])
    if df[DATE_COL].isna().all():
        df = df.drop(columns=[DATE_COL])
    else:
        df[DATE_COL] = pd.to_datetime(df[DATE_COL])
    return validate_history(df)


def validate_history(df):
    """Raise InvalidDraw if any row breaks the draw invariants."""
    missing = [c for c in DRAW_COLS if c not in df.columns]
    if missing:
        raise InvalidDraw(f"History is missing columns: {missing}")

    matrix = df[DRAW_COLS].to_numpy()
    if matrix.size == 0:
        return df
    if ((matrix < 1) | (matrix > TOTAL_NUMBERS)).any():
        raise InvalidDraw("All draw numbers must be between 1 and 49")
    repeats = (np.diff(np.sort(matrix, axis=1), axis=1) == 0).any(axis=1)
    if repeats.any():
        idx = int(np.argmax(repeats))
        raise InvalidDraw(f"Draw {idx} repeats a number: {matrix[idx].tolist()}")
    return df


def prepare_history(df):
    """Return a validated copy sorted ascending by date when dates are present."""
    df = df.copy()
    if DATE_COL in df.columns:
        df[DATE_COL] = pd.to_datetime(df[DATE_COL])
        df = df.sort_values(DATE_COL, kind="mergesort")
    df = df.reset_index(drop=True)
    for col in DRAW_COLS:
        if col in df.columns:
            df[col] = df[col].astype(int)
    return validate_history(df)


def require_history(history):
    """
    Coerce the caller's history into a frame and reject empty input.

    Accepts a DataFrame or a list of draw records. Either form is checked
    with validate_history. Order is kept as given; callers are responsible
    for ascending date order.
    """
    if history is None:
        raise EmptyHistory()
    if not isinstance(history, pd.DataFrame):
        history = list(history)
        if not history:
            raise EmptyHistory()
        history = to_frame(history)
    if len(history) == 0:
        raise EmptyHistory()
    return validate_history(history)


# ── Array views ──────────────────────────────────────────────────────────

def draw_matrix(df):
    """(n_draws, 7) int array: 6 winning numbers then the special number."""
    return df[DRAW_COLS].to_numpy(dtype=np.int64)


def winning_matrix(df):
    """(n_draws, 6) int array of winning numbers."""
    return df[NUM_COLS].to_numpy(dtype=np.int64)


def special_numbers(df):
    return df[SPECIAL_COL].to_numpy(dtype=np.int64)


def membership_matrix(numbers_matrix):
    """
    One-hot (n_rows, 50) bool matrix from an int matrix of lottery numbers.

    Column 0 is unused so that column k is number k.
    """
    numbers_matrix = np.asarray(numbers_matrix, dtype=np.int64)
    if numbers_matrix.ndim == 1:
        numbers_matrix = numbers_matrix.reshape(1, -1)
    member = np.zeros((numbers_matrix.shape[0], TOTAL_NUMBERS + 1), dtype=bool)
    rows = np.repeat(np.arange(numbers_matrix.shape[0]), numbers_matrix.shape[1])
    member[rows, numbers_matrix.ravel()] = True
    return member


def draw_numbers(df, idx):
    """The 7 numbers (6 winning + special) of draw ``idx`` as a list."""
    return [int(n) for n in df[DRAW_COLS].iloc[idx]]


def last_draw_numbers(df):
    """The 7 numbers of the most recent draw."""
    return draw_numbers(df, len(df) - 1)


def history_fingerprint(df):
    """Stable digest of the draw numbers, used as a cache key component."""
    matrix = np.ascontiguousarray(draw_matrix(df))
    digest = hashlib.sha1(matrix.tobytes()).hexdigest()
    return f"{len(df)}:{digest[:16]}"


# ── Loading ──────────────────────────────────────────────────────────────

def _split_number_list(value):
    return [int(n) for n in str(value).replace("[", "").replace("]", "").replace(" ", "").split(",") if n]


def load_data(csv_path=CSV_PATH):
    """
    Load historical draws from CSV.

    Accepts either the canonical columns or the web app export form with a
    ``winning_numbers`` column holding ``"1,2,3,4,5,6"`` and a
    ``draw_date`` column.
    """
    df = pd.read_csv(csv_path)

    if "winning_numbers" in df.columns and NUM_COLS[0] not in df.columns:
        numbers = df["winning_numbers"].apply(_split_number_list)
        for i, col in enumerate(NUM_COLS):
            df[col] = numbers.apply(lambda nums, i=i: nums[i])
        df = df.drop(columns=["winning_numbers"])
    if "draw_date" in df.columns and DATE_COL not in df.columns:
        df = df.rename(columns={"draw_date": DATE_COL})

    df = prepare_history(df)
    print(f"[Draws] Loaded {len(df)} draws from {csv_path}")
    return df


def generate_synthetic_history(n_draws, start_date=None, seed=None):
    """
    Generate a realistic synthetic Mark Six history.

    Draws fall on Tuesdays, Thursdays and Saturdays. Each draw samples 7
    distinct numbers uniformly; the last one is the special number.
    """
    rng = np.random.default_rng(seed)
    current = start_date or datetime(2020, 1, 2)
    rows = []

    while len(rows) < n_draws:
        # Mark Six draws on Tuesday (1), Thursday (3) and Saturday (5)
        if current.weekday() in (1, 3, 5):
            nums = rng.choice(np.arange(1, 50), size=7, replace=False)
            main_nums = sorted(int(n) for n in nums[:6])
            row = {col: n for col, n in zip(NUM_COLS, main_nums)}
            row[SPECIAL_COL] = int(nums[6])
            row[DATE_COL] = current
            rows.append(row)
        current += timedelta(days=1)

    df = pd.DataFrame(rows, columns=DRAW_COLS + [DATE_COL])
    df[DATE_COL] = pd.to_datetime(df[DATE_COL])
    return df
