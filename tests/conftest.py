import random
from datetime import datetime, timedelta

import numpy as np
import pandas as pd
import pytest

from marksix.draws import DATE_COL, DRAW_COLS, generate_synthetic_history


@pytest.fixture
def small_history():
    """15 synthetic draws: below the ensemble's backtest threshold."""
    return generate_synthetic_history(15, seed=3)


@pytest.fixture
def history():
    """60 synthetic draws with dates."""
    return generate_synthetic_history(60, seed=11)


@pytest.fixture
def long_history():
    """150 synthetic draws, enough for the wide chain horizons."""
    return generate_synthetic_history(150, seed=21)


@pytest.fixture
def sevens_history():
    """50 draws where 7 is always a winning number and never the special."""
    rng = np.random.default_rng(5)
    others = np.array([n for n in range(1, 50) if n != 7])
    rows = []
    start = datetime(2023, 1, 3)
    for i in range(50):
        picks = rng.choice(others, size=6, replace=False)
        winning = sorted([7] + [int(n) for n in picks[:5]])
        row = dict(zip(DRAW_COLS[:6], winning))
        row[DRAW_COLS[6]] = int(picks[5])
        row[DATE_COL] = start + timedelta(days=2 * i)
        rows.append(row)
    df = pd.DataFrame(rows)
    df[DATE_COL] = pd.to_datetime(df[DATE_COL])
    return df


@pytest.fixture
def seeded_rng():
    return np.random.default_rng(1234)


@pytest.fixture
def stdlib_rng():
    return random.Random(99)

