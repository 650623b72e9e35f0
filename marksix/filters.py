"""
Combination Filters for Mark Six

Post-processing shared by every generator:
    - Duplicate guard: canonical combination keys, per-call tracking and
      replacement of repeated combinations
    - Split-number selector for double (7-number) bets
    - Combination assembly helpers (lucky number, user selection, weighted fill)
    - Structural checks on finished combinations
"""
import numpy as np

from marksix import rng as rng_utils
from marksix.draws import ALL_NUMBERS, TOTAL_NUMBERS, draw_matrix, membership_matrix

SINGLE_LENGTH = 6
DOUBLE_LENGTH = 7
MAX_FILL_ATTEMPTS = 500
MAX_DUPLICATE_RETRIES = 3


def combination_length(is_double):
    return DOUBLE_LENGTH if is_double else SINGLE_LENGTH


def normalize_lucky_number(lucky_number):
    """The lucky number as an int, or None when unset (0 or None)."""
    if lucky_number is None:
        return None
    lucky_number = int(lucky_number)
    if 1 <= lucky_number <= TOTAL_NUMBERS:
        return lucky_number
    return None


# ===================================================================
# Duplicate Guard
# ===================================================================

def combination_key(combination):
    """Canonical key of a combination. The argument is never reordered."""
    return ",".join(str(int(n)) for n in sorted(combination))


def is_duplicate(combination, used_keys):
    return combination_key(combination) in used_keys


class DuplicateTracker:
    """Remembers the combinations produced during one generation call."""

    def __init__(self):
        self.used_keys = set()

    def check_and_track(self, combination):
        """
        True when the combination was already seen, otherwise record it and
        return False.
        """
        key = combination_key(combination)
        if key in self.used_keys:
            return True
        self.used_keys.add(key)
        return False

    def unique_count(self):
        return len(self.used_keys)

    def clear(self):
        self.used_keys.clear()


def generate_alternative_combination(selected_numbers, lucky_number, is_double,
                                     used_keys, rng=None,
                                     max_retries=MAX_DUPLICATE_RETRIES):
    """
    Build a replacement for a duplicate combination.

    Each attempt takes the lucky number, then the shuffled user selection,
    then uniform random numbers until the combination is full.

    Returns
    -------
    Sorted combination not in ``used_keys``, or None after ``max_retries``
    duplicate attempts.
    """
    rng = rng_utils.make_rng(rng)
    if isinstance(used_keys, DuplicateTracker):
        used_keys = used_keys.used_keys
    length = combination_length(is_double)

    for _ in range(max_retries):
        combination = start_combination(selected_numbers, lucky_number, length, rng)
        while len(combination) < length:
            num = rng_utils.rand_number(rng)
            if num not in combination:
                combination.append(num)
        combination = sorted(combination)
        if not is_duplicate(combination, used_keys):
            return combination
    return None


# ===================================================================
# Combination Assembly
# ===================================================================

def start_combination(selected_numbers, lucky_number, length, rng):
    """
    Seed a combination: the lucky number first, then the user's selection
    in shuffled order until ``length`` numbers are held.
    """
    combination = []
    lucky = normalize_lucky_number(lucky_number)
    if lucky is not None:
        combination.append(lucky)

    selection = [int(n) for n in (selected_numbers or []) if int(n) != lucky]
    for num in rng_utils.shuffled(selection, rng):
        if len(combination) >= length:
            break
        if num not in combination:
            combination.append(num)
    return combination


def fill_weighted(combination, values, weights, length, rng,
                  max_attempts=MAX_FILL_ATTEMPTS):
    """
    Top ``combination`` up to ``length`` with weighted random picks.

    Every pick counts as one attempt whether or not it is new. Falls back
    to uniform 1-49 picks when ``values`` is empty. Mutates and returns
    ``combination``, which may remain short.
    """
    attempts = 0
    while len(combination) < length and attempts < max_attempts:
        if len(values) > 0:
            num = int(rng_utils.weighted_choice(values, weights, rng))
        else:
            num = rng_utils.rand_number(rng)
        if num not in combination:
            combination.append(num)
        attempts += 1
    return combination


def finish_combination(combination, length):
    """Sorted copy of a full combination, or None when it came up short."""
    if len(combination) != length:
        return None
    return sorted(combination)


# ===================================================================
# Split-Number Selector
# ===================================================================

def winning_probabilities(df):
    """
    Share of draws in which each number appeared (winning or special).

    Returns a length-50 float array indexed by number.
    """
    member = membership_matrix(draw_matrix(df))
    return member.sum(axis=0) / len(member)


def calculate_winning_probability(number, df):
    if len(df) == 0:
        return 0.0
    return float(winning_probabilities(df)[int(number)])


def calculate_split_numbers(combination, df, probabilities=None):
    """
    The two numbers of a double combination least likely to win.

    Ties keep the combination's own order.
    """
    if probabilities is None:
        probabilities = winning_probabilities(df)
    ranked = sorted(combination, key=lambda n: probabilities[int(n)])
    return [int(n) for n in ranked[:2]]


def split_common(combination, split_numbers):
    """The five numbers shared by both halves of a split double bet."""
    split = set(split_numbers)
    return [n for n in combination if n not in split]


def build_results(combinations, df, is_double, **metadata):
    """
    Number the combinations from 1 and attach split numbers to doubles.

    Keyword arguments are copied into every result dict.
    """
    probabilities = winning_probabilities(df) if is_double else None
    results = []
    for idx, combination in enumerate(combinations, 1):
        result = {"combination": list(combination), "sequence_number": idx}
        result.update(metadata)
        if is_double and len(combination) == DOUBLE_LENGTH:
            result["split_numbers"] = calculate_split_numbers(
                combination, df, probabilities
            )
        results.append(result)
    return results


# ===================================================================
# Combination Checks
# ===================================================================

def check_length(combination, is_double=False):
    expected = combination_length(is_double)
    return {
        "name": "Length",
        "passed": len(combination) == expected,
        "detail": f"Length={len(combination)}, expected={expected}",
    }


def check_range(combination):
    bad = [n for n in combination if n not in ALL_NUMBERS]
    return {
        "name": "Range",
        "passed": not bad,
        "detail": f"Out of range: {bad}" if bad else "All numbers in 1-49",
    }


def check_distinct(combination):
    passed = len(set(combination)) == len(combination)
    return {
        "name": "Distinct",
        "passed": passed,
        "detail": "No repeats" if passed else "Repeated numbers",
    }


def check_ascending(combination):
    passed = list(combination) == sorted(combination)
    return {
        "name": "Ascending",
        "passed": passed,
        "detail": "Sorted" if passed else "Not in ascending order",
    }


def validate_combination(combination, is_double=False):
    """
    Run every structural check on a finished combination.
    Returns: dict with 'passed_count', 'total', 'all_passed', 'results'.
    """
    results = [
        check_length(combination, is_double),
        check_range(combination),
        check_distinct(combination),
        check_ascending(combination),
    ]
    passed = sum(1 for r in results if r["passed"])
    return {
        "passed_count": passed,
        "total": len(results),
        "all_passed": passed == len(results),
        "results": results,
    }


def combination_stats(combination):
    """Odd/even, high/low and sum summary of a combination."""
    odd = sum(1 for n in combination if n % 2 == 1)
    low = sum(1 for n in combination if n <= 24)
    return {
        "numbers": sorted(combination),
        "sum": int(np.sum(combination)),
        "odd_even": f"{odd}/{len(combination) - odd}",
        "high_low": f"{len(combination) - low}/{low}",
    }
