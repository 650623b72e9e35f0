"""
Advanced Follow-On Analysis for Mark Six

Extends the one-step follow-on table along three axes:
- Multi-step chains: does any number of the trailing h-draw window recur
  in the current draw, for several horizons h and chain lengths.
- Conditional probabilities: which numbers follow small trigger subsets
  of the previous draw, weighted by how reliably each trigger repeats.
- Pattern clustering: greedy grouping of draws with similar numbers and
  similar calendar conditions (weekday, month, season).

The three outputs are fused into one normalised 1-49 weight map.

A cheaper path serves generators that work inside a user-selected pool:
time-weighted individual probabilities over the last 1/2/3 draws plus
pairwise co-occurrence rates.
"""

from itertools import combinations, islice

import numpy as np

from marksix.analysis import build_follow_on_table, follow_on_pool
from marksix.draws import (
    ALL_NUMBERS,
    DATE_COL,
    NUMBERS_PER_DRAW,
    TOTAL_NUMBERS,
    draw_matrix,
    membership_matrix,
    require_history,
)

# Tunable constants; adaptive entries are filled in by resolve_config
DEFAULT_CONFIG = {
    "max_chain_length": None,
    "time_horizons": None,
    "pattern_threshold": 0.7,
    "conditional_probability_threshold": 0.6,
    "recent_draws_to_analyze": None,
    "max_analysis_draws": 200,
    "max_conditional_draws": 100,
    "max_trigger_inputs": 10,
    "max_triggers_per_size": 20,
    "base_weight": 0.01,
    "number_similarity_weight": 0.6,
    "condition_similarity_weight": 0.4,
    "day_match_weight": 0.3,
    "month_match_weight": 0.3,
    "season_match_weight": 0.4,
}

# Look-back windows (draws) and their blend weights for the pool path
TIME_WINDOWS = (1, 2, 3)
TIME_WINDOW_WEIGHTS = (0.5, 0.3, 0.2)
POOL_PROBABILITY_FLOOR = 0.01


def resolve_config(n_draws, config=None):
    """Merge caller overrides over the defaults and fill adaptive entries."""
    resolved = dict(DEFAULT_CONFIG)
    if config:
        resolved.update(config)
    if resolved["max_chain_length"] is None:
        resolved["max_chain_length"] = min(3, n_draws // 100 + 1)
    if resolved["time_horizons"] is None:
        resolved["time_horizons"] = [1, 3, 5, 10] if n_draws > 100 else [1, 3]
    if resolved["recent_draws_to_analyze"] is None:
        resolved["recent_draws_to_analyze"] = max(1, min(5, n_draws // 20))
    return resolved


def _draw_conditions(timestamp):
    """(draw_day 0=Sunday..6, month 0..11, season 1..4) of a draw date."""
    return {
        "draw_day": (timestamp.weekday() + 1) % 7,
        "month": timestamp.month - 1,
        "season": (timestamp.month - 1) // 3 + 1,
    }


class AdvancedFollowOnAnalyzer:
    """
    Chains, conditional probabilities and pattern clusters over one history.

    Large histories are cut to the most recent ``max_analysis_draws`` draws.
    """

    def __init__(self, df, config=None):
        df = require_history(df)
        self.config = resolve_config(len(df), config)
        limit = self.config["max_analysis_draws"]
        if limit and len(df) > limit:
            df = df.iloc[-limit:].reset_index(drop=True)
        self.df = df
        self.matrix = draw_matrix(df)
        self.n = len(self.matrix)
        self.member = membership_matrix(self.matrix)

    # ── Multi-step chains ───────────────────────────────────────────────

    def analyze_multi_step_chains(self):
        """
        Returns
        -------
        list of dicts {chain, frequency, probability, time_horizon}
        """
        chains = []
        max_len = self.config["max_chain_length"]

        for horizon in self.config["time_horizons"]:
            for i in range(horizon, self.n):
                window = self.matrix[i - horizon:i]
                current = self.member[i]

                for chain_length in range(1, max_len + 1):
                    if len(window) < chain_length:
                        continue
                    # Most recent draw of the window first
                    chain = window[::-1][:chain_length].ravel()
                    matches = len(set(int(n) for n in chain if current[n]))
                    if matches > 0:
                        chains.append({
                            "chain": [int(n) for n in chain[:NUMBERS_PER_DRAW]],
                            "frequency": matches,
                            "probability": matches / NUMBERS_PER_DRAW,
                            "time_horizon": horizon,
                        })
        return chains

    # ── Conditional probabilities ───────────────────────────────────────

    def trigger_confidence(self, trigger):
        """
        Historical reliability of a trigger: among transitions whose earlier
        draw holds every trigger number, the share whose later draw holds
        any of them.
        """
        trigger = list(trigger)
        present = self.member[:-1][:, trigger].all(axis=1)
        total = int(present.sum())
        if total == 0:
            return 0.0
        repeated = self.member[1:][:, trigger].any(axis=1)
        return int((present & repeated).sum()) / total

    def calculate_conditional_probabilities(self):
        """
        Returns
        -------
        list of dicts {trigger_numbers, target_numbers, probability, confidence}
        """
        threshold = self.config["conditional_probability_threshold"]
        max_draws = min(self.config["max_conditional_draws"], self.n)
        max_trigger_size = 2 if self.n > 50 else 3
        per_size = self.config["max_triggers_per_size"]
        inputs = self.config["max_trigger_inputs"]

        confidence_memo = {}
        results = []
        for i in range(max(1, self.n - max_draws), self.n):
            previous = [int(n) for n in self.matrix[i - 1][:inputs]]
            current = [int(n) for n in self.matrix[i]]

            for size in range(1, max_trigger_size + 1):
                for trigger in islice(combinations(previous, size), per_size):
                    targets = [n for n in current if n not in trigger]
                    if not targets:
                        continue
                    probability = len(targets) / (NUMBERS_PER_DRAW - size)
                    if probability < threshold:
                        continue
                    if trigger not in confidence_memo:
                        confidence_memo[trigger] = self.trigger_confidence(trigger)
                    results.append({
                        "trigger_numbers": list(trigger),
                        "target_numbers": targets,
                        "probability": probability,
                        "confidence": confidence_memo[trigger],
                    })
        return results

    # ── Pattern clustering ──────────────────────────────────────────────

    def pattern_similarity(self, numbers1, numbers2, conditions1, conditions2):
        """Jaccard similarity of the numbers blended with calendar matches."""
        set1, set2 = set(numbers1), set(numbers2)
        union = len(set1 | set2)
        number_similarity = len(set1 & set2) / union if union else 0.0

        cfg = self.config
        condition_similarity = 0.0
        if conditions1["draw_day"] == conditions2["draw_day"]:
            condition_similarity += cfg["day_match_weight"]
        if conditions1["month"] == conditions2["month"]:
            condition_similarity += cfg["month_match_weight"]
        if conditions1["season"] == conditions2["season"]:
            condition_similarity += cfg["season_match_weight"]

        return (number_similarity * cfg["number_similarity_weight"]
                + condition_similarity * cfg["condition_similarity_weight"])

    def cluster_patterns(self):
        """
        Greedy clustering of dated draws. Undated histories yield no clusters.

        Returns
        -------
        list of dicts {numbers, frequency, similarity, conditions} with
        frequency > 1
        """
        if DATE_COL not in self.df.columns:
            return []

        threshold = self.config["pattern_threshold"]
        clusters = []
        for idx, timestamp in enumerate(self.df[DATE_COL]):
            if timestamp is None or timestamp != timestamp:  # NaT
                continue
            conditions = _draw_conditions(timestamp)
            numbers = [int(n) for n in self.matrix[idx]]

            best, best_similarity = None, 0.0
            for cluster in clusters:
                similarity = self.pattern_similarity(
                    numbers, cluster["numbers"], conditions, cluster["conditions"]
                )
                if similarity > best_similarity and similarity >= threshold:
                    best, best_similarity = cluster, similarity

            if best is not None:
                best["frequency"] += 1
                best["similarity"] = (best["similarity"] + best_similarity) / 2
            else:
                clusters.append({
                    "numbers": numbers,
                    "frequency": 1,
                    "similarity": 1.0,
                    "conditions": conditions,
                })

        return [c for c in clusters if c["frequency"] > 1]

    # ── Fusion ──────────────────────────────────────────────────────────

    def calculate_weighted_probabilities(self, chains, conditional_probs, clusters):
        """
        Fuse the three analyses into {number: probability}, summing to 1.
        """
        weights = np.full(TOTAL_NUMBERS + 1, self.config["base_weight"], dtype=np.float64)
        weights[0] = 0.0

        for chain in chains:
            w = chain["probability"] * (1.0 / chain["time_horizon"])
            for num in chain["chain"]:
                weights[num] += w

        for cp in conditional_probs:
            w = cp["probability"] * cp["confidence"]
            for num in cp["target_numbers"]:
                weights[num] += w

        for cluster in clusters:
            w = cluster["frequency"] * cluster["similarity"] / self.n
            for num in cluster["numbers"]:
                weights[num] += w

        weights /= weights.sum()
        return {n: float(weights[n]) for n in ALL_NUMBERS}

    def analyze(self):
        """
        Run every stage once.

        Returns
        -------
        dict with chains, conditional_probabilities, pattern_clusters,
        weighted_probabilities
        """
        chains = self.analyze_multi_step_chains()
        conditional_probs = self.calculate_conditional_probabilities()
        clusters = self.cluster_patterns()
        return {
            "chains": chains,
            "conditional_probabilities": conditional_probs,
            "pattern_clusters": clusters,
            "weighted_probabilities": self.calculate_weighted_probabilities(
                chains, conditional_probs, clusters
            ),
        }


def calculate_advanced_analysis(df, config=None):
    """Pre-calculate the advanced analysis for reuse across generator calls."""
    return AdvancedFollowOnAnalyzer(df, config).analyze()


def get_advanced_follow_on_numbers(df, config=None, analysis=None):
    """
    Advanced follow-on rankings.

    Starts from the fused weight map and adds the follow-on pool seeded by
    each of the most recent draws, not just the last one.

    Returns
    -------
    list of (number, weight) for all 49 numbers, weight descending.
    """
    analyzer = AdvancedFollowOnAnalyzer(df, config)
    if analysis is None:
        analysis = analyzer.analyze()

    final = np.array(
        [analysis["weighted_probabilities"][n] for n in ALL_NUMBERS], dtype=np.float64
    )
    table = build_follow_on_table(analyzer.df)
    recent = analyzer.matrix[-analyzer.config["recent_draws_to_analyze"]:]
    for draw in recent:
        final += follow_on_pool(table, draw)

    rankings = [(n, float(final[n - 1])) for n in ALL_NUMBERS]
    return sorted(rankings, key=lambda x: (-x[1], x[0]))


# ── Pool path ─────────────────────────────────────────────────────────────

def time_weighted_probabilities(df, pool, windows=TIME_WINDOWS,
                                window_weights=TIME_WINDOW_WEIGHTS,
                                floor=POOL_PROBABILITY_FLOOR):
    """
    Individual probabilities of the pool numbers from short look-back windows.

    For each window w the rate is the share of the last w draws containing the
    number; rates are blended by ``window_weights``, floored so every pool
    number stays selectable, and normalised over the pool.

    Returns
    -------
    dict {number: probability} over the pool, summing to 1
    """
    df = require_history(df)
    pool = sorted(set(int(n) for n in pool))
    member = membership_matrix(draw_matrix(df))

    blended = np.zeros(len(pool), dtype=np.float64)
    for w, weight in zip(windows, window_weights):
        recent = member[-w:]
        rates = recent[:, pool].sum(axis=0) / len(recent)
        blended += weight * rates
    blended += floor
    blended /= blended.sum()
    return {n: float(p) for n, p in zip(pool, blended)}


def pair_probabilities(df, pool):
    """
    Co-occurrence rate of every unordered pool pair across the history.

    Returns
    -------
    dict {(a, b): rate} with a < b
    """
    df = require_history(df)
    pool = sorted(set(int(n) for n in pool))
    member = membership_matrix(draw_matrix(df)).astype(np.float64)
    co_occurrence = member.T @ member
    n_draws = len(member)
    return {
        (a, b): float(co_occurrence[a, b] / n_draws)
        for a, b in combinations(pool, 2)
    }
