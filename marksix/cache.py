"""
Caller-owned memoization for expensive analyses.

The engine never keeps hidden state between calls. A caller that wants to
reuse, say, ensemble model weights across requests for the same history
creates an AlgorithmCache and passes it into the generator calls.
Entries are keyed by (algorithm_type, history_fingerprint).
"""

from marksix.draws import history_fingerprint


class AlgorithmCache:
    """Explicit cache keyed by algorithm type and history fingerprint."""

    def __init__(self, max_entries=128):
        self.max_entries = max_entries
        self._entries = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(algorithm_type, df):
        return (algorithm_type, history_fingerprint(df))

    def get(self, algorithm_type, df):
        key = self.key_for(algorithm_type, df)
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        return None

    def set(self, algorithm_type, df, value):
        if len(self._entries) >= self.max_entries and self.max_entries > 0:
            # Evict the oldest entry (dicts keep insertion order)
            oldest = next(iter(self._entries))
            del self._entries[oldest]
        self._entries[self.key_for(algorithm_type, df)] = value
        return value

    def get_or_compute(self, algorithm_type, df, compute):
        """Return the cached value or compute, store and return it."""
        value = self.get(algorithm_type, df)
        if value is None:
            value = self.set(algorithm_type, df, compute())
        return value

    def invalidate(self, algorithm_type=None):
        """
        Drop every entry, or only those of one algorithm type. Types
        qualified by config (``"ensemble_model_weights:..."``) match their
        bare name.
        """
        if algorithm_type is None:
            self._entries.clear()
            return
        prefix = algorithm_type + ":"
        stale = [k for k in self._entries if k[0] == algorithm_type or k[0].startswith(prefix)]
        for key in stale:
            del self._entries[key]

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        return key in self._entries
