"""Exception hierarchy for ranking-vectorizers."""


class RankingVectorizersError(Exception):
    """Base exception for all ranking-vectorizers errors."""


class ConfigurationError(RankingVectorizersError, ValueError):
    """Invalid option type or range, raised when a vectorizer is constructed."""


class NotFittedError(RankingVectorizersError, ValueError):
    """A fitted-state operation was called before fit."""
