"""
Vectorizer configuration.

Options are collected into frozen dataclasses and validated once, when the
dataclass is constructed. Everything downstream trusts a constructed config
and never re-validates it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from numbers import Integral, Real
from types import MappingProxyType
from typing import Any

from ranking_vectorizers.exceptions import ConfigurationError
from ranking_vectorizers.idf import IDF_FORMULAS, IDFFormula
from ranking_vectorizers.tokenization import RegexTokenizer, Tokenizer, resolve_stop_words

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_K1 = 1.2  # term saturation
DEFAULT_B = 0.75  # length normalization
DEFAULT_IDF = "lucene"
EPSILON = 1e-10

# Documents counted per sparse block
DEFAULT_CHUNK_SIZE = 1000

# Number of workers for parallel document analysis
DEFAULT_NUM_WORKERS = 8
MIN_DOCUMENTS_FOR_PARALLEL = 64


# =============================================================================
# Validation helpers
# =============================================================================


def _is_int(value: Any) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool)


def _is_float(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, (Integral, bool))


def _check_df_bound(name: str, value: Any) -> None:
    if value is None:
        return
    if _is_int(value):
        if value < 0:
            raise ConfigurationError(f"{name} must be a non-negative integer, got {value}")
    elif _is_float(value):
        if not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"{name} must be a float in [0.0, 1.0], got {value}")
    else:
        raise ConfigurationError(
            f"{name} must be an integer or a float in [0.0, 1.0], got {type(value).__name__}"
        )


def _check_positive_int(name: str, value: Any) -> None:
    if not _is_int(value) or value < 1:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")


def _freeze_vocabulary(vocabulary: Mapping[str, int] | Iterable[str]) -> Mapping[str, int]:
    if not isinstance(vocabulary, Mapping):
        if isinstance(vocabulary, str):
            raise ConfigurationError("vocabulary must be a mapping or an iterable of tokens")
        tokens = list(vocabulary)
        if len(set(tokens)) != len(tokens):
            raise ConfigurationError("vocabulary contains duplicate tokens")
        vocabulary = {token: idx for idx, token in enumerate(tokens)}

    seen: set[int] = set()
    for token, idx in vocabulary.items():
        if not isinstance(token, str):
            raise ConfigurationError(f"vocabulary keys must be strings, got {token!r}")
        if not _is_int(idx) or idx < 0:
            raise ConfigurationError(
                f"vocabulary index for {token!r} must be a non-negative integer, got {idx!r}"
            )
        if idx in seen:
            raise ConfigurationError(f"vocabulary index {idx} is assigned to more than one token")
        seen.add(idx)
    return MappingProxyType({token: int(idx) for token, idx in vocabulary.items()})


# =============================================================================
# Count vectorizer options
# =============================================================================


@dataclass(frozen=True)
class VectorizerConfig:
    """
    Options shared by every vectorizer that builds a count matrix.

    Attributes:
        ngram_range: (min_n, max_n) word n-gram range, both positive, min <= max.
        stop_words: None, an iterable of tokens, or ``"english"``.
        vocabulary: Fixed token -> column mapping (or token iterable); skips
            vocabulary construction when given.
        min_df: Lower document-frequency bound, an int count or a float fraction.
        max_df: Upper document-frequency bound, an int count or a float fraction.
        max_features: Keep only the most frequent features.
        binary: Record presence (0/1) instead of counts.
        tokenizer: Callable text -> tokens.
        preprocessor: Optional callable text -> text applied before tokenizing.
        chunk_size: Documents counted per sparse block.
        n_jobs: Worker threads used to analyze documents.
    """

    ngram_range: tuple[int, int] = (1, 1)
    stop_words: frozenset[str] | str | Iterable[str] | None = None
    vocabulary: Mapping[str, int] | None = None
    min_df: int | float | None = None
    max_df: int | float | None = None
    max_features: int | None = None
    binary: bool = False
    tokenizer: Tokenizer = field(default_factory=RegexTokenizer)
    preprocessor: Callable[[str], str] | None = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    n_jobs: int = 1

    def __post_init__(self) -> None:
        ngram_range = self.ngram_range
        if (
            not isinstance(ngram_range, (tuple, list))
            or len(ngram_range) != 2
            or not all(_is_int(n) for n in ngram_range)
        ):
            raise ConfigurationError(f"ngram_range must be a (min_n, max_n) tuple, got {ngram_range!r}")
        min_n, max_n = ngram_range
        if min_n < 1 or max_n < min_n:
            raise ConfigurationError(
                f"ngram_range must satisfy 1 <= min_n <= max_n, got {tuple(ngram_range)}"
            )
        object.__setattr__(self, "ngram_range", (int(min_n), int(max_n)))

        try:
            object.__setattr__(self, "stop_words", resolve_stop_words(self.stop_words))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"invalid stop_words: {exc}") from exc

        if self.vocabulary is not None:
            object.__setattr__(self, "vocabulary", _freeze_vocabulary(self.vocabulary))

        _check_df_bound("min_df", self.min_df)
        _check_df_bound("max_df", self.max_df)
        if self.min_df is not None and self.max_df is not None:
            if _is_int(self.min_df) != _is_int(self.max_df):
                raise ConfigurationError(
                    "min_df and max_df must both be integers (document counts) "
                    "or both be floats (document fractions)"
                )
            if self.min_df > self.max_df:
                raise ConfigurationError(
                    f"min_df ({self.min_df}) must not exceed max_df ({self.max_df})"
                )

        if self.max_features is not None:
            _check_positive_int("max_features", self.max_features)
        if not isinstance(self.binary, bool):
            raise ConfigurationError(f"binary must be a bool, got {self.binary!r}")
        if not callable(self.tokenizer):
            raise ConfigurationError("tokenizer must be callable")
        if self.preprocessor is not None and not callable(self.preprocessor):
            raise ConfigurationError("preprocessor must be callable")
        _check_positive_int("chunk_size", self.chunk_size)
        _check_positive_int("n_jobs", self.n_jobs)


# =============================================================================
# BM25 hyperparameters
# =============================================================================


@dataclass(frozen=True)
class BM25Parameters:
    """
    BM25 hyperparameters, immutable once the vectorizer is constructed.

    Attributes:
        k1: Term saturation factor, > 0.
        b: Length normalization factor, in [0, 1].
        idf: Registered IDF formula name or a callable (df, n_docs) -> idf.
        normalize: Divide scores by the maximum score seen at fit.
        epsilon: Numeric floor for scores and the average document length.
    """

    k1: float = DEFAULT_K1
    b: float = DEFAULT_B
    idf: str | IDFFormula = DEFAULT_IDF
    normalize: bool = False
    epsilon: float = EPSILON

    def __post_init__(self) -> None:
        if not isinstance(self.k1, Real) or isinstance(self.k1, bool) or not self.k1 > 0:
            raise ConfigurationError(f"k1 must be a number > 0, got {self.k1!r}")
        if not isinstance(self.b, Real) or isinstance(self.b, bool) or not 0.0 <= self.b <= 1.0:
            raise ConfigurationError(f"b must be a number in [0.0, 1.0], got {self.b!r}")
        if not callable(self.idf) and self.idf not in IDF_FORMULAS:
            raise ConfigurationError(
                f"idf must be callable or one of {sorted(IDF_FORMULAS)}, got {self.idf!r}"
            )
        if not isinstance(self.normalize, bool):
            raise ConfigurationError(f"normalize must be a bool, got {self.normalize!r}")
        if (
            not isinstance(self.epsilon, Real)
            or isinstance(self.epsilon, bool)
            or not self.epsilon > 0
        ):
            raise ConfigurationError(f"epsilon must be a number > 0, got {self.epsilon!r}")
        object.__setattr__(self, "k1", float(self.k1))
        object.__setattr__(self, "b", float(self.b))
        object.__setattr__(self, "epsilon", float(self.epsilon))

    @property
    def idf_name(self) -> str | None:
        """Registered formula name, or None for a custom callable."""
        return self.idf if isinstance(self.idf, str) else None


__all__ = [
    "DEFAULT_K1",
    "DEFAULT_B",
    "DEFAULT_IDF",
    "EPSILON",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_NUM_WORKERS",
    "MIN_DOCUMENTS_FOR_PARALLEL",
    "VectorizerConfig",
    "BM25Parameters",
]
