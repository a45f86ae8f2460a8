"""
Count vectorizer: vocabulary construction and pruned term-count matrices.

Fitting is an explicit two-pass algorithm:

1. Vocabulary pass - analyze every document (preprocess, tokenize, expand
   n-grams, drop stop words) and collect the sorted set of surviving tokens.
   Index = sorted position. A fixed vocabulary skips this pass.
2. Counting pass - re-analyze every document against the frozen vocabulary
   and build a sparse (documents x features) count matrix, chunk by chunk.

The fit matrix is then pruned (max_features, then min_df/max_df) and the
surviving columns are renumbered densely, preserving their relative order.
Transform reuses the frozen, pruned vocabulary and never prunes again.
"""

from __future__ import annotations

import logging
import warnings
from collections import Counter
from collections.abc import Iterable, Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import islice
from numbers import Integral, Real
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import numpy as np
from scipy import sparse

from ranking_vectorizers.config import MIN_DOCUMENTS_FOR_PARALLEL, VectorizerConfig
from ranking_vectorizers.exceptions import ConfigurationError, NotFittedError
from ranking_vectorizers.ngrams import make_ngrams

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


# =============================================================================
# Corpus helpers
# =============================================================================


def as_documents(corpus: Iterable[str]) -> Iterable[str]:
    """Materialize one-shot iterators so the corpus can be walked more than once."""
    if isinstance(corpus, str):
        raise TypeError("corpus must be an iterable of documents, not a single string")
    if iter(corpus) is corpus:
        return list(corpus)
    return corpus


def _chunks(documents: Iterable[str], size: int) -> Iterator[list[str]]:
    iterator = iter(documents)
    while chunk := list(islice(iterator, size)):
        yield chunk


def vocabulary_width(vocabulary: Mapping[str, int]) -> int:
    """Number of matrix columns a vocabulary addresses (max index + 1)."""
    return max(vocabulary.values()) + 1 if vocabulary else 0


# =============================================================================
# Document frequency and pruning
# =============================================================================


def _is_fraction(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, Integral)


def document_frequency(matrix: sparse.spmatrix) -> NDArray[np.int64]:
    """Number of documents (rows) with at least one occurrence of each feature."""
    return np.asarray((matrix > 0).sum(axis=0), dtype=np.int64).ravel()


def prune_features(
    matrix: sparse.csr_matrix,
    max_features: int | None = None,
    min_df: int | float | None = None,
    max_df: int | float | None = None,
    candidates: Iterable[int] | None = None,
) -> tuple[NDArray[np.int64], NDArray]:
    """
    Select the feature columns that survive frequency-based pruning.

    Steps:
        1. max_features: rank columns by total count (descending, ties by
           column order) and keep the top ``max_features``.
        2. Recompute document frequency on the reduced matrix.
        3. Keep columns whose df is >= min_df and <= max_df. Integer bounds
           compare against document counts, float bounds against the
           fraction of documents.

    Args:
        matrix: Sparse (documents x features) count matrix.
        max_features: Optional cap on the number of features.
        min_df: Optional lower df bound.
        max_df: Optional upper df bound.
        candidates: Columns eligible to survive; all columns when omitted.

    Returns:
        (kept_columns, df): ascending column indices into ``matrix`` and the
        matching df vector (fractions when a bound is a float, counts otherwise).
    """
    n_docs, n_features = matrix.shape
    if candidates is None:
        columns = np.arange(n_features, dtype=np.int64)
    else:
        columns = np.unique(np.fromiter(candidates, dtype=np.int64))
        matrix = matrix[:, columns]

    if max_features is not None and max_features < len(columns):
        totals = np.asarray(matrix.sum(axis=0)).ravel()
        top = np.sort(np.argsort(-totals, kind="stable")[:max_features])
        columns = columns[top]
        matrix = matrix[:, top]

    doc_counts = document_frequency(matrix)
    fractions = doc_counts / max(n_docs, 1)

    mask = np.ones(len(columns), dtype=bool)
    if min_df is not None:
        mask &= (fractions if _is_fraction(min_df) else doc_counts) >= min_df
    if max_df is not None:
        mask &= (fractions if _is_fraction(max_df) else doc_counts) <= max_df

    as_fraction = _is_fraction(min_df) or _is_fraction(max_df)
    df = fractions[mask] if as_fraction else doc_counts[mask]
    return columns[mask], df


# =============================================================================
# Fitted state
# =============================================================================


@dataclass(frozen=True, eq=False)
class CountState:
    """
    Immutable result of fitting a CountVectorizer.

    Attributes:
        vocabulary: Frozen token -> column mapping of the surviving features.
        n_features: Number of columns produced by transform.
        document_frequency: df of each surviving feature on the fit corpus, read-only.
        pruned_features: Tokens removed by pruning.
    """

    vocabulary: Mapping[str, int]
    n_features: int
    document_frequency: NDArray
    pruned_features: frozenset[str]

    @classmethod
    def build(
        cls,
        vocabulary: Mapping[str, int],
        n_features: int,
        df: NDArray,
        pruned: Iterable[str],
    ) -> CountState:
        df = np.array(df)
        df.flags.writeable = False
        return cls(
            vocabulary=MappingProxyType(dict(vocabulary)),
            n_features=int(n_features),
            document_frequency=df,
            pruned_features=frozenset(pruned),
        )


# =============================================================================
# Count vectorizer
# =============================================================================


class CountVectorizer:
    """
    Turns raw documents into a sparse matrix of n-gram counts.

    Args:
        config: A ready-made VectorizerConfig.
        **options: VectorizerConfig fields, used when ``config`` is omitted.

    Attributes (after fit):
        state_: CountState snapshot, replaced as a whole on every fit.
        vocabulary_, n_features_, document_frequency_, pruned_features_:
            Read-only views of the current snapshot.
    """

    def __init__(self, config: VectorizerConfig | None = None, **options: Any):
        if config is not None and options:
            raise ConfigurationError("pass either a VectorizerConfig or keyword options, not both")
        if config is None:
            try:
                config = VectorizerConfig(**options)
            except TypeError as exc:
                raise ConfigurationError(str(exc)) from exc
        self.config = config
        self.state_: CountState | None = None

    @property
    def fixed_vocabulary(self) -> bool:
        return self.config.vocabulary is not None

    @property
    def state(self) -> CountState:
        """The fitted snapshot; raises NotFittedError before fit."""
        state = self.state_
        if state is None:
            raise NotFittedError("CountVectorizer is not fitted yet; call fit() first.")
        return state

    @property
    def vocabulary_(self) -> Mapping[str, int] | None:
        state = self.state_
        return state.vocabulary if state is not None else None

    @property
    def n_features_(self) -> int | None:
        state = self.state_
        return state.n_features if state is not None else None

    @property
    def document_frequency_(self) -> NDArray | None:
        state = self.state_
        return state.document_frequency if state is not None else None

    @property
    def pruned_features_(self) -> frozenset[str] | None:
        state = self.state_
        return state.pruned_features if state is not None else None

    # ----- Analysis ------------------------------------------------------------

    def analyze(self, doc: str) -> list[str]:
        """Preprocess, tokenize, expand n-grams and drop stop words."""
        config = self.config
        if config.preprocessor is not None:
            doc = config.preprocessor(doc)
        tokens = make_ngrams(config.tokenizer(doc), config.ngram_range)
        if config.stop_words:
            tokens = [token for token in tokens if token not in config.stop_words]
        return tokens

    def _analyze_chunk(self, chunk: Sequence[str]) -> list[list[str]]:
        n_jobs = self.config.n_jobs
        if n_jobs > 1 and len(chunk) >= MIN_DOCUMENTS_FOR_PARALLEL:
            with ThreadPoolExecutor(max_workers=n_jobs) as executor:
                return list(executor.map(self.analyze, chunk))
        return [self.analyze(doc) for doc in chunk]

    # ----- Pass 1: vocabulary --------------------------------------------------

    def build_vocabulary(self, corpus: Iterable[str]) -> Mapping[str, int]:
        """Sorted-unique vocabulary of the corpus, or the fixed vocabulary."""
        if self.config.vocabulary is not None:
            return self.config.vocabulary

        features: set[str] = set()
        for chunk in _chunks(corpus, self.config.chunk_size):
            for tokens in self._analyze_chunk(chunk):
                features.update(tokens)
        return MappingProxyType({feature: idx for idx, feature in enumerate(sorted(features))})

    # ----- Pass 2: counting ----------------------------------------------------

    def count(
        self,
        corpus: Iterable[str],
        vocabulary: Mapping[str, int],
        n_features: int | None = None,
    ) -> sparse.csr_matrix:
        """
        Count vocabulary features in every document.

        Tokens missing from ``vocabulary`` are ignored. Rows follow the corpus
        order. Entries are 0/1 when the vectorizer is binary.

        Args:
            corpus: Iterable of raw documents.
            vocabulary: Frozen token -> column mapping.
            n_features: Matrix width; defaults to max index + 1.

        Returns:
            CSR matrix of shape (n_documents, n_features), int64.
        """
        if n_features is None:
            n_features = vocabulary_width(vocabulary)

        blocks = [
            self._count_chunk(self._analyze_chunk(chunk), vocabulary, n_features)
            for chunk in _chunks(corpus, self.config.chunk_size)
        ]
        if not blocks:
            matrix = sparse.csr_matrix((0, n_features), dtype=np.int64)
        elif len(blocks) == 1:
            matrix = blocks[0]
        else:
            matrix = sparse.vstack(blocks, format="csr", dtype=np.int64)

        if self.config.binary:
            matrix.data = np.ones_like(matrix.data)
        return matrix

    @staticmethod
    def _count_chunk(
        analyzed: list[list[str]],
        vocabulary: Mapping[str, int],
        n_features: int,
    ) -> sparse.csr_matrix:
        indptr = [0]
        indices: list[int] = []
        values: list[int] = []
        for tokens in analyzed:
            counts: Counter[int] = Counter()
            for token in tokens:
                column = vocabulary.get(token)
                if column is not None:
                    counts[column] += 1
            for column in sorted(counts):
                indices.append(column)
                values.append(counts[column])
            indptr.append(len(indices))

        return sparse.csr_matrix(
            (
                np.asarray(values, dtype=np.int64),
                np.asarray(indices, dtype=np.int64),
                np.asarray(indptr, dtype=np.int64),
            ),
            shape=(len(analyzed), n_features),
        )

    # ----- Fit / transform -----------------------------------------------------

    def fit(self, corpus: Iterable[str]) -> CountVectorizer:
        self._fit(corpus)
        return self

    def fit_transform(self, corpus: Iterable[str]) -> sparse.csr_matrix:
        """Fit on the corpus and return its pruned count matrix."""
        return self._fit(corpus)

    def transform(self, corpus: Iterable[str]) -> sparse.csr_matrix:
        """Count matrix of the corpus over the frozen, pruned vocabulary."""
        state = self.state
        return self.count(as_documents(corpus), state.vocabulary, state.n_features)

    def _fit(self, corpus: Iterable[str]) -> sparse.csr_matrix:
        documents = as_documents(corpus)
        config = self.config

        vocabulary = self.build_vocabulary(documents)
        matrix = self.count(documents, vocabulary)

        # Unnamed columns of a fixed vocabulary are only kept when nothing is pruned
        candidates = None
        if self.fixed_vocabulary and (
            config.max_features is not None or config.min_df is not None or config.max_df is not None
        ):
            candidates = vocabulary.values()
        kept, df = prune_features(
            matrix, config.max_features, config.min_df, config.max_df, candidates=candidates
        )

        new_index = {int(old): new for new, old in enumerate(kept)}
        pruned_vocabulary = {
            token: new_index[idx]
            for token, idx in sorted(vocabulary.items(), key=lambda item: item[1])
            if idx in new_index
        }
        pruned = frozenset(token for token, idx in vocabulary.items() if idx not in new_index)

        if vocabulary and not pruned_vocabulary:
            warnings.warn(
                "Pruning removed every feature; check min_df, max_df and max_features.",
                stacklevel=3,
            )
        logger.debug(
            "Fitted vocabulary: %d features kept, %d pruned, %d documents",
            len(kept),
            len(pruned),
            matrix.shape[0],
        )

        self.state_ = CountState.build(pruned_vocabulary, len(kept), df, pruned)
        if len(kept) == matrix.shape[1]:
            return matrix
        return matrix[:, kept]

    def get_feature_names_out(self) -> NDArray[np.object_]:
        """Surviving tokens in column order ("" for unnamed fixed-vocabulary columns)."""
        state = self.state
        names = np.full(state.n_features, "", dtype=object)
        for token, idx in state.vocabulary.items():
            names[idx] = token
        return names


__all__ = [
    "as_documents",
    "vocabulary_width",
    "document_frequency",
    "prune_features",
    "CountState",
    "CountVectorizer",
]
