"""
Okapi BM25 vectorizer.

Fit freezes everything transform needs into one immutable BM25State:

    idf[f]          = formula(df[f], N)          (one formula, chosen once)
    doc_lengths[d]  = sum_f M[d, f]
    avg_doc_length  = mean(doc_lengths)          (fit corpus only)

Transform scores any corpus against that frozen state:

    len_norm[d]        = doc_lengths'[d] / max(avg_doc_length, eps)
    contribution[d, f] = idf[f] * tf * (k1 + 1) / (tf + k1 * (1 - b + b * len_norm[d]))
    score[d]           = max(sum_f contribution[d, f], eps)

Only stored (non-zero) counts are evaluated, so absent terms contribute
exactly 0 whatever the sign of their idf.

Usage:
    from ranking_vectorizers import BM25Vectorizer

    vectorizer = BM25Vectorizer(k1=1.5, b=0.75, stop_words="english")
    scores = vectorizer.fit_transform(documents)
    indices, query_scores = vectorizer.rank("fox and hound", top_k=10)
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
from scipy import sparse

from ranking_vectorizers.config import (
    DEFAULT_B,
    DEFAULT_IDF,
    DEFAULT_K1,
    DEFAULT_NUM_WORKERS,
    EPSILON,
    BM25Parameters,
    VectorizerConfig,
)
from ranking_vectorizers.count_vectorizer import CountVectorizer, as_documents, document_frequency
from ranking_vectorizers.exceptions import NotFittedError
from ranking_vectorizers.idf import IDFFormula, compute_idf
from ranking_vectorizers.ranking import batch_rank_parallel, select_top_k

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


def freeze_array(array: NDArray) -> NDArray:
    array = np.array(array)
    array.flags.writeable = False
    return array


# =============================================================================
# Scoring kernel
# =============================================================================


def bm25_weights(
    counts: sparse.spmatrix,
    idf: NDArray[np.float64],
    avg_doc_length: float,
    k1: float = DEFAULT_K1,
    b: float = DEFAULT_B,
    epsilon: float = EPSILON,
) -> sparse.csr_matrix:
    """
    Per-feature BM25 contributions of every document.

    Args:
        counts: Sparse (documents x features) term counts
        idf: Frozen IDF values (features,)
        avg_doc_length: Frozen average document length of the fit corpus
        k1: Term saturation factor
        b: Length normalization factor
        epsilon: Floor for the average document length

    Returns:
        CSR matrix with the same sparsity pattern as ``counts``
    """
    counts = sparse.csr_matrix(counts, dtype=np.float64)
    doc_lengths = np.asarray(counts.sum(axis=1)).ravel()

    len_norm = doc_lengths / max(avg_doc_length, epsilon)
    saturation = k1 * (1.0 - b + b * len_norm)

    # Row of every stored entry, for broadcasting per-document terms
    rows = np.repeat(np.arange(counts.shape[0]), np.diff(counts.indptr))
    tf = counts.data
    data = idf[counts.indices] * (tf * (k1 + 1.0)) / (tf + saturation[rows])

    return sparse.csr_matrix(
        (data, counts.indices.copy(), counts.indptr.copy()),
        shape=counts.shape,
    )


def aggregate_scores(weights: sparse.spmatrix, epsilon: float = EPSILON) -> NDArray[np.float64]:
    """Sum contributions per document and floor the total at epsilon."""
    totals = np.asarray(weights.sum(axis=1), dtype=np.float64).ravel()
    return np.maximum(totals, epsilon)


# =============================================================================
# Fitted state
# =============================================================================


@dataclass(frozen=True, eq=False)
class BM25State:
    """
    Immutable snapshot produced by fit and read by every later call.

    Attributes:
        vocabulary: Frozen token -> column mapping (after pruning).
        n_features: Number of columns.
        idf: IDF per column, read-only.
        doc_lengths: Length of each fit document, read-only.
        avg_doc_length: Mean fit document length.
        max_score: Maximum fit score, set only when normalizing.
        term_weights: BM25 contributions of the fit corpus, used for ranking.
        idf_formula: Registered IDF formula name, None for a custom callable.
    """

    vocabulary: Mapping[str, int]
    n_features: int
    idf: NDArray[np.float64]
    doc_lengths: NDArray[np.float64]
    avg_doc_length: float
    max_score: float | None
    term_weights: sparse.csr_matrix
    idf_formula: str | None = None

    @property
    def n_documents(self) -> int:
        return len(self.doc_lengths)


# =============================================================================
# Vectorizer
# =============================================================================


class BM25Vectorizer:
    """
    BM25 relevance scorer over a count vectorizer.

    Args:
        k1: Term saturation factor (> 0). Higher values give more weight to
            repeated occurrences.
        b: Length normalization factor in [0, 1]. 0 disables length
            normalization, 1 normalizes fully.
        idf: IDF formula name ("lucene", "robertson", "log1p", "log_ratio")
            or a callable (df, n_docs) -> idf.
        normalize: Divide scores by the maximum score seen at fit.
        epsilon: Floor for scores and for the average document length.
        **count_options: VectorizerConfig options (ngram_range, stop_words,
            vocabulary, min_df, max_df, max_features, binary, tokenizer,
            preprocessor, chunk_size, n_jobs).
    """

    def __init__(
        self,
        *,
        k1: float = DEFAULT_K1,
        b: float = DEFAULT_B,
        idf: str | IDFFormula = DEFAULT_IDF,
        normalize: bool = False,
        epsilon: float = EPSILON,
        **count_options: Any,
    ):
        self.params = BM25Parameters(k1=k1, b=b, idf=idf, normalize=normalize, epsilon=epsilon)
        self.count_vectorizer = CountVectorizer(**count_options)
        self.state_: BM25State | None = None

    @classmethod
    def from_config(cls, params: BM25Parameters, config: VectorizerConfig) -> BM25Vectorizer:
        """Build an unfitted vectorizer from already validated configs."""
        vectorizer = cls.__new__(cls)
        vectorizer.params = params
        vectorizer.count_vectorizer = CountVectorizer(config)
        vectorizer.state_ = None
        return vectorizer

    @property
    def k1(self) -> float:
        return self.params.k1

    @property
    def b(self) -> float:
        return self.params.b

    term_saturation_factor = k1
    length_normalization_factor = b

    @property
    def config(self) -> VectorizerConfig:
        return self.count_vectorizer.config

    @property
    def state(self) -> BM25State:
        """The fitted snapshot; raises NotFittedError before fit."""
        state = self.state_
        if state is None:
            raise NotFittedError("BM25Vectorizer is not fitted yet; call fit() first.")
        return state

    def __repr__(self) -> str:
        params = self.params
        return (
            f"BM25Vectorizer(k1={params.k1}, b={params.b}, idf={params.idf!r}, "
            f"normalize={params.normalize}, fitted={self.state_ is not None})"
        )

    # ----- Fit -----------------------------------------------------------------

    def fit(self, corpus: Iterable[str]) -> BM25Vectorizer:
        """
        Fit vocabulary, IDF and average document length on the corpus.

        Returns:
            self, with ``state_`` replaced by a new immutable snapshot.
        """
        documents = as_documents(corpus)
        params = self.params

        counts = self.count_vectorizer.fit_transform(documents)
        count_state = self.count_vectorizer.state
        n_docs = counts.shape[0]
        if n_docs == 0:
            warnings.warn(
                "Fitting BM25Vectorizer on an empty corpus; every score will be floored at epsilon.",
                stacklevel=2,
            )

        idf = compute_idf(document_frequency(counts), n_docs, params.idf)
        doc_lengths = np.asarray(counts.sum(axis=1), dtype=np.float64).ravel()
        avg_doc_length = float(doc_lengths.mean()) if n_docs else 0.0

        term_weights = bm25_weights(counts, idf, avg_doc_length, params.k1, params.b, params.epsilon)

        max_score = None
        if params.normalize:
            fit_scores = aggregate_scores(term_weights, params.epsilon)
            max_score = float(fit_scores.max()) if n_docs else params.epsilon
            if max_score <= params.epsilon:
                warnings.warn(
                    "Every fit score is floored at epsilon; normalized scores will all be 1.0.",
                    stacklevel=2,
                )

        self.state_ = BM25State(
            vocabulary=count_state.vocabulary,
            n_features=count_state.n_features,
            idf=freeze_array(idf),
            doc_lengths=freeze_array(doc_lengths),
            avg_doc_length=avg_doc_length,
            max_score=max_score,
            term_weights=term_weights,
            idf_formula=params.idf_name,
        )
        logger.debug(
            "Fitted BM25: %d documents, %d features, avg_doc_length=%.4f",
            n_docs,
            self.state_.n_features,
            avg_doc_length,
        )
        return self

    # ----- Transform -----------------------------------------------------------

    def transform_weights(self, corpus: Iterable[str]) -> sparse.csr_matrix:
        """Per-feature BM25 contributions of every document, before aggregation."""
        return self._weights(self.state, corpus)

    def transform(self, corpus: Iterable[str]) -> NDArray[np.float64]:
        """
        Score every document of the corpus against the fitted state.

        The corpus may differ from the fit corpus and may be a single query.
        When normalizing against a fit corpus whose scores were all floored,
        the divisor is epsilon and every floored score maps to 1.0.

        Returns:
            Scores (n_documents,), floored at epsilon and divided by the fit
            maximum when normalizing.
        """
        state = self.state
        scores = aggregate_scores(self._weights(state, corpus), self.params.epsilon)
        if state.max_score is not None:
            scores = scores / state.max_score
        return scores

    def fit_transform(self, corpus: Iterable[str]) -> NDArray[np.float64]:
        """Fit on the corpus, then transform the same corpus."""
        documents = as_documents(corpus)
        return self.fit(documents).transform(documents)

    def _weights(self, state: BM25State, corpus: Iterable[str]) -> sparse.csr_matrix:
        counts = self.count_vectorizer.count(as_documents(corpus), state.vocabulary, state.n_features)
        params = self.params
        return bm25_weights(counts, state.idf, state.avg_doc_length, params.k1, params.b, params.epsilon)

    # ----- Ranking -------------------------------------------------------------

    def rank(
        self,
        query: str,
        top_k: int | None = None,
    ) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
        """
        Rank the fit documents against a query.

        A document's score is the sum of its contributions over the query's
        distinct vocabulary features.

        Returns:
            (sorted_indices, sorted_scores) in descending order
        """
        return self._rank(self.state, query, top_k)

    def batch_rank(
        self,
        queries: Sequence[str],
        top_k: int | None = None,
        num_workers: int = DEFAULT_NUM_WORKERS,
    ) -> list[tuple[NDArray[np.int64], NDArray[np.float64]]]:
        """Rank many queries against one fitted snapshot."""
        state = self.state
        return batch_rank_parallel(
            list(queries),
            lambda query: self._rank(state, query, top_k),
            num_workers=num_workers,
        )

    def _rank(
        self,
        state: BM25State,
        query: str,
        top_k: int | None,
    ) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
        query_counts = self.count_vectorizer.count([query], state.vocabulary, state.n_features)
        query_terms = np.unique(query_counts.indices)
        if query_terms.size == 0:
            scores = np.zeros(state.n_documents, dtype=np.float64)
        else:
            scores = np.asarray(
                state.term_weights[:, query_terms].sum(axis=1), dtype=np.float64
            ).ravel()
        return select_top_k(scores, top_k)


__all__ = [
    "bm25_weights",
    "aggregate_scores",
    "BM25State",
    "BM25Vectorizer",
]
