"""
Inverse document frequency strategies.

Every strategy is a pure function ``(df, n_docs) -> idf`` over a vector of
document frequencies. A vectorizer picks exactly one strategy at construction
and applies it once at fit; transform only ever reads the frozen result.

Formulas:
    - robertson: log((N - df + 0.5) / (df + 0.5))      [can be negative]
    - lucene:    log(1 + (N - df + 0.5) / (df + 0.5))  [non-negative]
    - log1p:     log(1 + (N - df) / (df + 1))          [non-negative]
    - log_ratio: 1 - log((df + eps) / N)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


IDFFormula = Callable[["NDArray[np.float64]", int], "NDArray[np.float64]"]

LOG_RATIO_EPSILON = 1e-10


def robertson_idf(df: NDArray[np.float64], n_docs: int) -> NDArray[np.float64]:
    """Classic Robertson/Sparck Jones IDF."""
    return np.log((n_docs - df + 0.5) / (df + 0.5))


def lucene_idf(df: NDArray[np.float64], n_docs: int) -> NDArray[np.float64]:
    """Lucene IDF (non-negative)."""
    return np.log1p((n_docs - df + 0.5) / (df + 0.5))


def log1p_idf(df: NDArray[np.float64], n_docs: int) -> NDArray[np.float64]:
    """Add-one smoothed IDF (non-negative)."""
    return np.log1p((n_docs - df) / (df + 1.0))


def log_ratio_idf(df: NDArray[np.float64], n_docs: int) -> NDArray[np.float64]:
    """Shifted log ratio: 1 + log(N / df), with df and N floored away from zero."""
    return 1.0 - np.log((df + LOG_RATIO_EPSILON) / max(n_docs, 1))


IDF_FORMULAS: dict[str, IDFFormula] = {
    "robertson": robertson_idf,
    "lucene": lucene_idf,
    "log1p": log1p_idf,
    "log_ratio": log_ratio_idf,
}


def get_idf_formula(idf: str | IDFFormula) -> IDFFormula:
    """Resolve a registered formula name; callables are returned unchanged."""
    if callable(idf):
        return idf
    try:
        return IDF_FORMULAS[idf]
    except KeyError:
        raise ValueError(
            f"Unknown IDF formula {idf!r}; expected one of {sorted(IDF_FORMULAS)}"
        ) from None


def compute_idf(df: NDArray, n_docs: int, idf: str | IDFFormula = "lucene") -> NDArray[np.float64]:
    """Apply an IDF strategy to a document-frequency vector."""
    formula = get_idf_formula(idf)
    values = np.asarray(formula(np.asarray(df, dtype=np.float64), n_docs), dtype=np.float64)
    if values.shape != np.shape(df):
        raise ValueError(
            f"IDF formula returned shape {values.shape}, expected {np.shape(df)}"
        )
    return values


__all__ = [
    "IDFFormula",
    "robertson_idf",
    "lucene_idf",
    "log1p_idf",
    "log_ratio_idf",
    "IDF_FORMULAS",
    "get_idf_formula",
    "compute_idf",
]
