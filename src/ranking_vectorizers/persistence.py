"""
Save and load fitted BM25 vectorizers.

A vectorizer is written as a single ``.npz`` archive: numeric state as numpy
arrays (stored bit-exactly) and everything else as one JSON metadata string.
Callables cannot be serialized; a vectorizer fitted with a custom tokenizer,
preprocessor or IDF formula must get them back through ``load_vectorizer``.
"""

from __future__ import annotations

import json
import logging
import os
from numbers import Integral
from typing import IO, TYPE_CHECKING, Any, Union

import numpy as np
from scipy import sparse

from ranking_vectorizers.bm25_vectorizer import BM25State, BM25Vectorizer, freeze_array
from ranking_vectorizers.config import BM25Parameters, VectorizerConfig
from ranking_vectorizers.count_vectorizer import CountState
from ranking_vectorizers.exceptions import ConfigurationError
from ranking_vectorizers.tokenization import RegexTokenizer

if TYPE_CHECKING:
    from collections.abc import Callable

    from ranking_vectorizers.idf import IDFFormula
    from ranking_vectorizers.tokenization import Tokenizer

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

PathLike = Union[str, os.PathLike, IO[bytes]]


def _plain_number(value: Any) -> int | float | None:
    if value is None:
        return None
    if isinstance(value, Integral):
        return int(value)
    return float(value)


def _dump_metadata(
    vectorizer: BM25Vectorizer, state: BM25State, count_state: CountState
) -> dict[str, Any]:
    params = vectorizer.params
    config = vectorizer.config
    tokenizer = config.tokenizer
    return {
        "format_version": FORMAT_VERSION,
        "params": {
            "k1": params.k1,
            "b": params.b,
            "idf": params.idf_name,
            "normalize": params.normalize,
            "epsilon": params.epsilon,
        },
        "config": {
            "ngram_range": list(config.ngram_range),
            "stop_words": sorted(config.stop_words),
            "vocabulary": dict(config.vocabulary) if config.vocabulary is not None else None,
            "min_df": _plain_number(config.min_df),
            "max_df": _plain_number(config.max_df),
            "max_features": _plain_number(config.max_features),
            "binary": config.binary,
            "tokenizer": (
                {"pattern": tokenizer.pattern, "lowercase": tokenizer.lowercase}
                if isinstance(tokenizer, RegexTokenizer)
                else None
            ),
            "custom_preprocessor": config.preprocessor is not None,
            "chunk_size": config.chunk_size,
            "n_jobs": config.n_jobs,
        },
        "state": {
            "vocabulary": dict(state.vocabulary),
            "n_features": state.n_features,
            "avg_doc_length": state.avg_doc_length,
            "max_score": state.max_score,
            "idf_formula": state.idf_formula,
            "pruned_features": sorted(count_state.pruned_features),
        },
    }


def save_vectorizer(vectorizer: BM25Vectorizer, path: PathLike) -> None:
    """
    Write a fitted vectorizer to ``path`` (numpy appends ``.npz`` to bare names).

    Raises:
        NotFittedError: The vectorizer has not been fitted.
    """
    state = vectorizer.state
    count_state = vectorizer.count_vectorizer.state
    metadata = _dump_metadata(vectorizer, state, count_state)
    weights = state.term_weights
    np.savez(
        path,
        metadata=np.array(json.dumps(metadata)),
        idf=state.idf,
        doc_lengths=state.doc_lengths,
        document_frequency=count_state.document_frequency,
        weights_data=weights.data,
        weights_indices=weights.indices,
        weights_indptr=weights.indptr,
        weights_shape=np.array(weights.shape, dtype=np.int64),
    )
    logger.debug("Saved BM25Vectorizer with %d features", state.n_features)


def load_vectorizer(
    path: PathLike,
    tokenizer: Tokenizer | None = None,
    preprocessor: Callable[[str], str] | None = None,
    idf: str | IDFFormula | None = None,
) -> BM25Vectorizer:
    """
    Rebuild a fitted vectorizer written by ``save_vectorizer``.

    Args:
        path: Archive to read.
        tokenizer: Required when the vectorizer used a custom tokenizer;
            overrides the stored one otherwise.
        preprocessor: Required when the vectorizer used a preprocessor.
        idf: Required when the vectorizer used a custom IDF callable.

    Returns:
        A fitted BM25Vectorizer whose transform output matches the saved one.
    """
    with np.load(path, allow_pickle=False) as archive:
        metadata = json.loads(str(archive["metadata"]))
        arrays = {name: archive[name] for name in archive.files if name != "metadata"}

    version = metadata.get("format_version")
    if version != FORMAT_VERSION:
        raise ConfigurationError(f"Unsupported vectorizer archive version: {version!r}")

    stored_params = metadata["params"]
    stored_config = metadata["config"]
    stored_state = metadata["state"]

    if tokenizer is None:
        if stored_config["tokenizer"] is None:
            raise ConfigurationError(
                "Vectorizer was fitted with a custom tokenizer; pass it to load_vectorizer()."
            )
        tokenizer = RegexTokenizer(**stored_config["tokenizer"])
    if preprocessor is None and stored_config["custom_preprocessor"]:
        raise ConfigurationError(
            "Vectorizer was fitted with a preprocessor; pass it to load_vectorizer()."
        )
    if idf is None:
        if stored_params["idf"] is None:
            raise ConfigurationError(
                "Vectorizer was fitted with a custom IDF formula; pass it to load_vectorizer()."
            )
        idf = stored_params["idf"]

    params = BM25Parameters(
        k1=stored_params["k1"],
        b=stored_params["b"],
        idf=idf,
        normalize=stored_params["normalize"],
        epsilon=stored_params["epsilon"],
    )
    config = VectorizerConfig(
        ngram_range=tuple(stored_config["ngram_range"]),
        stop_words=stored_config["stop_words"],
        vocabulary=stored_config["vocabulary"],
        min_df=stored_config["min_df"],
        max_df=stored_config["max_df"],
        max_features=stored_config["max_features"],
        binary=stored_config["binary"],
        tokenizer=tokenizer,
        preprocessor=preprocessor,
        chunk_size=stored_config["chunk_size"],
        n_jobs=stored_config["n_jobs"],
    )

    vectorizer = BM25Vectorizer.from_config(params, config)
    count_state = CountState.build(
        stored_state["vocabulary"],
        stored_state["n_features"],
        arrays["document_frequency"],
        stored_state["pruned_features"],
    )
    vectorizer.count_vectorizer.state_ = count_state
    term_weights = sparse.csr_matrix(
        (arrays["weights_data"], arrays["weights_indices"], arrays["weights_indptr"]),
        shape=tuple(int(n) for n in arrays["weights_shape"]),
    )
    vectorizer.state_ = BM25State(
        vocabulary=count_state.vocabulary,
        n_features=count_state.n_features,
        idf=freeze_array(arrays["idf"]),
        doc_lengths=freeze_array(arrays["doc_lengths"]),
        avg_doc_length=stored_state["avg_doc_length"],
        max_score=stored_state["max_score"],
        term_weights=term_weights,
        idf_formula=stored_state["idf_formula"],
    )
    return vectorizer


__all__ = ["FORMAT_VERSION", "save_vectorizer", "load_vectorizer"]
