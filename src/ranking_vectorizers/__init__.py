"""
Term-frequency vectorization and BM25 relevance scoring.

Usage:
    from ranking_vectorizers import BM25Vectorizer

    vectorizer = BM25Vectorizer(k1=1.5, b=0.75)
    scores = vectorizer.fit_transform(corpus)
"""

from ranking_vectorizers.bm25_vectorizer import BM25State, BM25Vectorizer, bm25_weights
from ranking_vectorizers.config import BM25Parameters, VectorizerConfig
from ranking_vectorizers.count_vectorizer import (
    CountState,
    CountVectorizer,
    document_frequency,
    prune_features,
)
from ranking_vectorizers.exceptions import (
    ConfigurationError,
    NotFittedError,
    RankingVectorizersError,
)
from ranking_vectorizers.idf import IDF_FORMULAS, compute_idf
from ranking_vectorizers.ngrams import make_ngrams
from ranking_vectorizers.persistence import load_vectorizer, save_vectorizer
from ranking_vectorizers.ranking import select_top_k
from ranking_vectorizers.tokenization import ENGLISH_STOPWORDS, RegexTokenizer, Tokenizer, tokenize

__version__ = "0.1.0"

__all__ = [
    "BM25Vectorizer",
    "BM25State",
    "BM25Parameters",
    "bm25_weights",
    "CountVectorizer",
    "CountState",
    "VectorizerConfig",
    "document_frequency",
    "prune_features",
    "make_ngrams",
    "IDF_FORMULAS",
    "compute_idf",
    "select_top_k",
    "save_vectorizer",
    "load_vectorizer",
    "Tokenizer",
    "RegexTokenizer",
    "tokenize",
    "ENGLISH_STOPWORDS",
    "ConfigurationError",
    "NotFittedError",
    "RankingVectorizersError",
]
