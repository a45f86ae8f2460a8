from concurrent.futures import ThreadPoolExecutor
from dataclasses import FrozenInstanceError

import numpy as np
import pytest

from ranking_vectorizers import BM25Vectorizer, NotFittedError
from ranking_vectorizers.config import EPSILON
from ranking_vectorizers.ranking import MIN_QUERIES_FOR_PARALLEL


@pytest.fixture
def corpus():
    return ["the cat sat", "the cat sat on the mat", "dogs bark"]


@pytest.fixture
def seven_documents():
    return [
        "This is the first document",
        "The fast fox and the pig danced in the moonlight",
        "This document is kinda cool",
        "And this is another document",
        "A fox and hound quickly walked into a bar",
        "Is this a document",
        "The hound crossed the road with a fox",
    ]


def test_fit_freezes_state(corpus):
    vectorizer = BM25Vectorizer().fit(corpus)
    state = vectorizer.state
    assert state.n_features == 7
    assert state.idf.shape == (7,)
    assert list(state.doc_lengths) == [3.0, 6.0, 2.0]
    assert state.avg_doc_length == pytest.approx(11 / 3)
    assert state.max_score is None
    assert state.n_documents == 3


def test_transform_returns_one_score_per_document(corpus):
    vectorizer = BM25Vectorizer().fit(corpus)
    scores = vectorizer.transform(corpus)
    assert scores.shape == (3,)
    assert scores.dtype == np.float64
    assert np.all(scores > 0)


def test_transform_matches_formula(corpus):
    k1, b = 1.5, 0.75
    vectorizer = BM25Vectorizer(k1=k1, b=b).fit(corpus)
    state = vectorizer.state
    vocabulary = state.vocabulary

    score = vectorizer.transform(["cat cat mat"])[0]

    len_norm = 3 / state.avg_doc_length
    expected = 0.0
    for term, tf in [("cat", 2), ("mat", 1)]:
        idf = state.idf[vocabulary[term]]
        expected += idf * tf * (k1 + 1) / (tf + k1 * (1 - b + b * len_norm))
    assert score == pytest.approx(expected)


def test_absent_terms_contribute_exactly_zero(corpus):
    vectorizer = BM25Vectorizer().fit(corpus)
    weights = vectorizer.transform_weights(corpus).toarray()
    vocabulary = vectorizer.state.vocabulary
    assert weights[2, vocabulary["cat"]] == 0.0
    assert weights[2, vocabulary["sat"]] == 0.0
    assert weights[2, vocabulary["dogs"]] > 0.0


def test_non_matching_document_is_floored_at_epsilon(corpus):
    vectorizer = BM25Vectorizer().fit(corpus)
    no_match, match = vectorizer.transform(["zebra", "cat"])
    assert no_match == EPSILON
    assert match > no_match


def test_negative_idf_does_not_leak_into_absent_terms():
    vectorizer = BM25Vectorizer(idf="robertson").fit(["a b", "a c", "a d"])
    vocabulary = vectorizer.state.vocabulary
    assert vectorizer.state.idf[vocabulary["a"]] < 0

    weights = vectorizer.transform_weights(["b"]).toarray()
    assert weights[0, vocabulary["a"]] == 0.0
    assert vectorizer.transform(["a"])[0] == EPSILON
    assert vectorizer.transform(["b"])[0] > EPSILON


def test_fit_transform_equals_fit_then_transform(corpus):
    combined = BM25Vectorizer(ngram_range=(1, 2)).fit_transform(corpus)
    separate = BM25Vectorizer(ngram_range=(1, 2)).fit(corpus).transform(corpus)
    assert np.array_equal(combined, separate)


def test_fit_transform_accepts_generators(corpus):
    scores = BM25Vectorizer().fit_transform(doc for doc in corpus)
    assert np.array_equal(scores, BM25Vectorizer().fit_transform(corpus))


def test_transform_is_repeatable(corpus):
    vectorizer = BM25Vectorizer().fit(corpus)
    first = vectorizer.transform(["cat on a mat", "dogs"])
    second = vectorizer.transform(["cat on a mat", "dogs"])
    assert np.array_equal(first, second)


def test_refit_gives_identical_idf(corpus):
    first = BM25Vectorizer().fit(corpus).state.idf
    second = BM25Vectorizer().fit(list(corpus)).state.idf
    assert np.array_equal(first, second)


def test_transform_uses_frozen_average_length(corpus):
    vectorizer = BM25Vectorizer().fit(corpus)
    avg_doc_length = vectorizer.state.avg_doc_length
    vectorizer.transform(["cat " * 50])
    assert vectorizer.state.avg_doc_length == avg_doc_length


def test_larger_k1_increases_marginal_gain():
    corpus = ["a b", "c d", "a c"]
    gains = []
    for k1 in (0.5, 1.2, 2.0):
        vectorizer = BM25Vectorizer(k1=k1, b=0.0).fit(corpus)
        once, twice = vectorizer.transform(["a", "a a"])
        gains.append(twice - once)
    assert gains[0] < gains[1] < gains[2]


def test_zero_b_is_length_invariant(corpus):
    vectorizer = BM25Vectorizer(b=0.0).fit(corpus)
    cat = vectorizer.state.vocabulary["cat"]
    weights = vectorizer.transform_weights(["cat", "cat dogs bark mat on"]).toarray()
    assert weights[0, cat] == weights[1, cat]


def test_full_b_penalizes_long_documents(corpus):
    vectorizer = BM25Vectorizer(b=1.0).fit(corpus)
    cat = vectorizer.state.vocabulary["cat"]
    weights = vectorizer.transform_weights(["cat", "cat dogs bark mat on"]).toarray()
    assert weights[0, cat] > weights[1, cat]


def test_normalize_divides_by_fit_maximum(corpus):
    normalized = BM25Vectorizer(normalize=True).fit(corpus)
    raw = BM25Vectorizer().fit(corpus)

    fit_scores = normalized.transform(corpus)
    assert fit_scores.max() == pytest.approx(1.0)
    assert normalized.state.max_score == pytest.approx(raw.transform(corpus).max())

    queries = ["cat cat cat mat", "dogs"]
    assert np.array_equal(
        normalized.transform(queries),
        raw.transform(queries) / normalized.state.max_score,
    )


def test_stop_words_are_excluded_from_scoring(corpus):
    vectorizer = BM25Vectorizer(stop_words=["the", "on"]).fit(corpus)
    assert "the" not in vectorizer.state.vocabulary
    assert vectorizer.transform(["the on the"])[0] == EPSILON


def test_empty_corpus_warns_and_scores_epsilon():
    vectorizer = BM25Vectorizer()
    with pytest.warns(UserWarning, match="empty corpus"):
        vectorizer.fit([])
    assert vectorizer.state.avg_doc_length == 0.0
    assert list(vectorizer.transform(["anything at all"])) == [EPSILON]
    assert vectorizer.transform([]).shape == (0,)


def test_zero_average_length_is_guarded():
    vectorizer = BM25Vectorizer(vocabulary=["cat"]).fit(["", "dog"])
    assert vectorizer.state.avg_doc_length == 0.0
    scores = vectorizer.transform(["cat", ""])
    assert np.all(np.isfinite(scores))
    assert scores[0] >= EPSILON
    assert scores[1] == EPSILON


def test_custom_idf_callable(corpus):
    vectorizer = BM25Vectorizer(idf=lambda df, n_docs: np.ones_like(df)).fit(corpus)
    assert np.all(vectorizer.state.idf == 1.0)
    assert vectorizer.state.idf_formula is None


def test_hyperparameters_are_immutable():
    vectorizer = BM25Vectorizer(k1=1.5, b=0.5)
    assert vectorizer.term_saturation_factor == 1.5
    assert vectorizer.length_normalization_factor == 0.5
    with pytest.raises(AttributeError):
        vectorizer.k1 = 2.0
    with pytest.raises(FrozenInstanceError):
        vectorizer.params.b = 0.1


def test_state_arrays_are_read_only(corpus):
    state = BM25Vectorizer().fit(corpus).state
    with pytest.raises(ValueError):
        state.idf[0] = 1.0
    with pytest.raises(ValueError):
        state.doc_lengths[0] = 1.0
    with pytest.raises(TypeError):
        state.vocabulary["zebra"] = 99


def test_refit_replaces_snapshot(corpus):
    vectorizer = BM25Vectorizer().fit(corpus)
    old_state = vectorizer.state
    vectorizer.fit(["zebra stripes"])
    assert vectorizer.state is not old_state
    assert "cat" in old_state.vocabulary
    assert "cat" not in vectorizer.state.vocabulary


def test_not_fitted():
    vectorizer = BM25Vectorizer()
    with pytest.raises(NotFittedError):
        vectorizer.transform(["a"])
    with pytest.raises(NotFittedError):
        vectorizer.rank("a")


def test_rank(corpus):
    vectorizer = BM25Vectorizer().fit(corpus)
    indices, scores = vectorizer.rank("cat mat")
    assert list(indices) == [1, 0, 2]
    assert scores[0] > scores[1] > scores[2]
    assert scores[2] == 0.0

    top_indices, top_scores = vectorizer.rank("cat mat", top_k=2)
    assert list(top_indices) == [1, 0]
    assert np.array_equal(top_scores, scores[:2])


def test_rank_unknown_query(corpus):
    indices, scores = BM25Vectorizer().fit(corpus).rank("zebra")
    assert list(indices) == [0, 1, 2]
    assert np.all(scores == 0.0)


def test_rank_with_stop_words(seven_documents):
    query = "The quick brown fox and the hound crossed the road"
    vectorizer = BM25Vectorizer(k1=1.5, b=0.75, stop_words="english").fit(seven_documents)
    indices, _ = vectorizer.rank(query, top_k=1)
    assert seven_documents[indices[0]] == "The hound crossed the road with a fox"


def test_batch_rank_matches_single_rank(seven_documents):
    vectorizer = BM25Vectorizer().fit(seven_documents)
    queries = ["fox", "document", "hound road", "moonlight pig", "cool"] * 3
    assert len(queries) >= MIN_QUERIES_FOR_PARALLEL

    results = vectorizer.batch_rank(queries, top_k=3, num_workers=4)
    assert len(results) == len(queries)
    for query, (indices, scores) in zip(queries, results):
        expected_indices, expected_scores = vectorizer.rank(query, top_k=3)
        assert np.array_equal(indices, expected_indices)
        assert np.array_equal(scores, expected_scores)


def test_concurrent_transform_matches_sequential(seven_documents):
    vectorizer = BM25Vectorizer(ngram_range=(1, 2)).fit(seven_documents)
    queries = ["fox", "the hound", "document is cool", "moonlight pig", "bar"] * 20
    expected = [vectorizer.transform([query]) for query in queries]

    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(lambda query: vectorizer.transform([query]), queries))

    for got, want in zip(results, expected):
        assert np.array_equal(got, want)


def test_normalize_warns_when_every_fit_score_is_floored():
    vectorizer = BM25Vectorizer(idf="robertson", normalize=True)
    with pytest.warns(UserWarning, match="floored at epsilon"):
        vectorizer.fit(["a", "a", "a"])
    assert vectorizer.state.max_score == EPSILON
    assert list(vectorizer.transform(["a", "b"])) == [1.0, 1.0]
