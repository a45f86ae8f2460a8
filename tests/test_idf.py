import numpy as np
import pytest

from ranking_vectorizers.idf import (
    IDF_FORMULAS,
    compute_idf,
    get_idf_formula,
    log1p_idf,
    lucene_idf,
    robertson_idf,
)


@pytest.fixture
def df():
    return np.array([0.0, 1.0, 5.0, 9.0, 10.0])


def test_robertson_can_be_negative(df):
    idf = robertson_idf(df, 10)
    assert idf[-1] < 0
    assert idf[0] > idf[1] > idf[2]


@pytest.mark.parametrize("formula", [lucene_idf, log1p_idf])
def test_smoothed_formulas_are_non_negative(df, formula):
    assert np.all(formula(df, 10) >= 0)


def test_log1p_is_zero_when_every_document_has_the_term():
    assert log1p_idf(np.array([4.0]), 4)[0] == 0.0


def test_lucene_matches_formula():
    expected = np.log(1 + (3 - 2 + 0.5) / (2 + 0.5))
    assert np.isclose(lucene_idf(np.array([2.0]), 3)[0], expected)


@pytest.mark.parametrize("name", sorted(IDF_FORMULAS))
def test_idf_is_a_pure_function(df, name):
    first = compute_idf(df, 10, name)
    second = compute_idf(df.copy(), 10, name)
    assert np.array_equal(first, second)
    assert np.all(np.isfinite(first))


@pytest.mark.parametrize("name", sorted(IDF_FORMULAS))
def test_idf_rarer_terms_weigh_more(name):
    idf = compute_idf(np.array([1.0, 2.0, 3.0]), 4, name)
    assert idf[0] > idf[1] > idf[2]


def test_log_ratio_handles_empty_corpus():
    idf = compute_idf(np.array([0.0]), 0, "log_ratio")
    assert np.all(np.isfinite(idf))


def test_custom_formula_is_passed_through():
    def flat(df, n_docs):
        return np.ones_like(df)

    assert get_idf_formula(flat) is flat
    assert list(compute_idf(np.array([1, 2]), 2, flat)) == [1.0, 1.0]


def test_unknown_formula():
    with pytest.raises(ValueError):
        get_idf_formula("bogus")


def test_formula_must_preserve_shape():
    with pytest.raises(ValueError):
        compute_idf(np.array([1.0, 2.0]), 2, lambda df, n_docs: np.array([1.0]))
