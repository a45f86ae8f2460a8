from collections.abc import Sequence


def make_ngrams(tokens: Sequence[str], ngram_range: tuple[int, int] = (1, 1)) -> list[str]:
    """
    Expand a token sequence into word n-grams.

    All windows of size ``min_n`` come first, then all windows of size
    ``min_n + 1`` and so on up to ``max_n``. Windows are joined with a single
    space and kept in adjacency order. Duplicates are preserved.

    Example:
        >>> make_ngrams(["the", "cat", "sat"], (1, 2))
        ['the', 'cat', 'sat', 'the cat', 'cat sat']
    """
    min_n, max_n = ngram_range
    n_tokens = len(tokens)
    if min_n == 1 and max_n == 1:
        return list(tokens)

    ngrams: list[str] = []
    for n in range(min_n, min(max_n, n_tokens) + 1):
        ngrams.extend(" ".join(tokens[i : i + n]) for i in range(n_tokens - n + 1))
    return ngrams
