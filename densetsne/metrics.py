"""
Neighbourhood-preservation scores of a finished embedding.
"""

import numpy as np
from scipy.spatial.distance import pdist, squareform
from sklearn.neighbors import NearestNeighbors


def _knn_indices(X, k):
    """Indices of the k nearest neighbours of every row, self excluded."""
    nn = NearestNeighbors(n_neighbors=k + 1).fit(X)
    _, idx = nn.kneighbors(X)
    return idx[:, 1:]


def _rank_matrix(X):
    """
    ranks[i, j] is the neighbour rank of j as seen from i (1 = nearest).

    Ties are broken by index; the point itself gets rank 0.
    """
    D = squareform(pdist(X, metric='sqeuclidean'))
    np.fill_diagonal(D, -np.inf)
    order = np.argsort(D, axis=1, kind='stable')
    n = X.shape[0]
    ranks = np.empty((n, n), dtype=np.int64)
    np.put_along_axis(ranks, order, np.arange(n)[np.newaxis, :].repeat(n, axis=0), axis=1)
    return ranks


def knn_recall(X_high, X_low, k=15):
    """
    Fraction of high-dimensional k-NN preserved in the embedding.

    Parameters
    ----------
    X_high : ndarray of shape (n_samples, n_features)
        High-dimensional data.
    X_low : ndarray of shape (n_samples, n_components)
        Low-dimensional embedding.
    k : int, default=15
        Number of neighbors.

    Returns
    -------
    recall : float
        Mean k-NN recall across all points, in [0, 1].
    """
    k = min(k, X_high.shape[0] - 1)
    idx_high = _knn_indices(X_high, k)
    idx_low = _knn_indices(X_low, k)
    shared = [len(np.intersect1d(a, b)) for a, b in zip(idx_high, idx_low)]
    return float(np.mean(shared) / k)


def _rank_penalty(X_rank_space, X_knn_space, k):
    # Sum of (rank - k) over points that are k-NN in one space but not the other
    n = X_rank_space.shape[0]
    ranks = _rank_matrix(X_rank_space)
    idx = _knn_indices(X_knn_space, k)

    rows = np.repeat(np.arange(n), k)
    r = ranks[rows, idx.ravel()]
    penalty = np.sum(np.maximum(r - k, 0))

    max_penalty = n * k * (2 * n - 3 * k - 1) / 2
    if max_penalty <= 0:
        return 1.0
    return float(max(0.0, 1 - (2 / max_penalty) * penalty))


def trustworthiness(X_high, X_low, k=15):
    """
    Penalizes points that become false neighbors in the embedding.

    Returns
    -------
    T : float
        Trustworthiness score in [0, 1]. Higher is better.
    """
    k = min(k, X_high.shape[0] - 1)
    return _rank_penalty(X_high, X_low, k)


def continuity(X_high, X_low, k=15):
    """
    Penalizes neighbors that got separated in the embedding.

    Returns
    -------
    C : float
        Continuity score in [0, 1]. Higher is better.
    """
    k = min(k, X_high.shape[0] - 1)
    return _rank_penalty(X_low, X_high, k)


def evaluate_embedding(X_high, X_low, k=15):
    """
    Compute all metrics for an embedding.

    Returns
    -------
    metrics : dict
        Dictionary with all metric values.
    """
    return {
        'knn_recall': knn_recall(X_high, X_low, k),
        'trustworthiness': trustworthiness(X_high, X_low, k),
        'continuity': continuity(X_high, X_low, k)
    }
