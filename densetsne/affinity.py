"""
High-dimensional affinities.

Column i of the conditional matrix holds p(j|i), the Gaussian neighbour
distribution of point i with bandwidth sigma[i].
"""

import numpy as np


def _check_sigma(sigma, n_samples):
    sigma = np.asarray(sigma)
    if sigma.shape != (n_samples,):
        raise ValueError(f"sigma must have shape ({n_samples},), got {sigma.shape}")
    if not np.all(sigma > 0):
        raise ValueError("sigma must be strictly positive")
    return sigma


def conditional_affinities(ctx, points, sigma, distances=None):
    """
    Column-normalized Gaussian affinities.

    Parameters
    ----------
    ctx : ExecutionContext
        Backend handle.
    points : ndarray of shape (n_samples, n_features)
        Input coordinates. Ignored when ``distances`` is given.
    sigma : ndarray of shape (n_samples,)
        Per-point bandwidths, strictly positive.
    distances : ndarray of shape (n_samples, n_samples) or None
        Precomputed squared distances between the points.

    Returns
    -------
    P : ndarray of shape (n_samples, n_samples)
        Matrix with zero diagonal whose columns each sum to 1.
    """
    if distances is None:
        distances = ctx.sqdist(points)
    N = distances.shape[0]
    sigma = _check_sigma(sigma, N)

    tiny = np.finfo(ctx.dtype).tiny
    sigma_sq = np.maximum(np.asarray(sigma, dtype=ctx.dtype) ** 2, tiny)

    # Shift each column by its nearest-neighbour distance. The nearest point
    # then gets exp(0) = 1, so a vanishing sigma cannot produce 0/0.
    D = ctx.scratch('affinity_shifted', (N, N))
    np.copyto(D, distances, casting='same_kind')
    ctx.fill_diagonal(D, np.inf)
    D -= D.min(axis=0)[np.newaxis, :]

    with np.errstate(over='ignore', invalid='ignore'):
        P = ctx.broadcast_divide(D, sigma_sq, axis=0, scale=-2.0)
        P = ctx.transform(P, 'exp', out=P)
    ctx.fill_diagonal(P, 0)

    col_sum = ctx.reduce(P, axis=0)
    return ctx.broadcast_divide(P, col_sum, axis=0, out=P)


def joint_affinities(P_conditional):
    """Symmetrize conditional affinities: (P + P^T) / 2."""
    return (P_conditional + P_conditional.T) / 2


class AffinityBuilder:
    """
    Builds the symmetric affinity matrix of a point set.

    Parameters
    ----------
    ctx : ExecutionContext
        Backend handle shared with the other components.
    """

    def __init__(self, ctx):
        self.ctx = ctx

    def conditional(self, points, sigma, distances=None):
        """Column-stochastic p(j|i) matrix, before symmetrization."""
        return conditional_affinities(self.ctx, points, sigma, distances=distances)

    def build(self, points, sigma):
        """
        Symmetric affinities of ``points`` with zero diagonal.

        The total mass of the result is n_samples, one unit per source point.
        """
        points = self.ctx.asarray(points)
        if points.ndim != 2 or points.shape[0] < 2:
            raise ValueError(f"Expected at least 2 points as a 2D matrix, got shape {points.shape}")
        return joint_affinities(self.conditional(points, sigma))
