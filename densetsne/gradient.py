"""
Student-t affinities, KL loss and forces in the embedding space.
"""

import numpy as np

from .backend import DivergenceError


def kl_divergence(P, Q):
    """
    KL divergence sum_ij p_ij * (log p_ij - log q_ij).

    Terms with p_ij == 0 contribute exactly 0.
    """
    mask = P > 0
    p = P[mask].astype(np.float64)
    with np.errstate(divide='ignore'):
        return float(np.sum(p * (np.log(p) - np.log(Q[mask]))))


class GradientResult:
    """Forces, loss and low-dimensional affinities of one gradient step."""

    def __init__(self, forces, loss, Q):
        self.forces = forces
        self.loss = loss
        self.Q = Q


class GradientEngine:
    """
    Computes the KL gradient of an embedding against fixed affinities.

    Parameters
    ----------
    ctx : ExecutionContext
        Backend handle.
    """

    def __init__(self, ctx):
        self.ctx = ctx

    def student_t(self, Y):
        """
        Unnormalized Student-t kernel 1 / (1 + d_ij^2) with zero diagonal.

        The returned matrix is a scratch buffer of the context and is
        overwritten by the next call.
        """
        ctx = self.ctx
        N = Y.shape[0]
        W = ctx.sqdist(Y, out=ctx.scratch('embedding_kernel', (N, N)))
        ctx.transform(W, 'inv_inc', out=W)
        ctx.fill_diagonal(W, 0)
        return W

    def affinities(self, Y):
        """Low-dimensional affinities Q, normalized by one global sum."""
        W = self.student_t(self.ctx.asarray(Y))
        return W / self._normalization(W)

    def _normalization(self, W):
        Z = float(self.ctx.reduce(W))
        if not (np.isfinite(Z) and Z > 0):
            raise DivergenceError(f"Student-t normalization is {Z}")
        return W.dtype.type(Z)

    def compute(self, Y, P, learning_rate=1.0):
        """
        Forces and loss for the embedding ``Y``.

        Parameters
        ----------
        Y : ndarray of shape (n_samples, n_components)
            Current embedding.
        P : ndarray of shape (n_samples, n_samples)
            Fixed symmetric affinities with unit total mass.
        learning_rate : float, default=1.0
            Step scale folded into the forces.

        Returns
        -------
        result : GradientResult
            ``forces`` is ``-learning_rate * dL/dY``, so that adding it to
            ``Y`` decreases the loss.
        """
        ctx = self.ctx
        Y = ctx.asarray(Y)
        N, n_components = Y.shape
        if P.shape != (N, N):
            raise ValueError(f"P must have shape ({N}, {N}), got {P.shape}")

        W = self.student_t(Y)
        Q = W / self._normalization(W)
        loss = kl_divergence(P, Q)

        C = (P - Q) * W
        ones = np.ones((N, n_components), dtype=ctx.dtype)
        row_sums = ctx.gemm(C, ones)

        # 4 * eta * (C @ Y - Y * (C @ 1))
        scale = 4.0 * learning_rate
        forces = ctx.gemm(C, Y, alpha=scale, beta=-scale, C=Y * row_sums)
        return GradientResult(np.ascontiguousarray(forces), loss, Q)
