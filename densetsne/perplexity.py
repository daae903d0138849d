"""
Per-point bandwidth calibration.

Each point's sigma is found by bisection so that the perplexity of its
conditional neighbour distribution matches a target. All points are searched
in lock-step, one batch per iteration.
"""

import numpy as np

from .affinity import conditional_affinities


class CalibrationResult:
    """
    Outcome of a perplexity calibration.

    Attributes
    ----------
    sigma : ndarray of shape (n_samples,)
        Best bandwidth found per point.
    perplexity : ndarray of shape (n_samples,)
        Perplexity reached with ``sigma``.
    error : ndarray of shape (n_samples,)
        Absolute difference between ``perplexity`` and the target.
    n_iter : int
        Number of bisection iterations run.
    converged : bool
        Whether every point reached the tolerance.
    """

    def __init__(self, sigma, perplexity, error, n_iter, converged):
        self.sigma = sigma
        self.perplexity = perplexity
        self.error = error
        self.n_iter = n_iter
        self.converged = converged

    def __repr__(self):
        return (f"CalibrationResult(n_iter={self.n_iter}, converged={self.converged}, "
                f"max_error={self.error.max():.3g})")


class PerplexityCalibrator:
    """
    Binary search on sigma for a given perplexity.

    Parameters
    ----------
    ctx : ExecutionContext
        Backend handle.
    perplexity : float, default=30.0
        Target perplexity (effective number of neighbours).
    tol : float, default=1e-3
        Largest accepted absolute perplexity error.
    max_iter : int, default=5000
        Iteration cap of the search.
    verbose : bool, default=False
        Whether to print search progress.
    """

    def __init__(self, ctx, perplexity=30.0, tol=1e-3, max_iter=5000, verbose=False):
        if perplexity < 1:
            raise ValueError(f"perplexity must be at least 1, got {perplexity}")
        if tol <= 0:
            raise ValueError(f"tol must be positive, got {tol}")
        if max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {max_iter}")
        self.ctx = ctx
        self.perplexity = perplexity
        self.tol = tol
        self.max_iter = max_iter
        self.verbose = verbose

    def perplexity_of(self, points, sigma, distances=None):
        """Perplexity 2**H of each point's conditional distribution."""
        P = conditional_affinities(self.ctx, points, sigma, distances=distances)
        H = self.ctx.reduce(self.ctx.transform(P, 'entropy'), axis=0)
        return self.ctx.transform(H, 'exp2')

    def calibrate(self, points, sigma0=None):
        """
        Search the bandwidth of every point.

        Parameters
        ----------
        points : ndarray of shape (n_samples, n_features)
            Input coordinates.
        sigma0 : ndarray of shape (n_samples,) or None
            Starting bandwidths. Defaults to ones.

        Returns
        -------
        result : CalibrationResult
        """
        ctx = self.ctx
        points = ctx.asarray(points)
        N = points.shape[0]
        if not 1 <= self.perplexity <= N - 1:
            raise ValueError(
                f"perplexity must be in [1, n_samples - 1] = [1, {N - 1}], got {self.perplexity}"
            )

        # Distances do not depend on sigma, compute them once
        D = ctx.sqdist(points, out=ctx.scratch('calibration_distances', (N, N)))

        # sigma**2 must stay a positive finite number in the working precision
        finfo = np.finfo(ctx.dtype)
        sigma_min = float(np.sqrt(finfo.tiny))
        sigma_max = float(np.sqrt(finfo.max))

        sigma = np.ones(N) if sigma0 is None else np.array(sigma0, dtype=np.float64)
        sigma = np.clip(sigma, sigma_min, sigma_max)
        lower = np.zeros(N)
        upper = np.full(N, np.inf)
        # Points whose target is out of reach keep their best sigma
        frozen = np.zeros(N, dtype=bool)

        best_sigma = sigma.copy()
        best_perp = np.zeros(N)
        best_err = np.full(N, np.inf)
        converged = False

        for it in range(1, self.max_iter + 1):
            perp = self.perplexity_of(None, sigma, distances=D).astype(np.float64)
            err = np.abs(perp - self.perplexity)

            improved = err < best_err
            best_err[improved] = err[improved]
            best_sigma[improved] = sigma[improved]
            best_perp[improved] = perp[improved]

            if self.verbose and (it == 1 or it % 100 == 0):
                print(f"Finding sigmas... Iteration {it}/{self.max_iter}: "
                      f"perplexities in [{perp.min():.4f}, {perp.max():.4f}]")

            if best_err.max() < self.tol:
                converged = True
                break

            active = (err >= self.tol) & ~frozen
            too_tight = active & (perp < self.perplexity)
            too_wide = active & ~too_tight
            lower = np.where(too_tight, sigma, lower)
            upper = np.where(too_wide, sigma, upper)

            # Expand the bracket until an upper bound is known
            new_sigma = np.where(np.isinf(upper), sigma * 2, (lower + upper) / 2)

            # Tied nearest neighbours bound the perplexity from below, so the
            # search can run into the representable range or stop moving
            stuck = (new_sigma < sigma_min) | (new_sigma > sigma_max) | (new_sigma == sigma)
            frozen |= active & stuck
            active &= ~stuck
            if not active.any():
                break
            sigma = np.where(active, new_sigma, sigma)

        if self.verbose:
            status = "Converged" if converged else "Stopped"
            print(f"{status} after {it} iterations. Perplexities in "
                  f"[{best_perp.min():.4f}, {best_perp.max():.4f}], "
                  f"max error {best_err.max():.2e}")

        return CalibrationResult(
            sigma=best_sigma.astype(ctx.dtype),
            perplexity=best_perp,
            error=best_err,
            n_iter=it,
            converged=converged,
        )
