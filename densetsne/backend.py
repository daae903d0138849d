"""
Dense linear-algebra backend for densetsne.

Every component receives an explicit ExecutionContext that owns the working
precision, the random generator and the reusable scratch buffers.
"""

import numpy as np
from scipy.linalg import blas
from scipy.spatial.distance import pdist, squareform
from sklearn.utils import check_random_state


class BackendError(RuntimeError):
    """A linear-algebra call failed. Fatal for the current run."""


class DivergenceError(ArithmeticError):
    """The optimization reached a non-finite state."""


def _entropy_term(P):
    # -p * log2(p), with 0 * log2(0) -> 0
    with np.errstate(divide='ignore', invalid='ignore'):
        H = -P * np.log2(P)
    H[np.isnan(H)] = 0
    return H


_TRANSFORMS = {
    'exp': np.exp,
    'log': np.log,
    'exp2': np.exp2,
    'inv_inc': lambda A: 1.0 / (1.0 + A),
    'entropy': _entropy_term,
}


class ExecutionContext:
    """
    Execution context shared by all components of a run.

    Parameters
    ----------
    dtype : numpy dtype, default=np.float32
        Working precision of every matrix created through the context.
    random_state : int, RandomState or None, default=None
        Seed or generator used for uniform random initialisation.
    """

    def __init__(self, dtype=np.float32, random_state=None):
        self.dtype = np.dtype(dtype)
        if self.dtype not in (np.dtype(np.float32), np.dtype(np.float64)):
            raise ValueError(f"Unsupported dtype: {self.dtype}")
        self.random_state = check_random_state(random_state)
        self._scratch = {}
        self._closed = False
        self._gemm = blas.sgemm if self.dtype == np.float32 else blas.dgemm

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    @property
    def closed(self):
        return self._closed

    def close(self):
        """Release scratch buffers. Further calls raise BackendError."""
        self._scratch.clear()
        self._closed = True

    def _check_open(self):
        if self._closed:
            raise BackendError("ExecutionContext is closed")

    def scratch(self, name, shape):
        """Return a reusable buffer, reallocated only when the shape changes."""
        self._check_open()
        buf = self._scratch.get(name)
        if buf is None or buf.shape != tuple(shape):
            buf = np.empty(shape, dtype=self.dtype)
            self._scratch[name] = buf
        return buf

    def asarray(self, A):
        self._check_open()
        return np.ascontiguousarray(A, dtype=self.dtype)

    def sqdist(self, X, out=None):
        """Pairwise squared Euclidean distances between the rows of X."""
        self._check_open()
        X = np.asarray(X)
        if X.ndim != 2:
            raise ValueError(f"Expected 2D matrix, got {X.ndim}D")
        # pdist works in float64, which keeps the diagonal exactly 0
        D = squareform(pdist(X.astype(np.float64, copy=False), metric='sqeuclidean'))
        if out is None:
            return D.astype(self.dtype)
        np.copyto(out, D, casting='same_kind')
        return out

    def transform(self, A, func, out=None):
        """Apply a named elementwise function to every entry of A."""
        self._check_open()
        try:
            f = _TRANSFORMS[func]
        except KeyError:
            raise ValueError(f"Unknown transform: {func}") from None
        R = f(A)
        if out is None:
            return R.astype(self.dtype, copy=False)
        out[...] = R
        return out

    def reduce(self, A, axis=None, scale=1.0):
        """Sum rows (axis=1), columns (axis=0) or everything, times scale."""
        self._check_open()
        S = np.sum(A, axis=axis, dtype=self.dtype)
        if scale != 1.0:
            S = S * self.dtype.type(scale)
        return S

    def broadcast_divide(self, A, v, axis, scale=1.0, out=None):
        """
        Divide A by ``scale * v`` along an axis.

        axis=0 divides column j by v[j]; axis=1 divides row i by v[i].
        """
        self._check_open()
        v = np.asarray(v, dtype=self.dtype) * self.dtype.type(scale)
        if axis == 0:
            denom = v[np.newaxis, :]
        elif axis == 1:
            denom = v[:, np.newaxis]
        else:
            raise ValueError(f"axis must be 0 or 1, got {axis}")
        if out is None:
            out = np.empty_like(A, dtype=self.dtype)
        np.divide(A, denom, out=out)
        return out

    def gemm(self, A, B, alpha=1.0, beta=0.0, C=None):
        """Return ``alpha * A @ B + beta * C`` through BLAS gemm."""
        self._check_open()
        if not (np.isfinite(alpha) and np.isfinite(beta)):
            raise BackendError(f"Non-finite gemm coefficients: alpha={alpha}, beta={beta}")
        A = np.asarray(A, dtype=self.dtype)
        B = np.asarray(B, dtype=self.dtype)
        if A.shape[1] != B.shape[0]:
            raise BackendError(f"gemm shape mismatch: {A.shape} x {B.shape}")
        try:
            if C is None or beta == 0.0:
                return self._gemm(alpha, A, B)
            C = np.array(C, dtype=self.dtype, order='F')
            return self._gemm(alpha, A, B, beta=beta, c=C, overwrite_c=True)
        except Exception as e:
            raise BackendError(f"gemm failed: {e}") from e

    def uniform(self, size, low=0.0, high=1.0):
        self._check_open()
        return self.random_state.uniform(low, high, size=size).astype(self.dtype)

    def norm(self, v):
        self._check_open()
        return float(np.linalg.norm(np.ravel(v)))

    def max_normalize(self, A):
        """Divide a matrix by its largest absolute entry."""
        self._check_open()
        A = self.asarray(A)
        m = np.max(np.abs(A)) if A.size else 0
        if m == 0:
            return A.copy()
        return A / self.dtype.type(m)

    def fill_diagonal(self, A, value=0):
        self._check_open()
        np.fill_diagonal(A, value)
        return A
