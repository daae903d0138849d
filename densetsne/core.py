"""
densetsne: exact t-SNE on dense matrices.

The embedding is optimized against the full N x N affinity matrix with a
momentum update. No tree or FFT approximation is used, so memory and compute
grow as O(N^2).
"""

import numpy as np

from .affinity import AffinityBuilder
from .backend import DivergenceError, ExecutionContext
from .gradient import GradientEngine, kl_divergence
from .perplexity import PerplexityCalibrator
from .preprocessing import check_points
from .utils import TrajectoryWriter


class StoppingPolicy:
    """
    When to end the optimization.

    Parameters
    ----------
    max_iter : int, default=1000
        Hard cap on the number of iterations.
    min_loss_delta : float or None, default=None
        If set, stop once the loss has improved by less than this amount on
        each of the last ``patience`` iterations.
    patience : int, default=50
        Window used with ``min_loss_delta``.
    """

    def __init__(self, max_iter=1000, min_loss_delta=None, patience=50):
        if max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {max_iter}")
        if patience < 1:
            raise ValueError(f"patience must be at least 1, got {patience}")
        self.max_iter = max_iter
        self.min_loss_delta = min_loss_delta
        self.patience = patience

    def should_stop(self, loss_history):
        """Whether the loss has plateaued. The iteration cap is enforced by the loop."""
        if self.min_loss_delta is None or len(loss_history) <= self.patience:
            return False
        recent = np.asarray(loss_history[-(self.patience + 1):])
        improvement = recent[:-1] - recent[1:]
        return bool(np.all(improvement < self.min_loss_delta))


class OptimizationLoop:
    """
    Momentum gradient descent of an embedding against fixed affinities.

    Parameters
    ----------
    ctx : ExecutionContext
        Backend handle.
    P : ndarray of shape (n_samples, n_samples)
        Symmetric affinities with unit total mass.
    Y : ndarray of shape (n_samples, n_components)
        Initial embedding.
    learning_rate : float, default=1.0
        Step scale of the forces.
    momentum : float, default=0.8
        Weight of the previous displacement.
    stopping : StoppingPolicy or None
        Defaults to ``StoppingPolicy()``.
    early_exaggeration : float, default=1.0
        Factor applied to P during the first ``exaggeration_iter`` iterations.
    exaggeration_iter : int, default=0
        Length of the exaggeration phase.
    report_every : int, default=50
        Reporting interval of verbose output.
    verbose : bool, default=False
        Whether to print loss and force magnitude.
    callback : callable or None
        Called as ``callback(iteration, loss, force_norm)`` after every
        iteration. Returning True stops the run.
    trajectory : callable or None
        Called as ``trajectory(iteration, Y)`` after every iteration.
    """

    def __init__(self, ctx, P, Y, learning_rate=1.0, momentum=0.8, stopping=None,
                 early_exaggeration=1.0, exaggeration_iter=0, report_every=50,
                 verbose=False, callback=None, trajectory=None):
        self.ctx = ctx
        self.P = ctx.asarray(P)
        self.Y = ctx.asarray(Y).copy()
        if self.P.shape != (self.Y.shape[0],) * 2:
            raise ValueError(f"P shape {self.P.shape} does not match embedding shape {self.Y.shape}")
        self.Y_prev = self.Y.copy()
        self.velocity = np.zeros_like(self.Y)
        self.learning_rate = learning_rate
        self.momentum = momentum
        if report_every < 1:
            raise ValueError(f"report_every must be at least 1, got {report_every}")
        self.stopping = stopping if stopping is not None else StoppingPolicy()
        self.early_exaggeration = early_exaggeration
        self.exaggeration_iter = exaggeration_iter
        self.report_every = report_every
        self.verbose = verbose
        self.callback = callback
        self.trajectory = trajectory

        self.engine = GradientEngine(ctx)
        self.loss_history = []
        self.force_norm_history = []
        self.n_iter = 0

    def step(self):
        """Run one iteration and return its GradientResult."""
        P = self.P
        if self.n_iter < self.exaggeration_iter:
            P = P * self.ctx.dtype.type(self.early_exaggeration)

        result = self.engine.compute(self.Y, P, self.learning_rate)

        self.velocity = self.ctx.dtype.type(self.momentum) * (self.Y - self.Y_prev)
        self.Y_prev = self.Y
        self.Y = self.Y + result.forces + self.velocity
        self.n_iter += 1
        return result

    def loss(self):
        """KL divergence of the current embedding against the unexaggerated P."""
        return kl_divergence(self.P, self.engine.affinities(self.Y))

    def run(self):
        """
        Iterate until the stopping policy or the callback ends the run.

        Returns
        -------
        Y : ndarray of shape (n_samples, n_components)
            Final embedding.
        """
        for t in range(self.stopping.max_iter):
            result = self.step()
            loss = result.loss
            force_norm = self.ctx.norm(result.forces)

            if not np.isfinite(loss):
                raise DivergenceError(f"Encountered {loss} for loss at iteration {t}")

            self.loss_history.append(loss)
            self.force_norm_history.append(force_norm)

            if self.trajectory is not None:
                self.trajectory(self.n_iter, self.Y)

            if self.verbose and t % self.report_every == 0:
                print(f"Iter {t}: loss={loss:.6f}, |forces|={force_norm:.4e}")

            if self.callback is not None and self.callback(t, loss, force_norm):
                if self.verbose:
                    print(f"Stopped by callback at iteration {t}")
                break

            # The loss jumps when exaggeration ends, only judge the plateau after it
            if self.stopping.should_stop(self.loss_history[self.exaggeration_iter:]):
                if self.verbose:
                    print(f"Early stopping at iteration {t}")
                break

        return self.Y


class DenseTSNE:
    """
    t-distributed Stochastic Neighbor Embedding on dense matrices.

    Parameters
    ----------
    n_components : int, default=2
        Number of dimensions in the embedding.
    perplexity : float or None, default=30.0
        Target perplexity of the bandwidth calibration. If None, calibration
        is skipped and bandwidths are drawn uniformly from ``sigma_range``.
    n_iter : int, default=1000
        Maximum number of optimization iterations.
    learning_rate : float or 'auto', default='auto'
        Step scale. 'auto' uses n_samples / early_exaggeration / 4, which keeps
        the initial attraction step of each point at about its neighbour mean.
    momentum : float, default=0.8
        Momentum coefficient.
    early_exaggeration : float, default=1.0
        Factor applied to the affinities during the first ``exaggeration_iter``
        iterations.
    exaggeration_iter : int, default=0
        Length of the exaggeration phase.
    min_loss_delta : float or None, default=None
        Optional plateau threshold of the stopping policy.
    patience : int, default=50
        Plateau window of the stopping policy.
    perplexity_tol : float, default=1e-3
        Tolerance of the bandwidth search.
    perplexity_max_iter : int, default=5000
        Iteration cap of the bandwidth search.
    sigma_range : tuple of float, default=(0.5, 1.0)
        Range of the random bandwidths used when ``perplexity`` is None.
    init : 'random' or ndarray, default='random'
        Uniform random initialization in [-init_scale, init_scale], or an
        explicit (n_samples, n_components) array.
    init_scale : float, default=1e-4
        Half-width of the random initialization.
    dtype : numpy dtype, default=np.float32
        Working precision.
    random_state : int or None, default=None
        Random seed for reproducibility.
    verbose : bool, default=False
        Whether to print calibration and optimization progress.
    report_every : int, default=50
        Reporting interval of verbose output.
    dump_dir : str or None, default=None
        If set, the rescaled input points and embedding snapshots are written
        there as text matrices.
    dump_every : int, default=50
        Snapshot interval when ``dump_dir`` is set.
    """

    def __init__(
        self,
        n_components=2,
        perplexity=30.0,
        n_iter=1000,
        learning_rate='auto',
        momentum=0.8,
        early_exaggeration=1.0,
        exaggeration_iter=0,
        min_loss_delta=None,
        patience=50,
        perplexity_tol=1e-3,
        perplexity_max_iter=5000,
        sigma_range=(0.5, 1.0),
        init='random',
        init_scale=1e-4,
        dtype=np.float32,
        random_state=None,
        verbose=False,
        report_every=50,
        dump_dir=None,
        dump_every=50
    ):
        self.n_components = n_components
        self.perplexity = perplexity
        self.n_iter = n_iter
        self.learning_rate = learning_rate
        self.momentum = momentum
        self.early_exaggeration = early_exaggeration
        self.exaggeration_iter = exaggeration_iter
        self.min_loss_delta = min_loss_delta
        self.patience = patience
        self.perplexity_tol = perplexity_tol
        self.perplexity_max_iter = perplexity_max_iter
        self.sigma_range = sigma_range
        self.init = init
        self.init_scale = init_scale
        self.dtype = dtype
        self.random_state = random_state
        self.verbose = verbose
        self.report_every = report_every
        self.dump_dir = dump_dir
        self.dump_every = dump_every

        self.embedding_ = None
        self.sigma_ = None
        self.affinities_ = None
        self.calibration_ = None
        self.loss_history_ = []
        self.force_norm_history_ = []
        self.n_iter_ = 0
        self.kl_divergence_ = None

    def fit_transform(self, X, ctx=None, callback=None):
        """
        Fit the model and return the embedding.

        Parameters
        ----------
        X : ndarray of shape (n_samples, n_features)
            High-dimensional input data.
        ctx : ExecutionContext or None
            Backend handle. A private context is created and closed when None.
        callback : callable or None
            Passed to the OptimizationLoop.

        Returns
        -------
        Y : ndarray of shape (n_samples, n_components)
            Low-dimensional embedding.
        """
        X = check_points(X)
        if self.n_components < 1:
            raise ValueError(f"n_components must be at least 1, got {self.n_components}")

        if ctx is None:
            with ExecutionContext(dtype=self.dtype, random_state=self.random_state) as own_ctx:
                return self._fit(own_ctx, X, callback)
        return self._fit(ctx, X, callback)

    def fit(self, X, ctx=None, callback=None):
        """Fit the model."""
        self.fit_transform(X, ctx=ctx, callback=callback)
        return self

    def _fit(self, ctx, X, callback):
        n_samples = X.shape[0]

        # Step 1: rescale so raw input scale does not dominate the distances
        X = ctx.max_normalize(X)

        # Step 2: bandwidths
        sigma = self._bandwidths(ctx, X)
        self.sigma_ = sigma

        # Step 3: affinities, total mass n_samples, normalized to a joint distribution
        P = AffinityBuilder(ctx).build(X, sigma)
        self.affinities_ = P
        P_joint = P / ctx.reduce(P)

        # Step 4: initial embedding
        Y = self._initial_embedding(ctx, n_samples)

        trajectory = None
        if self.dump_dir is not None:
            trajectory = TrajectoryWriter(self.dump_dir, every=self.dump_every)
            trajectory.write_points(X)
            trajectory(0, Y, force=True)

        # Step 5: optimize
        loop = OptimizationLoop(
            ctx, P_joint, Y,
            learning_rate=self._learning_rate(n_samples),
            momentum=self.momentum,
            stopping=StoppingPolicy(self.n_iter, self.min_loss_delta, self.patience),
            early_exaggeration=self.early_exaggeration,
            exaggeration_iter=self.exaggeration_iter,
            report_every=self.report_every,
            verbose=self.verbose,
            callback=callback,
            trajectory=trajectory
        )
        Y = loop.run()

        if trajectory is not None and loop.n_iter % self.dump_every != 0:
            trajectory(loop.n_iter, Y, force=True)

        self.embedding_ = np.array(Y)
        self.loss_history_ = loop.loss_history
        self.force_norm_history_ = loop.force_norm_history
        self.n_iter_ = loop.n_iter
        # loss_history[-1] belongs to the embedding before the last update
        self.kl_divergence_ = loop.loss()
        return self.embedding_

    def _bandwidths(self, ctx, X):
        """Calibrated bandwidths, or uniform random ones when calibration is off."""
        if self.perplexity is None:
            low, high = self.sigma_range
            if not 0 < low <= high:
                raise ValueError(f"sigma_range must satisfy 0 < low <= high, got {self.sigma_range}")
            self.calibration_ = None
            return ctx.uniform(X.shape[0], low, high)

        calibrator = PerplexityCalibrator(
            ctx,
            perplexity=self.perplexity,
            tol=self.perplexity_tol,
            max_iter=self.perplexity_max_iter,
            verbose=self.verbose
        )
        self.calibration_ = calibrator.calibrate(X)
        return self.calibration_.sigma

    def _initial_embedding(self, ctx, n_samples):
        if isinstance(self.init, str):
            if self.init != 'random':
                raise ValueError(f"Unknown init: {self.init}")
            Y = ctx.uniform(n_samples * self.n_components, -self.init_scale, self.init_scale)
            return Y.reshape(n_samples, self.n_components)

        Y = ctx.asarray(self.init)
        if Y.shape != (n_samples, self.n_components):
            raise ValueError(f"init must have shape ({n_samples}, {self.n_components}), got {Y.shape}")
        return Y.copy()

    def _learning_rate(self, n_samples):
        if self.learning_rate == 'auto':
            return n_samples / self.early_exaggeration / 4
        return float(self.learning_rate)


def run_tsne(ctx, points, n_samples, n_features, n_components=2, **params):
    """
    Embed a flattened point buffer.

    Parameters
    ----------
    ctx : ExecutionContext
        Backend handle owned by the caller.
    points : array-like of length n_samples * n_features
        Row-major input coordinates.
    n_samples, n_features : int
        Shape of the point matrix.
    n_components : int, default=2
        Output dimensionality.
    **params
        Further DenseTSNE parameters.

    Returns
    -------
    Y : ndarray of shape (n_samples, n_components)
    """
    points = np.asarray(points)
    if points.size != n_samples * n_features:
        raise ValueError(
            f"Buffer holds {points.size} values, expected {n_samples} x {n_features}"
        )
    X = points.reshape(n_samples, n_features)
    return DenseTSNE(n_components=n_components, **params).fit_transform(X, ctx=ctx)
