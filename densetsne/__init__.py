from .backend import ExecutionContext, BackendError, DivergenceError
from .affinity import AffinityBuilder, conditional_affinities, joint_affinities
from .perplexity import PerplexityCalibrator, CalibrationResult
from .gradient import GradientEngine, GradientResult, kl_divergence
from .core import DenseTSNE, OptimizationLoop, StoppingPolicy, run_tsne
from .metrics import (
    knn_recall,
    trustworthiness,
    continuity,
    evaluate_embedding
)
from .preprocessing import check_points, handle_missing_values
from .utils import save_matrix, load_matrix, TrajectoryWriter
from .visualization import (
    plot_embedding,
    plot_loss_history,
    plot_affinity_matrix
)

__version__ = "0.1.0"
__all__ = [
    # Backend
    "ExecutionContext",
    "BackendError",
    "DivergenceError",
    # Pipeline
    "AffinityBuilder",
    "conditional_affinities",
    "joint_affinities",
    "PerplexityCalibrator",
    "CalibrationResult",
    "GradientEngine",
    "GradientResult",
    "kl_divergence",
    "DenseTSNE",
    "OptimizationLoop",
    "StoppingPolicy",
    "run_tsne",
    # Metrics
    "knn_recall",
    "trustworthiness",
    "continuity",
    "evaluate_embedding",
    # Preprocessing and IO
    "check_points",
    "handle_missing_values",
    "save_matrix",
    "load_matrix",
    "TrajectoryWriter",
    # Visualization
    "plot_embedding",
    "plot_loss_history",
    "plot_affinity_matrix"
]
