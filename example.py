"""
Example usage of DenseTSNE vs scikit-learn's t-SNE and PCA.
"""

import numpy as np
import matplotlib.pyplot as plt
from sklearn.datasets import make_blobs, load_digits
from sklearn.decomposition import PCA
from sklearn.manifold import TSNE

from densetsne import (
    DenseTSNE, ExecutionContext, evaluate_embedding,
    plot_loss_history, plot_affinity_matrix
)


def run_comparison(X, y, dataset_name):
    """Run all methods and compare metrics."""
    print(f"\n{'='*60}")
    print(f"Dataset: {dataset_name}")
    print(f"Shape: {X.shape}")
    print('='*60)

    embeddings = {}

    print("\nRunning PCA...")
    embeddings['PCA'] = PCA(n_components=2).fit_transform(X)

    print("Running sklearn t-SNE...")
    embeddings['sklearn t-SNE'] = TSNE(n_components=2, perplexity=30,
                                       random_state=42).fit_transform(X)

    print("Running DenseTSNE...")
    model = DenseTSNE(n_components=2, perplexity=30, n_iter=1000,
                      early_exaggeration=4.0, exaggeration_iter=100,
                      min_loss_delta=1e-6, random_state=42, verbose=True,
                      report_every=100)
    with ExecutionContext(random_state=42) as ctx:
        embeddings['DenseTSNE'] = model.fit_transform(X, ctx=ctx)

    results = {name: evaluate_embedding(X, Y) for name, Y in embeddings.items()}

    print("\nResults:")
    print("-" * 60)
    print(f"{'Method':<15} {'k-NN Recall':>12} {'Trust':>12} {'Continuity':>12}")
    print("-" * 60)
    for method, metrics in results.items():
        print(f"{method:<15} {metrics['knn_recall']:>12.3f} "
              f"{metrics['trustworthiness']:>12.3f} {metrics['continuity']:>12.3f}")

    n_methods = len(embeddings)
    fig, axes = plt.subplots(1, n_methods + 2, figsize=(4 * (n_methods + 2), 4))

    for ax, (name, Y) in zip(axes, embeddings.items()):
        ax.scatter(Y[:, 0], Y[:, 1], c=y, cmap='viridis', s=5, alpha=0.7)
        ax.set_title(f"{name}\nk-NN: {results[name]['knn_recall']:.2f}")
        ax.set_xticks([])
        ax.set_yticks([])

    plot_loss_history(model.loss_history_, model.force_norm_history_, ax=axes[-2])
    plot_affinity_matrix(model.affinities_, order=np.argsort(y), ax=axes[-1])

    plt.suptitle(dataset_name)
    plt.tight_layout()
    plt.savefig(f"{dataset_name.lower().replace(' ', '_')}_comparison.png", dpi=150)
    plt.show()

    return results


if __name__ == "__main__":
    print("Generating Blobs dataset...")
    X_blobs, y_blobs = make_blobs(
        n_samples=500, n_features=50, centers=5,
        cluster_std=2.0, random_state=42
    )
    run_comparison(X_blobs, y_blobs, "High-dim Blobs")

    print("\nLoading digits subset...")
    digits = load_digits()
    run_comparison(digits.data[:800], digits.target[:800], "Digits")

    print("\nDone! Check the saved PNG files for visualizations.")
