"""
Benchmark suite for DenseTSNE: quality and wall time against reference methods.
"""

import time

import numpy as np
from sklearn.datasets import make_blobs, make_s_curve, load_digits
from sklearn.decomposition import PCA
from sklearn.manifold import TSNE

from densetsne import DenseTSNE, evaluate_embedding


class BenchmarkSuite:
    """
    Runs every method on every dataset and collects metrics.

    Parameters
    ----------
    methods : dict or None
        Dictionary of {name: callable} methods. If None, uses defaults.
    sizes : list of int, default=(200, 500, 1000)
        Sample counts of the scaling datasets. Dense t-SNE is O(N^2).
    random_state : int, default=42
        Random seed for reproducibility.
    """

    def __init__(self, methods=None, sizes=(200, 500, 1000), random_state=42):
        self.random_state = random_state
        self.sizes = sizes

        if methods is None:
            self.methods = {
                'PCA': lambda X: PCA(n_components=2, random_state=random_state).fit_transform(X),
                'sklearn t-SNE': lambda X: TSNE(n_components=2, random_state=random_state).fit_transform(X),
                'DenseTSNE': lambda X: DenseTSNE(n_components=2, perplexity=30,
                                                 min_loss_delta=1e-6,
                                                 random_state=random_state).fit_transform(X)
            }
        else:
            self.methods = methods

        self.results = {}

    def get_datasets(self):
        """Return dictionary of benchmark datasets."""
        datasets = {}

        for n in self.sizes:
            X, y = make_blobs(n_samples=n, n_features=50, centers=5,
                              cluster_std=2.0, random_state=self.random_state)
            datasets[f'Blobs 50D n={n}'] = (X, y)

        X, y = make_s_curve(n_samples=500, noise=0.1, random_state=self.random_state)
        datasets['S-Curve'] = (X, y)

        digits = load_digits()
        datasets['Digits'] = (digits.data[:1000], digits.target[:1000])

        return datasets

    def run_single(self, X, method_name):
        """Run a single method on a dataset."""
        method = self.methods[method_name]

        start_time = time.time()
        try:
            Y = method(X)
        except (ValueError, ArithmeticError, RuntimeError) as e:
            return {'success': False, 'error': str(e), 'time': time.time() - start_time}

        metrics = evaluate_embedding(X, Y)
        metrics['time'] = time.time() - start_time
        metrics['success'] = True
        return metrics

    def run_all(self, verbose=True):
        """Run all methods on all datasets."""
        self.results = {}

        for dataset_name, (X, _) in self.get_datasets().items():
            if verbose:
                print(f"\n[{dataset_name}] (n={X.shape[0]}, d={X.shape[1]})")

            self.results[dataset_name] = {}
            for method_name in self.methods:
                if verbose:
                    print(f"  Running {method_name}...", end=' ')

                metrics = self.run_single(X, method_name)
                self.results[dataset_name][method_name] = metrics

                if verbose:
                    if metrics['success']:
                        print(f"kNN={metrics['knn_recall']:.3f}, "
                              f"trust={metrics['trustworthiness']:.3f}, "
                              f"t={metrics['time']:.2f}s")
                    else:
                        print(f"FAILED: {metrics['error']}")

        return self.results

    def summarize(self):
        """Print mean scores per method."""
        if not self.results:
            print("No results to summarize. Run run_all() first.")
            return

        print("\n" + "=" * 70)
        print("BENCHMARK SUMMARY")
        print("=" * 70)
        print(f"{'Method':<15} {'kNN Recall':>12} {'Trust':>12} {'Continuity':>12} {'Time (s)':>12}")
        print("-" * 70)
        for method in self.methods:
            runs = [data[method] for data in self.results.values() if data[method]['success']]
            if not runs:
                print(f"{method:<15} {'failed':>12}")
                continue
            mean = {key: np.mean([r[key] for r in runs])
                    for key in ('knn_recall', 'trustworthiness', 'continuity', 'time')}
            print(f"{method:<15} {mean['knn_recall']:>12.3f} {mean['trustworthiness']:>12.3f} "
                  f"{mean['continuity']:>12.3f} {mean['time']:>12.2f}")


if __name__ == "__main__":
    print("Running DenseTSNE Benchmark Suite")
    print("=" * 50)

    suite = BenchmarkSuite()
    suite.run_all(verbose=True)
    suite.summarize()
