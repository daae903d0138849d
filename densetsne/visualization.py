"""
Visualization utilities for densetsne embeddings.
"""

import numpy as np
import matplotlib.pyplot as plt


def plot_embedding(Y, labels=None, title=None, ax=None, cmap='viridis',
                   point_size=10, alpha=0.7, colorbar=True):
    """
    Scatter plot of a 2D or 3D embedding.

    Parameters
    ----------
    Y : ndarray of shape (n_samples, 2) or (n_samples, 3)
        Embedding coordinates. Further columns are ignored beyond the third.
    labels : ndarray or None
        Point labels for coloring.
    title : str or None
        Plot title.
    ax : matplotlib.axes.Axes or None
        Axes to plot on. A new figure is created if None, with a 3D projection
        when ``Y`` has three or more columns. A given 2D axes always gets the
        first two columns.
    cmap : str, default='viridis'
        Colormap name.
    point_size : float, default=10
        Size of scatter points.
    alpha : float, default=0.7
        Point transparency.
    colorbar : bool, default=True
        Whether to show a colorbar when there is more than one label.

    Returns
    -------
    ax : matplotlib.axes.Axes
    """
    Y = np.asarray(Y)
    if Y.ndim != 2 or Y.shape[1] < 2:
        raise ValueError(f"Expected embedding with at least 2 columns, got shape {Y.shape}")
    if ax is None:
        fig = plt.figure(figsize=(8, 8))
        ax = fig.add_subplot(projection='3d' if Y.shape[1] >= 3 else None)
    if labels is None:
        labels = np.zeros(len(Y))

    coords = [Y[:, 0], Y[:, 1]]
    if ax.name == '3d':
        if Y.shape[1] < 3:
            raise ValueError("A 3D axes needs an embedding with 3 columns")
        coords.append(Y[:, 2])
    scatter = ax.scatter(*coords, c=labels, cmap=cmap, s=point_size, alpha=alpha)

    if colorbar and len(np.unique(labels)) > 1:
        plt.colorbar(scatter, ax=ax)

    ax.set_xticks([])
    ax.set_yticks([])
    if ax.name == '3d':
        ax.set_zticks([])

    if title:
        ax.set_title(title)

    return ax


def plot_loss_history(loss_history, force_norm_history=None,
                      title='KL divergence', ax=None):
    """
    Plot the loss per iteration, optionally with the force magnitude.

    The force magnitude is drawn on a logarithmic secondary axis.

    Returns
    -------
    ax : matplotlib.axes.Axes
        The axes holding the loss curve.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 4))

    ax.plot(loss_history, linewidth=1.5, label='loss')
    ax.set_xlabel('Iteration')
    ax.set_ylabel('KL divergence')
    ax.set_title(title)
    ax.grid(True, alpha=0.3)

    if force_norm_history is not None and len(force_norm_history):
        ax2 = ax.twinx()
        ax2.plot(force_norm_history, color='tab:orange', linewidth=1.0, alpha=0.8)
        ax2.set_yscale('log')
        ax2.set_ylabel('|forces|')

    return ax


def plot_affinity_matrix(P, order=None, title='Affinities', ax=None, cmap='magma'):
    """
    Show an affinity matrix as an image.

    Parameters
    ----------
    P : ndarray of shape (n_samples, n_samples)
        Affinity matrix, e.g. ``DenseTSNE.affinities_``.
    order : ndarray or None
        Permutation applied to rows and columns, e.g. ``np.argsort(labels)``,
        to make block structure visible.

    Returns
    -------
    ax : matplotlib.axes.Axes
    """
    P = np.asarray(P)
    if order is not None:
        P = P[np.ix_(order, order)]
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 6))

    im = ax.imshow(P, cmap=cmap, interpolation='nearest')
    plt.colorbar(im, ax=ax)
    ax.set_xticks([])
    ax.set_yticks([])
    ax.set_title(title)
    return ax
