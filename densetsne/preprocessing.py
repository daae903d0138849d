"""
Input validation and cleaning for densetsne.
"""

import numpy as np


def check_points(X, min_samples=2):
    """
    Validate a point matrix.

    Parameters
    ----------
    X : array-like of shape (n_samples, n_features)
        Input data.
    min_samples : int, default=2
        Smallest accepted number of points.

    Returns
    -------
    X : ndarray of shape (n_samples, n_features)
        The data as a float array.
    """
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise ValueError(f"Expected 2D array of shape (n_samples, n_features), got {X.ndim}D")
    if X.shape[0] < min_samples:
        raise ValueError(f"Need at least {min_samples} samples, got {X.shape[0]}")
    if X.shape[1] < 1:
        raise ValueError("Need at least one feature")
    if not np.all(np.isfinite(X)):
        raise ValueError("Input contains NaN or infinity; see handle_missing_values()")
    return X


def handle_missing_values(X, strategy='mean'):
    """
    Handle missing values in data.

    Parameters
    ----------
    X : ndarray of shape (n_samples, n_features)
        Input data with potential NaN values.
    strategy : str, default='mean'
        Strategy: 'mean', 'median', 'zero', or 'drop'.

    Returns
    -------
    X_filled : ndarray
        Data with missing values handled. With 'drop', rows containing
        a NaN are removed.
    """
    X = np.asarray(X, dtype=np.float64)
    missing = np.isnan(X)

    if strategy == 'drop':
        return X[~missing.any(axis=1)]

    if strategy == 'mean':
        fill_values = np.nanmean(X, axis=0)
    elif strategy == 'median':
        fill_values = np.nanmedian(X, axis=0)
    elif strategy == 'zero':
        fill_values = np.zeros(X.shape[1])
    else:
        raise ValueError(f"Unknown strategy: {strategy}")

    # Columns that are entirely missing fall back to zero
    fill_values = np.nan_to_num(fill_values)
    return np.where(missing, fill_values[np.newaxis, :], X)
