"""
Utility functions for densetsne: plain-text matrix dumps.

The text format is a header line ``N D`` followed by one row of D
whitespace-separated values per point.
"""

import os

import numpy as np


def save_matrix(path, M, fmt='%.8g'):
    """
    Write a matrix as text with an ``N D`` header line.

    Parameters
    ----------
    path : str
        Destination file.
    M : ndarray of shape (n_rows, n_cols)
        Matrix to write. A 1D array is written as a single column.
    fmt : str, default='%.8g'
        Format of each value.
    """
    M = np.asarray(M)
    if M.ndim == 1:
        M = M[:, np.newaxis]
    if M.ndim != 2:
        raise ValueError(f"Expected 2D matrix, got {M.ndim}D")
    np.savetxt(path, M, fmt=fmt, header=f"{M.shape[0]} {M.shape[1]}", comments='')


def load_matrix(path, dtype=np.float32):
    """
    Read a matrix written by :func:`save_matrix`.

    Returns
    -------
    M : ndarray of shape (N, D)
    """
    with open(path) as f:
        header = f.readline().split()
        if len(header) != 2:
            raise ValueError(f"{path}: expected header 'N D', got {' '.join(header)!r}")
        n_rows, n_cols = (int(v) for v in header)
        if n_rows == 0:
            return np.empty((0, n_cols), dtype=dtype)
        M = np.loadtxt(f, dtype=dtype, ndmin=2)

    if M.shape != (n_rows, n_cols):
        raise ValueError(f"{path}: header says {n_rows}x{n_cols}, found {M.shape[0]}x{M.shape[1]}")
    return M


class TrajectoryWriter:
    """
    Dumps the input points and snapshots of the embedding to a directory.

    Parameters
    ----------
    directory : str
        Output directory, created if missing.
    every : int, default=50
        Write one embedding snapshot every ``every`` iterations.
    """

    def __init__(self, directory, every=50):
        if every < 1:
            raise ValueError(f"every must be at least 1, got {every}")
        self.directory = directory
        self.every = every
        self.paths = []
        os.makedirs(directory, exist_ok=True)

    def write_points(self, X):
        path = os.path.join(self.directory, 'points.txt')
        save_matrix(path, X)
        return path

    def __call__(self, iteration, Y, force=False):
        """Write ``Y`` if ``iteration`` falls on the dump interval."""
        if not force and iteration % self.every != 0:
            return None
        path = os.path.join(self.directory, f'embedding_{iteration:06d}.txt')
        save_matrix(path, Y)
        self.paths.append(path)
        return path
