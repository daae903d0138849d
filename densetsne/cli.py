"""
Command line interface: embed a text matrix and write the result.
"""

import time
from argparse import ArgumentParser

from .backend import ExecutionContext
from .core import DenseTSNE
from .preprocessing import handle_missing_values
from .utils import load_matrix, save_matrix


def build_parser():
    parser = ArgumentParser(
        prog='densetsne',
        description='Embed points with exact dense t-SNE. Input and output are '
                    'text matrices with an "N D" header line.')

    parser.add_argument('input', help='Input point matrix.')
    parser.add_argument('--output', '-o', required=True,
                        help='Where to write the embedding.')
    parser.add_argument('--n-components', '-d', type=int, default=2,
                        help='Output dimensionality.')
    parser.add_argument('--perplexity', '-p', type=float, default=30.0,
                        help='Target perplexity. Use 0 to skip calibration and '
                             'draw random bandwidths.')
    parser.add_argument('--n-iter', '-n', type=int, default=1000,
                        help='Maximum number of iterations.')
    parser.add_argument('--learning-rate', '-l', default='auto',
                        help="Learning rate, or 'auto'.")
    parser.add_argument('--momentum', type=float, default=0.8)
    parser.add_argument('--min-loss-delta', type=float, default=None,
                        help='Stop once the loss stops improving by this much.')
    parser.add_argument('--fill-missing', choices=['mean', 'median', 'zero', 'drop'],
                        default=None, help='How to handle NaN entries in the input.')
    parser.add_argument('--float64', action='store_true',
                        help='Compute in double precision.')
    parser.add_argument('--seed', type=int, default=None)
    parser.add_argument('--dump-dir', default=None,
                        help='Write the input points and embedding snapshots here.')
    parser.add_argument('--dump-every', type=int, default=50)
    parser.add_argument('--verbose', '-v', action='store_true')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    learning_rate = args.learning_rate
    if learning_rate != 'auto':
        learning_rate = float(learning_rate)

    X = load_matrix(args.input)
    if args.fill_missing is not None:
        X = handle_missing_values(X, strategy=args.fill_missing)

    if args.verbose:
        print(f"Input: {args.input}, (N, D) = ({X.shape[0]}, {X.shape[1]})")

    model = DenseTSNE(
        n_components=args.n_components,
        perplexity=None if args.perplexity == 0 else args.perplexity,
        n_iter=args.n_iter,
        learning_rate=learning_rate,
        momentum=args.momentum,
        min_loss_delta=args.min_loss_delta,
        dtype='float64' if args.float64 else 'float32',
        verbose=args.verbose,
        dump_dir=args.dump_dir,
        dump_every=args.dump_every
    )

    start_time = time.time()
    with ExecutionContext(dtype=model.dtype, random_state=args.seed) as ctx:
        Y = model.fit_transform(X, ctx=ctx)
    elapsed = time.time() - start_time

    save_matrix(args.output, Y)
    if args.verbose:
        print(f"t-SNE took {elapsed:.2f} s, {model.n_iter_} iterations, "
              f"final KL {model.kl_divergence_:.6f}")
        print(f'Saved embedding in "{args.output}"')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
