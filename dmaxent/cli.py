"""Fit a DMaxEnt model to a dataset file and report its held-out log loss and AUC.

Usage:
    dmaxent --data-path points.txt --train-size 100 --beta 0.07 --tr --num-iterations 50
    dmaxent --config config.yaml -v 2
"""

from __future__ import annotations

import argparse
import math
import sys
from pathlib import Path
from typing import Optional, Sequence

from dmaxent.builder import ModelBuilder
from dmaxent.data import read_dataset, split_sample
from dmaxent.report import ModelReport
from dmaxent.utils.config import Config, load_config

# CLI flag -> (config section, field)
_OVERRIDES = {
    "alpha": ("model", "alpha"),
    "beta": ("model", "beta"),
    "num_iterations": ("model", "num_iterations"),
    "version": ("model", "version"),
    "feature_bound": ("model", "feature_bound"),
    "stop_if_converged": ("model", "stop_if_converged"),
    "data_path": ("data", "data_path"),
    "seed": ("data", "seed"),
    "train_size": ("data", "train_size"),
    "num_bins": ("data", "num_bins"),
    "raw": ("features", "raw"),
    "prod": ("features", "prod"),
    "th": ("features", "th"),
    "mon": ("features", "mon"),
    "tr": ("features", "tr"),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dmaxent",
        description="Fit a structural maximum-entropy density with coordinate descent.",
    )
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument("--alpha", type=float, default=None, help="Regularization parameter alpha")
    parser.add_argument("--beta", type=float, default=None, help="Regularization parameter beta")
    parser.add_argument("--num-iterations", type=int, default=None,
                        help="Number of coordinate descent iterations")
    parser.add_argument("--version", type=int, choices=(1, 2), default=None,
                        help="Step-size formula")
    parser.add_argument("--feature-bound", type=float, default=None,
                        help="Uniform bound on feature values")
    parser.add_argument("--data-path", default=None, help="Path to the dataset file")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the train/test split")
    parser.add_argument("--train-size", type=int, default=None, help="Size of the training sample")
    parser.add_argument("--num-bins", type=int, default=None,
                        help="Number of bins for threshold features and tree splits")
    parser.add_argument("--raw", action="store_true", default=None, help="Use raw features")
    parser.add_argument("--prod", action="store_true", default=None, help="Use product features")
    parser.add_argument("--th", action="store_true", default=None, help="Use threshold features")
    parser.add_argument("--mon", action="store_true", default=None, help="Use the monomial learner")
    parser.add_argument("--tr", action="store_true", default=None, help="Use the tree learner")
    parser.add_argument("--stop-if-converged", action=argparse.BooleanOptionalAction, default=None,
                        help="Stop once the gradient is below tolerance")
    parser.add_argument("-v", "--verbose", type=int, default=None, help="Verbosity level (0-4)")
    return parser


def resolve_config(args: argparse.Namespace) -> Config:
    """Load the config and apply the flags that were given on the command line."""
    data = load_config(args.config).model_dump()
    for flag, (section, name) in _OVERRIDES.items():
        value = getattr(args, flag)
        if value is not None:
            data[section][name] = value
    if args.verbose is not None:
        data["verbose"] = args.verbose
    config = Config.model_validate(data)
    config.validate_run()
    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args)
    except ValueError as e:
        parser.error(str(e))

    if not Path(config.data.data_path).exists():
        print(f"Dataset not found: {config.data.data_path}", file=sys.stderr)
        return 1

    dataset = read_dataset(config.data.data_path)
    train_sample, test_sample = split_sample(
        dataset.observations(), config.data.train_size, config.data.seed,
    )
    if config.verbose >= 1:
        print(f"[dmaxent] points={len(dataset.space)}  raw features={dataset.num_raw_features}  "
              f"observations={dataset.num_observations}  train={len(train_sample)}  test={len(test_sample)}")
    if not test_sample:
        print(f"No test observations left: train_size={config.data.train_size} "
              f"uses all {dataset.num_observations} observations", file=sys.stderr)
        return 1

    model = ModelBuilder(dataset.space, train_sample, test_sample, config).build()
    model.fit()

    model_log_loss = model.log_loss(test_sample)
    if model.has_both_classes(test_sample):
        model_auc = model.auc(test_sample)
    else:
        print("Test sample leaves no positives or no negatives in the space; AUC is undefined",
              file=sys.stderr)
        model_auc = math.nan
    print("Model log loss: %f" % model_log_loss)
    print("Model AUC: %f" % model_auc)

    if config.verbose >= 2:
        for line in ModelReport.from_model(model).format():
            print(f"[dmaxent] {line}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
