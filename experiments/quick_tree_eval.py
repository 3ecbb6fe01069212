import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np

# Allow running as: python experiments/quick_tree_eval.py
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from data_structures.dataset import DataStorage
from forest_trainer import ForestParams, RandomForestTrainer
from online_learner import OnlineLearnerParams, OnlineTreeLearner
from threshold_generator import RandomThresholdGenerator
from tree_builder import TreeBuilderParams, default_callback


def _make_blobs(n, d, n_classes, rng):
    centers = rng.normal(scale=3.0, size=(n_classes, d))
    y = rng.integers(0, n_classes, size=n)
    X = centers[y] + rng.normal(size=(n, d))
    return X, y


def _train_test_split(X, y, test_size, rng):
    idx = rng.permutation(X.shape[0])
    n_test = max(1, int(round(X.shape[0] * test_size)))
    return X[idx[n_test:]], X[idx[:n_test]], y[idx[n_test:]], y[idx[:n_test]]


def _leaf_accuracy(trees, X, y):
    votes = np.zeros((X.shape[0], int(y.max()) + 1), dtype=np.float64)
    for tree in trees:
        for i in range(X.shape[0]):
            leaf = tree.node(tree.find_leaf(X[i]))
            if leaf.log_probs is not None:
                votes[i, : leaf.log_probs.size] += leaf.log_probs
    return float(np.mean(np.argmax(votes, axis=1) == y))


def evaluate_batch(storage, X_test, y_test, split_search, args):
    params = ForestParams(
        num_trees=args.num_trees,
        tree_params=TreeBuilderParams(
            num_features=args.num_features,
            max_depth=args.max_depth,
            use_bootstrap=args.use_bootstrap,
            split_search=split_search,
        ),
        random_state=args.random_state,
    )
    trainer = RandomForestTrainer(params, callback=default_callback if args.verbose else None)
    trainer.fit(storage)
    return {
        "fit_time_sec": trainer.metrics["fit_time_sec"],
        "split_search_time_sec": trainer.metrics["split_search_time_sec"],
        "hist_updates": trainer.metrics["total_histogram_updates"],
        "avg_nodes": float(np.mean([m["num_nodes"] for m in trainer.metrics["tree_metrics"]])),
        "accuracy": _leaf_accuracy(trainer.trees, X_test, y_test),
    }


def evaluate_online(storage, X_test, y_test, args):
    learner = OnlineTreeLearner(
        OnlineLearnerParams(
            num_features=args.num_features,
            max_depth=args.max_depth,
            use_bootstrap=args.use_bootstrap,
            random_state=args.random_state,
        ),
        RandomThresholdGenerator.from_storage(storage),
    )
    start = time.perf_counter()
    tree = learner.learn(storage)
    return {
        "fit_time_sec": time.perf_counter() - start,
        "nodes": tree.node_count(),
        "splits": learner.metrics.splits,
        "accuracy": _leaf_accuracy([tree], X_test, y_test),
    }


def main():
    parser = argparse.ArgumentParser(description="Quick checks of the tree learners on synthetic blobs")
    parser.add_argument("--num-examples", type=int, default=2000)
    parser.add_argument("--dimensionality", type=int, default=8)
    parser.add_argument("--num-classes", type=int, default=4)
    parser.add_argument("--num-trees", type=int, default=10)
    parser.add_argument("--num-features", type=int, default=None)
    parser.add_argument("--max-depth", type=int, default=100)
    parser.add_argument("--use-bootstrap", action="store_true")
    parser.add_argument(
        "--variants",
        type=str,
        default="axis,projection,hyperplane,online",
        help="Comma-separated: axis, projection, hyperplane, online",
    )
    parser.add_argument("--random-state", type=int, default=42)
    parser.add_argument("--verbose", action="store_true", help="Log progress snapshots")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    variants = [v.strip() for v in args.variants.split(",") if v.strip()]
    if not variants:
        raise ValueError("No variants provided")

    rng = np.random.default_rng(args.random_state)
    X, y = _make_blobs(args.num_examples, args.dimensionality, args.num_classes, rng)
    X_train, X_test, y_train, y_test = _train_test_split(X, y, 0.25, rng)
    storage = DataStorage(X_train, y_train, num_classes=args.num_classes)
    print(f"n_train={storage.size()} n_test={X_test.shape[0]} d={storage.dimensionality()}")

    for variant in variants:
        if variant == "online":
            out = evaluate_online(storage, X_test, y_test, args)
            print(
                "online"
                f" time={out['fit_time_sec']:.3f}s"
                f" nodes={out['nodes']}"
                f" splits={out['splits']}"
                f" accuracy={out['accuracy']:.3f}"
            )
            continue

        out = evaluate_batch(storage, X_test, y_test, variant, args)
        print(
            f"{variant}"
            f" time={out['fit_time_sec']:.3f}s"
            f" split_search_time={out['split_search_time_sec']:.3f}s"
            f" hist_updates={out['hist_updates']}"
            f" avg_nodes={out['avg_nodes']:.1f}"
            f" accuracy={out['accuracy']:.3f}"
        )


if __name__ == "__main__":
    main()
