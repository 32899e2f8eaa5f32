"""
Train the K-Means file-type model from signature features.

Run from the repository root (the script imports the top-level modules):
    python -m training.train_file_type_model --train train.jsonl --test test.jsonl
or install the project first (pip install -e .).
"""
import argparse
import os
import pickle

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans
from sklearn.metrics import davies_bouldin_score, normalized_mutual_info_score

from cluster_labels import KMeansClusterModel, build_cluster_label_map
from config import DEFAULT_SEED, FILE_TYPE_MODEL_FILENAME, NUM_CLUSTERS
from signature_features import FEATURE_NAMES


def load_signature_data(path):
    """
    Loads signature feature records from a .jsonl/.json or .parquet file.

    Returns:
        tuple: (pd.DataFrame of float32 features named after FEATURE_NAMES,
                np.ndarray of int labels)
    """
    if path.lower().endswith((".json", ".jsonl")):
        df = pd.read_json(path, lines=True)
    elif path.endswith(".parquet"):
        df = pd.read_parquet(path)
    else:
        raise ValueError(f"Unsupported file format: {path}")

    missing = [c for c in ("label", *FEATURE_NAMES) if c not in df.columns]
    if missing:
        raise ValueError(f"Missing column(s) {missing} in {path}")

    unlabeled = df["label"].isna()
    if unlabeled.any():
        print(f"  ⚠️ Dropping {int(unlabeled.sum())} unlabeled rows in {path}")
        df = df[~unlabeled]
    if df.empty:
        raise ValueError(f"No labeled rows in {path}")

    features = df[list(FEATURE_NAMES)].astype(np.float32).reset_index(drop=True)
    labels = df["label"].astype(int).to_numpy()
    print(f"  ✅ Loaded {len(features)} samples from {path}")
    return features, labels


def evaluate_clustering(kmeans, X, y):
    """Average squared distance to the assigned centroid, Davies-Bouldin index and NMI."""
    predicted = kmeans.predict(X)
    distances = kmeans.transform(X)
    average_distance = float(np.mean(distances[np.arange(len(predicted)), predicted] ** 2))

    n_predicted = len(np.unique(predicted))
    if 2 <= n_predicted < len(X):
        davies_bouldin = float(davies_bouldin_score(X, predicted))
    else:
        print(f"  ⚠️ Davies-Bouldin index undefined for {n_predicted} cluster(s) over {len(X)} samples.")
        davies_bouldin = None

    return {
        "average_distance": average_distance,
        "davies_bouldin_index": davies_bouldin,
        "normalized_mutual_information": float(normalized_mutual_info_score(y, predicted)),
    }


def train_file_type_model(training_path, testing_path, model_path=FILE_TYPE_MODEL_FILENAME,
                          seed=DEFAULT_SEED, n_clusters=NUM_CLUSTERS):
    """
    Fits K-Means on the signature features, checks that every file type's
    exemplar lands in its own cluster, pickles the model and evaluates it.

    Returns the metrics dict, or None if a data file is missing.
    Raises ClusterConflictError when two file types share a cluster.
    """
    for path, role in ((training_path, "training"), (testing_path, "test")):
        if not os.path.exists(path):
            print(f"❌ Failed to find {role} data file ({path})")
            return None

    print("📂 Loading training data...")
    X_train, _ = load_signature_data(training_path)

    print(f"🧬 Fitting KMeans with {n_clusters} clusters (seed={seed})...")
    kmeans = KMeans(n_clusters=n_clusters, random_state=seed, n_init=10)
    kmeans.fit(X_train.to_numpy())
    model = KMeansClusterModel(kmeans)

    label_map = build_cluster_label_map(model)
    print(f"🔖 Cluster mapping: {label_map}")

    with open(model_path, 'wb') as f:
        pickle.dump(model, f)
    print(f"💾 Model saved to: {model_path}")

    print("📈 Evaluating on test data...")
    X_test, y_test = load_signature_data(testing_path)
    metrics = evaluate_clustering(kmeans, X_test.to_numpy(), y_test)

    print(f"Average Distance: {metrics['average_distance']}")
    print(f"Davies Bouldin Index: {metrics['davies_bouldin_index']}")
    print(f"Normalized Mutual Information: {metrics['normalized_mutual_information']}")
    return metrics


def main():
    parser = argparse.ArgumentParser(description="Train the K-Means file-type model from signature features.")
    parser.add_argument("--train", type=str, required=True, help="Training .jsonl or .parquet signature features")
    parser.add_argument("--test", type=str, required=True, help="Test .jsonl or .parquet signature features")
    parser.add_argument("--output", type=str, default=FILE_TYPE_MODEL_FILENAME, help="Output pickled model path")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Random seed for KMeans initialisation")
    args = parser.parse_args()

    metrics = train_file_type_model(args.train, args.test, args.output, seed=args.seed)
    if metrics is None:
        print("\n Script finished with errors.")
        return 1
    print("\n🎉 Script finished successfully!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
