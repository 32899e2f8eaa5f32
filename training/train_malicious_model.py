"""
Train the strings-based malicious file classifier.

Run from the repository root (the script imports the top-level modules):
    python -m training.train_malicious_model --input strings.jsonl
or install the project first (pip install -e .).
"""
import argparse
import os
import pickle

import lightgbm as lgb
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.model_selection import train_test_split
from sklearn.pipeline import Pipeline
from sklearn.metrics import (
    accuracy_score, roc_auc_score, precision_score,
    recall_score, f1_score, confusion_matrix, ConfusionMatrixDisplay
)

from config import DEFAULT_SEED, MALICIOUS_MODEL_FILENAME


def load_strings_data(path):
    """
    Loads strings feature records from a .jsonl/.json or .parquet file.

    Returns:
        tuple: (list of strings features, np.ndarray of 0/1 labels)
    """
    if path.lower().endswith((".json", ".jsonl")):
        df = pd.read_json(path, lines=True, dtype={"strings": str})
    elif path.endswith(".parquet"):
        df = pd.read_parquet(path)
    else:
        raise ValueError(f"Unsupported file format: {path}")

    if "label" not in df.columns or "strings" not in df.columns:
        raise ValueError(f"Missing 'label' or 'strings' column in {path}")

    strings = df["strings"].fillna("").astype(str).tolist()
    labels = df["label"].astype(int).to_numpy()
    print(f"  ✅ Loaded {len(strings)} samples from {path}")
    print(f"  🔖 Label distribution: Benign(0)={int((labels == 0).sum())}, Malicious(1)={int((labels == 1).sum())}")
    return strings, labels


def build_pipeline(seed, scale_pos_weight=1.0):
    """N-gram TF-IDF featurization followed by a binary LightGBM classifier."""
    return Pipeline([
        ("ngrams", TfidfVectorizer(ngram_range=(1, 2), lowercase=True)),
        ("classifier", lgb.LGBMClassifier(
            objective="binary",
            random_state=seed,
            scale_pos_weight=scale_pos_weight,
            verbose=-1,
        )),
    ])


def plot_confusion_matrix(cm, output_file):
    disp = ConfusionMatrixDisplay(confusion_matrix=cm, display_labels=['Benign (0)', 'Malicious (1)'])
    disp.plot(cmap=plt.cm.Blues)
    plt.title("Confusion Matrix (Test Set)")
    plt.savefig(output_file)
    plt.close()
    print(f"✅ Confusion matrix plot saved to: {output_file}")


def train_malicious_model(training_path, model_path=MALICIOUS_MODEL_FILENAME, seed=DEFAULT_SEED,
                          test_fraction=0.2, confusion_plot=None):
    """
    Trains the strings-based malicious/benign classifier, evaluates it on a
    held-out split and pickles the fitted pipeline.

    Returns the metrics dict, or None if the training file is missing.
    """
    if not os.path.exists(training_path):
        print(f"❌ Failed to find training data file ({training_path})")
        return None

    print("📂 Loading training data...")
    strings, labels = load_strings_data(training_path)

    print(f"🔪 Splitting data into training and testing sets (test fraction {test_fraction})...")
    X_train, X_test, y_train, y_test = train_test_split(
        strings, labels, test_size=test_fraction, random_state=seed, stratify=labels
    )

    neg_count = int((y_train == 0).sum())
    pos_count = int((y_train == 1).sum())
    scale_pos_weight_value = 1.0
    if pos_count > 0 and neg_count > 0:
        scale_pos_weight_value = neg_count / pos_count
        print(f"⚖️ Calculated scale_pos_weight for imbalance: {scale_pos_weight_value:.2f}")
    else:
        print("⚠️ Warning: Could not calculate scale_pos_weight due to zero counts in one class.")

    pipeline = build_pipeline(seed, scale_pos_weight_value)
    print("▶️ Fitting model...")
    pipeline.fit(X_train, y_train)

    print("\n📈 Evaluating model performance on the test set...")
    y_pred_proba = pipeline.predict_proba(X_test)[:, 1]
    y_pred_binary = (y_pred_proba >= 0.5).astype(int)

    metrics = {
        "accuracy": float(accuracy_score(y_test, y_pred_binary)),
        "roc_auc": None,
        "precision": float(precision_score(y_test, y_pred_binary, zero_division=0)),
        "recall": float(recall_score(y_test, y_pred_binary, zero_division=0)),
        "f1": float(f1_score(y_test, y_pred_binary, zero_division=0)),
    }
    if len(np.unique(y_test)) > 1:
        metrics["roc_auc"] = float(roc_auc_score(y_test, y_pred_proba))
    else:
        print("⚠️ ROC AUC undefined: test split holds a single class.")

    print(f"🎯 Test Set Accuracy: {metrics['accuracy']:.4f}")
    print(f"📈 Test Set ROC AUC: {metrics['roc_auc']}")
    print(f"🔍 Test Set Precision (Malicious=1): {metrics['precision']:.4f}")
    print(f"🎯 Test Set Recall (Malicious=1): {metrics['recall']:.4f}")
    print(f"⚖️ Test Set F1-Score (Malicious=1): {metrics['f1']:.4f}")

    cm = confusion_matrix(y_test, y_pred_binary, labels=[0, 1])
    metrics["confusion_matrix"] = cm.tolist()
    print("\n📊 Confusion Matrix (Test Set):")
    print(f"     Predicted 0 | Predicted 1")
    print(f"True 0: {cm[0,0]:<10} | {cm[0,1]:<10}")
    print(f"True 1: {cm[1,0]:<10} | {cm[1,1]:<10}")
    if confusion_plot:
        plot_confusion_matrix(cm, confusion_plot)

    with open(model_path, 'wb') as f:
        pickle.dump(pipeline, f)
    print(f"💾 Model saved to: {model_path}")
    return metrics


def main():
    parser = argparse.ArgumentParser(description="Train the strings-based malicious file classifier.")
    parser.add_argument("--input", type=str, required=True, help="Input .jsonl or .parquet strings features")
    parser.add_argument("--output", type=str, default=MALICIOUS_MODEL_FILENAME, help="Output pickled model path")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Random seed for the split and LightGBM")
    parser.add_argument("--test-fraction", type=float, default=0.2, help="Fraction of samples held out for evaluation")
    parser.add_argument("--confusion-plot", type=str, default=None, help="Optional PNG path for the confusion matrix")
    args = parser.parse_args()

    metrics = train_malicious_model(args.input, args.output, seed=args.seed,
                                    test_fraction=args.test_fraction, confusion_plot=args.confusion_plot)
    if metrics is None:
        print("\n Script finished with errors.")
        return 1
    print("\n🎉 Script finished successfully!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
