import argparse
import logging
import os
import pickle
import sys
from dataclasses import dataclass
from typing import List, Tuple

from cluster_labels import (
    ClusterConflictError, UnknownClusterError, build_cluster_label_map,
    label_distances, resolve
)
from config import (
    FILE_TYPE_MODEL_ENV, FILE_TYPE_MODEL_FILENAME, MALICIOUS_MODEL_ENV,
    MALICIOUS_MODEL_FILENAME, get_env_or_default, setup_logging
)
from signature_features import Category, SignatureFeatureVector, from_bytes
from string_features import extract_strings

logger = logging.getLogger(__name__)

MALICIOUS_THRESHOLD = 0.5


@dataclass
class PredictionResult:
    category: Category
    distances: List[Tuple[Category, float]]
    features: SignatureFeatureVector


@dataclass
class MaliciousPrediction:
    is_malicious: bool
    probability: float


def predict(file_bytes, model, label_map) -> PredictionResult:
    """Classifies one file's bytes into a file type using a resolved cluster map."""
    features = from_bytes(file_bytes)
    cluster_id, distances = model.predict(features)
    return PredictionResult(
        category=resolve(label_map, cluster_id),
        distances=label_distances(label_map, distances),
        features=features,
    )


def predict_malicious(file_bytes, model) -> MaliciousPrediction:
    """Scores the strings feature of a file with a fitted text pipeline."""
    strings = extract_strings(file_bytes)
    probability = float(model.predict_proba([strings])[0][1])
    return MaliciousPrediction(
        is_malicious=probability >= MALICIOUS_THRESHOLD,
        probability=probability,
    )


def load_model(model_path):
    if not os.path.isfile(model_path):
        logger.error(f"Failed to find model at {model_path}")
        return None
    with open(model_path, "rb") as f:
        model = pickle.load(f)
    logger.info(f"Loaded model from {model_path}")
    return model


def read_input_file(input_path):
    if not os.path.isfile(input_path):
        logger.error(f"Failed to find input data at {input_path}")
        return None
    with open(input_path, "rb") as f:
        return f.read()


def predict_file(input_path, model_path):
    """
    Loads the file-type model, resolves its clusters and classifies one file.
    Returns None when the model or input file is missing.
    """
    model = load_model(model_path)
    if model is None:
        return None
    file_bytes = read_input_file(input_path)
    if file_bytes is None:
        return None

    label_map = build_cluster_label_map(model)
    return predict(file_bytes, model, label_map)


def predict_malicious_file(input_path, model_path):
    model = load_model(model_path)
    if model is None:
        return None
    file_bytes = read_input_file(input_path)
    if file_bytes is None:
        return None
    return predict_malicious(file_bytes, model)


def format_prediction(input_path, result):
    lines = [
        f"Based on input file: {input_path}",
        "",
        f"Feature Extraction: {result.features}",
        "",
        f"The file is predicted to be a {result.category.name.title()}",
        "",
        "Distances from all clusters:",
    ]
    lines.extend(f"{category.name.title()}: {distance}" for category, distance in result.distances)
    return "\n".join(lines)


def format_malicious_prediction(input_path, result):
    verdict = "malicious" if result.is_malicious else "benign"
    return (f"Based on the file ({input_path}) the file is classified as {verdict}"
            f" at a confidence level of {result.probability:.0%}")


# --- Main Function ---
def main(argv=None):
    parser = argparse.ArgumentParser(description="Classify a single file with a trained model")
    subparsers = parser.add_subparsers(dest="command", required=True)

    filetype_parser = subparsers.add_parser("filetype", help="Predict the file type (Executable/Document/Script)")
    filetype_parser.add_argument("input", type=str, help="Path to the file to classify")
    filetype_parser.add_argument("--model", type=str, default=None,
                                 help=f"Pickled file-type model (env {FILE_TYPE_MODEL_ENV}, default: {FILE_TYPE_MODEL_FILENAME})")

    malicious_parser = subparsers.add_parser("malicious", help="Predict whether the file is malicious")
    malicious_parser.add_argument("input", type=str, help="Path to the file to classify")
    malicious_parser.add_argument("--model", type=str, default=None,
                                  help=f"Pickled malicious model (env {MALICIOUS_MODEL_ENV}, default: {MALICIOUS_MODEL_FILENAME})")

    args = parser.parse_args(argv)

    if args.command == "filetype":
        model_path = get_env_or_default(args.model, FILE_TYPE_MODEL_ENV, FILE_TYPE_MODEL_FILENAME)
        try:
            result = predict_file(args.input, model_path)
        except ClusterConflictError as e:
            logger.error(f"Model cannot be used for prediction: {e}")
            return 1
        except UnknownClusterError as e:
            logger.error(f"Prediction fell outside the resolved clusters: {e}")
            return 1
        if result is None:
            return 1
        print(format_prediction(args.input, result))
    else:
        model_path = get_env_or_default(args.model, MALICIOUS_MODEL_ENV, MALICIOUS_MODEL_FILENAME)
        result = predict_malicious_file(args.input, model_path)
        if result is None:
            return 1
        print(format_malicious_prediction(args.input, result))
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(main())
