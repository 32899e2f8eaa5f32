import pickle

import numpy as np
import pytest
from sklearn.cluster import KMeans

from cluster_labels import KMeansClusterModel, build_cluster_label_map
from conftest import StubClusterModel
from predictor import (
    MaliciousPrediction, format_malicious_prediction, format_prediction, main,
    predict, predict_file, predict_malicious, predict_malicious_file
)
from signature_features import CATEGORY_PROFILES, Category
from training.train_malicious_model import build_pipeline


class StubTextModel:
    def __init__(self, probability):
        self.probability = probability
        self.inputs = []

    def predict_proba(self, texts):
        self.inputs.extend(texts)
        return np.array([[1.0 - self.probability, self.probability]] * len(texts))


@pytest.fixture
def kmeans_model_path(tmp_path):
    rows = []
    for profile in CATEGORY_PROFILES.values():
        rows.extend([profile] * 4)
    kmeans = KMeans(n_clusters=3, random_state=2020, n_init=10)
    kmeans.fit(np.array(rows, dtype=np.float32))
    path = tmp_path / "file_type_model.pkl"
    with open(path, "wb") as f:
        pickle.dump(KMeansClusterModel(kmeans), f)
    return path


def test_predict_with_stub(stub_model, exe_bytes):
    label_map = build_cluster_label_map(stub_model)
    result = predict(exe_bytes, stub_model, label_map)
    assert result.category == Category.EXECUTABLE
    assert [c for c, _ in result.distances] == [Category.SCRIPT, Category.EXECUTABLE, Category.DOCUMENT]
    assert dict(result.distances)[Category.EXECUTABLE] == 0.0
    assert result.features.features() == (1, 1, 0)


def test_predict_file_end_to_end(kmeans_model_path, tmp_path, zip_bytes, script_bytes):
    doc_path = tmp_path / "report.docx"
    doc_path.write_bytes(zip_bytes)
    script_path = tmp_path / "run.ps1"
    script_path.write_bytes(script_bytes)

    assert predict_file(str(doc_path), str(kmeans_model_path)).category == Category.DOCUMENT
    assert predict_file(str(script_path), str(kmeans_model_path)).category == Category.SCRIPT


def test_predict_file_missing_model(tmp_path, exe_bytes):
    input_path = tmp_path / "a.exe"
    input_path.write_bytes(exe_bytes)
    assert predict_file(str(input_path), str(tmp_path / "missing.pkl")) is None


def test_predict_file_missing_input(kmeans_model_path, tmp_path):
    assert predict_file(str(tmp_path / "missing.exe"), str(kmeans_model_path)) is None


def test_predict_malicious_uses_strings():
    model = StubTextModel(0.8)
    result = predict_malicious(b"\x00cmd.exe /c vssadmin delete shadows\x00", model)
    assert result == MaliciousPrediction(is_malicious=True, probability=pytest.approx(0.8))
    assert model.inputs == ["cmd.exe /c vssadmin delete shadows"]


def test_predict_malicious_below_threshold():
    assert predict_malicious(b"", StubTextModel(0.2)).is_malicious is False


def test_predict_malicious_file_missing_model(tmp_path):
    input_path = tmp_path / "x.bin"
    input_path.write_bytes(b"data")
    assert predict_malicious_file(str(input_path), str(tmp_path / "none.pkl")) is None


def test_format_prediction(stub_model, exe_bytes):
    label_map = build_cluster_label_map(stub_model)
    text = format_prediction("a.exe", predict(exe_bytes, stub_model, label_map))
    assert "The file is predicted to be a Executable" in text
    assert "Distances from all clusters:" in text
    assert "Script: 1.0" in text


def test_format_malicious_prediction():
    text = format_malicious_prediction("x.bin", MaliciousPrediction(False, 0.25))
    assert text == "Based on the file (x.bin) the file is classified as benign at a confidence level of 25%"


def test_cli_filetype(kmeans_model_path, tmp_path, exe_bytes, capsys):
    input_path = tmp_path / "setup.exe"
    input_path.write_bytes(exe_bytes)
    assert main(["filetype", str(input_path), "--model", str(kmeans_model_path)]) == 0
    assert "predicted to be a Executable" in capsys.readouterr().out


def test_cli_missing_input_exits_nonzero(kmeans_model_path, tmp_path):
    assert main(["filetype", str(tmp_path / "nope"), "--model", str(kmeans_model_path)]) == 1


def pickle_model(path, model):
    with open(path, "wb") as f:
        pickle.dump(model, f)
    return path


def test_cli_cluster_conflict_exits_nonzero(tmp_path, exe_bytes):
    model_path = pickle_model(
        tmp_path / "collapsed.pkl",
        StubClusterModel({profile: 1 for profile in CATEGORY_PROFILES.values()}),
    )
    input_path = tmp_path / "setup.exe"
    input_path.write_bytes(exe_bytes)
    assert main(["filetype", str(input_path), "--model", str(model_path)]) == 1


def test_cli_unknown_cluster_exits_nonzero(tmp_path):
    assignments = {profile: i + 1 for i, profile in enumerate(CATEGORY_PROFILES.values())}
    model_path = pickle_model(tmp_path / "stub.pkl", StubClusterModel(assignments, default=99))
    input_path = tmp_path / "blob.bin"
    # binary without a known header: (1, 0, 0) lands outside the mapped clusters
    input_path.write_bytes(b"\x00\x01\x02data")
    assert main(["filetype", str(input_path), "--model", str(model_path)]) == 1


@pytest.fixture
def malicious_model_path(tmp_path):
    benign = "Microsoft Corporation Windows Explorer shell32.dll"
    malicious = "powershell enc vssadmin delete shadows"
    strings = [f"{benign} build{i}" for i in range(6)] + [f"{malicious} stage{i}" for i in range(6)]
    labels = [0] * 6 + [1] * 6
    pipeline = build_pipeline(2020)
    pipeline.fit(strings, labels)
    return pickle_model(tmp_path / "malicious.pkl", pipeline)


def test_predict_malicious_file_with_fitted_pipeline(malicious_model_path, tmp_path):
    input_path = tmp_path / "x.bin"
    input_path.write_bytes(b"\x00powershell enc vssadmin delete shadows\x00")
    result = predict_malicious_file(str(input_path), str(malicious_model_path))
    assert isinstance(result, MaliciousPrediction)
    assert 0.0 <= result.probability <= 1.0
    assert result.is_malicious == (result.probability >= 0.5)


def test_cli_malicious(malicious_model_path, tmp_path, capsys):
    input_path = tmp_path / "x.bin"
    input_path.write_bytes(b"\x00powershell enc vssadmin delete shadows\x00")
    assert main(["malicious", str(input_path), "--model", str(malicious_model_path)]) == 0
    out = capsys.readouterr().out
    assert f"Based on the file ({input_path}) the file is classified as" in out
    assert "at a confidence level of" in out


def test_cli_malicious_missing_input(malicious_model_path, tmp_path):
    assert main(["malicious", str(tmp_path / "nope"), "--model", str(malicious_model_path)]) == 1


def test_report_omits_unset_label(stub_model, exe_bytes):
    label_map = build_cluster_label_map(stub_model)
    text = format_prediction("a.exe", predict(exe_bytes, stub_model, label_map))
    assert "Feature Extraction: 1, 1, 0" in text
