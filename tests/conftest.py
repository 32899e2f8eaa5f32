import pytest

from signature_features import CATEGORY_PROFILES, Category


class StubClusterModel:
    """Assigns each distinct feature triple a fixed cluster id."""

    def __init__(self, assignments, cluster_id_base=1, default=None):
        self.assignments = assignments
        self.cluster_id_base = cluster_id_base
        self.default = default
        self.calls = []

    def predict(self, vector):
        self.calls.append(vector)
        if self.default is None:
            cluster_id = self.assignments[vector.features()]
        else:
            cluster_id = self.assignments.get(vector.features(), self.default)
        n_clusters = len(set(self.assignments.values()))
        distances = [
            0.0 if position + self.cluster_id_base == cluster_id else float(position + 1)
            for position in range(n_clusters)
        ]
        return cluster_id, distances


@pytest.fixture
def stub_model():
    # 1-based ids, deliberately not in enum order
    return StubClusterModel({
        CATEGORY_PROFILES[Category.EXECUTABLE]: 2,
        CATEGORY_PROFILES[Category.DOCUMENT]: 3,
        CATEGORY_PROFILES[Category.SCRIPT]: 1,
    })


@pytest.fixture
def exe_bytes():
    return b"MZ" + b"\x00" * 100


@pytest.fixture
def zip_bytes():
    return b"PK\x03\x04" + b"\x14\x00\x06\x00" + b"word/document.xml" + b"\x00" * 32


@pytest.fixture
def script_bytes():
    return b"Write-Host 'hello world'\r\nGet-ChildItem C:\\Windows\r\n"
