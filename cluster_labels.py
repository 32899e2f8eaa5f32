import logging
from types import MappingProxyType

from signature_features import Category, from_category

logger = logging.getLogger(__name__)


class ClusterConflictError(ValueError):
    """Two categories probed into the same cluster id."""

    def __init__(self, cluster_id, existing, incoming):
        self.cluster_id = cluster_id
        self.existing = existing
        self.incoming = incoming
        super().__init__(
            f"Cluster {cluster_id} already maps to {existing.name}; "
            f"{incoming.name} probed into the same cluster"
        )


class UnknownClusterError(KeyError):
    pass


class ClusterLabelMap:
    """
    Read-only cluster id -> Category mapping.

    cluster_id_base is the cluster id of distance slot 0 for the model that
    produced the map (0 for scikit-learn, 1 for 1-based collaborators).
    """

    def __init__(self, mapping, cluster_id_base=0):
        self._mapping = MappingProxyType(dict(mapping))
        self.cluster_id_base = cluster_id_base

    @property
    def mapping(self):
        return self._mapping

    def __len__(self):
        return len(self._mapping)

    def __contains__(self, cluster_id):
        return cluster_id in self._mapping

    def __repr__(self):
        entries = ", ".join(f"{k}: {v.name}" for k, v in sorted(self._mapping.items()))
        return f"ClusterLabelMap({{{entries}}}, cluster_id_base={self.cluster_id_base})"


class KMeansClusterModel:
    """Adapts a fitted scikit-learn KMeans to the predict(vector) contract."""

    # KMeans labels are 0-based and transform() columns are indexed by label
    cluster_id_base = 0

    def __init__(self, kmeans):
        self.kmeans = kmeans

    def predict(self, vector):
        row = vector.to_array().reshape(1, -1)
        cluster_id = int(self.kmeans.predict(row)[0])
        distances = [float(d) for d in self.kmeans.transform(row)[0]]
        return cluster_id, distances


def build_cluster_label_map(model, categories=Category):
    """
    Probes the model with each category's exemplar and records which cluster
    it lands in. Raises ClusterConflictError if two categories share a cluster.
    """
    mapping = {}
    for category in categories:
        exemplar = from_category(category)
        cluster_id, _ = model.predict(exemplar)
        cluster_id = int(cluster_id)
        if cluster_id in mapping:
            raise ClusterConflictError(cluster_id, mapping[cluster_id], category)
        logger.debug(f"Exemplar {category.name} {exemplar.features()} -> cluster {cluster_id}")
        mapping[cluster_id] = category

    cluster_id_base = getattr(model, "cluster_id_base", 0)
    label_map = ClusterLabelMap(mapping, cluster_id_base=cluster_id_base)
    logger.info(f"Built cluster label map: {label_map}")
    return label_map


def resolve(label_map, cluster_id):
    try:
        return label_map.mapping[int(cluster_id)]
    except KeyError:
        raise UnknownClusterError(f"Cluster id {cluster_id} is not in the label map") from None


def label_distances(label_map, distances):
    """Pairs each distance slot with the category owning that cluster, keeping order."""
    return [
        (resolve(label_map, position + label_map.cluster_id_base), float(distance))
        for position, distance in enumerate(distances)
    ]
