"""
Tests for squiggle clustering and reshaping of cluster results.
"""

import sys
from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pytest

# Add scripts directory to path for imports
scripts_dir = Path(__file__).parent.parent / "scripts"
sys.path.insert(0, str(scripts_dir))

from nanosatpipe.clusters import (
    ClusteringResult,
    cluster_squiggles,
    clusters_per_read,
    dtw_distance_matrix,
    extract_centroids,
    hierarchical_linkage,
    medoid_index,
)
from nanosatpipe.errors import IdentifierParseError


# ============================================================================
# Tests: Centroid Extraction
# ============================================================================

class TestExtractCentroids:
    """Tests for extract_centroids function."""

    def test_two_clusters(self):
        result = SimpleNamespace(centroids=[[0.1, 0.2, 0.3], [1.0, 2.0, 3.0, 4.0, 5.0]])
        cent = extract_centroids(result)

        assert len(cent) == 8
        assert list(cent.columns) == ["signal", "cluster", "pos"]
        assert cent["cluster"].tolist() == [1, 1, 1, 2, 2, 2, 2, 2]
        assert cent["pos"].tolist() == [1, 2, 3, 1, 2, 3, 4, 5]
        assert cent["signal"].tolist() == [0.1, 0.2, 0.3, 1.0, 2.0, 3.0, 4.0, 5.0]

    def test_numpy_centroids(self):
        result = SimpleNamespace(centroids=[np.array([1.0]), np.array([2.0, 3.0])])
        cent = extract_centroids(result)
        assert cent["cluster"].tolist() == [1, 2, 2]

    def test_no_centroids(self):
        cent = extract_centroids(SimpleNamespace(centroids=[]))
        assert cent.empty
        assert list(cent.columns) == ["signal", "cluster", "pos"]


# ============================================================================
# Tests: Clusters per Read
# ============================================================================

class TestClustersPerRead:
    """Tests for clusters_per_read function."""

    def test_ordered_by_chunk_number(self):
        result = SimpleNamespace(cluster_assignments={
            "readA_x_1.chunk": 2,
            "readA_x_3.chunk": 1,
            "readA_x_2.chunk": 2,
        })
        cpr = clusters_per_read(result)
        assert cpr.to_dict("records") == [{"name": "readA", "clusters": "2,2,1"}]

    def test_numeric_not_lexical_chunk_order(self):
        result = SimpleNamespace(cluster_assignments={
            "readA_x_10.chunk": 3,
            "readA_x_2.chunk": 1,
            "readA_x_1.chunk": 2,
        })
        assert clusters_per_read(result)["clusters"].item() == "2,1,3"

    def test_one_row_per_read_sorted_by_name(self):
        result = SimpleNamespace(cluster_assignments={
            "readB_x_2.chunk": 1,
            "readA_x_1.chunk": 2,
            "readB_x_1.chunk": 2,
            "readC_y_1.chunk": 1,
        })
        cpr = clusters_per_read(result)
        assert cpr["name"].tolist() == ["readA", "readB", "readC"]
        assert cpr["clusters"].tolist() == ["2", "2,1", "1"]

    def test_bad_identifier(self):
        result = SimpleNamespace(cluster_assignments={"readA.chunk": 1})
        with pytest.raises(IdentifierParseError):
            clusters_per_read(result)

    def test_empty(self):
        cpr = clusters_per_read(SimpleNamespace(cluster_assignments={}))
        assert cpr.empty
        assert list(cpr.columns) == ["name", "clusters"]


# ============================================================================
# Tests: Clustering
# ============================================================================

class TestDtwDistanceMatrix:
    """Tests for dtw_distance_matrix function."""

    def test_shape_and_symmetry(self, two_shape_squiggles):
        distmat = dtw_distance_matrix(list(two_shape_squiggles.values()))
        assert distmat.shape == (6, 6)
        assert np.allclose(distmat, distmat.T)
        assert np.allclose(np.diag(distmat), 0)
        assert (distmat >= 0).all()

    def test_identical_series(self):
        distmat = dtw_distance_matrix([[1.0, 2.0, 3.0], [1.0, 2.0, 3.0], [3.0, 2.0]])
        assert distmat[0, 1] == pytest.approx(0.0)
        assert distmat[0, 2] > 0

    def test_window(self, two_shape_squiggles):
        distmat = dtw_distance_matrix(list(two_shape_squiggles.values()), window=1)
        assert distmat.shape == (6, 6)


class TestHierarchicalLinkage:
    """Tests for hierarchical_linkage function."""

    @pytest.fixture
    def three_points(self):
        return np.array([
            [0.0, 1.0, 2.0],
            [1.0, 0.0, 2.0],
            [2.0, 2.0, 0.0],
        ])

    def test_ward_d_heights(self, three_points):
        tree = hierarchical_linkage(three_points, "ward.D")
        assert tree[:, 2].tolist() == pytest.approx([1.0, 7 / 3])

    def test_ward_d2_heights(self, three_points):
        tree = hierarchical_linkage(three_points, "ward.D2")
        assert tree[:, 2].tolist() == pytest.approx([1.0, np.sqrt(5)])

    def test_default_is_ward_d(self, three_points):
        assert np.allclose(hierarchical_linkage(three_points), hierarchical_linkage(three_points, "ward.D"))

    def test_scipy_method(self, three_points):
        tree = hierarchical_linkage(three_points, "average")
        assert tree[:, 2].tolist() == pytest.approx([1.0, 2.0])

    def test_unknown_method(self, three_points):
        with pytest.raises(ValueError):
            hierarchical_linkage(three_points, "ward.D3")


class TestMedoidIndex:
    """Tests for medoid_index function."""

    def test_central_member(self):
        distmat = np.array([
            [0.0, 1.0, 2.0, 9.0],
            [1.0, 0.0, 1.0, 9.0],
            [2.0, 1.0, 0.0, 9.0],
            [9.0, 9.0, 9.0, 0.0],
        ])
        assert medoid_index(distmat, [0, 1, 2]) == 1
        assert medoid_index(distmat, [3]) == 3


class TestClusterSquiggles:
    """Tests for cluster_squiggles function."""

    def test_separates_shapes(self, two_shape_squiggles):
        result = cluster_squiggles(two_shape_squiggles, k=2)
        labels = result.cluster_assignments

        assert isinstance(result, ClusteringResult)
        assert result.k == 2
        assert set(labels.values()) == {1, 2}
        assert labels["readA_x_1.chunk"] == labels["readA_x_2.chunk"] == labels["readB_x_1.chunk"]
        assert labels["readB_x_2.chunk"] == labels["readC_x_1.chunk"] == labels["readC_x_2.chunk"]
        assert labels["readA_x_1.chunk"] != labels["readB_x_2.chunk"]

    def test_assignments_in_input_order(self, two_shape_squiggles):
        result = cluster_squiggles(two_shape_squiggles, k=2)
        assert list(result.cluster_assignments) == list(two_shape_squiggles)
        assert result.labels == list(two_shape_squiggles)

    def test_centroids_are_cluster_members(self, two_shape_squiggles):
        result = cluster_squiggles(two_shape_squiggles, k=2)
        for cluster, centroid in enumerate(result.centroids, start=1):
            members = [
                np.asarray(two_shape_squiggles[name])
                for name, label in result.cluster_assignments.items()
                if label == cluster
            ]
            assert any(
                len(m) == len(centroid) and np.allclose(m, centroid) for m in members
            )

    def test_cluster_sizes(self, two_shape_squiggles):
        result = cluster_squiggles(two_shape_squiggles, k=2)
        assert sorted(result.cluster_sizes().values()) == [3, 3]

    def test_single_cluster(self, two_shape_squiggles):
        result = cluster_squiggles(two_shape_squiggles, k=1)
        assert set(result.cluster_assignments.values()) == {1}
        assert len(result.centroids) == 1

    def test_reshape_round_trip(self, two_shape_squiggles):
        result = cluster_squiggles(two_shape_squiggles, k=2)
        cpr = clusters_per_read(result).set_index("name")["clusters"]
        up = result.cluster_assignments["readA_x_1.chunk"]
        down = result.cluster_assignments["readB_x_2.chunk"]
        assert cpr["readA"] == f"{up},{up}"
        assert cpr["readB"] == f"{up},{down}"

        cent = extract_centroids(result)
        assert len(cent) == sum(len(c) for c in result.centroids)

    def test_too_few_squiggles(self):
        with pytest.raises(ValueError):
            cluster_squiggles({"readA_x_1.chunk": [1.0, 2.0]}, k=1)

    def test_k_out_of_range(self, two_shape_squiggles):
        with pytest.raises(ValueError):
            cluster_squiggles(two_shape_squiggles, k=7)
        with pytest.raises(ValueError):
            cluster_squiggles(two_shape_squiggles, k=0)

    def test_ward_d_tree_is_stored(self, two_shape_squiggles):
        result = cluster_squiggles(two_shape_squiggles, k=2)
        expected = hierarchical_linkage(result.distmat, "ward.D")
        assert np.allclose(result.linkage, expected)

    def test_ward_d2_separates_shapes(self, two_shape_squiggles):
        result = cluster_squiggles(two_shape_squiggles, k=2, method="ward.D2")
        labels = result.cluster_assignments
        assert labels["readA_x_1.chunk"] == labels["readB_x_1.chunk"]
        assert labels["readA_x_1.chunk"] != labels["readC_x_1.chunk"]
