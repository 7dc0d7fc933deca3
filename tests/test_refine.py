"""Tests for the SLIC refinement loop."""
import numpy as np
import pytest

from slicpix.raster_ingest import sample_array
from slicpix.refine import Refiner, assign_pixels, update_centers
from slicpix.seeding import ClusterSet, seed_clusters
from slicpix.types import UNASSIGNED


def _fresh_fields(sample):
    labels = np.full(sample.shape, UNASSIGNED, dtype=np.int32)
    distances = np.full(sample.shape, np.inf)
    return labels, distances


class TestAssignPixels:
    """Test the local-window assignment sweep."""

    def test_distance_formula(self, make_solid):
        """Stored distance is dLab^2 + (m / S)^2 * dXY^2."""
        sample = sample_array(make_solid(4, 4, (100, 50, 25)))
        l_val, a_val, b_val = sample.lab[0, 0]
        clusters = ClusterSet([[l_val + 3.0, a_val, b_val - 4.0, 1.5, 1.0]])
        labels, distances = _fresh_fields(sample)

        assign_pixels(sample, clusters, labels, distances, step=2, compactness=4.0)

        # Pixel (x=2, y=0): dLab^2 = 25, dXY^2 = 0.25 + 1, (m/S)^2 = 4
        assert distances[0, 2] == pytest.approx(25.0 + 4.0 * 1.25)
        assert labels[0, 2] == 0

    def test_window_is_clipped_half_open(self, make_solid):
        """Only [x - S, x + S) x [y - S, y + S) around the truncated center is scanned."""
        sample = sample_array(make_solid(8, 8, (10, 10, 10)))
        clusters = ClusterSet([[*sample.lab[0, 0], 3.9, 3.2]])
        labels, distances = _fresh_fields(sample)

        assign_pixels(sample, clusters, labels, distances, step=2, compactness=10.0)

        expected = np.zeros((8, 8), dtype=bool)
        expected[1:5, 1:5] = True
        np.testing.assert_array_equal(labels == 0, expected)
        assert np.all(np.isinf(distances[~expected]))

    def test_invalid_pixels_skipped(self, transparent_block):
        """Transparent pixels are never labelled."""
        sample = sample_array(transparent_block)
        clusters = ClusterSet([[*sample.lab[9, 9], 4.0, 4.0]])
        labels, distances = _fresh_fields(sample)

        assign_pixels(sample, clusters, labels, distances, step=10, compactness=1.0)

        assert np.all(labels[:5, :5] == UNASSIGNED)
        assert np.all(labels[sample.valid] == 0)

    def test_shared_minimum_is_order_independent(self, random_rgba):
        """Each pixel goes to the cluster with the smallest distance, whatever the order."""
        sample = sample_array(random_rgba)
        clusters = seed_clusters(sample, 6)
        order = np.arange(len(clusters))[::-1]
        reversed_clusters = ClusterSet(clusters.centers[order])

        labels, distances = _fresh_fields(sample)
        assign_pixels(sample, clusters, labels, distances, 6, 5.0)
        labels_rev, distances_rev = _fresh_fields(sample)
        assign_pixels(sample, reversed_clusters, labels_rev, distances_rev, 6, 5.0)

        np.testing.assert_array_equal(distances, distances_rev)
        claimed = labels_rev != UNASSIGNED
        np.testing.assert_array_equal(order[labels_rev[claimed]], labels[claimed])

    def test_ties_keep_first_cluster(self, make_solid):
        """A later cluster must be strictly closer to take a pixel."""
        sample = sample_array(make_solid(4, 4, (70, 80, 90)))
        center = [*sample.lab[0, 0], 2.0, 2.0]
        clusters = ClusterSet([center, center])
        labels, distances = _fresh_fields(sample)

        assign_pixels(sample, clusters, labels, distances, 2, 10.0)

        assert np.all(labels == 0)


class TestUpdateCenters:
    """Test center recomputation."""

    def test_means(self, make_solid):
        """Centers become the mean color and mean position of their members."""
        image = make_solid(2, 2, (0, 0, 0))
        image[:, 1, :3] = 255
        sample = sample_array(image)
        clusters = ClusterSet(np.zeros((1, 5)))
        labels = np.zeros((2, 2), dtype=np.int32)

        updated = update_centers(sample, clusters, labels)

        np.testing.assert_allclose(updated.colors[0], sample.lab.reshape(-1, 3).mean(axis=0))
        np.testing.assert_allclose(updated.positions[0], [0.5, 0.5])
        assert updated.counts[0] == 4

    def test_empty_cluster_rolls_back(self, make_solid):
        """A cluster that lost every member keeps its previous values."""
        sample = sample_array(make_solid(4, 4, (200, 10, 10)))
        clusters = ClusterSet([[1.0, 2.0, 3.0, 1.0, 1.0], [9.0, 8.0, 7.0, 2.5, 2.5]], [5, 7])
        labels = np.zeros((4, 4), dtype=np.int32)

        updated = update_centers(sample, clusters, labels)

        np.testing.assert_array_equal(updated.centers[1], [9.0, 8.0, 7.0, 2.5, 2.5])
        assert updated.counts[1] == 7
        assert updated.counts[0] == 16
        # The input set is left untouched
        np.testing.assert_array_equal(clusters.centers[0], [1.0, 2.0, 3.0, 1.0, 1.0])

    def test_ignores_invalid_and_out_of_range(self, transparent_block):
        """Invalid pixels and labels outside [0, K) do not contribute."""
        sample = sample_array(transparent_block)
        clusters = ClusterSet(np.zeros((1, 5)))
        labels = np.zeros((10, 10), dtype=np.int32)
        labels[9, :] = 3
        labels[8, :] = UNASSIGNED

        updated = update_centers(sample, clusters, labels)

        assert updated.counts[0] == 100 - 25 - 20

    def test_no_clusters(self, make_solid):
        """An empty cluster set stays empty."""
        sample = sample_array(make_solid(3, 3, (1, 1, 1)))
        labels = np.full((3, 3), UNASSIGNED, dtype=np.int32)

        updated = update_centers(sample, ClusterSet(np.zeros((0, 5))), labels)

        assert len(updated) == 0


class TestRefiner:
    """Test the iteration driver."""

    def test_label_domain(self, random_rgba):
        """After every iteration labels of valid pixels are in [0, K)."""
        sample = sample_array(random_rgba)
        clusters = seed_clusters(sample, 5)
        refiner = Refiner(sample, clusters, 5, 10.0)

        for iteration in range(refiner.iterations):
            refiner.run_iteration(iteration)
            assigned = refiner.labels[sample.valid]
            assigned = assigned[assigned != UNASSIGNED]
            assert np.all((assigned >= 0) & (assigned < len(clusters)))
            assert np.all(refiner.labels[~sample.valid] == UNASSIGNED)

    def test_distances_reset_except_after_last(self, random_rgba):
        """Distances go back to +inf between iterations but not after the last."""
        sample = sample_array(random_rgba)
        refiner = Refiner(sample, seed_clusters(sample, 5), 5, 10.0, iterations=2)

        refiner.run_iteration(0)
        assert np.all(np.isinf(refiner.distances))

        refiner.run_iteration(1)
        assert np.isfinite(refiner.distances).any()

    def test_cluster_count_is_stable(self, random_rgba):
        """Clusters are never added or removed."""
        sample = sample_array(random_rgba)
        clusters = seed_clusters(sample, 4)
        refiner = Refiner(sample, clusters, 4, 20.0)

        final = refiner.run()

        assert len(final) == len(clusters)

    def test_default_iterations(self, random_rgba):
        """Ten iterations by default."""
        sample = sample_array(random_rgba)
        assert Refiner(sample, seed_clusters(sample, 4), 4, 1.0).iterations == 10

    def test_release(self, random_rgba):
        """Working arrays are dropped on release."""
        sample = sample_array(random_rgba)
        refiner = Refiner(sample, seed_clusters(sample, 4), 4, 1.0)
        refiner.release()
        assert refiner.labels is None and refiner.distances is None
