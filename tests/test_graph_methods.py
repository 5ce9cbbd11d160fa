from __future__ import annotations

import networkx as nx
import numpy as np
import pytest
from scipy.spatial.distance import cdist

from spectral_engine.config import Neighborhood, Symmetrization
from spectral_engine.exceptions import ValidationError
from spectral_engine.graph_methods import (
    build_neighborhood_graph,
    directed_mask,
    pairwise_distances,
    to_networkx,
)


@pytest.fixture
def points(rng):
    return rng.normal(size=(30, 3))


def test_knn_union_is_symmetric_with_at_least_k_neighbors(points):
    graph = build_neighborhood_graph(points, neighborhood=Neighborhood.knn(4), symmetric="union")
    assert graph.is_symmetric
    assert np.all(graph.mask.sum(axis=1) >= 4)
    assert not graph.mask.diagonal().any()


def test_intersect_keeps_only_mutual_neighbors(points):
    nbd = Neighborhood.knn(4)
    raw = directed_mask(pairwise_distances(points), nbd)
    graph = build_neighborhood_graph(points, neighborhood=nbd, symmetric="intersect")
    expected = raw & raw.T
    assert np.array_equal(graph.mask, expected)
    assert graph.is_symmetric


def test_asymmetric_keeps_raw_relation(points):
    nbd = Neighborhood.knn(3)
    raw = directed_mask(pairwise_distances(points), nbd)
    graph = build_neighborhood_graph(points, neighborhood=nbd, symmetric=Symmetrization.ASYMMETRIC)
    assert np.array_equal(graph.mask, raw)
    assert np.all(graph.mask.sum(axis=1) == 3)


def test_knn_ties_prefer_lower_index():
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    graph = build_neighborhood_graph(X, neighborhood=Neighborhood.knn(1), symmetric="asymmetric")
    # point 1 is equidistant from 0 and 2, point 2 from 1 and 3
    assert graph.mask[1, 0] and not graph.mask[1, 2]
    assert graph.mask[2, 1] and not graph.mask[2, 3]


def test_enn_connects_pairs_within_radius():
    X = np.array([[0.0], [1.0], [2.0], [10.0]])
    graph = build_neighborhood_graph(X, neighborhood=Neighborhood.enn(1.5), symmetric="union")
    expected = np.zeros((4, 4), dtype=bool)
    expected[0, 1] = expected[1, 0] = True
    expected[1, 2] = expected[2, 1] = True
    assert np.array_equal(graph.mask, expected)


def test_proportion_uses_ceiling_of_ratio_times_n(rng):
    X = rng.normal(size=(20, 2))
    graph = build_neighborhood_graph(X, neighborhood=Neighborhood.proportion(0.1), symmetric="asymmetric")
    assert np.all(graph.mask.sum(axis=1) == 2)
    graph = build_neighborhood_graph(X, neighborhood=Neighborhood.proportion(0.12), symmetric="asymmetric")
    assert np.all(graph.mask.sum(axis=1) == 3)


def test_knn_with_k_not_below_n_is_rejected(points):
    with pytest.raises(ValidationError):
        build_neighborhood_graph(points, neighborhood=Neighborhood.knn(30))


@pytest.mark.parametrize("factory,value", [
    (Neighborhood.enn, 0.0),
    (Neighborhood.enn, -1.0),
    (Neighborhood.proportion, 0.0),
    (Neighborhood.proportion, 1.5),
    (Neighborhood.knn, 0),
    (Neighborhood.knn, 2.5),
])
def test_invalid_neighborhood_parameters(factory, value):
    with pytest.raises(ValidationError):
        factory(value)


def test_empty_graph_is_rejected(points):
    with pytest.raises(ValidationError, match="empty"):
        build_neighborhood_graph(points, neighborhood=Neighborhood.enn(1e-9))


def test_fully_connected_graph_is_rejected(points):
    with pytest.raises(ValidationError, match="every pair"):
        build_neighborhood_graph(points, neighborhood=Neighborhood.knn(29))
    with pytest.raises(ValidationError, match="every pair"):
        build_neighborhood_graph(points, neighborhood=Neighborhood.proportion(1.0))


def test_pairwise_distances_match_cdist(points):
    D = pairwise_distances(points, metric="cityblock")
    np.testing.assert_allclose(D, cdist(points, points, metric="cityblock"))
    assert np.all(np.diag(D) == 0.0)


def test_unknown_metric_is_a_validation_error(points):
    with pytest.raises(ValidationError):
        pairwise_distances(points, metric="not-a-metric")


def test_graph_mask_is_read_only(points):
    graph = build_neighborhood_graph(points, neighborhood=Neighborhood.knn(3))
    with pytest.raises(ValueError):
        graph.mask[0, 1] = True


def test_to_networkx_exports_edges(points):
    graph = build_neighborhood_graph(points, neighborhood=Neighborhood.knn(3), symmetric="union")
    G = to_networkx(graph)
    assert isinstance(G, nx.Graph) and not G.is_directed()
    assert G.number_of_nodes() == 30
    assert G.number_of_edges() == graph.n_edges // 2

    directed = build_neighborhood_graph(points, neighborhood=Neighborhood.knn(3), symmetric="asymmetric")
    if not directed.is_symmetric:
        D = to_networkx(directed)
        assert D.is_directed()
        assert D.number_of_edges() == directed.n_edges


def test_to_networkx_carries_weights(points):
    graph = build_neighborhood_graph(points, neighborhood=Neighborhood.knn(3), symmetric="union")
    W = np.where(graph.mask, 0.5, 0.0)
    G = to_networkx(graph, weights=W)
    assert all(d["weight"] == 0.5 for _, _, d in G.edges(data=True))
