"""Unit tests for multi-reference integrated classification."""

import pytest
import numpy as np
import pandas as pd
from scipy import sparse

from celltype_integrator.core.integrated import (
    ClassifyIntegratedBuffers,
    ClassifyIntegratedResults,
    IntegratedConfig,
    classify_integrated,
    classify_integrated_into,
    fill_mapping,
    prepare_integrated_input,
    prepare_integrated_input_intersect,
    train_integrated,
)
from celltype_integrator.core.scoring import RankRemapper, rank_vector


def _prepare(ref, top=3):
    return prepare_integrated_input(ref["matrix"], ref["labels"], ref["markers"], top=top)


class TestSingleReference:
    """Tests for classification against one reference."""

    def test_delta_is_nan(self, reference, test_dataset, true_labels):
        """Test delta is the NaN sentinel when only one reference exists."""
        trained = train_integrated([_prepare(reference)])
        results = classify_integrated(test_dataset["matrix"], [true_labels], trained)

        assert np.all(np.isnan(results.delta))
        np.testing.assert_array_equal(results.best, np.zeros(len(true_labels)))
        assert np.all(np.isfinite(results.scores[0]))
        assert np.all(results.scores[0] <= 1.0 + 1e-12)
        assert np.all(results.scores[0] >= -1.0 - 1e-12)

    def test_higher_quantile_never_lowers_score(self, reference, test_dataset, true_labels):
        """Test the label score grows with the requested quantile."""
        trained = train_integrated([_prepare(reference)])
        low = classify_integrated(
            test_dataset["matrix"], [true_labels], trained, IntegratedConfig(quantile=0.5)
        )
        high = classify_integrated(
            test_dataset["matrix"], [true_labels], trained, IntegratedConfig(quantile=1.0)
        )
        assert np.all(high.scores[0] >= low.scores[0])


class TestMultipleReferences:
    """Tests for choosing between references."""

    def test_correct_reference_wins(self, reference, second_reference, test_dataset, true_labels):
        """Test the reference with the correct assigned label is chosen."""
        trained = train_integrated([_prepare(reference), _prepare(second_reference)])
        wrong = (true_labels + 1) % 3

        results = classify_integrated(test_dataset["matrix"], [true_labels, wrong], trained)
        np.testing.assert_array_equal(results.best, np.zeros(len(true_labels)))
        assert np.all(results.delta > 0)

        swapped = classify_integrated(test_dataset["matrix"], [wrong, true_labels], trained)
        np.testing.assert_array_equal(swapped.best, np.ones(len(true_labels)))

    def test_delta_is_best_minus_second(self, reference, second_reference, test_dataset):
        """Test delta equals the gap between the top two scores and is non-negative."""
        third = dict(second_reference)
        trained = train_integrated(
            [_prepare(reference), _prepare(second_reference), _prepare(third, top=2)]
        )
        rng = np.random.default_rng(0)
        n_cells = test_dataset["matrix"].shape[1]
        assigned = [rng.integers(0, 3, n_cells) for _ in range(3)]

        results = classify_integrated(test_dataset["matrix"], assigned, trained)

        scores = np.vstack(results.scores)
        ordered = np.sort(scores, axis=0)
        np.testing.assert_allclose(results.delta, ordered[-1] - ordered[-2])
        assert np.all(results.delta >= 0)
        np.testing.assert_array_equal(results.best, np.argmax(scores, axis=0))

    def test_tied_scores_prefer_lowest_reference(self, reference, test_dataset, true_labels):
        """Test exact ties keep the first reference and give a zero delta."""
        prepared = _prepare(reference)
        trained = train_integrated([prepared, prepared, prepared])
        results = classify_integrated(
            test_dataset["matrix"], [true_labels, true_labels, true_labels], trained
        )
        np.testing.assert_array_equal(results.scores[0], results.scores[1])
        np.testing.assert_array_equal(results.scores[1], results.scores[2])
        np.testing.assert_array_equal(results.best, np.zeros(len(true_labels)))
        np.testing.assert_array_equal(results.delta, np.zeros(len(true_labels)))

    def test_intersect_and_direct_paths_agree(
        self, reference, permuted_reference, test_dataset, true_labels
    ):
        """Test a fully available intersected reference scores like a direct one."""
        direct = _prepare(reference)
        intersected = prepare_integrated_input_intersect(
            test_dataset["ids"],
            permuted_reference["matrix"],
            permuted_reference["ids"],
            permuted_reference["labels"],
            permuted_reference["markers"],
            top=3,
        )
        trained = train_integrated([direct, intersected])
        assert trained.check_availability == [False, True]
        assert trained.available[1].all()

        results = classify_integrated(
            test_dataset["matrix"], [true_labels, true_labels], trained
        )
        np.testing.assert_array_equal(results.scores[0], results.scores[1])
        np.testing.assert_array_equal(results.best, np.zeros(len(true_labels)))

    def test_missing_genes_still_scored(self, reference, second_reference, test_dataset, true_labels):
        """Test a reference lacking some universe genes still yields finite scores."""
        keep = [g for g in range(second_reference["n_genes"]) if g not in (1, 6, 11)]
        partial = prepare_integrated_input_intersect(
            test_dataset["ids"],
            second_reference["matrix"][keep, :],
            [second_reference["ids"][g] for g in keep],
            second_reference["labels"],
            [[[keep.index(g) for g in current if g in keep] for current in row]
             for row in second_reference["markers"]],
            top=3,
        )
        trained = train_integrated([_prepare(reference), partial])
        assert not trained.available[1].all()

        results = classify_integrated(
            test_dataset["matrix"], [true_labels, true_labels], trained
        )
        assert np.all(np.isfinite(results.scores[1]))
        assert np.all(np.isfinite(results.delta))

    def test_label_without_profiles_is_excluded(
        self, reference, second_reference, test_dataset, true_labels
    ):
        """Test a NaN score never wins and leaves delta undefined."""
        emptied = _prepare(second_reference)
        emptied.labels = np.where(emptied.labels == 2, 0, emptied.labels)
        trained = train_integrated([_prepare(reference), emptied])

        results = classify_integrated(
            test_dataset["matrix"], [true_labels, true_labels], trained
        )

        is_two = true_labels == 2
        assert np.all(np.isnan(results.scores[1][is_two]))
        assert np.all(np.isfinite(results.scores[1][~is_two]))
        np.testing.assert_array_equal(results.best[is_two], 0)
        assert np.all(np.isnan(results.delta[is_two]))
        assert np.all(np.isfinite(results.delta[~is_two]))


class TestExecution:
    """Tests for threading, buffers and matrix formats."""

    @pytest.fixture
    def trained(self, reference, second_reference):
        """Two trained references."""
        return train_integrated([_prepare(reference), _prepare(second_reference, top=4)])

    def test_deterministic_across_threads(self, trained, test_dataset, true_labels):
        """Test thread count and block size do not change any output."""
        assigned = [true_labels, (true_labels + 2) % 3]
        single = classify_integrated(
            test_dataset["matrix"], assigned, trained, IntegratedConfig(num_threads=1)
        )
        multi = classify_integrated(
            test_dataset["matrix"],
            assigned,
            trained,
            IntegratedConfig(num_threads=4, block_size=2),
        )
        np.testing.assert_array_equal(single.best, multi.best)
        np.testing.assert_array_equal(single.delta, multi.delta)
        for a, b in zip(single.scores, multi.scores):
            np.testing.assert_array_equal(a, b)

    def test_sparse_matches_dense(self, trained, test_dataset, true_labels):
        """Test a sparse test matrix gives the same results as a dense one."""
        assigned = [true_labels, true_labels]
        dense = classify_integrated(test_dataset["matrix"], assigned, trained)
        csc = classify_integrated(sparse.csc_matrix(test_dataset["matrix"]), assigned, trained)
        np.testing.assert_array_equal(dense.best, csc.best)
        for a, b in zip(dense.scores, csc.scores):
            np.testing.assert_array_equal(a, b)

    @pytest.mark.parametrize("fmt", ["coo", "dia"])
    def test_unsliceable_sparse_formats(self, trained, test_dataset, true_labels, fmt):
        """Test COO and DIA test matrices classify like dense ones."""
        assigned = [true_labels, true_labels]
        matrix = getattr(sparse, f"{fmt}_matrix")(test_dataset["matrix"])
        dense = classify_integrated(test_dataset["matrix"], assigned, trained)
        other = classify_integrated(
            matrix, assigned, trained, IntegratedConfig(num_threads=3, block_size=2)
        )
        np.testing.assert_array_equal(dense.best, other.best)
        np.testing.assert_array_equal(dense.delta, other.delta)
        for a, b in zip(dense.scores, other.scores):
            np.testing.assert_array_equal(a, b)

    def test_coo_reference_training(self, reference):
        """Test a COO reference trains to the same profiles as a dense one."""
        dense = train_integrated([_prepare(reference)])
        coo_ref = dict(reference, matrix=sparse.coo_matrix(reference["matrix"]))
        coo = train_integrated([_prepare(coo_ref)], num_threads=2, block_size=4)
        for dense_label, coo_label in zip(dense.ranked[0], coo.ranked[0]):
            for d, c in zip(dense_label, coo_label):
                np.testing.assert_array_equal(d.values, c.values)
                np.testing.assert_array_equal(d.indices, c.indices)

    def test_optional_buffers(self, trained, test_dataset, true_labels):
        """Test omitted buffers are skipped and requested ones filled."""
        n_cells = len(true_labels)
        full = classify_integrated(test_dataset["matrix"], [true_labels, true_labels], trained)

        best = np.full(n_cells, -1)
        second_scores = np.full(n_cells, np.nan)
        buffers = ClassifyIntegratedBuffers(best=best, scores=[None, second_scores], delta=None)
        classify_integrated_into(
            test_dataset["matrix"], [true_labels, true_labels], trained, buffers
        )

        np.testing.assert_array_equal(best, full.best)
        np.testing.assert_array_equal(second_scores, full.scores[1])

    def test_empty_score_list(self, trained, test_dataset, true_labels):
        """Test an empty scores list reports nothing but still picks the best."""
        delta = np.zeros(len(true_labels))
        buffers = ClassifyIntegratedBuffers(best=None, scores=[], delta=delta)
        classify_integrated_into(
            test_dataset["matrix"], [true_labels, true_labels], trained, buffers
        )
        assert np.all(delta >= 0)
        assert np.all(np.isfinite(delta))

    def test_fill_mapping_paths(self):
        """Test direct and all-available intersect mappings remap identically."""
        miniverse = np.array([0, 3, 4, 8])
        full = rank_vector(np.array([2.0, 0.5, 0.5, 1.0]), miniverse)
        direct = fill_mapping(RankRemapper(10), miniverse)
        intersect = fill_mapping(RankRemapper(10), miniverse, np.ones(10, dtype=bool))
        a, b = direct.remap(full), intersect.remap(full)
        np.testing.assert_array_equal(a.values, b.values)
        np.testing.assert_array_equal(a.indices, b.indices)

        partial = np.ones(10, dtype=bool)
        partial[3] = False
        filtered = fill_mapping(RankRemapper(10), miniverse, partial).remap(full)
        assert len(filtered) == 3


class TestResults:
    """Tests for the results container."""

    def test_allocate(self):
        """Test allocation sizes and NaN initialisation."""
        results = ClassifyIntegratedResults.allocate(5, 2)
        assert results.best.shape == (5,)
        assert len(results.scores) == 2
        assert np.all(np.isnan(results.delta))

    def test_to_dataframe(self):
        """Test export with reference and cell names."""
        results = ClassifyIntegratedResults(
            best=np.array([1, 0]),
            scores=[np.array([0.2, 0.9]), np.array([0.6, 0.1])],
            delta=np.array([0.4, 0.8]),
        )
        df = results.to_dataframe(cell_names=["c1", "c2"], reference_names=["atlas", "pbmc"])
        assert isinstance(df, pd.DataFrame)
        assert list(df.index) == ["c1", "c2"]
        assert df["best_reference"].tolist() == ["pbmc", "atlas"]
        assert df.loc["c1", "score_atlas"] == 0.2
        assert df.loc["c2", "delta"] == 0.8
