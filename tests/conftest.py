"""Pytest configuration and shared fixtures for CellType-Integrator tests."""

import sys
from pathlib import Path

import pytest
import numpy as np

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests.fixtures import (
    create_reference,
    create_test_dataset,
    permute_reference,
)


# ============================================================================
# Mock Data Fixtures
# ============================================================================


@pytest.fixture
def reference() -> dict:
    """Reference with 3 labels, 6 cells each, 20 genes."""
    return create_reference(n_labels=3, cells_per_label=6, seed=42)


@pytest.fixture
def second_reference() -> dict:
    """Independent reference in the same gene space."""
    return create_reference(n_labels=3, cells_per_label=5, seed=11)


@pytest.fixture
def permuted_reference(reference) -> dict:
    """The first reference with its genes shuffled."""
    return permute_reference(reference, seed=3)


@pytest.fixture
def test_dataset() -> dict:
    """Test dataset of 12 cells cycling through the 3 labels."""
    return create_test_dataset(n_labels=3, cells_per_label=4, seed=7)


@pytest.fixture
def true_labels(test_dataset) -> np.ndarray:
    """Correct label of each test cell."""
    return np.asarray(test_dataset["labels"])


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def sample_integrated_config(tmp_path) -> Path:
    """Create sample integrated configuration file."""
    import yaml

    config = {
        "integrated": {
            "quantile": 0.9,
            "num_threads": 2,
            "top": 10,
            "block_size": 4,
        },
    }

    path = tmp_path / "integrated.yaml"
    with open(path, "w") as f:
        yaml.dump(config, f)

    return path
