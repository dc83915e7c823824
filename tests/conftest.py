"""Shared fixtures for the QuPurify test suite."""
import numpy as np
import pytest

from qupurify.linalg import gaussian_matrix
from qupurify.states import DensityMatrix


def random_density_matrix(num_qubits: int, rng) -> DensityMatrix:
    """Full-rank mixed state A·A†/tr from a Ginibre matrix."""
    dim = 1 << num_qubits
    a = gaussian_matrix(dim, dim, rng).data
    return DensityMatrix(a @ a.conj().T)


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


@pytest.fixture
def mixed_pair(rng):
    return random_density_matrix(2, rng)


@pytest.fixture
def mixed_states(rng):
    """One random state for each size from 1 to 3 qubits."""
    return [random_density_matrix(n, rng) for n in (1, 2, 3)]
