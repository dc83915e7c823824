"""QuPurify — BBPSSW entanglement-purification simulator.

Density-matrix simulation of repeated BBPSSW rounds over an ensemble of noisy
|Ψ-⟩ pairs, with an analytic (Average) and a sampled (Monte Carlo) engine,
plus a Stim cross-check of a single round.

Example:
    from qupurify import SimulationParameters, create_engine, run_until_complete

    params = SimulationParameters(initial_pairs=32, noise_parameter=0.3)
    engine = create_engine("average", params, rng=7)
    run = run_until_complete(engine)
    print(run.to_dict())

© 2026 QuPurify contributors | MIT License
"""
from qupurify.channels import (
    NoiseChannel,
    apply_amplitude_damping,
    apply_dephasing,
    apply_depolarizing,
    apply_noise,
    apply_uniform_noise,
)
from qupurify.engine import (
    AverageSimulationEngine,
    EngineType,
    MonteCarloSimulationEngine,
    PendingPairs,
    PurificationStep,
    QubitPair,
    SimulationEngine,
    SimulationParameters,
    SimulationRun,
    SimulationState,
    create_engine,
    run_until_complete,
)
from qupurify.errors import (
    DimensionMismatch,
    DivisionByZero,
    InvalidConfiguration,
    InvalidParameter,
    NotSquare,
    QuPurifyError,
)
from qupurify.gates import cnot_matrix, pauli_matrix, pauli_operator
from qupurify.linalg import Matrix, matrix_exp, matrix_log, random_unitary
from qupurify.operations import measure_qubit, partial_trace, pauli_twirl
from qupurify.stabilizer import DistillationStats, StabilizerDistiller
from qupurify.states import (
    Basis,
    BellState,
    DensityMatrix,
    bell_fidelity,
    to_bell_basis,
    to_computational_basis,
)

__version__ = "1.0.0"
__author__ = "QuPurify contributors"

__all__ = [
    "AverageSimulationEngine",
    "MonteCarloSimulationEngine",
    "SimulationEngine",
    "EngineType",
    "SimulationParameters",
    "SimulationState",
    "SimulationRun",
    "QubitPair",
    "PendingPairs",
    "PurificationStep",
    "create_engine",
    "run_until_complete",
    "StabilizerDistiller",
    "DistillationStats",
    "NoiseChannel",
    "apply_noise",
    "apply_uniform_noise",
    "apply_depolarizing",
    "apply_dephasing",
    "apply_amplitude_damping",
    "Matrix",
    "DensityMatrix",
    "BellState",
    "Basis",
    "bell_fidelity",
    "to_bell_basis",
    "to_computational_basis",
    "pauli_matrix",
    "pauli_operator",
    "cnot_matrix",
    "matrix_exp",
    "matrix_log",
    "random_unitary",
    "measure_qubit",
    "partial_trace",
    "pauli_twirl",
    "QuPurifyError",
    "DimensionMismatch",
    "NotSquare",
    "InvalidParameter",
    "InvalidConfiguration",
    "DivisionByZero",
]
