"""QuPurify protocol primitives.

Measurement, partial trace, Pauli twirling and the BBPSSW building blocks
(noisy pair creation, Ψ-/Φ+ exchange, bilateral CNOT, post-selection) that
both simulation engines compose.

A pair keeps Alice on qubit 1 and Bob on qubit 0. For two interacting pairs
the joint state is ``ρ_control ⊗ ρ_target``: the target pair sits on qubits
0 (Bob) and 1 (Alice), the control pair on qubits 2 (Bob) and 3 (Alice).

© 2026 QuPurify contributors | MIT License
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from qupurify.channels import NoiseChannel, apply_noise
from qupurify.errors import DimensionMismatch, InvalidParameter
from qupurify.gates import apply_gate, cnot_matrix, pauli_operator, rx, ry, rz
from qupurify.linalg import Matrix, check_qubit, qubit_count
from qupurify.states import BELL_TRANSFORM, Basis, BellState, DensityMatrix, to_computational_basis

ALICE_QUBIT = 1
BOB_QUBIT = 0

_PROB_EPS = 1e-12


# ═════════════════════════════════════════════════════════════
#  MEASUREMENT
# ═════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MeasurementOutcome:
    """One branch of a projective single-qubit measurement.

    ``state`` is the collapsed, renormalised state, or None when the branch
    has (numerically) zero probability.
    """
    qubit: int
    outcome: int
    probability: float
    state: Optional[DensityMatrix]


def measure_qubit(rho: DensityMatrix, qubit: int) -> Tuple[MeasurementOutcome, MeasurementOutcome]:
    """Both Z-basis outcomes of ``qubit``, as ``(outcome 0, outcome 1)``."""
    check_qubit(qubit, qubit_count(rho.rows))
    bits = (np.arange(rho.rows) >> qubit) & 1
    p0 = float(np.real(np.sum(np.diag(rho.data)[bits == 0])))
    p0 = min(max(p0, 0.0), 1.0)
    branches = []
    for outcome, probability in ((0, p0), (1, 1.0 - p0)):
        state = None
        if probability > _PROB_EPS:
            mask = (bits == outcome).astype(float)
            projected = rho.data * np.outer(mask, mask)
            state = DensityMatrix(projected / probability)
        branches.append(MeasurementOutcome(qubit, outcome, probability, state))
    return branches[0], branches[1]


def sample_measurement(rho: DensityMatrix, qubit: int, rng=None) -> MeasurementOutcome:
    """Draw one outcome of ``qubit`` against the cumulative probability."""
    rng = np.random.default_rng(rng)
    zero, one = measure_qubit(rho, qubit)
    chosen = zero if rng.random() < zero.probability else one
    if chosen.state is None:
        chosen = one if chosen is zero else zero
    return chosen


# ═════════════════════════════════════════════════════════════
#  PARTIAL TRACE
# ═════════════════════════════════════════════════════════════

def partial_trace(rho: DensityMatrix, trace_out: Sequence[int]) -> DensityMatrix:
    """Trace out ``trace_out``; remaining qubits keep their relative order."""
    n = qubit_count(rho.rows)
    traced = set(trace_out)
    if len(traced) != len(trace_out):
        raise InvalidParameter(f"Duplicate qubits in {list(trace_out)}")
    for q in traced:
        check_qubit(q, n)
    # Tensor axes run from the most significant qubit down; axis k+len is
    # the column partner of row axis k.
    tensor = rho.data.reshape([2] * (2 * n))
    left = list(reversed(range(n)))
    for q in sorted(traced):
        k = left.index(q)
        tensor = np.trace(tensor, axis1=k, axis2=len(left) + k)
        left.remove(q)
    dim = 1 << len(left)
    return DensityMatrix(tensor.reshape(dim, dim))


# ═════════════════════════════════════════════════════════════
#  PAULI TWIRLING
# ═════════════════════════════════════════════════════════════

# Bilateral π/2 rotation sequences; together they form the 12-element
# tetrahedral group acting as U ⊗ U.
PAULI_TWIRL_SEQUENCES: Tuple[Tuple[str, ...], ...] = (
    (),
    ("x", "x"),
    ("y", "y"),
    ("z", "z"),
    ("x", "y"),
    ("y", "z"),
    ("z", "x"),
    ("y", "x"),
    ("x", "y", "x", "y"),
    ("y", "z", "y", "z"),
    ("z", "x", "z", "x"),
    ("y", "x", "y", "x"),
)

_ROTATIONS = {"x": rx, "y": ry, "z": rz}


def pauli_twirl_operator(sequence: Sequence[str]) -> Matrix:
    """Bilateral operator ``U ⊗ U`` for a rotation sequence (applied left to right)."""
    u = Matrix.identity(2)
    for axis in sequence:
        try:
            rotation = _ROTATIONS[axis]
        except KeyError:
            raise InvalidParameter(f"Unknown rotation axis {axis!r}") from None
        u = rotation(math.pi / 2).mul(u)
    return u.tensor(u)


def pauli_twirl(rho: DensityMatrix, rng=None) -> DensityMatrix:
    """Apply one of the 12 twirl operators, drawn uniformly."""
    rng = np.random.default_rng(rng)
    index = int(rng.integers(len(PAULI_TWIRL_SEQUENCES)))
    return apply_gate(rho, pauli_twirl_operator(PAULI_TWIRL_SEQUENCES[index]))


def twirl_average(rho: DensityMatrix) -> DensityMatrix:
    """Mean of ``UρU†`` over all 12 twirl operators (computational basis)."""
    acc = np.zeros(rho.shape, dtype=np.complex128)
    for sequence in PAULI_TWIRL_SEQUENCES:
        u = pauli_twirl_operator(sequence).data
        acc += u @ rho.data @ u.conj().T
    return DensityMatrix(acc / len(PAULI_TWIRL_SEQUENCES))


def werner_twirl(rho_bell: Matrix, target: BellState = BellState.PSI_MINUS) -> DensityMatrix:
    """Closed-form twirl of a Bell-basis matrix.

    Keeps the ``target`` population F, spreads 1-F evenly over the other three
    Bell states and drops every coherence.
    """
    if rho_bell.shape != (4, 4):
        raise DimensionMismatch(f"Werner twirl needs a 4x4 matrix, got {rho_bell.shape}")
    f = float(rho_bell.data[int(target), int(target)].real)
    diag = np.full(4, (1.0 - f) / 3.0)
    diag[int(target)] = f
    return DensityMatrix(np.diag(diag).astype(np.complex128))


# ═════════════════════════════════════════════════════════════
#  BBPSSW BUILDING BLOCKS
# ═════════════════════════════════════════════════════════════

def bbpssw_success_probability(fidelity: float) -> float:
    """Probability that one round on two Werner pairs of fidelity F succeeds."""
    f, r = fidelity, (1.0 - fidelity) / 3.0
    return f * f + 2.0 * f * r + 5.0 * r * r


def bbpssw_output_fidelity(fidelity: float) -> float:
    """Fidelity of the kept pair after one successful round on Werner pairs."""
    f, r = fidelity, (1.0 - fidelity) / 3.0
    return (f * f + r * r) / bbpssw_success_probability(fidelity)


def create_noisy_pair(channel: Union[NoiseChannel, str], parameter: float, rng=None) -> DensityMatrix:
    """|Ψ-⟩ with ``channel`` applied to Bob's qubit (computational basis)."""
    return apply_noise(DensityMatrix.bell_psi_minus(), channel, BOB_QUBIT, parameter, rng)


def create_noisy_epr(parameter: float, rng=None) -> DensityMatrix:
    """Bell-diagonal |Ψ-⟩ of fidelity ``1 - parameter`` with small random coherences.

    Φ+, Φ- and Ψ+ each get ``parameter/3``. Every off-diagonal Bell-basis
    entry has real and imaginary parts drawn from ``±0.05·a`` with
    ``a = min(parameter, 3·(1 - parameter))``, mirrored to keep the matrix
    Hermitian. Off-diagonal row sums stay below the smallest population, so
    the result is positive semidefinite.

    Returns:
        The pair in the computational basis.
    """
    if not 0.0 <= parameter <= 1.0:
        raise InvalidParameter(f"noise parameter must be in [0, 1], got {parameter}")
    rng = np.random.default_rng(rng)
    bell = np.diag([parameter / 3.0] * 3 + [1.0 - parameter]).astype(np.complex128)
    scale = 0.1 * min(parameter, 3.0 * (1.0 - parameter))
    rows, cols = np.triu_indices(4, k=1)
    coherences = scale * ((rng.random(rows.size) - 0.5) + 1j * (rng.random(rows.size) - 0.5))
    bell[rows, cols] = coherences
    bell[cols, rows] = coherences.conj()
    return to_computational_basis(DensityMatrix(bell))


def exchange_operator(basis: Union[Basis, str] = Basis.COMPUTATIONAL) -> Matrix:
    """Unilateral Y on Alice: swaps Ψ- <-> Φ+ and Φ- <-> Ψ+ up to phase."""
    y_alice = pauli_operator(2, [ALICE_QUBIT], ["Y"])
    if Basis(basis) is Basis.BELL:
        return BELL_TRANSFORM.mul(y_alice).mul(BELL_TRANSFORM.dagger())
    return y_alice


def exchange_psi_minus_phi_plus(rho: DensityMatrix, basis: Union[Basis, str]) -> DensityMatrix:
    return apply_gate(rho, exchange_operator(basis))


def bilateral_cnot_operator() -> Matrix:
    """Alice's control qubit drives Alice's target qubit, Bob's likewise."""
    # cnot_matrix reads ``target`` and flips ``control``.
    alice = cnot_matrix(4, control=1, target=3)
    bob = cnot_matrix(4, control=0, target=2)
    return alice.mul(bob)


def bilateral_cnot(control: DensityMatrix, target: DensityMatrix) -> DensityMatrix:
    """Joint 4-qubit state of two pairs after the bilateral CNOT."""
    if control.shape != (4, 4) or target.shape != (4, 4):
        raise DimensionMismatch("Bilateral CNOT needs two 2-qubit states")
    return apply_gate(control.tensor(target), bilateral_cnot_operator())


@dataclass(frozen=True)
class PostSelection:
    """Target-pair measurement summary for one control/target combination."""
    success_probability: float
    state: Optional[DensityMatrix]
    alice_outcome: Optional[int] = None
    bob_outcome: Optional[int] = None

    @property
    def successful(self) -> bool:
        return self.state is not None


def _agreement_mask(dim: int) -> np.ndarray:
    idx = np.arange(dim)
    return (((idx >> ALICE_QUBIT) & 1) == ((idx >> BOB_QUBIT) & 1)).astype(float)


def post_select_agreement(joint: DensityMatrix) -> PostSelection:
    """Expected outcome: condition on Alice's and Bob's target results agreeing.

    The control pair's state is ``Tr_01[(Π00 ρ Π00 + Π11 ρ Π11)] / p``.
    """
    if joint.shape != (16, 16):
        raise DimensionMismatch(f"Post-selection needs a 4-qubit state, got {joint.shape}")
    mask = _agreement_mask(joint.rows)
    projected = joint.data * np.outer(mask, mask)
    p = float(np.real(np.trace(projected)))
    if p <= _PROB_EPS:
        return PostSelection(max(p, 0.0), None)
    kept = partial_trace(DensityMatrix(projected / p), [BOB_QUBIT, ALICE_QUBIT])
    return PostSelection(p, kept)


def sample_target_measurement(joint: DensityMatrix, rng=None) -> PostSelection:
    """Sampled outcome: measure Alice's then Bob's target qubit and collapse."""
    if joint.shape != (16, 16):
        raise DimensionMismatch(f"Target measurement needs a 4-qubit state, got {joint.shape}")
    rng = np.random.default_rng(rng)
    alice = sample_measurement(joint, ALICE_QUBIT, rng)
    bob = sample_measurement(alice.state, BOB_QUBIT, rng)
    probability = alice.probability * bob.probability
    state = None
    if alice.outcome == bob.outcome:
        state = partial_trace(bob.state, [BOB_QUBIT, ALICE_QUBIT])
    return PostSelection(probability, state, alice.outcome, bob.outcome)
