"""QuPurify noise channels.

All channels act on one qubit of an n-qubit DensityMatrix and return a new
one. The three Kraus channels satisfy Σ K†K = I; the uniform-noise channel
conjugates by a fractional Haar-random rotation.

© 2026 QuPurify contributors | MIT License
"""
from __future__ import annotations

import math
from enum import Enum
from typing import List, Sequence, Union

import numpy as np

from qupurify.errors import InvalidParameter
from qupurify.gates import apply_gate, embed_operator, pauli_operator
from qupurify.linalg import Matrix, check_qubit, matrix_exp, matrix_log, qubit_count, random_unitary
from qupurify.states import DensityMatrix


class NoiseChannel(Enum):
    UNIFORM_NOISE = "uniform-noise"
    AMPLITUDE_DAMPING = "amplitude-damping"
    DEPHASING = "dephasing"
    DEPOLARIZING = "depolarizing"


def _check_args(rho: DensityMatrix, qubit: int, strength: float, name: str) -> int:
    if not 0.0 <= strength <= 1.0:
        raise InvalidParameter(f"{name} strength must be between 0 and 1, got {strength}")
    n = qubit_count(rho.rows)
    check_qubit(qubit, n)
    return n


# ═════════════════════════════════════════════════════════════
#  KRAUS CHANNELS
# ═════════════════════════════════════════════════════════════

def apply_kraus(rho: DensityMatrix, kraus_ops: Sequence[Matrix]) -> DensityMatrix:
    """ρ -> Σ_k K_k ρ K_k†."""
    acc = np.zeros(rho.shape, dtype=np.complex128)
    for k in kraus_ops:
        acc += k.data @ rho.data @ k.data.conj().T
    return DensityMatrix(acc)


def kraus_completeness(kraus_ops: Sequence[Matrix], tolerance: float = 1e-10) -> bool:
    """True when Σ K†K = I."""
    dim = kraus_ops[0].rows
    total = sum((k.data.conj().T @ k.data for k in kraus_ops), np.zeros((dim, dim), dtype=np.complex128))
    return bool(np.allclose(total, np.eye(dim), atol=tolerance))


def depolarizing_kraus(num_qubits: int, qubit: int, p: float) -> List[Matrix]:
    # Fully depolarising at p = 0.75, not p = 1.
    factor = math.sqrt(p / 3)
    return [
        Matrix.identity(1 << num_qubits).scale(math.sqrt(1 - p)),
        pauli_operator(num_qubits, [qubit], ["X"]).scale(factor),
        pauli_operator(num_qubits, [qubit], ["Y"]).scale(factor),
        pauli_operator(num_qubits, [qubit], ["Z"]).scale(factor),
    ]


def dephasing_kraus(num_qubits: int, qubit: int, p: float) -> List[Matrix]:
    return [
        Matrix.identity(1 << num_qubits).scale(math.sqrt(1 - p / 2)),
        pauli_operator(num_qubits, [qubit], ["Z"]).scale(math.sqrt(p / 2)),
    ]


def amplitude_damping_kraus(num_qubits: int, qubit: int, gamma: float) -> List[Matrix]:
    k0 = Matrix([[1, 0], [0, math.sqrt(1 - gamma)]])
    k1 = Matrix([[0, math.sqrt(gamma)], [0, 0]])
    return [embed_operator(num_qubits, qubit, k0), embed_operator(num_qubits, qubit, k1)]


def apply_depolarizing(rho: DensityMatrix, qubit: int, p: float) -> DensityMatrix:
    n = _check_args(rho, qubit, p, "Depolarizing")
    return apply_kraus(rho, depolarizing_kraus(n, qubit, p))


def apply_dephasing(rho: DensityMatrix, qubit: int, p: float) -> DensityMatrix:
    """Phase flip with probability p/2."""
    n = _check_args(rho, qubit, p, "Dephasing")
    return apply_kraus(rho, dephasing_kraus(n, qubit, p))


def apply_amplitude_damping(rho: DensityMatrix, qubit: int, gamma: float) -> DensityMatrix:
    n = _check_args(rho, qubit, gamma, "Amplitude damping")
    return apply_kraus(rho, amplitude_damping_kraus(n, qubit, gamma))


# ═════════════════════════════════════════════════════════════
#  UNIFORM NOISE
# ═════════════════════════════════════════════════════════════

def fractional_unitary(u: Matrix, strength: float) -> Matrix:
    """``exp(s·log(U))`` using the element-wise logarithm.

    Interpolates from the identity (s=0) towards U (s=1). The result is
    generally not unitary for non-diagonal U; callers renormalise the state.
    """
    return matrix_exp(matrix_log(u).scale(strength))


def apply_uniform_noise(rho: DensityMatrix, qubit: int, strength: float, rng=None) -> DensityMatrix:
    """Apply a fractional Haar-random rotation to ``qubit``.

    Args:
        rho: State to perturb.
        qubit: Target qubit index.
        strength: 0 returns ``rho`` itself; 1 applies the full random unitary.
        rng: Anything ``numpy.random.default_rng`` accepts.
    """
    n = _check_args(rho, qubit, strength, "Noise")
    if strength == 0:
        return rho
    local_u = fractional_unitary(random_unitary(2, rng), strength)
    return apply_gate(rho, embed_operator(n, qubit, local_u))


def apply_noise(rho: DensityMatrix, channel: Union[NoiseChannel, str], qubit: int,
                parameter: float, rng=None) -> DensityMatrix:
    """Dispatch to the channel named by ``channel``."""
    channel = NoiseChannel(channel)
    if channel is NoiseChannel.UNIFORM_NOISE:
        return apply_uniform_noise(rho, qubit, parameter, rng)
    if channel is NoiseChannel.AMPLITUDE_DAMPING:
        return apply_amplitude_damping(rho, qubit, parameter)
    if channel is NoiseChannel.DEPHASING:
        return apply_dephasing(rho, qubit, parameter)
    return apply_depolarizing(rho, qubit, parameter)
