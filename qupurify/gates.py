"""QuPurify gate library.

Pauli matrices and their n-qubit embeddings, the n-qubit CNOT permutation,
single-qubit rotations, and gate application on density matrices.

Qubit 0 is the least significant bit of a basis index, so an n-qubit
operator is built as ``op_{n-1} ⊗ ... ⊗ op_0``.

© 2026 QuPurify contributors | MIT License
"""
from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from qupurify.errors import DimensionMismatch, InvalidParameter
from qupurify.linalg import Matrix, check_qubit, qubit_count
from qupurify.states import DensityMatrix

PAULI_LABELS = ("I", "X", "Y", "Z")

_PAULIS = {
    "I": Matrix.identity(2),
    "X": Matrix([[0, 1], [1, 0]]),
    "Y": Matrix([[0, -1j], [1j, 0]]),
    "Z": Matrix([[1, 0], [0, -1]]),
}


def pauli_matrix(label: str) -> Matrix:
    """The 2×2 Pauli matrix for ``'I' | 'X' | 'Y' | 'Z'``."""
    try:
        return _PAULIS[label]
    except KeyError:
        raise InvalidParameter(f"Unknown Pauli: {label!r}") from None


def embed_operator(num_qubits: int, qubit: int, op: Matrix) -> Matrix:
    """Place a single-qubit ``op`` on ``qubit``, identity on every other qubit."""
    check_qubit(qubit, num_qubits)
    if op.shape != (2, 2):
        raise DimensionMismatch(f"Single-qubit operator must be 2x2, got {op.shape}")
    return _kron_chain({qubit: op}, num_qubits)


def _kron_chain(local_ops: dict, num_qubits: int) -> Matrix:
    result = None
    for q in reversed(range(num_qubits)):
        local = local_ops.get(q, _PAULIS["I"])
        result = local if result is None else result.tensor(local)
    return result


def pauli_operator(num_qubits: int, targets: Sequence[int], paulis: Sequence[str]) -> Matrix:
    """Tensor product of ``paulis`` on ``targets``, identity elsewhere."""
    if len(targets) != len(paulis):
        raise InvalidParameter("Targets and Pauli labels must have the same length")
    if num_qubits < 1:
        raise InvalidParameter(f"Need at least one qubit, got {num_qubits}")
    local_ops = {}
    for qubit, label in zip(targets, paulis):
        check_qubit(qubit, num_qubits)
        local_ops[qubit] = pauli_matrix(label)
    return _kron_chain(local_ops, num_qubits)


def cnot_matrix(num_qubits: int, control: int, target: int) -> Matrix:
    """n-qubit CNOT permutation matrix.

    The basis state is flipped on bit ``control`` whenever bit ``target`` is
    set, i.e. ``target`` is the bit that is read. Callers that want "a drives
    b" pass ``control=b, target=a``.
    """
    check_qubit(control, num_qubits)
    check_qubit(target, num_qubits)
    if control == target:
        raise InvalidParameter("CNOT control and target must differ")
    dim = 1 << num_qubits
    data = np.zeros((dim, dim), dtype=np.complex128)
    for i in range(dim):
        j = i ^ (1 << control) if (i >> target) & 1 else i
        data[j, i] = 1.0
    return Matrix(data)


# ── Rotations ────────────────────────────────────────────────

def rx(theta: float) -> Matrix:
    """R_x(θ) = exp(-iθX/2)."""
    a, b = math.cos(theta / 2), math.sin(theta / 2)
    return Matrix([[a, -1j * b], [-1j * b, a]])


def ry(theta: float) -> Matrix:
    """R_y(θ) = exp(-iθY/2)."""
    a, b = math.cos(theta / 2), math.sin(theta / 2)
    return Matrix([[a, -b], [b, a]])


def rz(theta: float) -> Matrix:
    """R_z(θ) = exp(-iθZ/2)."""
    a, b = math.cos(theta / 2), math.sin(theta / 2)
    return Matrix([[complex(a, -b), 0], [0, complex(a, b)]])


# ── Application ──────────────────────────────────────────────

def apply_gate(rho: DensityMatrix, u: Matrix) -> DensityMatrix:
    """ρ -> U ρ U†."""
    if u.shape != rho.shape:
        raise DimensionMismatch(f"Gate {u.shape} does not match state {rho.shape}")
    return DensityMatrix(u.data @ rho.data @ u.data.conj().T)


def apply_pauli(rho: DensityMatrix, targets: Sequence[int], paulis: Sequence[str]) -> DensityMatrix:
    return apply_gate(rho, pauli_operator(qubit_count(rho.rows), targets, paulis))


def apply_cnot(rho: DensityMatrix, control: int, target: int) -> DensityMatrix:
    return apply_gate(rho, cnot_matrix(qubit_count(rho.rows), control, target))
