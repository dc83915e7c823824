"""QuPurify quantum states.

DensityMatrix (validated 2^n × 2^n state), the four Bell states, the
computational <-> Bell change of basis for two qubits, and Bell fidelities.

Two-qubit convention: qubit 1 is Alice's, qubit 0 is Bob's, and the
computational index of |a b⟩ is 2·a + b.

© 2026 QuPurify contributors | MIT License
"""
from __future__ import annotations

import math
from enum import Enum, IntEnum
from typing import Sequence, Union

import numpy as np

from qupurify.errors import DimensionMismatch, InvalidParameter, NotSquare
from qupurify.linalg import Matrix, Scalar, qubit_count

_TRACE_EPS = 1e-12


class BellState(IntEnum):
    """Bell states, valued by their row in the Bell-basis transform."""
    PHI_PLUS = 0   # (|00⟩ + |11⟩)/√2
    PHI_MINUS = 1  # (|00⟩ - |11⟩)/√2
    PSI_PLUS = 2   # (|01⟩ + |10⟩)/√2
    PSI_MINUS = 3  # (|01⟩ - |10⟩)/√2


class Basis(Enum):
    BELL = "bell"
    COMPUTATIONAL = "computational"


_S = 1.0 / math.sqrt(2.0)

# Rows are Φ+, Φ-, Ψ+, Ψ- in computational coordinates.
BELL_TRANSFORM = Matrix.from_real([
    [_S, 0.0, 0.0, _S],
    [_S, 0.0, 0.0, -_S],
    [0.0, _S, _S, 0.0],
    [0.0, _S, -_S, 0.0],
])


def bell_vector(state: BellState) -> np.ndarray:
    return np.array(BELL_TRANSFORM.data[int(state)], dtype=np.complex128)


# ═════════════════════════════════════════════════════════════
#  DENSITY MATRIX
# ═════════════════════════════════════════════════════════════

class DensityMatrix(Matrix):
    """Square 2^n × 2^n state, rescaled to unit trace on construction.

    Hermiticity is not enforced eagerly; call :meth:`validate` where it
    matters.
    """

    __slots__ = ()

    def __init__(self, data):
        super().__init__(data)
        if not self.is_square:
            raise NotSquare(f"DensityMatrix must be square, got {self.shape}")
        qubit_count(self.rows)
        tr = np.trace(self._data).real
        if abs(tr) < _TRACE_EPS:
            raise InvalidParameter("DensityMatrix cannot have zero trace")
        if abs(tr - 1.0) > _TRACE_EPS:
            arr = self._data / tr
            arr.setflags(write=False)
            self._data = arr

    @classmethod
    def _trusted(cls, arr: np.ndarray) -> "DensityMatrix":
        # Skips shape checks for arrays produced by trace-preserving maps.
        obj = DensityMatrix.__new__(DensityMatrix)
        arr = np.asarray(arr, dtype=np.complex128)
        arr.setflags(write=False)
        obj._data = arr
        return obj

    @property
    def num_qubits(self) -> int:
        return qubit_count(self.rows)

    def normalize(self) -> "DensityMatrix":
        """Return a copy rescaled by ``1/trace`` (self when already unit trace)."""
        tr = np.trace(self._data).real
        if abs(tr - 1.0) <= _TRACE_EPS:
            return self
        if abs(tr) < _TRACE_EPS:
            raise InvalidParameter("Cannot normalise a zero-trace matrix")
        return DensityMatrix._trusted(self._data / tr)

    def validate(self, epsilon: float = 1e-8) -> bool:
        """True when ``|tr - 1| < epsilon`` and the matrix is Hermitian within epsilon."""
        tr = np.trace(self._data)
        if abs(tr.real - 1.0) > epsilon or abs(tr.imag) > epsilon:
            return False
        return bool(np.all(np.abs(self._data - self._data.conj().T) <= epsilon))

    def purity(self) -> float:
        return float(np.trace(self._data @ self._data).real)

    def tensor(self, other: Matrix) -> Matrix:
        """Kronecker product; stays a DensityMatrix when ``other`` is one."""
        product = np.kron(self._data, other.data)
        if isinstance(other, DensityMatrix):
            return DensityMatrix._trusted(product)
        return Matrix._wrap(product)

    # ── Factories ────────────────────────────────────────────

    @staticmethod
    def from_state_vector(vec: Sequence[Scalar]) -> "DensityMatrix":
        """|ψ⟩⟨ψ|, normalised."""
        v = np.asarray(vec, dtype=np.complex128).reshape(-1)
        qubit_count(v.size)
        return DensityMatrix(np.outer(v, v.conj()))

    @staticmethod
    def bell(state: BellState) -> "DensityMatrix":
        return DensityMatrix.from_state_vector(bell_vector(state))

    @staticmethod
    def bell_phi_plus() -> "DensityMatrix":
        return DensityMatrix.bell(BellState.PHI_PLUS)

    @staticmethod
    def bell_phi_minus() -> "DensityMatrix":
        return DensityMatrix.bell(BellState.PHI_MINUS)

    @staticmethod
    def bell_psi_plus() -> "DensityMatrix":
        return DensityMatrix.bell(BellState.PSI_PLUS)

    @staticmethod
    def bell_psi_minus() -> "DensityMatrix":
        return DensityMatrix.bell(BellState.PSI_MINUS)

    @staticmethod
    def computational(index: int, num_qubits: int) -> "DensityMatrix":
        """|index⟩⟨index| on ``num_qubits`` qubits."""
        dim = 1 << num_qubits
        if not 0 <= index < dim:
            raise InvalidParameter(f"Basis index {index} out of range for {num_qubits} qubits")
        v = np.zeros(dim, dtype=np.complex128)
        v[index] = 1.0
        return DensityMatrix.from_state_vector(v)

    @staticmethod
    def maximally_mixed(num_qubits: int) -> "DensityMatrix":
        dim = 1 << num_qubits
        return DensityMatrix(np.eye(dim, dtype=np.complex128) / dim)

    @staticmethod
    def werner(p: float, state: BellState = BellState.PHI_PLUS) -> "DensityMatrix":
        """``p·|B⟩⟨B| + (1-p)·I/4``."""
        if not 0.0 <= p <= 1.0:
            raise InvalidParameter(f"Werner weight must be in [0, 1], got {p}")
        v = bell_vector(state)
        return DensityMatrix(p * np.outer(v, v.conj()) + (1.0 - p) * np.eye(4) / 4.0)


# ═════════════════════════════════════════════════════════════
#  BELL BASIS & FIDELITY
# ═════════════════════════════════════════════════════════════

def _check_two_qubit(rho: Matrix):
    if rho.shape != (4, 4):
        raise DimensionMismatch(f"Bell basis transforms need a 4x4 matrix, got {rho.shape}")


def _same_kind(template: Matrix, arr: np.ndarray) -> Matrix:
    if isinstance(template, DensityMatrix):
        return DensityMatrix._trusted(arr)
    return Matrix._wrap(arr)


def to_bell_basis(rho: Matrix) -> Matrix:
    """``U·ρ·U†`` with U = :data:`BELL_TRANSFORM`."""
    _check_two_qubit(rho)
    u = BELL_TRANSFORM.data
    return _same_kind(rho, u @ rho.data @ u.conj().T)


def to_computational_basis(rho_bell: Matrix) -> Matrix:
    """Inverse of :func:`to_bell_basis`: ``U†·ρ·U``."""
    _check_two_qubit(rho_bell)
    u = BELL_TRANSFORM.data
    return _same_kind(rho_bell, u.conj().T @ rho_bell.data @ u)


def fidelity_from_bell_basis_matrix(rho_bell: Matrix,
                                    state: BellState = BellState.PHI_PLUS) -> float:
    """⟨B|ρ|B⟩ read off the diagonal of a Bell-basis matrix."""
    _check_two_qubit(rho_bell)
    return float(rho_bell.data[int(state), int(state)].real)


def fidelity_from_computational_basis_matrix(rho: Matrix,
                                             state: BellState = BellState.PHI_PLUS) -> float:
    return fidelity_from_bell_basis_matrix(to_bell_basis(rho), state)


def bell_fidelity(rho: Matrix, basis: Union[Basis, str],
                  state: BellState = BellState.PHI_PLUS) -> float:
    """Fidelity against ``state`` for a matrix expressed in ``basis``."""
    if Basis(basis) is Basis.BELL:
        return fidelity_from_bell_basis_matrix(rho, state)
    return fidelity_from_computational_basis_matrix(rho, state)


def convert_basis(rho: Matrix, source: Union[Basis, str], target: Union[Basis, str]) -> Matrix:
    source, target = Basis(source), Basis(target)
    if source is target:
        return rho
    if target is Basis.BELL:
        return to_bell_basis(rho)
    return to_computational_basis(rho)
