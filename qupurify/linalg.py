"""QuPurify linear algebra layer.

Provides the small complex-linear-algebra kit every other module builds on:
  - scalar complex helpers with negative-zero normalisation
  - Matrix: immutable complex matrix (numpy-backed)
  - matrix exponential (truncated power series) and element-wise logarithm
  - Haar-random unitaries via Gram-Schmidt QR
  - qubit-index helpers (bitstrings, qubit counts)

© 2026 QuPurify contributors | MIT License
"""
from __future__ import annotations

import math
from typing import Callable, Sequence, Union

import numpy as np

from qupurify.errors import DimensionMismatch, DivisionByZero, InvalidParameter, NotSquare

Scalar = Union[complex, float, int]

_DIV_EPS = 1e-300
_LOG_FLOOR = 1e-300
_GS_EPS = 1e-14


# ═════════════════════════════════════════════════════════════
#  COMPLEX SCALARS
# ═════════════════════════════════════════════════════════════

def normalize_zero(z: Scalar) -> complex:
    """Return ``z`` as a Python complex with ``-0.0`` mapped to ``0.0``."""
    z = complex(z)
    re = 0.0 if z.real == 0 else z.real
    im = 0.0 if z.imag == 0 else z.imag
    return complex(re, im)


def c_zero() -> complex:
    return complex(0.0, 0.0)


def c_one() -> complex:
    return complex(1.0, 0.0)


def c_real(r: float) -> complex:
    return normalize_zero(complex(r, 0.0))


def c_add(a: Scalar, b: Scalar) -> complex:
    return normalize_zero(complex(a) + complex(b))


def c_sub(a: Scalar, b: Scalar) -> complex:
    return normalize_zero(complex(a) - complex(b))


def c_mul(a: Scalar, b: Scalar) -> complex:
    return normalize_zero(complex(a) * complex(b))


def c_div(a: Scalar, b: Scalar) -> complex:
    """Divide ``a / b``; raises DivisionByZero when ``|b|²`` is ~0."""
    b = complex(b)
    denom = c_abs2(b)
    if denom < _DIV_EPS:
        raise DivisionByZero(f"Complex division by {b!r}")
    a = complex(a)
    return normalize_zero(complex(
        (a.real * b.real + a.imag * b.imag) / denom,
        (a.imag * b.real - a.real * b.imag) / denom,
    ))


def c_conj(a: Scalar) -> complex:
    return normalize_zero(complex(a).conjugate())


def c_abs2(a: Scalar) -> float:
    """Squared magnitude."""
    a = complex(a)
    return a.real * a.real + a.imag * a.imag


# ═════════════════════════════════════════════════════════════
#  MATRIX
# ═════════════════════════════════════════════════════════════

class Matrix:
    """Immutable rectangular complex matrix.

    Every operation returns a new Matrix; the backing array is read-only.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Union[np.ndarray, Sequence[Sequence[Scalar]], "Matrix"]):
        if isinstance(data, Matrix):
            arr = np.array(data.data, dtype=np.complex128)
        elif isinstance(data, np.ndarray):
            if data.ndim != 2 or data.size == 0:
                raise DimensionMismatch(f"Matrix needs a non-empty 2-D array, got shape {data.shape}")
            arr = np.array(data, dtype=np.complex128)
        else:
            rows = [list(row) for row in data]
            if not rows or not rows[0]:
                raise DimensionMismatch("Matrix cannot have zero dimensions")
            width = len(rows[0])
            for row in rows:
                if len(row) != width:
                    raise DimensionMismatch("All rows must have the same length")
            arr = np.array(rows, dtype=np.complex128)
        arr.setflags(write=False)
        self._data = arr

    @classmethod
    def _wrap(cls, arr: np.ndarray) -> "Matrix":
        # Internal constructor for arrays already known to be well-formed.
        obj = Matrix.__new__(Matrix)
        arr = np.asarray(arr, dtype=np.complex128)
        arr.setflags(write=False)
        obj._data = arr
        return obj

    # ── Factories ────────────────────────────────────────────

    @staticmethod
    def zeros(rows: int, cols: int) -> "Matrix":
        return Matrix(np.zeros((rows, cols), dtype=np.complex128))

    @staticmethod
    def identity(size: int) -> "Matrix":
        return Matrix(np.eye(size, dtype=np.complex128))

    @staticmethod
    def from_real(rows: Sequence[Sequence[float]]) -> "Matrix":
        return Matrix([[complex(v, 0.0) for v in row] for row in rows])

    # ── Accessors ────────────────────────────────────────────

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def rows(self) -> int:
        return self._data.shape[0]

    @property
    def cols(self) -> int:
        return self._data.shape[1]

    @property
    def shape(self) -> tuple:
        return self._data.shape

    @property
    def is_square(self) -> bool:
        return self.rows == self.cols

    def get(self, i: int, j: int) -> complex:
        return normalize_zero(self._data[i, j])

    def to_list(self) -> list:
        return [[normalize_zero(v) for v in row] for row in self._data]

    # ── Element-wise operations ──────────────────────────────

    def _check_same_shape(self, other: "Matrix", op: str):
        if self.shape != other.shape:
            raise DimensionMismatch(
                f"Matrix dimensions must match for {op}: {self.shape} vs {other.shape}")

    def add(self, other: "Matrix") -> "Matrix":
        self._check_same_shape(other, "add")
        return Matrix._wrap(self._data + other.data)

    def sub(self, other: "Matrix") -> "Matrix":
        self._check_same_shape(other, "sub")
        return Matrix._wrap(self._data - other.data)

    def scale(self, s: Scalar) -> "Matrix":
        return Matrix._wrap(self._data * complex(s))

    def map(self, fn: Callable[[complex, int, int], Scalar]) -> "Matrix":
        return Matrix([[fn(self.get(i, j), i, j) for j in range(self.cols)]
                       for i in range(self.rows)])

    def zip(self, other: "Matrix",
            fn: Callable[[complex, complex, int, int], Scalar]) -> "Matrix":
        self._check_same_shape(other, "zip")
        return Matrix([[fn(self.get(i, j), other.get(i, j), i, j) for j in range(self.cols)]
                       for i in range(self.rows)])

    # ── Algebra ──────────────────────────────────────────────

    def mul(self, other: "Matrix") -> "Matrix":
        if self.cols != other.rows:
            raise DimensionMismatch(
                f"Matrix dimensions do not align for multiplication: {self.shape} x {other.shape}")
        return Matrix._wrap(self._data @ other.data)

    def __matmul__(self, other: "Matrix") -> "Matrix":
        return self.mul(other)

    def dagger(self) -> "Matrix":
        """Conjugate transpose."""
        return Matrix._wrap(self._data.conj().T)

    def tensor(self, other: "Matrix") -> "Matrix":
        """Kronecker product: block (i, j) of the result is ``self[i, j] * other``."""
        return Matrix._wrap(np.kron(self._data, other.data))

    def trace(self) -> complex:
        if not self.is_square:
            raise NotSquare(f"Matrix must be square to compute trace, got {self.shape}")
        return normalize_zero(np.trace(self._data))

    # ── Comparison ───────────────────────────────────────────

    def equals(self, other: "Matrix", tolerance: float = 1e-10) -> bool:
        if self.shape != other.shape:
            return False
        return bool(np.all(np.abs(self._data - other.data) <= tolerance))

    def equals_up_to_global_phase(self, other: "Matrix", tolerance: float = 1e-10) -> bool:
        """Compare after rotating ``other`` by the phase that best aligns it with ``self``.

        The minimising phase of ``||A - e^{iφ} B||`` is ``arg(tr(B†A))``.
        """
        if self.shape != other.shape:
            return False
        overlap = np.vdot(other.data, self._data)
        phase = overlap / abs(overlap) if abs(overlap) > _GS_EPS else 1.0
        return bool(np.all(np.abs(self._data - phase * other.data) <= tolerance))

    def __eq__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self._data, other.data))

    __hash__ = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.rows}x{self.cols}, {self.to_list()!r})"


# ═════════════════════════════════════════════════════════════
#  MATRIX EXPONENTIAL / LOGARITHM
# ═════════════════════════════════════════════════════════════

def matrix_exp(matrix: Matrix, max_terms: int = 20, tolerance: float = 1e-12) -> Matrix:
    """exp(A) = I + A + A²/2! + ... truncated after ``max_terms`` terms.

    Stops early once two successive partial sums agree element-wise
    (real and imaginary parts) within ``tolerance``.
    """
    if not matrix.is_square:
        raise NotSquare("Matrix must be square for exponentiation")
    a = matrix.data
    result = np.eye(matrix.rows, dtype=np.complex128)
    term = np.eye(matrix.rows, dtype=np.complex128)
    for k in range(1, max_terms + 1):
        term = (term @ a) / k
        previous = result
        result = result + term
        diff = result - previous
        if np.all(np.abs(diff.real) <= tolerance) and np.all(np.abs(diff.imag) <= tolerance):
            break
    return Matrix._wrap(result)


def matrix_log(matrix: Matrix) -> Matrix:
    """Element-wise polar logarithm: ``log|z| + i·arg(z)`` per entry.

    Only equals the true matrix logarithm for diagonal input. Entries with
    magnitude below 1e-300 map to 0 rather than ``-inf``, so zero
    off-diagonals stay zero.
    """
    d = matrix.data
    magnitude = np.abs(d)
    nonzero = magnitude >= _LOG_FLOOR
    log_abs = np.log(np.where(nonzero, magnitude, 1.0))
    return Matrix._wrap(np.where(nonzero, log_abs + 1j * np.arctan2(d.imag, d.real), 0.0))


def is_unitary(matrix: Matrix, tolerance: float = 1e-10) -> bool:
    """True when ``U·U† = I`` within ``tolerance``."""
    if not matrix.is_square:
        raise NotSquare(f"Unitary check needs a square matrix, got {matrix.shape}")
    return matrix.mul(matrix.dagger()).equals(Matrix.identity(matrix.rows), tolerance)


# ═════════════════════════════════════════════════════════════
#  RANDOM UNITARIES
# ═════════════════════════════════════════════════════════════

def qr_decompose(matrix: Matrix) -> tuple:
    """Gram-Schmidt QR decomposition.

    Returns ``(Q, R)`` with orthonormal columns in Q and an upper-triangular R
    whose diagonal is real and non-negative. Columns whose residual norm drops
    below 1e-14 are left unnormalised.
    """
    a = matrix.data
    m, n = a.shape
    q = np.zeros((m, n), dtype=np.complex128)
    r = np.zeros((n, n), dtype=np.complex128)
    for j in range(n):
        v = a[:, j].copy()
        for i in range(j):
            projection = np.vdot(q[:, i], v)
            r[i, j] = projection
            v = v - projection * q[:, i]
        norm = np.linalg.norm(v)
        r[j, j] = norm
        if norm > _GS_EPS:
            v = v / norm
        q[:, j] = v
    return Matrix._wrap(q), Matrix._wrap(r)


def gaussian_matrix(rows: int, cols: int, rng=None) -> Matrix:
    """Matrix of i.i.d. complex Gaussians ``(N(0,1) + i·N(0,1)) / √2``."""
    rng = np.random.default_rng(rng)
    scale = 1.0 / math.sqrt(2.0)
    re = rng.standard_normal((rows, cols)) * scale
    im = rng.standard_normal((rows, cols)) * scale
    return Matrix._wrap(re + 1j * im)


def random_unitary(size: int, rng=None) -> Matrix:
    """Haar-random ``size × size`` unitary: Q factor of a Ginibre matrix."""
    if size < 1:
        raise InvalidParameter(f"Unitary size must be >= 1, got {size}")
    q, _ = qr_decompose(gaussian_matrix(size, size, rng))
    return q


# ═════════════════════════════════════════════════════════════
#  QUBIT INDEXING
# ═════════════════════════════════════════════════════════════

def qubit_count(dim: int) -> int:
    """Number of qubits for a ``dim``-dimensional space; dim must be 2^n."""
    if dim < 1 or dim & (dim - 1):
        raise InvalidParameter(f"Dimension {dim} is not a power of 2")
    return dim.bit_length() - 1


def check_qubit(qubit: int, num_qubits: int):
    if not 0 <= qubit < num_qubits:
        raise InvalidParameter(f"Qubit index {qubit} out of range for {num_qubits}-qubit system")


def bitstring_to_index(bitstring: str) -> int:
    """``'1101' -> 13``; the last character is qubit 0."""
    index = 0
    n = len(bitstring)
    for i, ch in enumerate(reversed(bitstring)):
        if ch == "1":
            index |= 1 << i
        elif ch != "0":
            raise InvalidParameter(f"Bitstring may only contain 0/1, got {bitstring!r} (length {n})")
    return index


def index_to_bitstring(index: int, num_bits: int) -> str:
    """Inverse of :func:`bitstring_to_index` for ``num_bits`` qubits."""
    return "".join(str((index >> i) & 1) for i in reversed(range(num_bits)))

