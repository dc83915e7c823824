"""Measurement, partial trace, twirling and BBPSSW building blocks."""
import itertools

import numpy as np
import pytest

from qupurify.channels import NoiseChannel
from qupurify.errors import DimensionMismatch, InvalidParameter
from qupurify.operations import (
    PAULI_TWIRL_SEQUENCES,
    bbpssw_output_fidelity,
    bbpssw_success_probability,
    bilateral_cnot,
    bilateral_cnot_operator,
    create_noisy_epr,
    create_noisy_pair,
    exchange_operator,
    exchange_psi_minus_phi_plus,
    measure_qubit,
    partial_trace,
    pauli_twirl,
    pauli_twirl_operator,
    post_select_agreement,
    sample_measurement,
    sample_target_measurement,
    twirl_average,
    werner_twirl,
)
from qupurify.linalg import Matrix, bitstring_to_index, is_unitary
from qupurify.states import (
    Basis,
    BellState,
    DensityMatrix,
    fidelity_from_bell_basis_matrix,
    fidelity_from_computational_basis_matrix,
    to_bell_basis,
)

from conftest import random_density_matrix


def werner(f: float, state: BellState = BellState.PSI_MINUS) -> DensityMatrix:
    """Bell-diagonal state with population f on ``state`` (computational basis)."""
    rest = (1.0 - f) / 3.0
    acc = np.zeros((4, 4), dtype=np.complex128)
    for s in BellState:
        acc += (f if s is state else rest) * DensityMatrix.bell(s).data
    return DensityMatrix(acc)


# ═══════════════════════════════════════════════════════════════
# Measurement
# ═══════════════════════════════════════════════════════════════

class TestMeasurement:

    def test_probabilities_sum_to_one(self, mixed_states):
        for rho in mixed_states:
            for q in range(rho.num_qubits):
                zero, one = measure_qubit(rho, q)
                assert abs(zero.probability + one.probability - 1) < 1e-12
                assert zero.state.validate() and one.state.validate()

    def test_collapse(self):
        rho = DensityMatrix.bell_phi_plus()
        zero, one = measure_qubit(rho, 1)
        assert abs(zero.probability - 0.5) < 1e-12
        assert abs(zero.state.get(0, 0) - 1) < 1e-12
        assert abs(one.state.get(3, 3) - 1) < 1e-12

    def test_impossible_branch_has_no_state(self):
        zero, one = measure_qubit(DensityMatrix.computational(0, 2), 0)
        assert zero.probability == 1.0
        assert one.state is None

    def test_sampling_never_returns_impossible_branch(self, rng):
        rho = DensityMatrix.computational(bitstring_to_index("10"), 2)
        for _ in range(20):
            assert sample_measurement(rho, 1, rng).outcome == 1
            assert sample_measurement(rho, 0, rng).outcome == 0

    def test_sampling_frequencies(self):
        rho = DensityMatrix.from_state_vector([np.sqrt(0.3), np.sqrt(0.7)])
        rng = np.random.default_rng(5)
        ones = sum(sample_measurement(rho, 0, rng).outcome for _ in range(4000))
        assert abs(ones / 4000 - 0.7) < 0.03

    def test_bad_qubit(self):
        with pytest.raises(InvalidParameter):
            measure_qubit(DensityMatrix.bell_phi_plus(), 2)


# ═══════════════════════════════════════════════════════════════
# Partial trace
# ═══════════════════════════════════════════════════════════════

class TestPartialTrace:

    def test_product_state(self, rng):
        a = random_density_matrix(1, rng)
        b = random_density_matrix(2, rng)
        joint = a.tensor(b)
        assert partial_trace(joint, [0, 1]).equals(a)
        assert partial_trace(joint, [2]).equals(b)

    def test_order_of_traced_qubits_does_not_matter(self, rng):
        rho = random_density_matrix(3, rng)
        assert partial_trace(rho, [0, 2]).equals(partial_trace(rho, [2, 0]))

    def test_middle_qubit(self, rng):
        a, b, c = (random_density_matrix(1, rng) for _ in range(3))
        joint = a.tensor(b).tensor(c)
        assert partial_trace(joint, [1]).equals(a.tensor(c))

    def test_bell_state_reduces_to_mixed(self):
        out = partial_trace(DensityMatrix.bell_psi_minus(), [0])
        np.testing.assert_allclose(out.data, np.eye(2) / 2, atol=1e-15)

    def test_errors(self):
        with pytest.raises(InvalidParameter):
            partial_trace(DensityMatrix.bell_phi_plus(), [0, 0])
        with pytest.raises(InvalidParameter):
            partial_trace(DensityMatrix.bell_phi_plus(), [3])


# ═══════════════════════════════════════════════════════════════
# Twirling
# ═══════════════════════════════════════════════════════════════

class TestTwirl:

    def test_twelve_distinct_unitaries(self):
        ops = [pauli_twirl_operator(s) for s in PAULI_TWIRL_SEQUENCES]
        assert len(ops) == 12
        for op in ops:
            assert is_unitary(op)
        for a, b in itertools.combinations(ops, 2):
            assert not a.equals_up_to_global_phase(b, tolerance=1e-8)

    def test_every_operator_preserves_psi_minus(self):
        rho = DensityMatrix.bell_psi_minus()
        for sequence in PAULI_TWIRL_SEQUENCES:
            out = pauli_twirl_operator(sequence)
            twirled = DensityMatrix(out.data @ rho.data @ out.data.conj().T)
            assert abs(fidelity_from_computational_basis_matrix(twirled, BellState.PSI_MINUS) - 1) < 1e-12

    def test_random_twirl_preserves_psi_minus_fidelity(self, rng):
        rho = werner(0.8)
        for _ in range(12):
            out = pauli_twirl(rho, rng)
            assert abs(fidelity_from_computational_basis_matrix(out, BellState.PSI_MINUS) - 0.8) < 1e-12

    def test_average_equals_werner_projection(self, mixed_pair):
        averaged = to_bell_basis(twirl_average(mixed_pair))
        projected = werner_twirl(to_bell_basis(mixed_pair))
        np.testing.assert_allclose(averaged.data, projected.data, atol=1e-12)

    def test_werner_projection(self, mixed_pair):
        bell = to_bell_basis(mixed_pair)
        out = werner_twirl(bell)
        f = fidelity_from_bell_basis_matrix(bell, BellState.PSI_MINUS)
        np.testing.assert_allclose(np.diag(out.data).real, [(1 - f) / 3] * 3 + [f], atol=1e-12)
        assert np.count_nonzero(out.data - np.diag(np.diag(out.data))) == 0

    def test_werner_projection_requires_two_qubits(self):
        with pytest.raises(DimensionMismatch):
            werner_twirl(DensityMatrix.maximally_mixed(1))

    def test_unknown_axis(self):
        with pytest.raises(InvalidParameter):
            pauli_twirl_operator(["w"])


# ═══════════════════════════════════════════════════════════════
# Protocol building blocks
# ═══════════════════════════════════════════════════════════════

class TestExchange:

    @pytest.mark.parametrize("a, b", [
        (BellState.PSI_MINUS, BellState.PHI_PLUS),
        (BellState.PHI_MINUS, BellState.PSI_PLUS),
    ])
    def test_swaps_bell_states(self, a, b):
        for src, dst in ((a, b), (b, a)):
            out = exchange_psi_minus_phi_plus(DensityMatrix.bell(src), Basis.COMPUTATIONAL)
            assert abs(fidelity_from_computational_basis_matrix(out, dst) - 1) < 1e-12

    def test_bell_basis_version_agrees(self, mixed_pair):
        comp = exchange_psi_minus_phi_plus(mixed_pair, "computational")
        bell = exchange_psi_minus_phi_plus(to_bell_basis(mixed_pair), "bell")
        np.testing.assert_allclose(to_bell_basis(comp).data, bell.data, atol=1e-12)

    def test_is_involution_on_states(self, mixed_pair):
        twice = exchange_psi_minus_phi_plus(
            exchange_psi_minus_phi_plus(mixed_pair, Basis.COMPUTATIONAL), Basis.COMPUTATIONAL)
        assert twice.equals(mixed_pair)
        assert is_unitary(exchange_operator(Basis.BELL))


class TestBilateralCnot:

    def test_operator_is_self_inverse(self):
        u = bilateral_cnot_operator()
        assert (u @ u).equals(Matrix.identity(16))

    def test_perfect_pairs_always_succeed(self):
        joint = bilateral_cnot(DensityMatrix.bell_phi_plus(), DensityMatrix.bell_phi_plus())
        result = post_select_agreement(joint)
        assert abs(result.success_probability - 1) < 1e-12
        assert abs(fidelity_from_computational_basis_matrix(result.state) - 1) < 1e-12

    def test_bit_flipped_target_always_fails(self):
        joint = bilateral_cnot(DensityMatrix.bell_phi_plus(), DensityMatrix.bell_psi_plus())
        result = post_select_agreement(joint)
        assert result.success_probability < 1e-12
        assert not result.successful

    def test_phase_error_propagates_to_control(self):
        joint = bilateral_cnot(DensityMatrix.bell_phi_plus(), DensityMatrix.bell_phi_minus())
        result = post_select_agreement(joint)
        assert abs(fidelity_from_computational_basis_matrix(result.state, BellState.PHI_MINUS) - 1) < 1e-12

    @pytest.mark.parametrize("f", [0.6, 0.75, 0.9, 0.99])
    def test_werner_round_matches_closed_form(self, f):
        pair = werner(f, BellState.PHI_PLUS)
        result = post_select_agreement(bilateral_cnot(pair, pair))
        assert abs(result.success_probability - bbpssw_success_probability(f)) < 1e-12
        fidelity = fidelity_from_computational_basis_matrix(result.state, BellState.PHI_PLUS)
        assert abs(fidelity - bbpssw_output_fidelity(f)) < 1e-12
        assert fidelity > f

    def test_sampled_measurement_statistics(self):
        pair = werner(0.8, BellState.PHI_PLUS)
        joint = bilateral_cnot(pair, pair)
        rng = np.random.default_rng(17)
        trials = [sample_target_measurement(joint, rng) for _ in range(2000)]
        rate = sum(t.successful for t in trials) / len(trials)
        assert abs(rate - bbpssw_success_probability(0.8)) < 0.04
        for t in trials[:50]:
            assert t.successful == (t.alice_outcome == t.bob_outcome)

    def test_sampled_survivor_averages_to_analytic(self):
        pair = werner(0.8, BellState.PHI_PLUS)
        joint = bilateral_cnot(pair, pair)
        expected = post_select_agreement(joint).state
        # Both agreeing branches give the same conditional state for Bell-diagonal input.
        rng = np.random.default_rng(23)
        for _ in range(10):
            t = sample_target_measurement(joint, rng)
            if t.successful:
                assert t.state.equals(expected, tolerance=1e-10)

    def test_shape_checks(self):
        with pytest.raises(DimensionMismatch):
            bilateral_cnot(DensityMatrix.maximally_mixed(1), DensityMatrix.bell_phi_plus())
        with pytest.raises(DimensionMismatch):
            post_select_agreement(DensityMatrix.bell_phi_plus())


class TestNoisyPair:

    def test_depolarizing_pair_is_werner(self):
        rho = create_noisy_pair(NoiseChannel.DEPOLARIZING, 0.1)
        bell = to_bell_basis(rho)
        np.testing.assert_allclose(np.diag(bell.data).real, [0.1 / 3] * 3 + [0.9], atol=1e-12)

    def test_noiseless_pair(self):
        for channel in NoiseChannel:
            rho = create_noisy_pair(channel, 0.0, rng=1)
            assert abs(fidelity_from_computational_basis_matrix(rho, BellState.PSI_MINUS) - 1) < 1e-12

    @pytest.mark.parametrize("p", [0.0, 0.3, 0.6, 0.9, 1.0])
    def test_noisy_epr_fidelity_and_positivity(self, p, rng):
        rho = create_noisy_epr(p, rng)
        assert rho.validate()
        assert abs(fidelity_from_computational_basis_matrix(rho, BellState.PSI_MINUS) - (1 - p)) < 1e-12
        assert np.linalg.eigvalsh(rho.data).min() > -1e-12

    def test_noisy_epr_populations_and_coherences(self):
        bell = to_bell_basis(create_noisy_epr(0.3, rng=4))
        np.testing.assert_allclose(np.diag(bell.data).real, [0.1, 0.1, 0.1, 0.7], atol=1e-12)
        off = bell.data - np.diag(np.diag(bell.data))
        assert np.abs(off).max() <= 0.015 * np.sqrt(2) + 1e-12
        assert np.abs(off).max() > 0

    def test_noisy_epr_draws_from_rng(self):
        rng = np.random.default_rng(8)
        assert not create_noisy_epr(0.3, rng).equals(create_noisy_epr(0.3, rng))
        assert create_noisy_epr(0.3, rng=2).equals(create_noisy_epr(0.3, rng=2))

    def test_noisy_epr_rejects_bad_parameter(self):
        with pytest.raises(InvalidParameter):
            create_noisy_epr(1.2)
