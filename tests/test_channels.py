"""Kraus channels and the uniform (fractional random unitary) channel."""
import numpy as np
import pytest

from qupurify.channels import (
    NoiseChannel,
    amplitude_damping_kraus,
    apply_amplitude_damping,
    apply_dephasing,
    apply_depolarizing,
    apply_noise,
    apply_uniform_noise,
    dephasing_kraus,
    depolarizing_kraus,
    fractional_unitary,
    kraus_completeness,
)
from qupurify.errors import InvalidParameter
from qupurify.linalg import Matrix
from qupurify.states import BellState, DensityMatrix, fidelity_from_computational_basis_matrix

ALL_CHANNELS = list(NoiseChannel)


# ═══════════════════════════════════════════════════════════════
# Channel validity
# ═══════════════════════════════════════════════════════════════

class TestChannelValidity:

    @pytest.mark.parametrize("channel", ALL_CHANNELS)
    @pytest.mark.parametrize("strength", [0.0, 0.1, 0.5, 1.0])
    def test_trace_and_hermiticity(self, channel, strength, mixed_states, rng):
        for rho in mixed_states:
            for qubit in range(rho.num_qubits):
                out = apply_noise(rho, channel, qubit, strength, rng)
                assert abs(out.trace() - 1) < 1e-10
                np.testing.assert_allclose(out.data, out.data.conj().T, atol=1e-10)
                assert np.min(np.linalg.eigvalsh(out.data)) > -1e-10

    @pytest.mark.parametrize("builder", [depolarizing_kraus, dephasing_kraus, amplitude_damping_kraus])
    @pytest.mark.parametrize("p", [0.0, 0.25, 0.75, 1.0])
    def test_kraus_completeness(self, builder, p):
        assert kraus_completeness(builder(2, 1, p))

    @pytest.mark.parametrize("channel", ALL_CHANNELS)
    def test_rejects_bad_arguments(self, channel):
        rho = DensityMatrix.bell_psi_minus()
        with pytest.raises(InvalidParameter):
            apply_noise(rho, channel, 0, 1.5)
        with pytest.raises(InvalidParameter):
            apply_noise(rho, channel, 0, -0.1)
        with pytest.raises(InvalidParameter):
            apply_noise(rho, channel, 2, 0.1)

    def test_channel_accepts_string(self):
        out = apply_noise(DensityMatrix.bell_psi_minus(), "dephasing", 0, 0.2)
        assert out.equals(apply_dephasing(DensityMatrix.bell_psi_minus(), 0, 0.2))

    def test_unknown_channel(self):
        with pytest.raises(ValueError):
            apply_noise(DensityMatrix.bell_psi_minus(), "bit-flip", 0, 0.2)


# ═══════════════════════════════════════════════════════════════
# Kraus channels
# ═══════════════════════════════════════════════════════════════

class TestKrausChannels:

    def test_depolarizing_makes_werner(self):
        out = apply_depolarizing(DensityMatrix.bell_psi_minus(), 0, 0.3)
        for state in BellState:
            expected = 0.7 if state is BellState.PSI_MINUS else 0.1
            assert abs(fidelity_from_computational_basis_matrix(out, state) - expected) < 1e-12

    def test_depolarizing_fully_mixing_at_three_quarters(self):
        rho = DensityMatrix.from_state_vector([1, 0])
        out = apply_depolarizing(rho, 0, 0.75)
        np.testing.assert_allclose(out.data, np.eye(2) / 2, atol=1e-12)
        # p = 1 overshoots: the state is not maximally mixed.
        assert not apply_depolarizing(rho, 0, 1.0).equals(DensityMatrix.maximally_mixed(1))

    def test_dephasing_kills_coherence_at_one(self):
        plus = DensityMatrix.from_state_vector([1, 1])
        out = apply_dephasing(plus, 0, 1.0)
        np.testing.assert_allclose(out.data, np.eye(2) / 2, atol=1e-12)
        half = apply_dephasing(plus, 0, 0.5)
        assert abs(half.get(0, 1) - 0.25) < 1e-12

    def test_amplitude_damping_decays_excited_state(self):
        one = DensityMatrix.from_state_vector([0, 1])
        out = apply_amplitude_damping(one, 0, 0.4)
        np.testing.assert_allclose(out.data, np.diag([0.4, 0.6]), atol=1e-12)
        assert abs(apply_amplitude_damping(one, 0, 1.0).get(0, 0) - 1) < 1e-12

    def test_amplitude_damping_on_second_qubit(self):
        rho = DensityMatrix.computational(0b10, 2)
        out = apply_amplitude_damping(rho, 1, 1.0)
        assert abs(out.get(0, 0) - 1) < 1e-12


# ═══════════════════════════════════════════════════════════════
# Uniform noise
# ═══════════════════════════════════════════════════════════════

class TestUniformNoise:

    def test_zero_strength_is_identity(self, mixed_pair):
        assert apply_uniform_noise(mixed_pair, 0, 0.0) is mixed_pair
        assert apply_noise(mixed_pair, NoiseChannel.UNIFORM_NOISE, 1, 0.0) is mixed_pair

    @pytest.mark.parametrize("strength", [0.1, 0.5, 1.0])
    def test_positive_strength_changes_state(self, strength, rng):
        rho = DensityMatrix.bell_psi_minus()
        out = apply_uniform_noise(rho, 0, strength, rng)
        assert not out.equals(rho, tolerance=1e-9)
        assert abs(out.trace() - 1) < 1e-10

    def test_seeded_noise_repeats(self, mixed_pair):
        a = apply_uniform_noise(mixed_pair, 1, 0.4, rng=99)
        b = apply_uniform_noise(mixed_pair, 1, 0.4, rng=99)
        assert a == b

    def test_fractional_unitary_endpoints(self):
        d = Matrix([[np.exp(0.8j), 0], [0, np.exp(-0.4j)]])
        assert fractional_unitary(d, 0.0).equals(Matrix.identity(2))
        half = fractional_unitary(d, 0.5)
        np.testing.assert_allclose(half.data, np.diag([np.exp(0.4j), np.exp(-0.2j)]), atol=1e-12)
