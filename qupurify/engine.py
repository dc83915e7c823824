"""QuPurify protocol engines.

Both engines walk the same BBPSSW state machine over an ensemble of noisy
|Ψ-⟩ pairs:

  initial → twirled → exchanged → cnot → measured → discard
          → twirlExchange → completed → (next round) initial …

  - AverageSimulationEngine: Bell basis, exact twirl average and analytic
    post-selection. Only the initial noise draws randomness.
  - MonteCarloSimulationEngine: computational basis, one random twirl per
    pair and sampled measurement outcomes.

Every transition produces a new frozen SimulationState; the engine only holds
the current value, its parameters and its random generator.

© 2026 QuPurify contributors | MIT License
"""
from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

import numpy as np

from qupurify.channels import NoiseChannel
from qupurify.errors import InvalidConfiguration, InvalidParameter
from qupurify.gates import apply_gate
from qupurify.operations import (
    PostSelection,
    bilateral_cnot,
    create_noisy_epr,
    create_noisy_pair,
    exchange_operator,
    pauli_twirl,
    post_select_agreement,
    sample_target_measurement,
    werner_twirl,
)
from qupurify.states import (
    Basis,
    BellState,
    DensityMatrix,
    bell_fidelity,
    to_bell_basis,
    to_computational_basis,
)

logger = logging.getLogger("qupurify.engine")


# ═════════════════════════════════════════════════════════════
#  DATA STRUCTURES
# ═════════════════════════════════════════════════════════════

class PurificationStep(Enum):
    INITIAL = "initial"
    TWIRLED = "twirled"
    EXCHANGED = "exchanged"
    CNOT = "cnot"
    MEASURED = "measured"
    DISCARD = "discard"
    TWIRL_EXCHANGE = "twirlExchange"
    COMPLETED = "completed"


class EngineType(Enum):
    AVERAGE = "average"
    MONTE_CARLO = "monte-carlo"


# Steps during which pairs sit in the exchanged frame (target Φ+).
_PHI_PLUS_STEPS = frozenset({
    PurificationStep.EXCHANGED,
    PurificationStep.CNOT,
    PurificationStep.MEASURED,
    PurificationStep.DISCARD,
})


@dataclass(frozen=True)
class SimulationParameters:
    """Run configuration. Replacing it resets the engine."""
    initial_pairs: int = 32
    noise_parameter: float = 0.3
    target_fidelity: float = 0.95
    noise_channel: NoiseChannel = NoiseChannel.UNIFORM_NOISE

    def __post_init__(self):
        try:
            channel = NoiseChannel(self.noise_channel)
        except ValueError:
            raise InvalidConfiguration(f"Unknown noise channel {self.noise_channel!r}") from None
        object.__setattr__(self, "noise_channel", channel)

    def validate(self) -> "SimulationParameters":
        """Raise InvalidConfiguration unless every field is in its domain."""
        if isinstance(self.initial_pairs, bool) or not isinstance(self.initial_pairs, int):
            raise InvalidConfiguration(f"initial_pairs must be an integer, got {self.initial_pairs!r}")
        if self.initial_pairs < 2:
            raise InvalidConfiguration(f"initial_pairs must be at least 2, got {self.initial_pairs}")
        if not 0.0 <= self.noise_parameter <= 1.0:
            raise InvalidConfiguration(
                f"noise_parameter must be in [0, 1], got {self.noise_parameter}")
        if not 0.0 < self.target_fidelity <= 1.0:
            raise InvalidConfiguration(
                f"target_fidelity must be in (0, 1], got {self.target_fidelity}")
        return self

    def to_dict(self) -> dict:
        return {
            "initial_pairs": self.initial_pairs,
            "noise_parameter": self.noise_parameter,
            "target_fidelity": self.target_fidelity,
            "noise_channel": self.noise_channel.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationParameters":
        defaults = cls()
        return cls(
            initial_pairs=data.get("initial_pairs", defaults.initial_pairs),
            noise_parameter=data.get("noise_parameter", defaults.noise_parameter),
            target_fidelity=data.get("target_fidelity", defaults.target_fidelity),
            noise_channel=data.get("noise_channel", defaults.noise_channel),
        )


@dataclass(frozen=True)
class QubitPair:
    """One Alice/Bob pair. ``id`` survives every transformation."""
    id: int
    density_matrix: DensityMatrix
    basis: Basis
    fidelity: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "basis": self.basis.value,
            "fidelity": round(self.fidelity, 6),
            "density_matrix": [[[round(v.real, 6), round(v.imag, 6)] for v in row]
                               for row in self.density_matrix.to_list()],
        }


@dataclass(frozen=True)
class PendingPairs:
    """Scratch state of the round in progress (cnot and measured steps)."""
    control_pairs: Tuple[QubitPair, ...]
    target_pairs: Tuple[QubitPair, ...]
    joint_states: Tuple[DensityMatrix, ...] = ()
    results: Optional[Tuple[bool, ...]] = None
    success_probabilities: Optional[Tuple[float, ...]] = None

    def to_dict(self) -> dict:
        d = {
            "control_pairs": [p.id for p in self.control_pairs],
            "target_pairs": [p.id for p in self.target_pairs],
            "joint_states": len(self.joint_states),
        }
        if self.results is not None:
            d["results"] = list(self.results)
            d["success_probabilities"] = [round(p, 6) for p in self.success_probabilities]
        return d


@dataclass(frozen=True)
class SimulationState:
    pairs: Tuple[QubitPair, ...]
    round: int = 0
    complete: bool = False
    purification_step: PurificationStep = PurificationStep.INITIAL
    average_fidelity: float = 0.0
    pending_pairs: Optional[PendingPairs] = None

    def to_dict(self) -> dict:
        return {
            "pairs": [p.to_dict() for p in self.pairs],
            "round": self.round,
            "complete": self.complete,
            "purification_step": self.purification_step.value,
            "average_fidelity": round(self.average_fidelity, 6),
            "pending_pairs": self.pending_pairs.to_dict() if self.pending_pairs else None,
        }


def _mean_fidelity(pairs) -> float:
    if not pairs:
        return 0.0
    return float(np.mean([p.fidelity for p in pairs]))


# ═════════════════════════════════════════════════════════════
#  ENGINES
# ═════════════════════════════════════════════════════════════

class SimulationEngine(abc.ABC):
    """State machine shared by the two engines.

    Subclasses set ``basis`` and implement ``_twirl`` and ``_measure``.
    Public surface: ``next_step``, ``step``, ``reset``, ``get_current_state``
    and ``update_params``.
    """

    basis: Basis = Basis.COMPUTATIONAL

    def __init__(self, params: Optional[SimulationParameters] = None, rng=None):
        self.params = (params or SimulationParameters()).validate()
        self._rng = np.random.default_rng(rng)
        self._exchange = exchange_operator(self.basis)
        self._state = self._initial_state()

    # ── Engine-specific hooks ────────────────────────────────

    @abc.abstractmethod
    def _twirl(self, rho: DensityMatrix) -> DensityMatrix:
        ...

    @abc.abstractmethod
    def _measure(self, joint: DensityMatrix) -> PostSelection:
        ...

    def _noisy_pair(self) -> DensityMatrix:
        p = self.params
        return create_noisy_pair(p.noise_channel, p.noise_parameter, self._rng)

    def _to_engine_basis(self, rho: DensityMatrix) -> DensityMatrix:
        return rho

    def _to_computational(self, rho: DensityMatrix) -> DensityMatrix:
        return rho

    # ── Pair helpers ─────────────────────────────────────────

    def _pair(self, pair_id: int, rho: DensityMatrix, target: BellState) -> QubitPair:
        return QubitPair(pair_id, rho, self.basis, bell_fidelity(rho, self.basis, target))

    def _fresh_pairs(self) -> Tuple[QubitPair, ...]:
        pairs = []
        for pair_id in range(self.params.initial_pairs):
            rho = self._noisy_pair()
            pairs.append(self._pair(pair_id, self._to_engine_basis(rho), BellState.PSI_MINUS))
        return tuple(pairs)

    def _initial_state(self) -> SimulationState:
        pairs = self._fresh_pairs()
        return SimulationState(pairs=pairs, average_fidelity=_mean_fidelity(pairs))

    def _map_pairs(self, pairs, fn, target: BellState) -> Tuple[QubitPair, ...]:
        return tuple(self._pair(p.id, fn(p.density_matrix), target) for p in pairs)

    def _exchange_pair(self, rho: DensityMatrix) -> DensityMatrix:
        return apply_gate(rho, self._exchange)

    # ── Transitions ──────────────────────────────────────────

    def _advance(self, s: SimulationState) -> SimulationState:
        step = s.purification_step
        if step is PurificationStep.INITIAL:
            pairs = self._map_pairs(s.pairs, self._twirl, BellState.PSI_MINUS)
            return replace(s, pairs=pairs, purification_step=PurificationStep.TWIRLED)

        if step is PurificationStep.TWIRLED:
            pairs = self._map_pairs(s.pairs, self._exchange_pair, BellState.PHI_PLUS)
            return replace(s, pairs=pairs, purification_step=PurificationStep.EXCHANGED)

        if step is PurificationStep.EXCHANGED:
            if len(s.pairs) < 2:
                pairs = self._map_pairs(s.pairs, self._exchange_pair, BellState.PSI_MINUS)
                return self._complete_round(replace(s, pairs=pairs))
            n = len(s.pairs) // 2 * 2
            controls, targets = s.pairs[0:n:2], s.pairs[1:n:2]
            joints = tuple(
                bilateral_cnot(self._to_computational(c.density_matrix),
                               self._to_computational(t.density_matrix))
                for c, t in zip(controls, targets))
            pending = PendingPairs(controls, targets, joints)
            return replace(s, pending_pairs=pending, purification_step=PurificationStep.CNOT)

        if step is PurificationStep.CNOT:
            pending = s.pending_pairs
            outcomes = [self._measure(joint) for joint in pending.joint_states]
            controls = tuple(
                self._pair(c.id, self._to_engine_basis(o.state), BellState.PHI_PLUS)
                if o.successful else c
                for c, o in zip(pending.control_pairs, outcomes))
            pending = replace(
                pending,
                control_pairs=controls,
                results=tuple(o.successful for o in outcomes),
                success_probabilities=tuple(o.success_probability for o in outcomes),
            )
            pairs = controls + pending.target_pairs + s.pairs[2 * len(controls):]
            return replace(s, pairs=pairs, pending_pairs=pending,
                           purification_step=PurificationStep.MEASURED)

        if step is PurificationStep.MEASURED:
            pending = s.pending_pairs
            survivors = tuple(c for c, ok in zip(pending.control_pairs, pending.results) if ok)
            trailing = s.pairs[2 * len(pending.control_pairs):]
            return replace(s, pairs=survivors + trailing, pending_pairs=None,
                           purification_step=PurificationStep.DISCARD)

        if step is PurificationStep.DISCARD:
            pairs = self._map_pairs(
                s.pairs, lambda rho: self._twirl(self._exchange_pair(rho)), BellState.PSI_MINUS)
            return replace(s, pairs=pairs, purification_step=PurificationStep.TWIRL_EXCHANGE)

        if step is PurificationStep.TWIRL_EXCHANGE:
            return self._complete_round(s)

        # COMPLETED and not complete: start the next round.
        return replace(s, round=s.round + 1, pending_pairs=None,
                       purification_step=PurificationStep.INITIAL)

    def _complete_round(self, s: SimulationState) -> SimulationState:
        average = _mean_fidelity(s.pairs)
        complete = average >= self.params.target_fidelity or len(s.pairs) < 2
        if complete:
            logger.info("%s finished after round %d: %d pair(s), average fidelity %.6f",
                        type(self).__name__, s.round, len(s.pairs), average)
        return replace(s, pending_pairs=None, complete=complete,
                       purification_step=PurificationStep.COMPLETED)

    # ── Public API ───────────────────────────────────────────

    def next_step(self) -> SimulationState:
        """Advance exactly one named protocol step."""
        s = self._state
        if s.complete:
            return s
        s = self._advance(s)
        frame = BellState.PHI_PLUS if s.purification_step in _PHI_PLUS_STEPS else BellState.PSI_MINUS
        s = replace(s, average_fidelity=_mean_fidelity(s.pairs))
        logger.debug("round=%d step=%s pairs=%d avg=%.6f (vs %s)",
                     s.round, s.purification_step.value, len(s.pairs),
                     s.average_fidelity, frame.name)
        self._state = s
        return s

    def step(self) -> SimulationState:
        """Advance one full round: up to ``completed`` or until ``complete``."""
        s = self.next_step()
        while s.purification_step is not PurificationStep.COMPLETED and not s.complete:
            s = self.next_step()
        return s

    def reset(self) -> SimulationState:
        """Regenerate the noisy ensemble from the current parameters."""
        self._state = self._initial_state()
        logger.debug("reset: %d pair(s), avg=%.6f",
                     len(self._state.pairs), self._state.average_fidelity)
        return self._state

    def get_current_state(self) -> SimulationState:
        return self._state

    def update_params(self, params: SimulationParameters) -> None:
        """Replace the parameters and reset."""
        self.params = params.validate()
        self.reset()

    def reseed(self, seed) -> SimulationState:
        """Swap in a fresh generator and reset."""
        self._rng = np.random.default_rng(seed)
        return self.reset()


class AverageSimulationEngine(SimulationEngine):
    """Expected-value BBPSSW in the Bell basis.

    The twirl is the exact Werner projection about Ψ-, and every control pair
    whose success probability is non-negligible survives in its conditional
    state. For Werner inputs each round applies

        F' = (F² + ((1-F)/3)²) / (F² + 2F(1-F)/3 + 5((1-F)/3)²)

    Under uniform noise every fresh pair starts at fidelity ``1 - p`` with
    small random coherences (see ``create_noisy_epr``), so after the first
    twirl the whole ensemble is one Werner state and the average fidelity
    never falls from one round to the next while ``p < 1/2``.
    """

    basis = Basis.BELL

    def _noisy_pair(self):
        if self.params.noise_channel is NoiseChannel.UNIFORM_NOISE:
            return create_noisy_epr(self.params.noise_parameter, self._rng)
        return super()._noisy_pair()

    def _twirl(self, rho):
        return werner_twirl(rho, BellState.PSI_MINUS)

    def _measure(self, joint):
        return post_select_agreement(joint)

    def _to_engine_basis(self, rho):
        return to_bell_basis(rho)

    def _to_computational(self, rho):
        return to_computational_basis(rho)


class MonteCarloSimulationEngine(SimulationEngine):
    """Single-trajectory BBPSSW in the computational basis."""

    basis = Basis.COMPUTATIONAL

    def _twirl(self, rho):
        return pauli_twirl(rho, self._rng)

    def _measure(self, joint):
        return sample_target_measurement(joint, self._rng)


_ENGINES = {
    EngineType.AVERAGE: AverageSimulationEngine,
    EngineType.MONTE_CARLO: MonteCarloSimulationEngine,
}


def create_engine(engine_type: Union[EngineType, str] = EngineType.AVERAGE,
                  params: Optional[SimulationParameters] = None,
                  rng=None) -> SimulationEngine:
    """Build the engine named by ``engine_type``.

    Args:
        engine_type: ``"average"`` or ``"monte-carlo"``.
        params: Run configuration; defaults to ``SimulationParameters()``.
        rng: Anything ``numpy.random.default_rng`` accepts.

    Returns:
        A freshly reset engine.
    """
    try:
        engine_type = EngineType(engine_type)
    except ValueError:
        raise InvalidParameter(f"Unknown engine type {engine_type!r}") from None
    return _ENGINES[engine_type](params, rng=rng)


# ═════════════════════════════════════════════════════════════
#  ROUND-CAPPED DRIVER
# ═════════════════════════════════════════════════════════════

@dataclass
class SimulationRun:
    """Result of driving an engine until it reports completion."""
    final_state: SimulationState
    history: List[SimulationState] = field(default_factory=list)
    rounds: int = 0
    hit_round_cap: bool = False

    def to_dict(self) -> dict:
        return {
            "complete": self.final_state.complete,
            "rounds": self.rounds,
            "hit_round_cap": self.hit_round_cap,
            "final_pairs": len(self.final_state.pairs),
            "final_fidelity": round(self.final_state.average_fidelity, 6),
            "fidelity_by_round": [round(s.average_fidelity, 6) for s in self.history],
            "pairs_by_round": [len(s.pairs) for s in self.history],
        }


def run_until_complete(engine: SimulationEngine, max_rounds: int = 100) -> SimulationRun:
    """Call ``engine.step()`` until ``complete`` or ``max_rounds`` rounds.

    ``history`` starts with the state before the first round and then holds
    the state returned by each ``step()``.
    """
    if max_rounds < 1:
        raise InvalidParameter(f"max_rounds must be >= 1, got {max_rounds}")
    state = engine.get_current_state()
    history = [state]
    rounds = 0
    while not state.complete and rounds < max_rounds:
        state = engine.step()
        history.append(state)
        rounds += 1
    run = SimulationRun(state, history, rounds, hit_round_cap=not state.complete)
    if run.hit_round_cap:
        logger.warning("Round cap of %d reached before completion (avg fidelity %.6f)",
                       max_rounds, state.average_fidelity)
    return run
