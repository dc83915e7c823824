#!/usr/bin/env python3
"""QuPurify Quick Start Example."""
from qupurify import (
    NoiseChannel,
    SimulationParameters,
    StabilizerDistiller,
    create_engine,
    run_until_complete,
)

# ─── 1. Average engine, uniform noise ────────────────────────────────────────
print("=== Average engine: 32 pairs, uniform noise 0.3 ===")
params = SimulationParameters(initial_pairs=32, noise_parameter=0.3, target_fidelity=0.95)
run = run_until_complete(create_engine("average", params, rng=7))
for r, state in enumerate(run.history):
    print(f"after {r} round(s): {len(state.pairs):>3} pairs, "
          f"avg fidelity {state.average_fidelity:.6f}")
print(f"Complete: {run.final_state.complete}")

# ─── 2. Monte Carlo engine, step by step ─────────────────────────────────────
print("\n=== Monte Carlo engine: one round, step by step ===")
engine = create_engine("monte-carlo", SimulationParameters(
    initial_pairs=8, noise_parameter=0.1, noise_channel=NoiseChannel.DEPOLARIZING), rng=1)
state = engine.get_current_state()
print(f"{state.purification_step.value:>14}: avg {state.average_fidelity:.6f}")
while True:
    state = engine.next_step()
    print(f"{state.purification_step.value:>14}: avg {state.average_fidelity:.6f}, "
          f"{len(state.pairs)} pairs")
    if state.purification_step.value == "completed":
        break

# ─── 3. Stim cross-check ─────────────────────────────────────────────────────
print("\n=== Stim BBPSSW round (depolarizing p=0.1) ===")
stats = StabilizerDistiller(noise_rate=0.1, seed=3).run_distillation(shots=50000)
print(f"Input fidelity:   {stats.input_fidelity:.6f}")
print(f"Output fidelity:  {stats.output_fidelity:.6f} (expected {stats.expected_output_fidelity:.6f})")
print(f"Success rate:     {stats.success_rate:.6f} (expected {stats.expected_success_rate:.6f})")
