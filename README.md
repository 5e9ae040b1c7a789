# nlcg

Building blocks for direct minimization of the free energy of an
electronic-structure calculation with a nonlinear conjugate gradient method
on wave functions and a pseudo-Hamiltonian (eta). All data lives on the host
as NumPy arrays, and everything runs in a single process.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `nlcg.interface` is the contract a host electronic-structure code
  implements: the abstract classes `EnergyBase`, `BufferBase`, `OpBase`,
  `OverlapBase` and `UltrasoftPrecondBase`. It also holds the `BufferProtocol`
  dataclass, which describes a strided block of caller memory and can return
  it as a NumPy view with `as_array()`, the enums `MemoryType` and
  `SmearingType`, and the result record `NlcgInfo`.
- `nlcg.communicator` provides `Communicator`, a handle of kind `SELF`,
  `WORLD` or `NULL` (`CommKind`). `SELF` and `WORLD` hold one rank. `NULL`
  holds none, and any operation on it raises `RuntimeError`. The collectives
  are `size`, `rank`, `allgather`, `allreduce` (with `MpiOp.SUM`, `MAX`,
  `MIN`) and `barrier`.
- `nlcg.layout` provides `Block`, `BlockLayout`, `SlabLayoutV` and `Map`.
  `SlabLayoutV` raises `ValueError` for blocks that are not full width or do
  not start at column 0.
- `nlcg.traits` provides `evaluate`, which waits for a future, calls a
  zero-argument callable, or returns a plain value unchanged. It also provides
  the predicates `is_future` and `is_callable`.
- `nlcg.mvector` provides `MVector`, a mutable mapping keyed by
  `(k-point, spin)` that iterates in sorted key order. It comes with these
  helpers:
  - `tapply` applies a function key by key and returns deferred results.
  - `eval_threaded` and `execute` evaluate deferred results.
  - `total` sums scalar entries and reduces them over the communicator.
  - `sum_entries`, `multiply`, `copy`, `unzip` and `print_mvector` work on
    entries.
  - The adaptors `make_mmatrix`, `make_mmvector` and `make_mmscalar` read a
    `BufferBase`. `make_mmatrix` wraps buffers as views. `make_mmvector`
    copies host buffers and rejects device memory.
- `nlcg.operator` provides `Applicator` and `USPreconditioner`. These make a
  caller's per-k-point operator usable as a function of an array.
- `nlcg.linalg` provides dense kernels:
  - `eigh` returns ascending eigenvalues and eigenvectors of a Hermitian
    matrix, reading its upper triangle.
  - `solve_sym` is a Cholesky solve.
  - `inner` computes `alpha * a^H @ b + beta * c`.
  - `outer` computes `alpha * a @ b^H + beta * c`.
  - `transform` computes `beta * c + alpha * a @ b`.
  - `add` computes `c <- beta * c + alpha * a` in place.
- `nlcg.mvp2` provides the steps of a wave-function update, each applied over
  k-points:
  - `lagrange_multipliers`, `grad_x`, `precond_grad_x` and
    `precond_grad_x_us`.
  - `rotate_x` and `rotate_eta`.
  - `slope_x`, `slope_eta`, `compute_slope` and `compute_slope_single`.
  - `conjugate_x`, `apply_lagrange_mult_us` and `conjugate_eta`.
- `nlcg.grad_eta` provides `GradEta`, `DeltaEta` and `GradEtaHelper` for the
  gradient with respect to the pseudo-Hamiltonian. The smearing enters as a
  function `delta(x, mo)` that you pass in.
- `nlcg.logger` provides `Logger`, which writes messages prefixed by a stack
  of `tag::` prefixes to stdout and optionally to a file. It supports
  `logger << "text"`. `get_logger()` returns the process-wide instance.
- `nlcg.step_logger` provides `StepLogger`. It collects values for one
  iteration and appends them as one JSON object to a file when closed; it can
  also be used as a context manager.
- `nlcg.timer` provides `Timer`, which measures seconds between `start()` and
  `stop()`.
- `nlcg.textformat` provides `format_string`, which does printf-style
  formatting.
- `nlcg.env` provides `get_skip_newton_efermi()`.

## Examples

```python
import numpy as np
from nlcg.linalg import inner, solve_sym

x = np.random.default_rng(0).random((200, 20)).astype(complex)
h = inner(x, x)              # x^H @ x
s = h.copy()
solution = solve_sym(h, s)   # solves h @ solution = s
```

```python
from nlcg.mvector import MVector, eval_threaded, tapply, total

weights = MVector({(0, 0): 1.0, (1, 0): 2.0})
doubled = eval_threaded(tapply(lambda w: 2 * w, weights))
print(total(doubled))        # 6.0
```

## Environment

Setting `NLCGLIB_DISABLE_NEWTON_EFERMI` to any value other than `0` makes
`get_skip_newton_efermi()` return `True`. The variable is read once per
process. Call `get_skip_newton_efermi.cache_clear()` to read it again.

## What this package does not do

- There is no complete minimization driver that runs the CG loop on an
  `EnergyBase` and returns an `NlcgInfo`. You assemble the loop from the
  pieces above.
- No smearing functions (occupations, delta functions) are included.
  `SmearingType` only names the schemes.
- There is no distributed run. `Communicator` always has a single rank.
- There is no GPU or device memory. Buffers marked `MemoryType.DEVICE` are
  rejected.
- There is no command-line program.