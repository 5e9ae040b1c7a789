"""Building blocks for nonlinear conjugate gradient free-energy minimization: interfaces, k-point containers, dense linear algebra, gradient and update steps, and logging."""

__version__ = "0.8.0"