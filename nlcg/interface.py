"""Data types and abstract interfaces shared with the calling electronic-structure code."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from nlcg.communicator import Communicator


class MemoryType(enum.Enum):
    """Where the memory behind a buffer lives."""

    NONE = "none"
    HOST = "host"
    DEVICE = "device"

    def __str__(self) -> str:
        return self.value


class SmearingType(enum.Enum):
    """Smearing scheme for occupation numbers."""

    FERMI_DIRAC = enum.auto()
    GAUSSIAN_SPLINE = enum.auto()
    GAUSS = enum.auto()
    METHFESSEL_PAXTON = enum.auto()
    COLD = enum.auto()


@dataclass
class NlcgInfo:
    """Summary of a minimisation run."""

    tolerance: float
    free_energy: float
    entropy: float
    iterations: int


@dataclass
class BufferProtocol:
    """Description of a strided block of memory owned by the caller.

    ``stride`` and ``size`` are given in elements, one entry per dimension.
    """

    stride: tuple[int, ...]
    size: tuple[int, ...]
    data: Any
    memtype: MemoryType
    mpi_comm: Communicator = field(default_factory=Communicator)

    def __post_init__(self) -> None:
        self.stride = tuple(int(s) for s in self.stride)
        self.size = tuple(int(n) for n in self.size)
        if len(self.stride) != len(self.size):
            raise ValueError("stride and size must have the same number of dimensions")
        if any(n < 0 for n in self.size):
            raise ValueError("sizes must not be negative")
        if any(s < 1 for s in self.stride):
            raise ValueError("strides must be positive")

    @classmethod
    def vector(cls, size, data, memtype, mpi_comm=None) -> "BufferProtocol":
        """One-dimensional contiguous buffer of ``size`` elements."""
        return cls(
            (1,),
            (size,),
            data,
            memtype,
            mpi_comm if mpi_comm is not None else Communicator(),
        )

    def as_array(self) -> np.ndarray:
        """Return a numpy view of the described memory (writes go through)."""
        flat = np.asarray(self.data)
        if flat.ndim != 1:
            flat = flat.reshape(-1)
        if not flat.flags.c_contiguous:
            raise ValueError("buffer data must be contiguous")
        if any(n == 0 for n in self.size):
            return np.empty(self.size, dtype=flat.dtype)
        needed = 1 + sum((n - 1) * s for n, s in zip(self.size, self.stride))
        if needed > flat.size:
            raise ValueError(
                f"buffer of {flat.size} elements too small for layout needing {needed}"
            )
        byte_strides = tuple(s * flat.itemsize for s in self.stride)
        return np.lib.stride_tricks.as_strided(flat, shape=self.size, strides=byte_strides)


class BufferBase(ABC):
    """A collection of buffers, one per k-point index, distributed over MPI ranks."""

    @abstractmethod
    def get(self, i):
        """Buffer description of entry ``i``."""

    @abstractmethod
    def size(self) -> int:
        """Number of entries."""

    @abstractmethod
    def mpicomm(self, i: Optional[int] = None) -> Communicator:
        """Communicator of entry ``i``, or the one entries are distributed over."""

    @abstractmethod
    def kpoint_index(self, i: int) -> tuple[int, int]:
        """K-point and spin index of entry ``i``."""


class EnergyBase(ABC):
    """Free-energy functional supplied by the caller."""

    @abstractmethod
    def compute(self) -> None:
        """Evaluate the energy for the current state."""

    @abstractmethod
    def nelectrons(self) -> int:
        """Number of electrons."""

    @abstractmethod
    def occupancy(self) -> int:
        """Maximum number of electrons per orbital."""

    @abstractmethod
    def get_total_energy(self) -> float:
        """Total energy."""

    @abstractmethod
    def get_energy_components(self) -> dict[str, float]:
        """Named contributions to the energy."""

    @abstractmethod
    def get_hphi(self, memtype: MemoryType) -> BufferBase:
        """H applied to the wave functions."""

    @abstractmethod
    def get_sphi(self, memtype: MemoryType) -> BufferBase:
        """S applied to the wave functions."""

    @abstractmethod
    def get_c(self, memtype: MemoryType) -> BufferBase:
        """Wave-function coefficients."""

    @abstractmethod
    def get_fn(self) -> BufferBase:
        """Occupation numbers."""

    @abstractmethod
    def set_fn(self, keys, values) -> None:
        """Set occupation numbers for the given k-point indices."""

    @abstractmethod
    def get_ek(self) -> BufferBase:
        """Band energies."""

    @abstractmethod
    def get_gkvec_ekin(self) -> BufferBase:
        """Kinetic energies of the G+k vectors."""

    @abstractmethod
    def get_kpoint_weights(self) -> BufferBase:
        """K-point weights."""

    @abstractmethod
    def set_chemical_potential(self, mu: float) -> None:
        """Set the chemical potential."""

    @abstractmethod
    def get_chemical_potential(self) -> float:
        """Current chemical potential."""

    @abstractmethod
    def print_info(self) -> None:
        """Print a description of the state."""


class OpBase(ABC):
    """Operator acting per k-point on blocks of wave functions."""

    @abstractmethod
    def apply(self, key, out, inp) -> None:
        """Apply the operator for ``key`` to ``inp``, writing into ``out``."""

    @abstractmethod
    def get_keys(self) -> list[tuple[int, int]]:
        """K-point indices the operator is defined for."""


class OverlapBase(OpBase):
    """Overlap operator S."""


class UltrasoftPrecondBase(OpBase):
    """Preconditioner for the ultrasoft formulation."""