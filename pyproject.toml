[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nlcg"
version = "0.8.0"
description = "Building blocks for nonlinear conjugate gradient minimization of the free energy in electronic-structure calculations"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "electronic structure",
    "density functional theory",
    "conjugate gradient",
    "pseudo-Hamiltonian",
    "linear algebra",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["nlcg"]

[tool.pytest.ini_options]
addopts = "-ra"
