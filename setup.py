"""
Setup script for the rph package.

The import package lives under python/ and the test suite under
tests/python/:

    pip install -e .[dev]
    pytest tests/python
"""

from setuptools import find_packages, setup

setup(
    name="rph",
    version="0.1.0",
    description="Progressive hedging consensus engine for multistage stochastic programs",
    package_dir={"": "python"},
    packages=find_packages("python"),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "scipy>=1.7",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "hypothesis>=6.0",
            "black>=23.0",
            "ruff>=0.1.0",
            "mypy>=1.0",
        ],
    },
)
