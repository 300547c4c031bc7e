"""
Setup script for nback-engine.

N-back engine is the training core behind a dual N-back working-memory
trainer. It provides:

1. Sequence generation - seeded lag-N stimulus streams
2. Scoring - signal detection metrics (hit rate, false alarms, d-prime)
3. Profiling - behavioral profiles from session history and events

The 'nback' command is a developer CLI over the same core.
"""

from setuptools import find_packages, setup

setup(
    name="nback-engine",
    version="0.1.0",
    description="Dual N-back training engine: sequences, signal-detection scoring, behavioral profiles",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "nback=nback_engine.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
    ],
    keywords="n-back working-memory cognitive-training signal-detection",
)
