"""
Setup script for karyolgf.

Installs the karyolgf package and the `karyolgf` batch command.
"""

from setuptools import setup

setup(
    name="karyolgf",
    version="1.0.0",
    description="Loss/Gain/Fusion interpretation of ISCN karyotype notation",
    license="MIT",
    python_requires=">=3.10",
    packages=["karyolgf"],
    install_requires=[
        "pandas>=1.0",
        "numpy>=1.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "karyolgf = karyolgf.cli:main_cli",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
    ],
)
