#!/usr/bin/env python

from setuptools import setup, find_namespace_packages

setup(
    name="aaigrid",
    version="0.1.0",
    packages=find_namespace_packages(include=["aaigrid*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "rasterio",
    ],
    extras_require={
        "dev": [
            "black~=24.0",
            "flake8~=7.0",
            "flake8-docstrings~=1.7",
            "pytest~=8.0",
            "affine<3",
            "mypy~=1.9",
        ]
    },
)
