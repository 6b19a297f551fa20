#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Setup script for NodeClass

Installs the ``nodeclass`` package and the ``nodeclass`` command.
"""

from setuptools import setup, find_packages
from pathlib import Path

VERSION = "0.4.0"

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")
else:
    long_description = "NodeClass - node classification resolution engine"

setup(
    name="nodeclass",
    version=VERSION,
    description="Resolve node classifications from group hierarchies and facts",
    long_description=long_description,
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    packages=find_packages(include=["nodeclass", "nodeclass.*"]),
    install_requires=[
        "pydantic>=2.0",
        "prometheus-client>=0.17",
        "PyYAML>=6.0",
        "typer>=0.9",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "nodeclass=nodeclass.cli.main:main",
        ],
    },
)
