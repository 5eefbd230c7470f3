#!/usr/bin/env python3
"""
setup.py for cppcheckdata-unitags.

Metadata is declared in pyproject.toml; this shim only serves tooling that
still invokes ``setup.py`` directly.  The version is parsed from
pyproject.toml so there is a single place to bump it.
"""

from __future__ import annotations

import re
from pathlib import Path

from setuptools import find_packages, setup

ROOT = Path(__file__).resolve().parent
VERSION_RE = re.compile(r'^version\s*=\s*"(?P<version>[^"]+)"', re.MULTILINE)


def project_version() -> str:
    found = VERSION_RE.search((ROOT / "pyproject.toml").read_text(encoding="utf-8"))
    return found.group("version") if found else "0.0.0"


setup(
    name="cppcheckdata-unitags",
    version=project_version(),
    description=(
        "Unit and heap-tag tracking over Cppcheck dump files, with "
        "interprocedural summaries persisted in SQLite."
    ),
    license="MIT",
    python_requires=">=3.10",
    packages=find_packages(include=["cppcheckdata_unitags", "cppcheckdata_unitags.*"]),
    install_requires=["termcolor>=2.0"],
    extras_require={
        "test": ["pytest>=7.0", "pytest-cov>=4.0"],
    },
    entry_points={
        "console_scripts": [
            "cppcheckdata-unitags=cppcheckdata_unitags.__main__:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Topic :: Software Development :: Quality Assurance",
    ],
)
