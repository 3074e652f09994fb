################################################################################
# TAR-DOCKA
#
# @file:        setup.py
# @module:      setup
# @description: Setuptools configuration and CLI packaging for Tar-Docka.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description (optional)
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="tar-docka",
    version="1.0.0",
    description="Backup and restore of Docker Compose applications into a single tar.gz archive",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Markus F. (TZERO78) & Contributors",
    author_email="",
    license="MIT",

    packages=find_packages(exclude=("tests*", "docs*", "examples*")),
    include_package_data=True,
    zip_safe=False,

    python_requires=">=3.10",

    install_requires=[
        "typer>=0.12.0,<0.26",
        "click>=8.0.0",
        "rich>=13.0.0",
        "pydantic>=2.0.0",
        "PyYAML>=6.0",
    ],

    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
        ],
    },

    entry_points={
        "console_scripts": [
            "tar-docka=tar_docka.cli.main:cli_main",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Archiving :: Backup",
        "Topic :: System :: Systems Administration",
        "Topic :: Utilities",
    ],

    keywords="docker compose backup restore volumes bind-mounts tar",
)
