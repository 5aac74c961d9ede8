"""
Setup script for pdfreconx.

This script configures the package for installation via pip.
Supports both development and production installations.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README for long description
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

# Read requirements
with open(this_directory / "requirements.txt") as f:
    requirements = [line.strip() for line in f.read().splitlines() if line.strip()]

setup(
    name="pdfreconx",
    version="0.1.0",
    description="Rebuild paragraphs, tables and images from the raw bytes of a PDF",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="pdfreconx Contributors",
    author_email="",
    packages=find_packages(include=["pdfreconx", "pdfreconx.*"]),
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pdfreconx=pdfreconx.cli:cli",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Text Processing",
        "Topic :: Utilities",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="pdf text extraction layout tables reconstruction",
)
