"""
Setup script for docbatch.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="docbatch",
    version="0.1.0",
    description="Keyset-paginated batch processing and bulk writes over MongoDB",
    packages=find_packages(include=["docbatch", "docbatch.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pymongo>=4.6",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
)
