"""Setup configuration for clockwork-scores."""

from setuptools import setup, find_packages

setup(
    name="clockwork-scores",
    version="0.1.0",
    description="Normalized wearable metrics and recovery/training load scoring",
    packages=find_packages(exclude=["tests"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    author="Clockwork",
    license="MIT",
)
