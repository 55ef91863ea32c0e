"""Setup configuration for clockwork-connector."""

from setuptools import setup, find_packages

setup(
    name="clockwork-connector",
    version="0.1.0",
    description="OAuth, token storage and data sync for Clockwork wearable integrations",
    packages=find_packages(exclude=["tests"]),
    python_requires=">=3.11",
    install_requires=[
        "boto3>=1.26.0",
        "httpx>=0.25.0",
        "pydantic>=2.0.0",
        "clockwork-scores>=0.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "moto[dynamodb,kms]>=5.0.0",  # For mocking AWS services
        ],
    },
    author="Clockwork",
    license="MIT",
)
