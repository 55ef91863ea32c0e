"""Setup script for the clockwork CLI and wearables service."""

from setuptools import setup

setup(
    name="clockwork",
    version="0.1.0",
    description="Clockwork - wearable OAuth connections, sync and recovery scores",
    py_modules=["clockwork"],
    packages=[
        "server",
        "clockwork_connector",
        "clockwork_connector.adapters",
        "clockwork_scores",
    ],
    package_dir={
        "clockwork_connector": "libs/py-connector/clockwork_connector",
        "clockwork_scores": "libs/py-scores/clockwork_scores",
    },
    install_requires=[
        "typer>=0.9.0",
        "rich>=13.0.0",
        "httpx>=0.27.0",
        "python-dotenv>=1.0.0",
        "pyngrok>=7.0.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        # Dependencies of the connector library
        "pydantic>=2.0.0",
        "boto3>=1.34.0",
        "python-dateutil>=2.8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "pytest-cov>=4.1.0",
            "moto[dynamodb,kms]>=5.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "clockwork=clockwork:app",
        ],
    },
    python_requires=">=3.11",
)
