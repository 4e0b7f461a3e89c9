"""Setup script for the License Bridge service."""

from setuptools import setup, find_packages

setup(
    name="license-bridge",
    version="1.0.0",
    description="Payment-to-license fulfillment bridge for Stripe and PayPal",
    author="Sovereign Spiral Development Framework",
    python_requires=">=3.10",
    packages=find_packages(include=["license_bridge", "license_bridge.*"]),
    install_requires=[
        line.strip()
        for line in open("requirements.txt")
        if line.strip() and not line.startswith("#") and not line.startswith("git+")
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "pytest-mock>=3.12.0",
        ],
        "dev": [
            "black>=23.0.0",
            "isort>=5.12.0",
            "flake8>=6.0.0",
            "mypy>=1.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "license-bridge=license_bridge.api.main:main",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Framework :: FastAPI",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
