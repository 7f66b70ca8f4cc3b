"""
Setup script for company-metrics project.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="company-metrics",
    version="0.1.0",
    packages=find_packages(include=["company_metrics", "company_metrics.*"]),
    python_requires=">=3.11",
    install_requires=[
        "httpx>=0.27",
        "playwright>=1.40",
        "beautifulsoup4>=4.12",
        "tenacity>=8.2",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "company-metrics=company_metrics.cli:main",
        ],
    },
)
