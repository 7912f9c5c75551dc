"""Setup script for LLM Moderation."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="llm-moderation",
    version="1.0.0",
    description="Fail-safe text moderation over a generative LLM classifier",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["llm_moderation", "llm_moderation.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Security",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "pydantic>=2.0.0",
        "httpx>=0.24.0",
        "python-dotenv>=1.0.0",
        "PyYAML>=6.0",
        "regex>=2023.0.0",
        "orjson>=3.9.0",
    ],
    extras_require={
        "redis": [
            "redis>=5.0.1",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "llm-moderate=llm_moderation.cli:run",
            "llm-moderation-server=llm_moderation.server:main",
        ],
    },
)
