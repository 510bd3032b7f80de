#!/usr/bin/env python3
"""
Setup configuration for the Link Validator
"""

from setuptools import find_packages, setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="link-validator",
    version="1.0.0",
    author="",
    author_email="",
    description="Batch URL validation service that stores links, probes them concurrently and reports broken ones",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Internet :: WWW/HTTP :: Site Management :: Link Checking",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "mongomock>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "link-validator=link_validator.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
