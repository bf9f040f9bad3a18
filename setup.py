"""
Pubky - Decentralized identities and homeservers
Client library for the pubky network
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="pubky-core",
    version="0.1.0",
    author="Pubky",
    description="Client for pubky identities, homeserver resolution and authentication",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/pubky/pubky-core",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: Name Service (DNS)",
        "Topic :: Security :: Cryptography",
        "Topic :: System :: Distributed Computing",
    ],
    python_requires=">=3.10",
    install_requires=[
        "aiohttp>=3.9.0",
        "cryptography>=41.0.0",
        "click>=8.0.0",
        "rich>=13.0.0",
        "dnspython>=2.4.0",  # signed record DNS packets
        "blake3>=0.3.0",  # challenge key derivation
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pubky=pubky.cli:main",
        ],
    },
)
