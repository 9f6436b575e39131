from setuptools import setup, find_packages

TEST_REQUIRES = [
    "pytest>=7.4.0",
    "pytest-asyncio>=0.21.0",
    "pytest-cov>=4.1.0",
]

setup(
    name="lan-scanner",
    version="1.0.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": TEST_REQUIRES,
        "test": TEST_REQUIRES,
    },
    entry_points={
        "console_scripts": [
            "lan-scanner=lan_scanner.scanner_service:main",
        ],
    },
    python_requires=">=3.11",
)
