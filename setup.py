from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="chunkpipe",
    version="1.0.0",
    author="chunkpipe contributors",
    description="Bounded-concurrency chunked file processing with pause, resume, cancel and retry",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["chunkpipe", "chunkpipe.*"]),
    py_modules=["main"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: System :: Filesystems",
        "Framework :: AsyncIO",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "aiofiles>=23.2.1",
        "psutil>=5.9.5",
        "pyyaml>=6.0.1",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
        ],
        "benchmark": [
            "matplotlib>=3.7.2",
            "pandas>=2.0.3",
        ],
    },
    entry_points={
        "console_scripts": [
            "chunkpipe=main:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
