"""
Setup script for Spatial Trees package
"""
from setuptools import setup, find_packages
from pathlib import Path

# Чтение README для long_description
this_directory = Path(__file__).parent
readme_path = this_directory / "README.md"
if readme_path.exists():
    long_description = readme_path.read_text(encoding='utf-8')
else:
    long_description = "Spatial Trees - quadtrees and octrees for point range queries"

version = "0.1.0"

setup(
    name="spatial-trees",
    version=version,
    description="In-memory quadtree and octree indexes with box and radius queries",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: GIS",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",

    # Зависимости
    install_requires=[
        "numpy>=1.21.0",
        "psutil>=5.8.0",
    ],

    # Опциональные зависимости
    extras_require={
        "las": ["laspy[lazrs]>=2.0.0"],
        "ply": ["open3d>=0.15.0"],
        "full": [
            "laspy[lazrs]>=2.0.0",
            "open3d>=0.15.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "black>=22.0.0",
            "flake8>=4.0.0",
            "mypy>=0.950",
        ],
    },

    # Точка входа для CLI
    entry_points={
        "console_scripts": [
            "spatial-trees=main:main",
        ],
    },

    include_package_data=True,
    zip_safe=False,
)
