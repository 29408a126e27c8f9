"""
wienfermi: Fermi surface reconstruction from WIEN2k output files.
"""
from setuptools import find_packages, setup

with open("README.md", "r") as file:
    long_description = file.read()

setup(
    name="wienfermi",
    version="0.1.0",
    description="Fermi surface reconstruction from WIEN2k output",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Scientific/Engineering :: Physics",
        "Topic :: Scientific/Engineering",
        "Operating System :: OS Independent",
    ],
    keywords="fermi-surface wien2k dft band marching-cubes materials-science",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "scipy",
        "pymatgen",
        "trimesh",
        "monty",
        "click",
        "tabulate",
    ],
    extras_require={
        "dev": ["black"],
        "tests": ["pytest", "scikit-image"],
    },
    entry_points={"console_scripts": ["wienfermi = wienfermi.cli:cli"]},
)
