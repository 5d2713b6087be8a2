#!/usr/bin/env python
"""
Setup script for FlatSearch
"""

from pathlib import Path

from setuptools import find_packages, setup

here = Path(__file__).parent
requirements = [
    line.strip() for line in (here / 'requirements.txt').read_text().splitlines()
    if line.strip() and not line.startswith('#')
]

setup(
    name='flatsearch',
    version='1.0.0',
    description='Flat-file inverted index search engine with TF-IDF ranking and snippets',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={'flatsearch': ['resources/*.txt']},
    python_requires='>=3.9',
    install_requires=requirements,
    extras_require={'test': ['pytest']},
    entry_points={
        'console_scripts': ['flatsearch=flatsearch.cli:main'],
    },
)
