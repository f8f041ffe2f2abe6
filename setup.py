#!/usr/bin/env python3
"""Setup script for sheet_tracker_sync package.
"""

from setuptools import find_packages, setup

setup(
    name="sheet_tracker_sync",
    version="1.0.0",
    description="Planning sheet to Jira JTBD/Thread/Milestone sync",
    author="Sheet Tracker Sync Team",
    packages=find_packages(include=["src*"]),
    python_requires=">=3.10",
    install_requires=[
        "pandas>=1.5.0",
        "pyyaml>=6.0",
        "openpyxl>=3.0.0",
        "httpx>=0.24.0",
        "google-api-python-client>=2.0.0",
        "google-auth>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "hypothesis>=6.0.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
            "pandas-stubs>=2.0.0",
            "types-PyYAML>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sheet-tracker-sync=src.sync:main",
        ],
    },
)
