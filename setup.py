"""setuptools setup for PomoSmart.

Install for development:
    pip install -e ".[test]"
    python -m pomosmart serve
"""

from setuptools import setup, find_packages

setup(
    name="PomoSmart",
    version="0.1.0",
    description="Pomodoro focus-session tracker shared by a chat bot and a desktop client",
    packages=find_packages(include=["pomosmart", "pomosmart.*"]),
    python_requires=">=3.10",
    install_requires=[
        "SQLAlchemy>=2.0",
        "PyQt6>=6.4",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": ["pomosmart=pomosmart.__main__:main"],
    },
)
