"""
Setup script for clientdesk.
"""
from setuptools import setup, find_packages

setup(
    name="clientdesk",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click>=8.1.0",
        "httpx>=0.25.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "clientdesk=clientdesk.__main__:main",
        ],
    },
    python_requires=">=3.11",
)
