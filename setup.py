from setuptools import setup, find_packages

setup(
    name="corridor-planner",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.21.0",
        "scipy>=1.9.0",
        "PyYAML>=6.0",
        "matplotlib>=3.5.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    author="Corridor Planner Team",
    description="Corridor-based quadrotor trajectory planning with look-ahead safety supervision",
    python_requires=">=3.8",
)
