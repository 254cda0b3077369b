from setuptools import setup, find_packages

setup(
    name="adaptive-practice",
    version="0.1.0",
    packages=find_packages(exclude=["adaptive_practice.tests", "adaptive_practice.tests.*"]),
    install_requires=[
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy>=1.4.0",
        "PyYAML>=6.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    python_requires=">=3.8",
)
