from setuptools import setup, find_packages

setup(
    name="conconi-threshold",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pandas>=2.0.0",
        "numpy>=1.24.0",
        "fitparse>=1.2.0",
        "plotly>=5.15.0",
        "scipy>=1.10.0",
        "dash>=2.14.0",
        "dash-bootstrap-components>=1.4.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
)
