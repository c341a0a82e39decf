"""Setup configuration for pr_metrics"""

from setuptools import setup, find_packages

setup(
    name="gh-pr-metrics",
    version="0.1.0",
    description=(
        "CLI tool for GitHub pull request lifecycle metrics: time to first "
        "review, first approval, first code update and close."
    ),
    author="GitHub PR Metrics Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "hypothesis>=6.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "gh-pr-metrics=pr_metrics.main:main",
        ],
    },
)
