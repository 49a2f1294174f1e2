"""Setup configuration for bugsnag_tools"""

from setuptools import setup, find_packages

setup(
    name="bugsnag-mcp-tools",
    version="0.1.0",
    description=(
        "BugSnag error-monitoring adapter exposing projects, errors, events, "
        "builds and releases as agent tools."
    ),
    author="BugSnag MCP Tools Contributors",
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
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "bugsnag-mcp-tools=bugsnag_tools.main:main",
        ],
    },
)
