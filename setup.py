from setuptools import setup, find_packages

setup(
    name="pybuildbot",
    version="0.1.0",
    description="Builds native C/C++ tasks across configurations and architectures",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    keywords=["c", "c++", "msvc", "gcc", "build"],
    python_requires=">=3.11",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "returns",
        "toml",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "pybuildbot = pybuildbot.main:main",
        ]
    },
)
