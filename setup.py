from setuptools import find_packages, setup

setup(
    name="sage-remotefile",
    version="0.1.0",
    description="Resilient random-access client for files served by a media server",
    author="Daniel T Sasser II",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[],
    entry_points={
        "console_scripts": [
            "sage-remotefile=sage_remotefile.__main__:main",
        ],
    },
    python_requires=">=3.10",
    extras_require={
        "dev": [
            "pytest",
            "build",
            "twine",
        ],
    },
)
