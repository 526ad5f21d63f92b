import os
from setuptools import setup, find_packages

requirements = []
with open("requirements.txt") as f:
    requirements = f.read().splitlines()

test_requirements = []
with open("requirements-test.txt") as f:
    test_requirements = f.read().splitlines()


def read(fname):
    return open(os.path.join(os.path.dirname(__file__), fname)).read()


setup(
    name="nodekeeper",
    version="0.1.0",
    description="Launch resource and scaling group reconciliation for managed node groups",
    license="Apache 2.0",
    packages=find_packages(exclude=["test", "test.*"]),
    long_description=read("README.md"),
    entry_points={
        "console_scripts": [
            "nodekeeper = nodekeeper.__main__:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={"test": test_requirements},
    tests_require=test_requirements,
    classifiers=[
        # Current project status
        "Development Status :: 4 - Beta",
        # Audience
        "Intended Audience :: System Administrators",
        "Intended Audience :: Information Technology",
        # License information
        "License :: OSI Approved :: Apache Software License",
        # Supported python versions
        "Programming Language :: Python :: 3.9",
        # Supported OS's
        "Operating System :: POSIX :: Linux",
        "Operating System :: Unix",
        # Extra metadata
        "Environment :: Console",
        "Natural Language :: English",
        "Topic :: System :: Clustering",
        "Topic :: Utilities",
    ],
    keywords="aws autoscaling kubernetes",
)
