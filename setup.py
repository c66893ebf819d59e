#!/usr/bin/env python3
import os
from typing import List

from setuptools import find_packages, setup

DESCRIPTION = "Client for two party state channels held by an on-chain custody contract."


def read_requirements(path: str) -> List[str]:
    assert os.path.isfile(path)
    ret = []
    with open(path, encoding="utf-8") as requirements:
        for line in requirements.readlines():
            line = line.strip()
            if line and line[0] in ("#", "-"):
                continue
            if line:
                ret.append(line)

    return ret


with open("README.md", encoding="utf-8") as readme_file:
    README = readme_file.read()


setup(
    name="nitrolite-client",
    version="0.1.0",
    license="MIT",
    description=DESCRIPTION,
    long_description=README,
    long_description_content_type="text/markdown",
    packages=find_packages("src"),
    package_dir={"": "src"},
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.8",
    classifiers=[
        # complete classifier list: http://pypi.python.org/pypi?%3Aaction=list_classifiers
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Programming Language :: Python :: 3",
    ],
    keywords=["state channels", "ethereum", "blockchain"],
    install_requires=read_requirements("requirements.txt"),
    extras_require={"dev": read_requirements("requirements-dev.txt")},
    entry_points={"console_scripts": ["nitrolite-client=nitrolite_client.cli:main"]},
)
