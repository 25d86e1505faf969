import os

from setuptools import setup, find_packages

HERE = os.path.dirname(os.path.abspath(__file__))


def get_version():
    with open(os.path.join(HERE, "yolact_toolbox/__version__.py"), "r") as f:
        version = f.read().strip()
    version = version.split("=")[1].strip().strip('"')
    return version


def get_install_requires():
    with open(os.path.join(HERE, "requirements.txt"), "r") as f:
        install_requires = f.read().splitlines()
    install_requires = [
        req.strip()
        for req in install_requires
        if req.strip() and not req.startswith("#")
    ]
    return install_requires


setup(
    name="yolact_toolbox",
    version=get_version(),
    packages=find_packages(include=["yolact_toolbox", "yolact_toolbox.*"]),
    install_requires=get_install_requires(),
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": [
            "yolact-toolbox=yolact_toolbox.cli.infer:main",
        ],
    },
    python_requires=">=3.8",
    description="Postprocessing and rendering toolbox for YOLACT instance segmentation",
    keywords="instance segmentation, yolact, postprocessing",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
