from setuptools import find_packages, setup

setup(
    name="dusk",
    version="0.1.0",
    description="Streaming disk-usage trees with live, progressively refined snapshots",
    python_requires=">=3.11",
    packages=find_packages(include=["dusk", "dusk.*"]),
    install_requires=[
        "aiofiles>=23.2",
        "loguru>=0.7",
        "result>=0.16",
    ],
    extras_require={
        "test": ["pytest>=8", "typing_extensions>=4.4"],
    },
)
