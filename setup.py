from setuptools import setup, find_packages


setup(
    name="mabipack",
    version="1.1.1",
    packages=find_packages(include=["mabipack", "mabipack.*"]),
    description="Pack, extract and list PACK game-asset containers (zlib + MT19937 keystream).",
    author="vercingetorx",
    python_requires=">=3.8",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "mabipack=mabipack.cli:main",
        ]
    },
)
