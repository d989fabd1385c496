from setuptools import find_packages, setup

setup(
    name="mintscope",
    version="0.1.0",
    description="Pump.fun mint detection with cached Metaplex metadata enrichment",
    packages=find_packages(include=["mintscope", "mintscope.*"]),
    python_requires=">=3.10",
    install_requires=[
        "aiohttp",
        "base58",
        "orjson",
        "pydantic>=2",
        "solana",
        "solders",
    ],
    extras_require={
        "test": ["pytest", "anyio"],
    },
)
