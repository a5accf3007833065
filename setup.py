from setuptools import setup, find_packages

setup(
    name="legal-intake",
    version="0.1.0",
    packages=find_packages(include=["intake", "intake.*"]),
    package_data={"intake.app": ["data/*.json"]},
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette",
        "pydantic>=2.5",
        "pydantic-settings>=2.3",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
