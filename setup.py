from setuptools import setup, find_packages
import pathlib

here = pathlib.Path(__file__).parent.resolve()

long_description = (here / "README.md").read_text(encoding="utf-8")

setup(
    name="zonelink",
    version="1.0.0",
    description="Discovery and UPnP event subscriptions for networked zone players",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["zonelink", "zonelink.*"]),
    python_requires=">=3.10, <4",
    install_requires=[
        "async-upnp-client",
        "click",
        "fastapi",
        "httpx",
        "lxml",
        "pydantic>=2",
        "requests",
        "rich",
        "starlette",
        "upnpclient",
        "uvicorn[standard]",
    ],
    extras_require={
        "dev": [
            "black[d]",
        ],
        "test": [
            "coverage",
            "pytest",
        ],
    },
    entry_points={
        'console_scripts': [
            'zonelink=zonelink.cli:cli',
        ]
    },
)
