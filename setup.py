from setuptools import setup, find_packages

setup(
    name="relaygraph",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src", exclude=["tests", "tests.*"]),
    install_requires=[
        "pydantic>=2",
        "mirascope[openai]>=1,<2",
        "openai",
        "tenacity",
        "python-dotenv",
        "aiohttp",
        "numpy",
        "fastapi",
        "uvicorn",
        "python-multipart",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "relaygraph-server=relaygraph.extensions.http.server:main",
        ],
    },
    python_requires=">=3.10",
    description="async graph workflow engine with model-comparison, retrieval, multi-agent and conversation workflows",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
)
