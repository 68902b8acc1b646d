"""Setup configuration for flicket-checkpointer package."""

from setuptools import setup, find_packages

setup(
    name="flicket-checkpointer",
    version="0.1.0",
    description="Durable LangGraph checkpoint store on a partition-key/sort-key document store",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0",
        "python-dotenv>=1.0.0",
        "redis[hiredis]>=5.0.1",
        "langchain-core>=0.1.0",
        "langgraph-checkpoint>=2.0.0",
        "click>=8.1.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.11.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
            "black>=23.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "flicket-checkpoints=flicket_checkpoint.cli.app:main",
        ],
    },
)
