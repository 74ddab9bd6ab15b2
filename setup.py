from setuptools import setup, find_packages

setup(
    name="tuva-sql",
    version="0.1.0",
    description="RAG-based natural-language-to-SQL assistant over the Tuva healthcare schema",
    author="Hive Mind Collective",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    install_requires=[
        "chromadb>=0.5.0",
        "langchain-core>=0.2.0",
        "langchain-ollama>=0.1.0",
        "sqlglot>=23.0.0",
        "sentence-transformers>=2.2.0",
        "torch>=2.0.0",
        "numpy>=1.24.0",
        "boto3>=1.28.0",
        "pyyaml>=6.0",
        "sqlalchemy>=2.0.0",
        "pymysql>=1.0.0",
        "psycopg2-binary>=2.9.0",
        "fastapi>=0.100.0",
        "uvicorn>=0.20.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
        "click>=8.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "tuva-sql=tuva_sql.cli:main",
        ],
    },
)
