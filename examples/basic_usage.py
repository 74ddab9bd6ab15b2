"""
Example usage of the Tuva SQL pipeline.
"""

import asyncio

from tuva_sql.config import settings
from tuva_sql.exceptions import Text2SQLError
from tuva_sql.offline import load_catalog
from tuva_sql.text2sql import Text2SQL


async def main():
    """Demonstrate indexing and asking questions."""

    # Make sure the catalog exists (`tuva-sql sync`) and the database is configured in .env
    text2sql = Text2SQL.from_settings(settings)

    print("=== Tuva SQL Example Usage ===\n")

    # 1. Build knowledge base
    print("1. Indexing catalog...")
    try:
        written = await text2sql.build_knowledge_base(load_catalog(settings.catalog_path))
        print(f"✓ Indexed {written} tables\n")
    except (Text2SQLError, OSError) as e:
        print(f"✗ Error: {e}\n")

    # 2. Query examples
    questions = [
        "How many patients live in California?",
        "What are the ten most common primary diagnosis codes on inpatient encounters?",
        "Average paid amount per claim by payer",
    ]

    print("2. Query examples:")
    for question in questions:
        print(f"\nQuestion: {question}")
        try:
            response = await text2sql.answer(question)
        except Text2SQLError as e:
            print(f"✗ {e.stage}: {e}")
            continue

        print(f"SQL: {response.sql}")
        print(f"Tables: {', '.join(response.tables_used)}")
        for i, row in enumerate(response.result[:3]):
            print(f"  {i+1}. {row}")
        if response.row_count > 3:
            print(f"  ... and {response.row_count - 3} more rows")

    text2sql.close()
    print("\n=== End of Examples ===")


if __name__ == "__main__":
    asyncio.run(main())
