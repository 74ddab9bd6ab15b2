from ..models import TableSchema


def encode_table(schema: TableSchema) -> str:
    """
    Render a table as the text that gets embedded.

    The output must stay byte-for-byte stable for a given schema, otherwise
    re-indexing produces vectors that are not comparable with earlier runs.
    """
    columns_text = '\n'.join(
        f"  - {col.name} ({col.type}): {col.description or 'No description'}"
        for col in schema.columns
    )
    return f"{schema.table_name}\n{schema.description or ''}\nColumns:\n{columns_text}"
