import logging
from typing import Dict, List, Optional, Sequence

from ..models import TableSchema
from ..offline.schema_text import encode_table


class PromptBuilder:
    """Builds prompts for SQL generation."""

    def __init__(self, dialect: str = "sqlite"):
        """Initialize prompt builder."""
        self.logger = logging.getLogger(__name__)
        self.dialect = dialect

    def build_sql_generation_prompt(
        self,
        question: str,
        tables: Sequence[TableSchema],
        few_shot_examples: Optional[List[Dict[str, str]]] = None
    ) -> str:
        """
        Build the prompt for SQL generation.

        Args:
            question: User's natural language question
            tables: Full schemas of the retrieved candidate tables
            few_shot_examples: Optional question/sql pairs

        Returns:
            Complete prompt string
        """
        prompt_parts = [
            self._build_role_instruction(),
            self._build_schema_context(tables),
        ]

        if few_shot_examples:
            prompt_parts.append(self._build_few_shot_examples(few_shot_examples))

        prompt_parts.append(self._build_constraints())
        prompt_parts.append(f'Question:\n"{question}"')

        complete_prompt = '\n\n'.join(prompt_parts)

        self.logger.debug(f"Built prompt with {len(complete_prompt)} characters")
        return complete_prompt

    def _build_role_instruction(self) -> str:
        return (
            "You are an expert analytics engineer working with the Tuva Project healthcare "
            f"data model. Write one {self.dialect} SQL query that answers the question using "
            "only the tables listed below."
        )

    def _build_schema_context(self, tables: Sequence[TableSchema]) -> str:
        context_parts = ["Available tables:"]
        for table in tables:
            context_parts.append(f"\n--- Table: {table.table_name} ---")
            context_parts.append(encode_table(table))
        return '\n'.join(context_parts)

    def _build_few_shot_examples(self, examples: List[Dict[str, str]]) -> str:
        examples_text = ["Examples:"]
        for i, example in enumerate(examples, 1):
            examples_text.append(f"\nExample {i}:")
            examples_text.append(f"Question: {example['question']}")
            examples_text.append(f"SQL: ```sql\n{example['sql']}\n```")
        return '\n'.join(examples_text)

    def _build_constraints(self) -> str:
        return """Rules:
1. Only use the tables and columns listed above; never invent names.
2. Write exactly one read-only statement: SELECT, or WITH ... SELECT.
3. Never modify data or schema (no INSERT, UPDATE, DELETE, DROP, CREATE, ALTER, TRUNCATE).
4. Do not end the query with a semicolon.

Wrap the SQL in ```sql ... ``` and return nothing else."""
