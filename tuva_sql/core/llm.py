import logging
import re
from typing import Optional, Sequence

from langchain_core.output_parsers import StrOutputParser
from langchain_ollama import OllamaLLM

from ..config import settings
from ..exceptions import SqlGenerationError
from ..models import TableSchema
from ..online.prompt_builder import PromptBuilder


class LLMManager:
    """Manages LLM interactions for SQL generation."""

    def __init__(self, llm=None, prompt_builder: Optional[PromptBuilder] = None):
        """
        Initialize the LLM manager.

        Args:
            llm: LangChain runnable producing text (an Ollama model if None)
            prompt_builder: Prompt builder for the configured dialect
        """
        self.logger = logging.getLogger(__name__)
        self.llm = llm or self._initialize_llm()
        self.output_parser = StrOutputParser()
        self.chain = self.llm | self.output_parser
        self.prompt_builder = prompt_builder or PromptBuilder(dialect=settings.sql_dialect)

    def _initialize_llm(self) -> OllamaLLM:
        """Initialize the Ollama LLM."""
        llm = OllamaLLM(
            model=settings.llm_model_name,
            base_url=settings.llm_base_url,
            temperature=settings.llm_temperature,
            num_predict=settings.llm_max_tokens,
        )
        self.logger.info(f"LLM initialized with model: {settings.llm_model_name}")
        return llm

    async def generate_sql(self, question: str, tables: Sequence[TableSchema]) -> str:
        """
        Generate one SQL statement for the question.

        Args:
            question: User's natural language question
            tables: Candidate table schemas the SQL may use

        Returns:
            SQL statement text
        """
        prompt = self.prompt_builder.build_sql_generation_prompt(question, tables)

        try:
            result = await self.chain.ainvoke(prompt)
        except Exception as e:
            self.logger.error(f"Error generating SQL: {e}")
            raise SqlGenerationError(f"SQL generation failed: {e}") from e

        sql = self._extract_sql_from_response(result)
        if not sql:
            raise SqlGenerationError("The model returned an empty response")
        self.logger.info(f"Generated SQL: {sql}")
        return sql

    def _extract_sql_from_response(self, response: str) -> str:
        """Extract SQL code from LLM response."""
        # Try to extract SQL from code blocks
        sql_pattern = r"```(?:sql\w*[ \t]*\n|\s*)(.*?)\s*```"
        matches = re.findall(sql_pattern, response, re.DOTALL | re.IGNORECASE)

        if matches:
            return matches[0].strip()

        # If no code blocks, take everything from the first statement keyword on
        lines = response.split('\n')
        sql_lines = []
        in_sql = False

        for line in lines:
            stripped = line.strip()
            if stripped.upper().startswith(('SELECT', 'WITH', 'INSERT', 'UPDATE', 'DELETE', 'DROP')):
                in_sql = True
            if in_sql:
                sql_lines.append(stripped)

        if sql_lines:
            return '\n'.join(sql_lines)

        return response.strip()
