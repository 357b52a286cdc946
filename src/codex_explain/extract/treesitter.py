import logging
from functools import lru_cache
from typing import cast

from tree_sitter import Parser
from tree_sitter_language_pack import SupportedLanguage, get_parser

from codex_explain.errors import ExtractionError
from codex_explain.extract.languages import detect_language, language_family
from codex_explain.extract.python_rules import extract_python
from codex_explain.extract.script_rules import extract_script
from codex_explain.models import ExtractionResult

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _parser_for(language: str) -> Parser:
    return get_parser(cast(SupportedLanguage, language))


class TreeSitterExtractor:
    """Extracts declarations, import specifiers and exported names with tree-sitter.

    Implements the ``EntityExtractor`` protocol. Files in languages without
    rules produce an empty result.
    """

    def extract(self, content: str, file_path: str) -> ExtractionResult:
        language = detect_language(file_path)
        if language is None:
            logger.debug("No extraction rules for %s", file_path)
            return ExtractionResult()

        source_bytes = content.encode("utf-8")
        try:
            tree = _parser_for(language).parse(source_bytes)
        except (LookupError, ValueError) as exc:
            raise ExtractionError(file_path, f"cannot parse as {language}: {exc}") from exc

        root = tree.root_node
        if root.has_error:
            logger.debug("Syntax errors in %s; extracting what parsed", file_path)

        if language_family(language) == "python":
            return extract_python(root, source_bytes)
        return extract_script(root, source_bytes)
