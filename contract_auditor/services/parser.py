"""
Solidity parsing front end.
"""
import logging
from typing import Any, Callable, Dict, Optional

from contract_auditor.errors import FatalParseError
from contract_auditor.models.contract import ParsedContract
from contract_auditor.services.metadata_extractor import extract_metadata, extract_pragmas
from contract_auditor.services.syntax import NodeKind, node_kind

logger = logging.getLogger(__name__)

ParseFunction = Callable[[str], Dict[str, Any]]


def _tree_builder():
    """Build the tree visitor, extended with ``expr{name: value}`` call options."""
    from solidity_parser.parser import AstVisitor, Node

    class CallOptionsVisitor(AstVisitor):
        def visitExpression(self, ctx):
            children = ctx.children or []
            if len(children) == 4 and children[1].getText() == '{' and children[3].getText() == '}':
                options = ctx.nameValueList()
                names = []
                values = []
                for name_value in options.nameValue():
                    names.append(name_value.identifier().getText())
                    values.append(self.visit(name_value.expression()))
                return Node(ctx=ctx,
                            type='NameValueExpression',
                            expression=self.visit(ctx.expression(0)),
                            arguments=Node(ctx=options,
                                           type='NameValueList',
                                           names=names,
                                           arguments=values))
            return super().visitExpression(ctx)

    return CallOptionsVisitor(), Node


def parse_with_locations(source_code: str) -> Dict[str, Any]:
    """
    Run the grammar-level parser with source positions enabled.

    The parser keeps its location switch on a class attribute; it is restored
    once the tree is built.
    """
    from antlr4 import CommonTokenStream, InputStream
    from solidity_parser.solidity_antlr4.SolidityLexer import SolidityLexer
    from solidity_parser.solidity_antlr4.SolidityParser import SolidityParser as GrammarParser

    visitor, node_class = _tree_builder()
    grammar = GrammarParser(CommonTokenStream(SolidityLexer(InputStream(source_code))))

    previous = node_class.ENABLE_LOC
    node_class.ENABLE_LOC = True
    try:
        return visitor.visit(grammar.sourceUnit())
    finally:
        node_class.ENABLE_LOC = previous


class SolidityParser:
    """Turns source text into a syntax tree plus contract metadata."""

    def __init__(self, parse_fn: Optional[ParseFunction] = None, file_name: str = 'contract.sol'):
        """
        Initialize the parser.

        Args:
            parse_fn: Function producing a source unit tree; defaults to solidity_parser
            file_name: File name recorded in extracted locations
        """
        self.parse_fn = parse_fn or parse_with_locations
        self.file_name = file_name

    def parse(self, source_code: str) -> ParsedContract:
        """
        Parse source code and extract contract metadata.

        Args:
            source_code: Solidity source text

        Returns:
            Parsed contract with tree, pragmas and metadata

        Raises:
            FatalParseError: If no syntax tree could be produced
        """
        logger.info("Starting Solidity code parsing")

        try:
            tree = self.parse_fn(source_code)
        except Exception as e:
            # The grammar runtime raises a variety of exception types
            logger.error(f"Failed to parse Solidity code: {str(e)}")
            raise FatalParseError(f"Parsing failed: {str(e)}") from e

        if node_kind(tree) is not NodeKind.SOURCE_UNIT:
            raise FatalParseError("Parsing failed: parser did not return a source unit")

        parsed = ParsedContract(
            ast=tree,
            source_code=source_code,
            file_name=self.file_name,
            pragmas=extract_pragmas(tree),
            metadata=extract_metadata(tree, self.file_name)
        )

        logger.info(f"Successfully parsed {len(parsed.metadata)} contract(s)")
        return parsed
