"""
Command line entry point for the smart contract auditor.
"""
import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from contract_auditor.config import AuditOptions, Settings
from contract_auditor.errors import FatalParseError
from contract_auditor.services.auditor import SmartContractAuditor

logger = logging.getLogger(__name__)


def setup_logging(log_level: str, log_file: Optional[str] = None):
    """
    Set up logging configuration.

    Args:
        log_level: Logging level
        log_file: Path to log file
    """
    handlers = [logging.StreamHandler()]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers
    )


def run_audit(args, config: Settings) -> int:
    """
    Audit a single contract file and write the report.

    Args:
        args: Command line arguments
        config: Application configuration

    Returns:
        Process exit status
    """
    path = Path(args.path)
    if not path.is_file():
        logger.error(f"Contract file not found: {path}")
        return 1

    source_code = path.read_text(encoding='utf-8')
    options = AuditOptions(
        enable_ai_analysis=not args.no_ai,
        skip_rules=args.skip_rule or [],
        llm_provider=args.provider,
        model=args.model
    )

    auditor = SmartContractAuditor(settings=config.model_copy(update={"source_file_name": path.name}))

    try:
        report = auditor.audit(source_code, args.name or path.stem, options)
    except FatalParseError as e:
        logger.error(f"Audit of {path} failed: {str(e)}")
        return 1

    if args.format == 'json':
        output = auditor.to_json(report)
    else:
        output = auditor.to_markdown(report)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(output)
        logger.info(f"Audit report written to {args.output}")
    else:
        print(output)

    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Smart Contract Auditor')
    subparsers = parser.add_subparsers(dest='mode', help='Mode of operation')

    audit_parser = subparsers.add_parser('audit', help='Audit a Solidity contract file')
    audit_parser.add_argument('path', help='Path to the .sol file')
    audit_parser.add_argument('--name', help='Contract name shown in the report')
    audit_parser.add_argument('--format', choices=['markdown', 'json'], default='markdown',
                              help='Output format')
    audit_parser.add_argument('--output', help='Path to output file')
    audit_parser.add_argument('--no-ai', action='store_true', help='Disable semantic analysis')
    audit_parser.add_argument('--skip-rule', action='append', metavar='ID', help='Rule id to skip')
    audit_parser.add_argument('--provider', choices=['openai', 'anthropic'], help='LLM provider')
    audit_parser.add_argument('--model', help='LLM model')

    args = parser.parse_args(argv)

    # Load configuration
    config = Settings()

    # Set up logging
    setup_logging(config.log_level, config.log_file)

    if args.mode == 'audit':
        sys.exit(run_audit(args, config))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
