"""Main CLI entry point for depsight."""

import argparse
import logging
import sys
from typing import Optional, List

import requests

from . import __version__
from .api_client import DependencyTreeClient, VulnerabilityClient
from .config import Settings
from .formatters import OutputFormatter
from .manifest import ManifestAnalyzer, SAMPLE_MANIFEST
from .registry import NpmRegistryClient, RegistryTreeSource
from .session import AnalysisSession, ERROR
from .vulnerabilities import VulnerabilityChecker

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_level: Optional[str] = None):
    """Configure logging based on verbosity flags."""
    if log_level:
        level = getattr(logging, log_level.upper(), logging.WARNING)
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def build_settings(args) -> Settings:
    """Environment settings with command line overrides on top."""
    return Settings.from_env().with_overrides(
        tree_url=getattr(args, 'tree_url', None),
        vulnerability_url=getattr(args, 'vuln_url', None),
        registry_url=getattr(args, 'registry_url', None),
        request_timeout=getattr(args, 'timeout', None),
        max_depth=getattr(args, 'max_depth', None),
    )


def build_session(settings: Settings) -> AnalysisSession:
    """Wire the session to the configured data sources."""
    if settings.tree_url:
        logger.info(f"Resolving trees through {settings.tree_url}")
        tree_source = DependencyTreeClient(settings)
    else:
        logger.info(f"Resolving trees locally against {settings.registry_url}")
        tree_source = RegistryTreeSource(NpmRegistryClient(settings), max_depth=settings.max_depth)

    checker = VulnerabilityChecker(VulnerabilityClient(settings))
    return AnalysisSession(tree_source, checker)


def _load_manifest(args, settings: Settings) -> Optional[str]:
    try:
        return ManifestAnalyzer.load(args.manifest, timeout=settings.request_timeout)
    except (OSError, requests.RequestException) as e:
        logger.error(f"Error reading manifest: {e}")
        print(f"Error reading manifest: {e}", file=sys.stderr)
        return None


def _write_output(output: str, output_file: str) -> int:
    try:
        if output_file == '-':
            print(output, end='')
        else:
            with open(output_file, 'w', encoding='utf-8') as f:
                f.write(output)
            logger.info(f"Output written to: {output_file}")
            print(f"Output written to: {output_file}")
    except OSError as e:
        logger.error(f"Error writing output: {e}")
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1
    return 0


def _analyze(args):
    """Shared first step of 'analyze' and 'tree': load, then analyze."""
    setup_logging(args.verbose, args.loglevel)
    settings = build_settings(args)

    text = _load_manifest(args, settings)
    if text is None:
        return None, None

    session = build_session(settings)
    analysis = session.analyze(text)
    if analysis is None:
        print(session.error, file=sys.stderr)
    return session, analysis


def handle_analyze(args):
    """Handle the 'analyze' subcommand."""
    session, analysis = _analyze(args)
    if analysis is None:
        return 1

    for note in session.notifications:
        if note.level == ERROR:
            print(f"Warning: {note.message}", file=sys.stderr)

    if args.output_format == 'json':
        output = OutputFormatter.format_analysis_as_json(analysis)
    else:
        output = OutputFormatter.format_analysis_as_text(analysis)
    return _write_output(output, args.output)


def handle_tree(args):
    """Handle the 'tree' subcommand."""
    session, analysis = _analyze(args)
    if analysis is None:
        return 1

    if analysis.find_package(args.package) is None:
        print(f"Error: {args.package} is not a dependency in the manifest", file=sys.stderr)
        return 1

    # Only messages from the tree resolution explain a missing tree
    session.notifications.clear()
    tree = session.select_package(args.package)
    if tree is None:
        errors = [note.message for note in session.notifications if note.level == ERROR]
        reason = f" {errors[-1]}" if errors else ""
        print(f"Error: no dependency tree for {args.package}.{reason}", file=sys.stderr)
        return 1

    if args.output_format == 'json':
        output = OutputFormatter.format_tree_as_json(tree)
    elif args.output_format == 'sbom':
        output = OutputFormatter.format_tree_as_sbom(tree)
    else:
        output = OutputFormatter.format_tree(tree, style=args.output_format)
    return _write_output(output, args.output)


def handle_sample(args):
    """Handle the 'sample' subcommand."""
    return _write_output(SAMPLE_MANIFEST + '\n', args.output)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('manifest', help='package.json path, http(s) URL, or - for stdin')
    parser.add_argument('-o', '--output', default='-',
                        help='Output file (default: stdout, use - for stdout)')
    parser.add_argument('--tree-url', help='Remote dependency-tree endpoint (default: resolve locally)')
    parser.add_argument('--vuln-url', help='Vulnerability check endpoint')
    parser.add_argument('--registry-url', help='npm registry for local resolution')
    parser.add_argument('--timeout', type=int, help='HTTP timeout in seconds. Default: 30')
    parser.add_argument('--max-depth', type=int, help='Depth limit for local resolution. Default: 3')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    parser.add_argument('--loglevel', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Set log level')


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog='depsight',
        description='Analyze package.json dependencies and resolve dependency trees'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Subcommands')

    analyze_parser = subparsers.add_parser('analyze', help='Summarize a manifest')
    _add_common_arguments(analyze_parser)
    analyze_parser.add_argument('--format', dest='output_format', default='text',
                                choices=['text', 'json'],
                                help='Output format (text, json). Default: text')
    analyze_parser.set_defaults(func=handle_analyze)

    tree_parser = subparsers.add_parser('tree', help='Resolve the dependency tree of one package')
    _add_common_arguments(tree_parser)
    tree_parser.add_argument('package', help='Package from the manifest to resolve')
    tree_parser.add_argument('--format', dest='output_format', default='unicode',
                             choices=['unicode', 'ascii', 'json', 'sbom'],
                             help='Output format (unicode, ascii, json, sbom). Default: unicode')
    tree_parser.set_defaults(func=handle_tree)

    sample_parser = subparsers.add_parser('sample', help='Print a sample package.json')
    sample_parser.add_argument('-o', '--output', default='-', help='Output file (default: stdout)')
    sample_parser.set_defaults(func=handle_sample)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
