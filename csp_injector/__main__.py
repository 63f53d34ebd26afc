"""
csp-injector CLI
"""
import argparse
import sys
from pathlib import Path

import structlog

from csp_injector.build.content_for import render_index
from csp_injector.config.loader import load_settings
from csp_injector.config.runtime import resolve_runtime
from csp_injector.logging_config import setup_logging
from csp_injector.middleware.csp_builder import (
    CSP_REPORT_URI,
    build_csp,
    header_name,
    header_policy,
)
from csp_injector.models.policy import RawString

logger = structlog.get_logger()


def build_parser():
    parser = argparse.ArgumentParser(
        prog="csp-injector",
        description="Content-Security-Policy delivery for builds and the dev server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print the header the dev server sends
  python -m csp_injector headers --environment development

  # Same, reporting violations to an external collector
  python -m csp_injector headers --report-uri https://csp.example.com/report

  # Write the CSP meta tag into a built page
  python -m csp_injector inject dist/index.html --environment production

  # Serve the build output
  python -m csp_injector serve --build-dir dist
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    headers_parser = subparsers.add_parser('headers', help='Print the CSP header for an environment')
    headers_parser.add_argument('--environment', '-e', help='Environment name (default: CSP_ENVIRONMENT)')
    headers_parser.add_argument('--report-uri', help='Override the report-uri directive')

    inject_parser = subparsers.add_parser('inject', help='Write the CSP meta tag into a built HTML page')
    inject_parser.add_argument('path', help='HTML file to render')
    inject_parser.add_argument('--environment', '-e', help='Environment name (default: CSP_ENVIRONMENT)')
    inject_parser.add_argument('--output', '-o', help='Output file (default: rewrite in place)')

    serve_parser = subparsers.add_parser('serve', help='Run the dev server')
    serve_parser.add_argument('--build-dir', help='Directory with the build output')
    serve_parser.add_argument('--port', type=int, help='Port to listen on')

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == 'headers':
            return cmd_headers(args)
        elif args.command == 'inject':
            return cmd_inject(args)
        elif args.command == 'serve':
            return cmd_serve(args)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    return 0


def cmd_headers(args):
    """Print the header name and value the dev server would send."""
    settings = load_settings()
    setup_logging(log_level=settings.log_level, json_format=settings.log_json)
    runtime = resolve_runtime(settings, args.environment)
    config = runtime.config

    if not config.enabled:
        print("Content Security Policy is disabled.", file=sys.stderr)
        return 0

    if args.report_uri:
        policy = config.policy.replace(CSP_REPORT_URI, RawString(args.report_uri))
        config = config.model_copy(update={"policy": policy})
    # live reload only exists on the running dev server
    value = build_csp(header_policy(config, None, runtime.report_origin))

    if not value:
        print("No policy configured.", file=sys.stderr)
        return 0

    print(f"{header_name(config.report_only)}: {value}")
    return 0


def cmd_inject(args):
    """Render the content-for hooks into a built HTML page."""
    settings = load_settings(live_reload=False)
    setup_logging(log_level=settings.log_level, json_format=settings.log_json)
    runtime = resolve_runtime(settings, args.environment)

    source = Path(args.path)
    rendered = render_index(source.read_text(encoding="utf-8"), runtime)
    target = Path(args.output) if args.output else source
    target.write_text(rendered, encoding="utf-8")

    logger.info("csp_page_rendered", source=str(source), target=str(target), environment=runtime.environment)
    return 0


def cmd_serve(args):
    """Run the dev server with uvicorn."""
    import uvicorn

    from csp_injector.main import create_app

    overrides = {}
    if args.build_dir:
        overrides['build_dir'] = args.build_dir
    if args.port:
        overrides['port'] = args.port
    settings = load_settings(**overrides)

    app = create_app(settings)
    uvicorn.run(app, host=settings.host or "localhost", port=settings.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
