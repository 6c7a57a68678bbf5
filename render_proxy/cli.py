"""Command-line entry point for the render proxy.

Usage:
    python -m render_proxy.cli serve
    python -m render_proxy.cli serve --port 8080
    python -m render_proxy.cli render https://example.com
    python -m render_proxy.cli render https://example.com/file.pdf --raw -o file.pdf
    python -m render_proxy.cli submit --url https://example.com/download --data "id=1&type=2"
"""

import argparse
import asyncio
import json
import logging
import sys


def _setup_logging(verbose: bool = False):
    from render_proxy.core.logging_config import RequestIDFilter

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
        stream=sys.stderr,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIDFilter())


def _cmd_serve(args):
    """Run the HTTP server."""
    import uvicorn

    from render_proxy.config import settings

    uvicorn.run(
        "render_proxy.main:app",
        host=args.host or settings.HOST,
        port=args.port or settings.PORT,
        log_config=None,
    )


async def _one_shot(run):
    """Start a private session and gate, run one pipeline call, tear down."""
    from render_proxy.middleware.request_id import bound_request_id, new_request_id
    from render_proxy.services.admission import AdmissionGate
    from render_proxy.services.session import BrowserSession

    session = BrowserSession()
    gate = AdmissionGate(1)
    with bound_request_id(new_request_id("cli-")):
        await session.start()
        try:
            return await run(session, gate)
        finally:
            await session.close()


async def _cmd_render(args) -> int:
    """Render a single URL and print the HTML (or write raw bytes)."""
    from render_proxy.core.exceptions import RenderProxyError
    from render_proxy.schemas.render import normalize_target_url
    from render_proxy.services.render import RenderPipeline

    target = normalize_target_url(args.url)
    if target is None:
        print(f"Invalid URL: {args.url}", file=sys.stderr)
        return 2

    async def run(session, gate):
        return await RenderPipeline(session, gate).render(target, raw=args.raw)

    try:
        result = await _one_shot(run)
    except RenderProxyError as e:
        print(f"[{e.status_code}] {e.message}", file=sys.stderr)
        return 1

    body = result.body if isinstance(result.body, bytes) else result.body.encode("utf-8")
    if args.output:
        with open(args.output, "wb") as f:
            f.write(body)
        print(
            f"Wrote {len(body)} bytes ({result.media_type}, status {result.status_code}) "
            f"to {args.output}",
            file=sys.stderr,
        )
    else:
        sys.stdout.buffer.write(body)
        sys.stdout.buffer.flush()
    return 0


async def _cmd_submit(args) -> int:
    """Replay a form POST through the browser session and print the JSON result."""
    from render_proxy.core.exceptions import RenderProxyError
    from render_proxy.services.submit import SubmitPipeline

    async def run(session, gate):
        return await SubmitPipeline(session, gate).submit(
            args.data, url=args.url, referer_path=args.referer_path
        )

    try:
        result = await _one_shot(run)
    except RenderProxyError as e:
        print(json.dumps({"success": False, "error": e.message, "status_code": e.status_code}))
        return 1

    print(
        json.dumps(
            {
                "success": True,
                "data": result.data,
                "status_code": result.status_code,
                "headers": result.headers,
                "buffer_size": result.buffer_size,
            },
            indent=2,
        )
    )
    return 0


def main():
    parser = argparse.ArgumentParser(
        prog="render-proxy",
        description="Headless-browser rendering proxy",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    # --- serve ---
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: HOST setting)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: PORT setting)")

    # --- render ---
    render_parser = subparsers.add_parser("render", help="Render a single URL")
    render_parser.add_argument("url", help="Absolute URL to render")
    render_parser.add_argument("--raw", action="store_true", help="Return the primary response bytes")
    render_parser.add_argument("-o", "--output", default=None, help="Write the body to this file")

    # --- submit ---
    submit_parser = subparsers.add_parser("submit", help="Replay a form POST from the session")
    submit_parser.add_argument("--url", default=None, help="Target URL (default: SUBMIT_DEFAULT_URL)")
    submit_parser.add_argument("--data", required=True, help="Form body, e.g. 'id=1&type=2'")
    submit_parser.add_argument("--referer-path", default=None, help="Same-origin warm-up path")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "serve":
        _cmd_serve(args)
        return

    _setup_logging(args.verbose)

    if args.command == "render":
        sys.exit(asyncio.run(_cmd_render(args)))
    elif args.command == "submit":
        sys.exit(asyncio.run(_cmd_submit(args)))


if __name__ == "__main__":
    main()
