import argparse
from dataclasses import replace
import logging
import sys

from bulkcaller.config import VERSION, Settings, get_settings, parse_duration, parse_key_value
from bulkcaller.errors import SetupError
from bulkcaller.runner import BulkRunner


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bulkcaller",
        description="Send one templated HTTP request per row of a CSV or Excel file",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-f", "--file", help="input .csv or .xlsx file; the first row names the columns")
    parser.add_argument("-u", "--url", help="target URL")
    parser.add_argument("-X", "--method", help="HTTP method (default from BULKCALLER_METHOD, else POST)")
    parser.add_argument("-b", "--body", help='JSON body template, e.g. \'{"name":"${name}"}\'')
    parser.add_argument("--headers", default="", help='extra headers, e.g. "Authorization:Bearer x,Accept:*/*"')
    parser.add_argument("--query", default="", help='query parameters, e.g. "page=1,lang=en"')
    parser.add_argument("-c", "--concurrency", type=int, help="number of concurrent workers")
    parser.add_argument("--delay", type=int, help="delay in milliseconds after each request, per worker")
    parser.add_argument("--timeout", help="per-request timeout, e.g. 30s, 500ms, 2m")
    parser.add_argument("--max-retries", type=int, help="retries per row after the first attempt")
    parser.add_argument("-o", "--output", help="directory for response_<row>.json files")
    parser.add_argument("--print", dest="print_responses", action="store_true", help="log every successful row")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace, base: Settings) -> Settings:
    overrides: dict[str, object] = {
        "file_path": args.file or "",
        "url": args.url or "",
        "body_template": args.body or "",
        "headers": parse_key_value(args.headers, ":"),
        "query_params": parse_key_value(args.query, "="),
        "print_responses": args.print_responses,
    }
    if args.method:
        overrides["method"] = args.method.upper()
    if args.concurrency is not None:
        overrides["concurrency"] = args.concurrency
    if args.delay is not None:
        overrides["delay_seconds"] = args.delay / 1000.0
    if args.timeout:
        overrides["timeout_seconds"] = parse_duration(args.timeout)
    if args.max_retries is not None:
        overrides["max_retries"] = args.max_retries
    if args.output:
        overrides["output_dir"] = args.output
    return replace(base, **overrides)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        settings = build_settings(args, get_settings())
    except SetupError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    runner = BulkRunner(settings)
    try:
        summary = runner.run()
    except SetupError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        runner.executor.close()

    print(
        "success={success} failure={failure} total={total} elapsed={elapsed:.2f}s throughput={rate:.2f} req/s".format(
            success=summary.success,
            failure=summary.failure,
            total=summary.submitted,
            elapsed=summary.elapsed_s,
            rate=summary.throughput,
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
