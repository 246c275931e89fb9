#!/usr/bin/env python3
"""Script to run the FleetDesk test suite, optionally with coverage.

    ./run_tests.py --with-coverage --html
    ./run_tests.py -k registry --debug
"""

import os
import sys
import argparse
import subprocess


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Run tests for FleetDesk")

    parser.add_argument(
        "--with-coverage",
        action="store_true",
        help="Run tests with code coverage"
    )

    parser.add_argument(
        "--html",
        action="store_true",
        help="Generate HTML coverage report"
    )

    parser.add_argument(
        "-k",
        dest="keyword",
        help="Only run tests matching this expression"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show debug output"
    )

    return parser.parse_args()


def build_command(args):
    """Build the pytest command line for the given arguments."""
    test_cmd = [sys.executable, "-m", "pytest", "tests/unit"]

    if args.with_coverage:
        test_cmd.extend(["--cov=fleetdesk", "--cov-report=term-missing"])
        if args.html:
            test_cmd.append("--cov-report=html")

    if args.keyword:
        test_cmd.extend(["-k", args.keyword])

    if args.debug:
        test_cmd.extend(["-v", "--log-cli-level=DEBUG"])

    return test_cmd


def main():
    """Main entry point for the test runner."""
    args = parse_args()

    if args.html:
        os.makedirs("htmlcov", exist_ok=True)

    test_cmd = build_command(args)
    print(f"Running command: {' '.join(test_cmd)}")

    try:
        result = subprocess.run(test_cmd, check=True)
        return result.returncode
    except subprocess.CalledProcessError as e:
        print(f"Error running tests: {e}")
        return e.returncode


if __name__ == "__main__":
    sys.exit(main())
