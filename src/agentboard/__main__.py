"""CLI entry point for agentboard.

Usage:
    python -m agentboard sessions list

    # As a tool hook, reading the hook payload from stdin:
    echo '{"tool_name": "Write", "tool_input": {"file_path": "src/a.py"}}' | agentboard hook
"""

import sys


def main() -> int:
    """Main entry point for the agentboard CLI."""
    from agentboard.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
