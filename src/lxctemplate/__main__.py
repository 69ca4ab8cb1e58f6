"""Entry point for running the builder directly.

Usage:
    python -m lxctemplate build template.yaml
    python -m lxctemplate validate template.yaml
"""

from lxctemplate_cli.main import cli

if __name__ == "__main__":
    cli()
