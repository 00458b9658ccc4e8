"""CLI Agent Provider entry point.

Supports: python -m cli_agent_provider
"""

from .app import main

if __name__ == "__main__":
    main()
