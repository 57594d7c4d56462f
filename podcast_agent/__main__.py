"""
Entry point for running podcast-agent as a module.

Usage: python -m podcast_agent
"""

from podcast_agent.cli import main

if __name__ == "__main__":
    main()
