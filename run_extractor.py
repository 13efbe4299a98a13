"""Convenience launcher for the extractor.

Usage:
  python run_extractor.py [--jql "project = ABC"] [--preset bugs]

Reads credentials from the environment or a local ``.env`` file; see
``jira_extract.core.config.AppSettings.from_env`` for the recognized variables.
"""

import sys

from jira_extract.app import main

if __name__ == "__main__":
    sys.exit(main())
