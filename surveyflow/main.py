from __future__ import annotations

import sys
from pathlib import Path

from surveyflow.UI import run_app


def main() -> None:
    """Launch the Streamlit survey UI."""

    run_app()


def cli() -> None:
    """Console entry point: hand this file to ``streamlit run``."""

    from streamlit.web import cli as stcli

    sys.argv = ["streamlit", "run", str(Path(__file__).resolve()), *sys.argv[1:]]
    sys.exit(stcli.main())


if __name__ == "__main__":
    main()
