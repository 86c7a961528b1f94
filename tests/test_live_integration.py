import os
from pathlib import Path

import pytest

from lead_enricher.cli import main

requires_live = pytest.mark.skipif(
    os.getenv("RUN_LIVE_INTEGRATION") != "1",
    reason="Set RUN_LIVE_INTEGRATION=1 to execute live integration tests.",
)


@requires_live
def test_live_help_command_smoke() -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--help"])
    assert exc_info.value.code == 0


@requires_live
@pytest.mark.skipif(not os.getenv("HUNTER_API_KEY"), reason="HUNTER_API_KEY is not set.")
def test_live_enrichment_writes_output(tmp_path: Path) -> None:
    output = tmp_path / "leads.json"
    exit_code = main(
        ["--urls", "https://stripe.com", "--limit", "1", "--no-progress", "--output", str(output)]
    )
    assert exit_code == 0
    assert output.exists()
