"""Allow ``python -m trafficgen``."""

from trafficgen.cli.app import app

app(prog_name="trafficgen")
