"""tablepull command line (typer + rich)."""
