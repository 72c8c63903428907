from keyword_sweep import cli

cli.app()
