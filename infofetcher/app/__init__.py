"""Process wiring: command line, config, sink, orchestrator."""
