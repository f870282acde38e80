"""Domain core: models, session state machine, scoring, ports, errors."""
