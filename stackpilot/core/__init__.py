"""Core engine pieces: configuration, logging, convergence and capacity planning."""
