"""Optional surfaces built on the relaygraph workflows."""
