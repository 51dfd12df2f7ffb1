"""Provider gateway test suite."""
