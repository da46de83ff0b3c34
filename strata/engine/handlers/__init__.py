"""Per-domain action executors used by ``ExecutionDispatcher.dispatch``."""
