"""Natural-language side: heuristics, NLU engine contract, intent synchronization."""
