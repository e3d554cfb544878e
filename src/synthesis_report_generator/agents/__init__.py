"""AG2 agents and the generation service contract."""
