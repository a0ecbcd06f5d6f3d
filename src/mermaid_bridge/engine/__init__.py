"""Protocol stages: translation, canvas insertion, orchestration, routing."""
