"""Publishers for battle updates."""
