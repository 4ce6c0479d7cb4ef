"""PyQt6 adapters for the headless tour engine, plus the demo window."""
