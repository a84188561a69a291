"""intentkeeper - decides which chat utterances become reusable NLU intents."""

__version__ = "0.1.0"
__logo__ = "🗂️"
