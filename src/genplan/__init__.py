"""genplan: resilient multi-step structured generation for the Gemini API."""
